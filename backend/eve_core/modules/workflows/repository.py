# eve_core/modules/workflows/repository.py

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from loguru import logger

from eve_core.core.repository import BaseRepository
from .models import Workflow, WorkflowExecution, WorkflowStep


class WorkflowRepository(BaseRepository[Workflow]):
    model = Workflow
    table_name = "workflows"

    async def list_for_company(self, company_id: str) -> List[Workflow]:
        return await self.list_by({"company_id": company_id}, order=[("created_at", "desc")])


class WorkflowStepRepository(BaseRepository[WorkflowStep]):
    model = WorkflowStep
    table_name = "workflow_steps"

    async def list_for_workflow(self, workflow_id: str) -> List[WorkflowStep]:
        return await self.list_by({"workflow_id": workflow_id}, order=[("created_at", "asc")])

    async def update_in_workflow(self, workflow_id: str, step_id: str, data: Dict[str, Any]) -> Optional[WorkflowStep]:
        rows = await self.update_by({"id": step_id, "workflow_id": workflow_id}, data)
        return rows[0] if rows else None

    async def delete_in_workflow(self, workflow_id: str, step_id: str) -> bool:
        return await self.delete_by({"id": step_id, "workflow_id": workflow_id}) > 0


class WorkflowExecutionRepository(BaseRepository[WorkflowExecution]):
    model = WorkflowExecution
    table_name = "workflow_executions"

    async def list_for_workflow(self, workflow_id: str) -> List[WorkflowExecution]:
        return await self.list_by({"workflow_id": workflow_id}, order=[("started_at", "desc")])

    async def start(self, workflow: Workflow, initial_data: Optional[Dict[str, Any]] = None) -> WorkflowExecution:
        return await self.create({
            "workflow_id": workflow.id,
            "company_id": workflow.company_id,
            "status": "running",
            "results": initial_data or {},
            "started_at": datetime.now(timezone.utc),
        })

    async def cancel(self, execution_id: str) -> Optional[WorkflowExecution]:
        """Only a running execution can be cancelled; returns None otherwise."""
        rows = await self.update_by(
            {"id": execution_id, "status": "running"},
            {"status": "cancelled", "completed_at": datetime.now(timezone.utc)},
        )
        if not rows:
            logger.warning(f"No running workflow execution {execution_id} to cancel.")
            return None
        return rows[0]
