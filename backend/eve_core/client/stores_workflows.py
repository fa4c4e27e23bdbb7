# eve_core/client/stores_workflows.py

from typing import Any, Dict, List, Optional

from eve_core.client.base import BaseStore, StoreError
from eve_core.modules.workflows.models import Workflow, WorkflowExecution, WorkflowStep
from eve_core.modules.workflows.repository import (
    WorkflowExecutionRepository,
    WorkflowRepository,
    WorkflowStepRepository,
)


class WorkflowStore(BaseStore):
    """
    Workflow definitions, their steps and execution records. ``active_workflow``
    is the workflow last opened with ``get_workflow``; step edits on it are
    mirrored locally.
    """

    def __init__(self, session):
        super().__init__(session)
        self.workflows: List[Workflow] = []
        self.active_workflow: Optional[Workflow] = None
        self.executions: List[WorkflowExecution] = []

    @property
    def repo(self) -> WorkflowRepository:
        return WorkflowRepository(self.session.gateway)

    @property
    def steps(self) -> WorkflowStepRepository:
        return WorkflowStepRepository(self.session.gateway)

    @property
    def runs(self) -> WorkflowExecutionRepository:
        return WorkflowExecutionRepository(self.session.gateway)

    def _set_active_steps(self, workflow_id: str, steps: List[WorkflowStep]) -> None:
        if self.active_workflow and self.active_workflow.id == workflow_id:
            self.active_workflow = self.active_workflow.model_copy(update={"steps": steps})

    async def fetch_workflows(self) -> List[Workflow]:
        async with self._operation("fetch_workflows"):
            self.workflows = await self.repo.list_for_company(await self.session.company_id())
            return self.workflows
        return []

    async def get_workflow(self, workflow_id: str) -> Optional[Workflow]:
        async with self._operation("get_workflow"):
            workflow = await self.repo.get_by_id(workflow_id)
            if workflow is None:
                raise StoreError("Workflow not found")
            steps = await self.steps.list_for_workflow(workflow_id)
            self.active_workflow = workflow.model_copy(update={"steps": steps})
            return self.active_workflow
        return None

    async def create_workflow(self, data: Dict[str, Any]) -> Optional[Workflow]:
        async with self._operation("create_workflow"):
            workflow = await self.repo.create({
                **data,
                "status": data.get("status") or "draft",
                "company_id": await self.session.company_id(),
            })
            self.workflows = [workflow, *self.workflows]
            return workflow
        return None

    async def update_workflow(self, workflow_id: str, data: Dict[str, Any]) -> Optional[Workflow]:
        async with self._operation("update_workflow"):
            changes = {k: v for k, v in data.items() if k != "steps"}
            workflow = await self.repo.update(workflow_id, changes)
            if workflow is None:
                raise StoreError("Workflow not found")
            self.workflows = [workflow if w.id == workflow_id else w for w in self.workflows]
            if self.active_workflow and self.active_workflow.id == workflow_id:
                workflow = workflow.model_copy(update={"steps": self.active_workflow.steps})
            self.active_workflow = workflow
            return workflow
        return None

    async def delete_workflow(self, workflow_id: str) -> bool:
        async with self._operation("delete_workflow"):
            deleted = await self.repo.delete(workflow_id)
            self.workflows = [w for w in self.workflows if w.id != workflow_id]
            if self.active_workflow and self.active_workflow.id == workflow_id:
                self.active_workflow = None
            return deleted
        return False

    async def add_step(self, workflow_id: str, data: Dict[str, Any]) -> Optional[WorkflowStep]:
        async with self._operation("add_step"):
            step = await self.steps.create({**data, "workflow_id": workflow_id})
            if self.active_workflow and self.active_workflow.id == workflow_id:
                self._set_active_steps(workflow_id, [*self.active_workflow.steps, step])
            return step
        return None

    async def update_step(self, workflow_id: str, step_id: str, data: Dict[str, Any]) -> Optional[WorkflowStep]:
        async with self._operation("update_step"):
            step = await self.steps.update_in_workflow(workflow_id, step_id, data)
            if step is None:
                raise StoreError("Workflow step not found")
            if self.active_workflow and self.active_workflow.id == workflow_id:
                self._set_active_steps(workflow_id, [step if s.id == step_id else s for s in self.active_workflow.steps])
            return step
        return None

    async def delete_step(self, workflow_id: str, step_id: str) -> bool:
        async with self._operation("delete_step"):
            deleted = await self.steps.delete_in_workflow(workflow_id, step_id)
            if self.active_workflow and self.active_workflow.id == workflow_id:
                self._set_active_steps(workflow_id, [s for s in self.active_workflow.steps if s.id != step_id])
            return deleted
        return False

    async def execute_workflow(self, workflow_id: str, initial_data: Optional[Dict[str, Any]] = None) -> Optional[WorkflowExecution]:
        """Opens a ``running`` execution record seeded with ``initial_data``."""
        async with self._operation("execute_workflow"):
            workflow = await self.repo.get_by_id(workflow_id)
            if workflow is None:
                raise StoreError("Workflow not found")
            if workflow.company_id != await self.session.company_id():
                raise StoreError("Workflow belongs to another company")
            execution = await self.runs.start(workflow, initial_data)
            self.executions = [execution, *self.executions]
            return execution
        return None

    async def get_executions(self, workflow_id: str) -> List[WorkflowExecution]:
        async with self._operation("get_executions"):
            self.executions = await self.runs.list_for_workflow(workflow_id)
            return self.executions
        return []

    async def cancel_execution(self, execution_id: str) -> Optional[WorkflowExecution]:
        async with self._operation("cancel_execution"):
            execution = await self.runs.cancel(execution_id)
            if execution is None:
                raise StoreError("Execution is not running")
            self.executions = [execution if e.id == execution_id else e for e in self.executions]
            return execution
        return None
