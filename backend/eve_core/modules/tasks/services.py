# eve_core/modules/tasks/services.py

from fastapi import Depends, HTTPException, status
from loguru import logger

from eve_core.models.tasks import TaskCreateIn, TaskCreateOut, TaskSummary
from eve_core.modules.eves.models import EVE, Action
from eve_core.modules.eves.repository import ActionRepository, EveRepository, get_action_repository, get_eve_repository
from eve_core.modules.office.models import AuditEvent
from eve_core.modules.office.services_audit import AuditService, get_audit_service
from eve_core.services.ai_gateway import AIGatewayError, AIGatewayResolver, get_ai_gateway_resolver
from .repository import TaskRepository, get_task_repository

ANALYSIS_UNAVAILABLE = "Analysis unavailable."


def build_task_analysis_prompt(description: str, action: Action | None) -> str:
    action_line = f"I should use the {action.name} action to complete it.\n" if action else ""
    return (
        "As an Enterprise Virtual Employee, I've been assigned this task:\n"
        f"\"{description}\"\n\n"
        f"{action_line}"
        "Based on this information, what steps should I take to complete this task effectively?\n"
        "What information might I need that's missing?\n"
        "Are there any potential issues I should be aware of?\n\n"
        "Provide a concise analysis with clear next steps."
    )


class TaskService:
    def __init__(
        self,
        eve_repo: EveRepository,
        action_repo: ActionRepository,
        task_repo: TaskRepository,
        audit: AuditService,
        ai_resolver: AIGatewayResolver,
    ):
        self.eve_repo = eve_repo
        self.action_repo = action_repo
        self.task_repo = task_repo
        self.audit = audit
        self.ai_resolver = ai_resolver

    async def _analyze(self, eve: EVE, description: str, action: Action | None) -> str:
        """Asks the model for next steps. Failure degrades to a placeholder, the task already exists."""
        try:
            ai = await self.ai_resolver.for_company(eve.company_id)
            result = await ai.complete(
                [
                    {
                        "role": "system",
                        "content": (
                            f"You are a task analysis module for {eve.name}, an Enterprise Virtual Employee. "
                            "Your job is to analyze tasks and provide clear, structured insights."
                        ),
                    },
                    {"role": "user", "content": build_task_analysis_prompt(description, action)},
                ],
                max_tokens=500,
                temperature=0.7,
            )
            return result.content or ANALYSIS_UNAVAILABLE
        except AIGatewayError as e:
            logger.bind(service="TaskService", eve_id=eve.id).warning(f"Task analysis unavailable: {e}")
            return ANALYSIS_UNAVAILABLE

    async def create_task(self, payload: TaskCreateIn) -> TaskCreateOut:
        log = logger.bind(service="TaskService", eve_id=payload.eve_id)

        eve = await self.eve_repo.get_by_id(payload.eve_id)
        if not eve:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="EVE not found")

        action = None
        if payload.action_id:
            action = await self.action_repo.get_by_id(payload.action_id)
            if not action:
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Action not found")
            if not action.is_global and action.company_id and action.company_id != eve.company_id:
                log.warning(f"Action {action.id} belongs to another company.")
                raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Action belongs to another company")

        parameters = payload.parameters or {}
        priority = payload.priority or "medium"
        task = await self.task_repo.create({
            "eve_id": eve.id,
            "action_id": payload.action_id,
            "description": payload.task_description,
            "status": "pending",
            "parameters": parameters,
            "priority": priority,
            "due_date": payload.due_date,
            "company_id": eve.company_id,
        })
        log.success(f"Task {task.id} created.")

        await self.audit.log_event(AuditEvent(
            eve_id=eve.id,
            action_id=payload.action_id,
            company_id=eve.company_id,
            event_type="TASK_CREATED",
            status="pending",
            message=f"Task created: {payload.task_description}",
            metadata={
                "task_id": task.id,
                "priority": priority,
                "due_date": payload.due_date.isoformat() if payload.due_date else None,
            },
        ))

        analysis = await self._analyze(eve, payload.task_description, action)

        return TaskCreateOut(
            task=TaskSummary(
                id=task.id,
                eve_id=eve.id,
                eve_name=eve.name,
                description=task.description,
                status=task.status,
                action_id=task.action_id,
                parameters=task.parameters or parameters,
                priority=task.priority,
                due_date=task.due_date,
                created_at=task.created_at,
            ),
            analysis=analysis,
        )


async def get_task_service(
    eve_repo: EveRepository = Depends(get_eve_repository),
    action_repo: ActionRepository = Depends(get_action_repository),
    task_repo: TaskRepository = Depends(get_task_repository),
    audit: AuditService = Depends(get_audit_service),
    ai_resolver: AIGatewayResolver = Depends(get_ai_gateway_resolver),
) -> TaskService:
    return TaskService(eve_repo, action_repo, task_repo, audit, ai_resolver)
