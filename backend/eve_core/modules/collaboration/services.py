# eve_core/modules/collaboration/services.py

from fastapi import Depends, HTTPException, status
from loguru import logger

from eve_core.models.collaboration import CollaborationRequestIn, CollaborationRequestOut, CollaborationSummary
from eve_core.modules.eves.repository import EveRepository, get_eve_repository
from eve_core.modules.tasks.repository import TaskRepository, get_task_repository
from eve_core.modules.office.models import AuditEvent
from eve_core.modules.office.services_audit import AuditService, get_audit_service
from .repository import CollaborationRepository, get_collaboration_repository


class CollaborationService:
    def __init__(
        self,
        eve_repo: EveRepository,
        task_repo: TaskRepository,
        collab_repo: CollaborationRepository,
        audit: AuditService,
    ):
        self.eve_repo = eve_repo
        self.task_repo = task_repo
        self.collab_repo = collab_repo
        self.audit = audit

    async def request_collaboration(self, payload: CollaborationRequestIn) -> CollaborationRequestOut:
        """
        Creates a pending collaboration between two EVEs of the same company.
        The audit write afterwards is best-effort and does not affect the response.
        """
        log = logger.bind(service="CollaborationService", source_eve=payload.source_eve_id, target_eve=payload.target_eve_id)

        source_eve = await self.eve_repo.get_by_id(payload.source_eve_id)
        if not source_eve:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Source EVE not found")
        target_eve = await self.eve_repo.get_by_id(payload.target_eve_id)
        if not target_eve:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Target EVE not found")

        if source_eve.company_id != target_eve.company_id:
            log.warning("Cross-company collaboration attempt rejected.")
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="EVEs must belong to the same company")

        task = await self.task_repo.get_by_id(payload.task_id)
        if not task:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")

        collaboration = await self.collab_repo.create({
            "source_eve_id": source_eve.id,
            "target_eve_id": target_eve.id,
            "task_id": task.id,
            "request_type": payload.request_type,
            "message": payload.message,
            "status": "pending",
            "priority": payload.priority or "medium",
            "due_date": payload.due_date,
            "metadata": payload.metadata or {},
            "company_id": source_eve.company_id,
        })
        log.success(f"Collaboration {collaboration.id} created ({payload.request_type}).")

        await self.audit.log_event(AuditEvent(
            eve_id=source_eve.id,
            company_id=source_eve.company_id,
            event_type="COLLABORATION_REQUESTED",
            status="pending",
            message=f"{source_eve.name} requested {payload.request_type} from {target_eve.name}: {payload.message}",
            metadata={
                "collaboration_id": collaboration.id,
                "request_type": payload.request_type,
                "target_eve": target_eve.name,
                "task_id": task.id,
            },
        ))

        return CollaborationRequestOut(
            collaboration=CollaborationSummary(
                id=collaboration.id,
                source_eve=source_eve.name,
                target_eve=target_eve.name,
                task_id=collaboration.task_id,
                request_type=collaboration.request_type,
                status=collaboration.status,
                message=collaboration.message,
                created_at=collaboration.created_at,
            )
        )


async def get_collaboration_service(
    eve_repo: EveRepository = Depends(get_eve_repository),
    task_repo: TaskRepository = Depends(get_task_repository),
    collab_repo: CollaborationRepository = Depends(get_collaboration_repository),
    audit: AuditService = Depends(get_audit_service),
) -> CollaborationService:
    return CollaborationService(eve_repo, task_repo, collab_repo, audit)
