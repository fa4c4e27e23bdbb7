# eve_core/modules/office/services_audit.py

from typing import Any, Dict, Optional

from fastapi import Depends
from loguru import logger

from eve_core.core.config import settings
from eve_core.core.database import get_query_gateway
from eve_core.core.gateway import QueryGateway
from eve_core.core.logging_config import trace_id_var
from eve_core.worker.celery_app import celery_app
from .models import AuditEvent, UsageRecord


def enqueue_backfill(task_name: str, kwargs: Dict[str, Any]) -> Optional[str]:
    """
    Hands a failed secondary write to the Celery backfill queue.
    Returns the task id, or None when backfill is disabled or the broker is down.
    """
    log = logger.bind(service="Backfill", task_name=task_name)
    if not settings.BACKFILL_ENABLED:
        log.debug("Backfill disabled; dropping failed secondary write.")
        return None
    try:
        result = celery_app.send_task(task_name, kwargs={**kwargs, "trace_id": trace_id_var.get()})
        log.info(f"Backfill task enqueued: {result.id}")
        return result.id
    except Exception as e:
        log.error(f"Could not enqueue backfill task: {e}")
        return None


class AuditService:
    """
    Writes audit events and AI usage through stored procedures.
    Both writes are best-effort: failures are logged, handed to the backfill
    queue and never raised to the caller.
    """

    def __init__(self, gateway: QueryGateway):
        self.gateway = gateway

    async def log_event(self, event: AuditEvent) -> bool:
        log = logger.bind(service="AuditService", event_type=event.event_type, eve_id=event.eve_id)
        params = event.as_rpc_params()
        try:
            await self.gateway.rpc("log_event", params)
            log.debug("Audit event recorded.")
            return True
        except Exception as e:
            log.warning(f"Failed to record audit event: {e}")
            enqueue_backfill("backfill.log_event", {"params": params})
            return False

    async def log_ai_usage(self, record: UsageRecord) -> bool:
        if record.tokens_used <= 0:
            return False
        log = logger.bind(service="AuditService", company_id=record.company_id, endpoint=record.endpoint)
        params = record.as_rpc_params()
        try:
            await self.gateway.rpc("log_ai_usage", params)
            log.debug(f"AI usage recorded: {record.tokens_used} tokens on {record.model}.")
            return True
        except Exception as e:
            log.warning(f"Failed to record AI usage: {e}")
            enqueue_backfill("backfill.ai_usage", {"params": params})
            return False


async def get_audit_service(gateway: QueryGateway = Depends(get_query_gateway)) -> AuditService:
    return AuditService(gateway)
