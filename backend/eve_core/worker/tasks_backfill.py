# eve_core/worker/tasks_backfill.py

import asyncio
import uuid
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx
from loguru import logger

from eve_core.core.config import settings
from eve_core.core.gateway import QueryGateway
from eve_core.core.logging_config import trace_id_var
from eve_core.modules.memory.repository import MemoryVectorRepository
from eve_core.modules.office.repository import CompanyAISettingsRepository
from eve_core.services.ai_gateway import AIGatewayResolver
from eve_core.worker.celery_app import celery_app


async def _with_gateway(work: Callable[[QueryGateway], Awaitable[Any]]) -> Any:
    """Runs ``work`` against a short-lived service-role gateway; each task owns its event loop."""
    async with httpx.AsyncClient(timeout=settings.SUPABASE_TIMEOUT_SECONDS) as client:
        gateway = QueryGateway(client, settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)
        return await work(gateway)


def _run_with_retry(task, log, work: Callable[[QueryGateway], Awaitable[Any]]) -> Dict[str, Any]:
    try:
        result = asyncio.run(_with_gateway(work))
        log.success("Backfill write completed.")
        return {"status": "success", "result": result}
    except Exception as e:
        log.exception("Backfill write failed.")
        retry_countdown = int(celery_app.conf.task_default_retry_delay * (2 ** task.request.retries))
        if task.request.retries >= task.max_retries:
            log.error("Max retries exceeded for backfill task.")
            return {"status": "failed", "message": "Task failed after max retries.", "error": str(e)}
        log.warning(f"Retrying task in {retry_countdown} seconds (Attempt {task.request.retries + 1}/{task.max_retries}). Error: {e}")
        raise task.retry(exc=e, countdown=retry_countdown)


def _bind(task, trace_id: Optional[str]):
    current_trace_id = trace_id or f"task_{uuid.uuid4().hex[:12]}"
    token = trace_id_var.set(current_trace_id)
    log = logger.bind(trace_id=current_trace_id, task_name=task.name, job_id=task.request.id)
    return token, log


@celery_app.task(bind=True, name="backfill.log_event", max_retries=5, acks_late=True)
def backfill_log_event_task(self, params: Dict[str, Any], trace_id: Optional[str] = None):
    """Replays a ``log_event`` RPC that failed during a request."""
    token, log = _bind(self, trace_id)
    log.info(f"Replaying audit event {params.get('p_event_type')} for EVE {params.get('p_eve_id')}.")
    try:
        return _run_with_retry(self, log, lambda gateway: gateway.rpc("log_event", params))
    finally:
        trace_id_var.reset(token)


@celery_app.task(bind=True, name="backfill.ai_usage", max_retries=5, acks_late=True)
def backfill_ai_usage_task(self, params: Dict[str, Any], trace_id: Optional[str] = None):
    """Replays a ``log_ai_usage`` RPC that failed during a request."""
    token, log = _bind(self, trace_id)
    log.info(f"Replaying AI usage of {params.get('p_tokens_used')} tokens for company {params.get('p_company_id')}.")
    try:
        return _run_with_retry(self, log, lambda gateway: gateway.rpc("log_ai_usage", params))
    finally:
        trace_id_var.reset(token)


@celery_app.task(bind=True, name="backfill.memory_embedding", max_retries=3, acks_late=True)
def backfill_memory_embedding_task(
    self,
    memory_id: str,
    text: str,
    company_id: Optional[str] = None,
    trace_id: Optional[str] = None,
):
    """Regenerates the vector row of a memory whose inline embedding failed."""
    token, log = _bind(self, trace_id)
    log = log.bind(memory_id=memory_id)

    async def rebuild(gateway: QueryGateway) -> str:
        resolver = AIGatewayResolver(CompanyAISettingsRepository(gateway))
        ai = await resolver.for_company(company_id)
        embedding = await ai.embed(text)
        vector = await MemoryVectorRepository(gateway).replace_for_memory(memory_id, embedding, text)
        return vector.memory_id

    log.info("Rebuilding memory embedding.")
    try:
        return _run_with_retry(self, log, rebuild)
    finally:
        trace_id_var.reset(token)
