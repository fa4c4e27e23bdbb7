# eve_core/api/endpoints/status.py
import asyncio
import time as process_time
from datetime import datetime, timezone
from typing import Dict, Literal, Optional

from celery.exceptions import OperationalError as CeleryOperationalError
from fastapi import APIRouter, Depends, Response, status as http_status
from loguru import logger
from pydantic import BaseModel, Field
from redis.asyncio import Redis

from eve_core.core.connectivity import check_supabase_connection
from eve_core.core.database import get_query_gateway, get_redis_client
from eve_core.core.gateway import QueryGateway
from eve_core.core.logging_config import trace_id_var
from eve_core.worker.celery_app import celery_app

ComponentState = Literal["ok", "error", "unavailable"]


class ComponentStatus(BaseModel):
    status: ComponentState = "ok"
    message: Optional[str] = None


class HealthCheckResponse(BaseModel):
    overall_status: Literal["ok", "error"] = "ok"
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    uptime_seconds: float = Field(..., description="Process uptime in seconds")
    components: Dict[str, ComponentStatus]


PROCESS_START_TIME = process_time.monotonic()

# Components whose failure turns the whole service red.
CRITICAL_COMPONENTS = ("database_supabase",)

router = APIRouter()


async def _supabase_status(gateway: QueryGateway, log) -> ComponentStatus:
    if await check_supabase_connection(gateway):
        log.debug("Supabase REST reachable.")
        return ComponentStatus(status="ok")
    log.error("Supabase REST unreachable after retries.")
    return ComponentStatus(status="error", message="Supabase unreachable")


async def _redis_status(redis: Optional[Redis], log) -> ComponentStatus:
    if redis is None:
        log.warning("Redis client not configured; AI settings cache disabled.")
        return ComponentStatus(status="unavailable", message="Redis Client not available")
    try:
        await redis.ping()
    except Exception as e:
        log.error(f"Redis ping failed: {e}")
        return ComponentStatus(status="error", message=f"Redis connection check failed: {e}")
    return ComponentStatus(status="ok")


async def _celery_status(log) -> ComponentStatus:
    try:
        inspector = celery_app.control.inspect(timeout=1.5)
        replies = await asyncio.to_thread(inspector.ping)
    except CeleryOperationalError as e:
        log.error(f"Celery broker connection error during ping: {e}")
        return ComponentStatus(status="error", message="Broker connection error")
    except Exception as e:
        log.error(f"Celery worker check failed unexpectedly: {e}")
        return ComponentStatus(status="error", message="Ping check error")
    if not replies:
        return ComponentStatus(status="unavailable", message="No backfill workers responded to ping.")
    return ComponentStatus(status="ok", message=f"{len(replies)} worker(s) responded.")


@router.get(
    "/healthcheck",
    response_model=HealthCheckResponse,
    tags=["Status & Health"],
    summary="Supabase, Redis and backfill worker status",
)
async def get_application_health(
    gateway: QueryGateway = Depends(get_query_gateway),
    redis: Optional[Redis] = Depends(get_redis_client),
):
    log = logger.bind(trace_id=trace_id_var.get(), api_endpoint="/healthcheck GET")
    log.info("Running health check...")

    components = {
        "database_supabase": await _supabase_status(gateway, log),
        "cache_redis": await _redis_status(redis, log),
        "celery_workers": await _celery_status(log),
    }
    healthy = all(components[name].status == "ok" for name in CRITICAL_COMPONENTS)

    payload = HealthCheckResponse(
        overall_status="ok" if healthy else "error",
        uptime_seconds=process_time.monotonic() - PROCESS_START_TIME,
        components=components,
    )
    return Response(
        content=payload.model_dump_json(exclude_none=True),
        status_code=http_status.HTTP_200_OK if healthy else http_status.HTTP_503_SERVICE_UNAVAILABLE,
        media_type="application/json",
    )
