# eve_core/modules/tasks/routers.py

from fastapi import APIRouter, Depends, HTTPException, status
from loguru import logger

from eve_core.core.security import require_supabase_auth
from eve_core.models.api_common import ErrorResponse
from eve_core.models.tasks import TaskCreateIn, TaskCreateOut
from .services import TaskService, get_task_service

router = APIRouter(tags=["Tasks"], dependencies=[Depends(require_supabase_auth)])


@router.post(
    "/task-create",
    response_model=TaskCreateOut,
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Create a task for an EVE and get an AI analysis of it",
)
async def create_task(
    payload: TaskCreateIn,
    service: TaskService = Depends(get_task_service),
):
    log = logger.bind(api_endpoint="/task-create POST", eve_id=payload.eve_id)
    try:
        return await service.create_task(payload)
    except HTTPException:
        raise
    except Exception as e:
        log.exception(f"Unexpected error creating task: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal server error")
