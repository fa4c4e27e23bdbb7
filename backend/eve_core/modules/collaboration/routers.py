# eve_core/modules/collaboration/routers.py

from fastapi import APIRouter, Depends, HTTPException, status
from loguru import logger

from eve_core.core.security import require_supabase_auth
from eve_core.models.api_common import ErrorResponse
from eve_core.models.collaboration import CollaborationRequestIn, CollaborationRequestOut
from .services import CollaborationService, get_collaboration_service

router = APIRouter(tags=["Collaboration"], dependencies=[Depends(require_supabase_auth)])


@router.post(
    "/collaboration-request",
    response_model=CollaborationRequestOut,
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Request help from another EVE on a task",
)
async def request_collaboration(
    payload: CollaborationRequestIn,
    service: CollaborationService = Depends(get_collaboration_service),
):
    log = logger.bind(api_endpoint="/collaboration-request POST", request_type=payload.request_type)
    try:
        return await service.request_collaboration(payload)
    except HTTPException:
        raise
    except Exception as e:
        log.exception(f"Unexpected error creating collaboration request: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal server error")
