# eve_core/modules/memory/routers.py

from typing import Union

from fastapi import APIRouter, Depends, HTTPException, status
from loguru import logger

from eve_core.core.security import require_supabase_auth
from eve_core.models.api_common import ErrorResponse
from eve_core.models.memory import MemoryListOut, MemoryMutationOut, MemoryOperationRequest, MemoryOut
from .services import MemoryService, get_memory_service

router = APIRouter(tags=["Memory"], dependencies=[Depends(require_supabase_auth)])


@router.post(
    "/memory-operation",
    response_model=Union[MemoryMutationOut, MemoryOut, MemoryListOut],
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Store, retrieve, update, delete, search or rank an EVE's memories",
)
async def memory_operation(
    payload: MemoryOperationRequest,
    service: MemoryService = Depends(get_memory_service),
):
    operation = payload.root
    log = logger.bind(api_endpoint="/memory-operation POST", operation=operation.operation, eve_id=operation.eve_id)
    try:
        return await service.execute(operation)
    except HTTPException:
        raise
    except Exception as e:
        log.exception(f"Unexpected error during memory {operation.operation}: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal server error")
