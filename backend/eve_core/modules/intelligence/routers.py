# eve_core/modules/intelligence/routers.py

from typing import Union

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse, Response, StreamingResponse
from loguru import logger

from eve_core.core.security import require_supabase_auth
from eve_core.models.api_common import ErrorResponse
from eve_core.models.intelligence import (
    CompletionIn, CompletionOut, ConnectionTestOut, ProxyIn, SpeechOut, TranscriptionOut, VoiceIn,
)
from eve_core.services.ai_gateway import ProxyEndpoint
from .services import STREAM_HEADERS, IntelligenceService, get_intelligence_service

router = APIRouter(tags=["Intelligence"], dependencies=[Depends(require_supabase_auth)])

_ERRORS = {400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}}


@router.post(
    "/ai-completion",
    response_model=CompletionOut,
    responses=_ERRORS,
    summary="Chat completion in the persona of an EVE",
)
async def ai_completion(
    payload: CompletionIn,
    service: IntelligenceService = Depends(get_intelligence_service),
):
    log = logger.bind(api_endpoint="/ai-completion POST", eve_id=payload.eve_id, stream=payload.stream)
    try:
        if payload.stream:
            frames = await service.stream(payload)
            return StreamingResponse(frames, media_type="text/event-stream", headers=STREAM_HEADERS)
        return await service.complete(payload)
    except HTTPException:
        raise
    except Exception as e:
        log.exception(f"Unexpected error generating completion: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal server error")


@router.post(
    "/ai-proxy",
    responses=_ERRORS,
    summary="Forward a request to an allow-listed OpenAI endpoint with the company's credentials",
)
async def ai_proxy(
    payload: ProxyIn,
    service: IntelligenceService = Depends(get_intelligence_service),
):
    endpoint = payload.request_data.endpoint
    log = logger.bind(api_endpoint="/ai-proxy POST", company_id=payload.company_id, endpoint=endpoint.value)
    try:
        if payload.request_data.stream:
            frames = await service.proxy_stream(payload)
            return StreamingResponse(frames, media_type="text/event-stream", headers=STREAM_HEADERS)
        result = await service.proxy(payload)
        if endpoint is ProxyEndpoint.AUDIO_SPEECH:
            return Response(content=result.content, media_type="audio/mpeg")
        return JSONResponse(content=result.model_dump(mode="json"))
    except HTTPException:
        raise
    except Exception as e:
        log.exception(f"Unexpected error proxying OpenAI request: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal server error")


@router.post(
    "/ai-voice",
    response_model=Union[TranscriptionOut, SpeechOut],
    responses=_ERRORS,
    summary="Transcribe caller audio or synthesize an EVE's speech",
)
async def ai_voice(
    payload: VoiceIn,
    service: IntelligenceService = Depends(get_intelligence_service),
):
    log = logger.bind(api_endpoint="/ai-voice POST", eve_id=payload.eve_id, operation=payload.operation)
    try:
        if payload.operation == "transcribe":
            return await service.transcribe(payload)
        if payload.stream:
            audio = await service.speak_stream(payload)
            return StreamingResponse(audio, media_type="audio/mpeg")
        return await service.speak(payload)
    except HTTPException:
        raise
    except Exception as e:
        log.exception(f"Unexpected error in voice operation: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal server error")


@router.post(
    "/ai-connection-test",
    response_model=ConnectionTestOut,
    responses={500: {"model": ConnectionTestOut}},
    summary="Check that the platform OpenAI key works",
)
async def ai_connection_test(service: IntelligenceService = Depends(get_intelligence_service)):
    result = await service.test_connection()
    if not result.success:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=result.model_dump(exclude_none=True),
        )
    return result
