# eve_core/modules/voice/routers.py

from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse, Response
from loguru import logger
from twilio.twiml.voice_response import VoiceResponse

from eve_core.core.security import verify_twilio_signature
from .services import VoiceCallService, apology, get_voice_call_service

router = APIRouter(prefix="/voice", tags=["Voice"], dependencies=[Depends(verify_twilio_signature)])

GENERIC_CALL_ERROR = "An error occurred. Please try again later."


def twiml_response(twiml: VoiceResponse) -> Response:
    return Response(content=str(twiml), media_type="application/xml")


@router.api_route("/webhook", methods=["GET", "POST"], summary="Twilio entry point for an incoming call")
async def voice_webhook(
    call_sid: Optional[str] = Query(None, alias="CallSid"),
    caller: Optional[str] = Query(None, alias="From"),
    called: Optional[str] = Query(None, alias="To"),
    call_status: Optional[str] = Query(None, alias="CallStatus"),
    service: VoiceCallService = Depends(get_voice_call_service),
):
    try:
        twiml = await service.handle_incoming_call(call_sid, caller, called, call_status)
    except Exception as e:
        logger.bind(api_endpoint="/voice/webhook", call_sid=call_sid).exception(f"Error in voice webhook: {e}")
        twiml = apology(GENERIC_CALL_ERROR)
    return twiml_response(twiml)


@router.api_route("/process", methods=["GET", "POST"], summary="Reply to the caller's speech")
async def voice_process(
    eve_id: Optional[str] = Query(None),
    call_id: Optional[str] = Query(None),
    speech_result: Optional[str] = Query(None, alias="SpeechResult"),
    service: VoiceCallService = Depends(get_voice_call_service),
):
    return twiml_response(await service.process_speech(eve_id, call_id, speech_result))


@router.api_route("/status", methods=["GET", "POST"], summary="Twilio call status callback")
async def voice_status(
    call_sid: Optional[str] = Query(None, alias="CallSid"),
    call_status: Optional[str] = Query(None, alias="CallStatus"),
    call_duration: Optional[str] = Query(None, alias="CallDuration"),
    service: VoiceCallService = Depends(get_voice_call_service),
):
    return JSONResponse(content=await service.update_status(call_sid, call_status, call_duration))
