# eve_core/modules/voice/services.py

from datetime import datetime, timezone
from typing import Any, Dict, Optional
from urllib.parse import urlencode

from fastapi import Depends
from loguru import logger
from twilio.twiml.voice_response import VoiceResponse

from eve_core.core.config import settings
from eve_core.core.gateway import DatabaseError
from eve_core.modules.eves.models import EVE
from eve_core.modules.eves.repository import EveRepository, get_eve_repository
from eve_core.modules.office.models import AuditEvent, Company
from eve_core.modules.office.repository import CompanyRepository, get_company_repository
from eve_core.modules.office.services_audit import AuditService, get_audit_service
from eve_core.services.ai_gateway import AIGatewayError, AIGatewayResolver, get_ai_gateway_resolver
from .models import VoiceSettings
from .repository import (
    VoiceCallRepository, VoiceSettingsRepository,
    get_voice_call_repository, get_voice_settings_repository,
)

NO_EVE_FOR_NUMBER = "We could not locate a virtual employee for this number. Goodbye."
EVE_UNAVAILABLE = "Sorry, the virtual employee is currently unavailable. Please try again later."
MISSING_CALL_DATA = "Sorry, we could not process this call. Goodbye."
NO_SPEECH_ON_GREETING = "I didn't hear anything. Please call back when you're ready to speak."
NO_SPEECH_ON_FOLLOW_UP = "I didn't hear anything. Thank you for calling. Goodbye."
ANYTHING_ELSE = "Is there anything else I can help you with?"
DEFAULT_AI_FALLBACK = "I'm having trouble processing your request right now. Please try again later."
NO_SPEECH_REPLY = "I'm sorry, I couldn't process your request at this time."
PROCESSING_FAILED = "I'm sorry, I encountered a problem processing your request. Please try again later."


def default_greeting(eve: EVE) -> str:
    return f"Hello, this is {eve.name}, an Enterprise Virtual Employee from {settings.BRAND_NAME}. How can I help you today?"


def build_voice_persona_prompt(eve: EVE, company: Optional[Company], speech: str) -> str:
    return (
        f"You are {eve.name}, an Enterprise Virtual Employee at {company.name if company else 'a company'}.\n"
        f"Your capabilities include: {', '.join(eve.capabilities or [])}.\n\n"
        "This is a voice conversation, so keep your responses conversational, clear, and concise.\n"
        "Avoid long explanations, lists, or anything that would be difficult to follow in speech.\n"
        "Aim to keep responses under 30 seconds when spoken.\n\n"
        f"The person has called you on the phone and said: \"{speech}\"\n\n"
        "Respond in a helpful, professional manner. Don't mention that you're an AI unless directly asked."
    )


def process_url(eve_id: str, call_id: Optional[str]) -> str:
    return f"{settings.API_V1_STR}/voice/process?{urlencode({'eve_id': eve_id, 'call_id': call_id or ''})}"


def apology(message: str) -> VoiceResponse:
    twiml = VoiceResponse()
    twiml.say(message)
    twiml.hangup()
    return twiml


def add_speech_gather(twiml: VoiceResponse, eve_id: str, call_id: Optional[str]) -> None:
    twiml.gather(
        input="speech",
        action=process_url(eve_id, call_id),
        method="GET",
        speech_timeout="auto",
        speech_model="phone_call",
        enhanced=True,
        language="en-US",
        timeout=5,
    )


class VoiceCallService:
    """
    Drives the Twilio call flow: greeting, speech gathering and the AI reply loop.
    Every public method returns TwiML; telephony never sees an HTTP error.
    """

    def __init__(
        self,
        eve_repo: EveRepository,
        company_repo: CompanyRepository,
        settings_repo: VoiceSettingsRepository,
        call_repo: VoiceCallRepository,
        audit: AuditService,
        ai_resolver: AIGatewayResolver,
    ):
        self.eve_repo = eve_repo
        self.company_repo = company_repo
        self.settings_repo = settings_repo
        self.call_repo = call_repo
        self.audit = audit
        self.ai_resolver = ai_resolver

    async def _start_call_record(self, eve: EVE, call_sid: str, caller: Optional[str], call_status: Optional[str]) -> Optional[str]:
        try:
            call = await self.call_repo.create({
                "eve_id": eve.id,
                "call_sid": call_sid,
                "caller_number": caller,
                "status": call_status or "in-progress",
                "started_at": datetime.now(timezone.utc),
                "company_id": eve.company_id,
            })
            return call.id
        except (DatabaseError, ValueError) as e:
            logger.bind(service="VoiceCallService", call_sid=call_sid).error(f"Could not record incoming call: {e}")
            return None

    async def handle_incoming_call(
        self,
        call_sid: Optional[str],
        caller: Optional[str],
        called: Optional[str],
        call_status: Optional[str],
    ) -> VoiceResponse:
        log = logger.bind(service="VoiceCallService", call_sid=call_sid)
        if not call_sid or not called:
            log.warning("Incoming call webhook without CallSid or To.")
            return apology(MISSING_CALL_DATA)

        log.info(f"Incoming call from {caller} to {called} (status: {call_status})")
        voice_settings = await self.settings_repo.get_for_number(called)
        if not voice_settings:
            log.warning(f"No EVE configured for number {called}.")
            return apology(NO_EVE_FOR_NUMBER)

        eve = await self.eve_repo.get_by_id(voice_settings.eve_id)
        if not eve:
            log.error(f"Voice settings point at missing EVE {voice_settings.eve_id}.")
            return apology(EVE_UNAVAILABLE)

        call_id = await self._start_call_record(eve, call_sid, caller, call_status)

        twiml = VoiceResponse()
        twiml.say(voice_settings.greeting_message or default_greeting(eve), voice=voice_settings.voice_id or settings.DEFAULT_TWILIO_VOICE)
        add_speech_gather(twiml, eve.id, call_id)
        twiml.say(NO_SPEECH_ON_GREETING)
        twiml.hangup()
        return twiml

    async def _record_transcript(self, call_id: str, transcript: str) -> None:
        try:
            await self.call_repo.update(call_id, {"transcript": transcript})
        except (DatabaseError, ValueError) as e:
            logger.bind(service="VoiceCallService", call_id=call_id).error(f"Could not store call transcript: {e}")

    async def _reply_to(self, eve: EVE, company: Optional[Company], voice_settings: Optional[VoiceSettings], speech: str) -> str:
        try:
            ai = await self.ai_resolver.for_company(eve.company_id)
            reply = await ai.collect_completion(
                [
                    {"role": "system", "content": build_voice_persona_prompt(eve, company, speech)},
                    {"role": "user", "content": speech},
                ],
                max_tokens=250,
                temperature=0.7,
            )
        except AIGatewayError as e:
            logger.bind(service="VoiceCallService", eve_id=eve.id).error(f"Voice reply generation failed: {e}")
            return (voice_settings.fallback_message if voice_settings else None) or DEFAULT_AI_FALLBACK

        await self.audit.log_event(AuditEvent(
            eve_id=eve.id,
            company_id=eve.company_id,
            event_type="VOICE_INTERACTION",
            status="success",
            message="Voice call processed",
            metadata={"user_input": speech, "ai_response": reply},
        ))
        return reply

    async def _process(self, eve_id: Optional[str], call_id: Optional[str], speech: Optional[str]) -> VoiceResponse:
        if not eve_id:
            raise ValueError("Missing required parameter: eve_id")
        if call_id and speech:
            await self._record_transcript(call_id, speech)

        eve = await self.eve_repo.get_by_id(eve_id)
        if not eve:
            raise LookupError(f"EVE {eve_id} not found")
        company = await self.company_repo.get_by_id(eve.company_id)
        voice_settings = await self.settings_repo.get_for_eve(eve.id)
        voice = (voice_settings.voice_id if voice_settings else None) or settings.DEFAULT_TWILIO_VOICE

        reply = await self._reply_to(eve, company, voice_settings, speech) if speech else NO_SPEECH_REPLY

        twiml = VoiceResponse()
        twiml.say(reply, voice=voice)
        twiml.pause(length=1)
        twiml.say(ANYTHING_ELSE, voice=voice)
        add_speech_gather(twiml, eve.id, call_id)
        twiml.say(NO_SPEECH_ON_FOLLOW_UP, voice=voice)
        twiml.hangup()
        return twiml

    async def process_speech(self, eve_id: Optional[str], call_id: Optional[str], speech: Optional[str]) -> VoiceResponse:
        log = logger.bind(service="VoiceCallService", eve_id=eve_id, call_id=call_id)
        log.info(f"Speech result: {speech or 'No speech detected'}")
        try:
            return await self._process(eve_id, call_id, speech)
        except Exception as e:
            log.exception(f"Error processing caller speech: {e}")
            return apology(PROCESSING_FAILED)

    async def update_status(self, call_sid: Optional[str], call_status: Optional[str], duration: Optional[str]) -> Dict[str, Any]:
        if not call_sid:
            return {"success": False, "error": "Missing required parameter: CallSid"}
        log = logger.bind(service="VoiceCallService", call_sid=call_sid)
        log.info(f"Call status update: {call_status}, duration: {duration}")
        try:
            seconds = int(duration) if duration else None
        except ValueError:
            log.warning(f"Ignoring non-numeric CallDuration '{duration}'.")
            seconds = None
        try:
            rows = await self.call_repo.update_by_sid(call_sid, {
                "status": call_status,
                "duration": seconds,
                "ended_at": datetime.now(timezone.utc) if call_status == "completed" else None,
            })
        except (DatabaseError, ValueError) as e:
            log.error(f"Could not update call record: {e}")
            return {"success": False, "error": "Could not update call record"}
        return {"success": True, "updated": bool(rows)}


async def get_voice_call_service(
    eve_repo: EveRepository = Depends(get_eve_repository),
    company_repo: CompanyRepository = Depends(get_company_repository),
    settings_repo: VoiceSettingsRepository = Depends(get_voice_settings_repository),
    call_repo: VoiceCallRepository = Depends(get_voice_call_repository),
    audit: AuditService = Depends(get_audit_service),
    ai_resolver: AIGatewayResolver = Depends(get_ai_gateway_resolver),
) -> VoiceCallService:
    return VoiceCallService(eve_repo, company_repo, settings_repo, call_repo, audit, ai_resolver)
