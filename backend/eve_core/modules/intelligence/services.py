# eve_core/modules/intelligence/services.py

import base64
import binascii
import json
from typing import Any, AsyncIterator, Dict, List, Optional

from fastapi import Depends, HTTPException, status
from loguru import logger

from eve_core.core.config import settings
from eve_core.models.intelligence import (
    CompletionIn, CompletionOut, ConnectionTestOut, ProxyIn, SpeechOut, TranscriptionOut, VoiceIn,
)
from eve_core.models.api_common import ChatMessage
from eve_core.modules.eves.models import EVE, Action
from eve_core.modules.eves.repository import (
    ActionRepository, EveActionRepository, EveRepository,
    get_action_repository, get_eve_action_repository, get_eve_repository,
)
from eve_core.modules.office.models import AuditEvent, Company, UsageRecord
from eve_core.modules.office.repository import CompanyRepository, get_company_repository
from eve_core.modules.office.services_audit import AuditService, get_audit_service
from eve_core.modules.voice.repository import VoiceSettingsRepository, get_voice_settings_repository
from eve_core.services.ai_gateway import (
    AIGateway, AIGatewayError, AIGatewayResolver, MissingCredentialsError, ProxyEndpoint, get_ai_gateway_resolver,
)


def build_eve_system_prompt(eve: EVE, company: Optional[Company], actions: List[Action]) -> str:
    capabilities = ", ".join(eve.capabilities or [])
    action_lines = "\n".join(f"- {a.name}: {a.description or ''}".rstrip() for a in actions)
    working_hours = (eve.settings or {}).get("workingHours")
    prompt = (
        f"You are {eve.name}, an Enterprise Virtual Employee at {company.name if company else 'a company'}.\n"
        f"Your capabilities include: {capabilities or 'general assistance'}.\n"
    )
    if action_lines:
        prompt += f"You can perform the following actions:\n{action_lines}\n"
    if working_hours:
        prompt += f"Your working hours are: {json.dumps(working_hours)}.\n"
    prompt += "Respond in a helpful, professional manner and stay within your capabilities."
    return prompt


def format_sse(data: Any) -> str:
    payload = data if isinstance(data, str) else json.dumps(data)
    return f"data: {payload}\n\n"


STREAM_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def usage_tokens(result: Any) -> int:
    """Total tokens reported on a provider response object, 0 if absent."""
    usage = getattr(result, "usage", None)
    if usage is None:
        return 0
    return getattr(usage, "total_tokens", None) or 0


class IntelligenceService:
    """EVE chat completions, the raw provider proxy and voice transcription/synthesis."""

    def __init__(
        self,
        eve_repo: EveRepository,
        company_repo: CompanyRepository,
        action_repo: ActionRepository,
        eve_action_repo: EveActionRepository,
        voice_settings_repo: VoiceSettingsRepository,
        audit: AuditService,
        ai_resolver: AIGatewayResolver,
    ):
        self.eve_repo = eve_repo
        self.company_repo = company_repo
        self.action_repo = action_repo
        self.eve_action_repo = eve_action_repo
        self.voice_settings_repo = voice_settings_repo
        self.audit = audit
        self.ai_resolver = ai_resolver

    async def _require_eve(self, eve_id: str) -> EVE:
        eve = await self.eve_repo.get_by_id(eve_id)
        if not eve:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="EVE not found")
        return eve

    async def _gateway_for(self, company_id: Optional[str]) -> AIGateway:
        try:
            return await self.ai_resolver.for_company(company_id)
        except MissingCredentialsError as e:
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

    async def _messages_for(self, eve: EVE, payload: CompletionIn) -> List[Dict[str, Any]]:
        system_prompt = payload.system_prompt
        if not system_prompt:
            company = await self.company_repo.get_by_id(eve.company_id)
            actions = await self.eve_action_repo.actions_for_eve(eve.id, self.action_repo)
            system_prompt = build_eve_system_prompt(eve, company, actions)
        history = [message.model_dump() for message in payload.context or []]
        return [
            {"role": "system", "content": system_prompt},
            *history,
            {"role": "user", "content": payload.prompt},
        ]

    # --- ai-completion ---
    async def complete(self, payload: CompletionIn) -> CompletionOut:
        log = logger.bind(service="IntelligenceService", eve_id=payload.eve_id)
        eve = await self._require_eve(payload.eve_id)
        messages = await self._messages_for(eve, payload)
        ai = await self._gateway_for(eve.company_id)
        try:
            result = await ai.complete(messages, max_tokens=payload.max_tokens, temperature=payload.temperature)
        except AIGatewayError as e:
            log.error(f"Completion failed: {e}")
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="AI provider request failed")

        await self.audit.log_event(AuditEvent(
            eve_id=eve.id,
            company_id=eve.company_id,
            event_type="AI_INTERACTION",
            status="success",
            message="AI response generated",
            metadata={"prompt": payload.prompt, "response": result.content, "tokens_used": result.tokens_used},
        ))
        await self.audit.log_ai_usage(UsageRecord(
            company_id=eve.company_id, tokens_used=result.tokens_used, model=result.model, endpoint="ai-completion",
        ))

        return CompletionOut(
            response=result.content,
            eve_id=eve.id,
            eve_name=eve.name,
            tokens_used=result.tokens_used,
            new_message=ChatMessage(role="assistant", content=result.content),
        )

    async def stream(self, payload: CompletionIn) -> AsyncIterator[str]:
        """
        Resolves the EVE and credentials up front so lookup errors surface as
        HTTP errors; the returned iterator yields SSE frames.
        """
        eve = await self._require_eve(payload.eve_id)
        messages = await self._messages_for(eve, payload)
        ai = await self._gateway_for(eve.company_id)

        async def frames() -> AsyncIterator[str]:
            try:
                async for delta in ai.stream_completion(messages, max_tokens=payload.max_tokens, temperature=payload.temperature):
                    yield format_sse({"content": delta})
            except AIGatewayError as e:
                logger.bind(service="IntelligenceService", eve_id=eve.id).error(f"Completion stream failed: {e}")
                yield format_sse({"error": "AI provider request failed"})
            yield format_sse("[DONE]")

        return frames()

    # --- ai-proxy ---
    def _check_proxy_request(self, payload: ProxyIn) -> None:
        if payload.request_data.stream and payload.request_data.endpoint is not ProxyEndpoint.CHAT_COMPLETIONS:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Streaming is only supported for chat.completions")

    async def proxy(self, payload: ProxyIn) -> Any:
        self._check_proxy_request(payload)
        endpoint = payload.request_data.endpoint
        ai = await self._gateway_for(payload.company_id)
        try:
            result = await ai.proxy(endpoint, payload.request_data.params)
        except AIGatewayError as e:
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))

        tokens = usage_tokens(result)
        if tokens > 0:
            await self.audit.log_ai_usage(UsageRecord(
                company_id=payload.company_id,
                tokens_used=tokens,
                model=getattr(result, "model", None) or str(payload.request_data.params.get("model", "unknown")),
                endpoint=endpoint.value,
            ))
        return result

    async def proxy_stream(self, payload: ProxyIn) -> AsyncIterator[str]:
        self._check_proxy_request(payload)
        ai = await self._gateway_for(payload.company_id)

        async def frames() -> AsyncIterator[str]:
            try:
                async for chunk in ai.proxy_stream(payload.request_data.params):
                    yield format_sse(chunk)
            except AIGatewayError as e:
                logger.bind(service="IntelligenceService").error(f"Proxy stream failed: {e}")
                yield format_sse({"error": "AI provider request failed"})
            yield format_sse("[DONE]")

        return frames()

    # --- ai-voice ---
    async def _voice_for(self, eve: EVE, requested: Optional[str]) -> str:
        if requested:
            return requested
        voice_settings = await self.voice_settings_repo.get_for_eve(eve.id)
        if voice_settings and voice_settings.openai_voice_model:
            return voice_settings.openai_voice_model
        return settings.DEFAULT_OPENAI_VOICE

    async def transcribe(self, payload: VoiceIn) -> TranscriptionOut:
        eve = await self._require_eve(payload.eve_id)
        if not payload.audio_data:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing required parameter: audioData")
        try:
            audio = base64.b64decode(payload.audio_data, validate=True)
        except (binascii.Error, ValueError):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid parameter audioData: not base64")
        ai = await self._gateway_for(eve.company_id)
        try:
            text = await ai.transcribe(audio, language="en")
        except AIGatewayError as e:
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
        return TranscriptionOut(text=text, model=settings.TRANSCRIPTION_MODEL)

    async def _prepare_speech(self, payload: VoiceIn) -> tuple[AIGateway, str, str]:
        eve = await self._require_eve(payload.eve_id)
        if not payload.text or not payload.text.strip():
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing required parameter: text")
        voice = await self._voice_for(eve, payload.voice)
        ai = await self._gateway_for(eve.company_id)
        return ai, payload.text, voice

    async def speak(self, payload: VoiceIn) -> SpeechOut:
        ai, text, voice = await self._prepare_speech(payload)
        try:
            audio = await ai.synthesize_speech(text, voice)
        except AIGatewayError as e:
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
        return SpeechOut(audio=base64.b64encode(audio).decode("ascii"), format="mp3", voice=voice)

    async def speak_stream(self, payload: VoiceIn) -> AsyncIterator[bytes]:
        ai, text, voice = await self._prepare_speech(payload)
        return ai.stream_speech(text, voice)

    # --- connection test ---
    async def test_connection(self) -> ConnectionTestOut:
        model = settings.OPENAI_CONNECTION_TEST_MODEL
        try:
            ai = self.ai_resolver.platform()
            await ai.complete([{"role": "user", "content": "Hello"}], model=model, max_tokens=5)
        except AIGatewayError as e:
            logger.warning(f"OpenAI connection test failed: {e}")
            return ConnectionTestOut(success=False, error=str(e))
        return ConnectionTestOut(success=True, model=model, message="OpenAI connection successful")


async def get_intelligence_service(
    eve_repo: EveRepository = Depends(get_eve_repository),
    company_repo: CompanyRepository = Depends(get_company_repository),
    action_repo: ActionRepository = Depends(get_action_repository),
    eve_action_repo: EveActionRepository = Depends(get_eve_action_repository),
    voice_settings_repo: VoiceSettingsRepository = Depends(get_voice_settings_repository),
    audit: AuditService = Depends(get_audit_service),
    ai_resolver: AIGatewayResolver = Depends(get_ai_gateway_resolver),
) -> IntelligenceService:
    return IntelligenceService(
        eve_repo, company_repo, action_repo, eve_action_repo, voice_settings_repo, audit, ai_resolver,
    )
