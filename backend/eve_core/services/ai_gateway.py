# eve_core/services/ai_gateway.py

import asyncio
import base64
import json
import weakref
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncIterator, Dict, List, Literal, Optional, Tuple

from fastapi import Depends
from loguru import logger
from openai import AsyncOpenAI, OpenAIError
from pydantic import ValidationError
from redis.asyncio import Redis

from eve_core.core.config import settings
from eve_core.core.database import get_query_gateway, get_redis_client
from eve_core.core.gateway import QueryGateway
from eve_core.core.logging_config import trace_id_var
from eve_core.modules.office.models import CompanyAISettings
from eve_core.modules.office.repository import CompanyAISettingsRepository


class AIGatewayError(RuntimeError):
    """Raised when the AI provider call fails or its output is unusable."""


class MissingCredentialsError(AIGatewayError):
    """Neither the company nor the platform has an OpenAI key."""


class ProxyEndpoint(str, Enum):
    CHAT_COMPLETIONS = "chat.completions"
    EMBEDDINGS = "embeddings"
    AUDIO_SPEECH = "audio.speech"
    AUDIO_TRANSCRIPTIONS = "audio.transcriptions"


@dataclass(frozen=True)
class AICredentials:
    api_key: str
    organization: Optional[str] = None
    default_model: Optional[str] = None
    source: Literal["company", "platform"] = "platform"


@dataclass
class CompletionResult:
    content: str
    tokens_used: int
    model: str


# A client is bound to the event loop that first used it; one cache per loop.
_clients_by_loop: "weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, Dict[Tuple[str, Optional[str]], AsyncOpenAI]]" = weakref.WeakKeyDictionary()


def _new_client(api_key: str, organization: Optional[str]) -> AsyncOpenAI:
    logger.info(f"[AI Gateway] OpenAI client initialized for key ...{api_key[-4:]}")
    return AsyncOpenAI(
        api_key=api_key,
        organization=organization,
        max_retries=2,
        timeout=settings.OPENAI_TIMEOUT_SECONDS,
    )


def _client_for(api_key: str, organization: Optional[str]) -> AsyncOpenAI:
    """AsyncOpenAI client for a credential pair, shared within the running event loop."""
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        return _new_client(api_key, organization)
    clients = _clients_by_loop.setdefault(loop, {})
    key = (api_key, organization)
    if key not in clients:
        clients[key] = _new_client(api_key, organization)
    return clients[key]


class AIGateway:
    """Thin wrapper over the OpenAI completion, embedding, transcription and speech APIs."""

    def __init__(self, credentials: AICredentials, client: Optional[AsyncOpenAI] = None):
        self.credentials = credentials
        self.client = client or _client_for(credentials.api_key, credentials.organization)

    @property
    def chat_model(self) -> str:
        return self.credentials.default_model or settings.OPENAI_CHAT_MODEL

    def _log(self, operation: str):
        return logger.bind(trace_id=trace_id_var.get(), service="AIGateway", operation=operation, credentials=self.credentials.source)

    async def complete(
        self,
        messages: List[Dict[str, Any]],
        *,
        model: Optional[str] = None,
        max_tokens: int = 500,
        temperature: float = 0.7,
        response_format: Optional[Dict[str, Any]] = None,
    ) -> CompletionResult:
        model_to_use = model or self.chat_model
        log = self._log("complete")
        log.info(f"Requesting chat completion (model: {model_to_use}, messages: {len(messages)})")
        kwargs: Dict[str, Any] = {
            "model": model_to_use,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        if response_format:
            kwargs["response_format"] = response_format
        try:
            response = await self.client.chat.completions.create(**kwargs)
        except OpenAIError as e:
            log.error(f"OpenAI chat completion failed: {e}")
            raise AIGatewayError(f"Chat completion failed: {e}") from e

        if not response.choices:
            log.warning("OpenAI returned no choices.")
            raise AIGatewayError("Chat completion returned no choices.")
        content = response.choices[0].message.content or ""
        tokens_used = response.usage.total_tokens if response.usage else 0
        log.success(f"Chat completion received ({tokens_used} tokens).")
        return CompletionResult(content=content, tokens_used=tokens_used, model=response.model or model_to_use)

    async def stream_completion(
        self,
        messages: List[Dict[str, Any]],
        *,
        model: Optional[str] = None,
        max_tokens: int = 500,
        temperature: float = 0.7,
    ) -> AsyncIterator[str]:
        """Yields content deltas as they arrive."""
        model_to_use = model or self.chat_model
        log = self._log("stream_completion")
        log.info(f"Opening chat completion stream (model: {model_to_use})")
        try:
            stream = await self.client.chat.completions.create(
                model=model_to_use,
                messages=messages,
                max_tokens=max_tokens,
                temperature=temperature,
                stream=True,
            )
            async for chunk in stream:
                if chunk.choices and chunk.choices[0].delta and chunk.choices[0].delta.content:
                    yield chunk.choices[0].delta.content
        except OpenAIError as e:
            log.error(f"OpenAI completion stream failed: {e}")
            raise AIGatewayError(f"Completion stream failed: {e}") from e

    async def collect_completion(self, messages: List[Dict[str, Any]], **kwargs: Any) -> str:
        """Consumes a completion stream and returns the full text."""
        parts: List[str] = []
        async for delta in self.stream_completion(messages, **kwargs):
            parts.append(delta)
        return "".join(parts)

    async def embed(self, text: str) -> List[float]:
        log = self._log("embed")
        text_to_embed = text.strip().replace("\n", " ")
        if not text_to_embed:
            raise AIGatewayError("Cannot embed empty text.")
        model_to_use = settings.EMBEDDING_MODEL
        expected_dimensions = settings.EMBEDDING_DIMENSIONS
        log.info(f"Generating embedding (model: {model_to_use}, text_len: {len(text_to_embed)})")
        try:
            response = await self.client.embeddings.create(model=model_to_use, input=text_to_embed)
        except OpenAIError as e:
            log.error(f"OpenAI embedding failed: {e}")
            raise AIGatewayError(f"Embedding failed: {e}") from e

        if not response.data or not response.data[0].embedding:
            raise AIGatewayError("Embedding response missing vector data.")
        embedding = response.data[0].embedding
        if len(embedding) != expected_dimensions:
            log.critical(f"EMBEDDING DIMENSION MISMATCH: model '{model_to_use}' returned {len(embedding)}, expected {expected_dimensions}.")
            raise AIGatewayError(f"Embedding dimension mismatch: expected {expected_dimensions}, got {len(embedding)}")
        return embedding

    async def transcribe(self, audio: bytes, filename: str = "audio.webm", language: str = "en") -> str:
        log = self._log("transcribe")
        log.info(f"Transcribing audio ({len(audio)} bytes, model: {settings.TRANSCRIPTION_MODEL})")
        try:
            transcription = await self.client.audio.transcriptions.create(
                model=settings.TRANSCRIPTION_MODEL,
                file=(filename, audio),
                language=language,
                response_format="json",
            )
        except OpenAIError as e:
            log.error(f"OpenAI transcription failed: {e}")
            raise AIGatewayError(f"Transcription failed: {e}") from e
        return transcription.text

    async def synthesize_speech(self, text: str, voice: str) -> bytes:
        log = self._log("synthesize_speech")
        log.info(f"Synthesizing speech (voice: {voice}, chars: {len(text)})")
        try:
            response = await self.client.audio.speech.create(
                model=settings.SPEECH_MODEL,
                voice=voice,
                input=text,
                response_format="mp3",
                speed=1.0,
            )
        except OpenAIError as e:
            log.error(f"OpenAI speech synthesis failed: {e}")
            raise AIGatewayError(f"Speech synthesis failed: {e}") from e
        return response.content

    async def stream_speech(self, text: str, voice: str) -> AsyncIterator[bytes]:
        log = self._log("stream_speech")
        try:
            async with self.client.audio.speech.with_streaming_response.create(
                model=settings.SPEECH_MODEL,
                voice=voice,
                input=text,
                response_format="mp3",
                speed=1.0,
            ) as response:
                async for chunk in response.iter_bytes():
                    yield chunk
        except OpenAIError as e:
            log.error(f"OpenAI speech stream failed: {e}")
            raise AIGatewayError(f"Speech stream failed: {e}") from e

    async def proxy(self, endpoint: ProxyEndpoint, params: Dict[str, Any]) -> Any:
        """Forwards ``params`` verbatim to the provider endpoint and returns the SDK object."""
        handlers = {
            ProxyEndpoint.CHAT_COMPLETIONS: self.client.chat.completions.create,
            ProxyEndpoint.EMBEDDINGS: self.client.embeddings.create,
            ProxyEndpoint.AUDIO_SPEECH: self.client.audio.speech.create,
            ProxyEndpoint.AUDIO_TRANSCRIPTIONS: self.client.audio.transcriptions.create,
        }
        call_params = dict(params)
        if endpoint is ProxyEndpoint.AUDIO_TRANSCRIPTIONS and isinstance(call_params.get("file"), str):
            filename = call_params.pop("filename", "audio.webm")
            call_params["file"] = (filename, base64.b64decode(call_params["file"]))
        log = self._log("proxy")
        log.info(f"Proxying request to OpenAI endpoint '{endpoint.value}'")
        try:
            return await handlers[endpoint](**call_params)
        except OpenAIError as e:
            log.error(f"OpenAI proxy call to '{endpoint.value}' failed: {e}")
            raise AIGatewayError(f"OpenAI request failed: {e}") from e
        except TypeError as e:
            raise AIGatewayError(f"Invalid parameters for {endpoint.value}: {e}") from e

    async def proxy_stream(self, params: Dict[str, Any]) -> AsyncIterator[str]:
        """Streams raw chat completion chunks as JSON strings."""
        call_params = {**params, "stream": True}
        try:
            stream = await self.client.chat.completions.create(**call_params)
            async for chunk in stream:
                yield chunk.model_dump_json(exclude_none=True)
        except OpenAIError as e:
            self._log("proxy_stream").error(f"OpenAI proxy stream failed: {e}")
            raise AIGatewayError(f"OpenAI stream failed: {e}") from e


class AIGatewayResolver:
    """Picks per-company credentials, falling back to the platform key."""

    CACHE_PREFIX = "eve:ai_settings:"

    def __init__(self, settings_repo: CompanyAISettingsRepository, cache: Optional[Redis] = None):
        self.settings_repo = settings_repo
        self.cache = cache

    async def _read_cache(self, company_id: str) -> tuple[bool, Optional[CompanyAISettings]]:
        if not self.cache:
            return False, None
        try:
            raw = await self.cache.get(f"{self.CACHE_PREFIX}{company_id}")
        except Exception as e:
            logger.warning(f"AI settings cache read failed: {e}")
            return False, None
        if raw is None:
            return False, None
        try:
            data = json.loads(raw)
            return True, CompanyAISettings.model_validate(data) if data else None
        except (ValueError, ValidationError) as e:
            logger.warning(f"Ignoring corrupt AI settings cache entry for company {company_id}: {e}")
            return False, None

    async def _write_cache(self, company_id: str, row: Optional[CompanyAISettings]) -> None:
        if not self.cache:
            return
        payload = json.dumps(row.model_dump(mode="json") if row else None)
        try:
            await self.cache.set(f"{self.CACHE_PREFIX}{company_id}", payload, ex=settings.AI_SETTINGS_CACHE_TTL_SECONDS)
        except Exception as e:
            logger.warning(f"AI settings cache write failed: {e}")

    async def _company_settings(self, company_id: str) -> Optional[CompanyAISettings]:
        hit, row = await self._read_cache(company_id)
        if hit:
            return row
        try:
            row = await self.settings_repo.get_for_company(company_id)
        except Exception as e:
            logger.warning(f"Could not load AI settings for company {company_id}; using platform key. Error: {e}")
            return None
        await self._write_cache(company_id, row)
        return row

    async def credentials_for(self, company_id: Optional[str]) -> AICredentials:
        row = await self._company_settings(company_id) if company_id else None
        if row and row.openai_api_key:
            return AICredentials(
                api_key=row.openai_api_key,
                organization=row.openai_org_id,
                default_model=row.default_model,
                source="company",
            )
        if settings.OPENAI_API_KEY:
            return AICredentials(
                api_key=settings.OPENAI_API_KEY,
                organization=settings.OPENAI_ORG_ID,
                default_model=row.default_model if row else None,
                source="platform",
            )
        raise MissingCredentialsError("No OpenAI API key available")

    async def for_company(self, company_id: Optional[str]) -> AIGateway:
        return AIGateway(await self.credentials_for(company_id))

    def platform(self) -> AIGateway:
        if not settings.OPENAI_API_KEY:
            raise MissingCredentialsError("No OpenAI API key available")
        return AIGateway(AICredentials(api_key=settings.OPENAI_API_KEY, organization=settings.OPENAI_ORG_ID))


async def get_ai_gateway_resolver(
    gateway: QueryGateway = Depends(get_query_gateway),
    cache: Optional[Redis] = Depends(get_redis_client),
) -> AIGatewayResolver:
    return AIGatewayResolver(CompanyAISettingsRepository(gateway), cache)
