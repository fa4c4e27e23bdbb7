# eve_core/models/intelligence.py

import json
from pydantic import Field, field_validator
from typing import Any, Dict, List, Literal, Optional, Union

from eve_core.models.api_common import CamelModel, ChatMessage, NonEmptyStr
from eve_core.services.ai_gateway import ProxyEndpoint


class CompletionIn(CamelModel):
    eve_id: NonEmptyStr
    prompt: NonEmptyStr
    context: Optional[List[ChatMessage]] = None
    max_tokens: int = Field(500, gt=0)
    temperature: float = Field(0.7, ge=0.0, le=2.0)
    system_prompt: Optional[str] = None
    stream: bool = False

    @field_validator("context", mode="before")
    @classmethod
    def parse_context(cls, v: Union[str, List[Any], None]) -> Any:
        # The dashboard sometimes sends the history as a JSON-encoded string.
        if isinstance(v, str):
            if not v.strip():
                return None
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                raise ValueError("context must be a list of messages or a JSON string of one")
        return v


class CompletionOut(CamelModel):
    response: str
    eve_id: str
    eve_name: str
    tokens_used: int
    new_message: ChatMessage


class ProxyRequestData(CamelModel):
    endpoint: ProxyEndpoint
    params: Dict[str, Any] = Field(default_factory=dict)
    stream: bool = False


class ProxyIn(CamelModel):
    company_id: NonEmptyStr
    request_data: ProxyRequestData


class VoiceIn(CamelModel):
    operation: Literal["transcribe", "speak"]
    eve_id: NonEmptyStr
    audio_data: Optional[str] = None
    text: Optional[str] = None
    voice: Optional[str] = None
    stream: bool = False


class TranscriptionOut(CamelModel):
    text: str
    model: str


class SpeechOut(CamelModel):
    audio: str
    format: str = "mp3"
    voice: str


class ConnectionTestOut(CamelModel):
    success: bool
    model: Optional[str] = None
    message: Optional[str] = None
    error: Optional[str] = None
