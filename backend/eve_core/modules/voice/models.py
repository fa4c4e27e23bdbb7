# eve_core/modules/voice/models.py

from typing import Optional
from datetime import datetime

from eve_core.core.repository import TableRow

DEFAULT_FALLBACK_MESSAGE = "I'm sorry, I'm having trouble understanding. Please try again."


class VoiceSettings(TableRow):
    id: Optional[str] = None
    eve_id: str
    company_id: Optional[str] = None
    phone_number: Optional[str] = None
    enabled: bool = False
    voice_id: Optional[str] = None
    greeting_message: Optional[str] = None
    fallback_message: Optional[str] = None
    use_openai_voice: bool = False
    openai_voice_model: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class VoiceCall(TableRow):
    id: str
    eve_id: str
    company_id: Optional[str] = None
    call_sid: str
    caller_number: Optional[str] = None
    status: Optional[str] = None
    duration: Optional[int] = None
    transcript: Optional[str] = None
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
