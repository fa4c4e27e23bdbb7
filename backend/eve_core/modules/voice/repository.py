# eve_core/modules/voice/repository.py

from typing import List, Optional

from fastapi import Depends

from eve_core.core.database import get_query_gateway
from eve_core.core.gateway import QueryGateway
from eve_core.core.repository import BaseRepository
from .models import VoiceCall, VoiceSettings


class VoiceSettingsRepository(BaseRepository[VoiceSettings]):
    model = VoiceSettings
    table_name = "eve_voice_settings"

    async def get_for_eve(self, eve_id: str) -> Optional[VoiceSettings]:
        return await self.get_by({"eve_id": eve_id})

    async def get_for_number(self, phone_number: str) -> Optional[VoiceSettings]:
        return await self.get_by({"phone_number": phone_number})


class VoiceCallRepository(BaseRepository[VoiceCall]):
    model = VoiceCall
    table_name = "voice_calls"

    async def list_for_eve(self, eve_id: str, limit: int = 20) -> List[VoiceCall]:
        return await self.list_by({"eve_id": eve_id}, order=[("created_at", "desc")], limit=limit)

    async def update_by_sid(self, call_sid: str, data: dict) -> List[VoiceCall]:
        return await self.update_by({"call_sid": call_sid}, data)


async def get_voice_settings_repository(gateway: QueryGateway = Depends(get_query_gateway)) -> VoiceSettingsRepository:
    return VoiceSettingsRepository(gateway)


async def get_voice_call_repository(gateway: QueryGateway = Depends(get_query_gateway)) -> VoiceCallRepository:
    return VoiceCallRepository(gateway)
