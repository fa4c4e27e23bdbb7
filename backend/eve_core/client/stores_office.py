# eve_core/client/stores_office.py

from typing import Any, Dict, List, Literal, Optional

from eve_core.client.base import BaseStore, StoreError
from eve_core.modules.eves.repository import EveRepository
from eve_core.modules.office.models import (
    AISettingsUpdate,
    AuditEvent,
    Company,
    CompanyAISettings,
    LogEntry,
    LogStatus,
    UserInvitation,
    UserProfile,
)
from eve_core.modules.office.repository import (
    CompanyAISettingsRepository,
    CompanyRepository,
    LogRepository,
    UserInvitationRepository,
    UserRepository,
)
from eve_core.modules.voice.models import DEFAULT_FALLBACK_MESSAGE, VoiceCall, VoiceSettings
from eve_core.modules.voice.repository import VoiceCallRepository, VoiceSettingsRepository
from eve_core.modules.voice.services import default_greeting
from eve_core.core.config import settings

AssignableRole = Literal["company_admin", "staff"]


class VoiceStore(BaseStore):
    def __init__(self, session):
        super().__init__(session)
        self.voice_settings: Optional[VoiceSettings] = None
        self.voice_calls: List[VoiceCall] = []

    @property
    def settings_repo(self) -> VoiceSettingsRepository:
        return VoiceSettingsRepository(self.session.gateway)

    async def fetch_voice_settings(self, eve_id: str) -> Optional[VoiceSettings]:
        async with self._operation("fetch_voice_settings"):
            self.voice_settings = await self.settings_repo.get_for_eve(eve_id)
            return self.voice_settings
        return None

    async def fetch_voice_calls(self, eve_id: str, limit: int = 20) -> List[VoiceCall]:
        async with self._operation("fetch_voice_calls"):
            self.voice_calls = await VoiceCallRepository(self.session.gateway).list_for_eve(eve_id, limit)
            return self.voice_calls
        return []

    async def update_voice_settings(self, settings_id: str, data: Dict[str, Any]) -> Optional[VoiceSettings]:
        async with self._operation("update_voice_settings"):
            updated = await self.settings_repo.update(settings_id, data)
            if updated is None:
                raise StoreError("Voice settings not found")
            self.voice_settings = updated
            return updated
        return None

    async def enable_voice(self, eve_id: str, phone_number: str) -> Optional[VoiceSettings]:
        """Turns voice on for an EVE, creating default settings on first use."""
        async with self._operation("enable_voice"):
            existing = await self.settings_repo.get_for_eve(eve_id)
            if existing and existing.id:
                self.voice_settings = await self.settings_repo.update(existing.id, {"phone_number": phone_number, "enabled": True})
                return self.voice_settings
            eve = await EveRepository(self.session.gateway).get_by_id(eve_id)
            if eve is None:
                raise StoreError("EVE not found")
            self.voice_settings = await self.settings_repo.create({
                "eve_id": eve_id,
                "phone_number": phone_number,
                "greeting_message": default_greeting(eve),
                "fallback_message": DEFAULT_FALLBACK_MESSAGE,
                "voice_id": settings.DEFAULT_TWILIO_VOICE,
                "enabled": True,
                "company_id": eve.company_id,
            })
            return self.voice_settings
        return None

    async def disable_voice(self, eve_id: str) -> bool:
        async with self._operation("disable_voice"):
            await self.settings_repo.update_by({"eve_id": eve_id}, {"enabled": False})
            if self.voice_settings and self.voice_settings.eve_id == eve_id:
                self.voice_settings = self.voice_settings.model_copy(update={"enabled": False})
            return True
        return False


class LogStore(BaseStore):
    def __init__(self, session):
        super().__init__(session)
        self.logs: List[LogEntry] = []

    async def fetch_logs(self, eve_id: Optional[str] = None, limit: int = 100) -> List[LogEntry]:
        async with self._operation("fetch_logs"):
            repo = LogRepository(self.session.gateway)
            self.logs = await repo.list_recent(await self.session.company_id(), eve_id, limit)
            return self.logs
        return []

    async def fetch_action_logs(self, action_id: str, limit: int = 20) -> List[LogEntry]:
        async with self._operation("fetch_action_logs"):
            return await LogRepository(self.session.gateway).list_for_action(action_id, limit)
        return []

    async def log_event(
        self,
        eve_id: Optional[str],
        action_id: Optional[str],
        event_type: str,
        status: LogStatus,
        message: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """Writes an audit event for the session's company through the ``log_event`` procedure."""
        async with self._operation("log_event"):
            event = AuditEvent(
                eve_id=eve_id,
                action_id=action_id,
                company_id=await self.session.company_id(),
                event_type=event_type,
                status=status,
                message=message,
                metadata=metadata or {},
            )
            await self.session.gateway.rpc("log_event", event.as_rpc_params())
            if self.logs:
                self.logs = await LogRepository(self.session.gateway).list_recent(event.company_id)
            return True
        return False


class CompanyStore(BaseStore):
    def __init__(self, session):
        super().__init__(session)
        self.company: Optional[Company] = None
        self.users: List[UserProfile] = []

    async def fetch_company(self) -> Optional[Company]:
        async with self._operation("fetch_company"):
            self.company = await CompanyRepository(self.session.gateway).get_by_id(await self.session.company_id())
            return self.company
        return None

    async def update_company(self, data: Dict[str, Any]) -> Optional[Company]:
        async with self._operation("update_company"):
            self.company = await CompanyRepository(self.session.gateway).update(await self.session.company_id(), data)
            return self.company
        return None

    async def fetch_users(self) -> List[UserProfile]:
        async with self._operation("fetch_users"):
            self.users = await UserRepository(self.session.gateway).list_for_company(await self.session.company_id())
            return self.users
        return []

    async def _require_admin(self) -> UserProfile:
        profile = await self.session.profile()
        await self.session.company_id()
        if profile.role not in ("company_admin", "system_admin"):
            raise StoreError("Only company admins can manage users")
        return profile

    async def add_user(self, email: str, role: AssignableRole = "staff") -> Optional[UserInvitation]:
        """
        Records a pending invitation; the auth account and profile row are
        created when the invitee signs up.
        """
        async with self._operation("add_user"):
            admin = await self._require_admin()
            email = email.strip().lower()
            if not email:
                raise StoreError("Email is required")
            if await UserRepository(self.session.gateway).get_by({"company_id": admin.company_id, "email": email}):
                raise StoreError("User already belongs to this company")
            invitations = UserInvitationRepository(self.session.gateway)
            if await invitations.pending_for(admin.company_id, email):
                raise StoreError("User has already been invited")
            return await invitations.create({
                "company_id": admin.company_id,
                "email": email,
                "role": role,
                "invited_by": admin.id,
                "status": "pending",
            })
        return None

    async def update_user_role(self, user_id: str, role: AssignableRole) -> Optional[UserProfile]:
        async with self._operation("update_user_role"):
            admin = await self._require_admin()
            if user_id == admin.id and role != admin.role:
                raise StoreError("You cannot change your own role")
            user = await UserRepository(self.session.gateway).update_in_company(admin.company_id, user_id, {"role": role})
            if user is None:
                raise StoreError("User not found")
            self.users = [user if u.id == user_id else u for u in self.users]
            return user
        return None

    async def deactivate_user(self, user_id: str) -> Optional[UserProfile]:
        async with self._operation("deactivate_user"):
            admin = await self._require_admin()
            if user_id == admin.id:
                raise StoreError("You cannot deactivate your own account")
            user = await UserRepository(self.session.gateway).update_in_company(admin.company_id, user_id, {"is_active": False})
            if user is None:
                raise StoreError("User not found")
            self.users = [user if u.id == user_id else u for u in self.users]
            return user
        return None


class AISettingsStore(BaseStore):
    def __init__(self, session):
        super().__init__(session)
        self.ai_settings: Optional[CompanyAISettings] = None

    @property
    def repo(self) -> CompanyAISettingsRepository:
        return CompanyAISettingsRepository(self.session.gateway)

    async def fetch_settings(self) -> Optional[CompanyAISettings]:
        async with self._operation("fetch_settings"):
            self.ai_settings = await self.repo.get_for_company(await self.session.company_id())
            return self.ai_settings
        return None

    async def save_settings(self, data: Dict[str, Any]) -> Optional[CompanyAISettings]:
        """Updates the company's settings row, creating it on first save."""
        async with self._operation("save_settings"):
            changes = AISettingsUpdate.model_validate(data).model_dump()
            company_id = await self.session.company_id()
            existing = await self.repo.get_for_company(company_id)
            if existing and existing.id:
                self.ai_settings = await self.repo.update(existing.id, changes)
            else:
                self.ai_settings = await self.repo.create({**changes, "company_id": company_id})
            return self.ai_settings
        return None

    def token_usage_percent(self) -> Optional[int]:
        return self.ai_settings.quota_usage_percent() if self.ai_settings else None
