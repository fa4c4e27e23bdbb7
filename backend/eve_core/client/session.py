# eve_core/client/session.py

from typing import Optional

import httpx
from loguru import logger

from eve_core.client.auth import AuthClient, AuthStore, AuthUser
from eve_core.client.base import StoreError
from eve_core.client.stores_core import ActionStore, CollaborationStore, EveStore, TaskStore
from eve_core.client.stores_knowledge import CompanyKnowledgeStore, EveKnowledgeStore, MemoryStore
from eve_core.client.stores_marketplace import MarketplaceStore
from eve_core.client.stores_office import AISettingsStore, CompanyStore, LogStore, VoiceStore
from eve_core.client.stores_workflows import WorkflowStore
from eve_core.core.config import settings
from eve_core.core.gateway import QueryGateway
from eve_core.modules.office.models import UserProfile
from eve_core.modules.office.repository import UserRepository


class AppSession:
    """
    Everything one dashboard session needs: an HTTP client, a query gateway
    acting as the signed-in user, the auth client and one instance of each store.
    """

    def __init__(
        self,
        supabase_url: Optional[str] = None,
        anon_key: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.supabase_url = supabase_url or settings.SUPABASE_URL
        self.anon_key = anon_key or settings.SUPABASE_ANON_KEY or ""
        self._owns_client = http_client is None
        self.http = http_client or httpx.AsyncClient(timeout=settings.SUPABASE_TIMEOUT_SECONDS)

        self.gateway = QueryGateway(self.http, self.supabase_url, self.anon_key)
        self.auth_client = AuthClient(self.http, self.supabase_url, self.anon_key)
        self.access_token: Optional[str] = None
        self.user: Optional[AuthUser] = None
        self._profile: Optional[UserProfile] = None

        self.auth = AuthStore(self)
        self.eves = EveStore(self)
        self.actions = ActionStore(self)
        self.tasks = TaskStore(self)
        self.collaborations = CollaborationStore(self)
        self.marketplace = MarketplaceStore(self)
        self.voice = VoiceStore(self)
        self.logs = LogStore(self)
        self.company = CompanyStore(self)
        self.ai_settings = AISettingsStore(self)
        self.memories = MemoryStore(self)
        self.company_knowledge = CompanyKnowledgeStore(self)
        self.eve_knowledge = EveKnowledgeStore(self)
        self.workflows = WorkflowStore(self)

    async def __aenter__(self) -> "AppSession":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self.http.aclose()

    def set_auth(self, access_token: Optional[str], user: AuthUser) -> None:
        self.access_token = access_token
        self.user = user
        self._profile = None
        self.gateway = self.gateway.with_access_token(access_token)
        logger.debug(f"Session now acting as user {user.id}.")

    def clear_auth(self) -> None:
        self.access_token = None
        self.user = None
        self._profile = None
        self.gateway = self.gateway.with_access_token(None)

    def require_user(self) -> AuthUser:
        if not self.user:
            raise StoreError("Not authenticated")
        return self.user

    async def profile(self) -> UserProfile:
        if self._profile is None:
            user = self.require_user()
            profile = await UserRepository(self.gateway).get_by_id(user.id)
            if not profile:
                raise StoreError("User profile not found")
            self._profile = profile
        return self._profile

    async def company_id(self) -> str:
        profile = await self.profile()
        if not profile.company_id:
            raise StoreError("Company not found")
        return profile.company_id
