# eve_core/client/auth.py

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Optional

import httpx
from loguru import logger

from eve_core.client.base import BaseStore, StoreError
from eve_core.core.connectivity import check_supabase_connection
from eve_core.modules.office.repository import CompanyRepository, UserRepository

if TYPE_CHECKING:
    from eve_core.client.session import AppSession

BRAND_PRIMARY_COLOR = "#00FFB2"
BRAND_SECONDARY_COLOR = "#1A1A40"
CONNECTIVITY_ERROR = (
    "Unable to connect to the authentication service. "
    "Please check your network connection and try again."
)


class AuthError(RuntimeError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


@dataclass
class AuthUser:
    id: str
    email: Optional[str] = None
    user_metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "AuthUser":
        return cls(id=payload["id"], email=payload.get("email"), user_metadata=payload.get("user_metadata") or {})


@dataclass
class AuthSession:
    access_token: Optional[str]
    refresh_token: Optional[str]
    user: AuthUser


class AuthClient:
    """Minimal Supabase GoTrue REST client."""

    def __init__(self, http_client: httpx.AsyncClient, base_url: str, api_key: str):
        self.http = http_client
        self.auth_url = f"{base_url.rstrip('/')}/auth/v1"
        self.api_key = api_key

    def _headers(self, access_token: Optional[str] = None) -> Dict[str, str]:
        return {
            "apikey": self.api_key,
            "Authorization": f"Bearer {access_token or self.api_key}",
            "Content-Type": "application/json",
        }

    async def _post(self, path: str, payload: Dict[str, Any], *, params: Optional[Dict[str, str]] = None, access_token: Optional[str] = None) -> Dict[str, Any]:
        try:
            response = await self.http.post(f"{self.auth_url}/{path}", json=payload, params=params, headers=self._headers(access_token))
            response.raise_for_status()
        except httpx.HTTPStatusError as http_err:
            try:
                body = http_err.response.json()
            except ValueError:
                body = {}
            message = body.get("error_description") or body.get("msg") or body.get("message") or f"HTTP {http_err.response.status_code}"
            raise AuthError(message, status_code=http_err.response.status_code) from http_err
        except httpx.RequestError as req_err:
            raise AuthError(f"Authentication service unreachable: {req_err}") from req_err
        return response.json() if response.content else {}

    @staticmethod
    def _session_from(body: Dict[str, Any]) -> AuthSession:
        # /signup answers with a bare user when e-mail confirmation is pending.
        user_payload = body.get("user") or body
        return AuthSession(
            access_token=body.get("access_token"),
            refresh_token=body.get("refresh_token"),
            user=AuthUser.from_payload(user_payload),
        )

    async def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        body = await self._post("token", {"email": email, "password": password}, params={"grant_type": "password"})
        return self._session_from(body)

    async def sign_up(self, email: str, password: str, data: Optional[Dict[str, Any]] = None) -> AuthSession:
        body = await self._post("signup", {"email": email, "password": password, "data": data or {}})
        return self._session_from(body)

    async def sign_out(self, access_token: str) -> None:
        await self._post("logout", {}, access_token=access_token)

    async def reset_password_for_email(self, email: str, redirect_to: Optional[str] = None) -> None:
        params = {"redirect_to": redirect_to} if redirect_to else None
        await self._post("recover", {"email": email}, params=params)

    async def get_user(self, access_token: str) -> AuthUser:
        try:
            response = await self.http.get(f"{self.auth_url}/user", headers=self._headers(access_token))
            response.raise_for_status()
        except httpx.HTTPStatusError as http_err:
            raise AuthError("Session is no longer valid", status_code=http_err.response.status_code) from http_err
        except httpx.RequestError as req_err:
            raise AuthError(f"Authentication service unreachable: {req_err}") from req_err
        return AuthUser.from_payload(response.json())


class AuthStore(BaseStore):
    def __init__(self, session: "AppSession"):
        super().__init__(session)
        self.user: Optional[AuthUser] = None
        self.is_initializing: bool = True

    async def _require_connection(self) -> None:
        if not await check_supabase_connection(self.session.gateway):
            raise StoreError(CONNECTIVITY_ERROR)

    async def initialize(self, access_token: Optional[str] = None) -> Optional[AuthUser]:
        """Restores a previous session from a stored access token."""
        try:
            async with self._operation("initialize"):
                if access_token:
                    user = await self.session.auth_client.get_user(access_token)
                    self.session.set_auth(access_token, user)
                    self.user = user
                return self.user
            return None
        finally:
            self.is_initializing = False

    async def sign_in(self, email: str, password: str) -> Optional[AuthUser]:
        async with self._operation("sign_in"):
            await self._require_connection()
            auth_session = await self.session.auth_client.sign_in_with_password(email, password)
            self.session.set_auth(auth_session.access_token, auth_session.user)
            self.user = auth_session.user
            logger.info(f"Signed in as {email}.")
            return self.user
        return None

    async def sign_up(self, email: str, password: str, company_name: str) -> Optional[AuthUser]:
        async with self._operation("sign_up"):
            await self._require_connection()
            auth_session = await self.session.auth_client.sign_up(email, password, {"company_name": company_name})
            self.session.set_auth(auth_session.access_token, auth_session.user)
            try:
                company = await CompanyRepository(self.session.gateway).create({
                    "name": company_name,
                    "primary_color": BRAND_PRIMARY_COLOR,
                    "secondary_color": BRAND_SECONDARY_COLOR,
                })
                await UserRepository(self.session.gateway).create_with_id({
                    "id": auth_session.user.id,
                    "email": auth_session.user.email or email,
                    "company_id": company.id,
                    "role": "company_admin",
                })
            except Exception:
                # Company/profile setup failed: drop the half-created session.
                await self._sign_out_quietly()
                raise
            self.user = auth_session.user
            return self.user
        return None

    async def _sign_out_quietly(self) -> None:
        token = self.session.access_token
        self.session.clear_auth()
        self.user = None
        if token:
            try:
                await self.session.auth_client.sign_out(token)
            except AuthError as e:
                logger.warning(f"Sign-out after failed sign-up did not complete: {e}")

    async def sign_out(self) -> bool:
        async with self._operation("sign_out"):
            token = self.session.access_token
            self.session.clear_auth()
            self.user = None
            if token:
                await self.session.auth_client.sign_out(token)
            return True
        return False

    async def reset_password(self, email: str, redirect_to: Optional[str] = None) -> bool:
        async with self._operation("reset_password"):
            await self._require_connection()
            await self.session.auth_client.reset_password_for_email(email, redirect_to)
            return True
        return False
