# eve_core/core/security.py

from typing import Any, Dict, Optional

from fastapi import Header, HTTPException, Request, status
from jose import JWTError, jwt
from loguru import logger
from twilio.request_validator import RequestValidator

from eve_core.core.config import settings

CredentialsException = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Could not validate credentials",
    headers={"WWW-Authenticate": "Bearer"},
)


def _extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    parts = authorization.split()
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return parts[1]
    return None


def decode_supabase_token(token: str, secret: str) -> Dict[str, Any]:
    """Decodes a Supabase access token (HS256, project JWT secret)."""
    return jwt.decode(token, secret, algorithms=["HS256"], options={"verify_aud": False})


async def require_supabase_auth(authorization: Optional[str] = Header(None)) -> Optional[Dict[str, Any]]:
    """
    Guard for the JSON endpoints. Returns the token claims, or ``None`` when
    SUPABASE_JWT_SECRET is unset (local/dev mode).
    """
    secret = settings.SUPABASE_JWT_SECRET
    if not secret:
        return None
    token = _extract_bearer_token(authorization)
    if not token:
        raise CredentialsException
    try:
        return decode_supabase_token(token, secret)
    except JWTError as e:
        logger.warning(f"Rejected Supabase token: {e}")
        raise CredentialsException


def _public_url(request: Request) -> str:
    if not settings.PUBLIC_BASE_URL:
        return str(request.url)
    query = f"?{request.url.query}" if request.url.query else ""
    return f"{settings.PUBLIC_BASE_URL.rstrip('/')}{request.url.path}{query}"


async def verify_twilio_signature(request: Request) -> None:
    """Validates X-Twilio-Signature when TWILIO_AUTH_TOKEN is configured."""
    if not settings.TWILIO_AUTH_TOKEN:
        return
    signature = request.headers.get("X-Twilio-Signature", "")
    params: Dict[str, Any] = {}
    if request.method == "POST":
        form = await request.form()
        params = dict(form)
    validator = RequestValidator(settings.TWILIO_AUTH_TOKEN)
    if not validator.validate(_public_url(request), params, signature):
        logger.warning(f"Invalid Twilio signature for {request.url.path}")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid Twilio signature")
