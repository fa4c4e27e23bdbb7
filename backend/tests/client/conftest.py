# tests/client/conftest.py
import pytest
import pytest_asyncio

from eve_core.client.auth import AuthUser
from eve_core.client.session import AppSession

SUPABASE_URL = "http://supabase.test"


@pytest.fixture
def company(gateway):
    return gateway.seed("companies", name="Acme")


@pytest.fixture
def owner(gateway, company):
    return gateway.seed("users", email="owner@acme.test", company_id=company["id"], role="company_admin", is_active=True)


@pytest_asyncio.fixture
async def session(gateway, owner):
    """A signed-in session whose queries go to the in-memory gateway."""
    async with AppSession(SUPABASE_URL, "anon-key") as app_session:
        app_session.gateway = gateway
        app_session.user = AuthUser(id=owner["id"], email=owner["email"])
        yield app_session
