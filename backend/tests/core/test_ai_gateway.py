# tests/core/test_ai_gateway.py
import asyncio
import json
from unittest.mock import AsyncMock

import pytest

from eve_core.core.config import settings
from eve_core.services.ai_gateway import AICredentials, AIGateway, AIGatewayResolver, MissingCredentialsError


def test_openai_client_is_not_shared_across_event_loops():
    credentials = AICredentials(api_key="sk-loop-test")

    async def clients():
        return AIGateway(credentials).client, AIGateway(credentials).client

    first_a, first_b = asyncio.run(clients())
    second_a, _ = asyncio.run(clients())

    assert first_a is first_b
    assert second_a is not first_a


class _SettingsRepo:
    def __init__(self, row=None):
        self.row = row
        self.get_for_company = AsyncMock(return_value=row)


@pytest.mark.asyncio
async def test_corrupt_cache_entry_is_treated_as_a_miss():
    cache = AsyncMock()
    cache.get.return_value = "{not json"
    repo = _SettingsRepo()
    resolver = AIGatewayResolver(repo, cache)

    credentials = await resolver.credentials_for("c1")

    assert credentials.source == "platform"
    repo.get_for_company.assert_awaited_once_with("c1")
    key, payload = cache.set.await_args.args
    assert key == "eve:ai_settings:c1"
    assert json.loads(payload) is None


@pytest.mark.asyncio
async def test_company_key_wins_over_platform_key():
    from eve_core.modules.office.models import CompanyAISettings

    repo = _SettingsRepo(CompanyAISettings(company_id="c1", openai_api_key="sk-company", default_model="gpt-4o"))
    resolver = AIGatewayResolver(repo)

    credentials = await resolver.credentials_for("c1")

    assert credentials.api_key == "sk-company"
    assert credentials.default_model == "gpt-4o"
    assert credentials.source == "company"


@pytest.mark.asyncio
async def test_missing_keys_raise(monkeypatch):
    monkeypatch.setattr(settings, "OPENAI_API_KEY", None)
    resolver = AIGatewayResolver(_SettingsRepo())

    with pytest.raises(MissingCredentialsError):
        await resolver.credentials_for("c1")
