# tests/core/test_connectivity.py
from unittest.mock import AsyncMock, call, patch

import pytest

from eve_core.core.connectivity import check_supabase_connection, retry_with_backoff
from eve_core.core.gateway import DatabaseError

pytestmark = pytest.mark.asyncio


async def test_retry_succeeds_after_transient_failures():
    operation = AsyncMock(side_effect=[DatabaseError("down"), DatabaseError("down"), 200])

    with patch("eve_core.core.connectivity.asyncio.sleep", new_callable=AsyncMock) as sleep:
        result = await retry_with_backoff(operation)

    assert result == 200
    assert operation.await_count == 3
    assert sleep.await_args_list == [call(1.0), call(2.0)]


async def test_retry_gives_up_after_three_attempts():
    operation = AsyncMock(side_effect=DatabaseError("down"))

    with patch("eve_core.core.connectivity.asyncio.sleep", new_callable=AsyncMock) as sleep:
        with pytest.raises(DatabaseError):
            await retry_with_backoff(operation)

    assert operation.await_count == 3
    assert sleep.await_count == 2


async def test_check_supabase_connection():
    gateway = AsyncMock()
    gateway.ping.side_effect = DatabaseError("unreachable")

    with patch("eve_core.core.connectivity.asyncio.sleep", new_callable=AsyncMock):
        assert await check_supabase_connection(gateway) is False

    gateway.ping.side_effect = None
    gateway.ping.return_value = 200
    assert await check_supabase_connection(gateway) is True


async def test_retry_rejects_zero_attempts():
    operation = AsyncMock(return_value=200)

    with pytest.raises(ValueError):
        await retry_with_backoff(operation, attempts=0)

    operation.assert_not_awaited()
