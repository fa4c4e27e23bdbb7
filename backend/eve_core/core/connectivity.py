# eve_core/core/connectivity.py

import asyncio
from typing import Awaitable, Callable, TypeVar

from loguru import logger

from eve_core.core.gateway import QueryGateway

T = TypeVar("T")

MAX_ATTEMPTS = 3
BASE_DELAY_SECONDS = 1.0


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    attempts: int = MAX_ATTEMPTS,
    base_delay: float = BASE_DELAY_SECONDS,
    label: str = "operation",
) -> T:
    """
    Runs ``operation`` up to ``attempts`` times, doubling the delay after each failure.
    Only used for connectivity checks; business operations are never retried.
    """
    log = logger.bind(service="Connectivity", label=label)
    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except Exception as e:
            if attempt == attempts:
                log.error(f"{label} failed after {attempts} attempts: {e}")
                raise
            delay = base_delay * (2 ** (attempt - 1))
            log.warning(f"{label} failed (attempt {attempt}/{attempts}): {e}. Retrying in {delay:.1f}s")
            await asyncio.sleep(delay)
    raise ValueError(f"attempts must be at least 1, got {attempts}")


async def check_supabase_connection(gateway: QueryGateway) -> bool:
    """True when the Supabase REST root answers below 500 within the retry budget."""
    try:
        await retry_with_backoff(gateway.ping, label="supabase_ping")
        return True
    except Exception:
        return False
