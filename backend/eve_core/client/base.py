# eve_core/client/base.py

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, AsyncIterator, Optional

from loguru import logger

if TYPE_CHECKING:
    from eve_core.client.session import AppSession


class StoreError(RuntimeError):
    """Raised inside store operations for precondition failures (no session, no company)."""


class BaseStore:
    """
    Dashboard-side state holder. Each operation flips ``is_loading`` for its
    duration and leaves the failure message in ``error``; callers read the
    flags instead of catching exceptions.
    """

    def __init__(self, session: "AppSession"):
        self.session = session
        self.is_loading: bool = False
        self.error: Optional[str] = None

    @asynccontextmanager
    async def _operation(self, name: str) -> AsyncIterator[None]:
        self.is_loading = True
        self.error = None
        try:
            yield
        except Exception as e:
            self.error = str(e)
            logger.bind(store=type(self).__name__, operation=name).error(f"Store operation failed: {e}")
        finally:
            self.is_loading = False
