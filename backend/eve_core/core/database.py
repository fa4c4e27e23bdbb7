# eve_core/core/database.py

from contextlib import AbstractAsyncContextManager
from typing import Optional, cast

import httpx
import redis.asyncio as redis
from fastapi import HTTPException, status
from loguru import logger

from eve_core.core.config import settings
from eve_core.core.gateway import QueryGateway


# --- Supabase (PostgREST over HTTP) ---
class SupabaseContext(AbstractAsyncContextManager):
    """Owns the shared HTTP client used by the service-role query gateway."""

    client: Optional[httpx.AsyncClient] = None
    gateway: Optional[QueryGateway] = None

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.disconnect()

    async def connect(self):
        if self.client and self.gateway:
            logger.info("Supabase HTTP client already initialized.")
            return

        logger.info(f"Initializing Supabase REST client for {settings.SUPABASE_URL}...")
        self.client = httpx.AsyncClient(
            timeout=settings.SUPABASE_TIMEOUT_SECONDS,
            limits=httpx.Limits(max_connections=100, max_keepalive_connections=20),
        )
        self.gateway = QueryGateway(
            self.client,
            settings.SUPABASE_URL,
            settings.SUPABASE_SERVICE_ROLE_KEY,
        )
        logger.success("Supabase REST client ready.")

    async def disconnect(self):
        if self.client:
            logger.info("Closing Supabase HTTP client...")
            try:
                await self.client.aclose()
                logger.info("Supabase HTTP client closed.")
            except Exception as e:
                logger.error(f"Error closing Supabase HTTP client: {e}")
            finally:
                self.client = None
                self.gateway = None

    def get_gateway(self) -> QueryGateway:
        if self.gateway is None:
            logger.critical("Attempted to get the query gateway, but it's not initialized.")
            raise RuntimeError("Supabase query gateway is not initialized.")
        return cast(QueryGateway, self.gateway)


supabase_manager = SupabaseContext()


# --- Redis ---
class RedisContext(AbstractAsyncContextManager):
    client: Optional[redis.Redis] = None

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.disconnect()

    async def connect(self):
        """Connects to Redis. The service keeps running without it."""
        if self.client:
            logger.info("Redis connection already established.")
            return
        url = settings.REDIS_URL
        logger.info(f"Connecting to Redis at {url}...")
        try:
            pool = redis.ConnectionPool.from_url(
                url,
                decode_responses=True,
                socket_connect_timeout=5,
                socket_keepalive=True,
                max_connections=20,
            )
            self.client = redis.Redis(connection_pool=pool)
            await self.client.ping()
            logger.success("Redis connection successful.")
        except Exception as e:
            logger.error(f"Could not connect to Redis: {e}")
            self.client = None

    async def disconnect(self):
        if self.client:
            logger.info("Closing Redis connection pool...")
            try:
                await self.client.aclose()
                logger.info("Redis connection pool closed.")
            except Exception as e:
                logger.error(f"Error closing Redis connection pool: {e}")
            finally:
                self.client = None

    def get_client(self) -> Optional[redis.Redis]:
        return self.client


redis_manager = RedisContext()


# --- FastAPI dependencies ---
async def get_query_gateway() -> QueryGateway:
    """Service-role query gateway; lifespan owns the connection."""
    try:
        return supabase_manager.get_gateway()
    except RuntimeError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=f"Database connection not available: {e}")


async def get_redis_client() -> Optional[redis.Redis]:
    """Redis is optional; callers must handle ``None``."""
    return redis_manager.get_client()
