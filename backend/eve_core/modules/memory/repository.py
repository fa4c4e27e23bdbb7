# eve_core/modules/memory/repository.py

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from fastapi import Depends
from loguru import logger

from eve_core.core.config import settings
from eve_core.core.database import get_query_gateway
from eve_core.core.gateway import QueryGateway, contains_text, ilike, in_
from eve_core.core.repository import BaseRepository
from .models import Memory, MemoryType, MemoryVector


class MemoryRepository(BaseRepository[Memory]):
    model = Memory
    table_name = "memories"

    async def get_for_eve(self, eve_id: str, memory_id: str) -> Optional[Memory]:
        return await self.get_by({"id": memory_id, "eve_id": eve_id})

    async def list_for_eve(self, eve_id: str, memory_type: Optional[MemoryType] = None) -> List[Memory]:
        filters: Dict[str, Any] = {"eve_id": eve_id}
        if memory_type:
            filters["type"] = memory_type
        return await self.list_by(filters, order=[("importance", "desc")])

    async def ids_for_eve(self, eve_id: str) -> List[str]:
        rows = await self.gateway.select(self.table_name, {"eve_id": eve_id}, columns="id")
        return [row["id"] for row in rows]

    async def text_search(self, eve_id: str, query: str, memory_type: Optional[MemoryType] = None, limit: int = 10) -> List[Memory]:
        """Substring match on key or ``value->>text``, most important first."""
        pattern = contains_text(query)
        filters: Dict[str, Any] = {"eve_id": eve_id}
        if memory_type:
            filters["type"] = memory_type
        return await self.list_by(
            filters,
            or_filters=[("key", ilike(pattern)), ("value->>text", ilike(pattern))],
            order=[("importance", "desc")],
            limit=limit,
        )

    async def touch(self, memory_ids: Sequence[str]) -> None:
        """Refreshes last_accessed on every given memory."""
        if not memory_ids:
            return
        now = datetime.now(timezone.utc)
        await self.update_by({"id": in_(list(memory_ids))}, {"last_accessed": now})


class MemoryVectorRepository(BaseRepository[MemoryVector]):
    model = MemoryVector
    table_name = "memory_vectors"

    async def replace_for_memory(self, memory_id: str, embedding: List[float], text_content: str) -> MemoryVector:
        """Single vector per memory: the previous row goes before the new one is written."""
        removed = await self.delete_by({"memory_id": memory_id})
        if removed:
            logger.debug(f"Removed {removed} stale vector row(s) for memory {memory_id}.")
        return await self.create({"memory_id": memory_id, "embedding": embedding, "text_content": text_content})

    async def delete_for_memory(self, memory_id: str) -> int:
        return await self.delete_by({"memory_id": memory_id})

    async def exist_for_memories(self, memory_ids: Sequence[str]) -> bool:
        if not memory_ids:
            return False
        return await self.count({"memory_id": in_(list(memory_ids))}) > 0

    async def similarity_search(
        self,
        eve_id: str,
        query_embedding: List[float],
        memory_type: Optional[MemoryType] = None,
    ) -> List[Dict[str, Any]]:
        """Nearest neighbours computed by the ``search_memory_vectors`` procedure, closest first."""
        rows = await self.gateway.rpc(
            "search_memory_vectors",
            {
                "query_embedding": query_embedding,
                "eve_id_param": eve_id,
                "match_threshold": settings.MEMORY_MATCH_THRESHOLD,
                "match_count": settings.MEMORY_MATCH_COUNT,
            },
            filters={"type": memory_type} if memory_type else None,
        )
        return (rows or [])[: settings.MEMORY_MATCH_COUNT]


async def get_memory_repository(gateway: QueryGateway = Depends(get_query_gateway)) -> MemoryRepository:
    return MemoryRepository(gateway)


async def get_memory_vector_repository(gateway: QueryGateway = Depends(get_query_gateway)) -> MemoryVectorRepository:
    return MemoryVectorRepository(gateway)
