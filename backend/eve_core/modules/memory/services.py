# eve_core/modules/memory/services.py

import json
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Type

from fastapi import Depends, HTTPException, status
from loguru import logger
from pydantic import ValidationError

from eve_core.core.config import settings
from eve_core.core.gateway import DatabaseError
from eve_core.models.memory import (
    DeleteMemoryOp, MemoryListOut, MemoryMutationOut, MemoryOut, RankMemoryOp,
    RetrieveMemoryOp, SearchMemoryOp, StoreMemoryOp, UpdateMemoryOp,
)
from eve_core.modules.eves.models import EVE
from eve_core.modules.eves.repository import EveRepository, get_eve_repository
from eve_core.modules.office.services_audit import enqueue_backfill
from eve_core.services.ai_gateway import AIGatewayError, AIGatewayResolver, get_ai_gateway_resolver
from .models import Memory, RankedIdsPayload, extract_text
from .repository import (
    MemoryRepository, MemoryVectorRepository,
    get_memory_repository, get_memory_vector_repository,
)

RANKER_SYSTEM_PROMPT = (
    "You are a memory relevance ranker. You will be given a list of memories and a context, "
    "and your task is to rank the memories by relevance to the context. Consider both semantic "
    "relevance and importance. Respond with a JSON object of the form "
    '{"ranked_ids": ["<memory id>", ...]} with the most relevant memory first.'
)


def _dump(memory: Memory) -> Dict[str, Any]:
    return memory.model_dump(mode="json")


def by_importance(memories: List[Memory]) -> List[Memory]:
    return sorted(memories, key=lambda m: m.importance, reverse=True)


def order_by_ranking(memories: List[Memory], ranked_ids: List[str]) -> List[Memory]:
    """
    Orders memories by the ranker's ids. Unknown ids are ignored and repeats collapse;
    memories the ranker did not mention follow in importance order.
    """
    by_id = {memory.id: memory for memory in memories}
    ordered: List[Memory] = []
    seen = set()
    for memory_id in ranked_ids:
        if memory_id in by_id and memory_id not in seen:
            ordered.append(by_id[memory_id])
            seen.add(memory_id)
    remainder = [memory for memory in memories if memory.id not in seen]
    return ordered + by_importance(remainder)


class MemoryService:
    """Per-EVE key/value memory with optional vector embeddings."""

    def __init__(
        self,
        eve_repo: EveRepository,
        memory_repo: MemoryRepository,
        vector_repo: MemoryVectorRepository,
        ai_resolver: AIGatewayResolver,
    ):
        self.eve_repo = eve_repo
        self.memory_repo = memory_repo
        self.vector_repo = vector_repo
        self.ai_resolver = ai_resolver
        self._handlers: Dict[Type, Callable[[EVE, Any], Awaitable[Any]]] = {
            StoreMemoryOp: self.store,
            RetrieveMemoryOp: self.retrieve,
            UpdateMemoryOp: self.update,
            DeleteMemoryOp: self.delete,
            SearchMemoryOp: self.search,
            RankMemoryOp: self.rank,
        }

    async def execute(self, operation: Any) -> Any:
        eve = await self.eve_repo.get_by_id(operation.eve_id)
        if not eve:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="EVE not found")
        handler = self._handlers[type(operation)]
        return await handler(eve, operation)

    async def _refresh_embedding(self, eve: EVE, memory: Memory) -> bool:
        """Best-effort: a failed embedding leaves the memory stored without a vector."""
        text = extract_text(memory.value)
        if text is None:
            return False
        log = logger.bind(service="MemoryService", memory_id=memory.id)
        try:
            ai = await self.ai_resolver.for_company(eve.company_id)
            embedding = await ai.embed(text)
            await self.vector_repo.replace_for_memory(memory.id, embedding, text)
            log.debug("Memory embedding refreshed.")
            return True
        except (AIGatewayError, DatabaseError) as e:
            log.warning(f"Embedding refresh failed: {e}")
            enqueue_backfill("backfill.memory_embedding", {
                "memory_id": memory.id,
                "company_id": eve.company_id,
                "text": text,
            })
            return False

    async def store(self, eve: EVE, op: StoreMemoryOp) -> MemoryMutationOut:
        now = datetime.now(timezone.utc)
        fields: Dict[str, Any] = {
            "type": op.type,
            "value": op.value,
            "importance": op.importance,
            "last_accessed": now,
        }
        if "expiry" in op.model_fields_set:
            fields["expiry"] = op.expiry
        if "metadata" in op.model_fields_set:
            fields["metadata"] = op.metadata

        existing = await self.memory_repo.get_by({"eve_id": eve.id, "key": op.key})
        if existing is None:
            try:
                memory = await self.memory_repo.create({**fields, "eve_id": eve.id, "key": op.key, "company_id": eve.company_id})
                message = "Memory stored successfully"
            except ValueError:
                # Lost an insert race on (eve_id, key); fall through to the update path.
                existing = await self.memory_repo.get_by({"eve_id": eve.id, "key": op.key})
                if existing is None:
                    raise
        if existing is not None:
            updated = await self.memory_repo.update(existing.id, fields)
            if updated is None:
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Memory not found")
            memory = updated
            message = "Memory updated successfully"

        await self._refresh_embedding(eve, memory)
        return MemoryMutationOut(message=message, memory=_dump(memory))

    async def retrieve(self, eve: EVE, op: RetrieveMemoryOp) -> MemoryOut:
        memory = await self.memory_repo.get_by({"eve_id": eve.id, "key": op.key})
        if not memory:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Memory not found")
        await self.memory_repo.touch([memory.id])
        return MemoryOut(memory=_dump(memory))

    async def update(self, eve: EVE, op: UpdateMemoryOp) -> MemoryMutationOut:
        existing = await self.memory_repo.get_for_eve(eve.id, op.memory_id)
        if not existing:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Memory not found or does not belong to this EVE")

        fields: Dict[str, Any] = {
            name: getattr(op, name)
            for name in ("type", "value", "importance", "expiry", "metadata")
            if name in op.model_fields_set
        }
        fields["last_accessed"] = datetime.now(timezone.utc)
        memory = await self.memory_repo.update(existing.id, fields)
        if memory is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Memory not found")

        if "value" in fields:
            await self._refresh_embedding(eve, memory)
        return MemoryMutationOut(message="Memory updated successfully", memory=_dump(memory))

    async def delete(self, eve: EVE, op: DeleteMemoryOp) -> MemoryMutationOut:
        existing = await self.memory_repo.get_for_eve(eve.id, op.memory_id)
        if not existing:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Memory not found or does not belong to this EVE")
        await self.vector_repo.delete_for_memory(existing.id)
        await self.memory_repo.delete(existing.id)
        logger.bind(service="MemoryService", eve_id=eve.id).info(f"Memory {existing.id} deleted with its vector.")
        return MemoryMutationOut(message="Memory deleted successfully")

    async def _vector_search(self, eve: EVE, op: SearchMemoryOp) -> Optional[List[Dict[str, Any]]]:
        """Similarity results, or None when the EVE has no vectors or the vector path fails."""
        try:
            memory_ids = await self.memory_repo.ids_for_eve(eve.id)
            if not await self.vector_repo.exist_for_memories(memory_ids):
                return None
            ai = await self.ai_resolver.for_company(eve.company_id)
            query_embedding = await ai.embed(op.query)
            return await self.vector_repo.similarity_search(eve.id, query_embedding, op.type)
        except (AIGatewayError, DatabaseError) as e:
            logger.bind(service="MemoryService", eve_id=eve.id).warning(f"Vector search unavailable, falling back to text search: {e}")
            return None

    async def search(self, eve: EVE, op: SearchMemoryOp) -> MemoryListOut:
        log = logger.bind(service="MemoryService", eve_id=eve.id)
        results = await self._vector_search(eve, op)
        if results is not None:
            log.info(f"Vector search returned {len(results)} memories.")
        else:
            matches = await self.memory_repo.text_search(eve.id, op.query, op.type, limit=settings.MEMORY_MATCH_COUNT)
            results = [_dump(memory) for memory in matches]
            log.info(f"Text search fallback returned {len(results)} memories.")

        await self.memory_repo.touch([row["id"] for row in results if row.get("id")])
        return MemoryListOut(memories=results)

    async def _ranked_ids(self, eve: EVE, context: str, memories: List[Memory]) -> Optional[List[str]]:
        """Ranker output, or None when the call fails or the payload is not ``{ranked_ids: [str]}``."""
        listing = "\n\n".join(
            f"ID: {m.id}\nType: {m.type}\nKey: {m.key}\nValue: {json.dumps(m.value)}\nImportance: {m.importance}"
            for m in memories
        )
        try:
            ai = await self.ai_resolver.for_company(eve.company_id)
            result = await ai.complete(
                [
                    {"role": "system", "content": RANKER_SYSTEM_PROMPT},
                    {"role": "user", "content": f"Context: {context}\n\nMemories:\n{listing}"},
                ],
                model=settings.OPENAI_RANKING_MODEL,
                max_tokens=1000,
                temperature=0.0,
                response_format={"type": "json_object"},
            )
        except AIGatewayError as e:
            logger.warning(f"Memory ranking call failed, using importance order: {e}")
            return None
        try:
            return RankedIdsPayload.model_validate_json(result.content).ranked_ids
        except ValidationError as e:
            logger.warning(f"Ranker returned an invalid payload, using importance order: {e.errors()[:1]}")
            return None

    async def rank(self, eve: EVE, op: RankMemoryOp) -> MemoryListOut:
        memories = await self.memory_repo.list_for_eve(eve.id, op.type)
        if not memories:
            return MemoryListOut(memories=[])

        ranked_ids = await self._ranked_ids(eve, op.context, memories)
        ordered = order_by_ranking(memories, ranked_ids) if ranked_ids is not None else by_importance(memories)

        await self.memory_repo.touch([memory.id for memory in ordered])
        return MemoryListOut(memories=[_dump(memory) for memory in ordered])


async def get_memory_service(
    eve_repo: EveRepository = Depends(get_eve_repository),
    memory_repo: MemoryRepository = Depends(get_memory_repository),
    vector_repo: MemoryVectorRepository = Depends(get_memory_vector_repository),
    ai_resolver: AIGatewayResolver = Depends(get_ai_gateway_resolver),
) -> MemoryService:
    return MemoryService(eve_repo, memory_repo, vector_repo, ai_resolver)
