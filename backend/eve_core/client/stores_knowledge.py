# eve_core/client/stores_knowledge.py

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from eve_core.client.base import BaseStore, StoreError
from eve_core.core.gateway import contains_text, ilike
from eve_core.modules.knowledge.models import CompanyKnowledge, EVEKnowledge
from eve_core.modules.knowledge.repository import CompanyKnowledgeRepository, EveKnowledgeRepository
from eve_core.modules.memory.models import Memory, MemoryType
from eve_core.modules.memory.repository import MemoryRepository


class MemoryStore(BaseStore):
    """Direct table access to an EVE's memories; reads and writes refresh ``last_accessed``."""

    def __init__(self, session):
        super().__init__(session)
        self.memories: List[Memory] = []

    @property
    def repo(self) -> MemoryRepository:
        return MemoryRepository(self.session.gateway)

    async def fetch_memories(self, eve_id: str) -> List[Memory]:
        async with self._operation("fetch_memories"):
            self.memories = await self.repo.list_by({"eve_id": eve_id}, order=[("last_accessed", "desc")])
            return self.memories
        return []

    async def get_memory(self, memory_id: str) -> Optional[Memory]:
        async with self._operation("get_memory"):
            memory = await self.repo.get_by_id(memory_id)
            if memory is None:
                raise StoreError("Memory not found")
            return memory
        return None

    async def create_memory(self, data: Dict[str, Any]) -> Optional[Memory]:
        async with self._operation("create_memory"):
            memory = await self.repo.create({
                "importance": 1,
                **data,
                "company_id": data.get("company_id") or await self.session.company_id(),
                "last_accessed": datetime.now(timezone.utc),
            })
            self.memories = [memory, *self.memories]
            return memory
        return None

    async def update_memory(self, memory_id: str, data: Dict[str, Any]) -> Optional[Memory]:
        async with self._operation("update_memory"):
            now = datetime.now(timezone.utc)
            memory = await self.repo.update(memory_id, {**data, "last_accessed": now, "updated_at": now})
            if memory is None:
                raise StoreError("Memory not found")
            self.memories = [memory if m.id == memory_id else m for m in self.memories]
            return memory
        return None

    async def delete_memory(self, memory_id: str) -> bool:
        async with self._operation("delete_memory"):
            deleted = await self.repo.delete(memory_id)
            self.memories = [m for m in self.memories if m.id != memory_id]
            return deleted
        return False

    async def search_memories(self, eve_id: str, query: str) -> List[Memory]:
        """Key substring match within the session's company, most important first."""
        async with self._operation("search_memories"):
            return await self.repo.list_by(
                {"eve_id": eve_id, "company_id": await self.session.company_id(), "key": ilike(contains_text(query))},
                order=[("importance", "desc")],
            )
        return []

    async def get_memories_by_type(self, eve_id: str, memory_type: MemoryType) -> List[Memory]:
        async with self._operation("get_memories_by_type"):
            return await self.repo.list_by(
                {"eve_id": eve_id, "company_id": await self.session.company_id(), "type": memory_type},
                order=[("importance", "desc")],
            )
        return []


class _KnowledgeStore(BaseStore):
    """Common operations of the company and EVE knowledge stores; subclasses pick the table and scope."""

    def __init__(self, session):
        super().__init__(session)
        self.knowledge: List[Any] = []

    @property
    def repo(self):
        raise NotImplementedError

    async def _scope(self, eve_id: Optional[str]) -> Dict[str, Any]:
        return {"company_id": await self.session.company_id()}

    async def _add(
        self,
        eve_id: Optional[str],
        category: str,
        key: str,
        value: Any,
        importance: int,
        is_private: bool,
        metadata: Optional[Dict[str, Any]],
    ):
        async with self._operation("add_knowledge"):
            entry = await self.repo.create({
                **await self._scope(eve_id),
                "category": category,
                "key": key,
                "value": value,
                "importance": importance,
                "is_private": is_private,
                "metadata": metadata or {},
            })
            self.knowledge = [entry, *self.knowledge]
            return entry
        return None

    async def update_knowledge(self, knowledge_id: str, data: Dict[str, Any]):
        async with self._operation("update_knowledge"):
            entry = await self.repo.update(knowledge_id, data)
            if entry is None:
                raise StoreError("Knowledge entry not found")
            self.knowledge = [entry if k.id == knowledge_id else k for k in self.knowledge]
            return entry
        return None

    async def delete_knowledge(self, knowledge_id: str) -> bool:
        async with self._operation("delete_knowledge"):
            deleted = await self.repo.delete(knowledge_id)
            self.knowledge = [k for k in self.knowledge if k.id != knowledge_id]
            return deleted
        return False

    async def _fetch(self, eve_id: Optional[str]) -> List[Any]:
        async with self._operation("fetch_knowledge"):
            self.knowledge = await self.repo.list_in(await self._scope(eve_id))
            return self.knowledge
        return []

    async def _search(self, eve_id: Optional[str], query: str) -> List[Any]:
        async with self._operation("search_knowledge"):
            self.knowledge = await self.repo.search_in(await self._scope(eve_id), query)
            return self.knowledge
        return []

    async def _by_category(self, eve_id: Optional[str], category: str) -> List[Any]:
        async with self._operation("get_knowledge_by_category"):
            self.knowledge = await self.repo.by_category(await self._scope(eve_id), category)
            return self.knowledge
        return []


class CompanyKnowledgeStore(_KnowledgeStore):
    knowledge: List[CompanyKnowledge]

    @property
    def repo(self) -> CompanyKnowledgeRepository:
        return CompanyKnowledgeRepository(self.session.gateway)

    async def fetch_knowledge(self) -> List[CompanyKnowledge]:
        return await self._fetch(None)

    async def add_knowledge(
        self,
        category: str,
        key: str,
        value: Any,
        importance: int = 1,
        is_private: bool = False,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Optional[CompanyKnowledge]:
        return await self._add(None, category, key, value, importance, is_private, metadata)

    async def search_knowledge(self, query: str) -> List[CompanyKnowledge]:
        return await self._search(None, query)

    async def get_knowledge_by_category(self, category: str) -> List[CompanyKnowledge]:
        return await self._by_category(None, category)


class EveKnowledgeStore(_KnowledgeStore):
    knowledge: List[EVEKnowledge]

    @property
    def repo(self) -> EveKnowledgeRepository:
        return EveKnowledgeRepository(self.session.gateway)

    async def _scope(self, eve_id: Optional[str]) -> Dict[str, Any]:
        return {"eve_id": eve_id, "company_id": await self.session.company_id()}

    async def fetch_knowledge(self, eve_id: str) -> List[EVEKnowledge]:
        return await self._fetch(eve_id)

    async def add_knowledge(
        self,
        eve_id: str,
        category: str,
        key: str,
        value: Any,
        importance: int = 1,
        is_private: bool = False,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Optional[EVEKnowledge]:
        return await self._add(eve_id, category, key, value, importance, is_private, metadata)

    async def search_knowledge(self, eve_id: str, query: str) -> List[EVEKnowledge]:
        return await self._search(eve_id, query)

    async def get_knowledge_by_category(self, eve_id: str, category: str) -> List[EVEKnowledge]:
        return await self._by_category(eve_id, category)
