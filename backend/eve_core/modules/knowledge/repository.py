# eve_core/modules/knowledge/repository.py

from typing import Any, Dict, List

from eve_core.core.gateway import contains_text, ilike
from eve_core.core.repository import BaseRepository, ModelType
from .models import CompanyKnowledge, EVEKnowledge


class _KnowledgeRepository(BaseRepository[ModelType]):
    """Shared queries of the company and EVE knowledge tables; ``scope`` holds the owner filters."""

    async def list_in(self, scope: Dict[str, Any]) -> List[ModelType]:
        return await self.list_by(scope, order=[("importance", "desc")])

    async def search_in(self, scope: Dict[str, Any], query: str) -> List[ModelType]:
        pattern = contains_text(query)
        return await self.list_by(
            scope,
            or_filters=[("key", ilike(pattern)), ("value->>text", ilike(pattern))],
            order=[("importance", "desc")],
        )

    async def by_category(self, scope: Dict[str, Any], category: str) -> List[ModelType]:
        return await self.list_by({**scope, "category": category}, order=[("importance", "desc")])


class CompanyKnowledgeRepository(_KnowledgeRepository[CompanyKnowledge]):
    model = CompanyKnowledge
    table_name = "company_knowledge"


class EveKnowledgeRepository(_KnowledgeRepository[EVEKnowledge]):
    model = EVEKnowledge
    table_name = "eve_knowledge"
