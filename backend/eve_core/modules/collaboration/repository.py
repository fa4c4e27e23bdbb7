# eve_core/modules/collaboration/repository.py

from typing import List, Optional

from fastapi import Depends

from eve_core.core.database import get_query_gateway
from eve_core.core.gateway import QueryGateway, eq
from eve_core.core.repository import BaseRepository
from .models import Collaboration


class CollaborationRepository(BaseRepository[Collaboration]):
    model = Collaboration
    table_name = "collaborations"

    async def list_for_company(self, company_id: str, eve_id: Optional[str] = None) -> List[Collaboration]:
        """Collaborations of a company, optionally where the EVE is on either side."""
        or_filters = [("source_eve_id", eq(eve_id)), ("target_eve_id", eq(eve_id))] if eve_id else None
        return await self.list_by({"company_id": company_id}, order=[("created_at", "desc")], or_filters=or_filters)


async def get_collaboration_repository(gateway: QueryGateway = Depends(get_query_gateway)) -> CollaborationRepository:
    return CollaborationRepository(gateway)
