# eve_core/modules/eves/repository.py

from typing import List, Optional

from fastapi import Depends
from loguru import logger

from eve_core.core.database import get_query_gateway
from eve_core.core.gateway import QueryGateway, in_
from eve_core.core.repository import BaseRepository
from .models import EVE, Action, EVEAction


class EveRepository(BaseRepository[EVE]):
    model = EVE
    table_name = "eves"

    async def list_for_company(self, company_id: str) -> List[EVE]:
        return await self.list_by({"company_id": company_id}, order=[("created_at", "desc")])


class ActionRepository(BaseRepository[Action]):
    model = Action
    table_name = "actions"

    async def list_visible_to(self, company_id: Optional[str]) -> List[Action]:
        """Global actions plus the ones owned by the company."""
        globals_ = await self.list_by({"is_global": True}, order=[("name", "asc")])
        if not company_id:
            return globals_
        owned = await self.list_by({"company_id": company_id, "is_global": False}, order=[("name", "asc")])
        return globals_ + owned


class EveActionRepository(BaseRepository[EVEAction]):
    model = EVEAction
    table_name = "eve_actions"

    async def actions_for_eve(self, eve_id: str, action_repo: ActionRepository) -> List[Action]:
        links = await self.list_by({"eve_id": eve_id})
        action_ids = [link.action_id for link in links]
        if not action_ids:
            return []
        logger.debug(f"EVE {eve_id} has {len(action_ids)} assigned action(s).")
        return await action_repo.list_by({"id": in_(action_ids)})


async def get_eve_repository(gateway: QueryGateway = Depends(get_query_gateway)) -> EveRepository:
    return EveRepository(gateway)


async def get_action_repository(gateway: QueryGateway = Depends(get_query_gateway)) -> ActionRepository:
    return ActionRepository(gateway)


async def get_eve_action_repository(gateway: QueryGateway = Depends(get_query_gateway)) -> EveActionRepository:
    return EveActionRepository(gateway)
