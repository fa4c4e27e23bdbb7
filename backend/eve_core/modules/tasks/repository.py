# eve_core/modules/tasks/repository.py

from typing import List, Optional

from fastapi import Depends

from eve_core.core.database import get_query_gateway
from eve_core.core.gateway import QueryGateway
from eve_core.core.repository import BaseRepository
from .models import Task


class TaskRepository(BaseRepository[Task]):
    model = Task
    table_name = "tasks"

    async def list_for_company(self, company_id: str, eve_id: Optional[str] = None) -> List[Task]:
        filters = {"company_id": company_id}
        if eve_id:
            filters["eve_id"] = eve_id
        return await self.list_by(filters, order=[("created_at", "desc")])


async def get_task_repository(gateway: QueryGateway = Depends(get_query_gateway)) -> TaskRepository:
    return TaskRepository(gateway)
