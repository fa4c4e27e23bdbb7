# eve_core/modules/office/repository.py

from typing import Any, Dict, List, Optional

from fastapi import Depends

from eve_core.core.database import get_query_gateway
from eve_core.core.gateway import DatabaseError, QueryGateway
from eve_core.core.repository import BaseRepository
from .models import Company, UserProfile, UserInvitation, LogEntry, CompanyAISettings


class CompanyRepository(BaseRepository[Company]):
    model = Company
    table_name = "companies"


class UserRepository(BaseRepository[UserProfile]):
    model = UserProfile
    table_name = "users"

    async def list_for_company(self, company_id: str) -> List[UserProfile]:
        return await self.list_by({"company_id": company_id}, order=[("created_at", "asc")])

    async def create_with_id(self, data: Dict[str, Any]) -> UserProfile:
        """Profiles reuse the auth user id, so the id is written as given."""
        try:
            rows = await self.gateway.insert(self.table_name, self._prepare_data_for_db(data))
        except DatabaseError as e:
            self._handle_db_exception(e, "create_with_id")
        if not rows:
            raise DatabaseError(f"Failed to retrieve row after insert into {self.table_name}.")
        return self._to_model(rows[0])

    async def get_in_company(self, company_id: str, user_id: str) -> Optional[UserProfile]:
        return await self.get_by({"id": user_id, "company_id": company_id})

    async def update_in_company(self, company_id: str, user_id: str, data: Dict[str, Any]) -> Optional[UserProfile]:
        rows = await self.update_by({"id": user_id, "company_id": company_id}, data)
        return rows[0] if rows else None


class UserInvitationRepository(BaseRepository[UserInvitation]):
    model = UserInvitation
    table_name = "user_invitations"

    async def pending_for(self, company_id: str, email: str) -> Optional[UserInvitation]:
        return await self.get_by({"company_id": company_id, "email": email, "status": "pending"})


class LogRepository(BaseRepository[LogEntry]):
    model = LogEntry
    table_name = "logs"

    async def list_recent(self, company_id: str, eve_id: Optional[str] = None, limit: int = 100) -> List[LogEntry]:
        filters = {"company_id": company_id}
        if eve_id:
            filters["eve_id"] = eve_id
        return await self.list_by(filters, order=[("created_at", "desc")], limit=limit)

    async def list_for_action(self, action_id: str, limit: int = 20) -> List[LogEntry]:
        return await self.list_by({"action_id": action_id}, order=[("created_at", "desc")], limit=limit)


class CompanyAISettingsRepository(BaseRepository[CompanyAISettings]):
    model = CompanyAISettings
    table_name = "company_ai_settings"

    async def get_for_company(self, company_id: str) -> Optional[CompanyAISettings]:
        return await self.get_by({"company_id": company_id})


async def get_company_repository(gateway: QueryGateway = Depends(get_query_gateway)) -> CompanyRepository:
    return CompanyRepository(gateway)
