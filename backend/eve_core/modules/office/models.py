# eve_core/modules/office/models.py

from pydantic import BaseModel, Field
from typing import Optional, Dict, Any, Literal
from datetime import datetime

from eve_core.core.repository import TableRow

UserRole = Literal["company_admin", "system_admin", "staff"]
LogStatus = Literal["success", "error", "pending", "cancelled"]


class Company(TableRow):
    id: str
    name: str
    logo_url: Optional[str] = None
    primary_color: Optional[str] = None
    secondary_color: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class UserProfile(TableRow):
    id: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    company_id: Optional[str] = None
    role: UserRole = "staff"
    is_active: bool = True
    created_at: Optional[datetime] = None


class UserInvitation(TableRow):
    id: str
    company_id: str
    email: str
    role: UserRole = "staff"
    invited_by: Optional[str] = None
    status: Literal["pending", "accepted", "revoked"] = "pending"
    created_at: Optional[datetime] = None


class LogEntry(TableRow):
    id: str
    eve_id: Optional[str] = None
    action_id: Optional[str] = None
    user_id: Optional[str] = None
    company_id: Optional[str] = None
    event_type: str
    status: str
    message: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None


class CompanyAISettings(TableRow):
    id: Optional[str] = None
    company_id: str
    openai_api_key: Optional[str] = None
    openai_org_id: Optional[str] = None
    use_company_keys: bool = False
    default_model: Optional[str] = None
    token_quota: Optional[int] = None
    tokens_used: int = 0

    def quota_usage_percent(self) -> Optional[int]:
        """Share of the token quota already spent, capped at 100; None without a quota."""
        if not self.token_quota:
            return None
        return min(100, round(self.tokens_used / self.token_quota * 100))


class AISettingsUpdate(BaseModel):
    """Fields a company admin may change; usage counters stay server-owned."""
    openai_api_key: Optional[str] = None
    openai_org_id: Optional[str] = None
    use_company_keys: bool = False
    default_model: str = "gpt-4"
    token_quota: Optional[int] = Field(default=None, ge=0)


class AuditEvent(BaseModel):
    """Arguments of the ``log_event`` stored procedure."""
    eve_id: Optional[str] = None
    action_id: Optional[str] = None
    company_id: Optional[str] = None
    event_type: str
    status: LogStatus = "success"
    message: str
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def as_rpc_params(self) -> Dict[str, Any]:
        return {
            "p_eve_id": self.eve_id,
            "p_action_id": self.action_id,
            "p_company_id": self.company_id,
            "p_event_type": self.event_type,
            "p_status": self.status,
            "p_message": self.message,
            "p_metadata": self.metadata,
        }


class UsageRecord(BaseModel):
    """Arguments of the ``log_ai_usage`` stored procedure."""
    company_id: str
    tokens_used: int
    model: str
    endpoint: str

    def as_rpc_params(self) -> Dict[str, Any]:
        return {
            "p_company_id": self.company_id,
            "p_tokens_used": self.tokens_used,
            "p_model": self.model,
            "p_endpoint": self.endpoint,
        }
