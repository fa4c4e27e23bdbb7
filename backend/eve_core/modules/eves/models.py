# eve_core/modules/eves/models.py

from typing import Optional, List, Dict, Any, Literal
from datetime import datetime

from eve_core.core.repository import TableRow

EveStatus = Literal["active", "inactive", "training", "error"]


class EVE(TableRow):
    id: str
    name: str
    description: Optional[str] = None
    avatar_url: Optional[str] = None
    company_id: str
    status: EveStatus = "active"
    capabilities: Optional[List[str]] = None
    personality: Optional[str] = None
    settings: Optional[Dict[str, Any]] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Action(TableRow):
    id: str
    name: str
    description: Optional[str] = None
    endpoint_url: Optional[str] = None
    method: str = "GET"
    required_params: Optional[List[Any]] = None
    headers: Optional[Dict[str, str]] = None
    is_global: bool = False
    company_id: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class EVEAction(TableRow):
    id: Optional[str] = None
    eve_id: str
    action_id: str
    parameters: Optional[Dict[str, Any]] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
