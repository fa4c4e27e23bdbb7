# eve_core/models/collaboration.py

from pydantic import Field
from typing import Optional, Dict, Any
from datetime import datetime

from eve_core.models.api_common import CamelModel, NonEmptyStr
from eve_core.modules.collaboration.models import RequestType, CollaborationStatus, Priority


class CollaborationRequestIn(CamelModel):
    source_eve_id: NonEmptyStr
    target_eve_id: NonEmptyStr
    task_id: NonEmptyStr
    request_type: RequestType
    message: NonEmptyStr
    priority: Optional[Priority] = None
    due_date: Optional[datetime] = None
    metadata: Optional[Dict[str, Any]] = None


class CollaborationSummary(CamelModel):
    id: str
    source_eve: str = Field(..., description="Source EVE name")
    target_eve: str = Field(..., description="Target EVE name")
    task_id: Optional[str] = None
    request_type: RequestType
    status: CollaborationStatus
    message: Optional[str] = None
    created_at: Optional[datetime] = None


class CollaborationRequestOut(CamelModel):
    success: bool = True
    collaboration: CollaborationSummary
