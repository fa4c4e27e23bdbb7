# eve_core/modules/collaboration/models.py

from typing import Optional, Dict, Any, Literal
from datetime import datetime

from eve_core.core.repository import TableRow

RequestType = Literal["delegate", "assist", "review"]
CollaborationStatus = Literal["pending", "accepted", "rejected", "completed"]
Priority = Literal["low", "medium", "high", "critical"]


class Collaboration(TableRow):
    id: str
    source_eve_id: str
    target_eve_id: str
    task_id: Optional[str] = None
    request_type: RequestType
    message: Optional[str] = None
    response: Optional[str] = None
    status: CollaborationStatus = "pending"
    priority: Priority = "medium"
    due_date: Optional[datetime] = None
    metadata: Optional[Dict[str, Any]] = None
    company_id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
