# eve_core/modules/tasks/models.py

from typing import Optional, Dict, Any, Literal
from datetime import datetime

from eve_core.core.repository import TableRow
from eve_core.modules.collaboration.models import Priority

TaskStatus = Literal["pending", "in_progress", "completed", "failed", "cancelled"]


class Task(TableRow):
    id: str
    eve_id: str
    action_id: Optional[str] = None
    description: str
    status: TaskStatus = "pending"
    parameters: Optional[Dict[str, Any]] = None
    result: Optional[Any] = None
    priority: Priority = "medium"
    due_date: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    company_id: str
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
