# eve_core/models/tasks.py

from typing import Optional, Dict, Any
from datetime import datetime

from eve_core.models.api_common import CamelModel, NonEmptyStr
from eve_core.modules.collaboration.models import Priority
from eve_core.modules.tasks.models import TaskStatus


class TaskCreateIn(CamelModel):
    eve_id: NonEmptyStr
    task_description: NonEmptyStr
    action_id: Optional[str] = None
    parameters: Optional[Dict[str, Any]] = None
    priority: Optional[Priority] = None
    due_date: Optional[datetime] = None


class TaskSummary(CamelModel):
    id: str
    eve_id: str
    eve_name: str
    description: str
    status: TaskStatus
    action_id: Optional[str] = None
    parameters: Dict[str, Any] = {}
    priority: str
    due_date: Optional[datetime] = None
    created_at: Optional[datetime] = None


class TaskCreateOut(CamelModel):
    success: bool = True
    task: TaskSummary
    analysis: str
