# eve_core/modules/workflows/models.py

from typing import Optional, List, Dict, Any, Literal
from datetime import datetime

from pydantic import Field

from eve_core.core.repository import TableRow

WorkflowStatus = Literal["active", "inactive", "draft"]
TriggerType = Literal["manual", "scheduled", "event"]
StepType = Literal["task", "condition", "action", "delay", "notification"]
ExecutionStatus = Literal["running", "completed", "failed", "cancelled"]


class WorkflowStep(TableRow):
    id: str
    workflow_id: str
    type: StepType
    config: Dict[str, Any] = Field(default_factory=dict)
    next_steps: List[str] = Field(default_factory=list)
    position: Optional[Dict[str, float]] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Workflow(TableRow):
    id: str
    name: str
    description: Optional[str] = None
    company_id: str
    status: WorkflowStatus = "draft"
    trigger_type: TriggerType = "manual"
    trigger_config: Dict[str, Any] = Field(default_factory=dict)
    metadata: Optional[Dict[str, Any]] = None
    steps: List[WorkflowStep] = Field(default_factory=list)  # filled on detail reads, not a column
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class WorkflowExecution(TableRow):
    id: str
    workflow_id: str
    company_id: str
    status: ExecutionStatus = "running"
    current_step_id: Optional[str] = None
    results: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
