# eve_core/modules/knowledge/models.py

from typing import Optional, Dict, Any
from datetime import datetime

from eve_core.core.repository import TableRow


class CompanyKnowledge(TableRow):
    id: str
    company_id: str
    category: str
    key: str
    value: Any = None
    importance: int = 1
    is_private: bool = False
    metadata: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class EVEKnowledge(CompanyKnowledge):
    eve_id: str
