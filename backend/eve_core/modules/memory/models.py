# eve_core/modules/memory/models.py

from pydantic import BaseModel
from typing import Optional, List, Dict, Any, Literal
from datetime import datetime

from eve_core.core.repository import TableRow

MemoryType = Literal["conversation", "task", "fact", "preference", "relationship"]


class Memory(TableRow):
    id: str
    eve_id: str
    company_id: Optional[str] = None
    type: MemoryType
    key: str
    value: Any = None
    importance: int = 1
    last_accessed: Optional[datetime] = None
    expiry: Optional[datetime] = None
    metadata: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class MemoryVector(TableRow):
    id: Optional[str] = None
    memory_id: str
    embedding: Optional[Any] = None  # pgvector comes back as a string literal
    text_content: Optional[str] = None


class RankedIdsPayload(BaseModel):
    """Shape the ranking model must answer with; anything else is rejected."""
    ranked_ids: List[str]


def extract_text(value: Any) -> Optional[str]:
    """Text to embed for a memory value: a string, or the ``text`` of an object."""
    if isinstance(value, str):
        return value if value.strip() else None
    if isinstance(value, dict) and isinstance(value.get("text"), str) and value["text"].strip():
        return value["text"]
    return None
