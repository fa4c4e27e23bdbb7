# eve_core/models/memory.py

from pydantic import Field, RootModel, field_validator
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from datetime import datetime

from eve_core.models.api_common import CamelModel, NonEmptyStr
from eve_core.modules.memory.models import MemoryType


class _MemoryOperationBase(CamelModel):
    eve_id: NonEmptyStr


class StoreMemoryOp(_MemoryOperationBase):
    operation: Literal["store"]
    key: NonEmptyStr
    type: MemoryType
    value: Any
    importance: int = 1
    expiry: Optional[datetime] = None
    metadata: Optional[Dict[str, Any]] = None

    @field_validator("value")
    @classmethod
    def value_present(cls, v: Any) -> Any:
        if v is None or v == "":
            raise ValueError("value is required")
        return v


class RetrieveMemoryOp(_MemoryOperationBase):
    operation: Literal["retrieve"]
    key: NonEmptyStr


class UpdateMemoryOp(_MemoryOperationBase):
    operation: Literal["update"]
    memory_id: NonEmptyStr
    type: Optional[MemoryType] = None
    value: Optional[Any] = None
    importance: Optional[int] = None
    expiry: Optional[datetime] = None
    metadata: Optional[Dict[str, Any]] = None


class DeleteMemoryOp(_MemoryOperationBase):
    operation: Literal["delete"]
    memory_id: NonEmptyStr


class SearchMemoryOp(_MemoryOperationBase):
    operation: Literal["search"]
    query: NonEmptyStr
    type: Optional[MemoryType] = None


class RankMemoryOp(_MemoryOperationBase):
    operation: Literal["rank"]
    context: NonEmptyStr
    type: Optional[MemoryType] = None


MemoryOperation = Annotated[
    Union[StoreMemoryOp, RetrieveMemoryOp, UpdateMemoryOp, DeleteMemoryOp, SearchMemoryOp, RankMemoryOp],
    Field(discriminator="operation"),
]


class MemoryOperationRequest(RootModel[MemoryOperation]):
    pass


class MemoryMutationOut(CamelModel):
    success: bool = True
    message: str
    memory: Optional[Dict[str, Any]] = None


class MemoryOut(CamelModel):
    memory: Dict[str, Any]


class MemoryListOut(CamelModel):
    memories: List[Dict[str, Any]]
