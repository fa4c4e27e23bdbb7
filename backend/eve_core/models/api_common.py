# eve_core/models/api_common.py

from pydantic import BaseModel, ConfigDict, Field, StringConstraints
from pydantic.alias_generators import to_camel
from typing import Annotated, Optional


class CamelModel(BaseModel):
    """Request/response models exchanged with the dashboard use camelCase keys."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ErrorResponse(BaseModel):
    """Body of every non-2xx JSON response."""
    error: str = Field(..., description="Human readable error message.")


class SuccessResponse(BaseModel):
    success: bool = True
    message: Optional[str] = None


class ChatMessage(BaseModel):
    role: str
    content: str


NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
