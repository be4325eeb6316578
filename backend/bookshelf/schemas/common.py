"""Response envelope shared by every endpoint."""

from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field

DataT = TypeVar("DataT")


class Envelope(BaseModel, Generic[DataT]):
    """Successful response: ``{"success": true, "message": ..., "data": ...}``."""

    success: bool = True
    message: str
    data: DataT | None = None


class ErrorEnvelope(BaseModel):
    """Error response: ``{"success": false, "message": ..., "errors": ...}``."""

    success: bool = False
    message: str
    errors: Any = Field(default=None, description="Per-field reasons or failure details")
