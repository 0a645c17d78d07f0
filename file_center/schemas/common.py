"""
Response envelopes shared by every endpoint.

Successful responses wrap their payload in APIResponse; failures are
answered with ErrorResponse bodies by the exception handlers.
"""
from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class APIResponse(BaseModel, Generic[T]):
    success: bool = True
    data: T | None = None


class ErrorResponse(BaseModel):
    success: bool = False

    error: str
    """Short status phrase, e.g. "Not Found"."""

    message: str
    """Human readable explanation, safe to show to clients."""


# OpenAPI documentation for the failures the file endpoints answer with
ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Malformed id token or MIME type"},
    404: {"model": ErrorResponse, "description": "File not found"},
    503: {"model": ErrorResponse, "description": "File store unavailable"},
}
