"""
Canonical error envelope shared by every failing response:

    {"error": {"code": ..., "message": ..., "request_id": ..., "details": ...}}
"""

from __future__ import annotations

import uuid
from typing import Any, Dict, Optional

from fastapi import Request
from pydantic import BaseModel, Field

from .error_codes import ErrorCode

_EXAMPLE_REQUEST_ID = "3f2b8c1e9a4d4b6f8e0c7d5a1b2c3d4e"

_EXAMPLES: Dict[int, Dict[str, Any]] = {
    400: {"code": ErrorCode.BAD_REQUEST, "message": "Invalid entity ID format"},
    401: {"code": ErrorCode.UNAUTHORIZED, "message": "Not authenticated"},
    403: {"code": ErrorCode.FORBIDDEN, "message": "Forbidden: Insufficient permissions"},
    404: {"code": ErrorCode.NOT_FOUND, "message": "Entity not found"},
    409: {"code": ErrorCode.CONFLICT, "message": "You have already reviewed this entity"},
    422: {"code": ErrorCode.VALIDATION_ERROR, "message": "Request validation failed"},
    500: {"code": ErrorCode.INTERNAL_ERROR, "message": "Internal Server Error"},
}


class ErrorBody(BaseModel):
    code: str = Field(..., description="Stable error code.", examples=["NOT_FOUND"])
    message: str = Field(..., description="Human-readable message.", examples=["Entity not found"])
    request_id: str = Field(..., description="Matches the X-Request-ID response header.")
    details: Optional[Any] = Field(default=None, description="Optional structured context.")


class ErrorResponse(BaseModel):
    error: ErrorBody


def make_error(
    code: str,
    message: str,
    request_id: str,
    details: Optional[Any] = None,
) -> ErrorResponse:
    return ErrorResponse(error=ErrorBody(code=code, message=message, request_id=request_id, details=details))


def get_request_id(request: Request) -> str:
    """Request id set by the middleware, falling back to the header or a fresh id."""
    return (
        getattr(request.state, "request_id", None)
        or request.headers.get("X-Request-ID")
        or uuid.uuid4().hex
    )


def error_responses(*status_codes: int) -> Dict[int, Dict[str, Any]]:
    """OpenAPI ``responses`` entries documenting the error envelope with examples."""
    responses: Dict[int, Dict[str, Any]] = {}
    for status_code in status_codes:
        sample = _EXAMPLES[status_code]
        example = make_error(
            code=sample["code"].value,
            message=sample["message"],
            request_id=_EXAMPLE_REQUEST_ID,
        ).model_dump()
        responses[status_code] = {
            "model": ErrorResponse,
            "description": sample["message"],
            "content": {"application/json": {"example": example}},
        }
    return responses
