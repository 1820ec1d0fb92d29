"""
Domain error taxonomy.

Services raise these; the API layer turns them into the canonical error
envelope using ``status_code`` and ``code``.
"""

from __future__ import annotations

from typing import Any, Optional


class CatalogError(Exception):
    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, details: Optional[Any] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class InvalidIdentifierError(CatalogError):
    status_code = 400
    code = "BAD_REQUEST"


class ValidationFailedError(CatalogError):
    status_code = 400
    code = "BAD_REQUEST"


class MediaUploadError(CatalogError):
    status_code = 400
    code = "BAD_REQUEST"


class AuthenticationError(CatalogError):
    status_code = 401
    code = "UNAUTHORIZED"


class PermissionDeniedError(CatalogError):
    status_code = 403
    code = "FORBIDDEN"


class NotFoundError(CatalogError):
    status_code = 404
    code = "NOT_FOUND"


class ConflictError(CatalogError):
    status_code = 409
    code = "CONFLICT"
