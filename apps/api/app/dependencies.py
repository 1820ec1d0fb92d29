"""
FastAPI dependencies: collaborators held on ``app.state`` and caller identity
resolved from the auth cookie.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict

from fastapi import Depends, Query, Request
from pymongo.database import Database

from src.catalog.config import AppConfig
from src.catalog.data.mongo import is_object_id, parse_object_id
from src.catalog.errors import AuthenticationError, PermissionDeniedError
from src.catalog.media import ImageStore
from src.catalog.notifications.email import Notifier
from src.catalog.security import decode_access_token
from src.catalog.service.user_service import UserService


def get_config(request: Request) -> AppConfig:
    return request.app.state.config


def get_db(request: Request) -> Database:
    return request.app.state.db


def get_image_store(request: Request) -> ImageStore:
    return request.app.state.image_store


def get_notifier(request: Request) -> Notifier:
    return request.app.state.notifier


@dataclass(frozen=True)
class PageParams:
    page: int
    limit: int


def page_params(
    page: int = Query(1, ge=1, description="Page number (starting at 1)."),
    limit: int = Query(10, ge=1, le=100, description="Items per page (1 to 100)."),
) -> PageParams:
    return PageParams(page=page, limit=limit)


def _resolve_user(request: Request, config: AppConfig, db: Database) -> Dict[str, Any]:
    token = request.cookies.get(config.auth.cookie_name)
    if not token:
        raise AuthenticationError("Not authenticated")

    claims = decode_access_token(config.auth, token)
    if not is_object_id(claims["sub"]):
        raise AuthenticationError("Invalid or expired token")

    user = UserService(db).find_by_id(parse_object_id(claims["sub"], "user"))
    if user is None:
        raise AuthenticationError("User not found. Unauthorized.")
    return user


def get_current_user(
    request: Request,
    config: AppConfig = Depends(get_config),
    db: Database = Depends(get_db),
) -> Dict[str, Any]:
    """The caller's user document (without password); 401 otherwise."""
    return _resolve_user(request, config, db)


def require_roles(*roles: str) -> Callable[..., Dict[str, Any]]:
    allowed = frozenset(roles)

    def dependency(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
        if user.get("role") not in allowed:
            raise PermissionDeniedError("Forbidden: Insufficient permissions")
        return user

    return dependency


require_admin = require_roles("admin")
