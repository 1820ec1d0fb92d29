from __future__ import annotations

from typing import Any, Dict, Literal, Optional

from fastapi import APIRouter, Depends, Query, Response
from pymongo.database import Database

from src.catalog.config import AppConfig
from src.catalog.service.user_service import UserService

from ..dependencies import PageParams, get_config, get_current_user, get_db, page_params, require_admin
from ..errors import error_responses
from ..schemas.auth import AdminUserUpdateRequest, UserUpdateRequest
from ..schemas.common import paged

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", summary="Current user's profile", responses=error_responses(401))
def get_me(user: Dict[str, Any] = Depends(get_current_user), db: Database = Depends(get_db)):
    return {"user": UserService(db).get_user(user["_id"])}


@router.put("/me", summary="Update own profile", responses=error_responses(401, 409, 422))
def update_me(
    body: UserUpdateRequest,
    user: Dict[str, Any] = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    updated = UserService(db).update_profile(user["_id"], body.to_document())
    return {"message": "Profile updated", "user": updated}


@router.delete("/me", summary="Delete own account", responses=error_responses(401))
def delete_me(
    response: Response,
    user: Dict[str, Any] = Depends(get_current_user),
    db: Database = Depends(get_db),
    config: AppConfig = Depends(get_config),
):
    deleted = UserService(db).delete_account(user["_id"])
    response.delete_cookie(config.auth.cookie_name)
    return {"message": "Account deleted", "deletedUser": deleted}


@router.get("", summary="List users (admin)", responses=error_responses(401, 403))
def list_users(
    role: Optional[Literal["user", "admin"]] = None,
    verified: Optional[bool] = None,
    search: Optional[str] = Query(default=None, description="Matches username or email."),
    paging: PageParams = Depends(page_params),
    _admin: Dict[str, Any] = Depends(require_admin),
    db: Database = Depends(get_db),
):
    result = UserService(db).list_users(role, verified, search, paging.page, paging.limit)
    return paged("users", result)


@router.get("/{user_id}", summary="Get a user (admin)", responses=error_responses(400, 401, 403, 404))
def get_user(user_id: str, _admin: Dict[str, Any] = Depends(require_admin), db: Database = Depends(get_db)):
    return {"user": UserService(db).get_user(user_id)}


@router.put("/{user_id}", summary="Update a user (admin)", responses=error_responses(400, 401, 403, 404, 409))
def update_user(
    user_id: str,
    body: AdminUserUpdateRequest,
    _admin: Dict[str, Any] = Depends(require_admin),
    db: Database = Depends(get_db),
):
    return {"message": "User updated", "user": UserService(db).admin_update_user(user_id, body.to_document())}


@router.delete("/{user_id}", summary="Delete a user (admin)", responses=error_responses(400, 401, 403, 404))
def delete_user(user_id: str, admin: Dict[str, Any] = Depends(require_admin), db: Database = Depends(get_db)):
    deleted = UserService(db).admin_delete_user(user_id, admin["_id"])
    return {"message": "User deleted", "deletedUser": deleted}
