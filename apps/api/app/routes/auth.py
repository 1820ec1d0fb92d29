from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends, Response, status
from pymongo.database import Database

from src.catalog.config import AppConfig
from src.catalog.data.mongo import serialize_document
from src.catalog.security import create_access_token
from src.catalog.service.user_service import UserService

from ..dependencies import get_config, get_current_user, get_db
from ..errors import error_responses
from ..schemas.auth import SigninRequest, SignupRequest

router = APIRouter(prefix="/auth", tags=["auth"])


def _public_user(user: Dict[str, Any]) -> Dict[str, Any]:
    return {k: user.get(k) for k in ("id", "username", "email", "role", "verified")}


def _set_auth_cookie(response: Response, config: AppConfig, user: Dict[str, Any]) -> None:
    token = create_access_token(config.auth, user["id"], user.get("role", "user"))
    response.set_cookie(
        key=config.auth.cookie_name,
        value=token,
        httponly=True,
        secure=config.auth.secure_cookies,
        samesite="lax",
        max_age=config.auth.access_token_expire_minutes * 60,
    )


@router.post(
    "/signup",
    status_code=status.HTTP_201_CREATED,
    summary="Create an account and start a session",
    responses=error_responses(409, 422),
)
def signup(
    body: SignupRequest,
    response: Response,
    db: Database = Depends(get_db),
    config: AppConfig = Depends(get_config),
):
    user = UserService(db).register(body.username, body.email, body.password)
    _set_auth_cookie(response, config, user)
    return {"message": "Signup successful", "user": _public_user(user)}


@router.post(
    "/signin",
    summary="Start a session",
    responses=error_responses(401, 422),
)
def signin(
    body: SigninRequest,
    response: Response,
    db: Database = Depends(get_db),
    config: AppConfig = Depends(get_config),
):
    user = UserService(db).authenticate(body.email, body.password)
    _set_auth_cookie(response, config, user)
    return {"message": "Signin successful", "user": _public_user(user)}


@router.post("/signout", summary="End the session")
def signout(response: Response, config: AppConfig = Depends(get_config)):
    response.delete_cookie(config.auth.cookie_name)
    return {"message": "Signed out successfully"}


@router.get(
    "/verify",
    summary="Check the session cookie",
    responses=error_responses(401),
)
def verify(user: Dict[str, Any] = Depends(get_current_user)):
    return {"valid": True, "user": _public_user(serialize_document(user))}
