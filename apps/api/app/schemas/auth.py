from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, EmailStr, Field

from .common import CamelModel


class SignupRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=50, examples=["cinephile42"])
    email: EmailStr = Field(..., examples=["cinephile@example.com"])
    password: str = Field(..., min_length=6, examples=["s3cret-pass"])


class SigninRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class UserUpdateRequest(CamelModel):
    username: Optional[str] = Field(default=None, min_length=3, max_length=30)
    email: Optional[EmailStr] = None
    avatar: Optional[str] = None
    bio: Optional[str] = Field(default=None, max_length=300)


class AdminUserUpdateRequest(UserUpdateRequest):
    role: Optional[Literal["user", "admin"]] = None
    verified: Optional[bool] = None
