"""Request bodies for people, characters, reviews, articles and awards."""

from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import Field

from .common import CamelModel

PersonRole = Literal["actor", "director"]


class PersonCreate(CamelModel):
    name: str = Field(..., min_length=1, examples=["Christopher Nolan"])
    bio: Optional[str] = None
    date_of_birth: Optional[datetime] = None
    photo_url: Optional[str] = None
    roles: List[PersonRole] = Field(default_factory=list)


class PersonUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1)
    bio: Optional[str] = None
    date_of_birth: Optional[datetime] = None
    photo_url: Optional[str] = None
    roles: Optional[List[PersonRole]] = None


class CharacterCreate(CamelModel):
    name: str = Field(..., min_length=1, examples=["Dom Cobb"])
    description: Optional[str] = None
    actor: str = Field(..., description="Person id; the person must have the actor role.")
    entity: str = Field(..., description="Entity id.")


class CharacterBulkCreate(CamelModel):
    characters: List[CharacterCreate] = Field(..., min_length=1)


class CharacterUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    actor: Optional[str] = None
    entity: Optional[str] = None


class ReviewCreate(CamelModel):
    entity: str = Field(..., description="Entity id.")
    rating: int = Field(..., ge=1, le=10, examples=[8])
    comment: Optional[str] = Field(default=None, max_length=1000)


class ReviewUpdate(CamelModel):
    rating: Optional[int] = Field(default=None, ge=1, le=10)
    comment: Optional[str] = Field(default=None, max_length=1000)


class ArticleCreate(CamelModel):
    title: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1)
    related_entity: Optional[str] = None


class ArticleUpdate(CamelModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    content: Optional[str] = Field(default=None, min_length=1)
    related_entity: Optional[str] = None


class AwardCreate(CamelModel):
    name: str = Field(..., min_length=1, examples=["Academy Award"])
    category: str = Field(..., min_length=1, examples=["Best Director"])
    year: int = Field(..., ge=1900, le=2100, examples=[2011])
    entity: Optional[str] = None
    person: Optional[str] = None


class AwardBulkCreate(CamelModel):
    awards: List[AwardCreate] = Field(..., min_length=1)


class AwardUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1)
    category: Optional[str] = Field(default=None, min_length=1)
    year: Optional[int] = Field(default=None, ge=1900, le=2100)
    entity: Optional[str] = None
    person: Optional[str] = None
