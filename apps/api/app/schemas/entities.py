"""
Request bodies for movies and TV shows.

Nested genres and seasons are explicit models, so a body is decoded in one
step instead of field by field.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from .common import CamelModel


class Genre(CamelModel):
    name: str = Field(..., min_length=1, examples=["Drama"])
    description: Optional[str] = None


class Episode(CamelModel):
    title: str
    episode_number: int = Field(..., ge=1)
    description: Optional[str] = None
    release_date: Optional[datetime] = None
    duration: Optional[int] = Field(default=None, ge=0, description="Runtime in minutes.")
    thumbnail_url: Optional[str] = None


class Season(CamelModel):
    season_number: int = Field(..., ge=1)
    description: Optional[str] = None
    poster_url: Optional[str] = None
    cover_url: Optional[str] = None
    rating: float = Field(default=0, ge=0, le=10)
    episodes: List[Episode] = Field(default_factory=list)


class EntityCreate(CamelModel):
    type: Literal["movie", "tv"]
    title: str = Field(..., min_length=1, examples=["Inception"])
    description: Optional[str] = None
    release_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    genres: List[Genre] = Field(default_factory=list)
    directors: List[str] = Field(default_factory=list, description="Person ids.")
    cast: List[str] = Field(default_factory=list, description="Person ids.")
    seasons: List[Season] = Field(default_factory=list)
    poster_url: Optional[str] = None
    cover_url: Optional[str] = None


class EntityUpdate(CamelModel):
    type: Optional[Literal["movie", "tv"]] = None
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    release_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    genres: Optional[List[Genre]] = None
    directors: Optional[List[str]] = None
    cast: Optional[List[str]] = None
    seasons: Optional[List[Season]] = None
    poster_url: Optional[str] = None
    cover_url: Optional[str] = None


class RatingOut(BaseModel):
    rating: float = Field(..., ge=0, le=10, examples=[8.0])
    entityId: str = Field(..., examples=["650a8b3f4f1234567890abcd"])
    entityTitle: Optional[str] = Field(default=None, examples=["Inception"])
