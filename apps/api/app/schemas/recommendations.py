"""
Pydantic schemas for the recommendations endpoint.

- RecommendationOut: one recommended movie or TV show.
- RecommendationsResponse: the envelope returned by GET /v1/recommendations.

Notes:
- The list holds at most five entries and never contains an entity the
  caller has already reviewed.
- When the caller has no usable review history, the list is the catalog's
  best-rated entities instead of a personalised pick.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class RecommendationOut(BaseModel):
    """
    API response model for a single recommended entity.

    Attributes
    ----------
    id:
        Entity identifier (24-char hex).
    title:
        Human-readable title.
    type:
        ``movie`` or ``tv``.
    posterUrl:
        Poster image URL, when one was uploaded.
    genres:
        Genre names of the entity.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(
        ...,
        description="Entity identifier.",
        examples=["650a8b3f4f1234567890abcd"],
    )

    title: str = Field(
        ...,
        description="Entity title.",
        examples=["Inception"],
    )

    type: str = Field(
        ...,
        description="Content type, `movie` or `tv`.",
        examples=["movie"],
    )

    posterUrl: Optional[str] = Field(
        default=None,
        description="Poster image URL.",
        examples=["https://res.cloudinary.com/demo/image/upload/poster.webp"],
    )

    genres: List[str] = Field(
        default_factory=list,
        description="Genre names.",
        examples=[["Sci-Fi", "Thriller"]],
    )


class RecommendationsResponse(BaseModel):
    recommendations: List[RecommendationOut] = Field(
        ...,
        description="Up to five unreviewed entities, best match first.",
    )
