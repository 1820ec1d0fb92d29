from __future__ import annotations

from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.catalog.service.base import PageResult


class CamelModel(BaseModel):
    """Request bodies use camelCase on the wire, matching stored documents."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_unset=True)


class PaginationOut(BaseModel):
    total: int = Field(..., examples=[42])
    page: int = Field(..., examples=[1])
    limit: int = Field(..., examples=[10])
    pages: int = Field(..., examples=[5])


def paged(key: str, result: PageResult, **extra: Any) -> Dict[str, Any]:
    payload: Dict[str, Any] = {key: result.items, "pagination": result.pagination.as_dict()}
    payload.update(extra)
    return payload
