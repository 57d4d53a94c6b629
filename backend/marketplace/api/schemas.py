"""Shared API schema bases."""
from typing import Any, List, Optional
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """camelCase on the wire; accepts both the alias and the field name on input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class Pagination(CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int

    @classmethod
    def of(cls, page: int, limit: int, total: int) -> "Pagination":
        return cls(page=page, limit=limit, total=total, total_pages=(total + limit - 1) // limit if limit else 0)


class ErrorResponse(BaseModel):
    """Body of every error response."""

    success: bool = False
    code: str
    message: str
    details: Optional[List[Any]] = None
    missing: Optional[List[str]] = None
