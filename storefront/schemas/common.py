from pydantic import BaseModel
from typing import Dict, Generic, List, Optional, TypeVar

T = TypeVar("T")


class ActionResult(BaseModel, Generic[T]):
    """Uniform result envelope returned by every storefront action."""
    success: bool
    data: Optional[T] = None
    error: Optional[str] = None
    field_errors: Optional[Dict[str, List[str]]] = None

    @classmethod
    def ok(cls, data: Optional[T] = None) -> "ActionResult[T]":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: Optional[str] = None, field_errors: Optional[Dict[str, List[str]]] = None) -> "ActionResult[T]":
        return cls(success=False, error=error, field_errors=field_errors)


class Page(BaseModel, Generic[T]):
    items: List[T]
    total: int
    page: int
    limit: int
    total_pages: int

    @classmethod
    def build(cls, items: List[T], total: int, page: int, limit: int) -> "Page[T]":
        return cls(
            items=items,
            total=total,
            page=page,
            limit=limit,
            total_pages=(total + limit - 1) // limit,
        )


def clamp_pagination(page: int, limit: int, default_limit: int = 10, max_limit: int = 100) -> tuple[int, int]:
    if page < 1:
        page = 1
    if limit < 1 or limit > max_limit:
        limit = default_limit
    return page, limit
