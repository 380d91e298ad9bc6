from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class PageResponse(BaseModel, Generic[T]):
    items: list[T]  # type: ignore[type-var]
    total: int
    page: int
    limit: int
    pages: int
