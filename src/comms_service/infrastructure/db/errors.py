"""Translate driver/ORM failures into the application error hierarchy."""
from __future__ import annotations

import functools
import logging
from typing import Any, Awaitable, Callable, TypeVar

from sqlalchemy.exc import SQLAlchemyError

from comms_service.application.exceptions import PersistenceFailure

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Awaitable[Any]])


def translate_errors(func: F) -> F:
    @functools.wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return await func(*args, **kwargs)
        except SQLAlchemyError as exc:
            logger.error("Store operation %s failed: %s", func.__qualname__, exc)
            raise PersistenceFailure("Storage temporarily unavailable") from exc

    return wrapper  # type: ignore[return-value]
