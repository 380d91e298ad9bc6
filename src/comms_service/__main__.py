"""Entrypoint: python -m comms_service"""
from __future__ import annotations

import logging

import uvicorn

from comms_service.api.middleware.correlation_id import CorrelationIdFilter
from comms_service.config import settings


def _configure_logging() -> None:
    handler = logging.StreamHandler()
    handler.addFilter(CorrelationIdFilter())
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s [%(request_id)s] %(name)s: %(message)s")
    )
    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(settings.LOG_LEVEL.upper())


def main() -> None:
    _configure_logging()
    uvicorn.run(
        "comms_service.app:create_app",
        factory=True,
        host="0.0.0.0",
        port=8000,
        log_level=settings.LOG_LEVEL,
        log_config=None,
    )


if __name__ == "__main__":
    main()
