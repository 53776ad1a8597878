"""Entrypoint: python -m shadowme"""
from __future__ import annotations

import uvicorn

from shadowme.api.middleware.correlation_id import configure_logging
from shadowme.config import settings


def main() -> None:
    configure_logging(settings.LOG_LEVEL)
    uvicorn.run(
        "shadowme.app:create_app",
        factory=True,
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
