"""Central logging configuration for the dashboard service."""

from __future__ import annotations

import logging
import logging.config
from typing import Optional

from salesdash.core.config import settings


_CONFIGURED = False


def configure_logging(default_level: Optional[str] = None) -> None:
    """Route application and uvicorn logs to stdout with one formatter."""

    global _CONFIGURED
    if _CONFIGURED:
        return

    level_name = (default_level or settings.LOG_LEVEL or "INFO").upper()
    handler = {"level": level_name, "handlers": ["stdout"], "propagate": False}

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "standard": {
                    "format": "%(asctime)s %(levelname)s [%(name)s] %(message)s",
                    "datefmt": "%Y-%m-%d %H:%M:%S",
                }
            },
            "handlers": {
                "stdout": {
                    "class": "logging.StreamHandler",
                    "formatter": "standard",
                    "stream": "ext://sys.stdout",
                }
            },
            "root": {
                "level": level_name,
                "handlers": ["stdout"],
            },
            "loggers": {
                "uvicorn": dict(handler),
                "uvicorn.error": dict(handler),
                "uvicorn.access": dict(handler),
                # httpx logs every request at INFO; page traffic is logged by the loader
                "httpx": {"level": "WARNING"},
            },
        }
    )

    _CONFIGURED = True
