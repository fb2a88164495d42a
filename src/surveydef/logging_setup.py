"""Central logging configuration for command-line use.

Library modules only create loggers; this applies a single stderr handler
so they become visible. Safe to call more than once.
"""
from __future__ import annotations

import logging
from logging.config import dictConfig


def _dict_config(level: str) -> dict:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(asctime)s %(levelname)s:%(name)s:%(message)s",
            }
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": level,
                "formatter": "default",
                "stream": "ext://sys.stderr",
            }
        },
        "root": {"level": level, "handlers": ["console"]},
    }


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once.

    If the root logger already has handlers, only its level is adjusted.
    """
    root = logging.getLogger()
    if root.handlers:
        root.setLevel(level.upper())
        return
    dictConfig(_dict_config(level.upper()))
