"""Central logging configuration for the command-line tool.

Applies a root console handler so all module loggers emit at the chosen
level without per-module setup. Library code never calls this; only the
CLI does. Log lines go to stderr so they never mix with command output.
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
    """Configure logging once.

    If the root logger already has handlers, return to prevent duplicate
    output (an embedding application or test runner owns logging then).
    """
    root = logging.getLogger()
    if root.handlers:
        return
    dictConfig(_dict_config(level.upper()))
