"""Logging setup: loguru sinks and per-component loggers."""

from __future__ import annotations

import sys
from typing import Any

from loguru import logger

DEFAULT_FORMAT = "{time:HH:mm:ss} | {level:<7} | {extra[component]:<8} | {message}"
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level:<7} | {extra[component]} | {message}"


def get_logger(component: str):
    """Module logger; ``component`` fills the third column of the default format."""
    return logger.bind(component=component)


def _sink_options(level: str, json_format: bool, fmt: str) -> dict[str, Any]:
    if json_format:
        return {"level": level, "serialize": True}
    return {"level": level, "format": fmt}


def configure(
    level: str = "INFO",
    fmt: str = "",
    json_format: bool = False,
    file: str = "",
    rotation: str = "10 MB",
    retention: str = "7 days",
) -> None:
    """Replace every sink. Called from SpotiBot.__init__; safe to call again."""
    logger.remove()
    logger.configure(extra={"component": "spotibot"})
    logger.add(sys.stderr, **_sink_options(level, json_format, fmt or DEFAULT_FORMAT))
    if file:
        logger.add(
            file,
            rotation=rotation,
            retention=retention,
            **_sink_options(level, json_format, fmt or FILE_FORMAT),
        )


# Usable before configure(): stderr at INFO.
configure()
