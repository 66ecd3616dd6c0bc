"""
Console logging setup.
"""

from __future__ import annotations

import logging

import colorlog

_FORMAT = "[{asctime}]{log_color}[{levelname:^8s}] ({name}:{lineno}): {message}"


def configure_logging(level: str = "INFO") -> logging.Logger:
    """Attach a coloured console handler to the root logger (once)."""
    root = logging.getLogger()
    root.setLevel(level)
    if not any(getattr(h, "_livecls_console", False) for h in root.handlers):
        handler = colorlog.StreamHandler()
        handler.setFormatter(
            colorlog.ColoredFormatter(
                _FORMAT,
                style="{",
                log_colors={
                    "DEBUG": "cyan",
                    "INFO": "green",
                    "WARNING": "yellow",
                    "ERROR": "red",
                    "CRITICAL": "bold_red",
                },
            )
        )
        handler._livecls_console = True  # type: ignore[attr-defined]
        root.addHandler(handler)
    return root
