"""Console logging setup for the server process."""

from __future__ import annotations

import logging
import sys
from datetime import datetime


class ConsoleFormatter(logging.Formatter):
    """[HH:MM:SS] [LEVEL] [module] message"""

    def format(self, record: logging.LogRecord) -> str:
        formatted = (
            f"[{datetime.now().strftime('%H:%M:%S')}] [{record.levelname}] [{record.module}] {record.getMessage()}"
        )
        if record.exc_info:
            formatted += f"\n{self.formatException(record.exc_info)}"
        return formatted


def setup_logging(level: str = "INFO") -> None:
    """Install a single stdout handler on the root logger."""
    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(getattr(logging, level.upper()))

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(ConsoleFormatter())
    root.addHandler(handler)

    # paho and websockets are chatty at DEBUG.
    for name in ("websockets", "paho"):
        logging.getLogger(name).setLevel(max(root.level, logging.INFO))
