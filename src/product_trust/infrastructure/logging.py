"""
Logging utilities for API runtime.
"""

from __future__ import annotations

import logging
import time

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Probe endpoints hit by orchestrators every few seconds
THROTTLED_PATHS = ("/health/live", "/health/ready")

NOISY_LOGGERS = ("httpx", "httpcore", "asyncio")


class HealthProbeAccessFilter(logging.Filter):
    """Throttle health probe access log entries to reduce log noise."""

    def __init__(
        self,
        min_interval_seconds: float = 120.0,
        paths: tuple[str, ...] = THROTTLED_PATHS,
    ) -> None:
        super().__init__()
        self._min_interval_seconds = min_interval_seconds
        self._paths = paths
        self._last_logged: dict[str, float] = {}

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        path = next((p for p in self._paths if p in message), None)
        if path is None:
            return True

        now = time.monotonic()
        last = self._last_logged.get(path)
        if last is None or (now - last) >= self._min_interval_seconds:
            self._last_logged[path] = now
            return True

        return False


def configure_logging(level: str = "INFO") -> None:
    """
    Set up root logging and quiet chatty client libraries.

    Safe to call more than once: the entrypoint and every worker process
    call it.
    """
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    access_logger = logging.getLogger("uvicorn.access")
    if not any(isinstance(f, HealthProbeAccessFilter) for f in access_logger.filters):
        access_logger.addFilter(HealthProbeAccessFilter())
