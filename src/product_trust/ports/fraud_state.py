"""
Fraud State Port
================

Shared state of the fraud pattern detectors: the last alert per pattern and
subject (repeat suppression) and the serials flagged as cloned. Every entry
expires, so the store stays bounded and all workers see the same state.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta

from product_trust.domain.results import AlertSeverity


@dataclass(frozen=True)
class AlertMark:
    """Anchor and severity of the last alert emitted for a subject."""

    anchor: datetime
    severity: AlertSeverity


class FraudStateStore(ABC):
    """
    Port for detector state.

    Implementations:
    - Redis (shared across workers and restarts)
    - In-memory (single process)
    """

    @abstractmethod
    async def last_alert(self, kind: str, subject: str) -> AlertMark | None:
        """Return the unexpired alert mark of ``subject`` for pattern ``kind``."""
        ...

    @abstractmethod
    async def mark_alerted(
        self, kind: str, subject: str, mark: AlertMark, ttl: timedelta
    ) -> None:
        """Remember an emitted alert for ``ttl``."""
        ...

    @abstractmethod
    async def flag_serial(self, serial_number: str, ttl: timedelta) -> None:
        """Flag a serial as cloned for ``ttl``; flagging again extends it."""
        ...

    @abstractmethod
    async def is_flagged(self, serial_number: str) -> bool:
        ...

    async def health_check(self) -> bool:
        return True
