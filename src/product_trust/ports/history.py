"""
History Store Ports
===================

Read-mostly stores the fraud pattern detectors consume: scan history,
custody transfers and scored reviews.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from product_trust.domain.entities import CustodyTransfer, ReviewSignal, ScanRecord


class ScanHistoryStore(ABC):
    """
    Port for the scan-history store.

    Responsibilities:
    - Persist scans as they arrive
    - Return the scans of a serial within a window ending at its latest scan
    """

    @abstractmethod
    async def record(self, scan: ScanRecord) -> None:
        """Persist one scan. Recording the same scan twice is a no-op."""
        ...

    @abstractmethod
    async def query(self, serial_number: str, window: timedelta) -> list[ScanRecord]:
        """
        Return the scans of ``serial_number`` whose timestamp lies within
        ``window`` of the most recent scan, oldest first.
        """
        ...

    async def health_check(self) -> bool:
        return True


class CustodyHistoryStore(ABC):
    """Port for supply-chain custody transfers."""

    @abstractmethod
    async def transfers(self, product_id: str) -> list[CustodyTransfer]:
        """Return the recorded custody transfers of a product, in recorded order."""
        ...


class ReviewSignalStore(ABC):
    """Port for reviews scored by the external review-fraud model."""

    @abstractmethod
    async def reviews(self, product_id: str, since: datetime) -> list[ReviewSignal]:
        """Return the scored reviews of a product posted at or after ``since``."""
        ...
