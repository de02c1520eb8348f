"""
In-Memory Adapters
==================

Process-local stores used when Redis is disabled (development, tests,
single-worker deployments).
"""

from __future__ import annotations

import logging
import time
from collections import defaultdict
from collections.abc import Callable
from datetime import timedelta
from typing import TYPE_CHECKING

from product_trust.ports.cache import TrustScoreCache
from product_trust.ports.feedback import FeedbackStore
from product_trust.ports.fraud_state import AlertMark, FraudStateStore
from product_trust.ports.history import ScanHistoryStore

if TYPE_CHECKING:
    from product_trust.domain.entities import ScanRecord
    from product_trust.domain.results import TamperingFeedback, TrustScore

logger = logging.getLogger(__name__)


class InMemoryTrustScoreCache(TrustScoreCache):
    """TTL cache in a dict, expired entries dropped on read."""

    def __init__(
        self,
        default_ttl_seconds: int = 3600,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._default_ttl = default_ttl_seconds
        self._clock = clock
        self._entries: dict[tuple[str, str], tuple[float, TrustScore]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    async def get(self, product_id: str, fingerprint: str) -> TrustScore | None:
        key = (product_id, fingerprint)
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, score = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return score

    async def set(
        self,
        product_id: str,
        fingerprint: str,
        score: TrustScore,
        ttl_seconds: int | None = None,
    ) -> None:
        ttl = ttl_seconds or self._default_ttl
        self._entries[(product_id, fingerprint)] = (self._clock() + ttl, score)

    async def invalidate_product(self, product_id: str) -> int:
        keys = [key for key in self._entries if key[0] == product_id]
        for key in keys:
            del self._entries[key]
        return len(keys)

    async def clear(self) -> int:
        count = len(self._entries)
        self._entries.clear()
        return count


class InMemoryScanHistoryStore(ScanHistoryStore):
    """Scans per serial, kept for ``retention`` behind the newest scan."""

    def __init__(self, retention: timedelta = timedelta(hours=72)) -> None:
        self._retention = retention
        self._scans: dict[str, dict[str, ScanRecord]] = defaultdict(dict)

    async def record(self, scan: ScanRecord) -> None:
        scans = self._scans[scan.serial_number]
        scans[scan.scan_id] = scan
        newest = max(s.scanned_at for s in scans.values())
        for scan_id in [k for k, s in scans.items() if newest - s.scanned_at > self._retention]:
            del scans[scan_id]

    async def query(self, serial_number: str, window: timedelta) -> list[ScanRecord]:
        scans = list(self._scans.get(serial_number, {}).values())
        if not scans:
            return []
        newest = max(s.scanned_at for s in scans)
        return sorted(
            (s for s in scans if newest - s.scanned_at <= window),
            key=lambda s: s.scanned_at,
        )


class InMemoryFeedbackStore(FeedbackStore):
    def __init__(self) -> None:
        self._feedback: dict[str, list[TamperingFeedback]] = defaultdict(list)

    async def append(self, feedback: TamperingFeedback) -> None:
        self._feedback[feedback.product_id].append(feedback)

    async def list_for_product(self, product_id: str) -> list[TamperingFeedback]:
        return list(self._feedback.get(product_id, []))


class InMemoryFraudStateStore(FraudStateStore):
    """Alert marks and clone flags with TTLs; expired entries are swept on write."""

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._marks: dict[tuple[str, str], tuple[float, AlertMark]] = {}
        self._flags: dict[str, float] = {}

    def __len__(self) -> int:
        return len(self._marks) + len(self._flags)

    async def last_alert(self, kind: str, subject: str) -> AlertMark | None:
        entry = self._marks.get((kind, subject))
        if entry is None or self._clock() >= entry[0]:
            return None
        return entry[1]

    async def mark_alerted(
        self, kind: str, subject: str, mark: AlertMark, ttl: timedelta
    ) -> None:
        self._sweep()
        self._marks[(kind, subject)] = (self._clock() + ttl.total_seconds(), mark)

    async def flag_serial(self, serial_number: str, ttl: timedelta) -> None:
        self._sweep()
        self._flags[serial_number] = self._clock() + ttl.total_seconds()

    async def is_flagged(self, serial_number: str) -> bool:
        expires_at = self._flags.get(serial_number)
        return expires_at is not None and self._clock() < expires_at

    def _sweep(self) -> None:
        now = self._clock()
        for key in [k for k, (expires_at, _) in self._marks.items() if now >= expires_at]:
            del self._marks[key]
        for serial in [s for s, expires_at in self._flags.items() if now >= expires_at]:
            del self._flags[serial]
