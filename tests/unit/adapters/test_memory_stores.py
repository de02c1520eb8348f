"""Unit tests for the in-memory stores."""
from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from product_trust.adapters.outbound.memory import (
    InMemoryFraudStateStore,
    InMemoryScanHistoryStore,
    InMemoryTrustScoreCache,
)
from product_trust.domain.entities import GeoPoint, ScanRecord
from product_trust.domain.results import (
    AlertSeverity,
    SignalMethod,
    SignalResult,
    TrustScore,
    TrustSignal,
)
from product_trust.ports.fraud_state import AlertMark

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def make_score(product_id: str, fingerprint: str) -> TrustScore:
    return TrustScore(
        product_id=product_id,
        overall=100.0,
        signals={
            TrustSignal.TAMPERING: SignalResult[float].of(
                100.0, 0.9, SignalMethod.TAMPER_CLASSIFIER
            ),
        },
        confidence=0.25,
        missing_signals=frozenset(
            {TrustSignal.AUTHENTICITY, TrustSignal.FRESHNESS, TrustSignal.SOCIAL_PROOF}
        ),
        fingerprint=fingerprint,
    )


class TestInMemoryTrustScoreCache:
    """Test InMemoryTrustScoreCache."""

    @pytest.mark.asyncio
    async def test_entries_expire(self) -> None:
        clock = FakeClock()
        cache = InMemoryTrustScoreCache(default_ttl_seconds=60, clock=clock)
        await cache.set("SKU-1", "f1", make_score("SKU-1", "f1"))

        clock.now = 59.0
        assert await cache.get("SKU-1", "f1") is not None

        clock.now = 60.0
        assert await cache.get("SKU-1", "f1") is None
        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_explicit_ttl(self) -> None:
        clock = FakeClock()
        cache = InMemoryTrustScoreCache(default_ttl_seconds=60, clock=clock)
        await cache.set("SKU-1", "f1", make_score("SKU-1", "f1"), ttl_seconds=5)

        clock.now = 6.0

        assert await cache.get("SKU-1", "f1") is None

    @pytest.mark.asyncio
    async def test_invalidate_product_only_touches_that_product(self) -> None:
        cache = InMemoryTrustScoreCache()
        await cache.set("SKU-1", "f1", make_score("SKU-1", "f1"))
        await cache.set("SKU-1", "f2", make_score("SKU-1", "f2"))
        await cache.set("SKU-2", "f1", make_score("SKU-2", "f1"))

        assert await cache.invalidate_product("SKU-1") == 2
        assert await cache.get("SKU-2", "f1") is not None
        assert await cache.clear() == 1
        assert await cache.health_check()


class TestInMemoryScanHistoryStore:
    """Test InMemoryScanHistoryStore."""

    @staticmethod
    def scan(scan_id: str, at: datetime, serial: str = "SN-1") -> ScanRecord:
        return ScanRecord(
            scan_id=scan_id,
            serial_number=serial,
            location=GeoPoint(latitude=0.0, longitude=0.0),
            scanned_at=at,
        )

    @pytest.mark.asyncio
    async def test_query_window_is_relative_to_newest_scan(self) -> None:
        store = InMemoryScanHistoryStore()
        await store.record(self.scan("s2", T0 + timedelta(hours=30)))
        await store.record(self.scan("s1", T0))
        await store.record(self.scan("s3", T0 + timedelta(hours=31)))

        scans = await store.query("SN-1", timedelta(hours=24))

        assert [s.scan_id for s in scans] == ["s2", "s3"]

    @pytest.mark.asyncio
    async def test_retention_prunes_old_scans(self) -> None:
        store = InMemoryScanHistoryStore(retention=timedelta(hours=1))
        await store.record(self.scan("s1", T0))
        await store.record(self.scan("s2", T0 + timedelta(hours=2)))

        scans = await store.query("SN-1", timedelta(days=30))

        assert [s.scan_id for s in scans] == ["s2"]

    @pytest.mark.asyncio
    async def test_naive_timestamps_are_utc(self) -> None:
        store = InMemoryScanHistoryStore()
        await store.record(self.scan("s1", datetime(2026, 3, 2, 9, 0)))
        await store.record(self.scan("s2", T0 + timedelta(minutes=1)))

        scans = await store.query("SN-1", timedelta(hours=1))

        assert len(scans) == 2
        assert scans[0].scanned_at.tzinfo is not None

    @pytest.mark.asyncio
    async def test_unknown_serial(self) -> None:
        assert await InMemoryScanHistoryStore().query("SN-404", timedelta(hours=1)) == []


class TestInMemoryFraudStateStore:
    """Test InMemoryFraudStateStore."""

    @pytest.mark.asyncio
    async def test_alert_mark_expires(self) -> None:
        clock = FakeClock()
        store = InMemoryFraudStateStore(clock=clock)
        mark = AlertMark(anchor=T0, severity=AlertSeverity.HIGH)
        await store.mark_alerted("serial_clone", "SN-1", mark, timedelta(hours=24))

        clock.now = 3600.0
        assert await store.last_alert("serial_clone", "SN-1") == mark
        assert await store.last_alert("review_fraud", "SN-1") is None

        clock.now = 24 * 3600.0
        assert await store.last_alert("serial_clone", "SN-1") is None

    @pytest.mark.asyncio
    async def test_flag_expires_and_can_be_extended(self) -> None:
        clock = FakeClock()
        store = InMemoryFraudStateStore(clock=clock)
        await store.flag_serial("SN-1", timedelta(hours=1))

        clock.now = 1800.0
        await store.flag_serial("SN-1", timedelta(hours=1))
        clock.now = 3600.0
        assert await store.is_flagged("SN-1")

        clock.now = 5400.0
        assert not await store.is_flagged("SN-1")

    @pytest.mark.asyncio
    async def test_expired_entries_are_swept(self) -> None:
        clock = FakeClock()
        store = InMemoryFraudStateStore(clock=clock)
        for i in range(500):
            await store.flag_serial(f"SN-{i}", timedelta(hours=1))
            await store.mark_alerted(
                "serial_clone",
                f"SN-{i}",
                AlertMark(anchor=T0, severity=AlertSeverity.HIGH),
                timedelta(hours=1),
            )
        assert len(store) == 1000

        clock.now = 7200.0
        await store.flag_serial("SN-new", timedelta(hours=1))

        assert len(store) == 1
