"""
Fraud Pattern Detectors
=======================

Cross-scan fraud detection. Every detector follows the same protocol:

1. Collect evidence for a subject (serial number or product id)
2. Apply the pattern's threshold and grade the severity
3. Suppress repeats within the pattern's window unless severity escalates
   (alert marks live in the shared fraud state store and expire with the
   window)
4. Emit an immutable ``FraudAlert`` through the alert publisher

Detectors:
- SerialCloneDetector: one serial scanned at distant places within 24h
- SupplyChainAnomalyDetector: broken or impossible custody chains
- ReviewFraudDetector: clusters of reviews scored as fraudulent
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from itertools import combinations
from typing import TYPE_CHECKING

from product_trust.domain.geo import great_circle_km, implied_speed_kmh
from product_trust.domain.results import AlertSeverity, FraudAlert, FraudAlertKind
from product_trust.domain.validation import validate_product_id, validate_serial_number
from product_trust.ports.fraud_state import AlertMark

if TYPE_CHECKING:
    from product_trust.domain.entities import ScanRecord
    from product_trust.ports.fraud_state import FraudStateStore
    from product_trust.ports.history import (
        CustodyHistoryStore,
        ReviewSignalStore,
        ScanHistoryStore,
    )
    from product_trust.ports.notification import AlertPublisher

logger = logging.getLogger(__name__)

# Serial clones
CLONE_WINDOW = timedelta(hours=24)
CLONE_DISTANCE_KM = 50.0
FAR_DISTANCE_KM = 500.0
QUICK_SUCCESSION = timedelta(hours=1)
CRITICAL_SITE_COUNT = 3
CLONE_FLAG_TTL = timedelta(days=30)

# Supply chain
MAX_TRANSIT_SPEED_KMH = 1000.0

# Reviews
REVIEW_FRAUD_SCORE = 0.75
MIN_FLAGGED_REVIEWS = 3
HIGH_FLAGGED_SHARE = 0.5
REVIEW_WINDOW = timedelta(days=7)


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class PatternEvidence:
    """Evidence that crossed a pattern's threshold."""

    subject: str
    severity: AlertSeverity
    refs: tuple[str, ...]
    affected: frozenset[str]
    observed_at: datetime  # Timestamp of the newest piece of evidence
    description: str


class FraudPatternDetector(ABC):
    """Base class running the shared detection protocol."""

    kind: FraudAlertKind

    def __init__(
        self,
        *,
        window: timedelta,
        state: FraudStateStore,
        alert_publisher: AlertPublisher | None = None,
    ) -> None:
        self._window = window
        self._state = state
        self._publisher = alert_publisher

    @property
    def window(self) -> timedelta:
        return self._window

    async def detect(self, subject: str) -> FraudAlert | None:
        """
        Run the pattern for one subject.

        Returns:
            The newly emitted alert, or None when nothing crossed the
            threshold or the finding was already alerted in this window.
        """
        evidence = await self._collect(subject)
        if evidence is None:
            return None
        if not await self._is_new(evidence):
            logger.debug(f"{self.kind} for {subject} already alerted in current window")
            return None

        alert = FraudAlert(
            kind=self.kind,
            severity=evidence.severity,
            evidence=list(evidence.refs),
            affected=evidence.affected,
            description=evidence.description,
        )
        await self._state.mark_alerted(
            self.kind,
            evidence.subject,
            AlertMark(anchor=evidence.observed_at, severity=evidence.severity),
            ttl=self._window,
        )
        logger.info(
            f"{self.kind} alert {alert.id} for {subject}: "
            f"severity={alert.severity}, evidence={len(alert.evidence)}"
        )
        self._publish(alert)
        return alert

    async def _is_new(self, evidence: PatternEvidence) -> bool:
        previous = await self._state.last_alert(self.kind, evidence.subject)
        if previous is None:
            return True
        if evidence.observed_at - previous.anchor >= self._window:
            return True
        # Each higher severity is alerted once per window
        return evidence.severity.rank > previous.severity.rank

    def _publish(self, alert: FraudAlert) -> None:
        if self._publisher is None:
            return
        try:
            if not self._publisher.submit(alert):
                logger.warning(f"Alert {alert.id} dropped by publisher")
        except Exception as e:
            logger.warning(f"Alert {alert.id} hand-off failed: {e}")

    @abstractmethod
    async def _collect(self, subject: str) -> PatternEvidence | None:
        """Gather evidence and apply the threshold; None means below threshold."""
        ...


class SerialCloneDetector(FraudPatternDetector):
    """
    Serial clone geofencing.

    A serial scanned at two places more than ``distance_km`` apart within
    the window is a duplicate. Duplicate serials stay flagged in the fraud
    state store for ``flag_ttl`` after their latest detection.
    """

    kind = FraudAlertKind.SERIAL_CLONE

    def __init__(
        self,
        history: ScanHistoryStore,
        state: FraudStateStore,
        *,
        window: timedelta = CLONE_WINDOW,
        distance_km: float = CLONE_DISTANCE_KM,
        flag_ttl: timedelta = CLONE_FLAG_TTL,
        alert_publisher: AlertPublisher | None = None,
    ) -> None:
        super().__init__(window=window, state=state, alert_publisher=alert_publisher)
        self._history = history
        self._distance_km = distance_km
        self._flag_ttl = flag_ttl

    async def is_flagged(self, serial_number: str) -> bool:
        return await self._state.is_flagged(serial_number)

    async def record_scan(self, scan: ScanRecord) -> FraudAlert | None:
        """Persist a scan, then re-run clone detection for its serial."""
        validate_serial_number(scan.serial_number)
        if scan.product_id is not None:
            validate_product_id(scan.product_id)
        await self._history.record(scan)
        return await self.detect(scan.serial_number)

    async def detect_duplicate_serials(self, serial_number: str) -> FraudAlert | None:
        return await self.detect(validate_serial_number(serial_number))

    async def _collect(self, subject: str) -> PatternEvidence | None:
        scans = await self._history.query(subject, self._window)
        if len(scans) < 2:
            return None

        severity: AlertSeverity | None = None
        involved: dict[str, ScanRecord] = {}
        max_distance = 0.0
        for a, b in combinations(scans, 2):
            distance = great_circle_km(a.location, b.location)
            if distance <= self._distance_km:
                continue
            delta = abs(b.scanned_at - a.scanned_at)
            pair_severity = (
                AlertSeverity.HIGH
                if delta < QUICK_SUCCESSION or distance > FAR_DISTANCE_KM
                else AlertSeverity.MEDIUM
            )
            if severity is None or pair_severity.rank > severity.rank:
                severity = pair_severity
            involved[a.scan_id] = a
            involved[b.scan_id] = b
            max_distance = max(max_distance, distance)

        if severity is None:
            return None

        sites = self._distinct_sites(list(involved.values()))
        if sites >= CRITICAL_SITE_COUNT:
            severity = AlertSeverity.CRITICAL

        await self._state.flag_serial(subject, self._flag_ttl)
        ordered = sorted(involved.values(), key=lambda s: s.scanned_at)
        affected = {subject} | {s.product_id for s in ordered if s.product_id}
        return PatternEvidence(
            subject=subject,
            severity=severity,
            refs=tuple(f"scan:{s.scan_id}" for s in ordered),
            affected=frozenset(affected),
            observed_at=max(s.scanned_at for s in scans),
            description=(
                f"Serial {subject} scanned at {sites} sites up to "
                f"{max_distance:.0f} km apart within {self._window}"
            ),
        )

    def _distinct_sites(self, scans: list[ScanRecord]) -> int:
        """Count scan locations that are pairwise more than the clone distance apart."""
        sites = []
        for scan in sorted(scans, key=lambda s: s.scanned_at):
            if all(great_circle_km(scan.location, site) > self._distance_km for site in sites):
                sites.append(scan.location)
        return len(sites)


class SupplyChainAnomalyDetector(FraudPatternDetector):
    """
    Custody chain checks.

    Findings per consecutive transfer pair: the receiver does not hand the
    product on (broken chain), the timestamp goes backwards (time travel),
    or the implied transit speed is impossible.
    """

    kind = FraudAlertKind.SUPPLY_CHAIN_ANOMALY

    def __init__(
        self,
        custody: CustodyHistoryStore,
        state: FraudStateStore,
        *,
        window: timedelta = CLONE_WINDOW,
        max_speed_kmh: float = MAX_TRANSIT_SPEED_KMH,
        alert_publisher: AlertPublisher | None = None,
    ) -> None:
        super().__init__(window=window, state=state, alert_publisher=alert_publisher)
        self._custody = custody
        self._max_speed = max_speed_kmh

    async def detect_supply_chain_anomaly(self, product_id: str) -> FraudAlert | None:
        return await self.detect(validate_product_id(product_id))

    async def _collect(self, subject: str) -> PatternEvidence | None:
        transfers = await self._custody.transfers(subject)
        if len(transfers) < 2:
            return None

        refs: list[str] = []
        findings: list[str] = []
        for prev, cur in zip(transfers, transfers[1:]):
            if cur.from_party != prev.to_party:
                findings.append(f"broken chain {prev.to_party} -> {cur.from_party}")
                refs.append(f"transfer:{cur.transfer_id}")
            if cur.transferred_at < prev.transferred_at:
                findings.append(f"transfer {cur.transfer_id} predates its predecessor")
                refs.append(f"transfer:{cur.transfer_id}")
            elif prev.location is not None and cur.location is not None:
                hours = (cur.transferred_at - prev.transferred_at).total_seconds() / 3600
                speed = implied_speed_kmh(great_circle_km(prev.location, cur.location), hours)
                if speed > self._max_speed:
                    findings.append(f"implied transit speed {speed:.0f} km/h")
                    refs.append(f"transfer:{cur.transfer_id}")

        if not findings:
            return None

        if len(findings) >= 3:
            severity = AlertSeverity.CRITICAL
        elif len(findings) == 2:
            severity = AlertSeverity.HIGH
        else:
            severity = AlertSeverity.MEDIUM

        return PatternEvidence(
            subject=subject,
            severity=severity,
            refs=tuple(dict.fromkeys(refs)),
            affected=frozenset({subject}),
            observed_at=max(t.transferred_at for t in transfers),
            description="; ".join(findings),
        )


class ReviewFraudDetector(FraudPatternDetector):
    """Flags products with a cluster of reviews the external model scored as fraud."""

    kind = FraudAlertKind.REVIEW_FRAUD

    def __init__(
        self,
        reviews: ReviewSignalStore,
        state: FraudStateStore,
        *,
        window: timedelta = REVIEW_WINDOW,
        fraud_score_threshold: float = REVIEW_FRAUD_SCORE,
        min_flagged: int = MIN_FLAGGED_REVIEWS,
        alert_publisher: AlertPublisher | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        super().__init__(window=window, state=state, alert_publisher=alert_publisher)
        self._reviews = reviews
        self._score_threshold = fraud_score_threshold
        self._min_flagged = min_flagged
        self._clock = clock

    async def detect_review_fraud(self, product_id: str) -> FraudAlert | None:
        return await self.detect(validate_product_id(product_id))

    async def _collect(self, subject: str) -> PatternEvidence | None:
        reviews = await self._reviews.reviews(subject, since=self._clock() - self._window)
        flagged = [r for r in reviews if r.fraud_score >= self._score_threshold]
        if len(flagged) < self._min_flagged:
            return None

        share = len(flagged) / len(reviews)
        severity = AlertSeverity.HIGH if share >= HIGH_FLAGGED_SHARE else AlertSeverity.MEDIUM
        flagged.sort(key=lambda r: r.posted_at)
        return PatternEvidence(
            subject=subject,
            severity=severity,
            refs=tuple(f"review:{r.review_id}" for r in flagged),
            affected=frozenset({subject}),
            observed_at=flagged[-1].posted_at,
            description=f"{len(flagged)} of {len(reviews)} reviews scored as fraudulent",
        )
