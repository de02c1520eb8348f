"""
Product Trust Service
=====================

Primary application service: the operations exposed to the API.

Orchestrates:
- TrustScoreAggregator: composite trust scores
- CascadingAuthenticityVerifier: standalone authenticity checks
- TamperingClassifier: packaging analysis and feedback
- Fraud detectors: serial clones, custody anomalies, review fraud

Every fraud alert that references a product invalidates that product's
cached scores before the operation returns.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from product_trust.domain.entities import ProductImage, ScanContext, ScanRecord
    from product_trust.domain.results import (
        AuthenticityResult,
        FeedbackKind,
        FraudAlert,
        SignalResult,
        TamperingFeedback,
        TamperingResult,
        TamperingStatus,
        TrustScore,
    )
    from product_trust.domain.services.authenticity_verifier import (
        CascadingAuthenticityVerifier,
    )
    from product_trust.domain.services.fraud_detector import (
        ReviewFraudDetector,
        SerialCloneDetector,
        SupplyChainAnomalyDetector,
    )
    from product_trust.domain.services.tampering_classifier import TamperingClassifier
    from product_trust.domain.services.trust_aggregator import TrustScoreAggregator

logger = logging.getLogger(__name__)


class ProductTrustService:
    """
    Use-case facade over the domain services.

    No concrete infrastructure dependencies are injected directly; the
    domain services only hold ports.
    """

    def __init__(
        self,
        aggregator: TrustScoreAggregator,
        verifier: CascadingAuthenticityVerifier,
        classifier: TamperingClassifier,
        clone_detector: SerialCloneDetector,
        supply_chain_detector: SupplyChainAnomalyDetector | None = None,
        review_detector: ReviewFraudDetector | None = None,
    ) -> None:
        self._aggregator = aggregator
        self._verifier = verifier
        self._classifier = classifier
        self._clone_detector = clone_detector
        self._supply_chain_detector = supply_chain_detector
        self._review_detector = review_detector

    # -------------------------------------------------------------------------
    # Trust and verification
    # -------------------------------------------------------------------------

    async def calculate_trust_score(self, product_id: str, context: ScanContext) -> TrustScore:
        return await self._aggregator.calculate_trust_score(product_id, context)

    async def verify_product(
        self,
        product_id: str,
        serial_number: str,
        batch_code: str | None = None,
        images: Sequence[ProductImage] = (),
    ) -> AuthenticityResult:
        result = await self._verifier.verify(product_id, serial_number, batch_code, images)
        if self._verifier.is_suspected_counterfeit(result):
            await self._aggregator.invalidate_product(product_id)
        return result

    def is_suspected_counterfeit(self, result: AuthenticityResult) -> bool:
        return self._verifier.is_suspected_counterfeit(result)

    # -------------------------------------------------------------------------
    # Packaging
    # -------------------------------------------------------------------------

    async def analyze_packaging(
        self, images: Sequence[ProductImage]
    ) -> SignalResult[TamperingResult]:
        return await self._classifier.analyze(images)

    async def record_tampering_feedback(
        self,
        scan_id: str,
        product_id: str,
        reported_status: TamperingStatus,
        kind: FeedbackKind,
        note: str | None = None,
    ) -> TamperingFeedback:
        return await self._classifier.record_feedback(
            scan_id, product_id, reported_status, kind, note
        )

    async def list_tampering_feedback(self, product_id: str) -> list[TamperingFeedback]:
        return await self._classifier.list_feedback(product_id)

    # -------------------------------------------------------------------------
    # Fraud
    # -------------------------------------------------------------------------

    async def record_scan(self, scan: ScanRecord) -> FraudAlert | None:
        """Store a scan and run clone detection for its serial."""
        alert = await self._clone_detector.record_scan(scan)
        return await self._after_detection(alert)

    async def detect_duplicate_serials(self, serial_number: str) -> FraudAlert | None:
        alert = await self._clone_detector.detect_duplicate_serials(serial_number)
        return await self._after_detection(alert)

    async def detect_supply_chain_anomaly(self, product_id: str) -> FraudAlert | None:
        if self._supply_chain_detector is None:
            raise RuntimeError("Supply-chain anomaly detection is not configured")
        alert = await self._supply_chain_detector.detect_supply_chain_anomaly(product_id)
        return await self._after_detection(alert)

    async def detect_review_fraud(self, product_id: str) -> FraudAlert | None:
        if self._review_detector is None:
            raise RuntimeError("Review fraud detection is not configured")
        alert = await self._review_detector.detect_review_fraud(product_id)
        return await self._after_detection(alert)

    async def is_serial_flagged(self, serial_number: str) -> bool:
        return await self._clone_detector.is_flagged(serial_number)

    async def _after_detection(self, alert: FraudAlert | None) -> FraudAlert | None:
        if alert is None:
            return None
        # Affected serial numbers have no cache entries of their own.
        removed = 0
        for entity_id in sorted(alert.affected):
            removed += await self._aggregator.invalidate_product(entity_id)
        logger.info(
            f"{alert.kind} alert {alert.id} ({alert.severity}) dropped "
            f"{removed} cached score(s)"
        )
        return alert
