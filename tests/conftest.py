"""
Pytest Fixtures
===============

Shared fakes and fixtures for all test modules.

The fakes implement the ports with scripted answers and record how often
they were called, so tests can assert both results and fan-out behavior.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from datetime import datetime

import pytest

from product_trust.adapters.outbound.memory import (
    InMemoryFeedbackStore,
    InMemoryFraudStateStore,
    InMemoryScanHistoryStore,
    InMemoryTrustScoreCache,
)
from product_trust.adapters.outbound.weights_config import ConfiguredWeightsProvider
from product_trust.application.trust_service import ProductTrustService
from product_trust.domain.entities import (
    BoundingBox,
    CustodyTransfer,
    ProductImage,
    ReviewSignal,
    ScanContext,
)
from product_trust.domain.results import (
    FraudAlert,
    SignalMethod,
    SignalResult,
    TamperIndicator,
    VerificationOutcome,
)
from product_trust.domain.services.authenticity_verifier import (
    CascadingAuthenticityVerifier,
    LedgerVerification,
    RegistryVerification,
    VisualVerification,
)
from product_trust.domain.services.fraud_detector import (
    ReviewFraudDetector,
    SerialCloneDetector,
    SupplyChainAnomalyDetector,
)
from product_trust.domain.services.tampering_classifier import TamperingClassifier
from product_trust.domain.services.trust_aggregator import (
    SignalBudgets,
    TrustScoreAggregator,
)
from product_trust.domain.weights import SignalWeights
from product_trust.ports.history import CustodyHistoryStore, ReviewSignalStore
from product_trust.ports.notification import AlertPublisher
from product_trust.ports.signal_sources import FreshnessSource, SocialProofSource
from product_trust.ports.verification_sources import (
    DistributedLedger,
    ManufacturerRegistry,
    SourceLookup,
    VisualComparator,
)
from product_trust.ports.vision import (
    ExpiryDateExtractor,
    ExtractedDate,
    IndicatorDetection,
    TamperIndicatorDetector,
)

PRODUCT_ID = "SKU-48213"
SERIAL = "SN-000184"


# -----------------------------------------------------------------------------
# Fakes
# -----------------------------------------------------------------------------


class Scripted:
    """Scripted answer with optional delay and error, counting calls."""

    def __init__(self, result=None, *, error: Exception | None = None, delay: float = 0.0):
        self.result = result
        self.error = error
        self.delay = delay
        self.calls = 0

    async def answer(self):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.result


class FakeRegistry(Scripted, ManufacturerRegistry):
    async def lookup(self, serial_number: str, batch_code: str | None) -> SourceLookup:
        return await self.answer()


class FakeLedger(Scripted, DistributedLedger):
    async def lookup(self, product_id: str) -> SourceLookup:
        return await self.answer()


class FakeComparator(Scripted, VisualComparator):
    async def compare(self, images: Sequence[ProductImage], reference_set: str) -> SourceLookup:
        return await self.answer()


class FakeDetector(TamperIndicatorDetector):
    def __init__(
        self,
        indicator: TamperIndicator,
        confidence: float = 0.1,
        *,
        with_region: bool = False,
        error: Exception | None = None,
        delay: float = 0.0,
    ) -> None:
        self._indicator = indicator
        self.confidence = confidence
        self.with_region = with_region
        self.error = error
        self.delay = delay
        self.calls = 0

    @property
    def indicator(self) -> TamperIndicator:
        return self._indicator

    async def detect(self, image: ProductImage) -> IndicatorDetection:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        region = (
            BoundingBox(image_id=image.image_id, x=10, y=20, width=40, height=30)
            if self.with_region
            else None
        )
        return IndicatorDetection(
            detected=self.confidence >= 0.5,
            confidence=self.confidence,
            bounding_box=region,
        )


class FakeExtractor(Scripted, ExpiryDateExtractor):
    async def extract(self, images: Sequence[ProductImage]) -> ExtractedDate:
        return await self.answer()


class FakeFreshness(Scripted, FreshnessSource):
    """Answers a fixed 0-100 value; None means absent."""

    async def freshness(self, product_id: str, context: ScanContext) -> SignalResult[float]:
        value = await self.answer()
        if value is None:
            return SignalResult[float].absent(SignalMethod.FRESHNESS, "no data")
        return SignalResult[float].of(value, 0.9, SignalMethod.FRESHNESS)


class FakeSocialProof(Scripted, SocialProofSource):
    async def social_proof(self, product_id: str) -> SignalResult[float]:
        value = await self.answer()
        if value is None:
            return SignalResult[float].absent(SignalMethod.SOCIAL_PROOF, "no social data")
        return SignalResult[float].of(value, 1.0, SignalMethod.SOCIAL_PROOF)


class FakeCustody(CustodyHistoryStore):
    def __init__(self, transfers: list[CustodyTransfer] | None = None) -> None:
        self.records = list(transfers or [])

    async def transfers(self, product_id: str) -> list[CustodyTransfer]:
        return [t for t in self.records if t.product_id == product_id]


class FakeReviews(ReviewSignalStore):
    def __init__(self, reviews: list[ReviewSignal] | None = None) -> None:
        self.records = list(reviews or [])

    async def reviews(self, product_id: str, since: datetime) -> list[ReviewSignal]:
        return [r for r in self.records if r.product_id == product_id and r.posted_at >= since]


class RecordingPublisher(AlertPublisher):
    def __init__(self, *, accept: bool = True) -> None:
        self.alerts: list[FraudAlert] = []
        self.accept = accept

    def submit(self, alert: FraudAlert) -> bool:
        self.alerts.append(alert)
        return self.accept


# -----------------------------------------------------------------------------
# Input fixtures
# -----------------------------------------------------------------------------


@pytest.fixture
def images() -> list[ProductImage]:
    return [
        ProductImage(image_id="front", sha256="a" * 64),
        ProductImage(image_id="seal", sha256="b" * 64),
    ]


@pytest.fixture
def context(images: list[ProductImage]) -> ScanContext:
    return ScanContext(serial_number=SERIAL, batch_code="LOT-7", images=tuple(images))


# -----------------------------------------------------------------------------
# Port fakes
# -----------------------------------------------------------------------------


@pytest.fixture
def registry() -> FakeRegistry:
    """Registry that confidently confirms the serial."""
    return FakeRegistry(SourceLookup(VerificationOutcome.PASS, 0.95, "registered"))


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger(SourceLookup(VerificationOutcome.INCONCLUSIVE, 0.0, "no record"))


@pytest.fixture
def comparator() -> FakeComparator:
    return FakeComparator(SourceLookup(VerificationOutcome.INCONCLUSIVE, 0.3, "partial match"))


@pytest.fixture
def detectors() -> list[FakeDetector]:
    """Four detectors that see nothing suspicious."""
    return [FakeDetector(indicator, 0.1) for indicator in TamperIndicator]


@pytest.fixture
def freshness() -> FakeFreshness:
    return FakeFreshness(70.0)


@pytest.fixture
def social_proof() -> FakeSocialProof:
    return FakeSocialProof(60.0)


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def cache() -> InMemoryTrustScoreCache:
    return InMemoryTrustScoreCache()


@pytest.fixture
def feedback_store() -> InMemoryFeedbackStore:
    return InMemoryFeedbackStore()


@pytest.fixture
def scan_history() -> InMemoryScanHistoryStore:
    return InMemoryScanHistoryStore()


@pytest.fixture
def fraud_state() -> InMemoryFraudStateStore:
    return InMemoryFraudStateStore()


@pytest.fixture
def weights_provider() -> ConfiguredWeightsProvider:
    return ConfiguredWeightsProvider(
        SignalWeights(),
        {
            "pharma": SignalWeights(
                authenticity=0.4, tampering=0.3, freshness=0.2, social_proof=0.1
            )
        },
    )


# -----------------------------------------------------------------------------
# Services
# -----------------------------------------------------------------------------


@pytest.fixture
def clone_detector(
    scan_history: InMemoryScanHistoryStore,
    fraud_state: InMemoryFraudStateStore,
    publisher: RecordingPublisher,
) -> SerialCloneDetector:
    return SerialCloneDetector(scan_history, fraud_state, alert_publisher=publisher)


@pytest.fixture
def verifier(
    registry: FakeRegistry,
    ledger: FakeLedger,
    comparator: FakeComparator,
    publisher: RecordingPublisher,
    clone_detector: SerialCloneDetector,
) -> CascadingAuthenticityVerifier:
    return CascadingAuthenticityVerifier(
        [
            RegistryVerification(registry, timeout_seconds=0.2),
            LedgerVerification(ledger, timeout_seconds=0.2),
            VisualVerification(comparator, timeout_seconds=0.5),
        ],
        is_cloned_serial=clone_detector.is_flagged,
        alert_publisher=publisher,
    )


@pytest.fixture
def classifier(
    detectors: list[FakeDetector], feedback_store: InMemoryFeedbackStore
) -> TamperingClassifier:
    return TamperingClassifier(detectors, timeout_seconds=0.5, feedback_store=feedback_store)


@pytest.fixture
def budgets() -> SignalBudgets:
    return SignalBudgets(lookup_seconds=0.2, vision_seconds=0.5, overhead_seconds=0.1)


@pytest.fixture
def aggregator(
    verifier: CascadingAuthenticityVerifier,
    classifier: TamperingClassifier,
    freshness: FakeFreshness,
    social_proof: FakeSocialProof,
    weights_provider: ConfiguredWeightsProvider,
    cache: InMemoryTrustScoreCache,
    budgets: SignalBudgets,
) -> TrustScoreAggregator:
    return TrustScoreAggregator(
        verifier,
        classifier,
        freshness,
        social_proof,
        weights_provider,
        cache,
        budgets=budgets,
    )


@pytest.fixture
def custody() -> FakeCustody:
    return FakeCustody()


@pytest.fixture
def reviews() -> FakeReviews:
    return FakeReviews()


@pytest.fixture
def trust_service(
    aggregator: TrustScoreAggregator,
    verifier: CascadingAuthenticityVerifier,
    classifier: TamperingClassifier,
    clone_detector: SerialCloneDetector,
    custody: FakeCustody,
    reviews: FakeReviews,
    fraud_state: InMemoryFraudStateStore,
    publisher: RecordingPublisher,
) -> ProductTrustService:
    return ProductTrustService(
        aggregator,
        verifier,
        classifier,
        clone_detector,
        supply_chain_detector=SupplyChainAnomalyDetector(
            custody, fraud_state, alert_publisher=publisher
        ),
        review_detector=ReviewFraudDetector(reviews, fraud_state, alert_publisher=publisher),
    )
