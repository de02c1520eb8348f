"""
Ports Layer (Hexagonal Architecture)
====================================

Abstract interfaces defining the contracts between the engine core and
external systems. These are the "ports" that adapters plug into.

Secondary Ports (driven):
- ManufacturerRegistry, DistributedLedger, VisualComparator: authenticity
- TamperIndicatorDetector, ExpiryDateExtractor: vision collaborators
- FreshnessSource, SocialProofSource: pre-scaled signals
- ScanHistoryStore, CustodyHistoryStore, ReviewSignalStore: fraud evidence
- NotificationSink, AlertPublisher: fraud alert delivery
- FeedbackStore: tampering corrections
- FraudStateStore: detector alert marks and clone flags
- TrustScoreCache: result caching
- WeightsProvider: signal weight configuration
"""

from product_trust.ports.cache import TrustScoreCache
from product_trust.ports.feedback import FeedbackStore
from product_trust.ports.fraud_state import AlertMark, FraudStateStore
from product_trust.ports.history import (
    CustodyHistoryStore,
    ReviewSignalStore,
    ScanHistoryStore,
)
from product_trust.ports.notification import AlertPublisher, NotificationSink
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
from product_trust.ports.weights import WeightsProvider

__all__ = [
    "AlertMark",
    "AlertPublisher",
    "CustodyHistoryStore",
    "DistributedLedger",
    "ExpiryDateExtractor",
    "ExtractedDate",
    "FeedbackStore",
    "FraudStateStore",
    "FreshnessSource",
    "IndicatorDetection",
    "ManufacturerRegistry",
    "NotificationSink",
    "ReviewSignalStore",
    "ScanHistoryStore",
    "SocialProofSource",
    "SourceLookup",
    "TamperIndicatorDetector",
    "TrustScoreCache",
    "VisualComparator",
    "WeightsProvider",
]
