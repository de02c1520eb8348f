"""
Domain Layer
============

Core business entities, value objects and signal results.
These are persistence-agnostic and contain no infrastructure dependencies.
"""

from product_trust.domain.entities import (
    BoundingBox,
    CustodyTransfer,
    GeoPoint,
    ProductImage,
    ReviewSignal,
    ScanContext,
    ScanRecord,
)
from product_trust.domain.errors import (
    ConfigurationError,
    InsufficientSignalsError,
    InvalidInputError,
    SignalTimeoutError,
    SourceUnavailableError,
    TrustEngineError,
)
from product_trust.domain.results import (
    AlertSeverity,
    AuthenticityResult,
    FeedbackKind,
    FraudAlert,
    FraudAlertKind,
    SignalMethod,
    SignalResult,
    TamperIndicator,
    TamperingFeedback,
    TamperingResult,
    TamperingStatus,
    TrustScore,
    TrustSignal,
    VerificationAttempt,
    VerificationMethod,
    VerificationOutcome,
)
from product_trust.domain.weights import SignalWeights

__all__ = [
    # Entities
    "BoundingBox",
    "CustodyTransfer",
    "GeoPoint",
    "ProductImage",
    "ReviewSignal",
    "ScanContext",
    "ScanRecord",
    # Errors
    "ConfigurationError",
    "InsufficientSignalsError",
    "InvalidInputError",
    "SignalTimeoutError",
    "SourceUnavailableError",
    "TrustEngineError",
    # Results
    "AlertSeverity",
    "AuthenticityResult",
    "FeedbackKind",
    "FraudAlert",
    "FraudAlertKind",
    "SignalMethod",
    "SignalResult",
    "TamperIndicator",
    "TamperingFeedback",
    "TamperingResult",
    "TamperingStatus",
    "TrustScore",
    "TrustSignal",
    "VerificationAttempt",
    "VerificationMethod",
    "VerificationOutcome",
    # Configuration
    "SignalWeights",
]
