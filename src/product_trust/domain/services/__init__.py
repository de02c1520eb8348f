"""
Domain Services
===============

Signal producers and the aggregator that combines them.
"""

from product_trust.domain.services.authenticity_verifier import (
    CascadingAuthenticityVerifier,
    LedgerVerification,
    RegistryVerification,
    VerificationStep,
    VisualVerification,
)
from product_trust.domain.services.fraud_detector import (
    FraudPatternDetector,
    ReviewFraudDetector,
    SerialCloneDetector,
    SupplyChainAnomalyDetector,
)
from product_trust.domain.services.freshness import ExpiryFreshnessSource
from product_trust.domain.services.single_flight import SingleFlight
from product_trust.domain.services.tampering_classifier import (
    TamperingClassifier,
    classify_status,
)
from product_trust.domain.services.trust_aggregator import (
    SignalBudgets,
    TrustScoreAggregator,
    combine_signals,
)

__all__ = [
    "CascadingAuthenticityVerifier",
    "ExpiryFreshnessSource",
    "FraudPatternDetector",
    "LedgerVerification",
    "RegistryVerification",
    "ReviewFraudDetector",
    "SerialCloneDetector",
    "SignalBudgets",
    "SingleFlight",
    "SupplyChainAnomalyDetector",
    "TamperingClassifier",
    "TrustScoreAggregator",
    "VerificationStep",
    "VisualVerification",
    "classify_status",
    "combine_signals",
]
