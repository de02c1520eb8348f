"""
Domain Results
==============

Value objects representing signal outcomes, verification trails, tampering
classifications, trust scores and fraud alerts. These flow from the signal
producers through the aggregator to the API response.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum, auto
from typing import Generic, TypeVar
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, model_validator

from product_trust.domain.entities import BoundingBox

T = TypeVar("T")


class SignalMethod(StrEnum):
    """Producer of a signal."""

    REGISTRY = auto()
    LEDGER = auto()
    VISUAL = auto()
    AUTHENTICITY_CASCADE = auto()
    TAMPER_INDICATOR = auto()
    TAMPER_CLASSIFIER = auto()
    EXPIRY_OCR = auto()
    FRESHNESS = auto()
    SOCIAL_PROOF = auto()


class SignalResult(BaseModel, Generic[T]):
    """
    Uniform envelope every signal producer returns.

    An absent signal carries no value and its confidence is ignored by the
    aggregator; ``reason`` says why it is absent ("timeout",
    "source unavailable", ...).
    """

    present: bool
    value: T | None = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    method: SignalMethod
    reason: str | None = None

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _check_presence(self) -> SignalResult[T]:
        if not self.present and self.value is not None:
            raise ValueError("absent signal must not carry a value")
        if self.present and self.value is None:
            raise ValueError("present signal requires a value")
        return self

    @classmethod
    def of(cls, value: T, confidence: float, method: SignalMethod) -> SignalResult[T]:
        """Build a present signal, clamping confidence into [0, 1]."""
        return cls(
            present=True,
            value=value,
            confidence=max(0.0, min(1.0, confidence)),
            method=method,
        )

    @classmethod
    def absent(cls, method: SignalMethod, reason: str) -> SignalResult[T]:
        """Build an absent signal."""
        return cls(present=False, method=method, reason=reason)


# -----------------------------------------------------------------------------
# Authenticity
# -----------------------------------------------------------------------------


class VerificationMethod(StrEnum):
    """Authenticity verification methods, in cascade priority order."""

    REGISTRY = auto()
    LEDGER = auto()
    VISUAL = auto()


class VerificationOutcome(StrEnum):
    """Outcome of one verification attempt."""

    PASS = auto()
    FAIL = auto()
    INCONCLUSIVE = auto()


class VerificationAttempt(BaseModel):
    """One try of one verification method."""

    method: VerificationMethod
    outcome: VerificationOutcome
    confidence: float = Field(..., ge=0.0, le=1.0)
    detail: str = ""
    available: bool = Field(default=True, description="False when the backing source was down")
    latency_ms: float = Field(default=0.0, ge=0.0)

    model_config = {"frozen": True}


class AuthenticityResult(BaseModel):
    """
    Outcome of the authenticity cascade.

    ``trail`` lists every attempt in the order it ran; it is non-empty
    whenever verification was attempted.
    """

    is_authentic: bool
    confidence: float = Field(..., ge=0.0, le=1.0)
    trail: list[VerificationAttempt] = Field(default_factory=list)
    flags: frozenset[str] = Field(default_factory=frozenset)

    model_config = {"frozen": True}

    @property
    def methods_attempted(self) -> list[VerificationMethod]:
        return [attempt.method for attempt in self.trail]

    @property
    def any_source_available(self) -> bool:
        return any(attempt.available for attempt in self.trail)


# -----------------------------------------------------------------------------
# Tampering
# -----------------------------------------------------------------------------


class TamperIndicator(StrEnum):
    """Independent packaging tamper indicators."""

    BROKEN_SEAL = auto()
    MISALIGNED_LABEL = auto()
    ADHESIVE_RESIDUE = auto()
    BOX_DEFORMATION = auto()


class TamperingStatus(StrEnum):
    """Display status derived from tampering confidence."""

    INTACT = auto()
    POSSIBLE = auto()  # Recommend manual inspection
    TAMPERED = auto()  # Evidence-backed


class TamperingResult(BaseModel):
    """Packaging analysis outcome."""

    status: TamperingStatus
    confidence: float = Field(..., ge=0.0, le=1.0)
    indicators: frozenset[TamperIndicator] = Field(default_factory=frozenset)
    evidence_regions: list[BoundingBox] = Field(default_factory=list)

    model_config = {"frozen": True}


class FeedbackKind(StrEnum):
    """Kind of user correction to a tampering classification."""

    FALSE_POSITIVE = auto()
    FALSE_NEGATIVE = auto()


class TamperingFeedback(BaseModel):
    """A user-submitted correction. Append-only training signal."""

    scan_id: str
    product_id: str
    reported_status: TamperingStatus
    kind: FeedbackKind
    note: str | None = Field(default=None, max_length=2000)
    recorded_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    model_config = {"frozen": True}

    @property
    def key(self) -> tuple[str, str, TamperingStatus]:
        return (self.scan_id, self.product_id, self.reported_status)


# -----------------------------------------------------------------------------
# Trust score
# -----------------------------------------------------------------------------


class TrustSignal(StrEnum):
    """Signals combined into the composite trust score."""

    AUTHENTICITY = auto()
    TAMPERING = auto()
    FRESHNESS = auto()
    SOCIAL_PROOF = auto()


class TrustScore(BaseModel):
    """
    Composite trust judgment for one scanned product.

    Superseded, never mutated, on recomputation. ``confidence`` is the share
    of signals that were present; ``missing_signals`` names the others.
    """

    product_id: str
    overall: float = Field(..., ge=0.0, le=100.0, description="Weighted score (0-100)")
    signals: dict[TrustSignal, SignalResult[float]]
    confidence: float = Field(..., ge=0.0, le=1.0)
    missing_signals: frozenset[TrustSignal] = Field(default_factory=frozenset)
    weights_applied: dict[TrustSignal, float] = Field(default_factory=dict)

    # Explainability
    authenticity: AuthenticityResult | None = None
    tampering: TamperingResult | None = None
    summary: str | None = None

    fingerprint: str = Field(..., description="Cache key component derived from the inputs")
    category: str | None = None
    computed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    cached: bool = Field(default=False, description="Whether result was from cache")

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _check_signal_accounting(self) -> TrustScore:
        present = {name for name, signal in self.signals.items() if signal.present}
        if not present:
            raise ValueError("a trust score requires at least one present signal")
        expected_missing = set(TrustSignal) - present
        if set(self.missing_signals) != expected_missing:
            raise ValueError("missing_signals must list exactly the absent signals")
        if abs(self.confidence - len(present) / len(TrustSignal)) > 1e-9:
            raise ValueError("confidence must equal the share of present signals")
        return self


# -----------------------------------------------------------------------------
# Fraud
# -----------------------------------------------------------------------------


class FraudAlertKind(StrEnum):
    """Fraud pattern that triggered an alert."""

    SERIAL_CLONE = auto()
    REVIEW_FRAUD = auto()
    SUPPLY_CHAIN_ANOMALY = auto()
    COUNTERFEIT = auto()  # Emitted by the authenticity cascade


class AlertSeverity(StrEnum):
    """Alert severity, ordered low to critical."""

    LOW = auto()
    MEDIUM = auto()
    HIGH = auto()
    CRITICAL = auto()

    @property
    def rank(self) -> int:
        return _SEVERITY_ORDER.index(self)


_SEVERITY_ORDER = (
    AlertSeverity.LOW,
    AlertSeverity.MEDIUM,
    AlertSeverity.HIGH,
    AlertSeverity.CRITICAL,
)


class FraudAlert(BaseModel):
    """Immutable fraud alert handed to the notification sink."""

    id: UUID = Field(default_factory=uuid4)
    kind: FraudAlertKind
    severity: AlertSeverity
    evidence: list[str] = Field(default_factory=list, description="Opaque evidence references")
    affected: frozenset[str] = Field(default_factory=frozenset, description="Affected entity ids")
    description: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    model_config = {"frozen": True}
