"""API response schemas."""

from pydantic import BaseModel, Field

from product_trust.domain.entities import ScanRecord
from product_trust.domain.results import (
    AuthenticityResult,
    FraudAlert,
    TamperingResult,
    TrustScore,
)


class TrustScoreResponse(BaseModel):
    """Response from the trust score endpoint."""

    trust_score: TrustScore
    processing_time_ms: float
    cached: bool


class VerifyProductResponse(BaseModel):
    """Authenticity verdict with the full verification trail."""

    product_id: str
    serial_number: str
    result: AuthenticityResult
    suspected_counterfeit: bool
    processing_time_ms: float


class PackagingAnalysisResponse(BaseModel):
    """Tamper analysis; ``result`` is None when no indicator could be evaluated."""

    present: bool
    result: TamperingResult | None = None
    reason: str | None = None
    processing_time_ms: float


class ScanRecordedResponse(BaseModel):
    """A stored scan and the clone alert it raised, if any."""

    scan: ScanRecord
    serial_flagged: bool
    alert: FraudAlert | None = None


class FraudCheckResponse(BaseModel):
    """Outcome of one fraud pattern check."""

    subject: str = Field(..., description="Serial number or product id that was checked")
    alert: FraudAlert | None = None
    flagged: bool = Field(
        default=False,
        description="Serials: flagged as cloned. Products: this check raised an alert.",
    )


class ErrorResponse(BaseModel):
    """Body of typed error responses."""

    detail: str
    field: str | None = None
    reasons: dict[str, str] | None = None
