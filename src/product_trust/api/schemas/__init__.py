"""API request/response schemas."""

from product_trust.api.schemas.requests import (
    AnalyzePackagingRequest,
    RecordScanRequest,
    TamperingFeedbackRequest,
    TrustScoreRequest,
    VerifyProductRequest,
)
from product_trust.api.schemas.responses import (
    ErrorResponse,
    FraudCheckResponse,
    PackagingAnalysisResponse,
    ScanRecordedResponse,
    TrustScoreResponse,
    VerifyProductResponse,
)

__all__ = [
    "AnalyzePackagingRequest",
    "ErrorResponse",
    "FraudCheckResponse",
    "PackagingAnalysisResponse",
    "RecordScanRequest",
    "ScanRecordedResponse",
    "TamperingFeedbackRequest",
    "TrustScoreRequest",
    "TrustScoreResponse",
    "VerifyProductRequest",
    "VerifyProductResponse",
]
