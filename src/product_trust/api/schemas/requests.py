"""API request schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from product_trust.domain.entities import GeoPoint, ProductImage, ScanContext, ScanRecord
from product_trust.domain.results import FeedbackKind, TamperingStatus

MAX_IMAGES = 16


class TrustScoreRequest(BaseModel):
    """Request body for a composite trust score."""

    product_id: str = Field(..., min_length=1, max_length=128, examples=["SKU-48213"])
    serial_number: str = Field(..., min_length=1, max_length=64, examples=["SN-000184"])
    batch_code: str | None = Field(default=None, max_length=64)
    images: list[ProductImage] = Field(
        default_factory=list,
        max_length=MAX_IMAGES,
        description="References to captured product and packaging images.",
    )
    category: str | None = Field(
        default=None,
        max_length=64,
        description="Product category; selects per-category signal weights.",
    )
    location: GeoPoint | None = None
    snapshot_version: str | None = Field(default=None, max_length=64)
    use_cache: bool = Field(
        default=True,
        description="Whether to reuse a cached score for identical inputs.",
    )

    def to_context(self) -> ScanContext:
        return ScanContext(
            serial_number=self.serial_number,
            batch_code=self.batch_code,
            images=tuple(self.images),
            category=self.category,
            location=self.location,
            snapshot_version=self.snapshot_version,
            use_cache=self.use_cache,
        )


class VerifyProductRequest(BaseModel):
    """Request body for the authenticity cascade alone."""

    product_id: str = Field(..., min_length=1, max_length=128)
    serial_number: str = Field(..., min_length=1, max_length=64)
    batch_code: str | None = Field(default=None, max_length=64)
    images: list[ProductImage] = Field(default_factory=list, max_length=MAX_IMAGES)


class AnalyzePackagingRequest(BaseModel):
    """Request body for packaging tamper analysis."""

    images: list[ProductImage] = Field(..., max_length=MAX_IMAGES)
    product_id: str | None = Field(default=None, max_length=128)


class TamperingFeedbackRequest(BaseModel):
    """A user correction to a tampering classification."""

    scan_id: str = Field(..., min_length=1, max_length=128)
    product_id: str = Field(..., min_length=1, max_length=128)
    reported_status: TamperingStatus = Field(
        ..., description="The status the user says is correct."
    )
    kind: FeedbackKind
    note: str | None = Field(default=None, max_length=2000)


class RecordScanRequest(BaseModel):
    """One scan of a serial number, recorded for clone detection."""

    scan_id: str | None = Field(default=None, max_length=128)
    serial_number: str = Field(..., min_length=1, max_length=64)
    product_id: str | None = Field(default=None, max_length=128)
    location: GeoPoint
    scanned_at: datetime | None = Field(
        default=None, description="Defaults to the time the request is received."
    )

    def to_record(self) -> ScanRecord:
        data = self.model_dump(exclude_none=True)
        return ScanRecord(**data)
