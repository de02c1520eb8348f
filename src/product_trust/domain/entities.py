"""
Domain Entities
===============

Core business objects describing what was scanned, where, and by whom.
These are immutable value objects with no infrastructure dependencies.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated
from uuid import uuid4

from pydantic import AfterValidator, BaseModel, Field


def _as_utc(value: datetime) -> datetime:
    """Naive timestamps are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


UTCDateTime = Annotated[datetime, AfterValidator(_as_utc)]


class GeoPoint(BaseModel):
    """A WGS84 coordinate."""

    latitude: float = Field(..., ge=-90.0, le=90.0)
    longitude: float = Field(..., ge=-180.0, le=180.0)

    model_config = {"frozen": True}


class BoundingBox(BaseModel):
    """Pixel region of an image that carries visual evidence."""

    image_id: str | None = Field(default=None, description="Image the region belongs to")
    x: float = Field(..., ge=0.0)
    y: float = Field(..., ge=0.0)
    width: float = Field(..., gt=0.0)
    height: float = Field(..., gt=0.0)

    model_config = {"frozen": True}


class ProductImage(BaseModel):
    """
    Reference to a captured product image.

    Capture and storage happen upstream; the engine only passes references
    through to the vision collaborators.
    """

    image_id: str = Field(default_factory=lambda: uuid4().hex)
    uri: str | None = Field(default=None, description="Where the collaborator can fetch the image")
    sha256: str | None = Field(default=None, description="Content digest, used for fingerprints")

    model_config = {"frozen": True}

    @property
    def digest(self) -> str:
        """Stable identity for fingerprinting."""
        return self.sha256 or self.uri or self.image_id


class ScanRecord(BaseModel):
    """One scan of a serial number at a place and time."""

    scan_id: str = Field(default_factory=lambda: uuid4().hex)
    serial_number: str
    product_id: str | None = None
    location: GeoPoint
    scanned_at: UTCDateTime = Field(default_factory=lambda: datetime.now(UTC))

    model_config = {"frozen": True}


class CustodyTransfer(BaseModel):
    """A recorded handoff of a physical product between two parties."""

    transfer_id: str = Field(default_factory=lambda: uuid4().hex)
    product_id: str
    from_party: str
    to_party: str
    location: GeoPoint | None = None
    transferred_at: UTCDateTime

    model_config = {"frozen": True}


class ReviewSignal(BaseModel):
    """A product review with a fraud score produced by an external model."""

    review_id: str
    product_id: str
    author_id: str
    fraud_score: float = Field(..., ge=0.0, le=1.0)
    posted_at: UTCDateTime

    model_config = {"frozen": True}


class ScanContext(BaseModel):
    """
    Everything a trust-score request knows about the scan.

    The fingerprint of these inputs (plus the product id) addresses the
    result cache.
    """

    serial_number: str
    batch_code: str | None = None
    images: tuple[ProductImage, ...] = ()
    category: str | None = Field(default=None, description="Selects weight overrides")
    location: GeoPoint | None = None
    snapshot_version: str | None = Field(
        default=None, description="Version of upstream signal snapshots, part of the cache key"
    )
    use_cache: bool = True

    model_config = {"frozen": True}
