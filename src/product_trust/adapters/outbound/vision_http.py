"""
Vision Service Adapters
=======================

The vision service hosts the image models: reference comparison, the four
tamper indicator detectors and expiry-date OCR. One pooled client is
shared; each port gets a thin adapter on top of it.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import date
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from product_trust.adapters.outbound.http_base import HTTPSourceAdapter
from product_trust.adapters.outbound.verification_http import parse_source_lookup
from product_trust.domain.entities import BoundingBox
from product_trust.domain.results import TamperIndicator, VerificationOutcome
from product_trust.ports.verification_sources import SourceLookup, VisualComparator
from product_trust.ports.vision import (
    ExpiryDateExtractor,
    ExtractedDate,
    IndicatorDetection,
    TamperIndicatorDetector,
)

if TYPE_CHECKING:
    from product_trust.domain.entities import ProductImage

logger = logging.getLogger(__name__)


def _image_payload(image: ProductImage) -> dict[str, Any]:
    return image.model_dump(mode="json", exclude_none=True)


class VisionServiceClient(HTTPSourceAdapter):
    """Pooled client for the vision service."""

    source_name = "vision"

    async def compare(self, images: Sequence[ProductImage], reference_set: str) -> Any:
        return await self._post(
            "/visual/compare",
            {"images": [_image_payload(i) for i in images], "reference_set": reference_set},
        )

    async def detect(self, indicator: TamperIndicator, image: ProductImage) -> Any:
        return await self._post(f"/tamper/{indicator.value}", {"image": _image_payload(image)})

    async def extract_expiry(self, images: Sequence[ProductImage]) -> Any:
        return await self._post(
            "/ocr/expiry", {"images": [_image_payload(i) for i in images]}
        )


class HTTPVisualComparator(VisualComparator):
    """Visual comparison against the manufacturer's reference imagery."""

    def __init__(self, client: VisionServiceClient) -> None:
        self._client = client

    async def compare(self, images: Sequence[ProductImage], reference_set: str) -> SourceLookup:
        data = await self._client.compare(images, reference_set)
        if data is None:
            return SourceLookup(
                outcome=VerificationOutcome.INCONCLUSIVE,
                confidence=0.0,
                detail="no reference imagery",
            )
        return parse_source_lookup(self._client, data)

    async def health_check(self) -> bool:
        return await self._client.health_check()


class HTTPTamperDetector(TamperIndicatorDetector):
    """One tamper indicator model on the vision service."""

    def __init__(self, client: VisionServiceClient, indicator: TamperIndicator) -> None:
        self._client = client
        self._indicator = indicator

    @property
    def indicator(self) -> TamperIndicator:
        return self._indicator

    async def detect(self, image: ProductImage) -> IndicatorDetection:
        data = await self._client.detect(self._indicator, image)
        if not isinstance(data, dict):
            raise self._client._malformed(f"{self._indicator} detection missing")
        try:
            box = data.get("bounding_box")
            bounding_box = (
                BoundingBox.model_validate({"image_id": image.image_id, **box}) if box else None
            )
            return IndicatorDetection(
                detected=bool(data["detected"]),
                confidence=max(0.0, min(1.0, float(data["confidence"]))),
                bounding_box=bounding_box,
            )
        except (KeyError, TypeError, ValueError, ValidationError) as e:
            raise self._client._malformed(str(e)) from e


def build_tamper_detectors(client: VisionServiceClient) -> list[HTTPTamperDetector]:
    """One detector per tamper indicator."""
    return [HTTPTamperDetector(client, indicator) for indicator in TamperIndicator]


class HTTPExpiryDateExtractor(ExpiryDateExtractor):
    """Expiry-date OCR on the vision service."""

    def __init__(self, client: VisionServiceClient) -> None:
        self._client = client

    async def extract(self, images: Sequence[ProductImage]) -> ExtractedDate:
        data = await self._client.extract_expiry(images)
        if data is None:
            return ExtractedDate(value=None, confidence=0.0)
        if not isinstance(data, dict):
            raise self._client._malformed("expiry answer is not an object")
        try:
            raw_value = data.get("expiry_date")
            value = date.fromisoformat(raw_value) if raw_value else None
            return ExtractedDate(
                value=value,
                confidence=max(0.0, min(1.0, float(data.get("confidence", 0.0)))),
                raw_text=data.get("raw_text"),
            )
        except (TypeError, ValueError) as e:
            raise self._client._malformed(str(e)) from e
