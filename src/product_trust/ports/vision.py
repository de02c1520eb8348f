"""
Vision Ports
============

Abstract interfaces for image-based collaborators: the four packaging tamper
indicator detectors and the expiry-date OCR extractor.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from product_trust.domain.entities import BoundingBox, ProductImage
    from product_trust.domain.results import TamperIndicator


@dataclass(frozen=True)
class IndicatorDetection:
    """Detector answer for a single image."""

    detected: bool
    confidence: float  # Likelihood that the indicator is present
    bounding_box: BoundingBox | None = None


@dataclass(frozen=True)
class ExtractedDate:
    """OCR answer for a printed expiry date."""

    value: date | None
    confidence: float
    raw_text: str | None = None


class TamperIndicatorDetector(ABC):
    """
    Port for one packaging tamper indicator detector.

    Four independent detectors exist (broken seal, misaligned label,
    adhesive residue, box deformation); each is queried per image.
    """

    @property
    @abstractmethod
    def indicator(self) -> TamperIndicator:
        """The indicator this detector looks for."""
        ...

    @abstractmethod
    async def detect(self, image: ProductImage) -> IndicatorDetection:
        """
        Run detection on a single image.

        Raises:
            SourceUnavailableError: If the detector cannot be reached.
        """
        ...


class ExpiryDateExtractor(ABC):
    """Port for OCR extraction of the printed expiry date."""

    @abstractmethod
    async def extract(self, images: Sequence[ProductImage]) -> ExtractedDate:
        """
        Extract the expiry date from packaging images.

        Raises:
            SourceUnavailableError: If the OCR service cannot be reached.
        """
        ...
