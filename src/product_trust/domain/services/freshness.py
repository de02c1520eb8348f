"""
Expiry-based freshness signal.

Turns the OCR-extracted expiry date into a 0-100 score: expired products
score 0, products with at least ``horizon_days`` left score 100, linear in
between.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, date, datetime
from typing import TYPE_CHECKING

from product_trust.domain.errors import SourceUnavailableError
from product_trust.domain.results import SignalMethod, SignalResult
from product_trust.ports.signal_sources import FreshnessSource

if TYPE_CHECKING:
    from product_trust.domain.entities import ScanContext
    from product_trust.ports.vision import ExpiryDateExtractor

logger = logging.getLogger(__name__)

MIN_OCR_CONFIDENCE = 0.5


def _today() -> date:
    return datetime.now(UTC).date()


def freshness_score(expiry: date, today: date, horizon_days: int) -> float:
    """Linear freshness between expiry (0) and ``horizon_days`` ahead (100)."""
    days_left = (expiry - today).days
    if days_left < 0:
        return 0.0
    if days_left >= horizon_days:
        return 100.0
    return 100.0 * days_left / horizon_days


class ExpiryFreshnessSource(FreshnessSource):
    """Freshness from the printed expiry date."""

    def __init__(
        self,
        extractor: ExpiryDateExtractor,
        *,
        horizon_days: int = 30,
        min_confidence: float = MIN_OCR_CONFIDENCE,
        today: Callable[[], date] = _today,
    ) -> None:
        if horizon_days <= 0:
            raise ValueError("horizon_days must be positive")
        self._extractor = extractor
        self._horizon_days = horizon_days
        self._min_confidence = min_confidence
        self._today = today

    async def freshness(self, product_id: str, context: ScanContext) -> SignalResult[float]:
        if not context.images:
            return SignalResult[float].absent(SignalMethod.EXPIRY_OCR, "no images")

        try:
            extracted = await self._extractor.extract(context.images)
        except SourceUnavailableError as e:
            logger.warning(f"Expiry extraction unavailable for {product_id}: {e}")
            return SignalResult[float].absent(SignalMethod.EXPIRY_OCR, "source unavailable")

        if extracted.value is None:
            return SignalResult[float].absent(SignalMethod.EXPIRY_OCR, "expiry date not found")
        if extracted.confidence < self._min_confidence:
            logger.debug(
                f"Discarding expiry {extracted.raw_text!r} for {product_id} "
                f"(confidence {extracted.confidence:.2f})"
            )
            return SignalResult[float].absent(SignalMethod.EXPIRY_OCR, "low ocr confidence")

        score = freshness_score(extracted.value, self._today(), self._horizon_days)
        return SignalResult[float].of(score, extracted.confidence, SignalMethod.EXPIRY_OCR)
