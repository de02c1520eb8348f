"""
Tampering Classifier
====================

Combines four independent packaging tamper indicators into one
confidence and a three-state status.

Detectors run concurrently per image with their own deadline. The
combined confidence is the maximum over present indicator confidences and
the status is looked up from a threshold table.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

from product_trust.domain.errors import InvalidInputError
from product_trust.domain.results import (
    FeedbackKind,
    SignalMethod,
    SignalResult,
    TamperIndicator,
    TamperingFeedback,
    TamperingResult,
    TamperingStatus,
)
from product_trust.domain.validation import validate_product_id

if TYPE_CHECKING:
    from product_trust.domain.entities import BoundingBox, ProductImage
    from product_trust.ports.feedback import FeedbackStore
    from product_trust.ports.vision import IndicatorDetection, TamperIndicatorDetector

logger = logging.getLogger(__name__)

INDICATOR_THRESHOLD = 0.40  # Indicators below this are dropped
NO_EVIDENCE_CAP = 0.80  # Highest confidence without an evidence region

# (status, lower bound, bound inclusive), checked top to bottom.
_STATUS_TABLE: tuple[tuple[TamperingStatus, float, bool], ...] = (
    (TamperingStatus.TAMPERED, 0.80, False),
    (TamperingStatus.POSSIBLE, 0.50, True),
)


def classify_status(confidence: float) -> TamperingStatus:
    """
    Map a tampering confidence to its status.

    ``> 0.80`` tampered, ``0.50 <= c <= 0.80`` possible, ``< 0.50`` intact.
    """
    for status, bound, inclusive in _STATUS_TABLE:
        if confidence > bound or (inclusive and confidence == bound):
            return status
    return TamperingStatus.INTACT


class TamperingClassifier:
    """
    Packaging tamper analysis over a fixed set of indicator detectors.

    Corrections are stored through the optional ``FeedbackStore``; they
    never change a result that was already returned.
    """

    def __init__(
        self,
        detectors: Sequence[TamperIndicatorDetector],
        *,
        indicator_threshold: float = INDICATOR_THRESHOLD,
        timeout_seconds: float = 5.0,
        feedback_store: FeedbackStore | None = None,
    ) -> None:
        self._detectors = list(detectors)
        self._indicator_threshold = indicator_threshold
        self._timeout = timeout_seconds
        self._feedback_store = feedback_store

    async def analyze(self, images: Sequence[ProductImage]) -> SignalResult[TamperingResult]:
        """
        Analyze packaging images.

        Returns:
            Present signal with the tampering result, or an absent signal when
            no images were supplied or no detector answered.
        """
        images = list(images)
        if not images:
            return SignalResult.absent(SignalMethod.TAMPER_CLASSIFIER, "no images")
        if not self._detectors:
            return SignalResult.absent(
                SignalMethod.TAMPER_CLASSIFIER, "all indicators unavailable"
            )

        per_indicator = await asyncio.gather(
            *(self._run_detector(detector, images) for detector in self._detectors)
        )

        present = [(indicator, signal) for indicator, signal in per_indicator if signal.present]
        if not present:
            return SignalResult.absent(
                SignalMethod.TAMPER_CLASSIFIER, "all indicators unavailable"
            )

        indicators: set[TamperIndicator] = set()
        regions: list[BoundingBox] = []
        confidence = 0.0
        for indicator, signal in present:
            confidence = max(confidence, signal.confidence)
            if signal.confidence < self._indicator_threshold:
                continue
            indicators.add(indicator)
            if signal.value is not None and signal.value.bounding_box is not None:
                regions.append(signal.value.bounding_box)

        if not regions:
            confidence = min(confidence, NO_EVIDENCE_CAP)

        result = TamperingResult(
            status=classify_status(confidence),
            confidence=confidence,
            indicators=frozenset(indicators),
            evidence_regions=regions,
        )
        logger.debug(
            f"Tampering {result.status} (confidence={confidence:.3f}, "
            f"indicators={sorted(result.indicators)}, {len(per_indicator) - len(present)} absent)"
        )
        return SignalResult.of(result, confidence, SignalMethod.TAMPER_CLASSIFIER)

    async def _run_detector(
        self,
        detector: TamperIndicatorDetector,
        images: list[ProductImage],
    ) -> tuple[TamperIndicator, SignalResult[IndicatorDetection]]:
        """Query one detector on every image; keep its strongest detection."""
        indicator = detector.indicator
        try:
            detections = await asyncio.wait_for(
                asyncio.gather(*(detector.detect(image) for image in images)),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"{indicator} detector timed out after {self._timeout:.2f}s")
            return indicator, SignalResult.absent(SignalMethod.TAMPER_INDICATOR, "timeout")
        except Exception as e:
            logger.warning(f"{indicator} detector unavailable: {e}")
            return indicator, SignalResult.absent(
                SignalMethod.TAMPER_INDICATOR, "source unavailable"
            )

        # Confidence is the likelihood of presence whether or not the detector fired.
        best = max(detections, key=lambda d: d.confidence)
        return indicator, SignalResult.of(best, best.confidence, SignalMethod.TAMPER_INDICATOR)

    async def record_feedback(
        self,
        scan_id: str,
        product_id: str,
        reported_status: TamperingStatus,
        kind: FeedbackKind,
        note: str | None = None,
    ) -> TamperingFeedback:
        """Append a user correction for a past classification."""
        if not scan_id or not scan_id.strip():
            raise InvalidInputError("scan_id", "must be a non-empty string")
        feedback = TamperingFeedback(
            scan_id=scan_id,
            product_id=validate_product_id(product_id),
            reported_status=reported_status,
            kind=kind,
            note=note,
        )
        if self._feedback_store is None:
            logger.warning(f"No feedback store configured; dropping feedback for {scan_id}")
            return feedback
        await self._feedback_store.append(feedback)
        logger.info(
            f"Recorded {kind} feedback for scan {scan_id} "
            f"(product={product_id}, reported={reported_status})"
        )
        return feedback

    async def list_feedback(self, product_id: str) -> list[TamperingFeedback]:
        if self._feedback_store is None:
            return []
        return await self._feedback_store.list_for_product(validate_product_id(product_id))
