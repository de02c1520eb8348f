"""
Tests for the Tampering Classifier
==================================
"""

import pytest
from conftest import PRODUCT_ID, FakeDetector

from product_trust.domain.errors import InvalidInputError
from product_trust.domain.results import (
    FeedbackKind,
    TamperIndicator,
    TamperingStatus,
)
from product_trust.domain.services.tampering_classifier import (
    TamperingClassifier,
    classify_status,
)


@pytest.mark.parametrize(
    ("confidence", "expected"),
    [
        (0.0, TamperingStatus.INTACT),
        (0.49, TamperingStatus.INTACT),
        (0.50, TamperingStatus.POSSIBLE),
        (0.80, TamperingStatus.POSSIBLE),
        (0.81, TamperingStatus.TAMPERED),
        (1.0, TamperingStatus.TAMPERED),
    ],
)
def test_classify_status_boundaries(confidence: float, expected: TamperingStatus) -> None:
    assert classify_status(confidence) == expected


class TestTamperingClassifier:
    """Tests for indicator combination."""

    @pytest.mark.asyncio
    async def test_clean_packaging_is_intact(self, classifier: TamperingClassifier, images) -> None:
        signal = await classifier.analyze(images)

        assert signal.present
        assert signal.value is not None
        assert signal.value.status == TamperingStatus.INTACT
        assert signal.value.indicators == frozenset()
        assert signal.confidence == pytest.approx(0.1)

    @pytest.mark.asyncio
    async def test_evidence_backed_tampering(self, images) -> None:
        classifier = TamperingClassifier(
            [
                FakeDetector(TamperIndicator.BROKEN_SEAL, 0.92, with_region=True),
                FakeDetector(TamperIndicator.ADHESIVE_RESIDUE, 0.45),
                FakeDetector(TamperIndicator.BOX_DEFORMATION, 0.2),
            ]
        )

        signal = await classifier.analyze(images)

        result = signal.value
        assert result is not None
        assert result.status == TamperingStatus.TAMPERED
        assert result.confidence == pytest.approx(0.92)
        assert result.indicators == frozenset(
            {TamperIndicator.BROKEN_SEAL, TamperIndicator.ADHESIVE_RESIDUE}
        )
        # Strongest detection of the locating detector contributes its region
        assert len(result.evidence_regions) == 1

    @pytest.mark.asyncio
    async def test_without_regions_capped_at_possible(self, images) -> None:
        classifier = TamperingClassifier([FakeDetector(TamperIndicator.MISALIGNED_LABEL, 0.95)])

        signal = await classifier.analyze(images)

        assert signal.value is not None
        assert signal.value.confidence == pytest.approx(0.80)
        assert signal.value.status == TamperingStatus.POSSIBLE
        assert signal.value.evidence_regions == []

    @pytest.mark.asyncio
    async def test_no_images_is_absent(self, classifier: TamperingClassifier, detectors) -> None:
        signal = await classifier.analyze([])

        assert not signal.present
        assert signal.reason == "no images"
        assert all(d.calls == 0 for d in detectors)

    @pytest.mark.asyncio
    async def test_failed_detectors_are_ignored(self, images) -> None:
        classifier = TamperingClassifier(
            [
                FakeDetector(TamperIndicator.BROKEN_SEAL, error=ConnectionError("down")),
                FakeDetector(TamperIndicator.MISALIGNED_LABEL, 0.9, delay=1.0),
                FakeDetector(TamperIndicator.BOX_DEFORMATION, 0.55),
            ],
            timeout_seconds=0.1,
        )

        signal = await classifier.analyze(images)

        assert signal.value is not None
        assert signal.value.status == TamperingStatus.POSSIBLE
        assert signal.value.indicators == frozenset({TamperIndicator.BOX_DEFORMATION})

    @pytest.mark.asyncio
    async def test_all_detectors_failed_is_absent(self, images) -> None:
        classifier = TamperingClassifier(
            [FakeDetector(indicator, error=OSError("down")) for indicator in TamperIndicator]
        )

        signal = await classifier.analyze(images)

        assert not signal.present
        assert signal.reason == "all indicators unavailable"


class TestTamperingFeedback:
    """Tests for user corrections."""

    @pytest.mark.asyncio
    async def test_record_and_list(self, classifier: TamperingClassifier) -> None:
        feedback = await classifier.record_feedback(
            "scan-1", PRODUCT_ID, TamperingStatus.INTACT, FeedbackKind.FALSE_POSITIVE, "seal fine"
        )

        stored = await classifier.list_feedback(PRODUCT_ID)

        assert stored == [feedback]
        assert stored[0].key == ("scan-1", PRODUCT_ID, TamperingStatus.INTACT)

    @pytest.mark.asyncio
    async def test_empty_scan_id_rejected(self, classifier: TamperingClassifier) -> None:
        with pytest.raises(InvalidInputError) as exc_info:
            await classifier.record_feedback(
                "  ", PRODUCT_ID, TamperingStatus.TAMPERED, FeedbackKind.FALSE_NEGATIVE
            )

        assert exc_info.value.field == "scan_id"

    @pytest.mark.asyncio
    async def test_without_store_lists_nothing(self) -> None:
        classifier = TamperingClassifier([])

        await classifier.record_feedback(
            "scan-2", PRODUCT_ID, TamperingStatus.INTACT, FeedbackKind.FALSE_POSITIVE
        )

        assert await classifier.list_feedback(PRODUCT_ID) == []
