"""
Tests for the Cascading Authenticity Verifier
=============================================
"""

import pytest
from conftest import PRODUCT_ID, SERIAL, RecordingPublisher

from product_trust.domain.errors import InvalidInputError, SourceUnavailableError
from product_trust.domain.results import (
    AlertSeverity,
    FraudAlertKind,
    VerificationMethod,
    VerificationOutcome,
)
from product_trust.domain.services.authenticity_verifier import (
    CascadingAuthenticityVerifier,
    LedgerVerification,
    RegistryVerification,
    VisualVerification,
)
from product_trust.ports.verification_sources import SourceLookup


def build_verifier(registry, ledger, comparator, publisher, cloned=()):
    async def is_cloned(serial: str) -> bool:
        return serial in cloned

    return CascadingAuthenticityVerifier(
        [
            RegistryVerification(registry, timeout_seconds=0.1),
            LedgerVerification(ledger, timeout_seconds=0.1),
            VisualVerification(comparator, timeout_seconds=0.1),
        ],
        is_cloned_serial=is_cloned,
        alert_publisher=publisher,
    )


class TestCascade:
    """Tests for method ordering and early exit."""

    @pytest.mark.asyncio
    async def test_confident_registry_pass_stops_cascade(
        self, verifier: CascadingAuthenticityVerifier, images, ledger, comparator
    ) -> None:
        result = await verifier.verify(PRODUCT_ID, SERIAL, "LOT-7", images)

        assert result.is_authentic
        assert result.confidence == pytest.approx(0.95)
        assert result.methods_attempted == [VerificationMethod.REGISTRY]
        assert ledger.calls == 0
        assert comparator.calls == 0

    @pytest.mark.asyncio
    async def test_weak_pass_falls_through(
        self, verifier: CascadingAuthenticityVerifier, images, registry, publisher
    ) -> None:
        """A pass below 0.70 does not end the cascade and does not count."""
        registry.result = SourceLookup(VerificationOutcome.PASS, 0.6, "weak match")

        result = await verifier.verify(PRODUCT_ID, SERIAL, None, images)

        assert not result.is_authentic
        assert result.methods_attempted == [
            VerificationMethod.REGISTRY,
            VerificationMethod.LEDGER,
            VerificationMethod.VISUAL,
        ]
        # Best inconclusive attempt is the visual comparison
        assert result.confidence == pytest.approx(0.3)
        assert publisher.alerts == []

    @pytest.mark.asyncio
    async def test_all_inconclusive_exhausts_cascade(
        self, verifier: CascadingAuthenticityVerifier, images, registry, publisher
    ) -> None:
        registry.result = SourceLookup(VerificationOutcome.INCONCLUSIVE, 0.4, "unknown batch")

        result = await verifier.verify(PRODUCT_ID, SERIAL, None, images)

        assert not result.is_authentic
        assert [(a.method, a.outcome) for a in result.trail] == [
            (VerificationMethod.REGISTRY, VerificationOutcome.INCONCLUSIVE),
            (VerificationMethod.LEDGER, VerificationOutcome.INCONCLUSIVE),
            (VerificationMethod.VISUAL, VerificationOutcome.INCONCLUSIVE),
        ]
        assert result.confidence == pytest.approx(0.4)
        assert publisher.alerts == []

    @pytest.mark.asyncio
    async def test_visual_pass_after_lookups(
        self, verifier: CascadingAuthenticityVerifier, images, registry, comparator
    ) -> None:
        registry.result = SourceLookup(VerificationOutcome.INCONCLUSIVE, 0.2, "unknown batch")
        comparator.result = SourceLookup(VerificationOutcome.PASS, 0.88, "reference match")

        result = await verifier.verify(PRODUCT_ID, SERIAL, None, images)

        assert result.is_authentic
        assert result.confidence == pytest.approx(0.88)
        assert len(result.trail) == 3

    @pytest.mark.asyncio
    async def test_no_images_skips_visual(
        self, verifier: CascadingAuthenticityVerifier, registry, comparator
    ) -> None:
        registry.result = SourceLookup(VerificationOutcome.INCONCLUSIVE, 0.1, "")

        result = await verifier.verify(PRODUCT_ID, SERIAL)

        visual = result.trail[-1]
        assert visual.method == VerificationMethod.VISUAL
        assert visual.detail == "no images supplied"
        assert visual.available
        assert comparator.calls == 0


class TestUnavailableSources:
    """Tests for timeouts and outages."""

    @pytest.mark.asyncio
    async def test_timeout_is_inconclusive(
        self, registry, ledger, comparator, publisher, images
    ) -> None:
        registry.delay = 0.5
        verifier = build_verifier(registry, ledger, comparator, publisher)

        result = await verifier.verify(PRODUCT_ID, SERIAL, None, images)

        first = result.trail[0]
        assert first.outcome == VerificationOutcome.INCONCLUSIVE
        assert first.confidence == 0.0
        assert first.detail == "timeout"
        assert not first.available
        assert "registry-unavailable" in result.flags

    @pytest.mark.asyncio
    async def test_source_error_is_inconclusive(
        self, verifier: CascadingAuthenticityVerifier, registry, ledger, images
    ) -> None:
        registry.error = SourceUnavailableError("registry", "HTTP 502")
        ledger.error = RuntimeError("boom")

        result = await verifier.verify(PRODUCT_ID, SERIAL, None, images)

        assert [a.detail for a in result.trail[:2]] == ["source unavailable"] * 2
        assert result.flags == frozenset({"registry-unavailable", "ledger-unavailable"})
        assert result.any_source_available

    @pytest.mark.asyncio
    async def test_invalid_serial_calls_no_source(
        self, verifier: CascadingAuthenticityVerifier, registry
    ) -> None:
        with pytest.raises(InvalidInputError) as exc_info:
            await verifier.verify(PRODUCT_ID, "SN 0001 ")

        assert exc_info.value.field == "serial_number"
        assert registry.calls == 0


class TestCounterfeitAlerts:
    """Tests for duplicate-serial downgrades and alerts."""

    @pytest.mark.asyncio
    async def test_cloned_serial_downgraded(self, registry, ledger, comparator, images) -> None:
        publisher = RecordingPublisher()
        verifier = build_verifier(registry, ledger, comparator, publisher, cloned={SERIAL})

        result = await verifier.verify(PRODUCT_ID, SERIAL, None, images)

        assert not result.is_authentic
        assert "duplicate-serial" in result.flags
        assert verifier.is_suspected_counterfeit(result)
        assert len(publisher.alerts) == 1
        alert = publisher.alerts[0]
        assert alert.kind == FraudAlertKind.COUNTERFEIT
        assert alert.severity == AlertSeverity.HIGH
        assert alert.affected == frozenset({PRODUCT_ID, SERIAL})

    @pytest.mark.asyncio
    async def test_confident_inconclusive_raises_medium_alert(
        self, verifier: CascadingAuthenticityVerifier, registry, ledger, publisher, images
    ) -> None:
        registry.result = SourceLookup(VerificationOutcome.FAIL, 0.9, "serial not registered")
        ledger.result = SourceLookup(VerificationOutcome.INCONCLUSIVE, 0.7, "chain gap")

        result = await verifier.verify(PRODUCT_ID, SERIAL, None, images)

        assert result.confidence == pytest.approx(0.7)
        assert [a.severity for a in publisher.alerts] == [AlertSeverity.MEDIUM]

    @pytest.mark.asyncio
    async def test_publisher_failure_does_not_fail_verification(
        self, registry, ledger, comparator, images
    ) -> None:
        class BrokenPublisher(RecordingPublisher):
            def submit(self, alert):
                raise RuntimeError("queue gone")

        verifier = build_verifier(
            registry, ledger, comparator, BrokenPublisher(), cloned={SERIAL}
        )

        result = await verifier.verify(PRODUCT_ID, SERIAL, None, images)

        assert not result.is_authentic

    @pytest.mark.asyncio
    async def test_clone_flag_lookup_failure_is_flagged(
        self, registry, ledger, comparator, publisher, images
    ) -> None:
        async def flag_store_down(serial: str) -> bool:
            raise SourceUnavailableError("fraud-state", "connection reset")

        verifier = CascadingAuthenticityVerifier(
            [RegistryVerification(registry, timeout_seconds=0.1)],
            is_cloned_serial=flag_store_down,
            alert_publisher=publisher,
        )

        result = await verifier.verify(PRODUCT_ID, SERIAL, None, images)

        assert result.is_authentic
        assert result.flags == frozenset({"clone-check-unavailable"})

    def test_requires_steps(self) -> None:
        with pytest.raises(ValueError):
            CascadingAuthenticityVerifier([])
