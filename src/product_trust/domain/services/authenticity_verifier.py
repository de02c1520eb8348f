"""
Cascading Authenticity Verifier
===============================

Verifies a product instance by trying methods in a fixed priority order
(registry -> ledger -> visual) and stopping at the first confident pass.

The cascade is sequential: each early-exit decision depends on the previous
attempt, and stopping early keeps the expensive visual comparison off the
hot path.
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

from product_trust.domain.errors import SourceUnavailableError
from product_trust.domain.results import (
    AlertSeverity,
    AuthenticityResult,
    FraudAlert,
    FraudAlertKind,
    VerificationAttempt,
    VerificationMethod,
    VerificationOutcome,
)
from product_trust.domain.validation import (
    validate_batch_code,
    validate_product_id,
    validate_serial_number,
)

if TYPE_CHECKING:
    from product_trust.domain.entities import ProductImage
    from product_trust.ports.notification import AlertPublisher
    from product_trust.ports.verification_sources import (
        DistributedLedger,
        ManufacturerRegistry,
        SourceLookup,
        VisualComparator,
    )

logger = logging.getLogger(__name__)

PASS_THRESHOLD = 0.70  # Confidence needed for a pass to end the cascade
FRAUD_ALERT_THRESHOLD = 0.60  # Non-authentic confidence that raises a counterfeit alert
HIGH_SEVERITY_CONFIDENCE = 0.85

DUPLICATE_SERIAL_FLAG = "duplicate-serial"
CLONE_CHECK_UNAVAILABLE_FLAG = "clone-check-unavailable"
SOURCE_UNAVAILABLE = "source unavailable"
TIMEOUT = "timeout"


@dataclass(frozen=True)
class VerificationRequest:
    """Inputs of one verification call."""

    product_id: str
    serial_number: str
    batch_code: str | None
    images: tuple[ProductImage, ...]


class VerificationStep(ABC):
    """
    One method of the cascade.

    ``attempt`` never raises for source failures: unavailability and
    timeouts become an inconclusive attempt with zero confidence.
    """

    method: VerificationMethod

    def __init__(self, timeout_seconds: float) -> None:
        self._timeout = timeout_seconds

    async def attempt(self, request: VerificationRequest) -> VerificationAttempt:
        start = time.perf_counter()
        try:
            lookup = await asyncio.wait_for(self._lookup(request), timeout=self._timeout)
        except asyncio.TimeoutError:
            logger.warning(f"{self.method} lookup timed out after {self._timeout:.2f}s")
            return self._unavailable(TIMEOUT, start)
        except SourceUnavailableError as e:
            logger.warning(f"{self.method} source unavailable: {e}")
            return self._unavailable(SOURCE_UNAVAILABLE, start)
        except Exception as e:
            logger.error(f"{self.method} lookup failed: {e}")
            return self._unavailable(SOURCE_UNAVAILABLE, start)

        if lookup is None:
            return self._skipped(start)

        return VerificationAttempt(
            method=self.method,
            outcome=lookup.outcome,
            confidence=max(0.0, min(1.0, lookup.confidence)),
            detail=lookup.detail,
            latency_ms=(time.perf_counter() - start) * 1000,
        )

    @abstractmethod
    async def _lookup(self, request: VerificationRequest) -> SourceLookup | None:
        """Query the backing source; None means the method cannot apply."""
        ...

    def _skipped(self, start: float) -> VerificationAttempt:
        return VerificationAttempt(
            method=self.method,
            outcome=VerificationOutcome.INCONCLUSIVE,
            confidence=0.0,
            detail="not applicable",
            latency_ms=(time.perf_counter() - start) * 1000,
        )

    def _unavailable(self, detail: str, start: float) -> VerificationAttempt:
        return VerificationAttempt(
            method=self.method,
            outcome=VerificationOutcome.INCONCLUSIVE,
            confidence=0.0,
            detail=detail,
            available=False,
            latency_ms=(time.perf_counter() - start) * 1000,
        )


class RegistryVerification(VerificationStep):
    """Manufacturer registry lookup by serial and batch code."""

    method = VerificationMethod.REGISTRY

    def __init__(self, registry: ManufacturerRegistry, timeout_seconds: float = 0.5) -> None:
        super().__init__(timeout_seconds)
        self._registry = registry

    async def _lookup(self, request: VerificationRequest) -> SourceLookup:
        return await self._registry.lookup(request.serial_number, request.batch_code)


class LedgerVerification(VerificationStep):
    """Distributed-ledger provenance lookup by product id."""

    method = VerificationMethod.LEDGER

    def __init__(self, ledger: DistributedLedger, timeout_seconds: float = 0.5) -> None:
        super().__init__(timeout_seconds)
        self._ledger = ledger

    async def _lookup(self, request: VerificationRequest) -> SourceLookup:
        return await self._ledger.lookup(request.product_id)


class VisualVerification(VerificationStep):
    """Visual comparison against the product's reference imagery."""

    method = VerificationMethod.VISUAL

    def __init__(self, comparator: VisualComparator, timeout_seconds: float = 5.0) -> None:
        super().__init__(timeout_seconds)
        self._comparator = comparator

    async def _lookup(self, request: VerificationRequest) -> SourceLookup | None:
        if not request.images:
            return None
        return await self._comparator.compare(request.images, reference_set=request.product_id)

    def _skipped(self, start: float) -> VerificationAttempt:
        return VerificationAttempt(
            method=self.method,
            outcome=VerificationOutcome.INCONCLUSIVE,
            confidence=0.0,
            detail="no images supplied",
            latency_ms=(time.perf_counter() - start) * 1000,
        )


class CascadingAuthenticityVerifier:
    """
    Authenticity verifier running an ordered list of verification steps.

    Flow:
    1. Run each step in order, appending its attempt to the trail
    2. Stop at the first pass with confidence >= pass threshold
    3. Otherwise report not authentic, with the best inconclusive confidence
    4. Force-downgrade serials flagged as cloned
    5. Hand confident non-authentic verdicts to the alert publisher
    """

    def __init__(
        self,
        steps: Sequence[VerificationStep],
        *,
        pass_threshold: float = PASS_THRESHOLD,
        fraud_alert_threshold: float = FRAUD_ALERT_THRESHOLD,
        is_cloned_serial: Callable[[str], Awaitable[bool]] | None = None,
        alert_publisher: AlertPublisher | None = None,
    ) -> None:
        if not steps:
            raise ValueError("at least one verification step is required")
        self._steps = list(steps)
        self._pass_threshold = pass_threshold
        self._fraud_alert_threshold = fraud_alert_threshold
        self._is_cloned_serial = is_cloned_serial
        self._alert_publisher = alert_publisher

    @property
    def methods(self) -> list[VerificationMethod]:
        return [step.method for step in self._steps]

    async def verify(
        self,
        product_id: str,
        serial_number: str,
        batch_code: str | None = None,
        images: Sequence[ProductImage] = (),
    ) -> AuthenticityResult:
        """
        Verify one product instance.

        Raises:
            InvalidInputError: If an identifier is malformed (no source is called).
        """
        request = VerificationRequest(
            product_id=validate_product_id(product_id),
            serial_number=validate_serial_number(serial_number),
            batch_code=validate_batch_code(batch_code),
            images=tuple(images),
        )

        trail: list[VerificationAttempt] = []
        is_authentic = False
        confidence = 0.0

        for step in self._steps:
            attempt = await step.attempt(request)
            trail.append(attempt)
            logger.debug(
                f"{attempt.method}: {attempt.outcome} "
                f"(confidence={attempt.confidence:.2f}, {attempt.latency_ms:.1f}ms)"
            )
            if (
                attempt.outcome == VerificationOutcome.PASS
                and attempt.confidence >= self._pass_threshold
            ):
                is_authentic = True
                confidence = attempt.confidence
                break
        else:
            confidence = max(
                (a.confidence for a in trail if a.outcome == VerificationOutcome.INCONCLUSIVE),
                default=0.0,
            )

        flags = {f"{a.method}-unavailable" for a in trail if not a.available}
        if await self._serial_is_cloned(request.serial_number, flags):
            if is_authentic:
                logger.info(f"Downgrading {request.serial_number}: serial flagged as cloned")
            is_authentic = False
            flags.add(DUPLICATE_SERIAL_FLAG)

        result = AuthenticityResult(
            is_authentic=is_authentic,
            confidence=confidence,
            trail=trail,
            flags=frozenset(flags),
        )

        if self.is_suspected_counterfeit(result):
            self._raise_counterfeit_alert(request, result)

        return result

    async def _serial_is_cloned(self, serial_number: str, flags: set[str]) -> bool:
        if self._is_cloned_serial is None:
            return False
        try:
            return await self._is_cloned_serial(serial_number)
        except SourceUnavailableError as e:
            logger.warning(f"Clone flag lookup failed for {serial_number}: {e}")
            flags.add(CLONE_CHECK_UNAVAILABLE_FLAG)
            return False

    def is_suspected_counterfeit(self, result: AuthenticityResult) -> bool:
        """Whether a verdict is confident enough to raise a counterfeit alert."""
        return not result.is_authentic and result.confidence >= self._fraud_alert_threshold

    def _raise_counterfeit_alert(
        self, request: VerificationRequest, result: AuthenticityResult
    ) -> None:
        if self._alert_publisher is None:
            return

        duplicate = DUPLICATE_SERIAL_FLAG in result.flags
        severity = (
            AlertSeverity.HIGH
            if duplicate or result.confidence >= HIGH_SEVERITY_CONFIDENCE
            else AlertSeverity.MEDIUM
        )
        alert = FraudAlert(
            kind=FraudAlertKind.COUNTERFEIT,
            severity=severity,
            evidence=[
                f"attempt:{a.method}:{a.outcome}:{a.confidence:.2f}" for a in result.trail
            ],
            affected=frozenset({request.product_id, request.serial_number}),
            description=(
                "Serial flagged as cloned"
                if duplicate
                else f"Authenticity not established ({result.confidence:.2f} confidence)"
            ),
        )
        try:
            queued = self._alert_publisher.submit(alert)
        except Exception as e:
            logger.warning(f"Counterfeit alert hand-off failed: {e}")
            return
        if not queued:
            logger.warning(f"Counterfeit alert for {request.product_id} dropped")
