"""
Trust Score Aggregator
======================

Combines the four trust signals into one explainable score.

Flow:
1. Validate the request and resolve the category weights
2. Check the cache by (product id, input fingerprint)
3. On a miss, join or start the single in-flight computation for the key
4. Fan out to authenticity, tampering, freshness and social proof in
   parallel, each under its own deadline
5. Renormalize the weights over the present signals and combine
6. Cache and return

Signal failures never fail the score: a signal that errors or misses its
deadline is reported absent and its weight is redistributed.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
import time
from collections.abc import Coroutine, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from product_trust.domain.errors import InsufficientSignalsError
from product_trust.domain.results import (
    AuthenticityResult,
    SignalMethod,
    SignalResult,
    TamperingResult,
    TamperingStatus,
    TrustScore,
    TrustSignal,
)
from product_trust.domain.services.single_flight import SingleFlight
from product_trust.domain.validation import (
    validate_batch_code,
    validate_product_id,
    validate_serial_number,
)

if TYPE_CHECKING:
    from product_trust.domain.entities import ScanContext
    from product_trust.domain.services.authenticity_verifier import (
        CascadingAuthenticityVerifier,
    )
    from product_trust.domain.services.tampering_classifier import TamperingClassifier
    from product_trust.domain.weights import SignalWeights
    from product_trust.ports.cache import TrustScoreCache
    from product_trust.ports.signal_sources import FreshnessSource, SocialProofSource
    from product_trust.ports.weights import WeightsProvider

logger = logging.getLogger(__name__)

TAMPERING_STATUS_VALUES: dict[TamperingStatus, float] = {
    TamperingStatus.INTACT: 100.0,
    TamperingStatus.POSSIBLE: 60.0,
    TamperingStatus.TAMPERED: 0.0,
}

FINGERPRINT_LENGTH = 24


@dataclass(frozen=True)
class SignalBudgets:
    """Per-signal latency budgets in seconds."""

    lookup_seconds: float = 0.5
    vision_seconds: float = 5.0
    overhead_seconds: float = 0.25

    @property
    def authenticity(self) -> float:
        # Registry and ledger lookups, then the visual comparison
        return 2 * self.lookup_seconds + self.vision_seconds

    @property
    def tampering(self) -> float:
        return self.vision_seconds

    @property
    def freshness(self) -> float:
        return self.vision_seconds

    @property
    def social_proof(self) -> float:
        return self.lookup_seconds

    def for_signal(self, signal: TrustSignal) -> float:
        return float(getattr(self, signal.value))

    @property
    def total(self) -> float:
        return max(self.for_signal(s) for s in TrustSignal) + self.overhead_seconds


# -----------------------------------------------------------------------------
# Pure combination
# -----------------------------------------------------------------------------


def authenticity_signal(result: AuthenticityResult) -> SignalResult[float]:
    """Scale the cascade verdict to 0-100."""
    if result.trail and not result.any_source_available:
        return SignalResult[float].absent(
            SignalMethod.AUTHENTICITY_CASCADE, "all verification sources unavailable"
        )
    value = 100.0 * result.confidence if result.is_authentic else 0.0
    return SignalResult[float].of(value, result.confidence, SignalMethod.AUTHENTICITY_CASCADE)


def tampering_signal(signal: SignalResult[TamperingResult]) -> SignalResult[float]:
    """
    Map the tampering status to its table value scaled by the certainty of
    that status: ``1 - c`` for intact, ``c`` for possible and tampered.
    """
    if not signal.present or signal.value is None:
        reason = signal.reason or "absent"
        return SignalResult[float].absent(SignalMethod.TAMPER_CLASSIFIER, reason)
    result = signal.value
    if result.status == TamperingStatus.INTACT:
        certainty = 1.0 - result.confidence
    else:
        certainty = result.confidence
    return SignalResult[float].of(
        TAMPERING_STATUS_VALUES[result.status] * certainty,
        certainty,
        SignalMethod.TAMPER_CLASSIFIER,
    )


def combine_signals(
    product_id: str,
    signals: Mapping[TrustSignal, SignalResult[float]],
    weights: SignalWeights,
) -> tuple[float, dict[TrustSignal, float]]:
    """
    Weighted sum over the present signals.

    Returns:
        ``(overall, weights_applied)`` where the applied weights are the
        base weights renormalized over the present signals.

    Raises:
        InsufficientSignalsError: If no signal is present, or the present
            signals all carry zero weight.
    """
    present = [name for name in TrustSignal if name in signals and signals[name].present]
    applied = weights.renormalized(present)
    if not applied:
        reasons = {
            name.value: (signals[name].reason or "absent") if name in signals else "not computed"
            for name in TrustSignal
        }
        raise InsufficientSignalsError(product_id, reasons)

    overall = 0.0
    for name, weight in applied.items():
        value = signals[name].value
        assert value is not None
        overall += weight * max(0.0, min(100.0, float(value)))
    return max(0.0, min(100.0, overall)), applied


def compute_fingerprint(product_id: str, context: ScanContext) -> str:
    """Deterministic digest of everything that can change the score."""
    payload = {
        "product_id": product_id,
        "serial_number": context.serial_number,
        "batch_code": context.batch_code,
        "images": sorted(image.digest for image in context.images),
        "category": context.category,
        "snapshot_version": context.snapshot_version,
    }
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:FINGERPRINT_LENGTH]


def build_summary(
    overall: float,
    signals: Mapping[TrustSignal, SignalResult[float]],
    authenticity: AuthenticityResult | None,
    tampering: TamperingResult | None,
) -> str:
    """One-line human-readable explanation of a score."""
    if overall >= 80:
        level = "High trust"
    elif overall >= 50:
        level = "Moderate trust"
    else:
        level = "Low trust"

    present = [name for name, s in signals.items() if s.present]
    parts = [f"{level} ({overall:.1f}/100) from {len(present)} of {len(TrustSignal)} signals."]

    missing = [name for name in TrustSignal if name not in present]
    if missing:
        parts.append("Missing: " + ", ".join(m.value for m in missing) + ".")
    if authenticity is not None and not authenticity.is_authentic:
        parts.append("Authenticity not established.")
    if tampering is not None and tampering.status != TamperingStatus.INTACT:
        parts.append(f"Packaging {tampering.status.value}; manual inspection recommended.")
    return " ".join(parts)


# -----------------------------------------------------------------------------
# Aggregator
# -----------------------------------------------------------------------------


class TrustScoreAggregator:
    """
    Trust score computation with caching and stampede protection.

    The aggregator is the only writer of the result cache. Concurrent
    requests for the same (product id, fingerprint) share one computation;
    a computation whose callers all went away is cancelled and writes
    nothing.

    A product invalidated while one of its scores is being computed bumps
    that product's generation; the computation then skips its cache write,
    so an invalidation is never undone by a score collected before it.
    """

    def __init__(
        self,
        verifier: CascadingAuthenticityVerifier,
        classifier: TamperingClassifier,
        freshness_source: FreshnessSource,
        social_proof_source: SocialProofSource,
        weights_provider: WeightsProvider,
        cache: TrustScoreCache | None = None,
        *,
        budgets: SignalBudgets | None = None,
        cache_ttl_seconds: int | None = None,
    ) -> None:
        self._verifier = verifier
        self._classifier = classifier
        self._freshness = freshness_source
        self._social_proof = social_proof_source
        self._weights_provider = weights_provider
        self._cache = cache
        self._budgets = budgets or SignalBudgets()
        self._cache_ttl = cache_ttl_seconds
        self._flights: SingleFlight[tuple[str, str, bool], TrustScore] = SingleFlight()
        # Only products with a computation in flight are tracked
        self._active: dict[str, int] = {}
        self._generations: dict[str, int] = {}

    @property
    def budgets(self) -> SignalBudgets:
        return self._budgets

    async def calculate_trust_score(self, product_id: str, context: ScanContext) -> TrustScore:
        """
        Compute (or fetch) the trust score of one scanned product.

        Raises:
            InvalidInputError: If an identifier is malformed.
            InsufficientSignalsError: If no signal could be obtained.
        """
        product_id = validate_product_id(product_id)
        validate_serial_number(context.serial_number)
        validate_batch_code(context.batch_code)
        weights = self._weights_provider.weights(context.category)
        fingerprint = compute_fingerprint(product_id, context)

        cached = await self._cached(product_id, fingerprint, context.use_cache)
        if cached is not None:
            return cached

        return await self._flights.do(
            (product_id, fingerprint, context.use_cache),
            lambda: self._compute(product_id, context, fingerprint, weights),
        )

    async def invalidate_product(self, product_id: str) -> int:
        if product_id in self._active:
            self._generations[product_id] += 1
        if self._cache is None:
            return 0
        removed = await self._cache.invalidate_product(product_id)
        if removed:
            logger.info(f"Invalidated {removed} cached score(s) for {product_id}")
        return removed

    async def _cached(self, product_id: str, fingerprint: str, use_cache: bool) -> TrustScore | None:
        if not use_cache or self._cache is None:
            return None
        cached = await self._cache.get(product_id, fingerprint)
        if cached is None:
            return None
        logger.debug(f"Cache hit for {product_id}/{fingerprint}")
        return cached.model_copy(update={"cached": True})

    async def _compute(
        self,
        product_id: str,
        context: ScanContext,
        fingerprint: str,
        weights: SignalWeights,
    ) -> TrustScore:
        # A concurrent computation may have filled the cache while we queued.
        cached = await self._cached(product_id, fingerprint, context.use_cache)
        if cached is not None:
            return cached

        generation = self._track(product_id)
        try:
            score = await self._build_score(product_id, context, fingerprint, weights)
            if context.use_cache and self._cache is not None:
                await self._store(product_id, fingerprint, score, generation)
        finally:
            self._untrack(product_id)
        return score

    async def _build_score(
        self,
        product_id: str,
        context: ScanContext,
        fingerprint: str,
        weights: SignalWeights,
    ) -> TrustScore:
        start = time.perf_counter()
        signals, authenticity, tampering = await self._collect_signals(product_id, context)
        overall, applied = combine_signals(product_id, signals, weights)

        score = TrustScore(
            product_id=product_id,
            overall=overall,
            signals=signals,
            confidence=len(applied) / len(TrustSignal),
            missing_signals=frozenset(s for s in TrustSignal if s not in applied),
            weights_applied=applied,
            authenticity=authenticity,
            tampering=tampering,
            summary=build_summary(overall, signals, authenticity, tampering),
            fingerprint=fingerprint,
            category=context.category,
        )
        logger.info(
            f"Trust score {product_id}: {score.overall:.1f} "
            f"(confidence={score.confidence:.2f}, "
            f"missing={sorted(s.value for s in score.missing_signals)}, "
            f"{(time.perf_counter() - start) * 1000:.1f}ms)"
        )
        return score

    async def _store(
        self, product_id: str, fingerprint: str, score: TrustScore, generation: int
    ) -> None:
        assert self._cache is not None
        if self._generations[product_id] != generation:
            logger.info(f"Not caching score for {product_id}: invalidated during computation")
            return
        await self._cache.set(product_id, fingerprint, score, ttl_seconds=self._cache_ttl)
        if self._generations[product_id] != generation:
            # Invalidated while the write was in flight
            await self._cache.invalidate_product(product_id)

    def _track(self, product_id: str) -> int:
        self._active[product_id] = self._active.get(product_id, 0) + 1
        return self._generations.setdefault(product_id, 0)

    def _untrack(self, product_id: str) -> None:
        remaining = self._active[product_id] - 1
        if remaining:
            self._active[product_id] = remaining
        else:
            del self._active[product_id]
            del self._generations[product_id]

    async def _collect_signals(
        self, product_id: str, context: ScanContext
    ) -> tuple[
        dict[TrustSignal, SignalResult[float]],
        AuthenticityResult | None,
        TamperingResult | None,
    ]:
        """Fan out to all four producers; stragglers are cancelled and reported absent."""
        producers: dict[TrustSignal, Coroutine[Any, Any, Any]] = {
            TrustSignal.AUTHENTICITY: self._verifier.verify(
                product_id, context.serial_number, context.batch_code, context.images
            ),
            TrustSignal.TAMPERING: self._classifier.analyze(context.images),
            TrustSignal.FRESHNESS: self._freshness.freshness(product_id, context),
            TrustSignal.SOCIAL_PROOF: self._social_proof.social_proof(product_id),
        }
        tasks = {
            name: asyncio.create_task(
                asyncio.wait_for(coro, timeout=self._budgets.for_signal(name)),
                name=f"trust-signal:{name}",
            )
            for name, coro in producers.items()
        }

        try:
            _, pending = await asyncio.wait(tasks.values(), timeout=self._budgets.total)
        except asyncio.CancelledError:
            for task in tasks.values():
                task.cancel()
            await asyncio.gather(*tasks.values(), return_exceptions=True)
            raise

        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        signals: dict[TrustSignal, SignalResult[float]] = {}
        authenticity: AuthenticityResult | None = None
        tampering: TamperingResult | None = None

        for name, task in tasks.items():
            method = _SIGNAL_METHODS[name]
            if task in pending or task.cancelled():
                logger.warning(f"{name} signal missed its deadline for {product_id}")
                signals[name] = SignalResult[float].absent(method, "timeout")
                continue
            error = task.exception()
            if isinstance(error, asyncio.TimeoutError):
                logger.warning(f"{name} signal timed out for {product_id}")
                signals[name] = SignalResult[float].absent(method, "timeout")
                continue
            if error is not None:
                logger.warning(f"{name} signal failed for {product_id}: {error}")
                signals[name] = SignalResult[float].absent(method, "source unavailable")
                continue

            value = task.result()
            if name == TrustSignal.AUTHENTICITY:
                authenticity = value
                signals[name] = authenticity_signal(value)
            elif name == TrustSignal.TAMPERING:
                tampering = value.value if value.present else None
                signals[name] = tampering_signal(value)
            else:
                signals[name] = value

        return signals, authenticity, tampering


_SIGNAL_METHODS: dict[TrustSignal, SignalMethod] = {
    TrustSignal.AUTHENTICITY: SignalMethod.AUTHENTICITY_CASCADE,
    TrustSignal.TAMPERING: SignalMethod.TAMPER_CLASSIFIER,
    TrustSignal.FRESHNESS: SignalMethod.FRESHNESS,
    TrustSignal.SOCIAL_PROOF: SignalMethod.SOCIAL_PROOF,
}
