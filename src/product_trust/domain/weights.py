"""
Signal Weights
==============

Immutable per-category weight configuration, validated once at load time.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, fields

from product_trust.domain.errors import ConfigurationError
from product_trust.domain.results import TrustSignal

WEIGHT_SUM_TOLERANCE = 1e-6


@dataclass(frozen=True)
class SignalWeights:
    """
    Base weights of the four trust signals.

    Construction fails with ``ConfigurationError`` unless every weight is in
    [0, 1] and the weights sum to 1.0.
    """

    authenticity: float = 0.30
    tampering: float = 0.30
    freshness: float = 0.25
    social_proof: float = 0.15

    def __post_init__(self) -> None:
        for item in fields(self):
            value = getattr(self, item.name)
            if not isinstance(value, int | float) or not 0.0 <= value <= 1.0:
                raise ConfigurationError(f"weight {item.name!r} must be within [0, 1], got {value!r}")
        total = self.authenticity + self.tampering + self.freshness + self.social_proof
        if abs(total - 1.0) > WEIGHT_SUM_TOLERANCE:
            raise ConfigurationError(f"signal weights must sum to 1.0, got {total:.6f}")

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, float]) -> SignalWeights:
        """Build weights from a ``{signal name: weight}`` mapping; all four are required."""
        expected = {signal.value for signal in TrustSignal}
        unknown = set(mapping) - expected
        if unknown:
            raise ConfigurationError(f"unknown signal weights: {sorted(unknown)}")
        missing = expected - set(mapping)
        if missing:
            raise ConfigurationError(f"missing signal weights: {sorted(missing)}")
        return cls(**{name: float(mapping[name]) for name in expected})

    def weight_for(self, signal: TrustSignal) -> float:
        return float(getattr(self, signal.value))

    def as_dict(self) -> dict[TrustSignal, float]:
        return {signal: self.weight_for(signal) for signal in TrustSignal}

    def renormalized(self, present: Iterable[TrustSignal]) -> dict[TrustSignal, float]:
        """
        Redistribute weight over the present signals.

        ``w'(s) = w(s) / sum(w(s') for s' in present)``. Returns an empty
        mapping when the present signals carry no weight at all.
        """
        selected = list(dict.fromkeys(present))
        total = sum(self.weight_for(signal) for signal in selected)
        if total <= 0.0:
            return {}
        return {signal: self.weight_for(signal) / total for signal in selected}
