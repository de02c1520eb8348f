"""Weights provider backed by validated settings."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING

from product_trust.ports.weights import WeightsProvider

if TYPE_CHECKING:
    from product_trust.domain.weights import SignalWeights
    from product_trust.infrastructure.config import WeightSettings

logger = logging.getLogger(__name__)


class ConfiguredWeightsProvider(WeightsProvider):
    """Default weights plus per-category overrides, all validated up front."""

    def __init__(
        self,
        defaults: SignalWeights,
        overrides: Mapping[str, SignalWeights] | None = None,
    ) -> None:
        self._defaults = defaults
        self._overrides = {k.lower(): v for k, v in (overrides or {}).items()}

    @classmethod
    def from_settings(cls, settings: WeightSettings) -> ConfiguredWeightsProvider:
        """
        Raises:
            ConfigurationError: If any configured weight set is invalid.
        """
        defaults, overrides = settings.build()
        if overrides:
            logger.info(f"Loaded weight overrides for categories: {sorted(overrides)}")
        return cls(defaults, overrides)

    @property
    def categories(self) -> list[str]:
        return sorted(self._overrides)

    def weights(self, category: str | None) -> SignalWeights:
        if category is None:
            return self._defaults
        return self._overrides.get(category.lower(), self._defaults)
