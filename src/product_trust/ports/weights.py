"""
WeightsProvider Port
====================

Configuration source for per-category signal weights.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from product_trust.domain.weights import SignalWeights


class WeightsProvider(ABC):
    """
    Port for signal weight configuration.

    Implementations validate every weight set when they are built, so
    ``weights`` never fails at request time.
    """

    @abstractmethod
    def weights(self, category: str | None) -> SignalWeights:
        """Return the weights for a product category (defaults when unknown)."""
        ...
