"""
Signal Source Ports
===================

Abstract interfaces for the freshness and social-proof signals, which arrive
already scaled to 0-100.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from product_trust.domain.entities import ScanContext
    from product_trust.domain.results import SignalResult


class FreshnessSource(ABC):
    """Port for the product freshness signal (0 = expired, 100 = fresh)."""

    @abstractmethod
    async def freshness(self, product_id: str, context: ScanContext) -> SignalResult[float]:
        """
        Compute the freshness signal for a scan.

        Returns:
            Present signal in [0, 100], or an absent signal with a reason.
        """
        ...


class SocialProofSource(ABC):
    """Port for the social-proof signal (ratings, verified purchases)."""

    @abstractmethod
    async def social_proof(self, product_id: str) -> SignalResult[float]:
        """
        Compute the social-proof signal for a product.

        Returns:
            Present signal in [0, 100], or an absent signal with a reason.
        """
        ...
