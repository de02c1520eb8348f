"""
TrustScoreCache Port
====================

Abstract interface for caching computed trust scores.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from product_trust.domain.results import TrustScore


class TrustScoreCache(ABC):
    """
    Port for caching trust scores.

    Entries are addressed by ``(product_id, fingerprint)`` where the
    fingerprint is derived from the scan inputs.

    Responsibilities:
    - Store scores with TTL-based expiration
    - Exact lookup by product and fingerprint
    - Invalidate every entry of a product (e.g. on a new fraud alert)
    """

    @abstractmethod
    async def get(self, product_id: str, fingerprint: str) -> TrustScore | None:
        """
        Retrieve a cached score.

        Returns:
            Cached score or None if not found/expired.
        """
        ...

    @abstractmethod
    async def set(
        self,
        product_id: str,
        fingerprint: str,
        score: TrustScore,
        ttl_seconds: int | None = None,
    ) -> None:
        """
        Store a score.

        Args:
            product_id: Product the score belongs to.
            fingerprint: Input fingerprint.
            score: Score to cache.
            ttl_seconds: Time-to-live in seconds (None = use default).
        """
        ...

    @abstractmethod
    async def invalidate_product(self, product_id: str) -> int:
        """
        Drop every cached score of a product.

        Returns:
            Number of entries removed.
        """
        ...

    @abstractmethod
    async def clear(self) -> int:
        """
        Clear all cached entries.

        Returns:
            Number of entries cleared.
        """
        ...

    async def health_check(self) -> bool:
        """Check if the cache is operational."""
        return True
