"""
FeedbackStore Port
==================

Append-only store of user corrections to tampering classifications.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from product_trust.domain.results import TamperingFeedback


class FeedbackStore(ABC):
    """
    Port for tampering feedback.

    Corrections accumulate as training signal for the external classifier;
    they never modify past results.
    """

    @abstractmethod
    async def append(self, feedback: TamperingFeedback) -> None:
        """Append one correction."""
        ...

    @abstractmethod
    async def list_for_product(self, product_id: str) -> list[TamperingFeedback]:
        """Return all corrections recorded for a product, oldest first."""
        ...
