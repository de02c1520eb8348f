"""
Verification Source Ports
=========================

Abstract interfaces for the authenticity collaborators: the manufacturer
registry, the distributed ledger and the visual comparator.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

from product_trust.domain.results import VerificationOutcome

if TYPE_CHECKING:
    from product_trust.domain.entities import ProductImage


@dataclass(frozen=True)
class SourceLookup:
    """Raw answer of a verification source."""

    outcome: VerificationOutcome
    confidence: float
    detail: str = ""


class ManufacturerRegistry(ABC):
    """
    Port for the manufacturer serial registry.

    Cheapest and most authoritative method; consulted first.
    """

    @abstractmethod
    async def lookup(self, serial_number: str, batch_code: str | None) -> SourceLookup:
        """
        Look up a serial (and optional batch code) in the registry.

        Args:
            serial_number: Serial printed on the product.
            batch_code: Batch/lot code, when captured.

        Returns:
            Outcome with the registry's confidence.

        Raises:
            SourceUnavailableError: If the registry cannot be reached.
        """
        ...

    async def health_check(self) -> bool:
        """Check if the registry is reachable."""
        return True


class DistributedLedger(ABC):
    """Port for the distributed-ledger provenance record."""

    @abstractmethod
    async def lookup(self, product_id: str) -> SourceLookup:
        """
        Look up the provenance record of a product.

        Raises:
            SourceUnavailableError: If the ledger cannot be queried.
        """
        ...

    async def health_check(self) -> bool:
        return True


class VisualComparator(ABC):
    """
    Port for visual comparison against manufacturer reference imagery.

    Expensive; only consulted when cheaper methods are inconclusive.
    """

    @abstractmethod
    async def compare(
        self,
        images: Sequence[ProductImage],
        reference_set: str,
    ) -> SourceLookup:
        """
        Compare captured images with a reference set.

        Args:
            images: Captured product images.
            reference_set: Identifier of the manufacturer reference imagery.

        Raises:
            SourceUnavailableError: If the comparator cannot be reached.
        """
        ...

    async def health_check(self) -> bool:
        return True
