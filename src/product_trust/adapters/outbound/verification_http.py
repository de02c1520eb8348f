"""
Verification Source Adapters
============================

HTTP adapters for the manufacturer registry and the distributed-ledger
gateway. Both answer with ``{"outcome", "confidence", "detail"}``.
"""

from __future__ import annotations

import logging
from typing import Any

from product_trust.adapters.outbound.http_base import HTTPSourceAdapter
from product_trust.domain.results import VerificationOutcome
from product_trust.ports.verification_sources import (
    DistributedLedger,
    ManufacturerRegistry,
    SourceLookup,
)

logger = logging.getLogger(__name__)

# Confidence reported when a source has no record of the item at all
UNKNOWN_RECORD_CONFIDENCE = 0.9


def parse_source_lookup(adapter: HTTPSourceAdapter, data: Any) -> SourceLookup:
    """Decode a verification answer; anything unexpected is a source failure."""
    if not isinstance(data, dict):
        raise adapter._malformed(f"expected object, got {type(data).__name__}")
    try:
        outcome = VerificationOutcome(str(data["outcome"]).lower())
        confidence = float(data.get("confidence", 0.0))
    except (KeyError, TypeError, ValueError) as e:
        raise adapter._malformed(str(e)) from e
    if not 0.0 <= confidence <= 1.0:
        raise adapter._malformed(f"confidence {confidence} out of range")
    return SourceLookup(outcome=outcome, confidence=confidence, detail=str(data.get("detail", "")))


class HTTPManufacturerRegistry(HTTPSourceAdapter, ManufacturerRegistry):
    """Manufacturer registry served at ``GET /serials/{serial}``."""

    source_name = "registry"

    async def lookup(self, serial_number: str, batch_code: str | None) -> SourceLookup:
        params = {"batch": batch_code} if batch_code else None
        data = await self._get(f"/serials/{serial_number}", params=params)
        if data is None:
            return SourceLookup(
                outcome=VerificationOutcome.FAIL,
                confidence=UNKNOWN_RECORD_CONFIDENCE,
                detail="serial not registered",
            )
        return parse_source_lookup(self, data)


class HTTPDistributedLedger(HTTPSourceAdapter, DistributedLedger):
    """Ledger gateway served at ``GET /provenance/{product_id}``."""

    source_name = "ledger"

    async def lookup(self, product_id: str) -> SourceLookup:
        data = await self._get(f"/provenance/{product_id}")
        if data is None:
            # Products never anchored on the ledger have no record.
            return SourceLookup(
                outcome=VerificationOutcome.INCONCLUSIVE,
                confidence=0.0,
                detail="no provenance record",
            )
        return parse_source_lookup(self, data)
