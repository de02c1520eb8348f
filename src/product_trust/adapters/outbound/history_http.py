"""
History Adapters
================

HTTP adapters for the supply-chain custody log and the scored review
feed. Records are validated into domain entities; one bad record fails
the whole call.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from pydantic import ValidationError

from product_trust.adapters.outbound.http_base import HTTPSourceAdapter
from product_trust.domain.entities import CustodyTransfer, ReviewSignal
from product_trust.ports.history import CustodyHistoryStore, ReviewSignalStore

logger = logging.getLogger(__name__)


def _records(adapter: HTTPSourceAdapter, data: Any, key: str) -> list[dict[str, Any]]:
    if data is None:
        return []
    if not isinstance(data, dict) or not isinstance(data.get(key), list):
        raise adapter._malformed(f"expected object with {key!r} list")
    return data[key]


class HTTPCustodyHistoryStore(HTTPSourceAdapter, CustodyHistoryStore):
    """Custody transfers served at ``GET /products/{product_id}/transfers``."""

    source_name = "custody"

    async def transfers(self, product_id: str) -> list[CustodyTransfer]:
        data = await self._get(f"/products/{product_id}/transfers")
        try:
            return [
                CustodyTransfer.model_validate({"product_id": product_id, **record})
                for record in _records(self, data, "transfers")
            ]
        except (TypeError, ValidationError) as e:
            raise self._malformed(str(e)) from e


class HTTPReviewSignalStore(HTTPSourceAdapter, ReviewSignalStore):
    """Scored reviews served at ``GET /products/{product_id}/reviews?since=``."""

    source_name = "reviews"

    async def reviews(self, product_id: str, since: datetime) -> list[ReviewSignal]:
        data = await self._get(
            f"/products/{product_id}/reviews", params={"since": since.isoformat()}
        )
        try:
            reviews = [
                ReviewSignal.model_validate({"product_id": product_id, **record})
                for record in _records(self, data, "reviews")
            ]
        except (TypeError, ValidationError) as e:
            raise self._malformed(str(e)) from e
        return [r for r in reviews if r.posted_at >= since]
