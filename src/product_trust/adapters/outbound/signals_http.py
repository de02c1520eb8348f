"""Social-proof signal over HTTP."""

from __future__ import annotations

import logging

from product_trust.adapters.outbound.http_base import HTTPSourceAdapter
from product_trust.domain.results import SignalMethod, SignalResult
from product_trust.ports.signal_sources import SocialProofSource

logger = logging.getLogger(__name__)


class HTTPSocialProofSource(HTTPSourceAdapter, SocialProofSource):
    """
    Ratings and verified-purchase signal served at
    ``GET /products/{product_id}/social-proof``.

    The service answers ``{"score": 0-100, "confidence": 0-1}``; a 404
    means the product has no social data yet.
    """

    source_name = "social-proof"

    async def social_proof(self, product_id: str) -> SignalResult[float]:
        data = await self._get(f"/products/{product_id}/social-proof")
        if data is None:
            return SignalResult[float].absent(SignalMethod.SOCIAL_PROOF, "no social data")
        if not isinstance(data, dict):
            raise self._malformed("social proof answer is not an object")
        try:
            score = float(data["score"])
            confidence = float(data.get("confidence", 1.0))
        except (KeyError, TypeError, ValueError) as e:
            raise self._malformed(str(e)) from e
        if not 0.0 <= score <= 100.0:
            raise self._malformed(f"score {score} out of range")
        return SignalResult[float].of(score, confidence, SignalMethod.SOCIAL_PROOF)
