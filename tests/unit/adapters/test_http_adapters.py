"""Unit tests for the HTTP collaborator adapters."""
from __future__ import annotations

import json
from datetime import UTC, date, datetime, timedelta

import httpx
import pytest

from product_trust.adapters.outbound.history_http import (
    HTTPCustodyHistoryStore,
    HTTPReviewSignalStore,
)
from product_trust.adapters.outbound.http_base import HTTPSourceAdapter
from product_trust.adapters.outbound.notification import WebhookNotificationSink
from product_trust.adapters.outbound.signals_http import HTTPSocialProofSource
from product_trust.adapters.outbound.verification_http import (
    HTTPDistributedLedger,
    HTTPManufacturerRegistry,
)
from product_trust.adapters.outbound.vision_http import (
    HTTPExpiryDateExtractor,
    HTTPTamperDetector,
    HTTPVisualComparator,
    VisionServiceClient,
    build_tamper_detectors,
)
from product_trust.domain.entities import ProductImage
from product_trust.domain.errors import SourceUnavailableError
from product_trust.domain.results import (
    AlertSeverity,
    FraudAlert,
    FraudAlertKind,
    TamperIndicator,
    VerificationOutcome,
)

BASE_URL = "http://collaborator.test"
IMAGE = ProductImage(image_id="front", uri="s3://scans/front.jpg")


def attach(adapter: HTTPSourceAdapter, handler) -> list[httpx.Request]:
    """Route the adapter through a mock transport; returns the seen requests."""
    seen: list[httpx.Request] = []

    def record(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return handler(request)

    adapter._client = httpx.AsyncClient(
        transport=httpx.MockTransport(record), headers=adapter._headers
    )
    return seen


def respond(status: int = 200, body=None):
    return lambda request: httpx.Response(status, json=body)


class TestHTTPSourceAdapter:
    """Tests for connection handling and error translation."""

    @pytest.mark.asyncio
    async def test_unconfigured_source(self) -> None:
        registry = HTTPManufacturerRegistry("")
        await registry.connect()

        assert not registry.is_configured
        assert not registry.is_connected
        with pytest.raises(SourceUnavailableError, match="not configured"):
            await registry.lookup("SN-1", None)

    @pytest.mark.asyncio
    async def test_not_connected(self) -> None:
        with pytest.raises(SourceUnavailableError, match="not connected"):
            await HTTPDistributedLedger(BASE_URL).lookup("SKU-1")

    @pytest.mark.asyncio
    async def test_server_error(self) -> None:
        ledger = HTTPDistributedLedger(BASE_URL)
        attach(ledger, respond(502, {"error": "bad gateway"}))

        with pytest.raises(SourceUnavailableError, match="HTTP 502"):
            await ledger.lookup("SKU-1")
        await ledger.disconnect()

    @pytest.mark.asyncio
    async def test_transport_timeout(self) -> None:
        def timeout(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        ledger = HTTPDistributedLedger(BASE_URL)
        attach(ledger, timeout)

        with pytest.raises(SourceUnavailableError, match="timeout"):
            await ledger.lookup("SKU-1")

    @pytest.mark.asyncio
    async def test_invalid_json(self) -> None:
        ledger = HTTPDistributedLedger(BASE_URL)
        attach(ledger, lambda request: httpx.Response(200, content=b"<html>"))

        with pytest.raises(SourceUnavailableError, match="invalid JSON"):
            await ledger.lookup("SKU-1")

    @pytest.mark.asyncio
    async def test_bearer_token_and_health(self) -> None:
        registry = HTTPManufacturerRegistry(BASE_URL + "/", api_token="s3cret")
        seen = attach(registry, respond(200, {"status": "ok"}))

        assert await registry.health_check() is True
        assert str(seen[0].url) == f"{BASE_URL}/health"
        assert seen[0].headers["Authorization"] == "Bearer s3cret"


class TestVerificationAdapters:
    """Tests for the registry and ledger adapters."""

    @pytest.mark.asyncio
    async def test_registry_pass(self) -> None:
        registry = HTTPManufacturerRegistry(BASE_URL)
        seen = attach(
            registry, respond(200, {"outcome": "PASS", "confidence": 0.97, "detail": "ok"})
        )

        lookup = await registry.lookup("SN-1", "LOT-7")

        assert lookup.outcome == VerificationOutcome.PASS
        assert lookup.confidence == 0.97
        assert seen[0].url.path == "/serials/SN-1"
        assert seen[0].url.params["batch"] == "LOT-7"

    @pytest.mark.asyncio
    async def test_registry_unknown_serial(self) -> None:
        registry = HTTPManufacturerRegistry(BASE_URL)
        attach(registry, respond(404))

        lookup = await registry.lookup("SN-404", None)

        assert lookup.outcome == VerificationOutcome.FAIL
        assert lookup.detail == "serial not registered"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "body",
        [
            ["not", "an", "object"],
            {"confidence": 0.5},
            {"outcome": "maybe", "confidence": 0.5},
            {"outcome": "pass", "confidence": 1.5},
        ],
    )
    async def test_registry_malformed(self, body) -> None:
        registry = HTTPManufacturerRegistry(BASE_URL)
        attach(registry, respond(200, body))

        with pytest.raises(SourceUnavailableError, match="malformed"):
            await registry.lookup("SN-1", None)

    @pytest.mark.asyncio
    async def test_ledger_without_record(self) -> None:
        ledger = HTTPDistributedLedger(BASE_URL)
        attach(ledger, respond(404))

        lookup = await ledger.lookup("SKU-1")

        assert lookup.outcome == VerificationOutcome.INCONCLUSIVE
        assert lookup.confidence == 0.0


class TestVisionAdapters:
    """Tests for the vision service adapters."""

    @pytest.mark.asyncio
    async def test_visual_compare(self) -> None:
        client = VisionServiceClient(BASE_URL)
        seen = attach(client, respond(200, {"outcome": "pass", "confidence": 0.81}))

        lookup = await HTTPVisualComparator(client).compare([IMAGE], reference_set="SKU-1")

        assert lookup.outcome == VerificationOutcome.PASS
        payload = json.loads(seen[0].content)
        assert payload == {
            "images": [{"image_id": "front", "uri": "s3://scans/front.jpg"}],
            "reference_set": "SKU-1",
        }

    @pytest.mark.asyncio
    async def test_visual_compare_without_reference(self) -> None:
        client = VisionServiceClient(BASE_URL)
        attach(client, respond(404))

        lookup = await HTTPVisualComparator(client).compare([IMAGE], reference_set="SKU-1")

        assert lookup.detail == "no reference imagery"

    @pytest.mark.asyncio
    async def test_tamper_detection_with_region(self) -> None:
        client = VisionServiceClient(BASE_URL)
        seen = attach(
            client,
            respond(
                200,
                {
                    "detected": True,
                    "confidence": 0.88,
                    "bounding_box": {"x": 4, "y": 8, "width": 20, "height": 10},
                },
            ),
        )

        detection = await HTTPTamperDetector(client, TamperIndicator.BROKEN_SEAL).detect(IMAGE)

        assert detection.detected
        assert detection.bounding_box is not None
        assert detection.bounding_box.image_id == "front"
        assert seen[0].url.path == "/tamper/broken_seal"

    @pytest.mark.asyncio
    async def test_tamper_detection_malformed(self) -> None:
        client = VisionServiceClient(BASE_URL)
        attach(client, respond(200, {"detected": True}))

        with pytest.raises(SourceUnavailableError, match="malformed"):
            await HTTPTamperDetector(client, TamperIndicator.BOX_DEFORMATION).detect(IMAGE)

    def test_one_detector_per_indicator(self) -> None:
        detectors = build_tamper_detectors(VisionServiceClient(BASE_URL))

        assert {d.indicator for d in detectors} == set(TamperIndicator)

    @pytest.mark.asyncio
    async def test_expiry_extraction(self) -> None:
        client = VisionServiceClient(BASE_URL)
        attach(
            client,
            respond(200, {"expiry_date": "2026-09-30", "confidence": 0.92, "raw_text": "EXP 09/26"}),
        )

        extracted = await HTTPExpiryDateExtractor(client).extract([IMAGE])

        assert extracted.value == date(2026, 9, 30)
        assert extracted.raw_text == "EXP 09/26"

    @pytest.mark.asyncio
    async def test_expiry_not_found(self) -> None:
        client = VisionServiceClient(BASE_URL)
        attach(client, respond(200, {"expiry_date": None, "confidence": 0.0}))

        extracted = await HTTPExpiryDateExtractor(client).extract([IMAGE])

        assert extracted.value is None


class TestSignalAdapters:
    """Tests for social proof and the history feeds."""

    @pytest.mark.asyncio
    async def test_social_proof(self) -> None:
        source = HTTPSocialProofSource(BASE_URL)
        attach(source, respond(200, {"score": 72.5, "confidence": 0.6}))

        signal = await source.social_proof("SKU-1")

        assert signal.value == 72.5
        assert signal.confidence == 0.6

    @pytest.mark.asyncio
    async def test_social_proof_missing(self) -> None:
        source = HTTPSocialProofSource(BASE_URL)
        attach(source, respond(404))

        signal = await source.social_proof("SKU-1")

        assert not signal.present
        assert signal.reason == "no social data"

    @pytest.mark.asyncio
    async def test_social_proof_out_of_range(self) -> None:
        source = HTTPSocialProofSource(BASE_URL)
        attach(source, respond(200, {"score": 140}))

        with pytest.raises(SourceUnavailableError, match="out of range"):
            await source.social_proof("SKU-1")

    @pytest.mark.asyncio
    async def test_custody_transfers(self) -> None:
        store = HTTPCustodyHistoryStore(BASE_URL)
        attach(
            store,
            respond(
                200,
                {
                    "transfers": [
                        {
                            "transfer_id": "t1",
                            "from_party": "factory",
                            "to_party": "carrier",
                            "transferred_at": "2026-03-01T08:00:00Z",
                        }
                    ]
                },
            ),
        )

        transfers = await store.transfers("SKU-1")

        assert [t.transfer_id for t in transfers] == ["t1"]
        assert transfers[0].product_id == "SKU-1"

    @pytest.mark.asyncio
    async def test_custody_malformed(self) -> None:
        store = HTTPCustodyHistoryStore(BASE_URL)
        attach(store, respond(200, {"transfers": [{"from_party": "factory"}]}))

        with pytest.raises(SourceUnavailableError, match="malformed"):
            await store.transfers("SKU-1")

    @pytest.mark.asyncio
    async def test_reviews_filtered_by_since(self) -> None:
        since = datetime(2026, 3, 1, tzinfo=UTC)
        store = HTTPReviewSignalStore(BASE_URL)
        seen = attach(
            store,
            respond(
                200,
                {
                    "reviews": [
                        {
                            "review_id": "r1",
                            "author_id": "a1",
                            "fraud_score": 0.9,
                            "posted_at": (since + timedelta(hours=1)).isoformat(),
                        },
                        {
                            "review_id": "r0",
                            "author_id": "a2",
                            "fraud_score": 0.9,
                            "posted_at": (since - timedelta(days=3)).isoformat(),
                        },
                    ]
                },
            ),
        )

        reviews = await store.reviews("SKU-1", since)

        assert [r.review_id for r in reviews] == ["r1"]
        assert seen[0].url.params["since"] == since.isoformat()


class TestWebhookNotificationSink:
    """Tests for webhook alert delivery."""

    @pytest.mark.asyncio
    async def test_publish_posts_alert(self) -> None:
        sink = WebhookNotificationSink(BASE_URL)
        seen = attach(sink, respond(202, {"accepted": True}))
        alert = FraudAlert(
            kind=FraudAlertKind.REVIEW_FRAUD,
            severity=AlertSeverity.MEDIUM,
            affected=frozenset({"SKU-1"}),
        )

        await sink.publish(alert)

        assert seen[0].url.path == "/alerts"
        assert json.loads(seen[0].content)["id"] == str(alert.id)

    @pytest.mark.asyncio
    async def test_missing_endpoint_is_a_failure(self) -> None:
        sink = WebhookNotificationSink(BASE_URL)
        attach(sink, respond(404))
        alert = FraudAlert(kind=FraudAlertKind.SERIAL_CLONE, severity=AlertSeverity.HIGH)

        with pytest.raises(SourceUnavailableError, match="HTTP 404"):
            await sink.publish(alert)

    @pytest.mark.asyncio
    async def test_close_releases_client(self) -> None:
        sink = WebhookNotificationSink(BASE_URL)
        attach(sink, respond(202))

        await sink.close()

        assert not sink.is_connected
