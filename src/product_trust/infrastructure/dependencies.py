"""
Dependency Injection Container
==============================

Provides FastAPI dependency functions for injecting the trust service and
its collaborators. Wires adapters to ports based on configuration.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from fastapi import FastAPI

from product_trust.adapters.outbound.cache_redis import RedisTrustScoreCache
from product_trust.adapters.outbound.history_http import (
    HTTPCustodyHistoryStore,
    HTTPReviewSignalStore,
)
from product_trust.adapters.outbound.history_redis import (
    RedisFeedbackStore,
    RedisFraudStateStore,
    RedisScanHistoryStore,
)
from product_trust.adapters.outbound.http_base import HTTPSourceAdapter
from product_trust.adapters.outbound.memory import (
    InMemoryFeedbackStore,
    InMemoryFraudStateStore,
    InMemoryScanHistoryStore,
    InMemoryTrustScoreCache,
)
from product_trust.adapters.outbound.notification import (
    LoggingNotificationSink,
    WebhookNotificationSink,
)
from product_trust.adapters.outbound.redis_client import RedisConnectionError
from product_trust.adapters.outbound.signals_http import HTTPSocialProofSource
from product_trust.adapters.outbound.verification_http import (
    HTTPDistributedLedger,
    HTTPManufacturerRegistry,
)
from product_trust.adapters.outbound.vision_http import (
    HTTPExpiryDateExtractor,
    HTTPVisualComparator,
    VisionServiceClient,
    build_tamper_detectors,
)
from product_trust.adapters.outbound.weights_config import ConfiguredWeightsProvider
from product_trust.application.alert_dispatcher import AlertDispatcher
from product_trust.application.trust_service import ProductTrustService
from product_trust.domain.services.authenticity_verifier import (
    CascadingAuthenticityVerifier,
    LedgerVerification,
    RegistryVerification,
    VisualVerification,
)
from product_trust.domain.services.fraud_detector import (
    ReviewFraudDetector,
    SerialCloneDetector,
    SupplyChainAnomalyDetector,
)
from product_trust.domain.services.freshness import ExpiryFreshnessSource
from product_trust.domain.services.tampering_classifier import TamperingClassifier
from product_trust.domain.services.trust_aggregator import (
    SignalBudgets,
    TrustScoreAggregator,
)
from product_trust.infrastructure.config import get_settings
from product_trust.ports.cache import TrustScoreCache
from product_trust.ports.feedback import FeedbackStore
from product_trust.ports.fraud_state import FraudStateStore
from product_trust.ports.history import ScanHistoryStore
from product_trust.ports.notification import NotificationSink
from product_trust.ports.weights import WeightsProvider

logger = logging.getLogger(__name__)

DISCONNECT_TIMEOUT_SECONDS = 5.0


# -----------------------------------------------------------------------------
# Singleton holders (initialized on app startup)
# -----------------------------------------------------------------------------

_cache: TrustScoreCache | None = None
_redis_cache: RedisTrustScoreCache | None = None
_scan_history: ScanHistoryStore | None = None
_feedback_store: FeedbackStore | None = None
_fraud_state: FraudStateStore | None = None
_http_sources: list[HTTPSourceAdapter] = []
_alert_dispatcher: AlertDispatcher | None = None
_weights_provider: WeightsProvider | None = None
_trust_service: ProductTrustService | None = None


# -----------------------------------------------------------------------------
# Lifecycle management
# -----------------------------------------------------------------------------


@asynccontextmanager
async def lifespan_manager(app: FastAPI) -> AsyncIterator[dict[str, Any]]:
    """
    Manage application lifecycle: initialize and cleanup adapters.

    Usage in FastAPI:
        app = FastAPI(lifespan=lifespan_manager)
    """
    await _initialize_adapters()
    try:
        yield {}
    finally:
        await _cleanup_adapters()


async def _initialize_stores() -> None:
    """Redis-backed cache and history stores, in-memory when Redis is off or down."""
    global _cache, _redis_cache, _scan_history, _feedback_store, _fraud_state

    settings = get_settings()
    retention = timedelta(hours=settings.redis.scan_retention_hours)

    if settings.redis.enabled:
        redis_cache = RedisTrustScoreCache(settings.redis)
        try:
            await redis_cache.connect()
        except RedisConnectionError as e:
            logger.error(f"Redis unavailable, falling back to in-memory stores: {e}")
        else:
            _redis_cache = redis_cache
            _cache = redis_cache
            _scan_history = RedisScanHistoryStore(redis_cache.client, retention=retention)
            _feedback_store = RedisFeedbackStore(redis_cache.client)
            _fraud_state = RedisFraudStateStore(redis_cache.client)
            logger.info(f"Cache connected: {settings.redis.host}:{settings.redis.port}")
            return
    else:
        logger.info("Redis disabled")

    _cache = InMemoryTrustScoreCache(settings.redis.cache_ttl_seconds)
    _scan_history = InMemoryScanHistoryStore(retention)
    _feedback_store = InMemoryFeedbackStore()
    _fraud_state = InMemoryFraudStateStore()
    logger.info("Using in-memory cache and history stores")


async def _initialize_adapters() -> None:
    """
    Initialize all adapters based on configuration.

    This is where concrete adapter implementations are wired to ports.

    Raises:
        ConfigurationError: If a configured weight set is invalid.
    """
    global _http_sources, _alert_dispatcher, _weights_provider, _trust_service

    settings = get_settings()
    logger.info(f"Initializing DI container - Environment: {settings.environment}")

    # Weights are validated before anything connects
    _weights_provider = ConfiguredWeightsProvider.from_settings(settings.weights)

    await _initialize_stores()

    # External collaborators
    sources = settings.sources
    engine = settings.engine
    token = sources.api_token.get_secret_value() if sources.api_token else None
    lookup_timeout = engine.lookup_timeout_ms / 1000
    vision_timeout = engine.vision_timeout_ms / 1000

    def http_options(timeout: float) -> dict[str, Any]:
        return {
            "timeout": timeout,
            "connect_timeout": min(sources.connect_timeout_seconds, timeout),
            "max_connections": sources.max_connections,
            "api_token": token,
        }

    registry = HTTPManufacturerRegistry(sources.registry_url, **http_options(lookup_timeout))
    ledger = HTTPDistributedLedger(sources.ledger_url, **http_options(lookup_timeout))
    vision = VisionServiceClient(sources.vision_url, **http_options(vision_timeout))
    social_proof = HTTPSocialProofSource(
        sources.social_proof_url, **http_options(lookup_timeout)
    )
    custody = HTTPCustodyHistoryStore(sources.custody_url, **http_options(lookup_timeout))
    reviews = HTTPReviewSignalStore(sources.reviews_url, **http_options(lookup_timeout))

    _http_sources = [registry, ledger, vision, social_proof, custody, reviews]
    for source in _http_sources:
        await source.connect()

    # Fraud alert delivery
    sink: NotificationSink
    if sources.notification_url:
        webhook = WebhookNotificationSink(
            sources.notification_url, **http_options(sources.connect_timeout_seconds)
        )
        await webhook.connect()
        sink = webhook
        logger.info(f"Fraud alerts delivered to {sources.notification_url}")
    else:
        sink = LoggingNotificationSink()
        logger.info("No notification webhook configured; fraud alerts are logged only")

    _alert_dispatcher = AlertDispatcher(
        sink,
        max_queue_size=engine.alert_queue_size,
        max_attempts=engine.alert_max_attempts,
    )
    _alert_dispatcher.start()

    # Domain services
    assert _scan_history is not None and _fraud_state is not None
    clone_detector = SerialCloneDetector(
        _scan_history,
        _fraud_state,
        window=timedelta(hours=engine.clone_window_hours),
        distance_km=engine.clone_distance_km,
        flag_ttl=timedelta(hours=engine.clone_flag_ttl_hours),
        alert_publisher=_alert_dispatcher,
    )
    supply_chain_detector = SupplyChainAnomalyDetector(
        custody,
        _fraud_state,
        window=timedelta(hours=engine.custody_window_hours),
        alert_publisher=_alert_dispatcher,
    )
    review_detector = ReviewFraudDetector(
        reviews,
        _fraud_state,
        window=timedelta(days=engine.review_window_days),
        fraud_score_threshold=engine.review_fraud_threshold,
        alert_publisher=_alert_dispatcher,
    )

    verifier = CascadingAuthenticityVerifier(
        [
            RegistryVerification(registry, timeout_seconds=lookup_timeout),
            LedgerVerification(ledger, timeout_seconds=lookup_timeout),
            VisualVerification(HTTPVisualComparator(vision), timeout_seconds=vision_timeout),
        ],
        pass_threshold=engine.pass_threshold,
        fraud_alert_threshold=engine.fraud_alert_threshold,
        is_cloned_serial=clone_detector.is_flagged,
        alert_publisher=_alert_dispatcher,
    )
    classifier = TamperingClassifier(
        build_tamper_detectors(vision),
        indicator_threshold=engine.indicator_threshold,
        timeout_seconds=vision_timeout,
        feedback_store=_feedback_store,
    )
    freshness = ExpiryFreshnessSource(
        HTTPExpiryDateExtractor(vision),
        horizon_days=engine.freshness_horizon_days,
    )

    budgets = SignalBudgets(
        lookup_seconds=lookup_timeout,
        vision_seconds=vision_timeout,
        overhead_seconds=engine.aggregation_overhead_ms / 1000,
    )
    aggregator = TrustScoreAggregator(
        verifier,
        classifier,
        freshness,
        social_proof,
        _weights_provider,
        _cache,
        budgets=budgets,
        cache_ttl_seconds=settings.redis.cache_ttl_seconds,
    )
    logger.info(
        f"Trust aggregator initialized: lookup_budget={engine.lookup_timeout_ms}ms, "
        f"vision_budget={engine.vision_timeout_ms}ms, total={budgets.total:.2f}s"
    )

    _trust_service = ProductTrustService(
        aggregator,
        verifier,
        classifier,
        clone_detector,
        supply_chain_detector=supply_chain_detector,
        review_detector=review_detector,
    )
    logger.info("ProductTrustService initialized - DI container ready")


async def _shielded(label: str, awaitable: Any) -> None:
    try:
        await asyncio.shield(asyncio.wait_for(awaitable, timeout=DISCONNECT_TIMEOUT_SECONDS))
        logger.debug(f"Closed {label}")
    except TimeoutError:
        logger.warning(f"{label} shutdown timed out")
    except asyncio.CancelledError:
        logger.warning(f"{label} shutdown cancelled")
    except Exception as e:
        logger.warning(f"{label} shutdown failed: {e}")


async def _cleanup_adapters() -> None:
    """
    Cleanup all adapter connections on shutdown.

    Uses asyncio.shield() to protect cleanup operations from task cancellation.
    Each step is wrapped so that every adapter gets cleaned up.
    """
    global _cache, _redis_cache, _scan_history, _feedback_store, _fraud_state
    global _http_sources, _alert_dispatcher, _weights_provider, _trust_service

    logger.info("Starting adapter cleanup...")

    _trust_service = None

    # Drain queued alerts first; delivery may still need the webhook client
    if _alert_dispatcher is not None:
        await _shielded("alert dispatcher", _alert_dispatcher.shutdown())
        _alert_dispatcher = None

    for source in _http_sources:
        await _shielded(source.source_name, source.disconnect())
    _http_sources = []

    if _redis_cache is not None:
        await _shielded("Redis cache", _redis_cache.disconnect())
        _redis_cache = None

    _cache = None
    _scan_history = None
    _feedback_store = None
    _fraud_state = None
    _weights_provider = None

    logger.info("Adapter cleanup complete")


# -----------------------------------------------------------------------------
# FastAPI Dependency providers
# -----------------------------------------------------------------------------


async def get_trust_service() -> ProductTrustService:
    """Dependency: Get the main trust service instance."""
    if _trust_service is None:
        raise RuntimeError("ProductTrustService not initialized. Check adapter configuration.")
    return _trust_service


async def get_cache() -> TrustScoreCache | None:
    """Dependency: Get the score cache (None before startup)."""
    return _cache


async def get_scan_history() -> ScanHistoryStore | None:
    """Dependency: Get the scan history store (None before startup)."""
    return _scan_history


async def get_alert_dispatcher() -> AlertDispatcher:
    """Dependency: Get the alert dispatcher instance."""
    if _alert_dispatcher is None:
        raise RuntimeError("Alert dispatcher not initialized. Check adapter configuration.")
    return _alert_dispatcher


async def get_weights_provider() -> WeightsProvider:
    """Dependency: Get the weights provider instance."""
    if _weights_provider is None:
        raise RuntimeError("Weights provider not initialized. Check adapter configuration.")
    return _weights_provider


async def get_source_adapters() -> list[HTTPSourceAdapter]:
    """Dependency: Get the HTTP collaborators (empty before startup)."""
    return list(_http_sources)
