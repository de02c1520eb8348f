"""Outbound adapters for external services."""

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
)
from product_trust.adapters.outbound.weights_config import ConfiguredWeightsProvider

__all__ = [
    # Redis
    "RedisFeedbackStore",
    "RedisFraudStateStore",
    "RedisScanHistoryStore",
    "RedisTrustScoreCache",
    # HTTP collaborators
    "HTTPCustodyHistoryStore",
    "HTTPDistributedLedger",
    "HTTPExpiryDateExtractor",
    "HTTPManufacturerRegistry",
    "HTTPReviewSignalStore",
    "HTTPSocialProofSource",
    "HTTPSourceAdapter",
    "HTTPTamperDetector",
    "HTTPVisualComparator",
    "VisionServiceClient",
    # Alerts
    "LoggingNotificationSink",
    "WebhookNotificationSink",
    # Local
    "ConfiguredWeightsProvider",
    "InMemoryFeedbackStore",
    "InMemoryFraudStateStore",
    "InMemoryScanHistoryStore",
    "InMemoryTrustScoreCache",
]
