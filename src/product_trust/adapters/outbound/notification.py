"""
Notification Sinks
==================

Delivery of fraud alerts: an HTTP webhook, or the log when no webhook is
configured.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from product_trust.adapters.outbound.http_base import HTTPSourceAdapter
from product_trust.ports.notification import NotificationSink

if TYPE_CHECKING:
    from product_trust.domain.results import FraudAlert

logger = logging.getLogger(__name__)
alert_logger = logging.getLogger("product_trust.alerts")


class WebhookNotificationSink(HTTPSourceAdapter, NotificationSink):
    """POSTs each alert as JSON to ``{base_url}/alerts``."""

    source_name = "notification-webhook"

    async def publish(self, alert: FraudAlert) -> None:
        await self._post("/alerts", alert.model_dump(mode="json"), not_found_ok=False)
        logger.debug(f"Posted alert {alert.id} to webhook")

    async def close(self) -> None:
        await self.disconnect()


class LoggingNotificationSink(NotificationSink):
    """Writes alerts to the ``product_trust.alerts`` logger."""

    async def publish(self, alert: FraudAlert) -> None:
        alert_logger.warning(
            f"FRAUD ALERT {alert.id} kind={alert.kind} severity={alert.severity} "
            f"affected={sorted(alert.affected)} evidence={alert.evidence} "
            f"description={alert.description!r}"
        )
