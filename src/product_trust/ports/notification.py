"""
Notification Ports
==================

Outbound path for fraud alerts.

``NotificationSink`` is the external delivery collaborator. ``AlertPublisher``
is what the domain services hold: a non-blocking hand-off that never fails
the caller.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from product_trust.domain.results import FraudAlert


class NotificationSink(ABC):
    """Port for delivering fraud alerts (webhook, message bus, ...)."""

    @abstractmethod
    async def publish(self, alert: FraudAlert) -> None:
        """
        Deliver one alert.

        Raises:
            SourceUnavailableError: If delivery failed and may be retried.
        """
        ...

    async def close(self) -> None:
        """Release resources held by the sink."""
        return None


class AlertPublisher(ABC):
    """Fire-and-forget alert hand-off used by the domain services."""

    @abstractmethod
    def submit(self, alert: FraudAlert) -> bool:
        """
        Queue an alert for delivery without blocking.

        Returns:
            True if queued, False if dropped (queue full or stopped).
        """
        ...
