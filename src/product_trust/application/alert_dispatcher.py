"""
Alert Dispatcher
================

Bounded outbound queue between the fraud producers and the notification
sink. Producers call ``submit`` and never wait for delivery; a single
background task drains the queue and retries failed deliveries.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from product_trust.ports.notification import AlertPublisher

if TYPE_CHECKING:
    from product_trust.domain.results import FraudAlert
    from product_trust.ports.notification import NotificationSink

logger = logging.getLogger(__name__)


class AlertDispatcher(AlertPublisher):
    """
    Fire-and-forget alert delivery.

    A full queue drops the new alert and logs it; delivery failures are
    retried with linear backoff and then logged. Neither ever reaches the
    producer.
    """

    def __init__(
        self,
        sink: NotificationSink,
        *,
        max_queue_size: int = 1000,
        max_attempts: int = 3,
        retry_delay: float = 0.5,
    ) -> None:
        self._sink = sink
        self._queue: asyncio.Queue[FraudAlert] = asyncio.Queue(maxsize=max_queue_size)
        self._max_attempts = max(1, max_attempts)
        self._retry_delay = retry_delay
        self._worker_task: asyncio.Task[None] | None = None
        self._closed = False

        # Stats
        self._submitted = 0
        self._dropped = 0
        self._delivered = 0
        self._failed = 0

    @property
    def is_running(self) -> bool:
        return self._worker_task is not None and not self._worker_task.done()

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def submit(self, alert: FraudAlert) -> bool:
        if self._closed:
            self._dropped += 1
            logger.warning(f"Dispatcher stopped; dropping alert {alert.id}")
            return False
        try:
            self._queue.put_nowait(alert)
        except asyncio.QueueFull:
            self._dropped += 1
            logger.error(f"Alert queue full; dropping {alert.kind} alert {alert.id}")
            return False
        self._submitted += 1
        return True

    def start(self) -> None:
        """Start the background delivery task."""
        if self.is_running:
            return
        self._closed = False
        self._worker_task = asyncio.create_task(self._run(), name="alert-dispatcher")
        logger.info("Alert dispatcher started")

    async def join(self) -> None:
        """Wait until every queued alert was handled."""
        await self._queue.join()

    async def shutdown(self, drain_timeout: float = 5.0) -> None:
        """
        Stop accepting alerts, drain what is queued, then stop the worker.

        Alerts still queued after ``drain_timeout`` are discarded.
        """
        self._closed = True
        if self.is_running:
            try:
                await asyncio.wait_for(self._queue.join(), timeout=drain_timeout)
            except asyncio.TimeoutError:
                logger.warning(f"Discarding {self._queue.qsize()} undelivered alert(s) on shutdown")

        if self._worker_task is not None:
            self._worker_task.cancel()
            try:
                await self._worker_task
            except asyncio.CancelledError:
                pass
            self._worker_task = None

        await self._sink.close()
        logger.info(
            f"Alert dispatcher stopped (delivered={self._delivered}, "
            f"failed={self._failed}, dropped={self._dropped})"
        )

    def get_stats(self) -> dict[str, Any]:
        return {
            "running": self.is_running,
            "pending": self.pending,
            "submitted": self._submitted,
            "delivered": self._delivered,
            "failed": self._failed,
            "dropped": self._dropped,
        }

    async def _run(self) -> None:
        while True:
            alert = await self._queue.get()
            try:
                await self._deliver(alert)
            finally:
                self._queue.task_done()

    async def _deliver(self, alert: FraudAlert) -> None:
        for attempt in range(1, self._max_attempts + 1):
            try:
                await self._sink.publish(alert)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                if attempt < self._max_attempts:
                    logger.warning(
                        f"Delivery of alert {alert.id} failed (attempt {attempt}): {e}. "
                        f"Retrying in {self._retry_delay * attempt:.1f}s"
                    )
                    await asyncio.sleep(self._retry_delay * attempt)
                    continue
                self._failed += 1
                logger.error(
                    f"Giving up on alert {alert.id} after {self._max_attempts} attempts: {e}"
                )
                return
            self._delivered += 1
            logger.debug(f"Delivered {alert.kind} alert {alert.id}")
            return
