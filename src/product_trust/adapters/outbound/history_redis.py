"""
Redis History Adapters
======================

Scan history, tampering feedback and fraud detector state on the same
Redis connection as the score cache.

Layout:
- ``pt:scans:{serial}``: sorted set of scan ids scored by scan timestamp
- ``pt:scan-data:{serial}``: hash of scan id -> scan JSON
- ``pt:feedback:{product_id}``: list of feedback JSON, append-only
- ``pt:alert:{kind}:{subject}``: last alert mark of a detector, with TTL
- ``pt:clone-flag:{serial}``: clone flag, with TTL
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from pydantic import ValidationError

from product_trust.domain.entities import ScanRecord
from product_trust.domain.errors import SourceUnavailableError
from product_trust.domain.results import AlertSeverity, TamperingFeedback
from product_trust.ports.feedback import FeedbackStore
from product_trust.ports.fraud_state import AlertMark, FraudStateStore
from product_trust.ports.history import ScanHistoryStore

if TYPE_CHECKING:
    import redis.asyncio as redis

logger = logging.getLogger(__name__)

SCAN_INDEX_PREFIX = "pt:scans:"
SCAN_DATA_PREFIX = "pt:scan-data:"
FEEDBACK_PREFIX = "pt:feedback:"
ALERT_MARK_PREFIX = "pt:alert:"
CLONE_FLAG_PREFIX = "pt:clone-flag:"


class RedisScanHistoryStore(ScanHistoryStore):
    """
    Scan history per serial.

    Scans older than ``retention`` relative to the newest scan of their
    serial are pruned on write.
    """

    source_name = "scan-history"

    def __init__(
        self,
        client: redis.Redis,  # type: ignore[type-arg]
        *,
        retention: timedelta = timedelta(hours=72),
    ) -> None:
        self._client = client
        self._retention = retention

    async def record(self, scan: ScanRecord) -> None:
        index_key = f"{SCAN_INDEX_PREFIX}{scan.serial_number}"
        data_key = f"{SCAN_DATA_PREFIX}{scan.serial_number}"
        timestamp = scan.scanned_at.timestamp()
        try:
            pipe = self._client.pipeline()
            pipe.zadd(index_key, {scan.scan_id: timestamp})
            pipe.hset(data_key, scan.scan_id, scan.model_dump_json())
            await pipe.execute()
            await self._prune(index_key, data_key)
        except Exception as e:
            logger.error(f"Failed to record scan {scan.scan_id}: {e}")
            raise SourceUnavailableError(self.source_name, str(e)) from e

    async def query(self, serial_number: str, window: timedelta) -> list[ScanRecord]:
        index_key = f"{SCAN_INDEX_PREFIX}{serial_number}"
        data_key = f"{SCAN_DATA_PREFIX}{serial_number}"
        try:
            newest = await self._client.zrange(index_key, -1, -1, withscores=True)
            if not newest:
                return []
            latest = float(newest[0][1])
            scan_ids = await self._client.zrangebyscore(
                index_key, latest - window.total_seconds(), latest
            )
            if not scan_ids:
                return []
            payloads = await self._client.hmget(data_key, scan_ids)  # type: ignore[misc]
        except Exception as e:
            logger.error(f"Failed to query scans for {serial_number}: {e}")
            raise SourceUnavailableError(self.source_name, str(e)) from e

        scans: list[ScanRecord] = []
        for payload in payloads:
            if payload is None:
                continue
            try:
                scans.append(ScanRecord.model_validate(json.loads(payload)))
            except (json.JSONDecodeError, ValidationError) as e:
                logger.error(f"Skipping unreadable scan record for {serial_number}: {e}")
        scans.sort(key=lambda s: s.scanned_at)
        return scans

    async def health_check(self) -> bool:
        try:
            await self._client.ping()  # type: ignore[misc]
            return True
        except Exception:
            return False

    async def _prune(self, index_key: str, data_key: str) -> None:
        newest = await self._client.zrange(index_key, -1, -1, withscores=True)
        if not newest:
            return
        cutoff = float(newest[0][1]) - self._retention.total_seconds()
        expired = await self._client.zrangebyscore(index_key, "-inf", f"({cutoff}")
        if not expired:
            return
        pipe = self._client.pipeline()
        pipe.zrem(index_key, *expired)
        pipe.hdel(data_key, *expired)
        await pipe.execute()
        logger.debug(f"Pruned {len(expired)} expired scan(s) from {index_key}")


class RedisFeedbackStore(FeedbackStore):
    """Append-only tampering feedback, one list per product."""

    source_name = "feedback"

    def __init__(self, client: redis.Redis) -> None:  # type: ignore[type-arg]
        self._client = client

    async def append(self, feedback: TamperingFeedback) -> None:
        key = f"{FEEDBACK_PREFIX}{feedback.product_id}"
        try:
            await self._client.rpush(key, feedback.model_dump_json())  # type: ignore[misc]
        except Exception as e:
            logger.error(f"Failed to store feedback for scan {feedback.scan_id}: {e}")
            raise SourceUnavailableError(self.source_name, str(e)) from e

    async def list_for_product(self, product_id: str) -> list[TamperingFeedback]:
        key = f"{FEEDBACK_PREFIX}{product_id}"
        try:
            payloads = await self._client.lrange(key, 0, -1)  # type: ignore[misc]
        except Exception as e:
            logger.error(f"Failed to read feedback for {product_id}: {e}")
            raise SourceUnavailableError(self.source_name, str(e)) from e
        return [TamperingFeedback.model_validate(json.loads(p)) for p in payloads]


class RedisFraudStateStore(FraudStateStore):
    """
    Detector state shared by all workers.

    Marks and flags are plain keys expiring with their TTL, so Redis does
    the eviction.
    """

    source_name = "fraud-state"

    def __init__(self, client: redis.Redis) -> None:  # type: ignore[type-arg]
        self._client = client

    async def last_alert(self, kind: str, subject: str) -> AlertMark | None:
        key = f"{ALERT_MARK_PREFIX}{kind}:{subject}"
        try:
            payload = await self._client.get(key)
        except Exception as e:
            logger.error(f"Failed to read alert mark {key}: {e}")
            raise SourceUnavailableError(self.source_name, str(e)) from e
        if payload is None:
            return None
        try:
            data = json.loads(payload)
            return AlertMark(
                anchor=datetime.fromisoformat(data["anchor"]),
                severity=AlertSeverity(data["severity"]),
            )
        except (json.JSONDecodeError, KeyError, ValueError) as e:
            logger.error(f"Ignoring unreadable alert mark {key}: {e}")
            return None

    async def mark_alerted(
        self, kind: str, subject: str, mark: AlertMark, ttl: timedelta
    ) -> None:
        key = f"{ALERT_MARK_PREFIX}{kind}:{subject}"
        payload = json.dumps(
            {"anchor": mark.anchor.isoformat(), "severity": mark.severity.value}
        )
        try:
            await self._client.set(key, payload, ex=_ttl_seconds(ttl))
        except Exception as e:
            logger.error(f"Failed to store alert mark {key}: {e}")
            raise SourceUnavailableError(self.source_name, str(e)) from e

    async def flag_serial(self, serial_number: str, ttl: timedelta) -> None:
        try:
            await self._client.set(
                f"{CLONE_FLAG_PREFIX}{serial_number}", "1", ex=_ttl_seconds(ttl)
            )
        except Exception as e:
            logger.error(f"Failed to flag serial {serial_number}: {e}")
            raise SourceUnavailableError(self.source_name, str(e)) from e

    async def is_flagged(self, serial_number: str) -> bool:
        try:
            return bool(await self._client.exists(f"{CLONE_FLAG_PREFIX}{serial_number}"))
        except Exception as e:
            logger.error(f"Failed to read clone flag for {serial_number}: {e}")
            raise SourceUnavailableError(self.source_name, str(e)) from e

    async def health_check(self) -> bool:
        try:
            await self._client.ping()  # type: ignore[misc]
            return True
        except Exception:
            return False


def _ttl_seconds(ttl: timedelta) -> int:
    return max(1, int(ttl.total_seconds()))
