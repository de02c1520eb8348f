"""Shared Redis connection setup for the cache and history adapters."""

from __future__ import annotations

import asyncio
import logging
import socket
from typing import TYPE_CHECKING

import redis.asyncio as redis

if TYPE_CHECKING:
    from product_trust.infrastructure.config import RedisSettings

logger = logging.getLogger(__name__)


class RedisConnectionError(Exception):
    """Exception raised when a Redis connection cannot be established."""

    pass


async def connect_with_retries(
    settings: RedisSettings,
    *,
    max_retries: int = 10,
    retry_delay: float = 1.0,
) -> redis.Redis:  # type: ignore[type-arg]
    """
    Open a pooled Redis client and verify it with PING.

    Connects over the Unix socket when ``socket_path`` is set, TCP (IPv4)
    otherwise.

    Raises:
        RedisConnectionError: If every attempt failed.
    """
    last_error: Exception | None = None
    password = settings.password.get_secret_value() if settings.password else None

    for attempt in range(max_retries):
        try:
            if settings.socket_path:
                pool = redis.ConnectionPool(
                    connection_class=redis.UnixDomainSocketConnection,
                    path=settings.socket_path,
                    password=password,
                    db=settings.db,
                    max_connections=settings.max_connections,
                )
                target = f"unix:{settings.socket_path}"
            else:
                pool = redis.ConnectionPool(
                    host=settings.host,
                    port=settings.port,
                    password=password,
                    db=settings.db,
                    max_connections=settings.max_connections,
                )
                # Force IPv4 socket family on the connection class
                pool.connection_class = type(
                    "IPv4Connection",
                    (pool.connection_class,),
                    {"socket_type": socket.AF_INET},
                )
                target = f"{settings.host}:{settings.port}"

            if attempt == 0:
                logger.info("Connecting to Redis at %s", target)

            client = redis.Redis(connection_pool=pool, decode_responses=False)
            await client.ping()  # type: ignore[misc]
            logger.info("Connected to Redis at %s", target)
            return client

        except (redis.ConnectionError, FileNotFoundError) as e:
            last_error = e
            if attempt < max_retries - 1:
                logger.warning(
                    "Redis connection attempt %s failed: %s. Retrying in %ss...",
                    attempt + 1,
                    e,
                    retry_delay,
                )
                await asyncio.sleep(retry_delay)
            continue
        except Exception as e:
            logger.error(f"Unexpected Redis error: {e}")
            raise RedisConnectionError(f"Connection failed: {e}") from e

    logger.error(f"Redis connection failed after {max_retries} attempts: {last_error}")
    raise RedisConnectionError(f"Connection failed after {max_retries} attempts: {last_error}")
