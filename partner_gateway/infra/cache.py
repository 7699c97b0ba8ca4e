"""Connectivity check for the optional cache/store backing the readiness probe."""

import asyncio
import logging
from typing import Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)


class CacheUnavailableError(Exception):
    """Configured cache/store could not be reached."""


async def ping_cache(url: Optional[str], timeout: float = 2.0) -> bool:
    """
    Ping the configured cache/store.

    Returns:
        False when no store is configured, True when the ping succeeded

    Raises:
        CacheUnavailableError: If a store is configured but unreachable
    """
    if not url:
        return False

    client = redis.Redis.from_url(url, socket_connect_timeout=timeout, socket_timeout=timeout)
    try:
        await asyncio.wait_for(client.ping(), timeout=timeout)
        return True
    except (RedisError, OSError, asyncio.TimeoutError) as e:
        logger.warning("Cache ping failed", extra={"error": str(e)})
        raise CacheUnavailableError(str(e)) from e
    finally:
        await client.aclose()
