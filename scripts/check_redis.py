#!/usr/bin/env python3
"""Check connectivity to the cache/store used by the readiness probe.

Exits 0 when the store answers (or none is configured), 1 when it is
configured but unreachable.
"""

import asyncio
import sys

from partner_gateway.infra.cache import CacheUnavailableError, ping_cache
from partner_gateway.infra.config import config


async def check() -> int:
    if not config.REDIS_URL:
        print("REDIS_URL not set; readiness probe skips the cache check")
        return 0

    try:
        await ping_cache(config.REDIS_URL, timeout=5.0)
    except CacheUnavailableError as e:
        print(f"Cache unreachable: {e}")
        return 1

    print("Cache reachable")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(check()))
