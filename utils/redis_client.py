from __future__ import annotations

import logging
from typing import Optional

import redis


logger = logging.getLogger(__name__)

_clients: dict[str, "redis.Redis"] = {}


def get_redis(url: Optional[str]) -> Optional["redis.Redis"]:
    """Shared client per URL; None when no URL is configured."""
    if not url:
        return None
    client = _clients.get(url)
    if client is None:
        client = redis.Redis.from_url(url, decode_responses=True)
        _clients[url] = client
        logger.info("Redis client created for %s", url.split("@")[-1])
    return client
