"""
Discovery result cache.

An in-process TTL tier is always present; when Redis is configured it is
mirrored there so several service processes share fast-path hits.
"""

import json

from app.features.event_discovery.completion.response_cache import TTLCache
from app.features.event_discovery.domain.models import (
    DiscoveryResult,
    ExtractedEvent,
    ScrapingStatus,
)
from app.infrastructure.observability.logging import get_logger
from app.services.redis_client import FastRedisClient

logger = get_logger(__name__)

REDIS_PREFIX = "discovery:result:"


def _serialize(result: DiscoveryResult) -> str:
    return json.dumps(result.to_dict())


def _deserialize(raw: str) -> DiscoveryResult:
    data = json.loads(raw)
    return DiscoveryResult(
        events=[ExtractedEvent.from_dict(e) for e in data.get("events", [])],
        scraping_status=[ScrapingStatus(**s) for s in data.get("scrapingStatus", [])],
    )


class DiscoveryResultCache:
    def __init__(self, memory: TTLCache[DiscoveryResult], redis: FastRedisClient | None = None):
        self.memory = memory
        self.redis = redis

    async def get(self, key: str) -> DiscoveryResult | None:
        result = self.memory.get(key)
        if result is not None:
            return result

        if self.redis is None:
            return None
        raw = await self.redis.get(REDIS_PREFIX + key)
        if not raw:
            return None
        try:
            result = _deserialize(raw)
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("Discarding unreadable cached result", key=key, error=str(e))
            await self.redis.delete(REDIS_PREFIX + key)
            return None

        self.memory.set(key, result)
        return result

    async def set(self, key: str, result: DiscoveryResult) -> None:
        self.memory.set(key, result)
        if self.redis is not None:
            await self.redis.set_with_ttl(
                REDIS_PREFIX + key, _serialize(result), int(self.memory.ttl_seconds)
            )

    async def clear(self) -> None:
        self.memory.clear()
        if self.redis is not None:
            await self.redis.delete_prefix(REDIS_PREFIX)
