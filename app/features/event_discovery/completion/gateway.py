"""
Completion gateway: response cache, single-flight and rate-gated retries.

All language-model calls of the service go through one CompletionGateway
instance so pacing, cooldown and cached responses are shared across runs.
"""

import asyncio
import hashlib
import json
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

from app.features.event_discovery.completion.rate_gate import RateGate
from app.features.event_discovery.completion.response_cache import TTLCache
from app.features.event_discovery.domain.errors import RateLimited, ServerError
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class CompletionTransport(Protocol):
    async def complete(self, payload: dict[str, Any]) -> dict[str, Any]: ...


def content_key(payload: dict[str, Any]) -> str:
    """Stable hash of a request payload, independent of dict ordering."""
    encoded = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest()


class CompletionGateway:
    def __init__(
        self,
        transport: CompletionTransport,
        rate_gate: RateGate,
        cache: TTLCache[dict[str, Any]],
        max_retries: int = 1,
        backoff_base_seconds: float = 1.0,
        backoff_cap_seconds: float = 8.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.transport = transport
        self.rate_gate = rate_gate
        self.cache = cache
        self.max_retries = max_retries
        self.backoff_base = backoff_base_seconds
        self.backoff_cap = backoff_cap_seconds
        self._sleep = sleep
        self._inflight: dict[str, asyncio.Task] = {}
        self.calls_issued = 0

    def _backoff(self, attempt: int) -> float:
        return min(self.backoff_cap, self.backoff_base * (2**attempt))

    async def invoke(
        self,
        payload: dict[str, Any],
        cache_ttl: float | None = None,
        allow_fast_fail: bool = False,
    ) -> dict[str, Any]:
        """
        Return the completion for payload, calling the API at most once per
        distinct payload while a live cache entry or in-flight call exists.

        Concurrent callers with an identical payload share the first caller's
        call, including its fast-fail choice.

        Raises:
            Cooldown: gate is cooling down and allow_fast_fail is set
            RateLimited: rate limited and no retry is allowed
            ServerError: server errors persisted through all retries
        """
        key = content_key(payload)

        # Expired entries of payloads that never repeat are only dropped here
        self.cache.purge_expired()
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("Completion cache hit", key=key[:12])
            return cached

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.create_task(self._call(key, payload, cache_ttl, allow_fast_fail))
            self._inflight[key] = task
            task.add_done_callback(lambda finished: self._forget(key, finished))
        else:
            logger.debug("Joining in-flight completion", key=key[:12])

        # Shielded so one cancelled waiter does not cancel the shared call
        return await asyncio.shield(task)

    def _forget(self, key: str, task: asyncio.Task) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        if not task.cancelled():
            # Mark exceptions as retrieved when every waiter went away
            task.exception()

    async def _call(
        self,
        key: str,
        payload: dict[str, Any],
        cache_ttl: float | None,
        allow_fast_fail: bool,
    ) -> dict[str, Any]:
        respect_cooldown = True
        for attempt in range(self.max_retries + 1):
            await self.rate_gate.acquire(fast_fail=allow_fast_fail, respect_cooldown=respect_cooldown)
            self.calls_issued += 1
            try:
                result = await self.transport.complete(payload)
            except RateLimited:
                self.rate_gate.trip_cooldown()
                if allow_fast_fail or attempt >= self.max_retries:
                    raise
                # The retry is part of the call that tripped the cooldown
                respect_cooldown = False
                delay = self._backoff(attempt)
                logger.warning("Completion rate limited, retrying", attempt=attempt + 1, delay=delay)
                await self._sleep(delay)
                continue
            except ServerError as e:
                if attempt >= self.max_retries:
                    raise
                delay = self._backoff(attempt)
                logger.warning(
                    "Completion server error, retrying",
                    attempt=attempt + 1,
                    delay=delay,
                    error=str(e),
                )
                await self._sleep(delay)
                continue

            self.cache.set(key, result, cache_ttl)
            return result

        raise ServerError("Completion retry loop exhausted")
