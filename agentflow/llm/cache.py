"""
Two-tier cache for LLM responses.

L1 is a bounded in-process dict evicted oldest-first; L2 is the injected
key-value store (Redis in production). Entries expire after the TTL in both
tiers. A hit skips the budget check and the provider call entirely.
"""

import hashlib
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

from ..metrics import llm_cache_requests_total
from ..models import CompletionResponse
from ..storage import KeyValueStore


logger = logging.getLogger(__name__)

KEY_PREFIX = "llm:"


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    cost_saved: float = 0.0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0


class LLMResponseCache:
    """L1 memory + L2 store cache keyed on agent, prompt and context prefix."""

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        max_entries: Optional[int] = None,
        ttl_seconds: Optional[int] = None,
        clock: Callable[[], float] = time.time,
    ):
        from ..core.config import settings
        self.store = store
        self.max_entries = max_entries if max_entries is not None else settings.LLM_CACHE_MAX_ENTRIES
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.LLM_CACHE_TTL_SECONDS
        self._memory: "OrderedDict[str, Tuple[float, CompletionResponse]]" = OrderedDict()
        self._clock = clock
        self.stats = CacheStats()

    @staticmethod
    def make_key(agent: str, prompt: str, context: Optional[str] = None) -> str:
        raw = f"{agent}:{prompt}:{(context or '')[:100]}"
        return KEY_PREFIX + hashlib.sha256(raw.encode("utf-8")).hexdigest()

    def _expired(self, stored_at: float) -> bool:
        return self._clock() - stored_at > self.ttl_seconds

    async def get(self, agent: str, prompt: str, context: Optional[str] = None) -> Optional[CompletionResponse]:
        key = self.make_key(agent, prompt, context)

        entry = self._memory.get(key)
        if entry is not None:
            stored_at, response = entry
            if not self._expired(stored_at):
                return self._hit(response)
            del self._memory[key]

        if self.store is not None:
            payload = await self.store.get(key)
            if payload and not self._expired(payload.get("stored_at", 0)):
                response = CompletionResponse.model_validate(payload["response"])
                self._remember(key, payload["stored_at"], response)
                return self._hit(response)

        self.stats.misses += 1
        llm_cache_requests_total.labels(result="miss").inc()
        return None

    def _hit(self, response: CompletionResponse) -> CompletionResponse:
        self.stats.hits += 1
        self.stats.cost_saved += response.cost
        llm_cache_requests_total.labels(result="hit").inc()
        return response

    def _remember(self, key: str, stored_at: float, response: CompletionResponse) -> None:
        self._memory[key] = (stored_at, response)
        self._memory.move_to_end(key)
        while len(self._memory) > self.max_entries:
            self._memory.popitem(last=False)

    async def set(self, agent: str, prompt: str, response: CompletionResponse, context: Optional[str] = None) -> None:
        key = self.make_key(agent, prompt, context)
        stored_at = self._clock()
        self._remember(key, stored_at, response)
        if self.store is not None:
            await self.store.set(
                key,
                {"stored_at": stored_at, "response": response.model_dump(mode="json")},
                ttl=self.ttl_seconds,
            )

    async def clear(self) -> None:
        self._memory.clear()
        if self.store is not None:
            removed = await self.store.clear_pattern(f"{KEY_PREFIX}*")
            logger.info(f"Cleared {removed} cached LLM responses from store")
        self.stats = CacheStats()

    def get_stats(self) -> Dict[str, Any]:
        return {
            "hits": self.stats.hits,
            "misses": self.stats.misses,
            "hit_rate": self.stats.hit_rate,
            "cost_saved": self.stats.cost_saved,
            "entries": len(self._memory),
        }
