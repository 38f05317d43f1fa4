"""
Tests for the key-value stores and the two-tier LLM response cache.
"""

import pytest

from agentflow.llm.cache import LLMResponseCache
from agentflow.models import CompletionResponse, TokenUsage
from agentflow.storage import InMemoryStore, RedisStore, create_store


def make_response(text="cached", cost=0.01):
    return CompletionResponse(text=text, tokens=TokenUsage(prompt=1, completion=1, total=2), model="m", cost=cost)


class TestInMemoryStore:
    """Test the in-memory store."""

    @pytest.mark.asyncio
    async def test_set_get_delete(self, store):
        await store.set("k", {"a": 1})
        assert await store.get("k") == {"a": 1}

        assert await store.delete("k") is True
        assert await store.get("k") is None
        assert await store.delete("k") is False

    @pytest.mark.asyncio
    async def test_expired_entries_disappear(self):
        now = [1000.0]
        store = InMemoryStore(clock=lambda: now[0])
        await store.set("k", "v", ttl=10)

        now[0] += 11
        assert await store.get("k") is None

    @pytest.mark.asyncio
    async def test_clear_pattern(self, store):
        await store.set("llm:a", 1)
        await store.set("llm:b", 2)
        await store.set("other", 3)

        assert await store.clear_pattern("llm:*") == 2
        assert await store.get("other") == 3


class TestCreateStore:

    def test_defaults_to_memory(self):
        assert isinstance(create_store(None), InMemoryStore)

    def test_redis_url_gives_redis_store(self):
        store = create_store("redis://localhost:6379/0")
        assert isinstance(store, RedisStore)


class TestLLMResponseCache:
    """Test L1/L2 behaviour."""

    @pytest.mark.asyncio
    async def test_l1_evicts_oldest(self):
        cache = LLMResponseCache(max_entries=2, ttl_seconds=60)
        await cache.set("coder", "one", make_response("1"))
        await cache.set("coder", "two", make_response("2"))
        await cache.set("coder", "three", make_response("3"))

        assert await cache.get("coder", "one") is None
        assert (await cache.get("coder", "three")).text == "3"
        assert cache.get_stats()["entries"] == 2

    @pytest.mark.asyncio
    async def test_l2_hit_repopulates_l1(self, store):
        writer = LLMResponseCache(store=store, max_entries=5, ttl_seconds=60)
        await writer.set("coder", "prompt", make_response("from store"))

        reader = LLMResponseCache(store=store, max_entries=5, ttl_seconds=60)
        response = await reader.get("coder", "prompt")

        assert response.text == "from store"
        assert reader.get_stats()["entries"] == 1

    @pytest.mark.asyncio
    async def test_entries_expire(self):
        now = [5000.0]
        cache = LLMResponseCache(max_entries=5, ttl_seconds=60, clock=lambda: now[0])
        await cache.set("coder", "prompt", make_response())

        now[0] += 61
        assert await cache.get("coder", "prompt") is None

    def test_key_uses_first_100_context_chars(self):
        base = "x" * 100
        assert LLMResponseCache.make_key("a", "p", base + "tail-1") == LLMResponseCache.make_key("a", "p", base + "tail-2")
        assert LLMResponseCache.make_key("a", "p", "ctx") != LLMResponseCache.make_key("b", "p", "ctx")

    @pytest.mark.asyncio
    async def test_clear_resets_everything(self, store):
        cache = LLMResponseCache(store=store, max_entries=5, ttl_seconds=60)
        await cache.set("coder", "prompt", make_response())
        await cache.get("coder", "prompt")

        await cache.clear()

        assert await cache.get("coder", "prompt") is None
        assert cache.get_stats()["hits"] == 0
        assert len(store) == 0
