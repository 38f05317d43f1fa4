"""
Tests for the provider registry and the budget-checked LLM call path.
"""

from decimal import Decimal

import pytest

from conftest import FakeProvider

from agentflow.errors import BudgetExceededError, ProviderError
from agentflow.llm.cache import LLMResponseCache
from agentflow.llm.provider_manager import LLMProviderManager
from agentflow.llm.rate_limiter import RateLimiter
from agentflow.models import CompletionOptions
from agentflow.storage import InMemoryStore


def make_manager(providers, default="primary", fallbacks=None, agent_providers=None, cache=None,
                 limiter=None, strict=False):
    manager = LLMProviderManager(
        limiter or RateLimiter(token_budget=1000, cost_budget=1.0),
        cache=cache,
        default_provider=default,
        agent_providers=agent_providers or {},
        fallback_providers=fallbacks or [],
        strict_budget=strict,
    )
    for provider in providers:
        manager.register_provider(provider.name, provider)
    return manager


class TestRegistry:
    """Test registration and lookup."""

    def test_register_and_get(self):
        provider = FakeProvider("primary")
        manager = make_manager([provider])

        assert manager.get_provider("primary") is provider
        assert manager.get_provider("missing") is None

    def test_register_overwrites(self):
        manager = make_manager([FakeProvider("primary")])
        replacement = FakeProvider("primary", text="new")

        manager.register_provider("primary", replacement)

        assert manager.get_provider("primary") is replacement
        assert manager.list_providers() == ["primary"]


class TestCallLLM:
    """Test call_llm flow."""

    @pytest.mark.asyncio
    async def test_records_usage(self):
        limiter = RateLimiter(token_budget=1000, cost_budget=1.0)
        manager = make_manager([FakeProvider("primary", tokens=40, cost=0.02)], limiter=limiter)

        response = await manager.call_llm("coder", "write code")

        assert response.text == "ok"
        assert limiter.get_stats()["tokens"] == 40
        assert limiter.get_stats()["cost"] == Decimal("0.02")

    @pytest.mark.asyncio
    async def test_budget_checked_before_call(self):
        limiter = RateLimiter(token_budget=10, cost_budget=1.0)
        limiter.record_usage(10, 0.0)
        provider = FakeProvider("primary")
        manager = make_manager([provider], limiter=limiter)

        with pytest.raises(BudgetExceededError):
            await manager.call_llm("coder", "write code")

        assert provider.prompts == []

    @pytest.mark.asyncio
    async def test_agent_provider_override(self):
        primary = FakeProvider("primary", text="from primary")
        special = FakeProvider("special", text="from special")
        manager = make_manager([primary, special], agent_providers={"reviewer": "special"})

        response = await manager.call_llm("reviewer", "review")

        assert response.text == "from special"
        assert primary.prompts == []

    @pytest.mark.asyncio
    async def test_unregistered_provider(self):
        manager = make_manager([FakeProvider("other")], default="primary")

        with pytest.raises(ProviderError) as exc_info:
            await manager.call_llm("coder", "x")

        assert exc_info.value.code == "PROVIDER_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_failover_on_transient_error(self):
        limiter = RateLimiter(token_budget=1000, cost_budget=1.0)
        primary = FakeProvider("primary", error=ProviderError("slow down", code="RATE_LIMIT", is_transient=True))
        backup = FakeProvider("backup", text="from backup", tokens=7)
        manager = make_manager([primary, backup], fallbacks=["backup"], limiter=limiter)

        response = await manager.call_llm("coder", "x", CompletionOptions(model="primary-big"))

        assert response.text == "from backup"
        assert limiter.get_stats()["tokens"] == 7
        # model pinned for the primary is not forwarded to the fallback
        assert backup.options[0].model is None

    @pytest.mark.asyncio
    async def test_plain_backend_timeout_fails_over(self):
        """A provider raising a bare TimeoutError is treated as a transient failure."""
        primary = FakeProvider("primary", error=TimeoutError("upstream timed out"))
        backup = FakeProvider("backup", text="from backup")
        manager = make_manager([primary, backup], fallbacks=["backup"])

        response = await manager.call_llm("coder", "x")

        assert response.text == "from backup"
        assert len(primary.prompts) == 1

    @pytest.mark.asyncio
    async def test_plain_backend_error_wrapped(self):
        primary = FakeProvider("primary", error=ValueError("invalid prompt"))
        backup = FakeProvider("backup")
        manager = make_manager([primary, backup], fallbacks=["backup"])

        with pytest.raises(ProviderError) as exc_info:
            await manager.call_llm("coder", "x")

        assert exc_info.value.code == "PRIMARY_ERROR"
        assert exc_info.value.is_transient is False
        assert isinstance(exc_info.value.__cause__, ValueError)
        assert backup.prompts == []

    @pytest.mark.asyncio
    async def test_failover_when_primary_unavailable(self):
        primary = FakeProvider("primary", available=False)
        backup = FakeProvider("backup", text="from backup")
        manager = make_manager([primary, backup], fallbacks=["backup"])

        response = await manager.call_llm("coder", "x")

        assert response.text == "from backup"
        assert primary.prompts == []

    @pytest.mark.asyncio
    async def test_non_transient_error_propagates(self):
        primary = FakeProvider("primary", error=ProviderError("bad request", code="BAD", is_transient=False))
        backup = FakeProvider("backup")
        manager = make_manager([primary, backup], fallbacks=["backup"])

        with pytest.raises(ProviderError) as exc_info:
            await manager.call_llm("coder", "x")

        assert exc_info.value.code == "BAD"
        assert backup.prompts == []

    @pytest.mark.asyncio
    async def test_all_providers_failed(self):
        limiter = RateLimiter(token_budget=1000, cost_budget=1.0)
        error = ProviderError("down", code="DOWN", is_transient=True)
        manager = make_manager(
            [FakeProvider("primary", error=error), FakeProvider("backup", error=error)],
            fallbacks=["primary", "backup"],
            limiter=limiter,
        )

        with pytest.raises(ProviderError) as exc_info:
            await manager.call_llm("coder", "x")

        assert exc_info.value.code == "ALL_PROVIDERS_FAILED"
        assert exc_info.value.data["tried"] == ["primary", "backup"]
        assert limiter.get_stats()["tokens"] == 0

    @pytest.mark.asyncio
    async def test_strict_budget_mode(self):
        limiter = RateLimiter(token_budget=1000, cost_budget=1.0)
        manager = make_manager([FakeProvider("primary", tokens=5)], limiter=limiter, strict=True)

        await manager.call_llm("coder", "a")
        await manager.call_llm("coder", "b")

        assert limiter.get_stats()["tokens"] == 10


class TestResponseCache:
    """Test cache integration."""

    @pytest.mark.asyncio
    async def test_cache_hit_skips_budget_and_provider(self):
        limiter = RateLimiter(token_budget=1000, cost_budget=1.0)
        provider = FakeProvider("primary", tokens=20, cost=0.05)
        cache = LLMResponseCache(store=InMemoryStore(), max_entries=10, ttl_seconds=60)
        manager = make_manager([provider], limiter=limiter, cache=cache)

        await manager.call_llm("coder", "same prompt")
        await manager.call_llm("coder", "same prompt")

        assert len(provider.prompts) == 1
        assert limiter.get_stats()["tokens"] == 20
        stats = cache.get_stats()
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["cost_saved"] == pytest.approx(0.05)

    @pytest.mark.asyncio
    async def test_cache_keyed_by_agent_and_context(self):
        provider = FakeProvider("primary")
        cache = LLMResponseCache(max_entries=10, ttl_seconds=60)
        manager = make_manager([provider], cache=cache)

        await manager.call_llm("coder", "p", CompletionOptions(context="ctx-a"))
        await manager.call_llm("coder", "p", CompletionOptions(context="ctx-b"))
        await manager.call_llm("reviewer", "p", CompletionOptions(context="ctx-a"))

        assert len(provider.prompts) == 3
