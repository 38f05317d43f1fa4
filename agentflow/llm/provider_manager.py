"""
Provider registry and budget-checked LLM calls.

Registration is done once at startup; lookups afterwards are read-only, so
the registry needs no locking. Name validation lives at the public API
boundary (``agentflow.api``), not here.
"""

import asyncio
import contextlib
import logging
from typing import Dict, List, Optional

from ..errors import ProviderError, normalize_provider_error
from ..metrics import llm_cost_usd_total, llm_tokens_total
from ..models import CompletionOptions, CompletionResponse
from .cache import LLMResponseCache
from .providers import LLMProvider
from .rate_limiter import RateLimiter


logger = logging.getLogger(__name__)


class LLMProviderManager:
    """Named providers plus the cache -> budget -> provider -> usage call path."""

    def __init__(
        self,
        rate_limiter: RateLimiter,
        cache: Optional[LLMResponseCache] = None,
        default_provider: Optional[str] = None,
        agent_providers: Optional[Dict[str, str]] = None,
        fallback_providers: Optional[List[str]] = None,
        strict_budget: Optional[bool] = None,
    ):
        from ..core.config import settings
        self.rate_limiter = rate_limiter
        self.cache = cache
        self.default_provider = default_provider or settings.MODEL_PROVIDER
        self.agent_providers = dict(agent_providers if agent_providers is not None else settings.AGENT_PROVIDERS)
        self.fallback_providers = list(
            fallback_providers if fallback_providers is not None else settings.FALLBACK_PROVIDERS
        )
        self.strict_budget = settings.STRICT_BUDGET if strict_budget is None else strict_budget
        self._providers: Dict[str, LLMProvider] = {}
        self._budget_lock = asyncio.Lock()

    def register_provider(self, name: str, provider: LLMProvider) -> None:
        """Register or replace a provider."""
        if name in self._providers:
            logger.info(f"Replacing LLM provider '{name}'")
        self._providers[name] = provider

    def get_provider(self, name: str) -> Optional[LLMProvider]:
        return self._providers.get(name)

    def list_providers(self) -> List[str]:
        return list(self._providers)

    def provider_for(self, agent: str) -> str:
        return self.agent_providers.get(agent, self.default_provider)

    async def call_llm(
        self,
        agent: str,
        prompt: str,
        options: Optional[CompletionOptions] = None,
    ) -> CompletionResponse:
        """
        Run one completion on behalf of an agent.

        Args:
            agent: Calling agent's name (selects provider and cache namespace)
            prompt: Prompt text
            options: Completion options; ``options.context`` only affects the cache key

        Returns:
            CompletionResponse from the cache or from the provider that answered

        Raises:
            BudgetExceededError: If the session budget is already used up
            ProviderError: PROVIDER_NOT_FOUND, ALL_PROVIDERS_FAILED, or a
                non-transient backend error
        """
        context = options.context if options else None

        if self.cache is not None:
            cached = await self.cache.get(agent, prompt, context)
            if cached is not None:
                logger.debug(f"LLM cache hit for agent {agent}")
                return cached

        lock = self._budget_lock if self.strict_budget else contextlib.nullcontext()
        async with lock:
            self.rate_limiter.check_budget()
            provider_name, response = await self._call_with_fallback(agent, prompt, options)
            self.rate_limiter.record_usage(response.tokens.total, response.cost)

        llm_tokens_total.labels(provider=provider_name).inc(response.tokens.total)
        llm_cost_usd_total.labels(provider=provider_name).inc(response.cost)

        if self.cache is not None:
            await self.cache.set(agent, prompt, response, context)
        return response

    async def _call_with_fallback(
        self,
        agent: str,
        prompt: str,
        options: Optional[CompletionOptions],
    ) -> tuple[str, CompletionResponse]:
        primary_name = self.provider_for(agent)
        primary = self.get_provider(primary_name)
        if primary is None:
            raise ProviderError(
                f"LLM provider '{primary_name}' is not registered",
                code="PROVIDER_NOT_FOUND",
                provider=primary_name,
            )

        tried: List[str] = []
        last_error: Optional[ProviderError] = None
        candidates = [primary_name] + [p for p in self.fallback_providers if p != primary_name]

        for name in candidates:
            provider = self.get_provider(name)
            if provider is None or name in tried:
                continue
            if not provider.is_available():
                logger.info(f"Provider {name} unavailable for agent {agent}, trying next")
                tried.append(name)
                continue

            tried.append(name)
            # Explicit model options only make sense for the provider that was asked for
            call_options = options if name == primary_name else _without_model(options)
            try:
                response = await provider.generate_completion(prompt, call_options)
            except Exception as exc:
                e = normalize_provider_error(exc, name)
                if not e.is_transient:
                    if e is exc:
                        raise
                    raise e from exc
                logger.warning(f"Provider {name} failed transiently ({e.code}), failing over: {e}")
                last_error = e
                continue

            if name != primary_name:
                logger.info(f"Agent {agent} answered by fallback provider {name}")
            return name, response

        raise ProviderError(
            f"All LLM providers failed (tried: {', '.join(tried) or 'none'})",
            code="ALL_PROVIDERS_FAILED",
            is_transient=last_error is not None,
            data={"tried": tried, "last_error": str(last_error) if last_error else None},
        )


def _without_model(options: Optional[CompletionOptions]) -> Optional[CompletionOptions]:
    if options is None or options.model is None:
        return options
    return options.model_copy(update={"model": None})
