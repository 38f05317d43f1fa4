"""Default wiring: one of each component, agents registered and initialized."""

import logging
from dataclasses import dataclass
from typing import Optional

from .agents import AgentOrchestrator, ArchitectAgent, CoderAgent, ContextAgent, ReviewerAgent
from .agents.context import FileLoader, TokenOptimizer
from .api import ExtensionAPI
from .core.config import Settings, settings as default_settings
from .events import LifecycleEventManager
from .history import DecisionHistory
from .llm import CostTracker, LLMProviderManager, LLMResponseCache, RateLimiter, create_builtin_providers
from .storage import KeyValueStore, create_store


logger = logging.getLogger(__name__)


@dataclass
class Engine:
    settings: Settings
    store: KeyValueStore
    events: LifecycleEventManager
    history: DecisionHistory
    rate_limiter: RateLimiter
    cost_tracker: CostTracker
    cache: Optional[LLMResponseCache]
    provider_manager: LLMProviderManager
    orchestrator: AgentOrchestrator
    api: ExtensionAPI

    async def process_user_request(self, prompt: str, **data):
        return await self.orchestrator.process_user_request(prompt, data)

    def reset_session(self) -> None:
        """Zero the budget; cached architecture is kept."""
        self.rate_limiter.reset()

    async def close(self) -> None:
        await self.events.drain()
        await self.store.close()


def create_engine(settings: Optional[Settings] = None, store: Optional[KeyValueStore] = None) -> Engine:
    """
    Build a fully wired engine.

    Args:
        settings: Settings to use (defaults to environment settings)
        store: Key-value store (defaults to Redis if REDIS_URL is set, else in-memory)

    Returns:
        Engine with built-in providers and the four agents registered
    """
    config = settings or default_settings
    logging.getLogger("agentflow").setLevel(config.LOG_LEVEL.upper())

    store = store or create_store(config.REDIS_URL)
    events = LifecycleEventManager()
    history = DecisionHistory()

    rate_limiter = RateLimiter(
        token_budget=config.TOKEN_BUDGET,
        cost_budget=config.COST_BUDGET,
        warning_ratio=config.BUDGET_WARNING_RATIO,
    )
    cache = None
    if config.LLM_CACHE_ENABLED:
        cache = LLMResponseCache(
            store=store,
            max_entries=config.LLM_CACHE_MAX_ENTRIES,
            ttl_seconds=config.LLM_CACHE_TTL_SECONDS,
        )

    provider_manager = LLMProviderManager(
        rate_limiter,
        cache=cache,
        default_provider=config.MODEL_PROVIDER,
        agent_providers=config.AGENT_PROVIDERS,
        fallback_providers=config.FALLBACK_PROVIDERS,
        strict_budget=config.STRICT_BUDGET,
    )
    for name, provider in create_builtin_providers(config).items():
        provider_manager.register_provider(name, provider)

    orchestrator = AgentOrchestrator(events=events, history=history)
    agents = [
        ContextAgent(
            file_loader=FileLoader(config.WORKSPACE_ROOT, config.CONTEXT_MAX_FILES),
            optimizer=TokenOptimizer(config.CONTEXT_MAX_TOKENS),
        ),
        ArchitectAgent(
            workspace_root=config.WORKSPACE_ROOT,
            overrides=config.ARCHITECTURE_OVERRIDES or {},
            store=store,
        ),
        CoderAgent(),
        ReviewerAgent(),
    ]
    for agent in agents:
        agent.initialize(provider_manager)
        orchestrator.register_agent(agent)

    logger.info(
        f"Engine ready: providers={provider_manager.list_providers()}, "
        f"default={config.MODEL_PROVIDER}, workspace={config.WORKSPACE_ROOT}"
    )
    return Engine(
        settings=config,
        store=store,
        events=events,
        history=history,
        rate_limiter=rate_limiter,
        cost_tracker=CostTracker(rate_limiter),
        cache=cache,
        provider_manager=provider_manager,
        orchestrator=orchestrator,
        api=ExtensionAPI(provider_manager, events),
    )


_default_engine: Optional[Engine] = None


def get_engine() -> Engine:
    """Process-wide default engine, created on first use."""
    global _default_engine
    if _default_engine is None:
        _default_engine = create_engine()
    return _default_engine
