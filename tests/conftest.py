from typing import List, Optional

import pytest
import pytest_asyncio

from agentflow.agents.base import BaseAgent
from agentflow.events import LifecycleEventManager
from agentflow.history import DecisionHistory
from agentflow.llm.provider_manager import LLMProviderManager
from agentflow.llm.providers import LLMProvider
from agentflow.llm.rate_limiter import RateLimiter
from agentflow.agents.orchestrator import AgentOrchestrator
from agentflow.models import (
    AgentRequest,
    AgentResponse,
    AgentType,
    CompletionOptions,
    CompletionResponse,
    ModelInfo,
    ProjectArchitecture,
    TechStack,
    TokenUsage,
)
from agentflow.storage import InMemoryStore


class FakeProvider(LLMProvider):
    """In-memory provider that returns canned text and records prompts."""

    def __init__(self, name: str = "fake", text: str = "ok", tokens: int = 10, cost: float = 0.01,
                 available: bool = True, error: Optional[Exception] = None):
        self.name = name
        self.text = text
        self.tokens = tokens
        self.cost = cost
        self.available = available
        self.error = error
        self.prompts: List[str] = []
        self.options: List[Optional[CompletionOptions]] = []

    async def generate_completion(self, prompt, options=None):
        self.prompts.append(prompt)
        self.options.append(options)
        if self.error is not None:
            raise self.error
        return CompletionResponse(
            text=self.text,
            tokens=TokenUsage(prompt=self.tokens // 2, completion=self.tokens - self.tokens // 2, total=self.tokens),
            model=f"{self.name}-model",
            finish_reason="stop",
            cost=self.cost,
        )

    def estimate_tokens(self, text):
        return len(text) // 4

    def get_model_info(self, model_id):
        return ModelInfo(id=model_id, name=model_id, context_window=4096)

    def is_available(self):
        return self.available


class StubAgent(BaseAgent):
    """Agent with a fixed response (or error) that records its requests."""

    def __init__(self, name: str, result: str = "", reasoning: str = "done", confidence: float = 0.5,
                 error: Optional[Exception] = None, display_name: Optional[str] = None):
        super().__init__()
        self.name = name
        self.display_name = display_name or f"{name.capitalize()} Agent"
        self.agent_type = AgentType(name) if name in AgentType._value2member_map_ else AgentType.coder
        self.result = result
        self.reasoning = reasoning
        self.confidence = confidence
        self.error = error
        self.requests: List[AgentRequest] = []

    async def _execute(self, request: AgentRequest) -> AgentResponse:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return AgentResponse(result=self.result, reasoning=self.reasoning, confidence=self.confidence)


class EchoCoder(StubAgent):
    """Coder returning "echo:" + prompt."""

    def __init__(self, confidence: float = 0.9):
        super().__init__("coder", reasoning="implemented", confidence=confidence)

    async def _execute(self, request: AgentRequest) -> AgentResponse:
        self.requests.append(request)
        return AgentResponse(result=f"echo:{request.prompt}", reasoning=self.reasoning, confidence=self.confidence)


class StubArchitect(StubAgent):
    """Architect whose analyze_project returns one shared architecture."""

    def __init__(self, error: Optional[Exception] = None):
        super().__init__("architect", result="patterns", reasoning="analyzed", confidence=0.9, error=error)
        self.architecture = ProjectArchitecture(tech_stack=TechStack(frontend="react"))
        self.analyze_calls = 0

    async def analyze_project(self) -> ProjectArchitecture:
        self.analyze_calls += 1
        return self.architecture


@pytest.fixture
def fake_provider():
    return FakeProvider()


@pytest.fixture
def rate_limiter():
    return RateLimiter(token_budget=1000, cost_budget=1.0, warning_ratio=0.8)


@pytest.fixture
def provider_manager(rate_limiter, fake_provider):
    manager = LLMProviderManager(
        rate_limiter,
        default_provider="fake",
        agent_providers={},
        fallback_providers=[],
        strict_budget=False,
    )
    manager.register_provider("fake", fake_provider)
    return manager


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def events():
    return LifecycleEventManager()


@pytest.fixture
def history():
    return DecisionHistory()


@pytest_asyncio.fixture
async def orchestrator(events, history):
    orch = AgentOrchestrator(events=events, history=history)
    yield orch
    await events.drain()
