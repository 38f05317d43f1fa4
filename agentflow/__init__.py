"""agentflow: agent orchestration engine over pluggable LLM providers."""

from .api import API_VERSION, ExtensionAPI
from .engine import Engine, create_engine, get_engine
from .errors import (
    AgentError,
    AgentFlowError,
    AuthenticationError,
    BudgetExceededError,
    ConfigurationError,
    ProviderError,
)
from .events import LifecycleEventManager, LifecycleEventName
from .models import AgentRequest, AgentResponse, AgentState, AgentStatus, ProjectArchitecture


__all__ = [
    "API_VERSION",
    "AgentError",
    "AgentFlowError",
    "AgentRequest",
    "AgentResponse",
    "AgentState",
    "AgentStatus",
    "AuthenticationError",
    "BudgetExceededError",
    "ConfigurationError",
    "Engine",
    "ExtensionAPI",
    "LifecycleEventManager",
    "LifecycleEventName",
    "ProjectArchitecture",
    "ProviderError",
    "create_engine",
    "get_engine",
]
