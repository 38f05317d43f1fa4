from .cache import LLMResponseCache
from .cost_tracker import CostTracker, format_usd
from .provider_manager import LLMProviderManager
from .providers import LiteLLMProvider, LLMProvider, create_builtin_providers
from .rate_limiter import BudgetState, RateLimiter

__all__ = [
    "BudgetState",
    "CostTracker",
    "LiteLLMProvider",
    "LLMProvider",
    "LLMProviderManager",
    "LLMResponseCache",
    "RateLimiter",
    "create_builtin_providers",
    "format_usd",
]
