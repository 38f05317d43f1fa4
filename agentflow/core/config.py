from typing import Any, Dict, List

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Engine settings loaded from environment variables."""

    model_config = {
        "env_file": ".env",
        "extra": "ignore",
    }

    # LLM providers
    MODEL_PROVIDER: str = Field(default="openai", description="Provider used when an agent has no override")
    AGENT_PROVIDERS: Dict[str, str] = Field(default_factory=dict, description="Agent name -> provider name")
    FALLBACK_PROVIDERS: List[str] = Field(default_factory=lambda: ["openai", "anthropic"])

    OPENAI_API_KEY: str | None = None
    OPENAI_BASE_URL: str | None = Field(default=None, description="Custom OpenAI-compatible endpoint")
    OPENAI_MODEL: str = Field(default="gpt-4-turbo")

    ANTHROPIC_API_KEY: str | None = None
    ANTHROPIC_MODEL: str = Field(default="claude-3-5-sonnet-20241022")

    LLM_TIMEOUT_SECONDS: float = Field(default=30, description="Per-call timeout passed to the provider")

    # Session budget
    TOKEN_BUDGET: int = Field(default=100_000, description="Max tokens per session")
    COST_BUDGET: float = Field(default=5.0, description="Max spend per session in USD")
    BUDGET_WARNING_RATIO: float = Field(default=0.8)
    STRICT_BUDGET: bool = Field(default=False, description="Serialise check/call/record across requests")

    # LLM response cache
    LLM_CACHE_ENABLED: bool = Field(default=True)
    LLM_CACHE_TTL_SECONDS: int = Field(default=7 * 24 * 60 * 60)
    LLM_CACHE_MAX_ENTRIES: int = Field(default=100, description="In-memory tier size")

    # Key-value store (unset = in-memory)
    REDIS_URL: str | None = Field(default=None, description="Redis connection URL")

    # Workspace / context loading
    WORKSPACE_ROOT: str = Field(default=".")
    CONTEXT_MAX_TOKENS: int = Field(default=10_000)
    CONTEXT_MAX_FILES: int = Field(default=10)

    # Merged over detected architecture: {"tech_stack": {...}, "patterns": {...}, "conventions": {...}}
    ARCHITECTURE_OVERRIDES: Dict[str, Dict[str, Any]] | None = None

    LOG_LEVEL: str = Field(default="INFO")


settings = Settings()
