"""
LLM provider contract and built-in providers.

Built-in providers go through litellm so that OpenAI and Anthropic share one
code path; third-party providers implement ``LLMProvider`` directly and are
registered through the extension API.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

import litellm

from ..core.config import settings
from ..errors import AuthenticationError, ProviderError, normalize_provider_error
from ..models import CompletionOptions, CompletionResponse, ModelInfo, TokenUsage


logger = logging.getLogger(__name__)


class LLMProvider(ABC):
    """Contract every LLM backend implements."""

    name: str

    @abstractmethod
    async def generate_completion(
        self,
        prompt: str,
        options: Optional[CompletionOptions] = None,
    ) -> CompletionResponse:
        ...

    @abstractmethod
    def estimate_tokens(self, text: str) -> int:
        ...

    @abstractmethod
    def get_model_info(self, model_id: str) -> ModelInfo:
        ...

    @abstractmethod
    def is_available(self) -> bool:
        ...


def estimate_tokens_by_chars(text: str) -> int:
    """Rough estimate used when no tokenizer is available (~4 chars per token)."""
    if not text:
        return 0
    return (len(text) + 3) // 4


@dataclass(frozen=True)
class ModelSpec:
    """Catalogue entry for a built-in model."""
    name: str
    context_window: int
    input_per_1k: float   # USD per 1K prompt tokens
    output_per_1k: float  # USD per 1K completion tokens


MODEL_CATALOGUE: Dict[str, Dict[str, ModelSpec]] = {
    "openai": {
        "gpt-4": ModelSpec("GPT-4", 8192, 0.03, 0.06),
        "gpt-4-turbo": ModelSpec("GPT-4 Turbo", 128000, 0.01, 0.03),
        "gpt-4o": ModelSpec("GPT-4o", 128000, 0.0025, 0.01),
        "gpt-4o-mini": ModelSpec("GPT-4o mini", 128000, 0.00015, 0.0006),
        "gpt-3.5-turbo": ModelSpec("GPT-3.5 Turbo", 16385, 0.0005, 0.0015),
    },
    "anthropic": {
        "claude-3-5-sonnet-20241022": ModelSpec("Claude 3.5 Sonnet", 200000, 0.003, 0.015),
        "claude-3-5-haiku-20241022": ModelSpec("Claude 3.5 Haiku", 200000, 0.0008, 0.004),
        "claude-3-opus-20240229": ModelSpec("Claude 3 Opus", 200000, 0.015, 0.075),
    },
}

# litellm model prefix per provider
LITELLM_PREFIXES = {
    "openai": "",
    "anthropic": "anthropic/",
}


class LiteLLMProvider(LLMProvider):
    """Built-in provider backed by ``litellm.acompletion``."""

    def __init__(
        self,
        name: str,
        api_key: Optional[str],
        default_model: str,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        completion_fn: Optional[Callable] = None,
    ):
        if name not in MODEL_CATALOGUE:
            raise ValueError(f"No built-in catalogue for provider '{name}'")
        self.name = name
        self.api_key = api_key
        self.default_model = default_model
        self.base_url = base_url
        self.timeout = timeout if timeout is not None else settings.LLM_TIMEOUT_SECONDS
        self._completion_fn = completion_fn or litellm.acompletion

    def is_available(self) -> bool:
        return bool(self.api_key)

    def _litellm_model(self, model: str) -> str:
        prefix = LITELLM_PREFIXES.get(self.name, "")
        if prefix and model.startswith(prefix):
            return model
        return f"{prefix}{model}"

    def get_model_info(self, model_id: str) -> ModelInfo:
        spec = MODEL_CATALOGUE[self.name].get(model_id)
        if spec is None:
            raise ProviderError(
                f"Unknown {self.name} model: {model_id}",
                code="INVALID_MODEL",
                provider=self.name,
                data={"model": model_id},
            )
        return ModelInfo(id=model_id, name=spec.name, context_window=spec.context_window)

    def estimate_tokens(self, text: str) -> int:
        if not text:
            return 0
        try:
            return litellm.token_counter(model=self._litellm_model(self.default_model), text=text)
        except Exception as e:
            logger.debug(f"Tokenizer unavailable for {self.name}, using char estimate: {e}")
            return estimate_tokens_by_chars(text)

    def calculate_cost(self, model: str, prompt_tokens: int, completion_tokens: int,
                       raw_response=None) -> float:
        """Cost in USD from the pricing table, falling back to litellm's own table."""
        spec = MODEL_CATALOGUE[self.name].get(model)
        if spec is not None:
            return (prompt_tokens / 1000) * spec.input_per_1k + (completion_tokens / 1000) * spec.output_per_1k
        if raw_response is not None:
            try:
                return float(litellm.completion_cost(completion_response=raw_response))
            except Exception as e:
                logger.warning(f"No pricing for {self.name} model {model}: {e}")
        return 0.0

    async def generate_completion(
        self,
        prompt: str,
        options: Optional[CompletionOptions] = None,
    ) -> CompletionResponse:
        """
        Run one chat completion.

        Args:
            prompt: Full prompt text, sent as a single user message
            options: Model, temperature, max_tokens and timeout overrides

        Returns:
            CompletionResponse with token usage and cost

        Raises:
            AuthenticationError: If no API key is configured or the key is rejected
            ProviderError: For any other backend failure
        """
        if not self.api_key:
            raise AuthenticationError(
                f"No API key configured for {self.name}",
                code="AUTH_KEY_MISSING",
                provider=self.name,
            )

        options = options or CompletionOptions()
        model = options.model or self.default_model
        kwargs = {
            "model": self._litellm_model(model),
            "messages": [{"role": "user", "content": prompt}],
            "api_key": self.api_key,
            "timeout": options.timeout or self.timeout,
        }
        if self.base_url:
            kwargs["api_base"] = self.base_url
        if options.temperature is not None:
            kwargs["temperature"] = options.temperature
        if options.max_tokens is not None:
            kwargs["max_tokens"] = options.max_tokens

        try:
            raw = await self._completion_fn(**kwargs)
        except Exception as e:
            error = normalize_provider_error(e, self.name)
            logger.warning(f"{self.name} completion failed ({error.code}, transient={error.is_transient}): {e}")
            raise error from e

        text, finish_reason = _first_choice(raw)
        usage = getattr(raw, "usage", None)
        prompt_tokens = getattr(usage, "prompt_tokens", None) or 0
        completion_tokens = getattr(usage, "completion_tokens", None) or 0
        total_tokens = getattr(usage, "total_tokens", None) or (prompt_tokens + completion_tokens)

        return CompletionResponse(
            text=text,
            tokens=TokenUsage(prompt=prompt_tokens, completion=completion_tokens, total=total_tokens),
            model=model,
            finish_reason=finish_reason,
            cost=self.calculate_cost(model, prompt_tokens, completion_tokens, raw),
        )


def _first_choice(raw) -> Tuple[str, Optional[str]]:
    choices = getattr(raw, "choices", None) or []
    if not choices:
        return "", None
    choice = choices[0]
    message = getattr(choice, "message", None)
    content = getattr(message, "content", None) or ""
    return content, getattr(choice, "finish_reason", None)


def create_builtin_providers(config=None) -> Dict[str, LiteLLMProvider]:
    """
    Build the reserved ``openai`` and ``anthropic`` providers from settings.

    Args:
        config: Settings instance (defaults to module settings)

    Returns:
        Mapping of provider name to provider
    """
    config = config or settings
    return {
        "openai": LiteLLMProvider(
            "openai",
            api_key=config.OPENAI_API_KEY,
            default_model=config.OPENAI_MODEL,
            base_url=config.OPENAI_BASE_URL,
            timeout=config.LLM_TIMEOUT_SECONDS,
        ),
        "anthropic": LiteLLMProvider(
            "anthropic",
            api_key=config.ANTHROPIC_API_KEY,
            default_model=config.ANTHROPIC_MODEL,
            timeout=config.LLM_TIMEOUT_SECONDS,
        ),
    }
