"""
Public extension API.

Third-party extensions register LLM providers and subscribe to lifecycle
events through this boundary. Provider registrations are validated here
before they reach the provider manager.
"""

import logging
from typing import Any, Callable

from .errors import ConfigurationError
from .events import LifecycleEventManager
from .llm.provider_manager import LLMProviderManager


logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"

RESERVED_PROVIDER_NAMES = frozenset({"openai", "anthropic"})
REQUIRED_PROVIDER_METHODS = ("generate_completion", "estimate_tokens", "get_model_info", "is_available")


class ExtensionAPI:
    """Entry point handed to extensions."""

    version = API_VERSION

    def __init__(self, provider_manager: LLMProviderManager, events: LifecycleEventManager):
        self._provider_manager = provider_manager
        self._events = events

    def register_llm_provider(self, name: str, provider: Any) -> None:
        """
        Validate and register a custom LLM provider.

        Args:
            name: Unique provider name (not "openai" or "anthropic")
            provider: Object implementing the LLMProvider methods

        Raises:
            ConfigurationError: If the name or provider is invalid
        """
        if not isinstance(name, str) or not name.strip():
            raise ConfigurationError("Provider name must be a non-empty string")

        if provider is None:
            raise ConfigurationError(f"Provider '{name}' must not be None", data={"name": name})

        missing = [m for m in REQUIRED_PROVIDER_METHODS if not callable(getattr(provider, m, None))]
        if missing:
            raise ConfigurationError(
                f"Provider '{name}' is missing required methods: {', '.join(missing)}",
                data={"name": name, "missing": missing},
            )

        if name.lower() in RESERVED_PROVIDER_NAMES:
            raise ConfigurationError(
                f"Provider name '{name}' is reserved for a built-in provider",
                data={"name": name},
            )

        if self._provider_manager.get_provider(name) is not None:
            raise ConfigurationError(f"Provider '{name}' is already registered", data={"name": name})

        self._provider_manager.register_provider(name, provider)
        logger.info(f"Registered custom LLM provider '{name}'")

    def on(self, event: str, callback: Callable[[Any], Any]) -> Callable[[], None]:
        """Subscribe to a lifecycle event; returns an unsubscribe function."""
        return self._events.on(event, callback)
