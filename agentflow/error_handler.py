"""User-facing error descriptions for engine failures."""

import logging
from dataclasses import dataclass
from typing import Any, Dict

from .errors import AgentFlowError


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ErrorInfo:
    """Registry entry describing one error code."""
    title: str
    message_template: str
    reason: str
    suggestion: str
    severity: str = "error"  # info, warning, error, critical


ERROR_REGISTRY: Dict[str, ErrorInfo] = {
    "BUDGET_TOKENS_EXCEEDED": ErrorInfo(
        title="Budget Exceeded",
        message_template="The session token budget has been used up.",
        reason="Cumulative token usage reached the configured TOKEN_BUDGET.",
        suggestion="Raise TOKEN_BUDGET or reset the session budget.",
        severity="warning",
    ),
    "BUDGET_COST_EXCEEDED": ErrorInfo(
        title="Budget Exceeded",
        message_template="The session cost budget has been used up.",
        reason="Cumulative spend reached the configured COST_BUDGET.",
        suggestion="Raise COST_BUDGET or reset the session budget.",
        severity="warning",
    ),
    "AUTH_KEY_MISSING": ErrorInfo(
        title="API Key Missing",
        message_template="No API key is configured for {provider}.",
        reason="The provider requires an API key and none was found in the environment.",
        suggestion="Set the provider's API key (e.g. OPENAI_API_KEY) and retry.",
    ),
    "AUTH_KEY_INVALID": ErrorInfo(
        title="Invalid API Key",
        message_template="{provider} rejected the configured API key.",
        reason="The key is wrong, revoked, or lacks access to the requested model.",
        suggestion="Check the key in your provider dashboard and update the environment.",
    ),
    "PROVIDER_NOT_FOUND": ErrorInfo(
        title="Provider Not Found",
        message_template="No LLM provider named {provider} is registered.",
        reason="MODEL_PROVIDER or AGENT_PROVIDERS refers to an unregistered provider.",
        suggestion="Register the provider or fix the provider name in configuration.",
    ),
    "ALL_PROVIDERS_FAILED": ErrorInfo(
        title="All Providers Failed",
        message_template="Every configured LLM provider failed to answer.",
        reason="The primary provider and all fallbacks were unavailable or returned transient errors.",
        suggestion="Check provider status and network connectivity, then retry.",
        severity="critical",
    ),
    "INVALID_MODEL": ErrorInfo(
        title="Unknown Model",
        message_template="{provider} does not know model {model}.",
        reason="The requested model id is not in the provider's catalogue.",
        suggestion="Use one of the provider's supported model ids.",
    ),
    "CONFIGURATION_ERROR": ErrorInfo(
        title="Configuration Error",
        message_template="The engine configuration is invalid.",
        reason="A registration or setting failed validation.",
        suggestion="Fix the reported setting and try again.",
    ),
    "AGENT_NOT_INITIALIZED": ErrorInfo(
        title="Agent Not Initialized",
        message_template="Agent {agent} was used before initialize() was called.",
        reason="The agent has no provider manager to call.",
        suggestion="Initialize the agent with a provider manager before running it.",
    ),
    "NO_IMPLEMENTER": ErrorInfo(
        title="No Implementer Registered",
        message_template="No coder agent is registered with the orchestrator.",
        reason="The pipeline needs an implementer agent to produce a result.",
        suggestion="Register a coder agent before processing requests.",
        severity="critical",
    ),
    "SUGGESTION_NOT_FOUND": ErrorInfo(
        title="Suggestion Not Found",
        message_template="Suggestion {suggestion_id} does not exist.",
        reason="The id does not match any suggestion in the decision history.",
        suggestion="Use an id from a suggestionGenerated event.",
        severity="warning",
    ),
}

GENERIC_ERROR = ErrorInfo(
    title="Internal Error",
    message_template="An unexpected error occurred.",
    reason="The failure did not match any known error code.",
    suggestion="Check the logs and report the issue if it persists.",
)


class _SafeFormat(dict):
    def __missing__(self, key: str) -> str:
        return "unknown"


def describe_error(exc: BaseException) -> Dict[str, Any]:
    """
    Build a JSON-ready description of an error for display collaborators.

    Args:
        exc: Any exception raised by the engine

    Returns:
        Dict with error, message, reason, suggestion, code, transient, severity
    """
    if isinstance(exc, AgentFlowError):
        info = ERROR_REGISTRY.get(exc.code)
        code = exc.code
        transient = exc.is_transient
        data = exc.data
    else:
        info = None
        code = "INTERNAL_ERROR"
        transient = False
        data = {}

    if info is None:
        logger.error(f"Unhandled engine error ({code}): {exc}", exc_info=exc)
        info = GENERIC_ERROR
        message = str(exc) or info.message_template
    else:
        logger.warning(f"Engine error {code}: {exc}")
        message = info.message_template.format_map(_SafeFormat(data))

    return {
        "error": info.title,
        "message": message,
        "reason": info.reason,
        "suggestion": info.suggestion,
        "code": code,
        "transient": transient,
        "severity": info.severity,
    }
