"""
Error taxonomy shared by every engine component.

All errors carry a human-readable message, a machine-readable code, a
transience flag and optional structured data. Nothing in the engine retries
on its own; callers decide what to do with ``is_transient``.
"""

from typing import Any, Dict, Optional


class AgentFlowError(Exception):
    """Base error for the orchestration engine."""

    def __init__(
        self,
        message: str,
        code: str,
        is_transient: bool = False,
        data: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.is_transient = is_transient
        self.data = data or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "transient": self.is_transient,
            "data": self.data,
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"


class BudgetExceededError(AgentFlowError):
    """Raised before a provider call once a session limit has been reached."""

    def __init__(self, budget_type: str, message: Optional[str] = None, is_transient: bool = False):
        if budget_type not in ("tokens", "cost"):
            raise ValueError(f"Unknown budget type: {budget_type}")
        super().__init__(
            message or f"Session {budget_type} budget exceeded",
            code=f"BUDGET_{budget_type.upper()}_EXCEEDED",
            is_transient=is_transient,
            data={"type": budget_type},
        )
        self.budget_type = budget_type


class ProviderError(AgentFlowError):
    """Backend failure, normalised across providers."""

    def __init__(
        self,
        message: str,
        code: str = "PROVIDER_ERROR",
        is_transient: bool = False,
        provider: Optional[str] = None,
        status_code: Optional[int] = None,
        data: Optional[Dict[str, Any]] = None,
    ):
        data = dict(data or {})
        if provider:
            data.setdefault("provider", provider)
        if status_code is not None:
            data.setdefault("status_code", status_code)
        super().__init__(message, code=code, is_transient=is_transient, data=data)
        self.provider = provider
        self.status_code = status_code


class AuthenticationError(ProviderError):
    """API key missing or rejected. Never transient."""

    def __init__(self, message: str, code: str = "AUTH_KEY_INVALID", provider: Optional[str] = None,
                 status_code: Optional[int] = None):
        super().__init__(message, code=code, is_transient=False, provider=provider, status_code=status_code)


class ConfigurationError(AgentFlowError):
    """Invalid registration or configuration, raised synchronously."""

    def __init__(self, message: str, data: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="CONFIGURATION_ERROR", is_transient=False, data=data)


class AgentError(AgentFlowError):
    """Agent or orchestrator misuse (uninitialised agent, missing coder, unknown suggestion)."""

    def __init__(self, message: str, code: str, agent: Optional[str] = None,
                 data: Optional[Dict[str, Any]] = None):
        data = dict(data or {})
        if agent:
            data.setdefault("agent", agent)
        super().__init__(message, code=code, is_transient=False, data=data)
        self.agent = agent


_TRANSIENT_STATUSES = {408, 429}
_TRANSIENT_MARKERS = ("rate limit", "rate_limit", "timeout", "timed out", "temporarily unavailable")


def _status_of(exc: BaseException) -> Optional[int]:
    for attr in ("status_code", "status", "http_status"):
        value = getattr(exc, attr, None)
        if isinstance(value, int):
            return value
    response = getattr(exc, "response", None)
    value = getattr(response, "status_code", None)
    return value if isinstance(value, int) else None


def normalize_provider_error(exc: BaseException, provider: str) -> ProviderError:
    """
    Convert a backend-specific exception into a ProviderError.

    Args:
        exc: Exception raised by the backend client
        provider: Name of the provider that raised it

    Returns:
        ProviderError (or AuthenticationError) with code and transience derived
        from the backend's own signal
    """
    if isinstance(exc, ProviderError):
        return exc

    status_code = _status_of(exc)
    message = str(exc) or type(exc).__name__
    lowered = message.lower()

    if status_code in (401, 403):
        return AuthenticationError(
            f"{provider} rejected the API key: {message}",
            code="AUTH_KEY_INVALID",
            provider=provider,
            status_code=status_code,
        )

    if status_code is not None:
        transient = status_code in _TRANSIENT_STATUSES or status_code >= 500
    else:
        transient = isinstance(exc, (TimeoutError, ConnectionError))
    if any(marker in lowered for marker in _TRANSIENT_MARKERS):
        transient = True

    code = getattr(exc, "code", None)
    if not isinstance(code, str) or not code:
        code = f"{provider.upper()}_ERROR"

    return ProviderError(
        message,
        code=code,
        is_transient=transient,
        provider=provider,
        status_code=status_code,
    )
