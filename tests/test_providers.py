"""
Tests for built-in litellm providers and error normalisation.
"""

from types import SimpleNamespace

import pytest

from agentflow.core.config import Settings
from agentflow.errors import AuthenticationError, ProviderError, normalize_provider_error
from agentflow.llm.providers import LiteLLMProvider, create_builtin_providers, estimate_tokens_by_chars
from agentflow.models import CompletionOptions


def fake_litellm_response(text="hello", prompt_tokens=1000, completion_tokens=500):
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=text), finish_reason="stop")],
        usage=SimpleNamespace(
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=prompt_tokens + completion_tokens,
        ),
    )


class HTTPError(Exception):
    def __init__(self, message, status_code=None, code=None):
        super().__init__(message)
        self.status_code = status_code
        if code is not None:
            self.code = code


class TestLiteLLMProvider:
    """Test completion, pricing and catalogue lookups."""

    @pytest.mark.asyncio
    async def test_generate_completion(self):
        calls = []

        async def completion(**kwargs):
            calls.append(kwargs)
            return fake_litellm_response()

        provider = LiteLLMProvider("openai", api_key="sk-test", default_model="gpt-4", completion_fn=completion)
        response = await provider.generate_completion("hi", CompletionOptions(temperature=0.2, max_tokens=50))

        assert response.text == "hello"
        assert response.tokens.total == 1500
        assert response.model == "gpt-4"
        # gpt-4: $0.03 / 1K in, $0.06 / 1K out
        assert response.cost == pytest.approx(0.03 + 0.03)
        assert calls[0]["model"] == "gpt-4"
        assert calls[0]["temperature"] == 0.2
        assert calls[0]["max_tokens"] == 50
        assert calls[0]["messages"] == [{"role": "user", "content": "hi"}]

    @pytest.mark.asyncio
    async def test_anthropic_model_prefix(self):
        calls = []

        async def completion(**kwargs):
            calls.append(kwargs)
            return fake_litellm_response()

        provider = LiteLLMProvider(
            "anthropic", api_key="key", default_model="claude-3-5-sonnet-20241022", completion_fn=completion
        )
        await provider.generate_completion("hi")

        assert calls[0]["model"] == "anthropic/claude-3-5-sonnet-20241022"

    @pytest.mark.asyncio
    async def test_missing_key(self):
        provider = LiteLLMProvider("openai", api_key=None, default_model="gpt-4")

        assert provider.is_available() is False
        with pytest.raises(AuthenticationError) as exc_info:
            await provider.generate_completion("hi")
        assert exc_info.value.code == "AUTH_KEY_MISSING"

    @pytest.mark.asyncio
    async def test_backend_error_normalised(self):
        async def completion(**kwargs):
            raise HTTPError("Rate limit reached", status_code=429)

        provider = LiteLLMProvider("openai", api_key="sk", default_model="gpt-4", completion_fn=completion)

        with pytest.raises(ProviderError) as exc_info:
            await provider.generate_completion("hi")

        assert exc_info.value.is_transient is True
        assert exc_info.value.code == "OPENAI_ERROR"

    def test_model_info(self):
        provider = LiteLLMProvider("openai", api_key="sk", default_model="gpt-4")

        info = provider.get_model_info("gpt-4-turbo")
        assert info.context_window == 128000

        with pytest.raises(ProviderError) as exc_info:
            provider.get_model_info("nope")
        assert exc_info.value.code == "INVALID_MODEL"

    def test_char_estimate(self):
        assert estimate_tokens_by_chars("") == 0
        assert estimate_tokens_by_chars("abcd") == 1
        assert estimate_tokens_by_chars("abcde") == 2

    def test_builtin_providers_from_settings(self):
        config = Settings(OPENAI_API_KEY="sk", ANTHROPIC_API_KEY=None)

        providers = create_builtin_providers(config)

        assert set(providers) == {"openai", "anthropic"}
        assert providers["openai"].is_available() is True
        assert providers["anthropic"].is_available() is False


class TestNormalizeProviderError:
    """Test transience and code derivation."""

    @pytest.mark.parametrize("status,transient", [
        (429, True),
        (408, True),
        (500, True),
        (503, True),
        (400, False),
        (404, False),
    ])
    def test_status_codes(self, status, transient):
        error = normalize_provider_error(HTTPError("failure", status_code=status), "openai")
        assert error.is_transient is transient
        assert error.status_code == status

    @pytest.mark.parametrize("status", [401, 403])
    def test_auth_failures(self, status):
        error = normalize_provider_error(HTTPError("bad key", status_code=status), "openai")
        assert isinstance(error, AuthenticationError)
        assert error.code == "AUTH_KEY_INVALID"
        assert error.is_transient is False

    def test_backend_code_preserved(self):
        error = normalize_provider_error(HTTPError("quota", status_code=400, code="insufficient_quota"), "openai")
        assert error.code == "insufficient_quota"

    def test_message_markers(self):
        assert normalize_provider_error(Exception("Request timeout"), "custom").is_transient is True
        assert normalize_provider_error(Exception("invalid prompt"), "custom").is_transient is False

    def test_connection_errors_transient(self):
        assert normalize_provider_error(ConnectionError("reset"), "custom").is_transient is True

    def test_provider_error_passthrough(self):
        original = ProviderError("x", code="X")
        assert normalize_provider_error(original, "openai") is original
