import pytest

from handsoff.core.error_utils import extract_upstream_error_detail
from handsoff.core.exceptions import InvalidEndpointError, UnsupportedProviderError
from handsoff.core.providers import is_llm_provider, resolve_gateway_provider
from handsoff.core.providers.auth import (
    ApiKeyAuthHandler,
    BearerAuthHandler,
    QueryKeyAuthHandler,
)
from handsoff.core.providers.enums import AuthMethod, LLMProvider, PricingProvider


class TestResolveGatewayProvider:
    @pytest.mark.parametrize(
        "name, provider",
        [
            ("openai", LLMProvider.OPENAI),
            ("Claude", LLMProvider.CLAUDE),
            ("anthropic", LLMProvider.CLAUDE),
            ("MOONSHOT AI", LLMProvider.MOONSHOT),
            (" gemini ", LLMProvider.GEMINI),
        ],
    )
    def test_aliases(self, name: str, provider: LLMProvider) -> None:
        assert resolve_gateway_provider(name).provider == provider

    def test_claude_billed_as_anthropic(self) -> None:
        definition = resolve_gateway_provider("claude")
        assert definition.pricing_provider == PricingProvider.ANTHROPIC
        assert definition.auth_method == AuthMethod.API_KEY

    @pytest.mark.parametrize("name", ["", "cohere", None])
    def test_unknown(self, name) -> None:
        with pytest.raises(UnsupportedProviderError):
            resolve_gateway_provider(name)


class TestAuthHandlers:
    def test_bearer_replaces_existing_header(self) -> None:
        headers, endpoint = BearerAuthHandler().inject(
            {"authorization": "Bearer client", "Accept": "x"}, "https://a.test/v1", "server"
        )
        assert headers == {"Accept": "x", "Authorization": "Bearer server"}
        assert endpoint == "https://a.test/v1"

    def test_api_key(self) -> None:
        original = {"Content-Type": "application/json"}
        headers, _ = ApiKeyAuthHandler().inject(original, "https://a.test", "k")
        assert headers["x-api-key"] == "k"
        assert "x-api-key" not in original

    def test_query_key_overrides_client_key_and_keeps_alt(self) -> None:
        _, endpoint = QueryKeyAuthHandler().inject(
            {}, "https://g.test/v1beta/models/m:generateContent?alt=json&key=client", "server"
        )
        assert endpoint == "https://g.test/v1beta/models/m:generateContent?alt=json&key=server"

    def test_query_key_rejects_relative_endpoint(self) -> None:
        with pytest.raises(InvalidEndpointError):
            QueryKeyAuthHandler().inject({}, "/v1beta/models/m", "server")


def test_audio_providers_are_not_llm() -> None:
    assert is_llm_provider(LLMProvider.OPENAI) is True
    assert is_llm_provider(LLMProvider.MISTRAL) is False
    assert is_llm_provider(LLMProvider.REPLICATE) is False


def test_upstream_error_detail() -> None:
    assert extract_upstream_error_detail(b'{"error":{"message":"bad model"}}') == "bad model"
    assert extract_upstream_error_detail('{"detail":"Rate limit exceeded"}') == "Rate limit exceeded"
    assert extract_upstream_error_detail(b"<html>502</html>") == "<html>502</html>"
