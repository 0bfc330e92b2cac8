"""Tests for the completion gateway: validation, resolution and error mapping."""

from unittest.mock import Mock, patch

import httpx
import openai
import pytest
from parley.errors import InvalidInput, MissingCredential, UpstreamError
from parley.gateway import Gateway
from parley.llm import Echo, OpenAICompatible
from parley.models import ChatReply
from parley.providers import PROVIDERS, ProviderKey


class TestValidation:
    @pytest.mark.parametrize("message", [None, "", "   \n\t", 42, ["hi"]])
    def test_invalid_message(self, gateway, llm_factory, message):
        """Test that empty or non-string messages are rejected."""
        with pytest.raises(InvalidInput) as exc_info:
            gateway.complete(message=message)

        assert exc_info.value.field == "message"
        assert exc_info.value.http_status == 400
        assert llm_factory.calls == []

    @pytest.mark.parametrize("history", ["not a list", {"role": "user"}, 7])
    def test_history_must_be_a_sequence(self, gateway, llm_factory, history):
        """Test that history must be a list."""
        with pytest.raises(InvalidInput) as exc_info:
            gateway.complete(message="Hello", history=history)

        assert exc_info.value.field == "history"
        assert exc_info.value.message == "Invalid history: must be an array"
        assert llm_factory.calls == []

    @pytest.mark.parametrize(
        "item",
        [
            {"content": "no role"},
            {"role": "", "content": "empty role"},
            {"role": "user"},
            {"role": "user", "content": 5},
            {"role": 1, "content": "numeric role"},
            "just a string",
        ],
    )
    def test_history_items_need_role_and_text_content(self, gateway, llm_factory, item):
        """Test that each history item needs a role and text content."""
        with pytest.raises(InvalidInput) as exc_info:
            gateway.complete(message="Hello", history=[{"role": "user", "content": "ok"}, item])

        assert exc_info.value.field == "history-item"
        assert llm_factory.calls == []

    def test_unknown_provider(self, gateway, llm_factory):
        """Test that unknown providers are rejected before credential lookup."""
        with patch.object(gateway, "_resolve_credential") as resolve:
            with pytest.raises(InvalidInput) as exc_info:
                gateway.complete(message="Hello", provider="skynet", api_key="k")

        assert exc_info.value.field == "provider"
        assert "skynet" in exc_info.value.message
        resolve.assert_not_called()
        assert llm_factory.calls == []

    def test_validation_order_message_first(self, gateway):
        """Test that the message is validated first."""
        with pytest.raises(InvalidInput) as exc_info:
            gateway.complete(message="", history="bad", provider="skynet")

        assert exc_info.value.field == "message"

    def test_validation_order_history_before_provider(self, gateway):
        """Test that history is validated before the provider."""
        with pytest.raises(InvalidInput) as exc_info:
            gateway.complete(message="Hi", history=[{"role": ""}], provider="skynet")

        assert exc_info.value.field == "history-item"


class TestCredentialResolution:
    def test_explicit_key_wins(self, gateway, llm_factory):
        """Test that a caller key overrides the process key."""
        gateway.complete(message="Hello", api_key="user-key")

        assert llm_factory.calls[0]["api_key"] == "user-key"

    def test_default_provider_falls_back_to_process_key(self, gateway, llm_factory):
        """Test that groq falls back to the configured process key."""
        gateway.complete(message="Hello", api_key="")

        assert llm_factory.calls[0]["provider"] == "groq"
        assert llm_factory.calls[0]["api_key"] == "server-groq-key"

    @pytest.mark.parametrize("provider", ["openrouter", "together", "openai"])
    def test_other_providers_require_explicit_key(self, gateway, llm_factory, provider):
        """Test that other providers never use the process key."""
        with pytest.raises(MissingCredential) as exc_info:
            gateway.complete(message="Hello", provider=provider)

        assert exc_info.value.message == f"API key required for {provider}"
        assert exc_info.value.http_status == 400
        assert llm_factory.calls == []

    def test_default_provider_without_any_key(self, llm_factory):
        """Test that groq without any key is a missing credential."""
        gateway = Gateway(client_factory=llm_factory)

        with pytest.raises(MissingCredential, match="API key required for groq"):
            gateway.complete(message="Hello")
        assert llm_factory.calls == []


class TestExecution:
    def test_single_call_with_history_then_message(self, gateway, llm_factory):
        """Test that history and message are sent in a single call."""
        history = [
            {"role": "system", "content": "Be terse."},
            {"role": "user", "content": "Hi"},
            {"role": "assistant", "content": "Hello!"},
        ]

        reply = gateway.complete(message="How are you?", history=history)

        assert reply == ChatReply(reply="Mock LLM response")
        assert len(llm_factory.calls) == 1
        assert llm_factory.calls[0]["messages"] == history + [
            {"role": "user", "content": "How are you?"}
        ]

    def test_history_items_are_projected_to_role_and_content(self, gateway, llm_factory):
        """Test that extra history fields are dropped."""
        history = [{"role": "user", "content": "Hi", "id": 3, "edited": True}]

        gateway.complete(message="Again", history=history)

        assert llm_factory.calls[0]["messages"][0] == {"role": "user", "content": "Hi"}

    def test_default_model_per_provider(self, gateway, llm_factory):
        """Test that each provider uses its default model."""
        for key, config in PROVIDERS.items():
            gateway.complete(message="Hi", provider=key.value, api_key="k")
            assert llm_factory.calls[-1]["model"] == config.default_model

    def test_model_override(self, gateway, llm_factory):
        """Test that an explicit model is passed through."""
        gateway.complete(message="Hi", model="llama-3.1-8b-instant")

        assert llm_factory.calls[0]["model"] == "llama-3.1-8b-instant"

    def test_empty_model_uses_default(self, gateway, llm_factory):
        gateway.complete(message="Hi", model="")

        assert llm_factory.calls[0]["model"] == "llama-3.3-70b-versatile"

    def test_provider_accepts_enum(self, gateway, llm_factory):
        gateway.complete(message="Hi", provider=ProviderKey.OPENAI, api_key="k")

        assert llm_factory.calls[0]["provider"] == "openai"


class TestUpstreamErrors:
    def test_generic_failure_names_the_product(self, gateway, llm_factory):
        """Test that unknown failures name the provider."""
        llm_factory.error = ConnectionError("boom")

        with pytest.raises(UpstreamError) as exc_info:
            gateway.complete(message="Hello")

        assert exc_info.value.message == "Error contacting Groq"
        assert exc_info.value.http_status == 500
        assert len(llm_factory.calls) == 1

    def test_generic_failure_for_together(self, gateway, llm_factory):
        llm_factory.error = RuntimeError("boom")

        with pytest.raises(UpstreamError, match="Error contacting Together AI"):
            gateway.complete(message="Hello", provider="together", api_key="k")

    def test_upstream_description_is_passed_through(self, gateway, llm_factory):
        """Test that the backend's own error message is preserved."""
        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        response = httpx.Response(401, request=request)
        llm_factory.error = openai.AuthenticationError(
            "Error code: 401",
            response=response,
            body={"error": {"message": "Incorrect API key provided"}},
        )

        with pytest.raises(UpstreamError) as exc_info:
            gateway.complete(message="Hello", provider="openai", api_key="bad")

        assert exc_info.value.message == "Incorrect API key provided"
        assert exc_info.value.provider == "openai"

    def test_connection_errors_use_generic_message(self, gateway, llm_factory):
        """Test that connection errors fall back to the generic message."""
        request = httpx.Request("POST", "https://openrouter.ai/api/v1/chat/completions")
        llm_factory.error = openai.APIConnectionError(request=request)

        with pytest.raises(UpstreamError, match="Error contacting OpenRouter"):
            gateway.complete(message="Hello", provider="openrouter", api_key="k")

    def test_no_retry(self, gateway, llm_factory):
        """Test that failures are not retried."""
        llm_factory.error = TimeoutError()

        with pytest.raises(UpstreamError):
            gateway.complete(message="Hello")

        assert len(llm_factory.calls) == 1


class TestDefaultClient:
    def test_openai_compatible_client_is_built_per_provider(self):
        """Test that the openai client gets the provider base URL and key."""
        with patch("openai.OpenAI") as openai_cls:
            client = openai_cls.return_value
            client.chat.completions.create.return_value = Mock(
                choices=[Mock(message=Mock(content="Hey"))]
            )
            gateway = Gateway()

            reply = gateway.complete(message="Hi", provider="together", api_key="tk")

        openai_cls.assert_called_once_with(
            base_url="https://api.together.xyz/v1", api_key="tk"
        )
        client.chat.completions.create.assert_called_once_with(
            messages=[{"role": "user", "content": "Hi"}],
            model="meta-llama/Llama-3.3-70B-Instruct-Turbo",
        )
        assert reply.reply == "Hey"

    def test_gateway_defaults_to_openai_compatible(self):
        """Test the default client factory."""
        assert Gateway().client_factory is OpenAICompatible


class TestEchoClient:
    def test_offline_gateway_echoes_prompt(self):
        """Test that the offline client runs through the gateway."""
        gateway = Gateway(default_api_key="unused", client_factory=Echo)

        reply = gateway.complete(message="Ping", history=[{"role": "user", "content": "Hi"}])

        assert reply.reply.endswith("Ping")

    def test_echo_reports_requested_model(self):
        """Test that Echo reports the requested model."""
        llm = Echo(PROVIDERS[ProviderKey.GROQ])

        response = llm.generate_response([{"role": "user", "content": "Hi"}], model="m")

        assert response["model"] == "m"
        assert llm.extract_content(response).endswith("Hi")

    def test_echo_without_provider(self):
        llm = Echo()

        assert llm.model == "echo-v1"
        assert "No message provided" in llm.extract_content(llm.generate_response([]))
