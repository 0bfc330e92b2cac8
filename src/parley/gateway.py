"""
The provider-agnostic completion gateway.

The gateway validates a chat request, resolves the provider, credential and
model for that single call, submits ``history + [current message]`` to the
backend once, and maps the outcome onto ``ChatReply`` or one of the errors
in ``parley.errors``.
"""

import logging
from collections.abc import Mapping
from typing import Any, Callable, Dict, List, Optional

import openai

from .errors import InvalidInput, MissingCredential, UpstreamError
from .llm import LLM, OpenAICompatible
from .models import DEFAULT_PROVIDER, USER_ROLE, ChatReply
from .providers import ProviderConfig, get_provider_config

logger = logging.getLogger(__name__)

ClientFactory = Callable[[ProviderConfig, str], LLM]


class Gateway:
    """Normalizes the supported backends into one request/response contract.

    Parameters
    ----------
    default_api_key : str, optional
        Process-wide credential, used only for the default provider when the
        caller supplies none.
    client_factory : callable, optional
        Builds an ``LLM`` client from ``(provider_config, api_key)``.
        Defaults to ``OpenAICompatible``.
    """

    def __init__(
        self,
        default_api_key: Optional[str] = None,
        client_factory: Optional[ClientFactory] = None,
    ):
        self.default_api_key = default_api_key or ""
        self.client_factory = client_factory or OpenAICompatible

    def complete(
        self,
        message: Any,
        history: Any = None,
        provider: Any = None,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
    ) -> ChatReply:
        """Runs one completion call.

        Raises
        ------
        InvalidInput
            The message, history or provider is malformed.
        MissingCredential
            No credential is available for the selected provider.
        UpstreamError
            The backend call failed.
        """
        items = self._validate(message, history)
        config = self._resolve_provider(provider)
        credential = self._resolve_credential(config, api_key)
        effective_model = model or config.default_model

        messages = items + [{"role": USER_ROLE, "content": message}]
        try:
            client = self.client_factory(config, credential)
            response = client.generate_response(messages, model=effective_model)
            reply = client.extract_content(response)
        except Exception as e:
            logger.error(
                "Completion via %s (%s) failed: %s", config.key.value, effective_model, e
            )
            raise UpstreamError(_upstream_message(e, config), provider=config.key.value) from e

        logger.info(
            "Completion via %s (%s) with %d messages",
            config.key.value,
            effective_model,
            len(messages),
        )
        return ChatReply(reply=reply)

    def _validate(self, message: Any, history: Any) -> List[Dict[str, str]]:
        if not isinstance(message, str) or not message.strip():
            raise _invalid(
                "message", "Invalid message: message must be a non-empty string"
            )
        if history is None:
            return []
        if not isinstance(history, (list, tuple)):
            raise _invalid("history", "Invalid history: must be an array")
        items = []
        for item in history:
            if (
                not isinstance(item, Mapping)
                or not isinstance(item.get("role"), str)
                or not item.get("role")
                or not isinstance(item.get("content"), str)
            ):
                raise _invalid(
                    "history-item",
                    "Invalid history format: each message must have role and content",
                )
            items.append({"role": item["role"], "content": item["content"]})
        return items

    def _resolve_provider(self, provider: Any) -> ProviderConfig:
        if provider is None or provider == "":
            provider = DEFAULT_PROVIDER
        try:
            return get_provider_config(provider)
        except KeyError:
            raise _invalid("provider", f"Unknown API provider: {provider}") from None

    def _resolve_credential(self, config: ProviderConfig, api_key: Optional[str]) -> str:
        if api_key:
            return api_key
        if config.key == DEFAULT_PROVIDER and self.default_api_key:
            return self.default_api_key
        logger.warning("No API key available for %s", config.key.value)
        raise MissingCredential(config.key.value)


def _invalid(field: str, message: str) -> InvalidInput:
    logger.warning("Rejected completion request: %s", message)
    return InvalidInput(field, message)


def _upstream_message(error: Exception, config: ProviderConfig) -> str:
    """Prefers the description supplied by the backend over a generic notice."""
    if isinstance(error, openai.APIStatusError):
        body = error.body
        if isinstance(body, Mapping):
            detail = body.get("error", body)
            if isinstance(detail, Mapping) and detail.get("message"):
                return str(detail["message"])
            if isinstance(detail, str) and detail:
                return detail
        if error.message:
            return error.message
    return f"Error contacting {config.display_name}"
