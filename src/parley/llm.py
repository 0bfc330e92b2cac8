"""Concrete implementations of LLM clients."""

import time
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from .providers import ProviderConfig


class LLM(ABC):
    """Abstract Base Class for all LLM clients."""

    @abstractmethod
    def generate_response(
        self, messages: List[Dict[str, Any]], model: Optional[str] = None, **kwargs: Any
    ) -> Any:
        """Generates a response from the LLM backend.

        This method should return the backend's native, rich response object
        directly from its SDK.

        Parameters
        ----------
        messages : List[Dict[str, Any]]
            A list of ``{"role", "content"}`` message dictionaries.
        model : str, optional
            The specific model to use for the generation.
        **kwargs : Any
            Backend-specific parameters (e.g., temperature) passed directly
            to the SDK.

        Returns
        -------
        Any
            The backend's native, rich response object.
        """
        pass

    @abstractmethod
    def extract_content(self, response: Any) -> str:
        """Extracts the text content from the native response object.

        Parameters
        ----------
        response : Any
            The native response object from generate_response.

        Returns
        -------
        str
            The text of the first completion choice.
        """
        pass


class OpenAICompatible(LLM):
    """Client for any backend speaking the OpenAI chat completions API.

    One instance is bound to a single provider and credential; the gateway
    builds a fresh instance per call.
    """

    def __init__(self, provider: ProviderConfig, api_key: str):
        from openai import OpenAI

        self.provider = provider
        self.model = provider.default_model
        self.client = OpenAI(base_url=provider.base_url, api_key=api_key)

    def generate_response(self, messages, model=None, **kwargs):
        return self.client.chat.completions.create(
            messages=messages, model=model or self.model, **kwargs
        )

    def extract_content(self, response: Any) -> str:
        return response.choices[0].message.content or ""



class Echo(LLM):
    """Offline client that answers with the last prompt. Useful for demos and tests.

    Its constructor matches ``client_factory``, so ``Gateway(client_factory=Echo)``
    runs the whole stack without network access.
    """

    def __init__(self, provider: Optional[ProviderConfig] = None, api_key: str = "", delay: float = 0.0):
        self.provider = provider
        self.model = provider.default_model if provider else "echo-v1"
        self.delay = delay

    def generate_response(self, messages, model=None, **kwargs):
        if self.delay:
            time.sleep(self.delay)
        user_prompt = messages[-1]["content"] if messages else "No message provided"
        content = f"**Echo LLM - static response for testing**\n\n_Your prompt:_\n\n{user_prompt}"

        return {
            "content": content,
            "model": model or self.model,
        }

    def extract_content(self, response: Any) -> str:
        if isinstance(response, dict) and "content" in response:
            return response["content"]
        return str(response)
