"""Static registry of the OpenAI-compatible completion backends."""

from typing import Mapping, Union

from pydantic import BaseModel, ConfigDict

from .models import ProviderKey


class ProviderConfig(BaseModel):
    """Endpoint and default model of one backend."""

    model_config = ConfigDict(frozen=True)

    key: ProviderKey
    base_url: str
    default_model: str
    display_name: str


PROVIDERS: Mapping[ProviderKey, ProviderConfig] = {
    ProviderKey.GROQ: ProviderConfig(
        key=ProviderKey.GROQ,
        base_url="https://api.groq.com/openai/v1",
        default_model="llama-3.3-70b-versatile",
        display_name="Groq",
    ),
    ProviderKey.OPENROUTER: ProviderConfig(
        key=ProviderKey.OPENROUTER,
        base_url="https://openrouter.ai/api/v1",
        default_model="meta-llama/llama-3.2-3b-instruct:free",
        display_name="OpenRouter",
    ),
    ProviderKey.TOGETHER: ProviderConfig(
        key=ProviderKey.TOGETHER,
        base_url="https://api.together.xyz/v1",
        default_model="meta-llama/Llama-3.3-70B-Instruct-Turbo",
        display_name="Together AI",
    ),
    ProviderKey.OPENAI: ProviderConfig(
        key=ProviderKey.OPENAI,
        base_url="https://api.openai.com/v1",
        default_model="gpt-4o-mini",
        display_name="OpenAI",
    ),
}


def get_provider_config(key: Union[str, ProviderKey]) -> ProviderConfig:
    """Looks up a provider by key.

    Raises
    ------
    KeyError
        If ``key`` does not name a known provider.
    """
    try:
        return PROVIDERS[ProviderKey(key)]
    except ValueError:
        raise KeyError(f"Unknown provider: {key!r}") from None
