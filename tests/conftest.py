"""
Core pytest configuration and fixtures for Parley testing.

This module provides shared test data, deterministic clocks, fake LLM
clients and store fixtures used across the unit and integration suites.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List

import pytest
from parley.llm import LLM
from parley.models import ASSISTANT_ROLE, USER_ROLE, ChatMessage, Conversation

# ===== TEST DATA FIXTURES =====


@pytest.fixture
def sample_messages() -> List[ChatMessage]:
    """Sample chat messages for testing."""
    return [
        ChatMessage(id=1, role=USER_ROLE, content="Hello, how are you?"),
        ChatMessage(
            id=2,
            role=ASSISTANT_ROLE,
            content="I'm doing well, thank you! How can I help you today?",
        ),
        ChatMessage(id=3, role=USER_ROLE, content="Can you explain quantum computing?"),
        ChatMessage(
            id=4,
            role=ASSISTANT_ROLE,
            content="Quantum computing uses quantum mechanics principles...",
        ),
    ]


@pytest.fixture
def sample_conversation(sample_messages) -> Conversation:
    """Sample conversation for testing."""
    return Conversation(id="001", messages=sample_messages)


# ===== CLOCK FIXTURES =====


class FakeClock:
    """Returns a fixed instant, then advances by ``step`` on every call."""

    def __init__(self, start: datetime, step: timedelta = timedelta(seconds=1)):
        self.now = start
        self.step = step

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + self.step
        return current


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def frozen_clock() -> FakeClock:
    return FakeClock(datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc), timedelta(0))


# ===== STORE FIXTURES =====


def build_store(kind, tmp_path, clock):
    from parley import store

    if kind == "InMemory":
        return store.InMemory(clock=clock)
    if kind == "File":
        return store.File(str(tmp_path / "file_store"), clock=clock)
    return store.SQLite(str(tmp_path / "test.db"), clock=clock)


@pytest.fixture(params=["InMemory", "File", "SQLite"])
def any_store(request, tmp_path, clock):
    """Every store backend, driven by the same fake clock."""
    return build_store(request.param, tmp_path, clock)


@pytest.fixture(params=["InMemory", "File", "SQLite"])
def any_frozen_store(request, tmp_path, frozen_clock):
    """Every store backend, with a clock that never advances."""
    return build_store(request.param, tmp_path, frozen_clock)


@pytest.fixture
def memory_store(clock):
    from parley.store import InMemory

    return InMemory(clock=clock)


# ===== LLM FIXTURES =====


class FakeLLM(LLM):
    """LLM client that records each call on its factory instead of using the network."""

    def __init__(self, factory, provider, api_key):
        self.factory = factory
        self.provider = provider
        self.api_key = api_key

    def generate_response(self, messages, model=None, **kwargs):
        self.factory.calls.append(
            {
                "provider": self.provider.key.value,
                "api_key": self.api_key,
                "messages": [dict(m) for m in messages],
                "model": model,
            }
        )
        if self.factory.error is not None:
            raise self.factory.error
        return {"choices": [{"message": {"content": self.factory.reply}}]}

    def extract_content(self, response: Any) -> str:
        return response["choices"][0]["message"]["content"]


class FakeLLMFactory:
    """Stands in for ``OpenAICompatible`` as a gateway client factory."""

    def __init__(self, reply: str = "Mock LLM response", error: Exception = None):
        self.reply = reply
        self.error = error
        self.calls: List[Dict[str, Any]] = []

    def __call__(self, provider, api_key):
        return FakeLLM(self, provider, api_key)


@pytest.fixture
def llm_factory() -> FakeLLMFactory:
    return FakeLLMFactory()


@pytest.fixture
def gateway(llm_factory):
    """Gateway with a configured default credential and a recording client."""
    from parley.gateway import Gateway

    return Gateway(default_api_key="server-groq-key", client_factory=llm_factory)


# ===== CONFIGURATION =====


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on location."""
    for item in items:
        if "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
