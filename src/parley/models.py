"""
Defines the core Pydantic data models for the application.

These models serve as the validated data contract between the store, the
gateway and the session controller, and mirror the wire shape of the
OpenAI-style chat completion API.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

# --- Constants ---
USER_ROLE = "user"
ASSISTANT_ROLE = "assistant"
SYSTEM_ROLE = "system"
Role = Literal[USER_ROLE, ASSISTANT_ROLE, SYSTEM_ROLE]

NEW_CHAT_TITLE = "New Chat"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProviderKey(str, Enum):
    """Known completion backends."""

    GROQ = "groq"
    OPENROUTER = "openrouter"
    TOGETHER = "together"
    OPENAI = "openai"


class ThemeName(str, Enum):
    DEFAULT_DARK = "default-dark"
    DEFAULT_LIGHT = "default-light"
    MIDNIGHT_GALAXY = "midnight-galaxy"
    OCEAN_BREEZE = "ocean-breeze"
    SUNSET_GLOW = "sunset-glow"


DEFAULT_PROVIDER = ProviderKey.GROQ
DEFAULT_THEME = ThemeName.DEFAULT_DARK


# --- Models ---
class ChatMessage(BaseModel):
    """Represents a single message within a conversation."""

    id: int
    role: Role
    content: str
    edited: bool = False
    error: bool = False

    def to_history_item(self) -> dict:
        """Projects the message onto the ``{role, content}`` wire shape."""
        return {"role": self.role, "content": self.content}


class Conversation(BaseModel):
    """Represents a complete, persisted chat conversation."""

    id: str
    title: str = NEW_CHAT_TITLE
    messages: List[ChatMessage] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Settings(BaseModel):
    """User preferences, persisted independently of any conversation."""

    provider: ProviderKey = DEFAULT_PROVIDER
    api_key: str = ""
    model: str = ""
    theme: ThemeName = DEFAULT_THEME
    show_edit_badges: bool = True


class ChatReply(BaseModel):
    """Successful result of a completion call."""

    reply: str


class SendResult(BaseModel):
    """Outcome of a single send action in a session."""

    user: ChatMessage
    reply: ChatMessage
    persisted: bool

    @property
    def failed(self) -> bool:
        return self.reply.error


def history_from(messages: List[ChatMessage]) -> List[dict]:
    """Returns the ``{role, content}`` projection of a message list."""
    return [msg.to_history_item() for msg in messages]


def next_message_id(messages: List[ChatMessage]) -> int:
    return max((msg.id for msg in messages), default=0) + 1


def find_message(
    messages: List[ChatMessage], message_id: int
) -> Optional[ChatMessage]:
    return next((msg for msg in messages if msg.id == message_id), None)
