"""
Concrete implementations of the conversation store.

The store keeps every piece of local state in independent string "slots":
the conversation collection, the current-conversation pointer and one slot
per user preference. ``Store`` implements the whole contract on top of three
slot primitives, so a backend only has to say how a string is read, written
and removed.

No entry point raises on a storage fault. Reads degrade to empty or default
values and writes report ``False``.
"""

import base64
import binascii
import logging
import os
import sqlite3
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple, Union
from uuid import uuid4

from pydantic import TypeAdapter, ValidationError

from .errors import StorageFault
from .models import (
    DEFAULT_PROVIDER,
    DEFAULT_THEME,
    NEW_CHAT_TITLE,
    USER_ROLE,
    ChatMessage,
    Conversation,
    ProviderKey,
    Settings,
    ThemeName,
    utcnow,
)

logger = logging.getLogger(__name__)

CHATS_KEY = "chats"
CURRENT_CHAT_KEY = "current_chat"
THEME_KEY = "theme"
API_PROVIDER_KEY = "api_provider"
API_KEY_KEY = "api_key"
MODEL_KEY = "model"
EDIT_BADGES_KEY = "show_edit_badges"

TITLE_MAX_LENGTH = 50
STORAGE_ERRORS = (OSError, UnicodeError, sqlite3.Error)

_conversations = TypeAdapter(List[Conversation])


def derive_title(messages: List[ChatMessage]) -> str:
    """Builds a conversation title from its first user message.

    The title is the stripped message truncated to 50 characters, with
    ``"..."`` appended when truncation happened. Conversations without a user
    message are titled ``"New Chat"``.
    """
    first_user_message = next((m for m in messages if m.role == USER_ROLE), None)
    if first_user_message is None:
        return NEW_CHAT_TITLE
    content = first_user_message.content.strip()
    title = content[:TITLE_MAX_LENGTH]
    return title + "..." if len(title) < len(content) else title


def encode_api_key(api_key: str) -> str:
    """Obfuscates a credential for storage. This is not encryption."""
    return base64.b64encode(api_key.encode("utf-8")).decode("ascii")


def decode_api_key(stored: str) -> str:
    """Reverses ``encode_api_key``, returning ``stored`` unchanged if it is not encoded."""
    try:
        return base64.b64decode(stored.encode("ascii"), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeError):
        return stored


class Store(ABC):
    """Interface and shared logic for persisting conversations and settings.

    Parameters
    ----------
    clock : callable, optional
        Returns the current, timezone-aware time. Defaults to UTC now.
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self._clock = clock or utcnow
        self._last_minted: Optional[Tuple[str, int]] = None

    # --- Slot primitives ---

    @abstractmethod
    def _read(self, key: str) -> Optional[str]:
        """Returns the value of a slot, or None if it is empty."""
        pass

    @abstractmethod
    def _write(self, key: str, value: str) -> None:
        """Stores a value in a slot, replacing any previous value."""
        pass

    @abstractmethod
    def _remove(self, key: str) -> None:
        """Empties a slot. Removing an empty slot is not an error."""
        pass

    # --- Conversations ---

    derive_title = staticmethod(derive_title)

    def list_conversations(self) -> List[Conversation]:
        """Returns all conversations, most recently updated first."""
        try:
            return _sorted(self._load_all())
        except STORAGE_ERRORS as e:
            self._fault("list_conversations", e)
            return []

    def get_conversation(self, convo_id: str) -> Optional[Conversation]:
        return next((c for c in self.list_conversations() if c.id == convo_id), None)

    def upsert_conversation(self, conversation: Conversation) -> bool:
        """Inserts or replaces a conversation by id.

        ``created_at`` is kept from the stored record when there is one and is
        set to now otherwise. ``updated_at`` is always set to now and the title
        is derived from the messages, whatever the caller supplied.
        """
        try:
            conversations = self._load_all()
            now = self._clock()
            record = conversation.model_copy(deep=True)
            record.title = derive_title(record.messages)
            record.updated_at = now
            for index, existing in enumerate(conversations):
                if existing.id == record.id:
                    record.created_at = existing.created_at
                    conversations[index] = record
                    break
            else:
                record.created_at = now
                conversations.append(record)
            self._save_all(_sorted(conversations))
        except STORAGE_ERRORS as e:
            self._fault("upsert_conversation", e)
            return False
        logger.debug("Saved conversation %s (%d messages)", record.id, len(record.messages))
        return True

    def delete_conversation(self, convo_id: str) -> bool:
        try:
            conversations = self._load_all()
            remaining = [c for c in conversations if c.id != convo_id]
            if len(remaining) != len(conversations):
                self._save_all(remaining)
                logger.info("Deleted conversation %s", convo_id)
        except STORAGE_ERRORS as e:
            self._fault("delete_conversation", e)
            return False
        return True

    def clear_all(self) -> bool:
        """Removes every conversation and the current-conversation pointer."""
        try:
            self._remove(CHATS_KEY)
            self._remove(CURRENT_CHAT_KEY)
        except STORAGE_ERRORS as e:
            self._fault("clear_all", e)
            return False
        logger.info("Cleared all conversations")
        return True

    def get_next_conversation_id(self) -> str:
        """Mints a time-derived conversation id.

        Ids are milliseconds since the epoch. An id already stored, or already
        handed out by this store in the same millisecond, gets a ``-2``,
        ``-3``, ... suffix. Only the last minted id is remembered.
        """
        base = str(int(self._clock().timestamp() * 1000))
        taken = {c.id for c in self.list_conversations()}
        suffix = 1
        if self._last_minted is not None and self._last_minted[0] == base:
            suffix = self._last_minted[1] + 1
        candidate = base if suffix == 1 else f"{base}-{suffix}"
        while candidate in taken:
            suffix += 1
            candidate = f"{base}-{suffix}"
        self._last_minted = (base, suffix)
        return candidate

    def get_current_id(self) -> Optional[str]:
        return self._safe_read(CURRENT_CHAT_KEY) or None

    def set_current_id(self, convo_id: Optional[str]) -> bool:
        if convo_id is None:
            return self._safe_remove(CURRENT_CHAT_KEY)
        return self._safe_write(CURRENT_CHAT_KEY, str(convo_id))

    # --- Settings ---

    def get_theme(self) -> ThemeName:
        try:
            return ThemeName(self._safe_read(THEME_KEY))
        except ValueError:
            return DEFAULT_THEME

    def set_theme(self, theme: Union[ThemeName, str]) -> bool:
        try:
            value = ThemeName(theme).value
        except ValueError:
            logger.warning("Ignoring unknown theme %r", theme)
            return False
        return self._safe_write(THEME_KEY, value)

    def get_api_provider(self) -> ProviderKey:
        try:
            return ProviderKey(self._safe_read(API_PROVIDER_KEY))
        except ValueError:
            return DEFAULT_PROVIDER

    def set_api_provider(self, provider: Union[ProviderKey, str]) -> bool:
        try:
            value = ProviderKey(provider).value
        except ValueError:
            logger.warning("Ignoring unknown provider %r", provider)
            return False
        return self._safe_write(API_PROVIDER_KEY, value)

    def get_api_key(self) -> str:
        stored = self._safe_read(API_KEY_KEY)
        return decode_api_key(stored) if stored else ""

    def set_api_key(self, api_key: str) -> bool:
        return self._safe_write(API_KEY_KEY, encode_api_key(api_key))

    def get_model(self) -> str:
        return self._safe_read(MODEL_KEY) or ""

    def set_model(self, model: str) -> bool:
        return self._safe_write(MODEL_KEY, model)

    def get_show_edit_badges(self) -> bool:
        return self._safe_read(EDIT_BADGES_KEY) != "false"

    def set_show_edit_badges(self, show: bool) -> bool:
        return self._safe_write(EDIT_BADGES_KEY, "true" if show else "false")

    def load_settings(self) -> Settings:
        return Settings(
            provider=self.get_api_provider(),
            api_key=self.get_api_key(),
            model=self.get_model(),
            theme=self.get_theme(),
            show_edit_badges=self.get_show_edit_badges(),
        )

    # --- Helpers ---

    def _load_all(self) -> List[Conversation]:
        raw = self._read(CHATS_KEY)
        if not raw:
            return []
        try:
            return _conversations.validate_json(raw)
        except ValidationError as e:
            logger.warning("Conversation collection is corrupt, treating as empty: %s", e)
            return []

    def _save_all(self, conversations: List[Conversation]) -> None:
        self._write(CHATS_KEY, _conversations.dump_json(conversations).decode("utf-8"))

    def _safe_read(self, key: str) -> Optional[str]:
        try:
            return self._read(key)
        except STORAGE_ERRORS as e:
            self._fault(f"read {key}", e)
            return None

    def _safe_write(self, key: str, value: str) -> bool:
        try:
            self._write(key, value)
        except STORAGE_ERRORS as e:
            self._fault(f"write {key}", e)
            return False
        return True

    def _safe_remove(self, key: str) -> bool:
        try:
            self._remove(key)
        except STORAGE_ERRORS as e:
            self._fault(f"remove {key}", e)
            return False
        return True

    def _fault(self, operation: str, error: Exception) -> None:
        fault = StorageFault(operation, str(error))
        logger.error("Storage fault: %s", fault, exc_info=error)


def _sorted(conversations: List[Conversation]) -> List[Conversation]:
    return sorted(conversations, key=lambda c: c.updated_at, reverse=True)


class InMemory(Store):
    """Keeps all slots in a dictionary. State lasts as long as the process."""

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        super().__init__(clock)
        self._slots: Dict[str, str] = {}

    def _read(self, key: str) -> Optional[str]:
        return self._slots.get(key)

    def _write(self, key: str, value: str) -> None:
        self._slots[key] = value

    def _remove(self, key: str) -> None:
        self._slots.pop(key, None)


class File(Store):
    """Stores each slot as a UTF-8 file in ``base_dir``.

    Writes go through a temporary file and an atomic rename, so a crash never
    leaves a half-written collection behind.
    """

    def __init__(self, base_dir: str, clock: Optional[Callable[[], datetime]] = None):
        super().__init__(clock)
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self.base_dir / f"{key}.slot"

    def _read(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def _write(self, key: str, value: str) -> None:
        path = self._path(key)
        tmp_path = self.base_dir / f"{key}.{uuid4().hex}.tmp"
        try:
            tmp_path.write_text(value, encoding="utf-8")
            os.replace(tmp_path, path)
        finally:
            if tmp_path.exists():
                tmp_path.unlink()

    def _remove(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)


class SQLite(Store):
    """Stores slots as rows of a single key/value table."""

    def __init__(self, db_path: str, clock: Optional[Callable[[], datetime]] = None):
        super().__init__(clock)
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        with self._conn:
            self._conn.execute(
                "CREATE TABLE IF NOT EXISTS slots (key TEXT PRIMARY KEY, value TEXT NOT NULL)"
            )

    def _read(self, key: str) -> Optional[str]:
        with self._lock:
            row = self._conn.execute(
                "SELECT value FROM slots WHERE key = ?", (key,)
            ).fetchone()
        return row[0] if row else None

    def _write(self, key: str, value: str) -> None:
        with self._lock, self._conn:
            self._conn.execute(
                "INSERT OR REPLACE INTO slots (key, value) VALUES (?, ?)", (key, value)
            )

    def _remove(self, key: str) -> None:
        with self._lock, self._conn:
            self._conn.execute("DELETE FROM slots WHERE key = ?", (key,))

    def close(self) -> None:
        self._conn.close()
