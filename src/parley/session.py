"""
The session controller: the single owner of the active conversation.

A session starts ``Unbound`` and becomes ``Bound`` to a freshly minted
conversation id the moment its first message is appended. Binding is a
synchronous check-and-set that always runs before the message list changes,
so nothing can reach the store for a conversation that has no id yet.
"""

import logging
from typing import List, Optional, Union

from .errors import ParleyError
from .gateway import Gateway
from .models import (
    ASSISTANT_ROLE,
    USER_ROLE,
    ChatMessage,
    Conversation,
    ProviderKey,
    Role,
    SendResult,
    Settings,
    ThemeName,
    find_message,
    history_from,
    next_message_id,
)
from .store import Store, derive_title

logger = logging.getLogger(__name__)

ERROR_HINTS = (
    "Please check:\n"
    "- Server is running\n"
    "- API key is configured\n"
    "- Internet connection is active"
)


def format_error_notice(message: str) -> str:
    return f"❌ **Error:** {message}\n\n{ERROR_HINTS}"


class SessionState:
    """Either ``Unbound`` (no conversation id yet) or ``Bound`` to one id."""

    def __init__(self, convo_id: Optional[str] = None):
        self.convo_id = convo_id

    @property
    def bound(self) -> bool:
        return self.convo_id is not None

    def __repr__(self) -> str:
        return f"Bound({self.convo_id!r})" if self.bound else "Unbound"


class SessionController:
    """Bridges UI actions to the gateway and the store.

    Parameters
    ----------
    store : Store
        Durable home of conversations and settings.
    gateway : Gateway
        Completion gateway used by ``send``.
    settings : Settings, optional
        Initial preferences. Loaded from the store when omitted.
    resume : bool, default=True
        Restore the conversation named by the store's current pointer.
    """

    def __init__(
        self,
        store: Store,
        gateway: Gateway,
        settings: Optional[Settings] = None,
        resume: bool = True,
    ):
        self.store = store
        self.gateway = gateway
        self._settings = settings if settings is not None else store.load_settings()
        self._state = SessionState()
        self._messages: List[ChatMessage] = []
        self.busy = False
        if resume:
            self.resume()

    # --- State ---

    @property
    def conversation_id(self) -> Optional[str]:
        return self._state.convo_id

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def messages(self) -> List[ChatMessage]:
        return [msg.model_copy() for msg in self._messages]

    @property
    def settings(self) -> Settings:
        return self._settings.model_copy()

    def history(self) -> List[dict]:
        """The current ``{role, content}`` projection, edits included."""
        return history_from(self._messages)

    def _bind(self) -> str:
        if not self._state.bound:
            self._state = SessionState(self.store.get_next_conversation_id())
            self.store.set_current_id(self._state.convo_id)
            logger.info("Session bound to conversation %s", self._state.convo_id)
        return self._state.convo_id

    def _reset(self) -> None:
        self._state = SessionState()
        self._messages = []

    def _persist(self) -> bool:
        if not self._state.bound or not self._messages:
            return True
        conversation = Conversation(
            id=self._state.convo_id,
            title=derive_title(self._messages),
            messages=self._messages,
        )
        persisted = self.store.upsert_conversation(conversation)
        if not persisted:
            logger.warning(
                "Conversation %s is only held in memory until the next save",
                self._state.convo_id,
            )
        return persisted

    # --- Messages ---

    def append_message(
        self, role: Role, content: str, error: bool = False
    ) -> ChatMessage:
        """Appends a message, binding the session first if needed, and persists."""
        message, _ = self._append(role, content, error)
        return message

    def _append(self, role: Role, content: str, error: bool = False):
        self._bind()
        message = ChatMessage(
            id=next_message_id(self._messages),
            role=role,
            content=content,
            error=error,
        )
        self._messages.append(message)
        return message.model_copy(), self._persist()

    def send(self, text: str) -> Optional[SendResult]:
        """Sends a user message and appends the assistant's reply.

        Blank input and sends on a busy session are ignored and return None.
        A failed completion is appended as an assistant error notice instead
        of raising.
        """
        if not text or not text.strip() or self.busy:
            return None

        prior = self.history()
        user, _ = self._append(USER_ROLE, text.strip())
        self.busy = True
        try:
            result = self.gateway.complete(
                message=user.content,
                history=prior,
                provider=self._settings.provider.value,
                api_key=self._settings.api_key,
                model=self._settings.model,
            )
            reply, persisted = self._append(ASSISTANT_ROLE, result.reply)
        except ParleyError as e:
            logger.error("Send failed in conversation %s: %s", self.conversation_id, e)
            reply, persisted = self._append(
                ASSISTANT_ROLE, format_error_notice(e.message), error=True
            )
        finally:
            self.busy = False
        return SendResult(user=user, reply=reply, persisted=persisted)

    def edit(self, message_id: int, content: str) -> bool:
        """Replaces a message's content in place and marks it edited.

        Editing an error notice turns it into an ordinary message.

        Raises
        ------
        KeyError
            If no message in the active conversation has ``message_id``.
        """
        message = find_message(self._messages, message_id)
        if message is None:
            raise KeyError(f"No message with id {message_id}")
        message.content = content
        message.edited = True
        message.error = False
        return self._persist()

    # --- Conversations ---

    def resume(self) -> bool:
        """Restores the conversation the store marks as current."""
        convo_id = self.store.get_current_id()
        return self.select(convo_id) if convo_id else False

    def select(self, convo_id: str) -> bool:
        """Makes a stored conversation the active one."""
        conversation = self.store.get_conversation(convo_id)
        if conversation is None:
            return False
        self._state = SessionState(conversation.id)
        self._messages = conversation.messages
        self.store.set_current_id(conversation.id)
        return True

    def new_chat(self) -> bool:
        """Starts an unbound session. The previous conversation stays stored."""
        self._reset()
        return self.store.set_current_id(None)

    def delete(self, convo_id: str) -> bool:
        deleted = self.store.delete_conversation(convo_id)
        if convo_id == self.conversation_id:
            self.new_chat()
        return deleted

    def delete_current(self) -> bool:
        if not self._state.bound:
            self.new_chat()
            return True
        return self.delete(self.conversation_id)

    def clear_all(self) -> bool:
        self._reset()
        return self.store.clear_all()

    # --- Settings ---

    def set_provider(self, provider: Union[ProviderKey, str]) -> bool:
        """Switches provider. Unknown keys are ignored and return False."""
        try:
            self._settings.provider = ProviderKey(provider)
        except ValueError:
            logger.warning("Ignoring unknown provider %r", provider)
            return False
        return self.store.set_api_provider(self._settings.provider)

    def set_api_key(self, api_key: str) -> bool:
        self._settings.api_key = api_key
        return self.store.set_api_key(api_key)

    def set_model(self, model: str) -> bool:
        self._settings.model = model
        return self.store.set_model(model)

    def set_theme(self, theme: Union[ThemeName, str]) -> bool:
        try:
            self._settings.theme = ThemeName(theme)
        except ValueError:
            logger.warning("Ignoring unknown theme %r", theme)
            return False
        return self.store.set_theme(self._settings.theme)

    def set_show_edit_badges(self, show: bool) -> bool:
        self._settings.show_edit_badges = show
        return self.store.set_show_edit_badges(show)
