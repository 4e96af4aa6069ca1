"""
Chat Persistence Module

Serializes the whole chat collection and the active-chat pointer into one
record of a ``StorageBackend``:

    {"state": {"chats": [...], "currentChatId": "..." | null}, "version": 0}

There is no incremental format: every save overwrites the record.
"""

import json
from dataclasses import dataclass, replace
from typing import List, Optional, Sequence

from ..core.error_handling import ErrorHandler, ErrorContext
from ..core.exceptions import PersistenceError
from ..core.logging import logger
from ..services.session_service.models import ChatSession
from .base import StorageBackend

STATE_VERSION = 0


@dataclass(frozen=True)
class PersistedState:
    chats: List[ChatSession]
    current_chat_id: Optional[str] = None

    @classmethod
    def empty(cls) -> "PersistedState":
        return cls(chats=[], current_chat_id=None)


def serialize_state(chats: Sequence[ChatSession], current_chat_id: Optional[str]) -> str:
    payload = {
        "state": {
            "chats": [chat.to_dict() for chat in chats],
            "currentChatId": current_chat_id,
        },
        "version": STATE_VERSION,
    }
    return json.dumps(payload, ensure_ascii=False)


def _require_object(value, kind: str):
    if not isinstance(value, dict):
        raise ValueError(f"persisted {kind} entry is not a JSON object: {type(value).__name__}")


def deserialize_state(raw: str) -> PersistedState:
    """
    Parse a stored record.

    Messages that were still streaming when the record was written are
    reconciled: the streaming flag is cleared and ``interrupted`` is set.
    The partial text is kept.
    """
    payload = json.loads(raw)
    if not isinstance(payload, dict):
        raise ValueError("persisted record is not a JSON object")
    # старый формат без обертки "state"
    state = payload.get("state", payload)
    if not isinstance(state, dict):
        raise ValueError("persisted 'state' is not a JSON object")

    items = state.get("chats") or []
    if not isinstance(items, list):
        raise ValueError("persisted 'chats' is not a list")

    chats = []
    for item in items:
        _require_object(item, "chat")
        messages = item.get("messages") or []
        if not isinstance(messages, list):
            raise ValueError("persisted 'messages' is not a list")
        for message in messages:
            _require_object(message, "message")
        chat = ChatSession.from_dict(item)
        if chat.streaming_message is not None:
            chat = chat.with_messages(tuple(
                replace(m, is_streaming=False, interrupted=True) if m.is_streaming else m
                for m in chat.messages
            ))
        chats.append(chat)

    current_chat_id = state.get("currentChatId")
    return PersistedState(chats=chats, current_chat_id=str(current_chat_id) if current_chat_id else None)


class ChatPersistence:
    """Reads and writes the chat collection under a fixed storage key."""

    def __init__(self, storage: StorageBackend, key: str = "chat-storage"):
        self.storage = storage
        self.key = key

    def load(self) -> PersistedState:
        """
        Raises:
            PersistenceError: record unreadable or corrupted
        """
        context = ErrorContext(operation="load_chats", storage_key=self.key)
        try:
            raw = self.storage.get_item(self.key)
        except OSError as e:
            raise ErrorHandler.handle_storage_error("read", context, e) from e

        if raw is None:
            logger.info("No persisted chat history, starting empty", storage_key=self.key)
            return PersistedState.empty()

        try:
            state = deserialize_state(raw)
        except (ValueError, KeyError, TypeError) as e:
            raise ErrorHandler.handle_storage_error("read", context, e) from e

        interrupted = sum(1 for chat in state.chats for m in chat.messages if m.interrupted)
        logger.info("Chat history loaded", storage_key=self.key, chats_count=len(state.chats),
                    interrupted_messages=interrupted)
        return state

    def save(self, chats: Sequence[ChatSession], current_chat_id: Optional[str]) -> None:
        """
        Raises:
            PersistenceError: the record could not be written
        """
        context = ErrorContext(operation="save_chats", storage_key=self.key)
        try:
            self.storage.set_item(self.key, serialize_state(chats, current_chat_id))
        except (OSError, TypeError, ValueError) as e:
            raise ErrorHandler.handle_storage_error("write", context, e) from e

    def load_or_empty(self) -> PersistedState:
        """Load, falling back to an empty collection on failure."""
        try:
            return self.load()
        except PersistenceError as e:
            logger.warning(f"Continuing with empty chat history: {e.message}", storage_key=self.key)
            return PersistedState.empty()
