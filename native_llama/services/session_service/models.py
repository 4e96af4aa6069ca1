"""
Chat data model.

Sessions and messages are immutable snapshots: the store replaces them on
every change, so a reference handed to an observer never changes under it.
"""

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Any, Optional, Tuple

ERROR_PREFIX = "Error: "
DEFAULT_TITLE = "New Chat"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_key() -> str:
    return str(uuid.uuid4())


class Sender(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"

    @classmethod
    def parse(cls, value: Any) -> "Sender":
        if isinstance(value, Sender):
            return value
        if value == "user":
            return cls.USER
        # старые записи хранят ответ модели как "ai"
        return cls.ASSISTANT

    @property
    def wire_role(self) -> str:
        return "user" if self is Sender.USER else "assistant"


@dataclass(frozen=True)
class Message:
    """
    Attributes:
        text: Message content, grows while ``is_streaming`` is set
        sender: Who wrote it
        key: Unique identity within the session, never changes
        is_streaming: True from creation until the reply is finalized
        interrupted: The reply was still streaming when the app stopped
        created_at: ISO-8601 creation time
    """
    text: str
    sender: Sender
    key: str = field(default_factory=new_key)
    is_streaming: bool = False
    interrupted: bool = False
    created_at: str = field(default_factory=utc_now_iso)

    @classmethod
    def user(cls, text: str) -> "Message":
        return cls(text=text, sender=Sender.USER)

    @classmethod
    def placeholder(cls) -> "Message":
        """Empty assistant message that receives the streamed reply."""
        return cls(text="", sender=Sender.ASSISTANT, is_streaming=True)

    @property
    def is_error(self) -> bool:
        return self.sender is Sender.ASSISTANT and self.text.startswith(ERROR_PREFIX)

    def with_text(self, text: str) -> "Message":
        return replace(self, text=text)

    def finalized(self) -> "Message":
        return replace(self, is_streaming=False)

    def to_wire(self) -> Dict[str, str]:
        return {"role": self.sender.wire_role, "content": self.text}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "sender": self.sender.value,
            "timestamp": self.key,
            "isStreaming": self.is_streaming,
            "interrupted": self.interrupted,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Message":
        return cls(
            text=str(data.get("text") or ""),
            sender=Sender.parse(data.get("sender")),
            key=str(data.get("timestamp") or data.get("key") or new_key()),
            is_streaming=bool(data.get("isStreaming", False)),
            interrupted=bool(data.get("interrupted", False)),
            created_at=str(data.get("createdAt") or ""),
        )


@dataclass(frozen=True)
class ChatSession:
    id: str
    title: str
    model: str
    messages: Tuple[Message, ...] = ()
    created_at: str = field(default_factory=utc_now_iso)

    @classmethod
    def new(cls, title: Optional[str], model: str) -> "ChatSession":
        return cls(id=new_key(), title=title or DEFAULT_TITLE, model=model)

    def find_message(self, key: str) -> Optional[Message]:
        for message in self.messages:
            if message.key == key:
                return message
        return None

    @property
    def streaming_message(self) -> Optional[Message]:
        for message in self.messages:
            if message.is_streaming:
                return message
        return None

    def with_message(self, message: Message) -> "ChatSession":
        return replace(self, messages=self.messages + (message,))

    def with_messages(self, messages: Tuple[Message, ...]) -> "ChatSession":
        return replace(self, messages=tuple(messages))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "model": self.model,
            "messages": [message.to_dict() for message in self.messages],
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChatSession":
        return cls(
            id=str(data["id"]),
            title=str(data.get("title") or DEFAULT_TITLE),
            model=str(data.get("model") or ""),
            messages=tuple(Message.from_dict(item) for item in data.get("messages") or []),
            created_at=str(data.get("createdAt") or ""),
        )
