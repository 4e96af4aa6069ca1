"""
Chat Session Service Package

- models: ChatSession / Message snapshots and their serialization
- store: ChatSessionStore, the conversation state and streaming orchestration
"""

from .models import ChatSession, Message, Sender, ERROR_PREFIX, DEFAULT_TITLE
from .store import ChatSessionStore

__all__ = [
    "ChatSession",
    "Message",
    "Sender",
    "ERROR_PREFIX",
    "DEFAULT_TITLE",
    "ChatSessionStore",
]
