from .base import StorageBackend
from .backends import JsonFileStorage, InMemoryStorage
from .chat_persistence import (
    ChatPersistence, PersistedState, serialize_state, deserialize_state, STATE_VERSION,
)

__all__ = [
    "StorageBackend",
    "JsonFileStorage",
    "InMemoryStorage",
    "ChatPersistence",
    "PersistedState",
    "serialize_state",
    "deserialize_state",
    "STATE_VERSION",
]
