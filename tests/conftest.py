"""
Pytest configuration and fixtures for the Native Llama test suite.
"""

import asyncio
import json
import os
from typing import Any, Callable, Dict, List, Optional

# Логи в файлы тестам не нужны
os.environ.setdefault("LOG_TO_FILE", "false")

import pytest

from native_llama.core.exceptions import ServerNetworkError
from native_llama.providers import ModelInfo
from native_llama.services.session_service import ChatSessionStore
from native_llama.storage import ChatPersistence, InMemoryStorage


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class FakeOllamaClient:
    """
    Stand-in for OllamaClient.

    ``chunks`` are yielded in order; ``error`` (if set) is raised after the
    last chunk. When ``hold`` is set, the stream waits on it after
    ``hold_after`` chunks, which lets tests act while a reply is in flight.
    """

    def __init__(self, chunks: Optional[List[bytes]] = None, error: Optional[Exception] = None,
                 models: Optional[List[ModelInfo]] = None, models_error: Optional[Exception] = None):
        self.chunks = list(chunks or [])
        self.error = error
        self.models = list(models or [])
        self.models_error = models_error
        self.running = True
        self.hold: Optional[asyncio.Event] = None
        self.hold_after = 0
        self.on_chunk: Optional[Callable[[int], None]] = None
        self.requests: List[Dict[str, Any]] = []
        self.closed = False
        self.chunks_sent = 0

    async def list_models(self) -> List[ModelInfo]:
        await asyncio.sleep(0)
        if self.models_error is not None:
            raise self.models_error
        return self.models

    async def is_running(self) -> bool:
        return self.running

    async def stream_chat(self, model: str, messages: List[Dict[str, str]], request_id: str = "unknown"):
        self.requests.append({"model": model, "messages": messages, "request_id": request_id})
        try:
            for index, chunk in enumerate(self.chunks):
                if self.hold is not None and index == self.hold_after:
                    await self.hold.wait()
                if self.on_chunk is not None:
                    self.on_chunk(index)
                await asyncio.sleep(0)
                self.chunks_sent += 1
                yield chunk
            if self.hold is not None and self.hold_after >= len(self.chunks):
                await self.hold.wait()
            if self.error is not None:
                raise self.error
        finally:
            self.closed = True


def ndjson(*records: Dict[str, Any]) -> bytes:
    return "".join(json.dumps(record, ensure_ascii=False) + "\n" for record in records).encode("utf-8")


def content_record(text: str) -> Dict[str, Any]:
    return {"model": "m1", "message": {"role": "assistant", "content": text}, "done": False}


async def wait_until(predicate: Callable[[], bool], attempts: int = 200):
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition was not reached")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def persistence(storage: InMemoryStorage) -> ChatPersistence:
    return ChatPersistence(storage, key="chat-storage")


@pytest.fixture
def fake_client() -> FakeOllamaClient:
    return FakeOllamaClient()


@pytest.fixture
def store(fake_client: FakeOllamaClient, persistence: ChatPersistence, clock: FakeClock) -> ChatSessionStore:
    return ChatSessionStore(fake_client, persistence, clock=clock)


@pytest.fixture
def network_error() -> ServerNetworkError:
    return ServerNetworkError("Could not reach inference server: connection reset")
