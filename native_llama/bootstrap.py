"""
Wiring of the engine from configuration.
"""

from typing import Optional

import httpx

from .core.config_manager import ConfigManager
from .providers import OllamaClient, ServerLauncher
from .services.session_service import ChatSessionStore
from .storage import ChatPersistence, JsonFileStorage


def build_client(config: ConfigManager, http_client: httpx.AsyncClient) -> OllamaClient:
    return OllamaClient(
        config.ollama_base_url,
        http_client,
        request_timeout=config.request_timeout,
        stream_read_timeout=config.stream_read_timeout,
    )


def build_store(config: ConfigManager, http_client: httpx.AsyncClient,
                client: Optional[OllamaClient] = None) -> ChatSessionStore:
    """Create a store backed by the JSON file storage from ``config``."""
    persistence = ChatPersistence(JsonFileStorage(config.storage_dir), key=config.storage_key)
    return ChatSessionStore(client or build_client(config, http_client), persistence, config=config)


def build_launcher(config: ConfigManager) -> ServerLauncher:
    return ServerLauncher(config.server_command)
