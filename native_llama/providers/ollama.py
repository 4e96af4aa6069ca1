import json
from dataclasses import dataclass, field
from typing import Dict, Any, List, Optional, AsyncIterator

import httpx

from ..core.error_handling import ErrorHandler, ErrorContext
from ..core.logging import logger


@dataclass(frozen=True)
class ModelInfo:
    """An entry of the server's model catalog (``GET /api/tags``)."""

    name: str
    size: Optional[int] = None
    modified_at: Optional[str] = None
    digest: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def size_label(self) -> str:
        if not self.size:
            return ""
        return f"{self.size / 1e9:.1f}GB"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ModelInfo":
        details = data.get("details") or {}
        if not isinstance(details, dict):
            details = {}
        # /api/tags держит размер на верхнем уровне, старые сборки - в details
        size = details.get("size", data.get("size"))
        return cls(
            name=str(data.get("name") or data.get("model") or ""),
            size=size if isinstance(size, (int, float)) else None,
            modified_at=data.get("modified_at"),
            digest=data.get("digest"),
            details=details,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "size": self.size,
            "size_label": self.size_label,
            "modified_at": self.modified_at,
            "digest": self.digest,
            "details": self.details,
        }


class OllamaClient:
    """
    Transport to a local Ollama server.

    Only three endpoints are used: the model catalog, the liveness probe and
    the streaming chat endpoint. Every httpx failure is converted to a
    ``TransportError`` subclass, so callers never see raw httpx exceptions.
    """

    def __init__(self, base_url: str, client: httpx.AsyncClient, headers: Optional[Dict[str, str]] = None,
                 request_timeout: float = 15.0, stream_read_timeout: float = 30.0):
        self.base_url = base_url.rstrip("/")
        self.client = client
        self.headers = dict(headers or {})
        self.headers["Content-Type"] = "application/json"
        self.request_timeout = request_timeout
        self.stream_read_timeout = stream_read_timeout

    async def list_models(self) -> List[ModelInfo]:
        """Fetch the model catalog."""
        context = ErrorContext(operation="list_models")
        url = f"{self.base_url}/api/tags"
        try:
            response = await self.client.get(url, headers=self.headers, timeout=self.request_timeout)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise ErrorHandler.handle_server_http_error(e, context) from e
        except httpx.RequestError as e:
            raise ErrorHandler.handle_server_network_error(e, context) from e

        try:
            payload = response.json()
        except json.JSONDecodeError as e:
            raise ErrorHandler.handle_invalid_server_response("model catalog is not valid JSON", context, e) from e

        if not isinstance(payload, dict) or not isinstance(payload.get("models", []), list):
            raise ErrorHandler.handle_invalid_server_response("model catalog has no 'models' list", context)

        models = [ModelInfo.from_dict(item) for item in payload.get("models") or [] if isinstance(item, dict)]

        logger.debug_data(
            title="Ollama Model Catalog",
            data=payload,
            request_id="list_models",
            component="ollama_client",
            data_flow="from_server"
        )
        return models

    async def is_running(self) -> bool:
        """Liveness probe. Never raises."""
        try:
            response = await self.client.get(f"{self.base_url}/api/ps", headers=self.headers,
                                             timeout=self.request_timeout)
        except httpx.HTTPError as e:
            logger.debug(f"Ollama liveness probe failed: {e}", component="ollama_client")
            return False
        return response.is_success

    async def stream_chat(self, model: str, messages: List[Dict[str, str]],
                          request_id: str = "unknown") -> AsyncIterator[bytes]:
        """
        Open ``POST /api/chat`` with ``stream: true`` and yield raw body chunks.

        Args:
            model: Model identifier
            messages: Wire-format history, ``[{"role": ..., "content": ...}]``
            request_id: Correlation id for the logs

        Yields:
            bytes: Raw chunks exactly as received (no line framing)
        """
        context = ErrorContext(request_id=request_id, model_id=model, operation="stream_chat")
        request_body = {
            "model": model,
            "messages": messages,
            "stream": True,
        }

        logger.debug_data(
            title="Ollama Chat Request",
            data={"url": f"{self.base_url}/api/chat", "request_body": request_body},
            request_id=request_id,
            component="ollama_client",
            data_flow="to_server"
        )

        # read: время между чанками, а не на весь ответ
        stream_timeout = httpx.Timeout(
            connect=10.0,
            read=self.stream_read_timeout,
            write=10.0,
            pool=10.0
        )

        try:
            async with self.client.stream("POST", f"{self.base_url}/api/chat",
                                          headers=self.headers,
                                          json=request_body,
                                          timeout=stream_timeout) as response:
                if response.is_error:
                    # Для стриминговых ответов нужно сначала прочитать контент
                    body = await response.aread()
                    try:
                        response.raise_for_status()
                    except httpx.HTTPStatusError as e:
                        raise ErrorHandler.handle_server_http_error(
                            e, context, response_text=body.decode("utf-8", errors="replace")
                        ) from e

                async for chunk in response.aiter_bytes():
                    yield chunk
        except httpx.RequestError as e:
            raise ErrorHandler.handle_server_network_error(e, context) from e
