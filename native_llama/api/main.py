from typing import Optional, Dict, Any

import httpx
import uvicorn
from fastapi import FastAPI, HTTPException, status
from pydantic import BaseModel

from ..bootstrap import build_launcher, build_store
from ..core.config_manager import ConfigManager
from ..core.error_handling import ErrorHandler, ErrorContext
from ..core.exceptions import ChatEngineError
from ..core.logging import logger
from ..services.session_service import ChatSession, ChatSessionStore, Message, Sender
from .middleware import RequestLoggerMiddleware


class CreateChatRequest(BaseModel):
    title: Optional[str] = None
    model: Optional[str] = None


class RenameChatRequest(BaseModel):
    title: Optional[str] = None


class SendMessageRequest(BaseModel):
    text: str


class RawMessageRequest(BaseModel):
    text: str
    sender: str = "user"
    is_streaming: bool = False


class CurrentChatRequest(BaseModel):
    chat_id: Optional[str] = None


def _chat_payload(chat: ChatSession) -> Dict[str, Any]:
    return chat.to_dict()


def _message_payload(message: Optional[Message]) -> Optional[Dict[str, Any]]:
    return message.to_dict() if message else None


def create_app(config_manager: Optional[ConfigManager] = None,
               store: Optional[ChatSessionStore] = None,
               launcher=None) -> FastAPI:
    """
    HTTP surface over the session store.

    ``store`` and ``launcher`` can be injected (tests); otherwise they are
    built from ``config_manager`` on startup.
    """
    app = FastAPI(title="Native Llama")
    app.add_middleware(RequestLoggerMiddleware)
    app.state.config_manager = config_manager or ConfigManager()
    app.state.store = store
    app.state.launcher = launcher or build_launcher(app.state.config_manager)
    app.state.httpx_client = None

    @app.on_event("startup")
    async def startup_event():
        if app.state.store is None:
            app.state.httpx_client = httpx.AsyncClient()
            app.state.store = build_store(app.state.config_manager, app.state.httpx_client)
        logger.info("Native Llama API started", chats_count=len(app.state.store.chats))

    @app.on_event("shutdown")
    async def shutdown_event():
        if app.state.store is not None:
            await app.state.store.close()
        if app.state.httpx_client is not None:
            await app.state.httpx_client.aclose()

    def get_store() -> ChatSessionStore:
        return app.state.store

    def require_chat(chat_id: str) -> ChatSession:
        chat = get_store().get_chat(chat_id)
        if chat is None:
            raise ErrorHandler.to_http_exception(
                ErrorHandler.handle_chat_not_found(chat_id, ErrorContext(operation="api"))
            )
        return chat

    @app.get("/health")
    async def health_check():
        return {"status": "ok"}

    @app.get("/models")
    async def list_models():
        store = get_store()
        models = await store.fetch_available_models()
        return {
            "models": [model.to_dict() for model in models],
            "error": store.api_error,
        }

    @app.get("/state")
    async def get_state():
        return get_store().snapshot()

    @app.get("/chats")
    async def list_chats():
        return {"chats": [_chat_payload(chat) for chat in get_store().chats]}

    @app.post("/chats", status_code=status.HTTP_201_CREATED)
    async def create_chat(body: CreateChatRequest):
        try:
            chat_id = get_store().create_chat_session(body.title, body.model)
        except ChatEngineError as e:
            raise ErrorHandler.to_http_exception(e)
        return _chat_payload(require_chat(chat_id))

    @app.get("/chats/{chat_id}")
    async def get_chat(chat_id: str):
        return _chat_payload(require_chat(chat_id))

    @app.patch("/chats/{chat_id}")
    async def rename_chat(chat_id: str, body: RenameChatRequest):
        try:
            chat = get_store().rename_chat_session(chat_id, body.title)
        except ChatEngineError as e:
            raise ErrorHandler.to_http_exception(e)
        return _chat_payload(chat)

    @app.delete("/chats/{chat_id}")
    async def delete_chat(chat_id: str):
        return {"deleted": get_store().delete_chat_session(chat_id)}

    @app.post("/chats/{chat_id}/messages")
    async def send_message(chat_id: str, body: SendMessageRequest):
        text = body.text.strip()
        if not text:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={"error": {"message": "Message text is empty", "code": "invalid_argument"}}
            )
        try:
            reply = await get_store().send_message(chat_id, text)
        except ChatEngineError as e:
            raise ErrorHandler.to_http_exception(e)
        return {"reply": _message_payload(reply)}

    @app.post("/chats/{chat_id}/messages/raw", status_code=status.HTTP_201_CREATED)
    async def add_message(chat_id: str, body: RawMessageRequest):
        message = Message(text=body.text, sender=Sender.parse(body.sender), is_streaming=body.is_streaming)
        try:
            get_store().add_message(chat_id, message)
        except ChatEngineError as e:
            raise ErrorHandler.to_http_exception(e)
        return _message_payload(message)

    @app.put("/current-chat")
    async def set_current_chat(body: CurrentChatRequest):
        store = get_store()
        store.set_active_session(body.chat_id)
        current = store.current_chat
        return {
            "currentChatId": store.current_chat_id,
            "found": current is not None,
        }

    @app.get("/server/status")
    async def server_status():
        return {"running": await get_store().client.is_running()}

    @app.post("/server/start")
    async def start_server():
        return {"result": await app.state.launcher.start()}

    return app


def run():
    config_manager = ConfigManager()
    uvicorn.run(create_app(config_manager), host="127.0.0.1", port=int(config_manager.get_config().get("port", 8765)))


if __name__ == "__main__":
    run()
