"""
Chat Session Store Module

The ChatSessionStore owns every chat session and orchestrates a reply:

    send_message -> user message + streaming placeholder
                 -> OllamaClient.stream_chat (raw chunks)
                 -> LineBufferDecoder (complete lines)
                 -> StreamRecordParser (content deltas)
                 -> placeholder text += delta, ThroughputEstimator
                 -> finalize (exactly once) -> persistence

All mutations run on the event loop thread between two awaits, so they never
interleave. Message updates during a stream always re-read the store's
current state by chat id and message key; a chat deleted mid-stream is never
recreated.
"""

import asyncio
import time
import uuid
from contextlib import aclosing
from dataclasses import dataclass, replace
from typing import Callable, Dict, List, Optional, Tuple, Any

from ...core.config_manager import ConfigManager
from ...core.error_handling import ErrorHandler, ErrorContext
from ...core.exceptions import ChatEngineError, DecodeError, PersistenceError, TransportError
from ...core.logging import logger
from ...providers.ollama import ModelInfo
from ..chat import LineBufferDecoder, StreamRecordParser, ThroughputEstimator
from .models import ChatSession, Message, ERROR_PREFIX, DEFAULT_TITLE

Listener = Callable[["ChatSessionStore"], None]


class _ActiveStream:
    """Bookkeeping for the reply currently streaming into one chat."""

    def __init__(self, chat_id: str, reply_key: str, request_id: str):
        self.chat_id = chat_id
        self.reply_key = reply_key
        self.request_id = request_id
        self.task: Optional[asyncio.Task] = None
        self.aborted = False

    def abort(self):
        self.aborted = True
        if self.task is not None and not self.task.done():
            self.task.cancel()


@dataclass
class _StreamStats:
    chunks: int = 0
    deltas: int = 0
    skipped_lines: int = 0
    usage: Optional[Dict[str, Any]] = None


class ChatSessionStore:
    """
    Conversation state plus the streaming pipeline that fills assistant replies.

    Attributes:
        client: Inference server transport (``OllamaClient`` or a fake with the
            same ``list_models`` / ``stream_chat`` coroutines)
        persistence: ``ChatPersistence`` or None for a memory-only store
    """

    def __init__(self, client, persistence=None, config: Optional[ConfigManager] = None,
                 clock: Callable[[], float] = time.monotonic, hydrate: bool = True):
        self.client = client
        self.persistence = persistence
        self.clock = clock
        self.speed_update_interval = config.speed_update_interval if config else 0.5
        self.speed_debounce = config.speed_debounce if config else 0.2
        self.max_line_buffer_size = config.max_line_buffer_size if config else 1024 * 1024

        self._chats: List[ChatSession] = []
        self._current_chat_id: Optional[str] = None
        self._available_models: Tuple[ModelInfo, ...] = ()
        self._loading_models = False
        self._api_error: Optional[str] = None
        self._token_speed = 0

        self._listeners: List[Listener] = []
        self._inflight: Dict[str, _ActiveStream] = {}
        self._save_pending = False
        self._save_task: Optional[asyncio.Task] = None

        if persistence is not None and hydrate:
            state = persistence.load_or_empty()
            self._chats = list(state.chats)
            self._current_chat_id = state.current_chat_id

    # ------------------------------------------------------------------ state

    @property
    def chats(self) -> List[ChatSession]:
        """Sessions, most recent first."""
        return list(self._chats)

    @property
    def current_chat_id(self) -> Optional[str]:
        return self._current_chat_id

    @property
    def current_chat(self) -> Optional[ChatSession]:
        """Active session; None when unset or pointing at a deleted chat."""
        if self._current_chat_id is None:
            return None
        return self.get_chat(self._current_chat_id)

    @property
    def available_models(self) -> List[ModelInfo]:
        return list(self._available_models)

    @property
    def loading_models(self) -> bool:
        return self._loading_models

    @property
    def api_error(self) -> Optional[str]:
        return self._api_error

    @property
    def token_speed(self) -> int:
        return self._token_speed

    def get_chat(self, chat_id: str) -> Optional[ChatSession]:
        index = self._index_of(chat_id)
        return self._chats[index] if index is not None else None

    def get_message(self, chat_id: str, key: str) -> Optional[Message]:
        chat = self.get_chat(chat_id)
        return chat.find_message(key) if chat else None

    def is_streaming(self, chat_id: str) -> bool:
        return chat_id in self._inflight

    def snapshot(self) -> Dict[str, Any]:
        return {
            "currentChatId": self._current_chat_id,
            "loadingModels": self._loading_models,
            "apiError": self._api_error,
            "tokenSpeed": self._token_speed,
            "streamingChats": sorted(self._inflight),
        }

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register an observer called after every change. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ------------------------------------------------------------- operations

    async def fetch_available_models(self) -> List[ModelInfo]:
        """
        Refresh the model catalog.

        Transport failures are stored in ``api_error`` instead of being
        raised; ``loading_models`` is cleared in every case.
        """
        self._loading_models = True
        self._api_error = None
        self._changed(persist=False)
        try:
            models = await self.client.list_models()
            self._available_models = tuple(models)
            logger.info("Model catalog fetched", models_count=len(self._available_models))
        except TransportError as e:
            self._api_error = e.message
            logger.warning(f"Failed to fetch models: {e.message}", error_code=e.error_code)
        finally:
            self._loading_models = False
            self._changed(persist=False)
        return list(self._available_models)

    def create_chat_session(self, title: Optional[str], model: Optional[str]) -> str:
        """
        Create a session bound to ``model``, put it first and make it active.

        Raises:
            InvalidArgumentError: ``model`` is empty
        """
        if not model:
            raise ErrorHandler.handle_model_not_specified(ErrorContext(operation="create_chat_session"))

        chat = ChatSession.new(title, model)
        self._chats.insert(0, chat)
        self._current_chat_id = chat.id
        logger.info("Chat created", chat_id=chat.id, model_id=model)
        self._changed()
        return chat.id

    def rename_chat_session(self, chat_id: str, title: Optional[str]) -> ChatSession:
        index = self._index_of(chat_id)
        if index is None:
            raise ErrorHandler.handle_chat_not_found(chat_id, ErrorContext(operation="rename_chat_session"))
        self._chats[index] = replace(self._chats[index], title=title or DEFAULT_TITLE)
        self._changed()
        return self._chats[index]

    def add_message(self, chat_id: str, message: Message) -> None:
        """
        Append an already built message.

        Raises:
            NotFoundError: unknown chat
            InvalidArgumentError: duplicate message key, or a second
                streaming message in the chat
        """
        context = ErrorContext(chat_id=chat_id, operation="add_message")
        chat = self.get_chat(chat_id)
        if chat is None:
            raise ErrorHandler.handle_chat_not_found(chat_id, context)
        if chat.find_message(message.key) is not None:
            raise ErrorHandler.handle_invalid_argument(f"Message key already used: {message.key}", context)
        if message.is_streaming and (chat.streaming_message is not None or chat_id in self._inflight):
            raise ErrorHandler.handle_invalid_argument("Chat already has a streaming message", context)
        self._update_chat(chat_id, lambda c: c.with_message(message))

    def delete_chat_session(self, chat_id: str) -> bool:
        """
        Remove a session. Aborts its in-flight stream and clears the active
        pointer when it referenced the session.

        Returns:
            False when the chat did not exist
        """
        active = self._inflight.get(chat_id)
        if active is not None:
            logger.info("Aborting stream of deleted chat", chat_id=chat_id, request_id=active.request_id)
            active.abort()

        index = self._index_of(chat_id)
        if index is None:
            return False

        del self._chats[index]
        if self._current_chat_id == chat_id:
            self._current_chat_id = None
        logger.info("Chat deleted", chat_id=chat_id)
        self._changed()
        return True

    def set_active_session(self, chat_id: Optional[str]) -> None:
        """Set the active pointer. No existence check."""
        self._current_chat_id = chat_id
        self._changed()

    async def send_message(self, chat_id: str, text: str) -> Optional[Message]:
        """
        Send ``text`` to the chat's model and stream the reply into a
        placeholder assistant message.

        Streaming failures never propagate: the placeholder text becomes
        ``"Error: <description>"``. The placeholder is finalized
        (``is_streaming=False``) exactly once and the token speed is reset
        to 0, whatever happened.

        Returns:
            The finalized assistant message, or None if the chat was deleted
            while the reply was streaming.

        Raises:
            NotFoundError: unknown chat
            StreamInProgressError: a reply is already streaming into the chat
        """
        context = ErrorContext(chat_id=chat_id, operation="send_message")
        chat = self.get_chat(chat_id)
        if chat is None:
            raise ErrorHandler.handle_chat_not_found(chat_id, context)
        if chat_id in self._inflight:
            raise ErrorHandler.handle_stream_in_progress(chat_id, context)

        request_id = uuid.uuid4().hex[:12]
        user_message = Message.user(text)
        reply = Message.placeholder()
        active = _ActiveStream(chat_id, reply.key, request_id)
        self._inflight[chat_id] = active

        self._update_chat(chat_id, lambda c: c.with_message(user_message))
        self._update_chat(chat_id, lambda c: c.with_message(reply))

        # история до отправки + новый текст ровно один раз в конце
        wire_messages = [m.to_wire() for m in chat.messages]
        wire_messages.append({"role": "user", "content": text})

        estimator = ThroughputEstimator(
            self._set_token_speed,
            update_interval=self.speed_update_interval,
            debounce=self.speed_debounce,
            clock=self.clock
        )
        estimator.start()

        try:
            active.task = asyncio.create_task(
                self._consume_stream(chat, wire_messages, reply.key, estimator, request_id)
            )
            await active.task
        except asyncio.CancelledError:
            if not active.aborted:
                raise
            logger.info("Stream aborted", chat_id=chat_id, request_id=request_id)
        except Exception as e:
            description = e.message if isinstance(e, ChatEngineError) else (str(e) or type(e).__name__)
            logger.warning(f"Reply failed: {description}", chat_id=chat_id, request_id=request_id,
                           error_type=type(e).__name__)
            self._update_message(chat_id, reply.key, lambda m: m.with_text(f"{ERROR_PREFIX}{description}"))
        finally:
            estimator.stop()
            if self._inflight.get(chat_id) is active:
                del self._inflight[chat_id]
            self._update_message(chat_id, reply.key, lambda m: m.finalized())

        return self.get_message(chat_id, reply.key)

    async def close(self):
        """Abort every in-flight stream (application shutdown)."""
        streams = list(self._inflight.values())
        for active in streams:
            active.abort()
        tasks = [active.task for active in streams if active.task is not None]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        await self.flush_persistence()
        logger.info("Session store closed", aborted_streams=len(streams))

    async def flush_persistence(self):
        """Wait until the latest state has been written to storage."""
        if self._save_task is not None:
            await self._save_task

    # --------------------------------------------------------------- streaming

    async def _consume_stream(self, chat: ChatSession, wire_messages: List[Dict[str, str]],
                              reply_key: str, estimator: ThroughputEstimator, request_id: str):
        decoder = LineBufferDecoder(max_buffer_size=self.max_line_buffer_size)
        parser = StreamRecordParser()
        stats = _StreamStats()
        context = ErrorContext(chat_id=chat.id, model_id=chat.model, request_id=request_id)

        with logger.request_context(
            operation="Chat Stream",
            request_id=request_id,
            chat_id=chat.id,
            model_id=chat.model,
            messages_count=len(wire_messages),
            expected_errors=(ChatEngineError,)
        ):
            stream = self.client.stream_chat(chat.model, wire_messages, request_id=request_id)
            async with aclosing(stream):
                async for chunk in stream:
                    stats.chunks += 1
                    for line in decoder.feed(chunk):
                        self._consume_line(line, parser, chat.id, reply_key, estimator, stats, context)

            tail = decoder.flush()
            if tail is not None:
                self._consume_line(tail, parser, chat.id, reply_key, estimator, stats, context)

            logger.info("Stream completed", request_id=request_id, chat_id=chat.id,
                        chunks=stats.chunks, deltas=stats.deltas,
                        skipped_lines=stats.skipped_lines, usage=stats.usage)

    def _consume_line(self, line: str, parser: StreamRecordParser, chat_id: str, reply_key: str,
                      estimator: ThroughputEstimator, stats: _StreamStats, context: ErrorContext):
        try:
            record = parser.parse(line)
        except DecodeError as e:
            # одна битая строка не должна обрывать ответ
            stats.skipped_lines += 1
            logger.warning(f"Skipping malformed stream line: {e.message}", chat_id=chat_id,
                           request_id=context.request_id, line_preview=line[:200])
            return

        if record.error is not None:
            raise ErrorHandler.handle_server_stream_error(record.error, context)

        if record.has_content:
            delta = record.content
            stats.deltas += 1
            self._update_message(chat_id, reply_key, lambda m: m.with_text(m.text + delta))
            estimator.record(record.token_estimate)

        if record.is_done:
            stats.usage = record.usage

    def _set_token_speed(self, speed: int):
        if speed != self._token_speed:
            self._token_speed = speed
            self._changed(persist=False)

    # ---------------------------------------------------------------- helpers

    def _index_of(self, chat_id: str) -> Optional[int]:
        for index, chat in enumerate(self._chats):
            if chat.id == chat_id:
                return index
        return None

    def _update_chat(self, chat_id: str, update: Callable[[ChatSession], ChatSession]) -> bool:
        """Read-modify-write of the chat's current state. No-op if it is gone."""
        index = self._index_of(chat_id)
        if index is None:
            return False
        self._chats[index] = update(self._chats[index])
        self._changed()
        return True

    def _update_message(self, chat_id: str, key: str, update: Callable[[Message], Message]) -> bool:
        """Same as ``_update_chat`` for the message with identity ``key``."""
        index = self._index_of(chat_id)
        if index is None:
            return False
        chat = self._chats[index]
        if chat.find_message(key) is None:
            return False
        self._chats[index] = chat.with_messages(tuple(
            update(m) if m.key == key else m for m in chat.messages
        ))
        self._changed()
        return True

    def _changed(self, persist: bool = True):
        if persist and self.persistence is not None:
            self._schedule_save()

        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception as e:
                logger.error(f"Store listener failed: {e}", listener=repr(listener))

    def _schedule_save(self):
        """
        Persist the current state.

        Inside an event loop the write runs in a worker thread. Changes made
        while a write is in progress are coalesced into one more write of the
        latest state, so the last write always wins.
        """
        self._save_pending = True
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            # без event loop пишем синхронно
            self._save_pending = False
            self._save(list(self._chats), self._current_chat_id)
            return

        if self._save_task is None or self._save_task.done():
            self._save_task = asyncio.create_task(self._save_worker())

    async def _save_worker(self):
        while self._save_pending:
            self._save_pending = False
            await asyncio.to_thread(self._save, list(self._chats), self._current_chat_id)

    def _save(self, chats: List[ChatSession], current_chat_id: Optional[str]):
        try:
            self.persistence.save(chats, current_chat_id)
        except PersistenceError as e:
            logger.warning(f"Chat history not saved, keeping in-memory state: {e.message}")
