"""
Tests for the centralized error handling system.

Verifies that ErrorHandler creates the engine's domain exceptions with the
expected codes, and that they map to the HTTP error body used by the API.
"""

import pytest
from fastapi import HTTPException
import httpx

from native_llama.core.error_handling import ErrorHandler, ErrorType, ErrorContext, ErrorLogger
from native_llama.core.exceptions import (
    InvalidArgumentError,
    NotFoundError,
    StreamInProgressError,
    ServerHTTPError,
    ServerNetworkError,
    ServerStreamError,
    PersistenceError,
    TransportError,
    ValidationError,
)


def make_status_error(status_code: int, body: str) -> httpx.HTTPStatusError:
    request = httpx.Request("POST", "http://localhost:11434/api/chat")
    response = httpx.Response(status_code, text=body, request=request)
    return httpx.HTTPStatusError(f"HTTP {status_code}", request=request, response=response)


class TestErrorTypes:
    """Test error type definitions and formatting."""

    def test_model_not_specified_error(self):
        error_type = ErrorType.MODEL_NOT_SPECIFIED
        assert error_type.code == "model_not_specified"
        assert error_type.status_code == 400
        assert error_type.format_message() == "No model selected"

    def test_chat_not_found_error(self):
        message = ErrorType.CHAT_NOT_FOUND.format_message(chat_id="c-1")
        assert message == "Chat not found: c-1"

    def test_missing_template_parameter_returns_template(self):
        assert ErrorType.CHAT_NOT_FOUND.format_message() == "Chat not found: {chat_id}"

    def test_error_detail_creation(self):
        error_detail = ErrorType.STREAM_IN_PROGRESS.create_error_detail(chat_id="c-1")

        assert error_detail["error"]["code"] == "stream_in_progress"
        assert "c-1" in error_detail["error"]["message"]


class TestErrorContext:
    """Test error context creation and logging."""

    def test_minimal_context(self):
        context = ErrorContext()
        assert context.chat_id is None
        assert context.request_id is None

        log_extra = context.to_log_extra()
        assert log_extra == {"log_type": "error"}

    def test_full_context(self):
        context = ErrorContext(
            chat_id="c-1",
            model_id="llama3",
            request_id="req-123",
            operation="send_message",
            storage_key="chat-storage"
        )

        log_extra = context.to_log_extra()
        assert log_extra["chat_id"] == "c-1"
        assert log_extra["model_id"] == "llama3"
        assert log_extra["request_id"] == "req-123"
        assert log_extra["operation"] == "send_message"
        assert log_extra["storage_key"] == "chat-storage"

    def test_format_kwargs_include_additional_context(self):
        context = ErrorContext(chat_id="c-1", error_details="boom")
        kwargs = context.format_kwargs()
        assert kwargs["chat_id"] == "c-1"
        assert kwargs["error_details"] == "boom"


class TestErrorHandler:
    """Test main error handler functionality."""

    def test_handle_model_not_specified(self):
        exception = ErrorHandler.handle_model_not_specified(ErrorContext(operation="send_message"))

        assert isinstance(exception, InvalidArgumentError)
        assert isinstance(exception, ValidationError)
        assert exception.status_code == 400
        assert exception.error_code == "model_not_specified"

    def test_handle_invalid_argument(self):
        exception = ErrorHandler.handle_invalid_argument("duplicate message key 'k1'", ErrorContext())

        assert isinstance(exception, InvalidArgumentError)
        assert exception.message == "Invalid argument: duplicate message key 'k1'"

    def test_handle_chat_not_found(self):
        context = ErrorContext(operation="send_message")
        exception = ErrorHandler.handle_chat_not_found("c-404", context)

        assert isinstance(exception, NotFoundError)
        assert exception.status_code == 404
        assert exception.error_code == "chat_not_found"
        assert "c-404" in exception.message
        assert context.chat_id == "c-404"

    def test_handle_stream_in_progress(self):
        exception = ErrorHandler.handle_stream_in_progress("c-1", ErrorContext())

        assert isinstance(exception, StreamInProgressError)
        assert exception.status_code == 409

    def test_handle_server_http_error_with_ollama_body(self):
        error = make_status_error(404, '{"error":"model \\"m9\\" not found, try pulling it first"}')
        exception = ErrorHandler.handle_server_http_error(error, ErrorContext(model_id="m9"))

        assert isinstance(exception, ServerHTTPError)
        assert isinstance(exception, TransportError)
        assert exception.status_code == 404
        assert exception.error_code == "server_http_error_404"
        assert exception.message == 'Inference server error: model "m9" not found, try pulling it first'
        assert exception.original_exception is error

    def test_handle_server_http_error_plain_text_body(self):
        error = make_status_error(500, "upstream exploded")
        exception = ErrorHandler.handle_server_http_error(error, ErrorContext(), response_text="upstream exploded")

        assert exception.message == "Inference server error: upstream exploded"
        assert exception.response_text == "upstream exploded"

    def test_handle_server_network_error(self):
        request = httpx.Request("GET", "http://localhost:11434/api/tags")
        error = httpx.ConnectError("Connection refused", request=request)
        exception = ErrorHandler.handle_server_network_error(error, ErrorContext())

        assert isinstance(exception, ServerNetworkError)
        assert exception.status_code == 503
        assert "Connection refused" in exception.message

    def test_handle_server_stream_error(self):
        exception = ErrorHandler.handle_server_stream_error("out of memory", ErrorContext())

        assert isinstance(exception, ServerStreamError)
        assert exception.message == "Inference server stream error: out of memory"

    @pytest.mark.parametrize("operation, code", [
        ("read", "storage_read_error"),
        ("write", "storage_write_error"),
    ])
    def test_handle_storage_error(self, operation, code):
        exception = ErrorHandler.handle_storage_error(operation, ErrorContext(), OSError("disk full"))

        assert isinstance(exception, PersistenceError)
        assert exception.error_code == code
        assert "disk full" in exception.message


class TestHttpMapping:
    def test_engine_error_maps_to_its_status(self):
        error = ErrorHandler.handle_chat_not_found("c-1", ErrorContext())
        http_exception = ErrorHandler.to_http_exception(error)

        assert isinstance(http_exception, HTTPException)
        assert http_exception.status_code == 404
        assert http_exception.detail == {"error": {"message": "Chat not found: c-1", "code": "chat_not_found"}}

    def test_unexpected_error_maps_to_500(self):
        http_exception = ErrorHandler.to_http_exception(RuntimeError("boom"))

        assert http_exception.status_code == 500
        assert http_exception.detail["error"]["code"] == "internal_error"


class TestErrorLogger:
    def test_unicode_escapes_are_decoded(self):
        assert ErrorLogger._decode_unicode_escapes("\\u041e\\u0448\\u0438\\u0431\\u043a\\u0430") == "Ошибка"

    def test_json_body_is_rendered_readable(self):
        decoded = ErrorLogger._decode_unicode_escapes('{"error": "\\u043d\\u0435\\u0442"}')
        assert decoded == '{"error": "нет"}'

    def test_empty_text(self):
        assert ErrorLogger._decode_unicode_escapes("") == ""
