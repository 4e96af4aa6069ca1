"""
Main Error Handler

Creates the engine's domain exceptions with proper logging, and maps them to
FastAPI HTTPExceptions for the HTTP surface.
"""

import json
from typing import Optional

import httpx
from fastapi import HTTPException, status

from .error_types import ErrorType, ErrorContext
from .error_logger import ErrorLogger
from ..exceptions import (
    ChatEngineError,
    InvalidArgumentError,
    NotFoundError,
    StreamInProgressError,
    ServerHTTPError,
    ServerNetworkError,
    ServerStreamError,
    InvalidServerResponseError,
    PersistenceError,
)


class ErrorHandler:
    """Centralized error handling utility."""

    @staticmethod
    def handle_model_not_specified(context: ErrorContext) -> InvalidArgumentError:
        """Handle model not specified error."""
        error_type = ErrorType.MODEL_NOT_SPECIFIED
        ErrorLogger.log_error(error_type, context, level="warning")
        return InvalidArgumentError(
            error_type.format_message(),
            error_code=error_type.code,
            status_code=error_type.status_code
        )

    @staticmethod
    def handle_invalid_argument(error_details: str, context: ErrorContext) -> InvalidArgumentError:
        error_type = ErrorType.INVALID_ARGUMENT
        message = error_type.format_message(error_details=error_details)
        ErrorLogger.log_error(error_type, context, message=message, level="warning")
        return InvalidArgumentError(message, error_code=error_type.code, status_code=error_type.status_code)

    @staticmethod
    def handle_chat_not_found(chat_id: str, context: ErrorContext) -> NotFoundError:
        """Handle unknown chat identifier."""
        context.chat_id = chat_id
        error_type = ErrorType.CHAT_NOT_FOUND
        ErrorLogger.log_error(error_type, context, level="warning")
        return NotFoundError(
            error_type.format_message(chat_id=chat_id),
            error_code=error_type.code,
            status_code=error_type.status_code
        )

    @staticmethod
    def handle_stream_in_progress(chat_id: str, context: ErrorContext) -> StreamInProgressError:
        context.chat_id = chat_id
        error_type = ErrorType.STREAM_IN_PROGRESS
        ErrorLogger.log_error(error_type, context, level="warning")
        return StreamInProgressError(
            error_type.format_message(chat_id=chat_id),
            error_code=error_type.code,
            status_code=error_type.status_code
        )

    @staticmethod
    def handle_server_http_error(
        original_exception: httpx.HTTPStatusError,
        context: ErrorContext,
        response_text: Optional[str] = None
    ) -> ServerHTTPError:
        """Handle non-2xx responses from the inference server."""
        response = original_exception.response
        status_code = response.status_code

        if response_text is None:
            try:
                response_text = response.text
            except httpx.ResponseNotRead:
                response_text = ""

        # Ollama отдает ошибки как {"error": "..."}
        error_details = response_text or response.reason_phrase or f"HTTP {status_code}"
        try:
            error_json = json.loads(response_text) if response_text else None
            if isinstance(error_json, dict) and isinstance(error_json.get("error"), str):
                error_details = error_json["error"]
        except json.JSONDecodeError:
            pass

        ErrorLogger.log_server_error(
            error_details=error_details,
            status_code=status_code,
            context=context,
            original_exception=original_exception
        )

        return ServerHTTPError(
            ErrorType.SERVER_HTTP_ERROR.format_message(error_details=error_details),
            status_code=status_code,
            error_code=f"server_http_error_{status_code}",
            original_exception=original_exception,
            response_text=response_text
        )

    @staticmethod
    def handle_server_network_error(
        original_exception: httpx.RequestError,
        context: ErrorContext
    ) -> ServerNetworkError:
        """Handle connection/read errors talking to the inference server."""
        error_type = ErrorType.SERVER_NETWORK_ERROR
        details = str(original_exception) or type(original_exception).__name__
        message = error_type.format_message(error_details=details)
        ErrorLogger.log_error(error_type, context, message=message, original_exception=original_exception)
        return ServerNetworkError(
            message,
            error_code=error_type.code,
            status_code=error_type.status_code,
            original_exception=original_exception
        )

    @staticmethod
    def handle_server_stream_error(error_details: str, context: ErrorContext) -> ServerStreamError:
        """Handle an error record sent by the server inside an open stream."""
        error_type = ErrorType.SERVER_STREAM_ERROR
        message = error_type.format_message(error_details=error_details)
        ErrorLogger.log_error(error_type, context, message=message)
        return ServerStreamError(message, error_code=error_type.code, status_code=error_type.status_code)

    @staticmethod
    def handle_invalid_server_response(
        error_details: str,
        context: ErrorContext,
        original_exception: Optional[Exception] = None
    ) -> InvalidServerResponseError:
        error_type = ErrorType.INVALID_SERVER_RESPONSE
        message = error_type.format_message(error_details=error_details)
        ErrorLogger.log_error(error_type, context, message=message, original_exception=original_exception)
        return InvalidServerResponseError(
            message,
            error_code=error_type.code,
            status_code=error_type.status_code,
            original_exception=original_exception
        )

    @staticmethod
    def handle_storage_error(
        operation: str,
        context: ErrorContext,
        original_exception: Exception
    ) -> PersistenceError:
        """Handle storage read/write errors."""
        error_type = ErrorType.STORAGE_READ_ERROR if operation == "read" else ErrorType.STORAGE_WRITE_ERROR
        message = error_type.format_message(error_details=str(original_exception))
        ErrorLogger.log_error(error_type, context, message=message, original_exception=original_exception)
        return PersistenceError(
            message,
            error_code=error_type.code,
            status_code=error_type.status_code,
            original_exception=original_exception
        )

    @staticmethod
    def to_http_exception(error: Exception) -> HTTPException:
        """Map an engine error to the HTTPException sent to API clients."""
        if isinstance(error, ChatEngineError):
            return HTTPException(
                status_code=error.status_code,
                detail={"error": {"message": error.message, "code": error.error_code}}
            )

        error_type = ErrorType.INTERNAL_ERROR
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=error_type.create_error_detail(error_details=str(error))
        )
