from typing import Optional

from fastapi import status


class ChatEngineError(Exception):
    """Base class for every error raised by the chat engine."""

    default_code = "chat_engine_error"
    default_status = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, error_code: Optional[str] = None, status_code: Optional[int] = None,
                 original_exception: Optional[Exception] = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.default_code
        self.status_code = status_code or self.default_status
        self.original_exception = original_exception


class ValidationError(ChatEngineError):
    """Invalid arguments to a session-store operation. Interrupts the caller."""

    default_code = "validation_error"
    default_status = status.HTTP_400_BAD_REQUEST


class InvalidArgumentError(ValidationError):
    default_code = "invalid_argument"


class NotFoundError(ValidationError):
    default_code = "not_found"
    default_status = status.HTTP_404_NOT_FOUND


class StreamInProgressError(ValidationError):
    """A reply is already streaming into this chat."""

    default_code = "stream_in_progress"
    default_status = status.HTTP_409_CONFLICT


class TransportError(ChatEngineError):
    """Network or HTTP failure reaching the inference server."""

    default_code = "transport_error"
    default_status = status.HTTP_502_BAD_GATEWAY


class ServerHTTPError(TransportError):
    """Custom exception for non-2xx responses from the inference server."""

    default_code = "server_http_error"

    def __init__(self, message: str, status_code: Optional[int] = None, error_code: Optional[str] = None,
                 original_exception: Optional[Exception] = None, response_text: Optional[str] = None):
        super().__init__(message, error_code=error_code, status_code=status_code,
                         original_exception=original_exception)
        self.response_text = response_text


class ServerNetworkError(TransportError):
    """Custom exception for connection errors to the inference server."""

    default_code = "server_network_error"
    default_status = status.HTTP_503_SERVICE_UNAVAILABLE


class ServerStreamError(TransportError):
    """The server reported an error inside an open stream."""

    default_code = "server_stream_error"


class InvalidServerResponseError(TransportError):
    default_code = "invalid_server_response"


class DecodeError(ChatEngineError):
    """A single stream line could not be parsed. Logged and skipped."""

    default_code = "decode_error"

    def __init__(self, message: str, line: str = "", original_exception: Optional[Exception] = None):
        super().__init__(message, original_exception=original_exception)
        self.line = line


class PersistenceError(ChatEngineError):
    """Storage read/write failure."""

    default_code = "persistence_error"
