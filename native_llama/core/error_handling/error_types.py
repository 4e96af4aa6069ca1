"""
Error Types and Context Definitions

Standardized error types and context information for consistent error
handling across the chat engine.
"""

from enum import Enum
from typing import Dict, Any, Optional
from fastapi import status


class ErrorType(Enum):
    """Enumeration of standard error types in the system."""

    # Validation Errors
    MODEL_NOT_SPECIFIED = ("model_not_specified", status.HTTP_400_BAD_REQUEST, "No model selected")
    INVALID_ARGUMENT = ("invalid_argument", status.HTTP_400_BAD_REQUEST, "Invalid argument: {error_details}")
    CHAT_NOT_FOUND = ("chat_not_found", status.HTTP_404_NOT_FOUND, "Chat not found: {chat_id}")
    STREAM_IN_PROGRESS = ("stream_in_progress", status.HTTP_409_CONFLICT, "A reply is already streaming in chat {chat_id}")

    # Inference server errors (dynamic status codes)
    SERVER_HTTP_ERROR = ("server_http_error", None, "Inference server error: {error_details}")
    SERVER_NETWORK_ERROR = ("server_network_error", status.HTTP_503_SERVICE_UNAVAILABLE, "Could not reach inference server: {error_details}")
    SERVER_STREAM_ERROR = ("server_stream_error", status.HTTP_502_BAD_GATEWAY, "Inference server stream error: {error_details}")
    INVALID_SERVER_RESPONSE = ("invalid_server_response", status.HTTP_502_BAD_GATEWAY, "Invalid response from inference server: {error_details}")

    # Storage errors
    STORAGE_READ_ERROR = ("storage_read_error", status.HTTP_500_INTERNAL_SERVER_ERROR, "Could not read chat history: {error_details}")
    STORAGE_WRITE_ERROR = ("storage_write_error", status.HTTP_500_INTERNAL_SERVER_ERROR, "Could not write chat history: {error_details}")

    INTERNAL_ERROR = ("internal_error", status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal error: {error_details}")

    def __init__(self, code: str, status_code: Optional[int], message_template: str):
        self.code = code
        self.status_code = status_code
        self.message_template = message_template

    def format_message(self, **kwargs) -> str:
        """Format the error message with provided parameters."""
        try:
            return self.message_template.format(**kwargs)
        except KeyError:
            return self.message_template

    def create_error_detail(self, **kwargs) -> Dict[str, Any]:
        """Create standardized error detail dictionary."""
        return {
            "error": {
                "message": self.format_message(**kwargs),
                "code": self.code
            }
        }


class ErrorContext:
    """Context information for error handling."""

    def __init__(
        self,
        chat_id: Optional[str] = None,
        model_id: Optional[str] = None,
        request_id: Optional[str] = None,
        operation: Optional[str] = None,
        **additional_context
    ):
        self.chat_id = chat_id
        self.model_id = model_id
        self.request_id = request_id
        self.operation = operation
        self.additional_context = additional_context

    def to_log_extra(self) -> Dict[str, Any]:
        """Convert context to logging extra dictionary."""
        extra = {
            "log_type": "error"
        }

        if self.chat_id:
            extra["chat_id"] = self.chat_id
        if self.model_id:
            extra["model_id"] = self.model_id
        if self.request_id:
            extra["request_id"] = self.request_id
        if self.operation:
            extra["operation"] = self.operation

        extra.update(self.additional_context)
        return extra

    def format_kwargs(self) -> Dict[str, Any]:
        kwargs = {
            "chat_id": self.chat_id,
            "model_id": self.model_id,
            "request_id": self.request_id,
            "operation": self.operation,
        }
        kwargs.update(self.additional_context)
        return kwargs
