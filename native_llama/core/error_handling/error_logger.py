"""
Error Logging Utility

Centralized error logging for consistent error reports across the engine.
"""

from typing import Dict, Any, Optional
import json
import re

from .error_types import ErrorType, ErrorContext
from ..logging import logger


class ErrorLogger:
    """Единый логгер ошибок, использующий общую систему."""

    _unicode_pattern = re.compile(r'\\u([0-9a-fA-F]{4})')

    @staticmethod
    def _decode_unicode_escapes(text):
        """
        Decode Unicode escape sequences in error messages.

        Args:
            text (str): Text that may contain Unicode escape sequences

        Returns:
            str: Text with Unicode escape sequences decoded to actual characters
        """
        if not text:
            return text

        try:
            if '\\u' in text and text.startswith('{') and text.endswith('}'):
                decoded = json.loads(text)
                if isinstance(decoded, dict):
                    return json.dumps(decoded, ensure_ascii=False)
        except (json.JSONDecodeError, ValueError):
            pass

        def replace_unicode(match):
            try:
                return chr(int(match.group(1), 16))
            except ValueError:
                return match.group(0)

        return ErrorLogger._unicode_pattern.sub(replace_unicode, text)

    @staticmethod
    def log_error(
        error_type: ErrorType,
        context: ErrorContext,
        message: Optional[str] = None,
        original_exception: Optional[Exception] = None,
        additional_data: Optional[Dict[str, Any]] = None,
        level: str = "error"
    ):
        """Логировать ошибку с использованием единой системы."""
        log_extra = context.to_log_extra()
        log_extra["error_code"] = error_type.code
        log_extra["http_status_code"] = error_type.status_code

        if additional_data:
            log_extra.update(additional_data)

        log_message = message or error_type.format_message(**context.format_kwargs())
        log_message = ErrorLogger._decode_unicode_escapes(log_message)

        if original_exception:
            log_extra["original_exception"] = str(original_exception)
            log_extra["original_exception_type"] = type(original_exception).__name__

        if level == "warning":
            logger.warning(log_message, exc_info=original_exception is not None, **log_extra)
        else:
            logger.error(log_message, exc_info=original_exception is not None, **log_extra)

    @staticmethod
    def log_server_error(
        error_details: str,
        status_code: int,
        context: ErrorContext,
        original_exception: Optional[Exception] = None
    ):
        """Log an error status returned by the inference server."""
        decoded_error_details = ErrorLogger._decode_unicode_escapes(error_details)

        log_extra = context.to_log_extra()
        log_extra.update({
            "server_error_details": decoded_error_details,
            "server_status_code": status_code,
            "error_code": "server_error",
        })

        if original_exception:
            log_extra["original_exception_type"] = type(original_exception).__name__

        logger.error(
            f"Inference server returned error {status_code}: {decoded_error_details}",
            exc_info=original_exception is not None,
            **log_extra
        )
