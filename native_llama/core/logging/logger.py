"""
Ultra-simple universal Logger for debugging and diagnostics.

Keyword arguments passed to the logging methods become the ``extra`` of the
underlying record, so structured context travels with every message.
"""

import logging
import time
import json
from typing import Any
from contextlib import contextmanager

from .config import setup_logging


class Logger:
    """
    Ultra-simple Logger for effective debugging and diagnostics.

    Focus on simplicity while maintaining comprehensive debug capabilities
    when LOG_LEVEL=DEBUG is enabled.
    """

    def __init__(self):
        self._logger = setup_logging()

    def is_debug_enabled(self) -> bool:
        return self._logger.isEnabledFor(logging.DEBUG)

    def info(self, message: str, **kwargs):
        self._logger.info(message, extra=kwargs or None)

    def debug(self, message: str, **kwargs):
        self._logger.debug(message, extra=kwargs or None)

    def warning(self, message: str, exc_info: bool = False, **kwargs):
        self._logger.warning(message, extra=kwargs or None, exc_info=exc_info)

    def error(self, message: str, exc_info: bool = True, **kwargs):
        """Log an error message (with traceback when one is active)."""
        self._logger.error(message, extra=kwargs or None, exc_info=exc_info)

    def request(self, operation: str, request_id: str, **kwargs):
        """Log an outgoing request to the inference server."""
        message_parts = [f"Request: {operation}"]
        if 'model_id' in kwargs:
            message_parts.append(f"model={kwargs['model_id']}")
        if 'chat_id' in kwargs:
            message_parts.append(f"chat={kwargs['chat_id']}")

        message = " | ".join(message_parts)
        self.info(message, request_id=request_id, **kwargs)

    def debug_data(self, title: str, data: Any, request_id: str, **kwargs):
        """Log debug data with full details when LOG_LEVEL=DEBUG."""
        if not self.is_debug_enabled():
            return

        if isinstance(data, (dict, list)):
            data_str = json.dumps(data, indent=2, ensure_ascii=False, default=str)
        else:
            data_str = str(data)

        message = f"DEBUG: {title}"
        if 'component' in kwargs:
            message += f" | component={kwargs['component']}"
        if 'data_flow' in kwargs:
            message += f" | flow={kwargs['data_flow']}"

        self.debug(f"{message}\n{data_str}", request_id=request_id, **kwargs)

    def performance(self, operation: str, start_time: float, request_id: str, **kwargs):
        duration_ms = int((time.time() - start_time) * 1000)
        message = " | ".join([f"Performance: {operation}", f"duration={duration_ms}ms"])
        self.info(message, request_id=request_id, duration_ms=duration_ms, **kwargs)

    @contextmanager
    def request_context(self, operation: str, request_id: str, expected_errors: tuple = (), **kwargs):
        """
        Simple context manager for request-scoped logging.

        Automatically logs request start, completion, and handles errors.
        Exceptions listed in ``expected_errors`` are re-raised without an
        error record: their handler logs them.
        """
        start_time = time.time()
        self.request(operation=operation, request_id=request_id, **kwargs)

        try:
            yield
        except expected_errors:
            raise
        except Exception as e:
            self.error(f"{operation} failed: {e}", request_id=request_id, **kwargs)
            raise
        finally:
            duration_ms = int((time.time() - start_time) * 1000)
            self.info(
                f"Completed: {operation} | duration={duration_ms}ms",
                request_id=request_id,
                **kwargs
            )
