import json
from dataclasses import dataclass
from typing import Optional, Dict, Any

from ...core.exceptions import DecodeError

CHARS_PER_TOKEN = 4


@dataclass(frozen=True)
class StreamRecord:
    """
    One parsed line of the ``/api/chat`` stream.

    Attributes:
        raw: Исходная строка
        data: Распарсенный JSON-объект
    """
    raw: str
    data: Dict[str, Any]

    @property
    def content(self) -> str:
        """Incremental text carried by ``message.content`` (empty if absent)."""
        message = self.data.get("message")
        if not isinstance(message, dict):
            return ""
        content = message.get("content")
        return content if isinstance(content, str) else ""

    @property
    def has_content(self) -> bool:
        return bool(self.content)

    @property
    def is_done(self) -> bool:
        return self.data.get("done") is True

    @property
    def error(self) -> Optional[str]:
        """Error reported by the server inside the stream, if any."""
        error = self.data.get("error")
        if error is None:
            return None
        return error if isinstance(error, str) else json.dumps(error, ensure_ascii=False)

    @property
    def token_estimate(self) -> float:
        """Approximate token count of the delta (4 chars ~ 1 token)."""
        return len(self.content) / CHARS_PER_TOKEN

    @property
    def usage(self) -> Optional[Dict[str, Any]]:
        if not self.is_done or "eval_count" not in self.data:
            return None
        return {
            "prompt_tokens": self.data.get("prompt_eval_count", 0),
            "completion_tokens": self.data.get("eval_count", 0),
            "total_duration_ns": self.data.get("total_duration"),
        }


class StreamRecordParser:
    """Parses complete NDJSON lines into ``StreamRecord`` objects."""

    def parse(self, line: str) -> StreamRecord:
        """
        Raises:
            DecodeError: line is not a JSON object. The caller skips the line
                and keeps consuming the stream.
        """
        try:
            data = json.loads(line)
        except json.JSONDecodeError as e:
            raise DecodeError(f"JSON parse error: {e}", line=line, original_exception=e) from e

        if not isinstance(data, dict):
            raise DecodeError(f"Stream record is not a JSON object: {type(data).__name__}", line=line)

        return StreamRecord(raw=line, data=data)
