"""
Буферизация NDJSON стрима: байтовые чанки -> полные строки
"""
import codecs
from typing import List, Optional, Union

from ...core.logging import logger


class LineBufferDecoder:
    """
    Turns an arbitrary chunk stream into complete text lines.

    Bytes go through an incremental UTF-8 decoder, so a multi-byte character
    split across two chunks is decoded once both halves have arrived. Text
    after the last newline is kept for the next ``feed`` call.
    """

    def __init__(self, max_buffer_size: int = 1024 * 1024, encoding: str = "utf-8"):
        """
        Args:
            max_buffer_size: Максимальная длина незавершенной строки (символы)
            encoding: Кодировка потока
        """
        self.max_buffer_size = max_buffer_size
        self.encoding = encoding
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self.buffer = ""
        self._discarding = False
        self.dropped_lines = 0

    def feed(self, chunk: Union[bytes, str]) -> List[str]:
        """
        Добавляет чанк и возвращает все завершенные непустые строки

        Args:
            chunk: Новый чанк данных (bytes или уже декодированный текст)

        Returns:
            Список полных строк без символа перевода строки
        """
        if isinstance(chunk, (bytes, bytearray)):
            text = self._decoder.decode(bytes(chunk), final=False)
        else:
            text = chunk

        if not text:
            return []

        self.buffer += text
        lines = self.buffer.split("\n")
        self.buffer = lines.pop()

        complete = []
        for line in lines:
            if self._discarding:
                # хвост слишком длинной строки
                self._discarding = False
                continue
            line = line.rstrip("\r")
            if line.strip():
                complete.append(line)

        if len(self.buffer) > self.max_buffer_size:
            logger.warning("Stream line exceeds buffer limit, dropping it", component="line_buffer",
                           buffer_size=len(self.buffer), max_buffer_size=self.max_buffer_size)
            self.buffer = ""
            self._discarding = True
            self.dropped_lines += 1

        return complete

    def flush(self) -> Optional[str]:
        """
        Возвращает и очищает незавершенный остаток в конце стрима

        Returns:
            Остаток без перевода строки или None, если он пустой
        """
        self.buffer += self._decoder.decode(b"", final=True)
        remaining = self.buffer
        discarding = self._discarding
        self.reset()

        if discarding:
            return None
        remaining = remaining.rstrip("\r")
        return remaining if remaining.strip() else None

    def reset(self):
        """Очищает буфер и сбрасывает декодер"""
        self.buffer = ""
        self._discarding = False
        self._decoder = codecs.getincrementaldecoder(self.encoding)(errors="replace")
