"""
Экспорт компонентов обработки стрима
"""

from .line_buffer import LineBufferDecoder
from .stream_record import StreamRecord, StreamRecordParser, CHARS_PER_TOKEN
from .throughput import ThroughputEstimator, DebouncedEmitter, round_rate

__all__ = [
    'LineBufferDecoder',
    'StreamRecord',
    'StreamRecordParser',
    'CHARS_PER_TOKEN',
    'ThroughputEstimator',
    'DebouncedEmitter',
    'round_rate',
]
