"""
Тесты LineBufferDecoder
"""
import itertools

import pytest

from native_llama.services.chat import LineBufferDecoder


STREAM = (
    '{"message":{"content":"Привет"}}\n'
    '\n'
    '{"message":{"content":"🤖 ok"}}\r\n'
    '   \n'
    '{"done":true}\n'
).encode("utf-8")

EXPECTED = [
    '{"message":{"content":"Привет"}}',
    '{"message":{"content":"🤖 ok"}}',
    '{"done":true}',
]


def split_at(data: bytes, cuts):
    parts, start = [], 0
    for cut in cuts:
        parts.append(data[start:cut])
        start = cut
    parts.append(data[start:])
    return parts


def decode_all(chunks):
    decoder = LineBufferDecoder()
    lines = []
    for chunk in chunks:
        lines.extend(decoder.feed(chunk))
    tail = decoder.flush()
    if tail is not None:
        lines.append(tail)
    return lines


class TestLineBufferDecoder:
    """Тесты построчной сборки стрима"""

    def setup_method(self):
        self.decoder = LineBufferDecoder()

    def test_complete_lines_in_one_chunk(self):
        assert self.decoder.feed(b'{"a":1}\n{"b":2}\n') == ['{"a":1}', '{"b":2}']
        assert self.decoder.flush() is None

    def test_partial_line_is_kept_for_next_chunk(self):
        assert self.decoder.feed(b'{"message":{"con') == []
        assert self.decoder.buffer == '{"message":{"con'
        assert self.decoder.feed(b'tent":"He"}}\n{"mes') == ['{"message":{"content":"He"}}']
        assert self.decoder.buffer == '{"mes'

    def test_blank_and_whitespace_lines_are_dropped(self):
        assert self.decoder.feed(b'\n   \n\t\n{"x":1}\n\n') == ['{"x":1}']

    def test_crlf_terminators(self):
        assert self.decoder.feed(b'{"x":1}\r\n{"y":2}\r\n') == ['{"x":1}', '{"y":2}']

    def test_multibyte_character_split_across_chunks(self):
        data = '{"message":{"content":"ж"}}\n'.encode("utf-8")
        cut = data.index("ж".encode("utf-8")) + 1  # середина двухбайтового символа
        assert self.decoder.feed(data[:cut]) == []
        assert self.decoder.feed(data[cut:]) == ['{"message":{"content":"ж"}}']

    def test_four_byte_emoji_fed_byte_by_byte(self):
        data = '{"c":"🚀"}\n'.encode("utf-8")
        lines = []
        for i in range(len(data)):
            lines.extend(self.decoder.feed(data[i:i + 1]))
        assert lines == ['{"c":"🚀"}']

    def test_text_chunks_are_accepted(self):
        assert self.decoder.feed('{"a":1}\n{"b"') == ['{"a":1}']
        assert self.decoder.flush() == '{"b"'

    def test_flush_returns_unterminated_tail_once(self):
        self.decoder.feed(b'{"done":true}')
        assert self.decoder.flush() == '{"done":true}'
        assert self.decoder.flush() is None

    def test_flush_of_whitespace_tail_is_none(self):
        self.decoder.feed(b'{"a":1}\n   ')
        assert self.decoder.flush() is None

    def test_oversized_line_is_dropped_until_next_newline(self):
        decoder = LineBufferDecoder(max_buffer_size=16)
        assert decoder.feed(b'{"content":"' + b"x" * 40) == []
        assert decoder.dropped_lines == 1
        assert decoder.feed(b'yyy"}\n{"ok":1}\n') == ['{"ok":1}']

    def test_oversized_tail_is_not_flushed(self):
        decoder = LineBufferDecoder(max_buffer_size=8)
        decoder.feed(b"z" * 20)
        assert decoder.flush() is None

    def test_reset_clears_state(self):
        self.decoder.feed(b'{"partial"')
        self.decoder.reset()
        assert self.decoder.buffer == ""
        assert self.decoder.flush() is None

    @pytest.mark.parametrize("cuts", [
        (),
        (1,),
        (5, 6, 7),
        (31, 32, 33, 34),
        (len(STREAM) - 1,),
    ])
    def test_chunk_boundary_independence(self, cuts):
        assert decode_all(split_at(STREAM, cuts)) == EXPECTED

    def test_every_two_cut_split_gives_same_lines(self):
        for a, b in itertools.combinations(range(1, len(STREAM)), 2):
            assert decode_all(split_at(STREAM, (a, b))) == EXPECTED, (a, b)
