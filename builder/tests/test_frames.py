"""Tests for the SSE frame codec."""

import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(__file__))))

from builder.frames import FrameReader, decode_line, encode, encode_done, iter_frames


class TestEncode:
    def test_payload_frame(self):
        assert encode({"type": "content", "content": "hi"}) == 'data: {"type": "content", "content": "hi"}\n\n'

    def test_done_frame(self):
        assert encode_done() == "data: [DONE]\n\n"


class TestDecode:
    """Reading frames back from arbitrarily split text."""

    def test_ignores_comments_and_junk(self):
        assert decode_line(": keep-alive") is None
        assert decode_line("data: not json") is None
        assert decode_line("data: [1, 2]") is None
        assert decode_line("") is None

    def test_split_across_chunks(self):
        stream = encode({"type": "content", "content": "a"}) + encode({"type": "content", "content": "b"}) + encode_done()
        chunks = [stream[i:i + 3] for i in range(0, len(stream), 3)]
        frames = list(iter_frames(chunks))
        assert [f.payload for f in frames[:-1]] == [
            {"type": "content", "content": "a"},
            {"type": "content", "content": "b"},
        ]
        assert frames[-1].done

    def test_reader_flags_done(self):
        reader = FrameReader()
        reader.feed("data: {\"x\": 1}\r\n\r\ndata: [DO")
        assert not reader.done
        reader.feed("NE]\n\n")
        assert reader.done

    def test_close_flushes_unterminated_line(self):
        reader = FrameReader()
        assert reader.feed('data: {"x": 1}') == []
        frames = reader.close()
        assert frames[0].payload == {"x": 1}
