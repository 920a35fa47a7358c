"""Tests for incremental event-stream framing."""
from utils.sse import FrameBuffer, frame_payload
from utils.thinking import split_thinking


class TestFrameBuffer:
    def test_single_chunk_multiple_frames(self):
        buf = FrameBuffer()
        frames = buf.feed(b"data: a\n\ndata: b\n\ndata: c")
        assert frames == ["data: a", "data: b"]
        assert buf.pending == "data: c"

    def test_frame_split_across_chunks(self):
        buf = FrameBuffer()
        assert buf.feed(b"data: {\"content\": ") == []
        assert buf.feed(b"\"hi\"}\n") == []
        assert buf.feed(b"\ndata: next") == ['data: {"content": "hi"}']

    def test_multibyte_character_split_across_chunks(self):
        encoded = "data: Zusammenfassung für Müller\n\n".encode("utf-8")
        cut = encoded.index("ü".encode("utf-8")) + 1  # inside the two-byte sequence
        buf = FrameBuffer()
        assert buf.feed(encoded[:cut]) == []
        assert buf.feed(encoded[cut:]) == ["data: Zusammenfassung für Müller"]

    def test_crlf_line_endings(self):
        buf = FrameBuffer()
        assert buf.feed(b"data: a\r\n\r\ndata: b\r\n\r\n") == ["data: a", "data: b"]

    def test_crlf_split_between_chunks(self):
        buf = FrameBuffer()
        assert buf.feed(b"data: a\r") == []
        assert buf.feed(b"\ndata: more\r\n\r\n") == ["data: a\ndata: more"]

    def test_discard_returns_and_clears_remainder(self):
        buf = FrameBuffer()
        buf.feed(b"data: partial")
        assert buf.discard() == "data: partial"
        assert buf.pending == ""
        assert buf.feed(b"data: x\n\n") == ["data: x"]


def test_frame_payload_strips_prefixes_and_comments():
    frame = ": ping\ndata: {\"a\":\ndata: 1}"
    assert frame_payload(frame) == '{"a":\n1}'


def test_frame_payload_without_prefix_is_kept():
    assert frame_payload('  {"a": 1}  ') == '{"a": 1}'


class TestSplitThinking:
    def test_no_block(self):
        split = split_thinking("Summary text")
        assert split.found is False
        assert split.reasoning == ""
        assert split.content == "Summary text"

    def test_block_removed_from_content(self):
        split = split_thinking("Intro <think> step 1\nstep 2 </think> Result")
        assert split.found is True
        assert split.reasoning == "step 1\nstep 2"
        assert split.content == "Intro  Result"

    def test_only_first_block_extracted(self):
        split = split_thinking("<think>a</think>x<think>b</think>")
        assert split.reasoning == "a"
        assert split.content == "x<think>b</think>"

    def test_unclosed_block_left_alone(self):
        split = split_thinking("<think>never closed")
        assert split.found is False
        assert split.content == "<think>never closed"
