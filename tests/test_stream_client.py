"""Tests for the streaming HTTP client. The backend is an httpx.MockTransport."""
import asyncio

import httpx
import pytest

from conftest import ENDPOINT, sse_frame, streaming_transport
from models.source import SourcePayload
from pipeline.stream_client import (
    CancellationToken,
    ProcessingCancelled,
    StreamClient,
    TransportError,
)


async def _collect(client: StreamClient, source: SourcePayload, token: CancellationToken) -> list[str]:
    return [frame async for frame in client.stream_frames(source, token)]


# ---------------------------------------------------------------------------
# CancellationToken
# ---------------------------------------------------------------------------

class TestCancellationToken:
    def test_cancel_runs_callbacks_once(self):
        calls = []
        token = CancellationToken()
        token.add_callback(lambda: calls.append("a"))
        assert token.cancel() is True
        assert token.cancel() is False
        assert calls == ["a"]
        assert token.cancelled is True

    def test_callback_added_after_cancel_runs_immediately(self):
        calls = []
        token = CancellationToken()
        token.cancel()
        token.add_callback(lambda: calls.append("late"))
        assert calls == ["late"]

    def test_raise_if_cancelled(self):
        token = CancellationToken()
        token.raise_if_cancelled()
        token.cancel()
        with pytest.raises(ProcessingCancelled):
            token.raise_if_cancelled()


# ---------------------------------------------------------------------------
# Framing and request shape
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_frames_yielded_in_wire_order(settings):
    chunks = [
        sse_frame(type="status", content="Extracting text", elapsed_seconds=0),
        b"data: {\"type\": \"progress\", ",
        b"\"content\": \"50%\", \"elapsed_seconds\": 2}\n\n",
        b"data: trailing fragment without delimiter",
    ]
    async with httpx.AsyncClient(transport=streaming_transport(chunks)) as http:
        client = StreamClient(settings, http_client=http)
        frames = await _collect(client, SourcePayload.from_text("hello"), CancellationToken())

    assert frames == [
        'data: {"type": "status", "content": "Extracting text", "elapsed_seconds": 0}',
        'data: {"type": "progress", "content": "50%", "elapsed_seconds": 2}',
    ]


@pytest.mark.asyncio
async def test_file_source_posted_as_multipart(settings):
    requests: list[httpx.Request] = []
    transport = streaming_transport([], requests=requests)
    async with httpx.AsyncClient(transport=transport) as http:
        client = StreamClient(settings, http_client=http)
        await _collect(client, SourcePayload.from_bytes("paper.pdf", b"%PDF-1.4 body"), CancellationToken())

    (request,) = requests
    assert request.method == "POST"
    assert str(request.url) == ENDPOINT
    assert request.headers["content-type"].startswith("multipart/form-data")
    assert request.headers["accept"] == "text/event-stream"
    body = request.content
    assert b'name="file"; filename="paper.pdf"' in body
    assert b"%PDF-1.4 body" in body


@pytest.mark.asyncio
@pytest.mark.parametrize("source, field, value", [
    (SourcePayload.from_url("https://example.org/post"), b"url", b"https://example.org/post"),
    (SourcePayload.from_text("pasted notes"), b"text", b"pasted notes"),
])
async def test_url_and_text_sources_posted_as_multipart(settings, source, field, value):
    requests: list[httpx.Request] = []
    async with httpx.AsyncClient(transport=streaming_transport([], requests=requests)) as http:
        await _collect(StreamClient(settings, http_client=http), source, CancellationToken())

    (request,) = requests
    assert request.headers["content-type"].startswith("multipart/form-data")
    assert b'name="' + field + b'"' in request.content
    assert value in request.content


# ---------------------------------------------------------------------------
# Failures and cancellation
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_non_2xx_raises_transport_error(settings):
    async with httpx.AsyncClient(transport=streaming_transport([b"nope"], status_code=503)) as http:
        client = StreamClient(settings, http_client=http)
        with pytest.raises(TransportError) as exc_info:
            await _collect(client, SourcePayload.from_text("x"), CancellationToken())

    assert str(exc_info.value) == "Server responded with status: 503"
    assert exc_info.value.status_code == 503


@pytest.mark.asyncio
async def test_network_error_raises_transport_error(settings):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        client = StreamClient(settings, http_client=http)
        with pytest.raises(TransportError, match="connection refused"):
            await _collect(client, SourcePayload.from_text("x"), CancellationToken())


@pytest.mark.asyncio
async def test_cancelled_token_stops_before_request(settings):
    requests: list[httpx.Request] = []
    token = CancellationToken()
    token.cancel()
    async with httpx.AsyncClient(transport=streaming_transport([], requests=requests)) as http:
        client = StreamClient(settings, http_client=http)
        with pytest.raises(ProcessingCancelled):
            await _collect(client, SourcePayload.from_text("x"), token)
    assert requests == []


@pytest.mark.asyncio
async def test_token_polled_between_chunks(settings):
    token = CancellationToken()
    gate = asyncio.Event()

    async def body():
        yield sse_frame(type="status", content="first", elapsed_seconds=0)
        await gate.wait()
        yield sse_frame(type="status", content="second", elapsed_seconds=1)

    received = []
    async with httpx.AsyncClient(transport=streaming_transport(body)) as http:
        client = StreamClient(settings, http_client=http)
        with pytest.raises(ProcessingCancelled):
            async for frame in client.stream_frames(SourcePayload.from_text("x"), token):
                received.append(frame)
                token.cancel()
                gate.set()

    assert len(received) == 1
    assert "first" in received[0]
