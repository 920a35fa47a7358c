import json

import httpx
import pytest

from settings import Settings

ENDPOINT = "http://backend.test/process-pdf"


class FakeClock:
    """Deterministic clock; advances by `step` seconds on every call."""

    def __init__(self, start: float = 1_000.0, step: float = 1.0):
        self.now = start
        self.step = step

    def __call__(self) -> float:
        current = self.now
        self.now += self.step
        return current


def sse_frame(**event) -> bytes:
    """Encode one event as a `data: {...}` frame terminated by a blank line."""
    return f"data: {json.dumps(event)}\n\n".encode("utf-8")


def streaming_transport(chunks, status_code: int = 200, requests: list | None = None) -> httpx.MockTransport:
    """MockTransport answering every request with `chunks` streamed in order.

    `chunks` may be a list of bytes or a zero-argument callable returning an
    async iterator of bytes. Received requests are appended to `requests`.
    """

    async def handler(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(request)
        body = chunks() if callable(chunks) else _iterate(chunks)
        return httpx.Response(
            status_code,
            headers={"content-type": "text/event-stream"},
            content=body,
        )

    return httpx.MockTransport(handler)


async def _iterate(chunks):
    for chunk in chunks:
        yield chunk


@pytest.fixture
def settings() -> Settings:
    """Settings pointing at a fake backend. Nothing is sent over the network."""
    return Settings(processing_endpoint=ENDPOINT)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
