"""Stream client: POST a source and yield text/event-stream frames.

Cancellation is cooperative. The transport loop polls a shared
CancellationToken after every chunk and before every frame it hands out;
callbacks registered on the token (the session registers its reading task's
`cancel`) abort a read that is still in flight.
"""
import logging
from collections.abc import AsyncIterator, Callable

import httpx

from models.source import SourcePayload
from settings import Settings
from utils.sse import FrameBuffer

logger = logging.getLogger(__name__)


class TransportError(RuntimeError):
    """The request failed: non-2xx status or a network-level error."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ProcessingCancelled(Exception):
    """Raised inside the transport loop once the token has been cancelled."""


class CancellationToken:
    def __init__(self) -> None:
        self._cancelled = False
        self._callbacks: list[Callable[[], object]] = []

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def add_callback(self, callback: Callable[[], object]) -> None:
        if self._cancelled:
            callback()
        else:
            self._callbacks.append(callback)

    def cancel(self) -> bool:
        """Cancel once. Returns False if the token was already cancelled."""
        if self._cancelled:
            return False
        self._cancelled = True
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()
        return True

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise ProcessingCancelled()


class StreamClient:
    """Owns the httpx client used for processing requests.

    Pass `http_client` to share a client (or inject a mock transport in
    tests); otherwise one is created from settings and closed by `aclose()`.
    """

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient | None = None):
        self._settings = settings
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(settings.read_timeout, connect=settings.connect_timeout)
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def stream_frames(
        self,
        source: SourcePayload,
        token: CancellationToken,
    ) -> AsyncIterator[str]:
        """Yield raw frames in wire order until the server closes the stream.

        Raises TransportError on failure and ProcessingCancelled when the
        token is cancelled between reads.
        """
        endpoint = self._settings.processing_endpoint
        token.raise_if_cancelled()
        logger.info("POST %s (%s source: %s)", endpoint, source.kind, source.display_name)

        buffer = FrameBuffer()
        try:
            async with self._client.stream(
                "POST",
                endpoint,
                files=source.multipart_files(),
                headers={"Accept": "text/event-stream"},
            ) as response:
                if not response.is_success:
                    logger.error("Processing endpoint answered %d", response.status_code)
                    raise TransportError(
                        f"Server responded with status: {response.status_code}",
                        status_code=response.status_code,
                    )
                async for chunk in response.aiter_bytes():
                    token.raise_if_cancelled()
                    for frame in buffer.feed(chunk):
                        token.raise_if_cancelled()
                        yield frame
        except httpx.HTTPError as exc:
            logger.error("Processing request failed: %s", exc)
            raise TransportError(str(exc) or type(exc).__name__) from exc
        finally:
            buffer.discard()
