"""Processing session: drives one processing run at a time.

    session = ProcessingSession(settings, on_update=render)
    state = await session.run(SourcePayload.from_path(Path("report.pdf")))

Frames are read from the stream client, decoded and folded into an
immutable ProcessingState by the reducer. Each new state is published to
`on_update` before the next chunk is requested, so observers see messages in
wire order.

Calling `run` while a run is active is governed by `Settings.busy_policy`:
"reject" raises RunInProgressError, "restart" aborts the active run first.
"""
import asyncio
import logging
import time
from collections.abc import Callable
from contextlib import aclosing

from models.run_state import ProcessingState
from models.source import SourcePayload
from pipeline import reducer
from pipeline.decoder import decode_frame
from pipeline.stream_client import (
    CancellationToken,
    ProcessingCancelled,
    StreamClient,
    TransportError,
)
from settings import Settings

logger = logging.getLogger(__name__)


class RunInProgressError(RuntimeError):
    """A run was requested while another one is still active."""


class SessionClosedError(RuntimeError):
    """A run was requested after the session was closed."""


class ProcessingSession:
    def __init__(
        self,
        settings: Settings,
        client: StreamClient | None = None,
        *,
        clock: Callable[[], float] = time.time,
        on_update: Callable[[ProcessingState], None] | None = None,
        on_complete: Callable[[ProcessingState], None] | None = None,
        on_error: Callable[[str], None] | None = None,
    ):
        self._settings = settings
        self._client = client or StreamClient(settings)
        self._clock = clock
        self._on_update = on_update
        self._on_complete = on_complete
        self._on_error = on_error

        self._state = reducer.reset()
        self._token: CancellationToken | None = None
        self._task: asyncio.Task | None = None
        self._closed = False

    @property
    def state(self) -> ProcessingState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._task is not None and not self._task.done()

    # ------------------------------------------------------------------
    # Run lifecycle
    # ------------------------------------------------------------------

    async def run(self, source: SourcePayload) -> ProcessingState:
        """Process one source and return the final state of its run.

        Raises TransportError after recording it when the request fails.
        A cancelled run returns normally with `is_cancelled` set. Any other
        failure of the read loop is recorded as an error before it propagates.
        """
        if self._closed:
            raise SessionClosedError("processing session is closed")
        if self.is_active:
            if self._settings.busy_policy == "reject":
                raise RunInProgressError("a processing run is already active")
            logger.info("Restarting: aborting the active run")
            await self._abort()

        token = CancellationToken()
        task = asyncio.create_task(self._consume(source, token))
        token.add_callback(task.cancel)
        self._token, self._task = token, task
        self._publish(reducer.start_run(self._clock()))
        logger.info("Processing %s (%s)", source.display_name, source.document_type)

        try:
            await asyncio.wait({task})
        except asyncio.CancelledError:
            token.cancel()
            self._publish(reducer.abort_run(self._state, self._clock()))
            raise

        if self._task is not task:
            # Superseded by a restart; the newer run owns the session state.
            return self._state

        cancelled = task.cancelled() or isinstance(task.exception(), ProcessingCancelled)
        if cancelled:
            if self._state.is_active:
                self._publish(reducer.abort_run(self._state, self._clock()))
            logger.info("Processing cancelled after %d message(s)", len(self._state.messages))
            return self._state

        exc = task.exception()
        if isinstance(exc, TransportError):
            self._publish(reducer.fail_run(self._state, str(exc), self._clock()))
            if self._on_error is not None:
                self._on_error(str(exc))
            raise exc
        if exc is not None:
            # on_update may be what raised, so record the failure without it.
            error = str(exc) or type(exc).__name__
            logger.error("Processing failed: %s", error, exc_info=exc)
            self._state = reducer.fail_run(self._state, error, self._clock())
            if self._on_error is not None:
                self._on_error(error)
            raise exc

        self._publish(reducer.finish_run(self._state, self._clock(), source.document_type))
        logger.info(
            "Processing complete: %d message(s) in %.1fs",
            len(self._state.messages),
            self._state.elapsed_seconds(self._clock()),
        )
        if self._on_complete is not None:
            self._on_complete(self._state)
        return self._state

    def cancel(self) -> bool:
        """Cancel the active run on behalf of the user.

        Appends a single "cancelled" status message. Returns False when
        there is nothing to cancel or cancellation is disabled.
        """
        if not self._settings.allow_cancellation:
            logger.debug("Cancellation disabled by settings")
            return False
        if not self.is_active or self._token is None or self._token.cancelled:
            return False
        self._publish(reducer.cancel_run(self._state, self._clock()))
        self._token.cancel()
        return True

    async def close(self) -> None:
        """Tear down: abort any active run silently and discard its state.

        The session cannot run again afterwards.
        """
        self._closed = True
        await self._abort()
        self._task = None
        self._token = None
        self._publish(reducer.reset())
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _consume(self, source: SourcePayload, token: CancellationToken) -> None:
        async with aclosing(self._client.stream_frames(source, token)) as frames:
            async for frame in frames:
                message = decode_frame(frame, received_at=self._clock())
                if message is None:
                    continue
                self._publish(reducer.apply_message(self._state, message))

    async def _abort(self) -> None:
        task, token = self._task, self._token
        if task is None or task.done():
            return
        if token is not None:
            token.cancel()
        await asyncio.wait({task})

    def _publish(self, state: ProcessingState) -> None:
        self._state = state
        if self._on_update is not None:
            self._on_update(state)
