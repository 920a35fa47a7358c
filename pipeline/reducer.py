"""State transitions for a processing run.

Every function takes a ProcessingState and returns a new one; nothing here
mutates or keeps state, so a session only ever swaps one reference.
"""
from models.events import MessageCategory, ProcessingMessage, ProcessingStage
from models.run_state import ProcessingState
from pipeline import progress
from pipeline.decoder import round_half_up

CANCELLED_MESSAGE = "Processing cancelled by user."


def start_run(now: float) -> ProcessingState:
    return ProcessingState(started_at=now, is_active=True)


def apply_message(state: ProcessingState, message: ProcessingMessage) -> ProcessingState:
    """Add a decoded message to the run and update the progress estimate.

    A progress message directly following a progress message for the same
    stage replaces it; everything else is appended.
    """
    last = state.last_message
    if last is not None and message.timestamp < last.timestamp:
        message = message.model_copy(update={"timestamp": last.timestamp})

    updated = progress.advance(state, message, now=message.timestamp)

    if (
        last is not None
        and message.category == MessageCategory.PROGRESS
        and last.category == MessageCategory.PROGRESS
        and last.stage == message.stage
    ):
        messages = state.messages[:-1] + (message,)
    else:
        messages = state.messages + (message,)
    return updated.model_copy(update={"messages": messages})


def finish_run(state: ProcessingState, now: float, document_type: str) -> ProcessingState:
    """The stream closed normally: record completion and force 100%."""
    completion = _client_message(
        state,
        now,
        category=MessageCategory.COMPLETION,
        content=f"{document_type} processing completed successfully.",
        stage=ProcessingStage.COMPLETION,
    )
    state = apply_message(state, completion)
    return state.model_copy(update={
        "overall_progress": 100,
        "estimated_seconds_remaining": 0,
        "is_active": False,
        "is_complete": True,
        "finished_at": now,
    })


def fail_run(state: ProcessingState, error: str, now: float) -> ProcessingState:
    failure = _client_message(state, now, category=MessageCategory.ERROR, content=error)
    state = apply_message(state, failure)
    return state.model_copy(update={"is_active": False, "error": error, "finished_at": now})


def cancel_run(state: ProcessingState, now: float) -> ProcessingState:
    notice = _client_message(state, now, category=MessageCategory.STATUS, content=CANCELLED_MESSAGE)
    state = apply_message(state, notice)
    return state.model_copy(update={"is_active": False, "is_cancelled": True, "finished_at": now})


def abort_run(state: ProcessingState, now: float) -> ProcessingState:
    """Stop without a user-facing notice (teardown or restart)."""
    return state.model_copy(update={"is_active": False, "is_cancelled": True, "finished_at": now})


def reset() -> ProcessingState:
    return ProcessingState()


def _client_message(
    state: ProcessingState,
    now: float,
    *,
    category: MessageCategory,
    content: str,
    stage: ProcessingStage | None = None,
) -> ProcessingMessage:
    """A message generated on this side of the wire, timed against the run start."""
    return ProcessingMessage(
        category=category,
        content=content,
        elapsed_seconds=round_half_up(state.elapsed_seconds(now)),
        stage=stage,
        timestamp=now,
    )
