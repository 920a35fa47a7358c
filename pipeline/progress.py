"""Progress estimator: overall percentage, current stage and ETA.

Each stage owns a slice of the 0–100 range (base offset + weight). A
stage-local percentage is projected into that slice, rounded, and capped at
99 until the run reports completion, which forces exactly 100. The overall
value never goes down within a run.
"""
from enum import Enum

from models.events import MessageCategory, ProcessingMessage, ProcessingStage
from models.run_state import ProcessingState
from pipeline.decoder import round_half_up

STAGE_WEIGHTS: dict[ProcessingStage, float] = {
    ProcessingStage.EXTRACTION: 0.2,
    ProcessingStage.IMAGE_PROCESSING: 0.3,
    ProcessingStage.ANALYSIS: 0.2,
    ProcessingStage.SUMMARIZATION: 0.3,
    ProcessingStage.COMPLETION: 1.0,
}

STAGE_BASE_OFFSETS: dict[ProcessingStage, int] = {
    ProcessingStage.EXTRACTION: 0,
    ProcessingStage.IMAGE_PROCESSING: 20,
    ProcessingStage.ANALYSIS: 50,
    ProcessingStage.SUMMARIZATION: 70,
}

STAGE_ORDER: tuple[ProcessingStage, ...] = (
    ProcessingStage.EXTRACTION,
    ProcessingStage.IMAGE_PROCESSING,
    ProcessingStage.ANALYSIS,
    ProcessingStage.SUMMARIZATION,
    ProcessingStage.COMPLETION,
)

# Overall percentage at which a stage counts as done in the stage indicator.
# Completion is only done when the run itself completed.
_COMPLETED_AT: dict[ProcessingStage, int] = {
    ProcessingStage.EXTRACTION: 20,
    ProcessingStage.IMAGE_PROCESSING: 50,
    ProcessingStage.ANALYSIS: 70,
    ProcessingStage.SUMMARIZATION: 99,
}

_CAP_BEFORE_COMPLETION = 99


class StageStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"


def stage_estimate(stage: ProcessingStage, progress: int) -> int:
    """Project a stage-local percentage onto the overall scale (capped at 99)."""
    if stage == ProcessingStage.COMPLETION:
        return 100
    overall = STAGE_BASE_OFFSETS[stage] + STAGE_WEIGHTS[stage] * 100 * (progress / 100)
    return min(_CAP_BEFORE_COMPLETION, round_half_up(overall))


def is_completion(message: ProcessingMessage) -> bool:
    return (
        message.category == MessageCategory.COMPLETION
        or message.stage == ProcessingStage.COMPLETION
    )


def estimate_remaining(elapsed: float, overall: int) -> int | None:
    """Seconds left, extrapolated linearly from elapsed time. None before any progress."""
    if overall <= 0:
        return None
    return max(0, round_half_up(elapsed * (100 / overall - 1)))


def advance(state: ProcessingState, message: ProcessingMessage, now: float) -> ProcessingState:
    """Fold one message into the stage/progress/ETA fields of `state`.

    Only these estimator fields change; the message sequence is left to the
    reducer. Messages without stage or progress leave the estimate alone.
    """
    current_stage = message.stage if message.stage is not None else state.current_stage
    overall = state.overall_progress

    if is_completion(message):
        overall = 100
    elif message.stage is not None and message.progress is not None:
        overall = max(overall, stage_estimate(message.stage, message.progress))

    eta = state.estimated_seconds_remaining
    if overall != state.overall_progress or message.progress is not None:
        eta = estimate_remaining(state.elapsed_seconds(now), overall)

    return state.model_copy(update={
        "current_stage": current_stage,
        "overall_progress": overall,
        "estimated_seconds_remaining": eta,
    })


def stage_statuses(state: ProcessingState) -> dict[ProcessingStage, StageStatus]:
    statuses: dict[ProcessingStage, StageStatus] = {}
    for stage in STAGE_ORDER:
        if stage == ProcessingStage.COMPLETION:
            done = state.is_complete
        else:
            done = state.overall_progress >= _COMPLETED_AT[stage]
        if done:
            statuses[stage] = StageStatus.COMPLETED
        elif stage == state.current_stage:
            statuses[stage] = StageStatus.ACTIVE
        else:
            statuses[stage] = StageStatus.PENDING
    return statuses
