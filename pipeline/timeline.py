"""Timeline view model consumed by renderers.

Nothing here draws anything: it turns a ProcessingState into labels, group
headers and plain-text lines, which the terminal watcher prints and a UI
would style.
"""
from pydantic import BaseModel

from models.events import MessageCategory, ProcessingMessage, ProcessingStage
from models.run_state import ProcessingState
from pipeline.decoder import round_half_up
from pipeline.progress import StageStatus, stage_statuses

CATEGORY_LABELS: dict[MessageCategory, str] = {
    MessageCategory.STATUS: "Status Update",
    MessageCategory.PROGRESS: "Processing",
    MessageCategory.IMAGE_ANALYSIS: "Image Analysis",
    MessageCategory.SUMMARY: "Document Summary",
    MessageCategory.ERROR: "Error",
    MessageCategory.COMPLETION: "Process Complete",
}

STAGE_LABELS: dict[ProcessingStage, str] = {
    ProcessingStage.EXTRACTION: "Text Extraction",
    ProcessingStage.IMAGE_PROCESSING: "Image Processing",
    ProcessingStage.ANALYSIS: "Content Analysis",
    ProcessingStage.SUMMARIZATION: "Summarization",
    ProcessingStage.COMPLETION: "Completion",
}


class TimelineEntry(BaseModel):
    index: int
    message: ProcessingMessage
    starts_category: bool  # first of a run of same-category messages
    starts_stage: bool     # first message of a new stage (only when it has one)


class ProcessingSummary(BaseModel):
    document_name: str
    total_seconds: int
    status: str
    message_count: int


def timeline_entries(messages: tuple[ProcessingMessage, ...] | list[ProcessingMessage]) -> list[TimelineEntry]:
    entries: list[TimelineEntry] = []
    previous: ProcessingMessage | None = None
    for index, message in enumerate(messages):
        starts_category = previous is None or previous.category != message.category
        starts_stage = message.stage is not None and (
            previous is None or previous.stage != message.stage
        )
        entries.append(TimelineEntry(
            index=index,
            message=message,
            starts_category=starts_category,
            starts_stage=starts_stage,
        ))
        previous = message
    return entries


def summarize(state: ProcessingState, document_name: str, now: float) -> ProcessingSummary | None:
    """Summary card for a completed run; None while running, failed or cancelled."""
    if not state.is_complete:
        return None
    return ProcessingSummary(
        document_name=document_name,
        total_seconds=round_half_up(state.elapsed_seconds(now)),
        status="Complete",
        message_count=len(state.messages),
    )


def format_message(message: ProcessingMessage) -> str:
    """One terminal line, e.g. ``[ 12s] Processing | Image Processing | Processing images 45% (45%)``."""
    parts = [CATEGORY_LABELS[message.category]]
    if message.stage is not None:
        parts.append(STAGE_LABELS[message.stage])
    parts.append(message.display_content)
    line = f"[{message.elapsed_seconds:>3}s] " + " | ".join(parts)
    if message.progress is not None:
        line += f" ({message.progress}%)"
    if message.has_reasoning:
        line += " [thinking hidden]"
    return line


def format_progress(state: ProcessingState) -> str:
    line = f"Overall progress: {state.overall_progress}%"
    if state.is_active and state.estimated_seconds_remaining is not None:
        line += f" (~{state.estimated_seconds_remaining}s remaining)"
    return line


def format_stage_indicator(state: ProcessingState) -> str:
    """Compact stage strip, e.g. ``[x] Text Extraction  [>] Image Processing  [ ] ...``."""
    marks = {StageStatus.COMPLETED: "[x]", StageStatus.ACTIVE: "[>]", StageStatus.PENDING: "[ ]"}
    return "  ".join(
        f"{marks[status]} {STAGE_LABELS[stage]}"
        for stage, status in stage_statuses(state).items()
    )
