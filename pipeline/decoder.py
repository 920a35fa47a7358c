"""Event decoder: one text/event-stream frame in, one ProcessingMessage out.

The backend's records are loosely shaped, so every frame is validated
against `WireEvent` first. Anything that fails is logged and skipped; a bad
frame never ends the stream.
"""
import json
import logging
import math
import re

from pydantic import ValidationError

from models.events import MessageCategory, ProcessingMessage, ProcessingStage, WireEvent
from utils.sse import frame_payload

logger = logging.getLogger(__name__)

_CATEGORY_BY_TYPE: dict[str, MessageCategory] = {
    "status": MessageCategory.STATUS,
    "progress": MessageCategory.PROGRESS,
    "image_analysis": MessageCategory.IMAGE_ANALYSIS,
    "summary": MessageCategory.SUMMARY,
    "final_summary": MessageCategory.SUMMARY,
    "error": MessageCategory.ERROR,
    "completion": MessageCategory.COMPLETION,
}

# Checked in order; the first keyword found in the content decides the stage.
_STAGE_KEYWORDS: tuple[tuple[tuple[str, ...], ProcessingStage], ...] = (
    (("extract",), ProcessingStage.EXTRACTION),
    (("image analysis", "processing images"), ProcessingStage.IMAGE_PROCESSING),
    (("analysis",), ProcessingStage.ANALYSIS),
    (("summary", "summarization"), ProcessingStage.SUMMARIZATION),
    (("complete", "finished"), ProcessingStage.COMPLETION),
)

_PERCENT_PATTERN = re.compile(r"(\d+)%")


class FrameDecodeError(ValueError):
    """A frame's payload is not a valid processing event."""


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def decode_frame(frame: str, received_at: float) -> ProcessingMessage | None:
    """Decode one raw frame. Returns None for empty or malformed frames."""
    payload = frame_payload(frame)
    if not payload:
        return None
    try:
        event = parse_payload(payload)
    except FrameDecodeError as exc:
        logger.warning("Failed to parse message: %r (%s)", payload[:200], exc)
        return None
    return to_message(event, received_at)


def parse_payload(payload: str) -> WireEvent:
    """Parse and validate a JSON payload. Raises FrameDecodeError."""
    try:
        raw = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise FrameDecodeError(f"invalid JSON: {exc.msg}") from exc
    if not isinstance(raw, dict):
        raise FrameDecodeError(f"expected a JSON object, got {type(raw).__name__}")
    try:
        return WireEvent.model_validate(raw)
    except ValidationError as exc:
        raise FrameDecodeError(f"{exc.error_count()} invalid field(s)") from exc


def to_message(event: WireEvent, received_at: float) -> ProcessingMessage:
    return ProcessingMessage(
        category=classify(event.type),
        content=event.content,
        elapsed_seconds=round_half_up(event.elapsed_seconds),
        stage=infer_stage(event),
        progress=infer_progress(event),
        timestamp=received_at,
    )


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------

def classify(wire_type: str | None) -> MessageCategory:
    """Map the wire `type` to a category; unknown or missing types are status."""
    if wire_type is None:
        return MessageCategory.STATUS
    return _CATEGORY_BY_TYPE.get(wire_type, MessageCategory.STATUS)


def infer_stage(event: WireEvent) -> ProcessingStage | None:
    if event.type == "final_summary":
        return ProcessingStage.SUMMARIZATION
    content = event.content.lower()
    for keywords, stage in _STAGE_KEYWORDS:
        if any(keyword in content for keyword in keywords):
            return stage
    return None


def infer_progress(event: WireEvent) -> int | None:
    """Explicit `progress` wins; otherwise the first "<n>%" in the content."""
    if event.progress is not None:
        return round_half_up(event.progress)
    match = _PERCENT_PATTERN.search(event.content)
    if match is None:
        return None
    # "250%" in free text is not a stage-local percentage
    return min(100, int(match.group(1)))


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))
