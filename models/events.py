from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from utils.thinking import split_thinking


class ProcessingStage(str, Enum):
    EXTRACTION = "extraction"
    ANALYSIS = "analysis"
    IMAGE_PROCESSING = "image_processing"
    SUMMARIZATION = "summarization"
    COMPLETION = "completion"


class MessageCategory(str, Enum):
    STATUS = "status"
    PROGRESS = "progress"
    IMAGE_ANALYSIS = "image_analysis"
    SUMMARY = "summary"
    ERROR = "error"
    COMPLETION = "completion"


class WireEvent(BaseModel):
    """One JSON record as sent by the processing backend.

    Validation fails closed: a record that does not fit this shape is a
    decode failure and the frame carrying it is dropped.
    """

    model_config = ConfigDict(extra="ignore", strict=False)

    type: str | None = None
    content: str
    elapsed_seconds: float = Field(ge=0, allow_inf_nan=False)
    progress: float | None = Field(default=None, ge=0, le=100, allow_inf_nan=False)

    @field_validator("content", mode="before")
    @classmethod
    def content_must_be_text(cls, v):
        # Pydantic would coerce numbers to str in lax mode; the backend never sends them.
        if not isinstance(v, str):
            raise ValueError("content must be a string")
        return v

    @field_validator("elapsed_seconds", "progress", mode="before")
    @classmethod
    def require_numbers(cls, v):
        # Lax mode would accept True and "45"; only JSON numbers are valid here.
        if isinstance(v, (bool, str)):
            raise ValueError(f"expected a number, got {type(v).__name__}")
        return v


class ProcessingMessage(BaseModel):
    """A normalized processing event, ready for the timeline.

    `content` is kept verbatim; `display_content` and `reasoning` are always
    derived from it and cannot be set directly.
    """

    model_config = ConfigDict(frozen=True)

    category: MessageCategory
    content: str
    elapsed_seconds: int = Field(ge=0)
    stage: ProcessingStage | None = None
    progress: int | None = Field(default=None, ge=0, le=100)
    timestamp: float  # client receipt time, epoch seconds

    @computed_field  # type: ignore[misc]
    @property
    def reasoning(self) -> str:
        return split_thinking(self.content).reasoning

    @computed_field  # type: ignore[misc]
    @property
    def display_content(self) -> str:
        return split_thinking(self.content).content

    @property
    def has_reasoning(self) -> bool:
        return split_thinking(self.content).found
