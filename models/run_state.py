from pydantic import BaseModel, ConfigDict, Field

from models.events import MessageCategory, ProcessingMessage, ProcessingStage


class ProcessingState(BaseModel):
    """Everything known about one processing run.

    Instances are immutable; transitions live in `pipeline.reducer` and
    always return a new state. A fresh instance is the idle, empty state.
    """

    model_config = ConfigDict(frozen=True)

    messages: tuple[ProcessingMessage, ...] = ()
    current_stage: ProcessingStage | None = None
    overall_progress: int = Field(default=0, ge=0, le=100)
    estimated_seconds_remaining: int | None = None
    started_at: float | None = None
    finished_at: float | None = None
    is_active: bool = False
    is_complete: bool = False
    is_cancelled: bool = False
    error: str | None = None

    @property
    def last_message(self) -> ProcessingMessage | None:
        return self.messages[-1] if self.messages else None

    def by_category(self, category: MessageCategory) -> list[ProcessingMessage]:
        return [m for m in self.messages if m.category == category]

    def elapsed_seconds(self, now: float) -> float:
        if self.started_at is None:
            return 0.0
        end = self.finished_at if self.finished_at is not None else now
        return max(0.0, end - self.started_at)
