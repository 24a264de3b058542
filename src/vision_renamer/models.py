"""Pydantic models for API envelopes and rename results."""

from enum import Enum
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

UNCHANGED_NOTE = "Name unchanged"


class ModelDescriptor(BaseModel):
    """A model advertised by the model server."""

    model_config = ConfigDict(frozen=True)

    id: str
    owned_by: str = ""
    object: str = "model"


class ModelsResponse(BaseModel):
    """Envelope returned by ``GET /v1/models``."""

    data: List[ModelDescriptor] = Field(default_factory=list)
    object: str = "list"


class ChatMessage(BaseModel):
    """Message inside a completion choice."""

    role: str = "assistant"
    content: Optional[str] = None


class ChatChoice(BaseModel):
    """One completion alternative returned by the server."""

    index: int = 0
    message: ChatMessage = Field(default_factory=ChatMessage)
    finish_reason: Optional[str] = None


class ErrorDetail(BaseModel):
    """Error reported in a completion response body."""

    message: str = "Unknown error"


class ChatCompletionResponse(BaseModel):
    """Envelope returned by ``POST /v1/chat/completions``."""

    choices: List[ChatChoice] = Field(default_factory=list)
    error: Optional[ErrorDetail] = None

    @property
    def suggestion(self) -> str:
        """Trimmed content of the first choice, or an empty string."""
        if not self.choices:
            return ""
        return (self.choices[0].message.content or "").strip()


class ProcessingStatus(str, Enum):
    """Presentation-facing status of a single task."""

    PENDING = "pending"
    PROCESSING = "processing"
    SUCCESS = "success"
    SKIPPED = "skipped"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (ProcessingStatus.SUCCESS, ProcessingStatus.SKIPPED, ProcessingStatus.ERROR)


class TaskStage(str, Enum):
    """Internal stages a task moves through in the orchestrator."""

    NOT_STARTED = "not_started"
    PREPROCESSING = "preprocessing"
    AWAITING_MODEL = "awaiting_model"
    SANITIZING = "sanitizing"
    RESOLVING = "resolving"
    RENAMING = "renaming"
    DONE_SUCCESS = "done_success"
    DONE_UNCHANGED = "done_unchanged"
    DONE_ERROR = "done_error"


class ImageTask(BaseModel):
    """One image to rename."""

    model_config = ConfigDict(frozen=True)

    path: Path

    @property
    def name(self) -> str:
        return self.path.name


class RenameOutcome(BaseModel):
    """Result of processing one ImageTask."""

    success: bool
    old_name: str
    new_name: Optional[str] = None
    error: Optional[str] = None
    stage: TaskStage = TaskStage.DONE_SUCCESS

    @property
    def unchanged(self) -> bool:
        return self.success and self.error == UNCHANGED_NOTE

    @property
    def status(self) -> ProcessingStatus:
        if not self.success:
            return ProcessingStatus.ERROR
        if self.unchanged:
            return ProcessingStatus.SKIPPED
        return ProcessingStatus.SUCCESS


class StatusUpdate(BaseModel):
    """A status change for the task at ``index`` in the batch."""

    index: int
    old_name: str
    new_name: Optional[str] = None
    status: ProcessingStatus
    error: Optional[str] = None


class BatchSummary(BaseModel):
    """Final tally of a batch run."""

    success_count: int = 0
    total: int = 0
    outcomes: List[RenameOutcome] = Field(default_factory=list)


class ModelPerformance(BaseModel):
    """Track model performance metrics."""

    model_config = ConfigDict(protected_namespaces=())

    model_name: str
    success_count: int = 0
    unchanged_count: int = 0
    error_count: int = 0
    total_time: float = 0.0

    @property
    def attempted(self) -> int:
        return self.success_count + self.unchanged_count + self.error_count

    @property
    def success_rate(self) -> float:
        """Renamed or unchanged images as a fraction of attempted ones."""
        total = self.attempted
        return (self.success_count + self.unchanged_count) / total if total > 0 else 0.0

    @property
    def avg_time_per_image(self) -> float:
        return self.total_time / self.attempted if self.attempted > 0 else 0.0
