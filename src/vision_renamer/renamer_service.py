"""Sequential rename pipeline: per-image orchestration and batch running."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence, Union

from .file_renamer import (
    FileRenamer,
    FileRenamerError,
    SUPPORTED_EXTENSIONS,
    SanitizationEmptyError,
)
from .image_processor import PREPROCESSED_MIME_TYPE, ConversionError, ImageProcessor
from .models import (
    UNCHANGED_NOTE,
    BatchSummary,
    ImageTask,
    ModelDescriptor,
    ProcessingStatus,
    RenameOutcome,
    StatusUpdate,
    TaskStage,
)
from .performance_tracker import PerformanceTracker
from .vision_client import VisionClient, VisionClientError

logger = logging.getLogger(__name__)

# Errors that end a single task without touching the rest of the batch
TASK_ERRORS = (ConversionError, VisionClientError, FileRenamerError)


class RenameOrchestrator:
    """Runs one image through preprocess, describe, sanitize, resolve and rename."""

    def __init__(
        self,
        client: VisionClient,
        model_id: str,
        preprocess: Callable[[Path], bytes] = ImageProcessor.preprocess,
    ):
        """
        Initialize the orchestrator.

        Args:
            client: Anything with an awaitable ``describe_image(bytes, mime_type, model_id)``
            model_id: Model identifier handed to every completion call
            preprocess: Function turning an image path into the payload bytes
        """
        self.client = client
        self.model_id = model_id
        self.preprocess = preprocess
        self.file_renamer = FileRenamer()

    @staticmethod
    def _enter(task: ImageTask, stage: TaskStage) -> TaskStage:
        logger.debug("%s: %s", task.name, stage.value)
        return stage

    @staticmethod
    def _failed(old_name: str, message: str) -> RenameOutcome:
        return RenameOutcome(
            success=False,
            old_name=old_name,
            error=message,
            stage=TaskStage.DONE_ERROR,
        )

    async def rename_image(self, task: ImageTask) -> RenameOutcome:
        """
        Rename a single image.

        Never raises; failures come back as an error outcome and the file is
        left where it was.
        """
        old_name = task.name
        directory = task.path.parent
        ext = task.path.suffix.lower()
        stage = TaskStage.NOT_STARTED

        try:
            stage = self._enter(task, TaskStage.PREPROCESSING)
            payload = self.preprocess(task.path)

            stage = self._enter(task, TaskStage.AWAITING_MODEL)
            suggestion = await self.client.describe_image(payload, PREPROCESSED_MIME_TYPE, self.model_id)

            stage = self._enter(task, TaskStage.SANITIZING)
            clean_name = self.file_renamer.sanitize_filename(suggestion)
            if not clean_name:
                raise SanitizationEmptyError()

            stage = self._enter(task, TaskStage.RESOLVING)
            new_path = self.file_renamer.unique_path(directory, clean_name, ext, current=task.path)
            if new_path.name == old_name:
                self._enter(task, TaskStage.DONE_UNCHANGED)
                return RenameOutcome(
                    success=True,
                    old_name=old_name,
                    new_name=old_name,
                    error=UNCHANGED_NOTE,
                    stage=TaskStage.DONE_UNCHANGED,
                )

            stage = self._enter(task, TaskStage.RENAMING)
            self.file_renamer.rename_file(task.path, new_path)

        except TASK_ERRORS as e:
            logger.warning("Failed to rename %s while %s: %s", old_name, stage.value, e)
            return self._failed(old_name, str(e))
        except Exception as e:
            logger.warning("Unexpected error renaming %s while %s", old_name, stage.value, exc_info=True)
            return self._failed(old_name, f"Unexpected error: {e}")

        self._enter(task, TaskStage.DONE_SUCCESS)
        logger.info("Renamed %s -> %s", old_name, new_path.name)
        return RenameOutcome(
            success=True,
            old_name=old_name,
            new_name=new_path.name,
            stage=TaskStage.DONE_SUCCESS,
        )


class BatchObserver:
    """Receives status updates from a BatchRunner. Override what you need."""

    def on_status(self, update: StatusUpdate) -> None:
        pass

    def on_complete(self, summary: BatchSummary) -> None:
        pass


class BatchRunner:
    """Processes tasks strictly one after another, in input order."""

    def __init__(
        self,
        orchestrator: RenameOrchestrator,
        observer: Optional[BatchObserver] = None,
        tracker: Optional[PerformanceTracker] = None,
    ):
        self.orchestrator = orchestrator
        self.observer = observer or BatchObserver()
        self.tracker = tracker or PerformanceTracker(orchestrator.model_id)

    async def run(self, tasks: Sequence[ImageTask]) -> BatchSummary:
        """
        Rename every task and return the tally.

        Unchanged names count toward ``success_count`` alongside real renames.
        """
        summary = BatchSummary(total=len(tasks))

        for index, task in enumerate(tasks):
            self.observer.on_status(
                StatusUpdate(index=index, old_name=task.name, status=ProcessingStatus.PENDING)
            )

        for index, task in enumerate(tasks):
            self.observer.on_status(
                StatusUpdate(index=index, old_name=task.name, status=ProcessingStatus.PROCESSING)
            )

            with self.tracker.track_task():
                outcome = await self.orchestrator.rename_image(task)
            self.tracker.record(outcome)

            summary.outcomes.append(outcome)
            if outcome.success:
                summary.success_count += 1

            self.observer.on_status(
                StatusUpdate(
                    index=index,
                    old_name=outcome.old_name,
                    new_name=outcome.new_name,
                    status=outcome.status,
                    error=outcome.error,
                )
            )

        self.observer.on_complete(summary)
        return summary


@dataclass
class BatchPlan:
    """Everything checked and collected before the first task starts."""

    models: List[ModelDescriptor]
    tasks: List[ImageTask] = field(default_factory=list)


def prepare_batch(client: VisionClient, paths: Iterable[Union[str, Path]]) -> BatchPlan:
    """
    Check the batch-level preconditions and build the task list.

    Raises:
        BatchPreconditionError: If the server is unreachable, has no models,
            or none of ``paths`` is a supported image
    """
    if not client.check_connection():
        raise BatchPreconditionError(
            f"Cannot connect to the model server at {client.base_url}.\n\n"
            "Make sure LM Studio is running and its local server is started.\n\n"
            "You can change the server URL with --base-url or VISION_RENAMER_BASE_URL."
        )

    models = client.list_models()
    if not models:
        raise BatchPreconditionError(
            "No models loaded on the model server.\n\nPlease load a vision model first."
        )

    images = FileRenamer.filter_images(paths)
    if not images:
        formats = ", ".join(sorted(ext.lstrip('.').upper() for ext in SUPPORTED_EXTENSIONS))
        raise BatchPreconditionError(
            "No images selected.\n\nSelect one or more image files, then run this command again.\n\n"
            f"Supported formats: {formats}"
        )

    return BatchPlan(models=models, tasks=[ImageTask(path=path) for path in images])


class BatchPreconditionError(Exception):
    """Raised when a batch cannot start at all."""
    pass
