"""Tests for the rename orchestrator, batch runner and batch preconditions."""

import asyncio
from pathlib import Path
from unittest.mock import Mock

import pytest

from vision_renamer.file_renamer import FileRenamer, FilesystemError
from vision_renamer.image_processor import ConversionError
from vision_renamer.models import (
    ImageTask,
    ModelDescriptor,
    ProcessingStatus,
    TaskStage,
)
from vision_renamer.renamer_service import (
    BatchObserver,
    BatchPreconditionError,
    BatchRunner,
    RenameOrchestrator,
    prepare_batch,
)
from vision_renamer.vision_client import ApiError, NetworkError


class RecordingObserver(BatchObserver):
    def __init__(self):
        self.updates = []
        self.summary = None

    def on_status(self, update):
        self.updates.append(update)

    def on_complete(self, summary):
        self.summary = summary


def _rename(orchestrator: RenameOrchestrator, path: Path):
    return asyncio.run(orchestrator.rename_image(ImageTask(path=path)))


class TestRenameOrchestrator:
    def test_renames_to_sanitized_suggestion(self, make_image, stub_client, tmp_path: Path):
        source = make_image("IMG_0001.JPG")
        client = stub_client(["Red Barn!"])

        outcome = _rename(RenameOrchestrator(client, "vision-model"), source)

        assert outcome.success
        assert outcome.old_name == "IMG_0001.JPG"
        assert outcome.new_name == "Red Barn.jpg"
        assert outcome.error is None
        assert outcome.stage is TaskStage.DONE_SUCCESS
        assert outcome.status is ProcessingStatus.SUCCESS
        assert not source.exists()
        assert (tmp_path / "Red Barn.jpg").exists()

    def test_sends_jpeg_payload_and_model_id(self, make_image, stub_client):
        client = stub_client(["cat"])

        _rename(RenameOrchestrator(client, "llava-1.6"), make_image("a.png"))

        (payload, mime_type, model_id), = client.calls
        assert payload[:2] == b"\xff\xd8"
        assert mime_type == "image/jpeg"
        assert model_id == "llava-1.6"

    def test_collision_appends_counter(self, make_image, stub_client, tmp_path: Path):
        make_image("cat.png")
        source = make_image("photo.png")

        outcome = _rename(RenameOrchestrator(stub_client(["cat"]), "m"), source)

        assert outcome.new_name == "cat_1.png"
        assert (tmp_path / "cat.png").exists()
        assert (tmp_path / "cat_1.png").exists()

    def test_matching_name_is_left_unchanged(self, make_image, stub_client):
        source = make_image("black_cat_sleeping.jpg")
        content = source.read_bytes()

        outcome = _rename(RenameOrchestrator(stub_client(["black_cat_sleeping"]), "m"), source)

        assert outcome.success
        assert outcome.new_name == outcome.old_name == "black_cat_sleeping.jpg"
        assert outcome.error == "Name unchanged"
        assert outcome.unchanged
        assert outcome.stage is TaskStage.DONE_UNCHANGED
        assert outcome.status is ProcessingStatus.SKIPPED
        assert source.read_bytes() == content
        assert sorted(p.name for p in source.parent.iterdir()) == ["black_cat_sleeping.jpg"]

    def test_empty_sanitized_name_is_an_error(self, make_image, stub_client):
        source = make_image("b.png")

        outcome = _rename(RenameOrchestrator(stub_client(["?!..."]), "m"), source)

        assert not outcome.success
        assert outcome.error == "Empty name returned"
        assert outcome.new_name is None
        assert outcome.stage is TaskStage.DONE_ERROR
        assert source.exists()

    def test_client_error_message_is_preserved(self, make_image, stub_client):
        source = make_image("a.png")
        client = stub_client([ApiError("Model server error: model not loaded")])

        outcome = _rename(RenameOrchestrator(client, "m"), source)

        assert not outcome.success
        assert outcome.error == "Model server error: model not loaded"
        assert outcome.status is ProcessingStatus.ERROR
        assert source.exists()

    def test_conversion_failure_skips_model_call(self, tmp_path: Path, stub_client):
        source = tmp_path / "corrupt.png"
        source.write_text("not an image")
        client = stub_client(["never used"])

        outcome = _rename(RenameOrchestrator(client, "m"), source)

        assert not outcome.success
        assert "corrupt.png" in outcome.error
        assert client.calls == []
        assert source.read_text() == "not an image"

    def test_rename_failure_is_reported(self, make_image, stub_client, monkeypatch):
        source = make_image("a.png")

        def failing_rename(old, new):
            raise FilesystemError("Failed to rename a.png to cat.png: Permission denied")

        monkeypatch.setattr(FileRenamer, "rename_file", staticmethod(failing_rename))

        outcome = _rename(RenameOrchestrator(stub_client(["cat"]), "m"), source)

        assert not outcome.success
        assert "Permission denied" in outcome.error
        assert source.exists()

    def test_injected_preprocessor_failure(self, make_image, stub_client):
        def broken(path):
            raise ConversionError("Failed to process image a.png: unsupported codec")

        outcome = _rename(RenameOrchestrator(stub_client([]), "m", preprocess=broken), make_image("a.png"))

        assert outcome.error == "Failed to process image a.png: unsupported codec"

    def test_unexpected_error_becomes_error_outcome(self, make_image, stub_client):
        source = make_image("a.png")
        client = stub_client([ValueError("bad payload")])

        outcome = _rename(RenameOrchestrator(client, "m"), source)

        assert not outcome.success
        assert outcome.error == "Unexpected error: bad payload"
        assert outcome.stage is TaskStage.DONE_ERROR
        assert source.exists()

    def test_file_already_holding_counter_name_is_unchanged(self, make_image, stub_client, tmp_path: Path):
        make_image("dog.png")
        source = make_image("dog_1.png")

        outcome = _rename(RenameOrchestrator(stub_client(["dog"]), "m"), source)

        assert outcome.unchanged
        assert outcome.new_name == "dog_1.png"
        assert sorted(p.name for p in tmp_path.iterdir()) == ["dog.png", "dog_1.png"]


class TestBatchRunner:
    def test_rerun_with_same_suggestions_keeps_names(self, make_image, stub_client, tmp_path: Path):
        make_image("x.png")
        make_image("y.png")
        first = asyncio.run(
            BatchRunner(RenameOrchestrator(stub_client(["dog", "dog"]), "m")).run(
                [ImageTask(path=tmp_path / "x.png"), ImageTask(path=tmp_path / "y.png")]
            )
        )
        assert [o.new_name for o in first.outcomes] == ["dog.png", "dog_1.png"]

        second = asyncio.run(
            BatchRunner(RenameOrchestrator(stub_client(["dog", "dog"]), "m")).run(
                [ImageTask(path=tmp_path / "dog.png"), ImageTask(path=tmp_path / "dog_1.png")]
            )
        )

        assert [o.new_name for o in second.outcomes] == ["dog.png", "dog_1.png"]
        assert all(o.unchanged for o in second.outcomes)
        assert sorted(p.name for p in tmp_path.iterdir()) == ["dog.png", "dog_1.png"]

    def test_unexpected_error_does_not_abort_batch(self, make_image, stub_client):
        tasks = [ImageTask(path=make_image(name)) for name in ("a.png", "b.png", "c.png")]
        client = stub_client(["first", RuntimeError("boom"), "third"])

        summary = asyncio.run(BatchRunner(RenameOrchestrator(client, "m")).run(tasks))

        assert len(summary.outcomes) == 3
        assert [o.success for o in summary.outcomes] == [True, False, True]

    def test_end_to_end_two_images(self, make_image, stub_client, tmp_path: Path):
        tasks = [ImageTask(path=make_image("a.png")), ImageTask(path=make_image("b.png"))]
        runner = BatchRunner(RenameOrchestrator(stub_client(["Red Barn", ""]), "m"))

        summary = asyncio.run(runner.run(tasks))

        first, second = summary.outcomes
        assert first.success and first.old_name == "a.png" and first.new_name == "Red Barn.png"
        assert not second.success and second.old_name == "b.png"
        assert second.error == "Empty name returned"
        assert summary.success_count == 1
        assert summary.total == 2
        assert sorted(p.name for p in tmp_path.iterdir()) == ["Red Barn.png", "b.png"]

    def test_failure_does_not_stop_later_tasks(self, make_image, stub_client, tmp_path: Path):
        names = ["one.png", "two.png", "three.png"]
        tasks = [ImageTask(path=make_image(name)) for name in names]
        client = stub_client(["first", NetworkError("API request failed: Bad Gateway"), "third"])

        summary = asyncio.run(BatchRunner(RenameOrchestrator(client, "m")).run(tasks))

        assert [o.old_name for o in summary.outcomes] == names
        assert [o.success for o in summary.outcomes] == [True, False, True]
        assert summary.outcomes[1].error == "API request failed: Bad Gateway"
        assert (tmp_path / "two.png").exists()
        assert (tmp_path / "first.png").exists()
        assert (tmp_path / "third.png").exists()

    def test_same_suggestion_twice_never_reuses_a_name(self, make_image, stub_client, tmp_path: Path):
        tasks = [ImageTask(path=make_image(name)) for name in ("x.png", "y.png", "z.png")]
        client = stub_client(["dog", "dog", "dog"])

        summary = asyncio.run(BatchRunner(RenameOrchestrator(client, "m")).run(tasks))

        assert [o.new_name for o in summary.outcomes] == ["dog.png", "dog_1.png", "dog_2.png"]

    def test_unchanged_counts_as_success(self, make_image, stub_client):
        tasks = [ImageTask(path=make_image("cat.png"))]

        summary = asyncio.run(BatchRunner(RenameOrchestrator(stub_client(["cat"]), "m")).run(tasks))

        assert summary.success_count == 1
        assert summary.outcomes[0].unchanged

    def test_observer_sees_ordered_monotonic_statuses(self, make_image, stub_client):
        tasks = [ImageTask(path=make_image(name)) for name in ("a.png", "b.png", "c.png")]
        client = stub_client(["a", ApiError("nope"), "sky"])
        observer = RecordingObserver()

        summary = asyncio.run(BatchRunner(RenameOrchestrator(client, "m"), observer=observer).run(tasks))

        assert [(u.index, u.status) for u in observer.updates] == [
            (0, ProcessingStatus.PENDING),
            (1, ProcessingStatus.PENDING),
            (2, ProcessingStatus.PENDING),
            (0, ProcessingStatus.PROCESSING),
            (0, ProcessingStatus.SKIPPED),
            (1, ProcessingStatus.PROCESSING),
            (1, ProcessingStatus.ERROR),
            (2, ProcessingStatus.PROCESSING),
            (2, ProcessingStatus.SUCCESS),
        ]
        assert observer.updates[-1].new_name == "sky.png"
        assert observer.updates[6].error == "nope"
        assert observer.summary is summary

    def test_tracker_counts_outcomes(self, make_image, stub_client):
        tasks = [ImageTask(path=make_image(name)) for name in ("a.png", "b.png", "c.png")]
        runner = BatchRunner(RenameOrchestrator(stub_client(["a", "", "new"]), "vision-model"))

        asyncio.run(runner.run(tasks))

        stats = runner.tracker.stats
        assert stats.model_name == "vision-model"
        assert (stats.success_count, stats.unchanged_count, stats.error_count) == (1, 1, 1)
        assert stats.success_rate == pytest.approx(2 / 3)

    def test_empty_batch(self, stub_client):
        summary = asyncio.run(BatchRunner(RenameOrchestrator(stub_client([]), "m")).run([]))

        assert summary.total == 0
        assert summary.success_count == 0
        assert summary.outcomes == []


class TestPrepareBatch:
    def _client(self, reachable=True, models=None):
        client = Mock()
        client.base_url = "http://localhost:1234"
        client.check_connection.return_value = reachable
        client.list_models.return_value = (
            models if models is not None else [ModelDescriptor(id="qwen2-vl", owned_by="me")]
        )
        return client

    def test_unreachable_server(self):
        client = self._client(reachable=False)

        with pytest.raises(BatchPreconditionError, match="Cannot connect"):
            prepare_batch(client, ["/tmp/a.png"])
        client.list_models.assert_not_called()

    def test_no_models(self):
        with pytest.raises(BatchPreconditionError, match="No models loaded"):
            prepare_batch(self._client(models=[]), ["/tmp/a.png"])

    def test_no_images(self):
        with pytest.raises(BatchPreconditionError, match="No images selected"):
            prepare_batch(self._client(), ["/tmp/notes.txt", "/tmp/movie.mov"])

    def test_builds_tasks_for_images_only(self):
        plan = prepare_batch(self._client(), ["/tmp/a.PNG", "/tmp/notes.txt", "/tmp/b.webp"])

        assert [t.path for t in plan.tasks] == [Path("/tmp/a.PNG"), Path("/tmp/b.webp")]
        assert [m.id for m in plan.models] == ["qwen2-vl"]
