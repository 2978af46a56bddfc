"""Tests for upload handlers."""

import threading
from unittest.mock import MagicMock, patch

from artgallery.models.image import ImageRecord
from artgallery.models.upload import CANCELLED_MESSAGE, FileSubmission, UploadStage
from artgallery.services.batch_scheduler import BatchScheduler
from artgallery.services.ledger import ProgressLedger
from artgallery.services.upload_task import FileUploadTask
from artgallery.ui.handlers.error import StorageError
from artgallery.ui.handlers.upload import (
    UPLOAD_SESSION_KEY,
    UploadBatch,
    cancel_active_batch,
    clear_upload_session_state,
    get_active_batch,
    read_uploaded_files,
    start_batch_upload,
    summarize_batch,
)


def _make_scheduler(fail_names=(), batch_width=2):
    storage = MagicMock()

    def store_image(reference, data, original_filename=""):
        if original_filename in fail_names:
            raise StorageError(f"Failed to store image '{original_filename}': bucket unavailable")
        return {"path": reference}

    storage.store_image.side_effect = store_image

    metadata = MagicMock()
    metadata.create_image_record.side_effect = lambda title, description, path, category_ids, tag_ids: (
        ImageRecord.create_new(title=title, path=path, description=description)
    )
    return BatchScheduler(FileUploadTask(storage, metadata), batch_width=batch_width), storage, metadata


class TestReadUploadedFiles:
    def test_reads_names_and_bytes_in_order(self):
        first = MagicMock()
        first.name = "a.png"
        first.getvalue.return_value = b"aaa"
        second = MagicMock()
        second.name = "b.jpg"
        second.getvalue.return_value = b"bb"

        submissions = read_uploaded_files([first, second])

        assert submissions == [FileSubmission("a.png", b"aaa"), FileSubmission("b.jpg", b"bb")]

    def test_none_gives_empty_list(self):
        assert read_uploaded_files(None) == []


class TestStartBatchUpload:
    def test_runs_batch_and_signals_done(self, session_state):
        scheduler, storage, metadata = _make_scheduler(fail_names={"broken.png"})
        submissions = [
            FileSubmission("one.png", b"1"),
            FileSubmission("broken.png", b"2"),
            FileSubmission("three.png", b"3"),
        ]

        batch = start_batch_upload(submissions, ["cat-1", "cat-1"], ["tag-1"], scheduler=scheduler)

        assert session_state[UPLOAD_SESSION_KEY] is batch
        assert batch.file_count == 3
        assert batch.done.wait(timeout=5)
        batch.thread.join(timeout=5)

        assert batch.finished
        assert set(batch.ledger.completed()) == {"one.png", "three.png"}
        assert set(batch.ledger.failed()) == {"broken.png"}
        assert storage.store_image.call_count == 3
        for call in metadata.create_image_record.call_args_list:
            assert call.kwargs["category_ids"] == ["cat-1"]
            assert call.kwargs["tag_ids"] == ["tag-1"]

    def test_ledger_is_seeded_before_thread_runs(self, session_state):
        scheduler = MagicMock()
        submissions = [FileSubmission("a.png", b"1"), FileSubmission("a.png", b"2")]

        batch = start_batch_upload(submissions, [], [], scheduler=scheduler)
        batch.thread.join(timeout=5)

        assert list(batch.ledger) == ["a.png", "a.png (2)"]
        assert all(record.stage is UploadStage.PENDING for record in batch.ledger.snapshot().values())

        args, kwargs = scheduler.run_registered.call_args
        entries, selection, ledger = args
        assert [key for key, _ in entries] == ["a.png", "a.png (2)"]
        assert ledger is batch.ledger
        assert kwargs["cancel_token"] is batch.cancel_token
        # The mocked scheduler never calls on_complete
        assert not batch.finished

    def test_selection_is_frozen_at_submit(self, session_state):
        scheduler = MagicMock()
        category_ids = ["cat-1"]

        batch = start_batch_upload([FileSubmission("a.png", b"1")], category_ids, [], scheduler=scheduler)
        batch.thread.join(timeout=5)
        category_ids.append("cat-2")

        selection = scheduler.run_registered.call_args.args[1]
        assert selection.category_ids == ("cat-1",)


class TestCancelActiveBatch:
    def test_no_batch(self, session_state):
        assert cancel_active_batch() is False

    def test_signals_running_batch(self, session_state):
        batch = UploadBatch(ledger=ProgressLedger(), file_count=0)
        session_state[UPLOAD_SESSION_KEY] = batch

        assert cancel_active_batch() is True
        assert batch.cancel_token.cancelled

    def test_finished_batch_is_left_alone(self, session_state):
        batch = UploadBatch(ledger=ProgressLedger(), file_count=0)
        batch.done.set()
        session_state[UPLOAD_SESSION_KEY] = batch

        assert cancel_active_batch() is False
        assert not batch.cancel_token.cancelled

    def test_cancel_stops_remaining_groups(self, session_state):
        release = threading.Event()
        scheduler, storage, _ = _make_scheduler(batch_width=1)
        original = storage.store_image.side_effect

        def blocking_store(reference, data, original_filename=""):
            release.wait(timeout=5)
            return original(reference, data, original_filename)

        storage.store_image.side_effect = blocking_store
        submissions = [FileSubmission(f"{i}.png", b"x") for i in range(3)]

        batch = start_batch_upload(submissions, [], [], scheduler=scheduler)
        assert cancel_active_batch() is True
        release.set()
        assert batch.done.wait(timeout=5)

        failed = batch.ledger.failed()
        assert failed
        assert all(record.error_message == CANCELLED_MESSAGE for record in failed.values())
        assert len(batch.ledger.completed()) + len(failed) == 3


class TestSummarizeBatch:
    def test_counts_and_failures(self):
        ledger = ProgressLedger()
        ledger.register([FileSubmission(name, b"x") for name in ("a.png", "b.png", "c.png", "d.png")])
        ledger.update("a.png", lambda record: record.advance(70))
        ledger.update("a.png", lambda record: record.complete())
        ledger.update("b.png", lambda record: record.advance(30))
        ledger.update("b.png", lambda record: record.fail("Failed to store image 'b.png'"))
        ledger.update("c.png", lambda record: record.advance(10))

        summary = summarize_batch(UploadBatch(ledger=ledger, file_count=4))

        assert summary["total"] == 4
        assert summary["completed"] == 1
        assert summary["failed"] == 1
        assert summary["in_progress"] == 2
        assert summary["failures"] == [{"name": "b.png", "progress": 30, "error": "Failed to store image 'b.png'"}]
        assert summary["finished"] is False
        assert summary["duration"] >= 0


class TestClearUploadSessionState:
    @patch("artgallery.ui.handlers.upload.get_image_url")
    def test_clears_finished_batch(self, mock_get_image_url, session_state):
        batch = UploadBatch(ledger=ProgressLedger(), file_count=0)
        batch.done.set()
        session_state[UPLOAD_SESSION_KEY] = batch

        clear_upload_session_state()

        assert get_active_batch() is None
        mock_get_image_url.clear.assert_called_once()

    @patch("artgallery.ui.handlers.upload.get_image_url")
    def test_keeps_running_batch(self, mock_get_image_url, session_state):
        batch = UploadBatch(ledger=ProgressLedger(), file_count=0)
        session_state[UPLOAD_SESSION_KEY] = batch

        clear_upload_session_state()

        assert get_active_batch() is batch
        mock_get_image_url.clear.assert_not_called()

    @patch("artgallery.ui.handlers.upload.get_image_url")
    def test_without_batch(self, mock_get_image_url, session_state):
        clear_upload_session_state()

        assert UPLOAD_SESSION_KEY not in session_state
        mock_get_image_url.clear.assert_called_once()
