"""Upload handlers for artgallery application.

A batch runs on a background thread so the page can keep rerunning and
redraw progress from the ledger. The thread never touches Streamlit; it only
writes the ledger and sets the ``done`` event.
"""

import threading
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import streamlit as st
import structlog

from artgallery.models.upload import ClassificationSelection, FileSubmission
from artgallery.services.batch_scheduler import BatchScheduler, CancellationToken
from artgallery.services.ledger import ProgressLedger
from artgallery.services.storage import get_storage_service
from artgallery.services.upload_task import FileUploadTask
from artgallery.ui.handlers.gallery import get_gallery_metadata_service, get_image_url

logger = structlog.get_logger()

UPLOAD_SESSION_KEY = "upload_batch"


@dataclass
class UploadBatch:
    """A batch started from the admin page."""

    ledger: ProgressLedger
    file_count: int
    cancel_token: CancellationToken = field(default_factory=CancellationToken)
    done: threading.Event = field(default_factory=threading.Event)
    started_at: datetime = field(default_factory=datetime.now)
    thread: threading.Thread | None = None

    @property
    def finished(self) -> bool:
        return self.done.is_set()


def read_uploaded_files(uploaded_files: Iterable[Any] | None) -> list[FileSubmission]:
    """
    Turn Streamlit uploaded files into submissions.

    Args:
        uploaded_files: Objects returned by ``st.file_uploader``

    Returns:
        list[FileSubmission]: Submissions in upload order
    """
    submissions = []
    for uploaded_file in uploaded_files or []:
        submissions.append(FileSubmission(name=uploaded_file.name, data=uploaded_file.getvalue()))
    return submissions


def create_batch_scheduler(batch_width: int | None = None) -> BatchScheduler:
    """Build a scheduler backed by the configured storage and metadata services."""
    task = FileUploadTask(get_storage_service(), get_gallery_metadata_service())
    return BatchScheduler(task, batch_width=batch_width)


def start_batch_upload(
    submissions: list[FileSubmission],
    category_ids: Iterable[str],
    tag_ids: Iterable[str],
    scheduler: BatchScheduler | None = None,
) -> UploadBatch:
    """
    Start uploading ``submissions`` in the background.

    The ledger is seeded before the thread starts, so the first redraw
    already shows every file as pending. The classification selection is
    frozen here; later widget changes do not affect the running batch.

    Returns:
        UploadBatch: Handle stored in the session for polling
    """
    selection = ClassificationSelection.snapshot(category_ids, tag_ids)
    scheduler = scheduler or create_batch_scheduler()

    ledger = ProgressLedger()
    entries = list(zip(ledger.register(submissions), submissions, strict=True))
    batch = UploadBatch(ledger=ledger, file_count=len(entries))

    batch.thread = threading.Thread(
        target=scheduler.run_registered,
        args=(entries, selection, ledger),
        kwargs={"on_complete": batch.done.set, "cancel_token": batch.cancel_token},
        name="batch-upload",
        daemon=True,
    )
    batch.thread.start()
    st.session_state[UPLOAD_SESSION_KEY] = batch

    logger.info(
        "batch_upload_submitted",
        file_count=len(entries),
        categories=len(selection.category_ids),
        tags=len(selection.tag_ids),
    )
    return batch


def get_active_batch() -> UploadBatch | None:
    """Batch stored in the session, if any."""
    return st.session_state.get(UPLOAD_SESSION_KEY)


def cancel_active_batch() -> bool:
    """
    Ask the running batch to stop after its current group.

    Returns:
        bool: True if a running batch was signalled
    """
    batch = get_active_batch()
    if batch is None or batch.finished:
        return False
    batch.cancel_token.cancel()
    logger.info("batch_upload_cancel_requested", file_count=batch.file_count)
    return True


def summarize_batch(batch: UploadBatch) -> dict[str, Any]:
    """
    Summarize a batch for display.

    Returns:
        dict: Stage counts plus the failed files with their messages
    """
    counts = batch.ledger.stage_counts()
    failures = [
        {"name": key, "progress": record.progress, "error": record.error_message}
        for key, record in batch.ledger.failed().items()
    ]
    return {
        "total": batch.file_count,
        "completed": counts["completed"],
        "failed": counts["failed"],
        "in_progress": counts["pending"] + counts["uploading"],
        "failures": failures,
        "finished": batch.finished,
        "duration": (datetime.now() - batch.started_at).total_seconds(),
    }


def clear_upload_session_state() -> None:
    """Forget the finished batch and refresh cached gallery data."""
    batch = get_active_batch()
    if batch is not None and not batch.finished:
        logger.warning("clear_requested_while_uploading", file_count=batch.file_count)
        return

    st.session_state.pop(UPLOAD_SESSION_KEY, None)
    get_image_url.clear()
    logger.info("upload_session_state_cleared")
