"""
Batch scheduler for multi-file uploads.

Files are split into consecutive groups of at most ``batch_width`` and the
groups run strictly one after another. All tasks of a group run concurrently
on a thread pool and the scheduler waits for every one of them to settle
before dispatching the next group, so no more than ``batch_width`` uploads
are ever in flight.

A failed file never stops its siblings or later groups. Cancellation is
cooperative: the token is checked before each group is dispatched, running
groups always finish, and files of skipped groups are marked as cancelled.
"""

import threading
import time
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed

from ..config import get_upload_batch_width
from ..logging_config import get_logger, log_performance, log_user_action
from ..models.upload import ClassificationSelection, FileSubmission, partition
from .ledger import ProgressLedger
from .upload_task import FileUploadTask, mark_cancelled

logger = get_logger(__name__)

UploadEntry = tuple[str, FileSubmission]


class CancellationToken:
    """Thread-safe flag asking a running batch to stop dispatching groups."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class BatchScheduler:
    """Run file upload tasks in bounded, sequential groups."""

    def __init__(self, task: FileUploadTask, batch_width: int | None = None):
        """
        Args:
            task: Unit of work executed for every file
            batch_width: Default group size (UPLOAD_BATCH_WIDTH when None)
        """
        self.task = task
        self.batch_width = self._validate_width(batch_width if batch_width is not None else get_upload_batch_width())

    @staticmethod
    def _validate_width(width: int) -> int:
        if isinstance(width, bool) or not isinstance(width, int) or width < 1:
            raise ValueError(f"Batch width must be a positive integer, got {width!r}")
        return width

    def _resolve_width(self, batch_width: int | None) -> int:
        return self._validate_width(batch_width) if batch_width is not None else self.batch_width

    def run(
        self,
        files: Sequence[FileSubmission],
        selection: ClassificationSelection,
        ledger: ProgressLedger,
        on_complete: Callable[[], None] | None = None,
        cancel_token: CancellationToken | None = None,
        batch_width: int | None = None,
    ) -> None:
        """
        Register ``files`` in the ledger and upload them group by group.

        Args:
            files: Submissions in the order they were dropped
            selection: Frozen categories and tags for every file of the batch
            ledger: Ledger receiving one PENDING entry per file
            on_complete: Called exactly once after the last group settles
            cancel_token: Optional token checked before each group
            batch_width: Group size for this run only
        """
        width = self._resolve_width(batch_width)
        entries = list(zip(ledger.register(files), files, strict=True))
        self.run_registered(entries, selection, ledger, on_complete, cancel_token, width)

    def run_registered(
        self,
        entries: Sequence[UploadEntry],
        selection: ClassificationSelection,
        ledger: ProgressLedger,
        on_complete: Callable[[], None] | None = None,
        cancel_token: CancellationToken | None = None,
        batch_width: int | None = None,
    ) -> None:
        """Same as ``run`` for entries whose ledger keys already exist."""
        width = self._resolve_width(batch_width)
        groups = partition(list(entries), width)
        start_time = time.perf_counter()

        log_user_action("batch_upload_started", file_count=len(entries), group_count=len(groups), batch_width=width)

        try:
            if groups:
                with ThreadPoolExecutor(max_workers=width, thread_name_prefix="upload") as executor:
                    for index, group in enumerate(groups):
                        if cancel_token is not None and cancel_token.cancelled:
                            self._cancel_groups(groups[index:], ledger)
                            break
                        self._run_group(executor, index, group, selection, ledger)
        finally:
            counts = ledger.stage_counts(key for key, _ in entries)
            log_performance(
                "batch_upload",
                time.perf_counter() - start_time,
                file_count=len(entries),
                completed=counts["completed"],
                failed=counts["failed"],
            )
            if on_complete is not None:
                on_complete()

    def _run_group(
        self,
        executor: ThreadPoolExecutor,
        index: int,
        group: list[UploadEntry],
        selection: ClassificationSelection,
        ledger: ProgressLedger,
    ) -> None:
        logger.debug("upload_group_dispatched", group=index, size=len(group))

        futures = {
            executor.submit(self.task.run, key, submission, selection, ledger): key for key, submission in group
        }
        for future in as_completed(futures):
            key = futures[future]
            try:
                future.result()
            except Exception as e:
                # The task records its own failures; this only catches ledger misuse
                logger.error("upload_task_crashed", key=key, error=str(e))
                if key in ledger and not ledger.get(key).is_terminal:
                    message = str(e)
                    ledger.update(key, lambda record: record.fail(message))

        logger.debug("upload_group_settled", group=index)

    def _cancel_groups(self, groups: list[list[UploadEntry]], ledger: ProgressLedger) -> None:
        skipped = [key for group in groups for key, _ in group]
        for key in skipped:
            mark_cancelled(key, ledger)
        logger.warning("batch_upload_cancelled", skipped_groups=len(groups), skipped_files=len(skipped))
