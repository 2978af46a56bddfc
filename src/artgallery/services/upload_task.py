"""
Single-file unit of work of the upload pipeline.

One ``FileUploadTask.run`` call stores the bytes of a file under a fresh
reference, creates the image record pointing at it, and records every step
in the progress ledger. Failures never escape ``run``; they end up as a
FAILED record with a readable message.
"""

import time
import uuid
from collections.abc import Callable
from pathlib import PurePath

from ..logging_config import get_logger, log_performance
from ..models.image import title_from_filename
from ..models.upload import CANCELLED_MESSAGE, ClassificationSelection, FileSubmission
from .ledger import ProgressLedger
from .metadata import MetadataService
from .storage import StorageService

logger = get_logger(__name__)

PROGRESS_STARTED = 10
PROGRESS_STORING = 30
PROGRESS_PERSISTING = 70


def derive_stored_reference(filename: str) -> str:
    """Random object name that keeps the last extension of ``filename``."""
    return f"{uuid.uuid4().hex}{PurePath(filename).suffix}"


class FileUploadTask:
    """Store one file and persist its image record."""

    def __init__(
        self,
        storage_service: StorageService,
        metadata_service: MetadataService,
        reference_factory: Callable[[str], str] = derive_stored_reference,
    ):
        self.storage_service = storage_service
        self.metadata_service = metadata_service
        self.reference_factory = reference_factory

    def run(
        self,
        key: str,
        submission: FileSubmission,
        selection: ClassificationSelection,
        ledger: ProgressLedger,
    ) -> None:
        """
        Upload ``submission`` and advance its ledger entry to a terminal stage.

        Args:
            key: Ledger key of the submission
            submission: File to upload
            selection: Categories and tags applied to the new record
            ledger: Progress ledger holding the entry for ``key``
        """
        start_time = time.perf_counter()
        reference = None
        try:
            ledger.update(key, lambda record: record.advance(PROGRESS_STARTED))

            reference = self.reference_factory(submission.name)
            ledger.update(key, lambda record: record.advance(PROGRESS_STORING, stored_reference=reference))
            self.storage_service.store_image(reference, submission.data, submission.name)

            ledger.update(key, lambda record: record.advance(PROGRESS_PERSISTING))
            image = self.metadata_service.create_image_record(
                title=title_from_filename(submission.name),
                description="",
                path=reference,
                category_ids=list(selection.category_ids),
                tag_ids=list(selection.tag_ids),
            )

            ledger.update(key, lambda record: record.complete())

        except Exception as e:
            message = str(e)
            failed = ledger.update(key, lambda record: record.fail(message))
            logger.warning(
                "upload_task_failed",
                key=key,
                filename=submission.name,
                stored_reference=reference,
                progress=failed.progress,
                error_type=type(e).__name__,
                error=failed.error_message,
            )
            return

        log_performance(
            "upload_task",
            time.perf_counter() - start_time,
            key=key,
            image_id=image.id,
            stored_reference=reference,
            file_size=submission.size,
        )


def mark_cancelled(key: str, ledger: ProgressLedger) -> None:
    """Fail a never-dispatched entry without touching any remote service."""
    ledger.update(key, lambda record: record.fail(CANCELLED_MESSAGE))
