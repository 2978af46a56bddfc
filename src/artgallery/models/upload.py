"""
Upload pipeline models for artgallery application.

A batch of dropped files becomes a list of ``FileSubmission`` objects. Each
one gets a ``FileStatusRecord`` in the progress ledger that moves through
``PENDING -> UPLOADING -> COMPLETED | FAILED``.
"""

from collections.abc import Iterable
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path

UNKNOWN_ERROR_MESSAGE = "Unknown error"
CANCELLED_MESSAGE = "Upload cancelled"


class UploadStage(Enum):
    """Lifecycle stages of a single file upload."""

    PENDING = "pending"
    UPLOADING = "uploading"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (UploadStage.COMPLETED, UploadStage.FAILED)


class InvalidTransitionError(ValueError):
    """Raised when a status record is asked to move backwards or out of a terminal stage."""


@dataclass(frozen=True)
class FileSubmission:
    """An opaque file accepted into a batch."""

    name: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def extension(self) -> str:
        """Last extension segment including the dot, or an empty string."""
        return Path(self.name).suffix

    @classmethod
    def from_path(cls, path: str | Path) -> "FileSubmission":
        """Read a local file into a submission named after its basename."""
        file_path = Path(path)
        return cls(name=file_path.name, data=file_path.read_bytes())

    def __repr__(self) -> str:
        return f"FileSubmission(name={self.name!r}, size={self.size})"


@dataclass(frozen=True)
class ClassificationSelection:
    """Category and tag ids applied to every file of a batch."""

    category_ids: tuple[str, ...] = ()
    tag_ids: tuple[str, ...] = ()

    @classmethod
    def snapshot(cls, category_ids: Iterable[str] = (), tag_ids: Iterable[str] = ()) -> "ClassificationSelection":
        """
        Freeze the current selection.

        Duplicates are dropped and the first-seen order is kept, so later
        edits to the source lists cannot leak into a running batch.
        """
        return cls(
            category_ids=tuple(dict.fromkeys(category_ids)),
            tag_ids=tuple(dict.fromkeys(tag_ids)),
        )


@dataclass(frozen=True)
class FileStatusRecord:
    """
    Progress of one file through the upload pipeline.

    Records are immutable; every transition returns a new record so the
    ledger can swap entries with a single assignment.
    """

    stage: UploadStage = UploadStage.PENDING
    progress: int = 0
    error_message: str | None = None
    stored_reference: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.stage.is_terminal

    def _ensure_mutable(self, target: UploadStage) -> None:
        if self.is_terminal:
            raise InvalidTransitionError(f"Cannot move from terminal stage {self.stage.value} to {target.value}")

    def advance(self, progress: int, stored_reference: str | None = None) -> "FileStatusRecord":
        """Enter or stay in UPLOADING with a higher (or equal) progress value."""
        self._ensure_mutable(UploadStage.UPLOADING)
        if not 0 <= progress <= 100:
            raise InvalidTransitionError(f"Progress must be between 0 and 100, got {progress}")
        if progress < self.progress:
            raise InvalidTransitionError(f"Progress cannot decrease from {self.progress} to {progress}")
        return replace(
            self,
            stage=UploadStage.UPLOADING,
            progress=progress,
            stored_reference=stored_reference or self.stored_reference,
        )

    def complete(self) -> "FileStatusRecord":
        """Finish successfully; only reachable from UPLOADING."""
        self._ensure_mutable(UploadStage.COMPLETED)
        if self.stage is not UploadStage.UPLOADING:
            raise InvalidTransitionError("A file must be uploading before it can complete")
        return replace(self, stage=UploadStage.COMPLETED, progress=100, error_message=None)

    def fail(self, message: str | None) -> "FileStatusRecord":
        """Finish with an error, keeping the last known progress."""
        self._ensure_mutable(UploadStage.FAILED)
        return replace(self, stage=UploadStage.FAILED, error_message=message or UNKNOWN_ERROR_MESSAGE)

    def to_dict(self) -> dict:
        return {
            "stage": self.stage.value,
            "progress": self.progress,
            "error_message": self.error_message,
            "stored_reference": self.stored_reference,
        }


def partition(items: list, width: int) -> list[list]:
    """
    Split ``items`` into consecutive groups of at most ``width`` elements.

    Order is preserved across and within groups.
    """
    if width < 1:
        raise ValueError(f"Batch width must be a positive integer, got {width}")
    return [items[start : start + width] for start in range(0, len(items), width)]
