"""
Progress ledger for batch uploads.

The ledger maps a per-submission key to the current ``FileStatusRecord`` of
that file. Each entry is written only by the task that owns the file and
records are immutable, so an update is a single dict assignment. The lock
only guards structural changes (registering keys, copying snapshots).
"""

import threading
from collections.abc import Callable, Iterable, Iterator

from ..models.upload import FileStatusRecord, FileSubmission, UploadStage


class ProgressLedger:
    """Live per-file status of one or more upload batches."""

    def __init__(self) -> None:
        self._records: dict[str, FileStatusRecord] = {}
        self._lock = threading.Lock()

    def _unique_key(self, name: str) -> str:
        if name not in self._records:
            return name
        suffix = 2
        while f"{name} ({suffix})" in self._records:
            suffix += 1
        return f"{name} ({suffix})"

    def register(self, submissions: Iterable[FileSubmission]) -> list[str]:
        """
        Seed a PENDING record for every submission.

        Keys are the display names; a name already present in the ledger gets
        a `` (2)``, `` (3)``... suffix so that every submission has its own entry.

        Returns:
            list[str]: Keys in submission order
        """
        keys = []
        with self._lock:
            for submission in submissions:
                key = self._unique_key(submission.name)
                self._records[key] = FileStatusRecord()
                keys.append(key)
        return keys

    def get(self, key: str) -> FileStatusRecord:
        return self._records[key]

    def update(self, key: str, transition: Callable[[FileStatusRecord], FileStatusRecord]) -> FileStatusRecord:
        """Apply ``transition`` to the entry and store the resulting record."""
        record = transition(self._records[key])
        self._records[key] = record
        return record

    def snapshot(self) -> dict[str, FileStatusRecord]:
        """Copy of all entries in registration order."""
        with self._lock:
            return dict(self._records)

    def _with_stage(self, stage: UploadStage) -> dict[str, FileStatusRecord]:
        return {key: record for key, record in self.snapshot().items() if record.stage is stage}

    def failed(self) -> dict[str, FileStatusRecord]:
        return self._with_stage(UploadStage.FAILED)

    def completed(self) -> dict[str, FileStatusRecord]:
        return self._with_stage(UploadStage.COMPLETED)

    def stage_counts(self, keys: Iterable[str] | None = None) -> dict[str, int]:
        """Entries per stage, over ``keys`` only when given."""
        records = self.snapshot()
        if keys is not None:
            records = {key: records[key] for key in keys}
        counts = {stage.value: 0 for stage in UploadStage}
        for record in records.values():
            counts[record.stage.value] += 1
        return counts

    def overall_progress(self) -> float:
        """Mean progress of all entries as a fraction between 0 and 1."""
        records = self.snapshot().values()
        if not records:
            return 1.0
        return sum(record.progress for record in records) / (100 * len(records))

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, key: object) -> bool:
        return key in self._records

    def __iter__(self) -> Iterator[str]:
        return iter(self.snapshot())
