"""
Orphaned object reconciliation.

An upload stores the bytes before it creates the image record, so a failed
record insert leaves an object nothing points to. This pass lists the images
bucket and deletes objects without a record once they are older than a grace
period; younger objects may belong to an upload that is still running.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

from artgallery.ui.handlers.error import StorageError
from ..config import get_orphan_grace_period_hours
from ..logging_config import get_logger, log_user_action
from .metadata import MetadataService
from .storage import StorageService

logger = get_logger(__name__)


@dataclass
class ReconciliationResult:
    """Outcome of one reconciliation pass."""

    scanned: int
    orphaned: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)
    dry_run: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "scanned": self.scanned,
            "orphaned": list(self.orphaned),
            "deleted": list(self.deleted),
            "failed": dict(self.failed),
            "dry_run": self.dry_run,
        }


def _as_utc(timestamp: datetime) -> datetime:
    if timestamp.tzinfo is None:
        return timestamp.replace(tzinfo=UTC)
    return timestamp.astimezone(UTC)


def find_orphaned_objects(
    storage_service: StorageService,
    metadata_service: MetadataService,
    grace_period: timedelta,
    now: datetime | None = None,
) -> tuple[int, list[str]]:
    """
    Find stored objects no image record refers to.

    Objects are listed before records are read, so an upload finishing in
    between is seen as referenced. Objects without a creation time are kept.

    Returns:
        tuple: Number of scanned objects and the orphaned paths, oldest first
    """
    cutoff = _as_utc(now or datetime.now(UTC)) - grace_period

    objects = storage_service.list_images()
    referenced = metadata_service.get_all_image_paths()

    orphans = [
        obj
        for obj in objects
        if obj["path"] not in referenced and obj.get("created_at") is not None and _as_utc(obj["created_at"]) <= cutoff
    ]
    orphans.sort(key=lambda obj: _as_utc(obj["created_at"]))

    logger.info("orphan_scan_completed", scanned=len(objects), referenced=len(referenced), orphaned=len(orphans))
    return len(objects), [obj["path"] for obj in orphans]


def reconcile_orphans(
    storage_service: StorageService,
    metadata_service: MetadataService,
    grace_period: timedelta | None = None,
    dry_run: bool = False,
    now: datetime | None = None,
) -> ReconciliationResult:
    """
    Delete orphaned objects older than the grace period.

    A failed delete is recorded in the result and the pass goes on with the
    remaining objects.

    Args:
        storage_service: Images bucket access
        metadata_service: Source of referenced paths
        grace_period: Minimum object age (ORPHAN_GRACE_PERIOD_HOURS when None)
        dry_run: Only report what would be deleted
        now: Reference time, defaults to the current time

    Returns:
        ReconciliationResult: Summary of the pass
    """
    if grace_period is None:
        grace_period = timedelta(hours=get_orphan_grace_period_hours())

    scanned, orphaned = find_orphaned_objects(storage_service, metadata_service, grace_period, now)
    result = ReconciliationResult(scanned=scanned, orphaned=orphaned, dry_run=dry_run)

    if not dry_run:
        for path in orphaned:
            try:
                storage_service.delete_file(path)
                result.deleted.append(path)
            except StorageError as e:
                result.failed[path] = str(e)

    log_user_action(
        "orphan_reconciliation_completed",
        scanned=scanned,
        orphaned=len(orphaned),
        deleted=len(result.deleted),
        failed=len(result.failed),
        dry_run=dry_run,
        grace_period_hours=grace_period.total_seconds() / 3600,
    )
    return result
