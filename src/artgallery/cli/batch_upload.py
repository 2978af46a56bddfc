import os
from datetime import timedelta

import structlog
from dotenv import load_dotenv
from invoke import Context, task

from artgallery.logging_config import configure_structured_logging
from artgallery.models.upload import ClassificationSelection, FileSubmission
from artgallery.services.batch_scheduler import BatchScheduler
from artgallery.services.ledger import ProgressLedger
from artgallery.services.metadata import get_metadata_service
from artgallery.services.reconciliation import reconcile_orphans
from artgallery.services.storage import get_storage_service
from artgallery.services.upload_task import FileUploadTask
from artgallery.ui.handlers.error import GalleryError

logger = structlog.get_logger()

SUPPORTED_EXTENSIONS = [".jpg", ".jpeg", ".png", ".gif", ".webp", ".avif", ".heic", ".heif", ".tif", ".tiff", ".bmp"]


def _load_environment(env_file: str) -> None:
    if os.path.exists(env_file):
        logger.info("loading_environment", env_file=env_file)
        load_dotenv(dotenv_path=env_file)
    else:
        logger.warning("environment_file_not_found", env_file=env_file)
    configure_structured_logging()


def _split_names(value: str) -> list[str]:
    return [name.strip() for name in value.split(",") if name.strip()]


def find_image_files(directory: str, recursive: bool = False) -> list[str]:
    """Image files under ``directory`` in sorted order."""
    image_files = []
    if recursive:
        for root, dirs, files in os.walk(directory):
            dirs.sort()
            for name in sorted(files):
                if os.path.splitext(name)[1].lower() in SUPPORTED_EXTENSIONS:
                    image_files.append(os.path.join(root, name))
    else:
        for name in sorted(os.listdir(directory)):
            path = os.path.join(directory, name)
            if os.path.isfile(path) and os.path.splitext(name)[1].lower() in SUPPORTED_EXTENSIONS:
                image_files.append(path)
    return image_files


@task
def batch_upload(
    c: Context,
    directory: str,
    categories: str = "",
    tags: str = "",
    batch_width: int = 0,
    env_file: str = ".env",
    recursive: bool = False,
    dry_run: bool = False,
):
    """
    Upload images from a local directory in batch.

    Args:
        c (Context): Invoke context.
        directory (str): Path to the directory containing images.
        categories (str): Comma separated category names applied to every image.
        tags (str): Comma separated tag names applied to every image.
        batch_width (int): Files uploaded concurrently. Default is UPLOAD_BATCH_WIDTH.
        env_file (str): Path to the environment file. Default is '.env'.
        recursive (bool): Search for images in subdirectories. Default is False.
        dry_run (bool): If True, lists files to be processed without uploading. Default is False.
    """
    _load_environment(env_file)

    if not os.path.isdir(directory):
        logger.error("directory_not_found", directory=directory)
        return
    if batch_width < 0:
        logger.error("invalid_batch_width", batch_width=batch_width)
        return

    image_files = find_image_files(directory, recursive)
    if not image_files:
        logger.warning("no_image_files_found", directory=directory)
        return

    logger.info("batch_process_starting", directory=directory, files=len(image_files), dry_run=dry_run)

    if dry_run:
        print("\n--- Dry Run Mode: Files to be processed ---")
        for file_path in image_files:
            print(f"- {file_path}")
        print("--- End of Dry Run ---")
        return

    storage_service = get_storage_service()
    metadata_service = get_metadata_service(storage_service=storage_service)

    try:
        selection = ClassificationSelection.snapshot(
            [category.id for category in metadata_service.find_categories_by_name(_split_names(categories))],
            [tag.id for tag in metadata_service.find_tags_by_name(_split_names(tags))],
        )
    except GalleryError as e:
        print(f"Error: {e}")
        return

    submissions = [FileSubmission.from_path(file_path) for file_path in image_files]
    scheduler = BatchScheduler(FileUploadTask(storage_service, metadata_service), batch_width=batch_width or None)
    ledger = ProgressLedger()

    scheduler.run(submissions, selection, ledger)
    metadata_service.close()

    completed = ledger.completed()
    failed = ledger.failed()
    print(f"\nBatch upload complete. Successful: {len(completed)}, Failed: {len(failed)}")
    for key, record in failed.items():
        print(f"  FAILED {key}: {record.error_message}")


@task(name="reconcile-orphans")
def reconcile_orphans_task(c: Context, grace_hours: int = -1, dry_run: bool = False, env_file: str = ".env"):
    """
    Delete stored images that no image record refers to.

    Args:
        c (Context): Invoke context.
        grace_hours (int): Minimum object age in hours. Default is ORPHAN_GRACE_PERIOD_HOURS.
        dry_run (bool): If True, only lists the orphaned objects. Default is False.
        env_file (str): Path to the environment file. Default is '.env'.
    """
    _load_environment(env_file)

    storage_service = get_storage_service()
    metadata_service = get_metadata_service(storage_service=storage_service)
    grace_period = timedelta(hours=grace_hours) if grace_hours >= 0 else None

    result = reconcile_orphans(storage_service, metadata_service, grace_period=grace_period, dry_run=dry_run)

    header = "Orphaned objects (dry run)" if dry_run else "Orphaned objects"
    print(f"\n{header}: {len(result.orphaned)} of {result.scanned} scanned")
    for path in result.orphaned:
        status = "failed: " + result.failed[path] if path in result.failed else ("kept" if dry_run else "deleted")
        print(f"- {path} ({status})")
