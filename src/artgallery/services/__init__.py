"""
Services module for artgallery application.

This module contains all service classes that handle business logic:
- StorageService: Google Cloud Storage operations
- MetadataService: DuckDB metadata management
- ProgressLedger, FileUploadTask, BatchScheduler: the batch upload pipeline
- reconcile_orphans: cleanup of stored objects without an image record
"""

from .batch_scheduler import BatchScheduler, CancellationToken
from .ledger import ProgressLedger
from .metadata import MetadataError, MetadataService, get_metadata_service
from .reconciliation import ReconciliationResult, find_orphaned_objects, reconcile_orphans
from .storage import StorageError, StorageService, get_storage_service
from .upload_task import FileUploadTask, derive_stored_reference

__all__ = [
    "BatchScheduler",
    "CancellationToken",
    "ProgressLedger",
    "FileUploadTask",
    "derive_stored_reference",
    "MetadataError",
    "MetadataService",
    "get_metadata_service",
    "ReconciliationResult",
    "find_orphaned_objects",
    "reconcile_orphans",
    "StorageError",
    "StorageService",
    "get_storage_service",
]
