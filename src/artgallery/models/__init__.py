"""
Models module for artgallery application.

This module contains data models and schemas:
- ImageRecord, Category, Tag: rows of the metadata store
- FileSubmission, FileStatusRecord: upload pipeline state
- DatabaseManager: Database connection and schema management
"""

from .database import DatabaseManager, create_database, get_database_manager
from .image import Category, ImageRecord, Tag
from .schema import get_schema_statements, validate_schema_compatibility
from .upload import ClassificationSelection, FileStatusRecord, FileSubmission, UploadStage

__all__ = [
    "Category",
    "ClassificationSelection",
    "DatabaseManager",
    "FileStatusRecord",
    "FileSubmission",
    "ImageRecord",
    "Tag",
    "UploadStage",
    "create_database",
    "get_database_manager",
    "get_schema_statements",
    "validate_schema_compatibility",
]
