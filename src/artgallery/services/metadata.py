"""
Metadata service for managing gallery metadata with DuckDB.

This module provides the metadata store of the application:

1. Image records with their category and tag associations
2. Category and tag administration (create, rename, delete)
3. Gallery queries (search, filter, dashboard counts)
4. Optional backup of the DuckDB file to Google Cloud Storage

Image creation is atomic: the image row and all of its association rows
are written in a single DuckDB transaction, so an upload either produces a
fully classified record or nothing at all.

Every public method takes the service lock before touching the database.
Upload groups call ``create_image_record`` from several worker threads at
once and DuckDB connections must not be shared between threads.

Usage Examples:
    service = MetadataService(db_path="/tmp/gallery.db")
    landscape = service.create_category("Landscape")
    record = service.create_image_record(
        title="sunset", description="", path="3f9c.jpg", category_ids=[landscape.id], tag_ids=[]
    )
"""

import threading
from collections.abc import Iterable
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime
from pathlib import Path
from typing import Any

from artgallery.ui.handlers.error import DatabaseError, GalleryError, NotFoundError, StorageError, ValidationError
from ..config import get_database_path
from ..logging_config import get_logger, log_error, log_user_action
from ..models.database import DatabaseManager, create_database, get_database_manager
from ..models.image import Category, ImageRecord, Tag, utc_now
from .storage import StorageService

logger = get_logger(__name__)

# Keep backward compatibility alias
MetadataError = DatabaseError

_IMAGE_COLUMNS = "id, title, description, path, created_at, updated_at"

# Classification kind -> (table, link table, link column, model, label)
_CLASSIFICATIONS: dict[str, tuple[str, str, str, type, str]] = {
    "category": ("categories", "image_categories", "category_id", Category, "Category"),
    "tag": ("tags", "image_tags", "tag_id", Tag, "Tag"),
}


def _placeholders(count: int) -> str:
    return ", ".join(["?"] * count)


def _image_from_row(row: tuple) -> ImageRecord:
    return ImageRecord(
        id=row[0],
        title=row[1],
        description=row[2],
        path=row[3],
        created_at=row[4],
        updated_at=row[5],
    )


class MetadataService:
    """
    Service for managing gallery metadata with DuckDB.

    Attributes:
        db_path: Local DuckDB database file
        storage_service: Storage service used for database backups (optional)
    """

    def __init__(self, db_path: str | None = None, storage_service: StorageService | None = None):
        """
        Initialize the metadata service.

        Args:
            db_path: Local database file (defaults to GALLERY_DB_PATH)
            storage_service: When given and a database bucket is configured,
                the database file is restored from and backed up to GCS
        """
        self.db_path = Path(db_path or get_database_path())
        self.storage_service = storage_service
        self._db_manager: DatabaseManager | None = None
        self._lock = threading.RLock()

        self._sync_enabled = storage_service is not None and storage_service.has_database_bucket
        self._sync_executor: ThreadPoolExecutor | None = None
        self._pending_sync: Future | None = None
        self._last_sync_time: datetime | None = None

        logger.info(
            "metadata_service_initialized",
            db_path=str(self.db_path),
            sync_enabled=self._sync_enabled,
        )

    @property
    def db_manager(self) -> DatabaseManager:
        """Get database manager, initializing if needed."""
        if self._db_manager is None:
            self._db_manager = get_database_manager(str(self.db_path), create_if_missing=True)
        return self._db_manager

    def ensure_local_database(self) -> bool:
        """
        Ensure local database exists, downloading the backup from GCS if needed.

        Returns:
            bool: True if database was downloaded from GCS, False otherwise

        Raises:
            MetadataError: If database setup fails
        """
        with self._lock:
            if self.db_path.exists():
                return False

            try:
                if self._sync_enabled and self._download_from_gcs():
                    log_user_action("database_restored_from_gcs", db_path=str(self.db_path))
                    return True

                self.db_path.parent.mkdir(parents=True, exist_ok=True)
                self._db_manager = create_database(str(self.db_path))
                log_user_action("database_created", db_path=str(self.db_path))
                return False

            except Exception as e:
                if self.db_path.exists():
                    self.db_path.unlink()
                log_error(e, {"operation": "ensure_local_database", "db_path": str(self.db_path)})
                raise MetadataError(f"Failed to ensure local database: {e}", original_exception=e) from e

    def _download_from_gcs(self) -> bool:
        """Restore the database file from the database bucket; False when there is no backup."""
        if self.storage_service is None:
            raise MetadataError("Database backup is not configured")
        if not self.storage_service.database_file_exists(self.db_path.name):
            logger.debug("gcs_database_not_found", filename=self.db_path.name)
            return False

        db_data = self.storage_service.download_database_file(self.db_path.name)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.db_path.write_bytes(db_data)

        if not self.db_manager.verify_schema():
            self.db_manager.initialize_schema()
        self.db_manager.close()
        return True

    # ------------------------------------------------------------------
    # GCS backup
    # ------------------------------------------------------------------

    def sync_to_gcs(self) -> bool:
        """
        Upload the local database file to the database bucket.

        Returns:
            bool: True if uploaded, False if backups are disabled

        Raises:
            MetadataError: If the upload fails
        """
        if not self._sync_enabled or self.storage_service is None:
            return False

        with self._lock:
            if not self.db_path.exists():
                raise MetadataError("Local database does not exist")
            db_data = self.db_path.read_bytes()

        try:
            self.storage_service.upload_database_file(db_data, self.db_path.name)
        except StorageError as e:
            raise MetadataError(f"Failed to back up database: {e}", original_exception=e) from e

        self._last_sync_time = datetime.now()
        log_user_action("database_backed_up", file_size=len(db_data))
        return True

    def _sync_in_background(self) -> None:
        try:
            self.sync_to_gcs()
        except GalleryError as e:
            # Already logged on construction; the next write retries the backup
            logger.warning("background_database_sync_failed", error=str(e))

    def trigger_async_sync(self) -> None:
        """Schedule a backup after a write; no-op when backups are disabled."""
        if not self._sync_enabled:
            return
        if self._sync_executor is None:
            self._sync_executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="metadata-sync")
        self._pending_sync = self._sync_executor.submit(self._sync_in_background)

    def get_sync_status(self) -> dict[str, Any]:
        """Get backup status for the admin dashboard."""
        return {
            "sync_enabled": self._sync_enabled,
            "sync_pending": self._pending_sync is not None and not self._pending_sync.done(),
            "last_sync_time": self._last_sync_time.isoformat() if self._last_sync_time else None,
        }

    def close(self) -> None:
        """Wait for pending backups and release the database."""
        if self._sync_executor is not None:
            self._sync_executor.shutdown(wait=True)
            self._sync_executor = None
        with self._lock:
            if self._db_manager is not None:
                self._db_manager.close()

    # ------------------------------------------------------------------
    # Internal helpers (callers hold the lock and an open manager)
    # ------------------------------------------------------------------

    def _resolve_by_ids(self, db: DatabaseManager, kind: str, ids: Iterable[str]) -> list:
        table, _, _, model, label = _CLASSIFICATIONS[kind]
        wanted = list(dict.fromkeys(ids))
        if not wanted:
            return []

        rows = db.execute_query(f"SELECT id, name FROM {table} WHERE id IN ({_placeholders(len(wanted))})", wanted)
        found = {row[0]: model(id=row[0], name=row[1]) for row in rows}
        missing = [item_id for item_id in wanted if item_id not in found]
        if missing:
            raise NotFoundError(
                f"Unknown {label.lower()} reference(s): {', '.join(missing)}",
                code=f"{kind}_not_found",
                details={"missing": missing},
            )
        return [found[item_id] for item_id in wanted]

    def _resolve_by_names(self, db: DatabaseManager, kind: str, names: Iterable[str]) -> list:
        table, _, _, model, label = _CLASSIFICATIONS[kind]
        wanted = list(dict.fromkeys(name.strip() for name in names if name and name.strip()))
        if not wanted:
            return []

        rows = db.execute_query(
            f"SELECT id, name FROM {table} WHERE name IN ({_placeholders(len(wanted))})", wanted
        )
        found = {row[1]: model(id=row[0], name=row[1]) for row in rows}
        missing = [name for name in wanted if name not in found]
        if missing:
            raise NotFoundError(
                f"Unknown {label.lower()} name(s): {', '.join(missing)}",
                code=f"{kind}_not_found",
                details={"missing": missing},
            )
        return [found[name] for name in wanted]

    def _load_classifications(self, db: DatabaseManager, images: list[ImageRecord]) -> list[ImageRecord]:
        if not images:
            return images

        by_id = {image.id: image for image in images}
        marks = _placeholders(len(by_id))
        image_ids = list(by_id)

        category_rows = db.execute_query(
            f"""SELECT ic.image_id, c.id, c.name
                FROM image_categories ic JOIN categories c ON c.id = ic.category_id
                WHERE ic.image_id IN ({marks})
                ORDER BY c.name""",
            image_ids,
        )
        for image_id, category_id, name in category_rows:
            by_id[image_id].categories.append(Category(id=category_id, name=name))

        tag_rows = db.execute_query(
            f"""SELECT it.image_id, t.id, t.name
                FROM image_tags it JOIN tags t ON t.id = it.tag_id
                WHERE it.image_id IN ({marks})
                ORDER BY t.name""",
            image_ids,
        )
        for image_id, tag_id, name in tag_rows:
            by_id[image_id].tags.append(Tag(id=tag_id, name=name))

        return images

    def _fetch_image(self, db: DatabaseManager, image_id: str) -> ImageRecord | None:
        rows = db.execute_query(f"SELECT {_IMAGE_COLUMNS} FROM images WHERE id = ?", (image_id,))
        if not rows:
            return None
        return self._load_classifications(db, [_image_from_row(rows[0])])[0]

    def _require_image(self, db: DatabaseManager, image_id: str) -> ImageRecord:
        image = self._fetch_image(db, image_id)
        if image is None:
            raise NotFoundError(f"Image not found: {image_id}", code="image_not_found")
        return image

    def _replace_links(self, db: DatabaseManager, kind: str, image_id: str, new_ids: list[str]) -> None:
        # Only the difference is written; re-inserting a deleted key in the same
        # transaction trips DuckDB's unique index checks.
        _, link_table, link_column, _, _ = _CLASSIFICATIONS[kind]
        current = {
            row[0]
            for row in db.execute_query(f"SELECT {link_column} FROM {link_table} WHERE image_id = ?", (image_id,))
        }
        wanted = set(new_ids)

        for stale_id in current - wanted:
            db.execute_query(
                f"DELETE FROM {link_table} WHERE image_id = ? AND {link_column} = ?", (image_id, stale_id)
            )
        for new_id in new_ids:
            if new_id not in current:
                db.execute_query(
                    f"INSERT INTO {link_table} (image_id, {link_column}) VALUES (?, ?)", (image_id, new_id)
                )

    def _run(self, operation: str, func, **context: Any):
        """Run ``func(db)`` under the lock, wrapping unexpected errors in MetadataError."""
        try:
            with self._lock:
                self.ensure_local_database()
                with self.db_manager as db:
                    return func(db)
        except GalleryError:
            raise
        except Exception as e:
            log_error(e, {"operation": operation, **context})
            raise MetadataError(f"Failed to {operation.replace('_', ' ')}: {e}", original_exception=e) from e

    # ------------------------------------------------------------------
    # Images
    # ------------------------------------------------------------------

    def create_image_record(
        self,
        title: str,
        description: str,
        path: str,
        category_ids: Iterable[str] = (),
        tag_ids: Iterable[str] = (),
    ) -> ImageRecord:
        """
        Create an image record and its classification links atomically.

        Args:
            title: Display title
            description: Free text description
            path: Stored object reference of the uploaded bytes
            category_ids: Category ids to link
            tag_ids: Tag ids to link

        Returns:
            ImageRecord: The persisted record with categories and tags populated

        Raises:
            ValidationError: If title or path is empty
            NotFoundError: If a category or tag id does not exist
            MetadataError: If the database write fails
        """
        record = ImageRecord.create_new(title=title, path=path, description=description or "")
        if not record.validate():
            raise ValidationError("Invalid image metadata: title and path are required")

        def insert(db: DatabaseManager) -> ImageRecord:
            with db.transaction():
                record.categories = self._resolve_by_ids(db, "category", category_ids)
                record.tags = self._resolve_by_ids(db, "tag", tag_ids)

                db.execute_query(
                    f"INSERT INTO images ({_IMAGE_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?)",
                    (
                        record.id,
                        record.title,
                        record.description,
                        record.path,
                        record.created_at,
                        record.updated_at,
                    ),
                )
                for category in record.categories:
                    db.execute_query(
                        "INSERT INTO image_categories (image_id, category_id) VALUES (?, ?)", (record.id, category.id)
                    )
                for tag in record.tags:
                    db.execute_query("INSERT INTO image_tags (image_id, tag_id) VALUES (?, ?)", (record.id, tag.id))
            return record

        created = self._run("create_image_record", insert, path=path)
        log_user_action(
            "image_record_created",
            image_id=created.id,
            path=created.path,
            categories=len(created.categories),
            tags=len(created.tags),
        )
        self.trigger_async_sync()
        return created

    def get_image(self, image_id: str) -> ImageRecord | None:
        """
        Get an image by ID.

        Returns:
            ImageRecord or None if not found
        """
        return self._run("get_image", lambda db: self._fetch_image(db, image_id), image_id=image_id)

    def list_images(
        self,
        search: str | None = None,
        category_id: str | None = None,
        tag_id: str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[ImageRecord]:
        """
        List images, newest first, with categories and tags populated.

        Args:
            search: Case-insensitive substring matched against title and description
            category_id: Only images linked to this category
            tag_id: Only images linked to this tag
            limit: Maximum number of images (all when None)
            offset: Number of images to skip

        Returns:
            List of ImageRecord instances
        """
        clauses: list[str] = []
        parameters: list[Any] = []

        if search and search.strip():
            needle = search.strip().lower()
            clauses.append("(contains(lower(title), ?) OR contains(lower(description), ?))")
            parameters.extend([needle, needle])
        if category_id:
            clauses.append(
                "EXISTS (SELECT 1 FROM image_categories ic WHERE ic.image_id = images.id AND ic.category_id = ?)"
            )
            parameters.append(category_id)
        if tag_id:
            clauses.append("EXISTS (SELECT 1 FROM image_tags it WHERE it.image_id = images.id AND it.tag_id = ?)")
            parameters.append(tag_id)

        query = f"SELECT {_IMAGE_COLUMNS} FROM images"
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        query += " ORDER BY created_at DESC, id"
        if limit is not None:
            query += " LIMIT ? OFFSET ?"
            parameters.extend([limit, offset])

        def fetch(db: DatabaseManager) -> list[ImageRecord]:
            images = [_image_from_row(row) for row in db.execute_query(query, parameters)]
            return self._load_classifications(db, images)

        images = self._run("list_images", fetch, search=search, category_id=category_id, tag_id=tag_id)
        logger.debug("images_listed", count=len(images), search=search, category_id=category_id, tag_id=tag_id)
        return images

    def count_images(self) -> int:
        """Get total number of images."""
        return self._run("count_images", lambda db: db.execute_query("SELECT COUNT(*) FROM images")[0][0])

    def get_all_image_paths(self) -> set[str]:
        """Get every stored object reference known to the metadata store."""
        rows = self._run("get_all_image_paths", lambda db: db.execute_query("SELECT path FROM images"))
        return {row[0] for row in rows}

    def update_image(self, image_id: str, title: str, description: str) -> ImageRecord:
        """
        Update title and description of an image.

        Raises:
            ValidationError: If the title is empty
            NotFoundError: If the image does not exist
        """
        title = (title or "").strip()
        if not title:
            raise ValidationError("Image title is required")

        def update(db: DatabaseManager) -> ImageRecord:
            self._require_image(db, image_id)
            db.execute_query(
                "UPDATE images SET title = ?, description = ?, updated_at = ? WHERE id = ?",
                (title, (description or "").strip(), utc_now(), image_id),
            )
            return self._require_image(db, image_id)

        updated = self._run("update_image", update, image_id=image_id)
        log_user_action("image_updated", image_id=image_id)
        self.trigger_async_sync()
        return updated

    def set_image_classifications(
        self, image_id: str, category_names: Iterable[str], tag_names: Iterable[str]
    ) -> ImageRecord:
        """
        Replace the categories and tags of an image, addressed by name.

        Raises:
            NotFoundError: If the image or any named category/tag does not exist
        """

        def replace_links(db: DatabaseManager) -> ImageRecord:
            with db.transaction():
                self._require_image(db, image_id)
                categories = self._resolve_by_names(db, "category", category_names)
                tags = self._resolve_by_names(db, "tag", tag_names)
                self._replace_links(db, "category", image_id, [category.id for category in categories])
                self._replace_links(db, "tag", image_id, [tag.id for tag in tags])
                db.execute_query("UPDATE images SET updated_at = ? WHERE id = ?", (utc_now(), image_id))
            return self._require_image(db, image_id)

        updated = self._run("set_image_classifications", replace_links, image_id=image_id)
        log_user_action(
            "image_classifications_updated",
            image_id=image_id,
            categories=[category.name for category in updated.categories],
            tags=[tag.name for tag in updated.tags],
        )
        self.trigger_async_sync()
        return updated

    def delete_image_record(self, image_id: str) -> bool:
        """
        Delete an image record and its links.

        Returns:
            True if deleted, False if not found
        """

        def delete(db: DatabaseManager) -> bool:
            if not db.execute_query("SELECT id FROM images WHERE id = ?", (image_id,)):
                return False
            with db.transaction():
                db.execute_query("DELETE FROM image_categories WHERE image_id = ?", (image_id,))
                db.execute_query("DELETE FROM image_tags WHERE image_id = ?", (image_id,))
                db.execute_query("DELETE FROM images WHERE id = ?", (image_id,))
            return True

        deleted = self._run("delete_image_record", delete, image_id=image_id)
        if deleted:
            log_user_action("image_record_deleted", image_id=image_id)
            self.trigger_async_sync()
        else:
            logger.warning("image_not_found_for_deletion", image_id=image_id)
        return deleted

    # ------------------------------------------------------------------
    # Categories and tags
    # ------------------------------------------------------------------

    def _list_classifications(self, kind: str) -> list:
        table, _, _, model, _ = _CLASSIFICATIONS[kind]
        rows = self._run(f"list_{table}", lambda db: db.execute_query(f"SELECT id, name FROM {table} ORDER BY name"))
        return [model(id=row[0], name=row[1]) for row in rows]

    def _clean_name(self, kind: str, name: str) -> str:
        cleaned = (name or "").strip()
        if not cleaned:
            raise ValidationError(f"{_CLASSIFICATIONS[kind][4]} name is required")
        return cleaned

    def _ensure_name_available(self, db: DatabaseManager, kind: str, name: str, exclude_id: str | None = None) -> None:
        table, _, _, _, label = _CLASSIFICATIONS[kind]
        rows = db.execute_query(f"SELECT id FROM {table} WHERE name = ?", (name,))
        if any(row[0] != exclude_id for row in rows):
            raise ValidationError(f"{label} '{name}' already exists", code=f"duplicate_{kind}")

    def _create_classification(self, kind: str, name: str):
        table, _, _, model, _ = _CLASSIFICATIONS[kind]
        item = model.create_new(self._clean_name(kind, name))

        def insert(db: DatabaseManager):
            self._ensure_name_available(db, kind, item.name)
            db.execute_query(f"INSERT INTO {table} (id, name) VALUES (?, ?)", (item.id, item.name))
            return item

        created = self._run(f"create_{kind}", insert, name=item.name)
        log_user_action(f"{kind}_created", id=created.id, name=created.name)
        self.trigger_async_sync()
        return created

    def _rename_classification(self, kind: str, item_id: str, name: str):
        table, _, _, model, label = _CLASSIFICATIONS[kind]
        new_name = self._clean_name(kind, name)

        def rename(db: DatabaseManager):
            if not db.execute_query(f"SELECT id FROM {table} WHERE id = ?", (item_id,)):
                raise NotFoundError(f"{label} not found: {item_id}", code=f"{kind}_not_found")
            self._ensure_name_available(db, kind, new_name, exclude_id=item_id)
            db.execute_query(f"UPDATE {table} SET name = ? WHERE id = ?", (new_name, item_id))
            return model(id=item_id, name=new_name)

        renamed = self._run(f"rename_{kind}", rename, id=item_id)
        log_user_action(f"{kind}_renamed", id=item_id, name=new_name)
        self.trigger_async_sync()
        return renamed

    def _delete_classification(self, kind: str, item_id: str) -> bool:
        table, link_table, link_column, _, _ = _CLASSIFICATIONS[kind]

        def delete(db: DatabaseManager) -> bool:
            if not db.execute_query(f"SELECT id FROM {table} WHERE id = ?", (item_id,)):
                return False
            with db.transaction():
                db.execute_query(f"DELETE FROM {link_table} WHERE {link_column} = ?", (item_id,))
                db.execute_query(f"DELETE FROM {table} WHERE id = ?", (item_id,))
            return True

        deleted = self._run(f"delete_{kind}", delete, id=item_id)
        if deleted:
            log_user_action(f"{kind}_deleted", id=item_id)
            self.trigger_async_sync()
        return deleted

    def _find_by_names(self, kind: str, names: Iterable[str]) -> list:
        return self._run(f"find_{kind}_by_names", lambda db: self._resolve_by_names(db, kind, names))

    def list_categories(self) -> list[Category]:
        """Get all categories ordered by name."""
        return self._list_classifications("category")

    def create_category(self, name: str) -> Category:
        """Create a category; names are trimmed and must be unique."""
        return self._create_classification("category", name)

    def rename_category(self, category_id: str, name: str) -> Category:
        """Rename a category."""
        return self._rename_classification("category", category_id, name)

    def delete_category(self, category_id: str) -> bool:
        """Delete a category and unlink it from all images."""
        return self._delete_classification("category", category_id)

    def find_categories_by_name(self, names: Iterable[str]) -> list[Category]:
        """Resolve category names to categories; unknown names raise NotFoundError."""
        return self._find_by_names("category", names)

    def list_tags(self) -> list[Tag]:
        """Get all tags ordered by name."""
        return self._list_classifications("tag")

    def create_tag(self, name: str) -> Tag:
        """Create a tag; names are trimmed and must be unique."""
        return self._create_classification("tag", name)

    def rename_tag(self, tag_id: str, name: str) -> Tag:
        """Rename a tag."""
        return self._rename_classification("tag", tag_id, name)

    def delete_tag(self, tag_id: str) -> bool:
        """Delete a tag and unlink it from all images."""
        return self._delete_classification("tag", tag_id)

    def find_tags_by_name(self, names: Iterable[str]) -> list[Tag]:
        """Resolve tag names to tags; unknown names raise NotFoundError."""
        return self._find_by_names("tag", names)

    def get_dashboard_stats(self) -> dict[str, int]:
        """Get image, category and tag counts for the admin dashboard."""

        def count(db: DatabaseManager) -> dict[str, int]:
            return {
                "image_count": db.execute_query("SELECT COUNT(*) FROM images")[0][0],
                "category_count": db.execute_query("SELECT COUNT(*) FROM categories")[0][0],
                "tag_count": db.execute_query("SELECT COUNT(*) FROM tags")[0][0],
            }

        return self._run("get_dashboard_stats", count)


# Global metadata service instance
_metadata_service: MetadataService | None = None


def get_metadata_service(
    db_path: str | None = None, storage_service: StorageService | None = None
) -> MetadataService:
    """
    Get the global metadata service instance.

    Args:
        db_path: Local database file (optional, uses GALLERY_DB_PATH if not provided)
        storage_service: Storage service for database backups (optional)

    Returns:
        MetadataService: Global metadata service instance
    """
    global _metadata_service
    if _metadata_service is None:
        _metadata_service = MetadataService(db_path=db_path, storage_service=storage_service)
    return _metadata_service


def cleanup_metadata_service() -> None:
    """Close and drop the global metadata service."""
    global _metadata_service
    if _metadata_service is not None:
        _metadata_service.close()
    _metadata_service = None
