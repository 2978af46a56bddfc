"""
Google Cloud Storage access for artgallery.

Two buckets are involved: the images bucket holds uploaded bytes under
random object names, and the optional database bucket holds the DuckDB
backup under ``databases/``.
"""

import os
from datetime import datetime, timedelta
from pathlib import Path

import google.auth
import google.auth.transport.requests
from google.auth.exceptions import RefreshError
from google.cloud import storage  # type: ignore[attr-defined]
from google.cloud.exceptions import GoogleCloudError, NotFound

from artgallery.ui.handlers.error import StorageError
from ..logging_config import get_logger

logger = get_logger(__name__)

DATABASE_PREFIX = "databases/"
DEFAULT_CONTENT_TYPE = "application/octet-stream"

IMAGE_CONTENT_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".svg": "image/svg+xml",
    ".avif": "image/avif",
    ".heic": "image/heic",
    ".heif": "image/heif",
    ".bmp": "image/bmp",
    ".tif": "image/tiff",
    ".tiff": "image/tiff",
}


def content_type_for(filename: str) -> str:
    """MIME type from the file extension; bytes are never inspected."""
    return IMAGE_CONTENT_TYPES.get(Path(filename).suffix.lower(), DEFAULT_CONTENT_TYPE)


class StorageService:
    """Images bucket and database backup bucket operations."""

    def __init__(self, bucket_name: str | None = None, project_id: str | None = None) -> None:
        """
        Connect to GCS.

        Args:
            bucket_name: Images bucket, defaults to GCS_IMAGES_BUCKET
            project_id: GCP project, defaults to GOOGLE_CLOUD_PROJECT

        GCS_DATABASE_BUCKET enables the database backup bucket and
        GCS_SIGNED_URL_EXPIRATION sets the default signed URL lifetime.

        Raises:
            StorageError: If a required setting is missing or the client fails
        """
        self.images_bucket_name = bucket_name or os.getenv("GCS_IMAGES_BUCKET")
        self.project_id = project_id or os.getenv("GOOGLE_CLOUD_PROJECT")
        self.database_bucket_name = os.getenv("GCS_DATABASE_BUCKET") or None
        self.default_signed_url_expiration = int(os.getenv("GCS_SIGNED_URL_EXPIRATION", "3600"))

        required = {"GCS_IMAGES_BUCKET": self.images_bucket_name, "GOOGLE_CLOUD_PROJECT": self.project_id}
        for variable, value in required.items():
            if not value:
                raise StorageError(f"{variable} environment variable is required", code="storage_not_configured")

        try:
            self.client = storage.Client(project=self.project_id)
        except Exception as e:
            raise StorageError(f"Failed to initialize GCS client: {e}", original_exception=e) from e

        self.images_bucket = self.client.bucket(self.images_bucket_name)
        self.database_bucket = self.client.bucket(self.database_bucket_name) if self.database_bucket_name else None

        logger.info(
            "storage_service_initialized",
            images_bucket=self.images_bucket_name,
            database_bucket=self.database_bucket_name,
            project_id=self.project_id,
        )

    @property
    def has_database_bucket(self) -> bool:
        return self.database_bucket is not None

    # ------------------------------------------------------------------
    # Images bucket
    # ------------------------------------------------------------------

    def store_image(self, reference: str, file_data: bytes, original_filename: str = "") -> dict:
        """
        Write ``file_data`` to the images bucket as object ``reference``.

        References are freshly generated per upload, so nothing is checked
        for an existing object first.

        Args:
            reference: Object name
            file_data: Raw bytes, stored as-is
            original_filename: Submitted name, kept in the object metadata

        Returns:
            dict: ``path``, ``file_size``, ``content_type``, ``uploaded_at`` and ``generation``

        Raises:
            StorageError: If the upload fails
        """
        display_name = original_filename or reference
        content_type = content_type_for(display_name)
        uploaded_at = datetime.now().isoformat()

        blob = self.images_bucket.blob(reference)
        blob.metadata = {"original_filename": original_filename, "uploaded_at": uploaded_at}
        try:
            blob.upload_from_string(file_data, content_type=content_type)
        except GoogleCloudError as e:
            raise StorageError(
                f"Failed to store image '{display_name}': {e}", details={"reference": reference}, original_exception=e
            ) from e
        except Exception as e:
            raise StorageError(
                f"Unexpected error storing image '{display_name}': {e}",
                details={"reference": reference},
                original_exception=e,
            ) from e

        logger.info("image_stored", reference=reference, file_size=len(file_data), content_type=content_type)
        return {
            "path": reference,
            "file_size": len(file_data),
            "content_type": content_type,
            "uploaded_at": uploaded_at,
            "generation": blob.generation,
        }

    def get_signed_url(self, path: str, expiration: int | None = None) -> str:
        """
        V4 signed GET URL for an image object.

        Signing goes through the IAM credentials of the runtime service
        account, so no key file is needed on Cloud Run.

        Raises:
            StorageError: If signing fails
        """
        lifetime = expiration if expiration is not None else self.default_signed_url_expiration
        try:
            credentials, _ = google.auth.default()
            try:
                credentials.refresh(google.auth.transport.requests.Request())
            except RefreshError as e:
                # User credentials from gcloud cannot always be refreshed here
                logger.debug("credential_refresh_skipped", error=str(e))

            signed_url: str = self.images_bucket.blob(path).generate_signed_url(
                expiration=datetime.now() + timedelta(seconds=lifetime),
                method="GET",
                version="v4",
                service_account_email=getattr(credentials, "service_account_email", None),
                access_token=credentials.token,
            )
        except GoogleCloudError as e:
            raise StorageError(f"Failed to generate signed URL for '{path}': {e}", original_exception=e) from e
        except Exception as e:
            raise StorageError(f"Unexpected error generating signed URL: {e}", original_exception=e) from e

        logger.debug("signed_url_generated", path=path, expiration=lifetime)
        return signed_url

    def delete_file(self, path: str) -> None:
        """
        Delete an image object; a missing object counts as deleted.

        Raises:
            StorageError: If GCS refuses the delete
        """
        try:
            self.images_bucket.blob(path).delete()
        except NotFound:
            logger.warning("image_object_already_missing", path=path)
            return
        except GoogleCloudError as e:
            raise StorageError(f"Failed to delete file '{path}': {e}", original_exception=e) from e
        logger.info("image_object_deleted", path=path)

    def list_images(self, prefix: str = "") -> list[dict]:
        """
        Objects in the images bucket (folder placeholders excluded).

        Returns:
            list[dict]: ``path``, ``size`` and ``created_at`` per object

        Raises:
            StorageError: If listing fails
        """
        try:
            objects = [
                {"path": blob.name, "size": blob.size, "created_at": blob.time_created}
                for blob in self.client.list_blobs(self.images_bucket, prefix=prefix or None)
                if not blob.name.endswith("/")
            ]
        except GoogleCloudError as e:
            raise StorageError(f"Failed to list images: {e}", original_exception=e) from e

        logger.debug("images_listed", count=len(objects), prefix=prefix)
        return objects

    # ------------------------------------------------------------------
    # Database backup bucket
    # ------------------------------------------------------------------

    def _database_blob(self, filename: str):
        if self.database_bucket is None:
            raise StorageError("GCS_DATABASE_BUCKET is not configured", code="database_bucket_missing")
        return self.database_bucket.blob(f"{DATABASE_PREFIX}{filename}")

    def database_file_exists(self, filename: str) -> bool:
        blob = self._database_blob(filename)
        try:
            return bool(blob.exists())
        except GoogleCloudError as e:
            raise StorageError(f"Failed to check database file existence: {e}", original_exception=e) from e

    def upload_database_file(self, file_data: bytes, filename: str) -> dict[str, str]:
        """
        Replace the database backup with ``file_data``.

        Returns:
            dict: ``gcs_path``, ``bucket``, ``filename`` and ``file_size``

        Raises:
            StorageError: If no database bucket is configured or the upload fails
        """
        blob = self._database_blob(filename)
        blob.metadata = {"filename": filename, "upload_timestamp": datetime.now().isoformat()}
        try:
            blob.upload_from_string(file_data, content_type=DEFAULT_CONTENT_TYPE)
        except GoogleCloudError as e:
            raise StorageError(f"Failed to upload database file '{filename}': {e}", original_exception=e) from e

        logger.info("database_file_uploaded", filename=filename, file_size=len(file_data))
        return {
            "gcs_path": f"{DATABASE_PREFIX}{filename}",
            "bucket": self.database_bucket_name or "",
            "filename": filename,
            "file_size": str(len(file_data)),
        }

    def download_database_file(self, filename: str) -> bytes:
        """
        Fetch the database backup.

        Raises:
            StorageError: If the backup is missing or the download fails
        """
        blob = self._database_blob(filename)
        try:
            file_data: bytes = blob.download_as_bytes()
        except NotFound as e:
            raise StorageError(
                f"Database file not found: {DATABASE_PREFIX}{filename}", code="database_not_found", original_exception=e
            ) from e
        except GoogleCloudError as e:
            raise StorageError(f"Failed to download database file '{filename}': {e}", original_exception=e) from e

        logger.info("database_file_downloaded", filename=filename, file_size=len(file_data))
        return file_data


_storage_service: StorageService | None = None


def get_storage_service(bucket_name: str | None = None, project_id: str | None = None) -> StorageService:
    """Process-wide storage service, created on first use."""
    global _storage_service
    if _storage_service is None:
        _storage_service = StorageService(bucket_name=bucket_name, project_id=project_id)
    return _storage_service


def reset_storage_service() -> None:
    """Forget the process-wide instance (tests and configuration changes)."""
    global _storage_service
    _storage_service = None
