"""Gallery handlers for artgallery application."""

from datetime import UTC, datetime

import streamlit as st
import structlog

from artgallery.config import get_signed_url_expiration
from artgallery.models.image import ImageRecord
from artgallery.services.metadata import MetadataService, get_metadata_service
from artgallery.services.storage import get_storage_service
from artgallery.ui.handlers.error import NotFoundError, StorageError

logger = structlog.get_logger(__name__)


def get_gallery_metadata_service() -> MetadataService:
    """Metadata service wired to the storage service for database backups."""
    return get_metadata_service(storage_service=get_storage_service())


def load_gallery_page(
    search: str | None,
    category_id: str | None,
    tag_id: str | None,
    page: int,
    page_size: int,
) -> tuple[list[ImageRecord], bool]:
    """
    Load one page of gallery images.

    Args:
        search: Text filter on title and description
        category_id: Category filter
        tag_id: Tag filter
        page: Zero based page index
        page_size: Images per page

    Returns:
        tuple: (images, has_more)
    """
    metadata_service = get_gallery_metadata_service()

    # One extra row tells whether another page exists
    images = metadata_service.list_images(
        search=search,
        category_id=category_id,
        tag_id=tag_id,
        limit=page_size + 1,
        offset=page * page_size,
    )
    has_more = len(images) > page_size

    logger.debug(
        "gallery_page_loaded",
        page=page,
        page_size=page_size,
        returned=min(len(images), page_size),
        has_more=has_more,
    )
    return images[:page_size], has_more


@st.cache_data(ttl=600, show_spinner=False)
def get_image_url(path: str) -> str | None:
    """
    Get a signed URL for an image object.

    URLs are cached for a fraction of their lifetime so reruns do not sign
    every image again.

    Returns:
        str: Signed URL, or None when signing fails
    """
    try:
        return get_storage_service().get_signed_url(path, expiration=get_signed_url_expiration())
    except StorageError as e:
        logger.warning("signed_url_failed", path=path, error=str(e))
        return None


def format_timestamp(timestamp: datetime | None) -> str:
    """Format a stored (naive UTC) timestamp for display."""
    if timestamp is None:
        return "-"
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=UTC)
    return timestamp.astimezone(UTC).strftime("%Y-%m-%d %H:%M UTC")


def delete_image(image_id: str) -> None:
    """
    Delete an image: the stored object first, then its record.

    If the storage delete fails the record is kept so the image stays
    manageable and the delete can be retried.

    Raises:
        NotFoundError: If the image does not exist
        StorageError: If the stored object cannot be deleted
        DatabaseError: If the record cannot be deleted
    """
    metadata_service = get_gallery_metadata_service()
    image = metadata_service.get_image(image_id)
    if image is None:
        raise NotFoundError(f"Image not found: {image_id}", code="image_not_found")

    get_storage_service().delete_file(image.path)
    metadata_service.delete_image_record(image_id)
    get_image_url.clear()

    logger.info("image_deleted", image_id=image_id, path=image.path)
