"""Admin image page for artgallery application.

Uploads run in the background; while a batch is active the page reruns on a
short interval and redraws progress from the ledger.
"""

import time

import streamlit as st
import structlog

from artgallery.config import get_upload_batch_width
from artgallery.models.image import ImageRecord
from artgallery.ui.components.common import format_file_size, render_empty_state, render_error_message
from artgallery.ui.components.gallery import render_image_details
from artgallery.ui.components.upload import render_batch_summary, render_ledger_progress
from artgallery.ui.handlers.error import GalleryError, handle_error
from artgallery.ui.handlers.gallery import delete_image, get_gallery_metadata_service, get_image_url
from artgallery.ui.handlers.upload import (
    cancel_active_batch,
    clear_upload_session_state,
    get_active_batch,
    read_uploaded_files,
    start_batch_upload,
    summarize_batch,
)

logger = structlog.get_logger()

POLL_INTERVAL_SECONDS = 0.5


def _render_upload_form() -> None:
    """File uploader with a batch-wide category/tag selection."""
    metadata_service = get_gallery_metadata_service()
    categories = {category.name: category.id for category in metadata_service.list_categories()}
    tags = {tag.name: tag.id for tag in metadata_service.list_tags()}

    st.markdown("#### 📤 Upload images")
    st.caption(f"Files are uploaded {get_upload_batch_width()} at a time.")

    uploaded_files = st.file_uploader(
        "Drop images here or click to browse",
        accept_multiple_files=True,
        key=f"image_uploader_{st.session_state.get('uploader_generation', 0)}",
    )
    selected_categories = st.multiselect("Categories", list(categories), key="upload_categories")
    selected_tags = st.multiselect("Tags", list(tags), key="upload_tags")

    if not uploaded_files:
        return

    total_size = sum(uploaded_file.size for uploaded_file in uploaded_files)
    st.caption(f"{len(uploaded_files)} file(s), {format_file_size(total_size)}")

    if st.button(f"🚀 Upload {len(uploaded_files)} file(s)", type="primary", use_container_width=True):
        submissions = read_uploaded_files(uploaded_files)
        start_batch_upload(
            submissions,
            category_ids=[categories[name] for name in selected_categories],
            tag_ids=[tags[name] for name in selected_tags],
        )
        # A fresh uploader key empties the drop zone for the next batch
        st.session_state.uploader_generation = st.session_state.get("uploader_generation", 0) + 1
        st.rerun()


def _render_active_batch() -> bool:
    """
    Render the current batch, if any.

    Returns:
        bool: True while the batch is still running
    """
    batch = get_active_batch()
    if batch is None:
        return False

    st.markdown("#### ⬆️ Upload progress")
    render_ledger_progress(batch.ledger)

    if not batch.finished:
        if st.button("⏹️ Cancel remaining files", disabled=batch.cancel_token.cancelled):
            cancel_active_batch()
        return True

    render_batch_summary(summarize_batch(batch))
    if st.button("Done", type="primary"):
        clear_upload_session_state()
        st.rerun()
    return False


def _render_image_editor(image: ImageRecord, category_names: list[str], tag_names: list[str]) -> None:
    metadata_service = get_gallery_metadata_service()

    with st.form(key=f"edit_{image.id}"):
        title = st.text_input("Title", value=image.title)
        description = st.text_area("Description", value=image.description)
        selected_categories = st.multiselect(
            "Categories", category_names, default=[category.name for category in image.categories]
        )
        selected_tags = st.multiselect("Tags", tag_names, default=[tag.name for tag in image.tags])
        submitted = st.form_submit_button("💾 Save")

    if submitted:
        try:
            metadata_service.update_image(image.id, title, description)
            metadata_service.set_image_classifications(image.id, selected_categories, selected_tags)
        except GalleryError as e:
            render_error_message("Update Error", e.user_message, str(e))
        else:
            st.rerun()

    if st.button("🗑️ Delete image", key=f"delete_{image.id}"):
        try:
            delete_image(image.id)
        except Exception as e:
            error_info = handle_error(e, {"operation": "delete_image", "image_id": image.id})
            render_error_message("Delete Error", error_info.user_message, error_info.message)
        else:
            st.rerun()


def _render_image_list() -> None:
    metadata_service = get_gallery_metadata_service()
    images = metadata_service.list_images()

    st.markdown(f"#### 🖼️ Images ({len(images)})")
    if not images:
        render_empty_state("No images yet", "Upload images above to get started.", icon="🖼️")
        return

    category_names = [category.name for category in metadata_service.list_categories()]
    tag_names = [tag.name for tag in metadata_service.list_tags()]

    for image in images:
        with st.expander(image.title):
            col1, col2 = st.columns([1, 2])
            with col1:
                url = get_image_url(image.path)
                if url:
                    st.image(url, use_container_width=True)
                render_image_details(image)
            with col2:
                _render_image_editor(image, category_names, tag_names)


def render_images_page() -> None:
    """Render upload form, live progress and image management."""
    st.markdown("### 📤 Images")

    try:
        batch_running = _render_active_batch()
        if get_active_batch() is None:
            _render_upload_form()

        st.divider()
        _render_image_list()

    except GalleryError as e:
        logger.error("images_page_error", error=str(e))
        render_error_message("Images Error", e.user_message, str(e))
        return

    if batch_running:
        time.sleep(POLL_INTERVAL_SECONDS)
        st.rerun()
