"""Public gallery page for artgallery application."""

import streamlit as st
import structlog

from artgallery.ui.components.common import render_empty_state, render_error_message
from artgallery.ui.components.gallery import (
    render_gallery_filters,
    render_image_grid,
    render_pagination_controls,
    reset_gallery_pagination,
)
from artgallery.ui.handlers.error import GalleryError
from artgallery.ui.handlers.gallery import get_gallery_metadata_service, load_gallery_page

logger = structlog.get_logger(__name__)

PAGE_SIZE = 12


def render_gallery_page() -> None:
    """Render the public gallery with search and filters."""
    try:
        metadata_service = get_gallery_metadata_service()

        st.markdown("### 🖼️ Gallery")
        search, category_id, tag_id = render_gallery_filters(
            metadata_service.list_categories(), metadata_service.list_tags()
        )

        # A new filter starts from the first page
        filters = (search, category_id, tag_id)
        if st.session_state.get("gallery_filters") != filters:
            reset_gallery_pagination()
            st.session_state.gallery_filters = filters

        st.divider()

        images, has_more = load_gallery_page(
            search or None, category_id, tag_id, st.session_state.get("gallery_page", 0), PAGE_SIZE
        )

        if not images:
            render_empty_state(
                title="No images found",
                description="Try another search or filter, or upload some images.",
                icon="🖼️",
                action_text="Upload images",
                action_page="images",
            )
            return

        render_image_grid(images)
        render_pagination_controls(has_more)

    except GalleryError as e:
        logger.error("gallery_page_error", error=str(e))
        render_error_message("Gallery Error", e.user_message, str(e))
