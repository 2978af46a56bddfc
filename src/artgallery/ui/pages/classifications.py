"""Admin page for categories and tags."""

from collections.abc import Callable

import streamlit as st
import structlog

from artgallery.ui.components.common import render_error_message
from artgallery.ui.handlers.error import GalleryError
from artgallery.ui.handlers.gallery import get_gallery_metadata_service

logger = structlog.get_logger()


def _render_section(
    label: str,
    items: list,
    create: Callable[[str], object],
    rename: Callable[[str, str], object],
    delete: Callable[[str], bool],
) -> None:
    """Create form plus one rename/delete row per item."""
    st.markdown(f"#### {label}")

    with st.form(key=f"create_{label}", clear_on_submit=True):
        name = st.text_input(f"New {label.lower()[:-1]}", key=f"new_{label}")
        if st.form_submit_button("➕ Add"):
            try:
                create(name)
                st.rerun()
            except GalleryError as e:
                render_error_message("Create Error", e.user_message)

    if not items:
        st.caption(f"No {label.lower()} yet.")
        return

    for item in items:
        col1, col2, col3 = st.columns([3, 1, 1])
        with col1:
            new_name = st.text_input("Name", value=item.name, key=f"name_{item.id}", label_visibility="collapsed")
        with col2:
            if st.button("✏️ Rename", key=f"rename_{item.id}", disabled=new_name.strip() == item.name):
                try:
                    rename(item.id, new_name)
                    st.rerun()
                except GalleryError as e:
                    render_error_message("Rename Error", e.user_message)
        with col3:
            if st.button("🗑️ Delete", key=f"delete_{item.id}"):
                try:
                    delete(item.id)
                    st.rerun()
                except GalleryError as e:
                    render_error_message("Delete Error", e.user_message)


def render_classifications_page() -> None:
    """Render category and tag administration side by side."""
    st.markdown("### 🏷️ Categories & Tags")

    try:
        metadata_service = get_gallery_metadata_service()
        categories = metadata_service.list_categories()
        tags = metadata_service.list_tags()
    except GalleryError as e:
        logger.error("classifications_page_error", error=str(e))
        render_error_message("Load Error", e.user_message, str(e))
        return

    col1, col2 = st.columns(2)
    with col1:
        _render_section(
            "Categories",
            categories,
            metadata_service.create_category,
            metadata_service.rename_category,
            metadata_service.delete_category,
        )
    with col2:
        _render_section(
            "Tags",
            tags,
            metadata_service.create_tag,
            metadata_service.rename_tag,
            metadata_service.delete_tag,
        )
