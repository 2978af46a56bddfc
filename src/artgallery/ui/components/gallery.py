"""Gallery components for artgallery application."""

import html

import streamlit as st
import structlog

from artgallery.models.image import Category, ImageRecord, Tag
from ..handlers.gallery import format_timestamp, get_image_url

logger = structlog.get_logger(__name__)

ALL_OPTION = "All"


def render_gallery_filters(categories: list[Category], tags: list[Tag]) -> tuple[str, str | None, str | None]:
    """
    Render search box and category/tag filters.

    Returns:
        tuple: (search text, category id or None, tag id or None)
    """
    col1, col2, col3 = st.columns([2, 1, 1])

    with col1:
        search = st.text_input("Search", placeholder="Title or description", key="gallery_search")

    category_names = {category.name: category.id for category in categories}
    with col2:
        category_choice = st.selectbox("Category", [ALL_OPTION, *category_names], key="gallery_category")

    tag_names = {tag.name: tag.id for tag in tags}
    with col3:
        tag_choice = st.selectbox("Tag", [ALL_OPTION, *tag_names], key="gallery_tag")

    return search.strip(), category_names.get(category_choice), tag_names.get(tag_choice)


def render_classification_badges(image: ImageRecord) -> None:
    """Render category and tag names of an image as small badges."""
    badges = [
        f"<span style='background:#e8eefc;border-radius:4px;padding:0 6px;margin-right:4px;'>"
        f"{html.escape(category.name)}</span>"
        for category in image.categories
    ]
    badges += [
        f"<span style='background:#eef7ea;border-radius:4px;padding:0 6px;margin-right:4px;'>"
        f"#{html.escape(tag.name)}</span>"
        for tag in image.tags
    ]
    if badges:
        st.markdown(" ".join(badges), unsafe_allow_html=True)


def render_image_card(image: ImageRecord) -> None:
    """
    Render one image with its title, description and classifications.

    Args:
        image: Image record to display
    """
    url = get_image_url(image.path)
    if url:
        st.image(url, use_container_width=True)
    else:
        st.warning("🖼️ Image unavailable")

    st.markdown(f"**{image.title}**")
    if image.description:
        st.caption(image.description)
    render_classification_badges(image)


def render_image_grid(images: list[ImageRecord], cols_per_row: int = 3) -> None:
    """
    Render images in a grid layout.

    Args:
        images: Images to display
        cols_per_row: Number of columns
    """
    for i in range(0, len(images), cols_per_row):
        cols = st.columns(cols_per_row)

        for j, col in enumerate(cols):
            image_index = i + j
            with col:
                if image_index < len(images):
                    render_image_card(images[image_index])
                else:
                    st.empty()


def render_image_details(image: ImageRecord) -> None:
    """Render timestamps and storage path of an image (admin view)."""
    created = format_timestamp(image.created_at)
    updated = format_timestamp(image.updated_at)
    st.caption(f"Created {created} · Updated {updated} · `{image.path}`")


def render_pagination_controls(has_more: bool) -> None:
    """Render previous/next buttons bound to ``gallery_page``."""
    current_page = st.session_state.get("gallery_page", 0)
    col1, col2, col3 = st.columns([1, 2, 1])

    with col1:
        if st.button("⬅️ Previous", disabled=current_page == 0, use_container_width=True):
            st.session_state.gallery_page = current_page - 1
            st.rerun()

    with col2:
        st.markdown(
            f"<div style='text-align: center;'>Page {current_page + 1}</div>",
            unsafe_allow_html=True,
        )

    with col3:
        if st.button("Next ➡️", disabled=not has_more, use_container_width=True):
            st.session_state.gallery_page = current_page + 1
            st.rerun()


def reset_gallery_pagination() -> None:
    """Go back to the first page."""
    st.session_state.gallery_page = 0
