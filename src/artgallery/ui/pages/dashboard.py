"""Admin dashboard page for artgallery application."""

import streamlit as st
import structlog

from artgallery.ui.components.common import render_error_message, render_metric_card
from artgallery.ui.handlers.error import GalleryError
from artgallery.ui.handlers.gallery import get_gallery_metadata_service

logger = structlog.get_logger(__name__)


def render_dashboard_page() -> None:
    """Render image, category and tag counts."""
    st.markdown("### 📊 Dashboard")

    try:
        metadata_service = get_gallery_metadata_service()
        stats = metadata_service.get_dashboard_stats()
    except GalleryError as e:
        logger.error("dashboard_page_error", error=str(e))
        render_error_message("Dashboard Error", e.user_message, str(e))
        return

    col1, col2, col3 = st.columns(3)
    with col1:
        render_metric_card("Images", stats["image_count"], "🖼️")
    with col2:
        render_metric_card("Categories", stats["category_count"], "🗂️")
    with col3:
        render_metric_card("Tags", stats["tag_count"], "🏷️")

    sync_status = metadata_service.get_sync_status()
    if sync_status["sync_enabled"]:
        st.caption(f"Database backup: last synced {sync_status['last_sync_time'] or 'never'}")
