"""
Streamlit entry point for artgallery.

Run with ``streamlit run src/artgallery/main.py``. Navigation is kept in
``st.session_state``: buttons set ``next_page`` and rerun, and the next run
moves it into ``current_page`` before anything is drawn.
"""

import streamlit as st

from artgallery.config import get_env
from artgallery.logging_config import configure_structured_logging, get_logger
from artgallery.ui.components.common import render_error_message, render_footer, render_header, render_sidebar
from artgallery.ui.handlers.error import handle_error
from artgallery.ui.pages.classifications import render_classifications_page
from artgallery.ui.pages.dashboard import render_dashboard_page
from artgallery.ui.pages.gallery import render_gallery_page
from artgallery.ui.pages.images import render_images_page

configure_structured_logging()
logger = get_logger(__name__)

DEFAULT_PAGE = "gallery"

PAGE_RENDERERS = {
    "gallery": render_gallery_page,
    "dashboard": render_dashboard_page,
    "images": render_images_page,
    "classifications": render_classifications_page,
}

SESSION_DEFAULTS = {
    "current_page": DEFAULT_PAGE,
    "gallery_page": 0,
}


def initialize_session_state() -> None:
    for key, value in SESSION_DEFAULTS.items():
        st.session_state.setdefault(key, value)


def apply_pending_navigation() -> None:
    next_page = st.session_state.pop("next_page", None)
    if next_page and next_page != st.session_state.current_page:
        logger.info("page_changed", from_page=st.session_state.current_page, to_page=next_page)
        st.session_state.current_page = next_page


def render_main_content() -> None:
    page = st.session_state.current_page
    renderer = PAGE_RENDERERS.get(page)
    if renderer is not None:
        renderer()
        return

    st.warning(f"Page '{page}' not found.")
    if st.button("🖼️ Back to gallery", type="primary"):
        st.session_state.current_page = DEFAULT_PAGE
        st.rerun()


def main() -> None:
    st.set_page_config(
        page_title="artgallery",
        page_icon="🎨",
        layout="wide",
        initial_sidebar_state="expanded",
        menu_items={"About": "artgallery - image gallery with batch uploads"},
    )

    initialize_session_state()
    apply_pending_navigation()
    logger.debug("page_render_started", page=st.session_state.current_page)

    try:
        render_header()
        render_sidebar()
        render_main_content()
        render_footer()
    except Exception as e:
        error_info = handle_error(e, {"operation": "render_page", "page": st.session_state.current_page})
        render_error_message("Application Error", error_info.user_message, error_info.message)
        if st.button("🔄 Reload", type="primary"):
            st.rerun()

    if get_env("DEBUG", False, bool):
        with st.expander("Session state"):
            st.write(dict(st.session_state))


if __name__ == "__main__":
    main()
