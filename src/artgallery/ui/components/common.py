"""Layout pieces shared by every page: header, sidebar, footer and messages."""

import html

import streamlit as st
import structlog

from artgallery import __description__, __version__

logger = structlog.get_logger()

# Sidebar sections: (heading, [(label, page key)])
NAVIGATION = [
    ("Gallery", [("🖼️ Browse", "gallery")]),
    (
        "Admin",
        [
            ("📊 Dashboard", "dashboard"),
            ("📤 Images", "images"),
            ("🏷️ Categories & Tags", "classifications"),
        ],
    ),
]

PAGES = {key: label for _, entries in NAVIGATION for label, key in entries}

_SIZE_UNITS = ("B", "KB", "MB", "GB")


def navigate_to(page_key: str) -> None:
    """Switch page on the next run; ``main`` applies ``next_page`` before rendering."""
    logger.info("page_navigation", from_page=st.session_state.get("current_page"), to_page=page_key)
    st.session_state.next_page = page_key
    st.rerun()


def render_empty_state(
    title: str,
    description: str,
    icon: str = "📭",
    action_text: str | None = None,
    action_page: str | None = None,
) -> None:
    """
    Centered placeholder for an empty list.

    Args:
        title: Headline
        description: Hint below the headline
        icon: Large emoji above the headline
        action_text: Label of an optional button
        action_page: Page the button opens
    """
    _, center, _ = st.columns([1, 2, 1])

    with center:
        st.markdown(
            f"<div style='text-align:center;padding:2rem 0;'>"
            f"<div style='font-size:3.5rem;'>{icon}</div>"
            f"<h3 style='color:#555;'>{html.escape(title)}</h3>"
            f"<p style='color:#888;'>{html.escape(description)}</p>"
            f"</div>",
            unsafe_allow_html=True,
        )
        if action_text and action_page and st.button(action_text, use_container_width=True, type="primary"):
            navigate_to(action_page)


def render_error_message(error_type: str, message: str, details: str | None = None) -> None:
    """Error banner with the technical message tucked into an expander."""
    st.error(f"**{error_type}:** {message}")
    if details and details != message:
        with st.expander("🔍 Error details"):
            st.code(details)


def render_metric_card(label: str, value: int, icon: str) -> None:
    st.metric(label=f"{icon} {label}", value=value)


def format_file_size(size_bytes: int) -> str:
    """
    Human-readable size, e.g. ``512 B`` or ``1.5 MB``.

    Bytes are shown as a whole number, larger units with one decimal.
    """
    size = float(size_bytes)
    for unit in _SIZE_UNITS:
        if size < 1024 or unit == _SIZE_UNITS[-1]:
            break
        size /= 1024
    if unit == "B":
        return f"{size_bytes} B"
    return f"{size:.1f} {unit}"


def render_header() -> None:
    st.markdown("# 🎨 artgallery")
    st.caption(__description__)


def render_sidebar() -> None:
    """Navigation buttons grouped into the public gallery and the admin console."""
    current_page = st.session_state.current_page

    with st.sidebar:
        for heading, entries in NAVIGATION:
            st.subheader(heading)
            for label, page_key in entries:
                if st.button(
                    label,
                    key=f"nav_{page_key}",
                    use_container_width=True,
                    type="primary" if page_key == current_page else "secondary",
                ):
                    navigate_to(page_key)


def render_footer() -> None:
    st.divider()
    st.caption(f"artgallery v{__version__}")
