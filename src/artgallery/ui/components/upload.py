"""Upload components for artgallery application."""

from typing import Any

import streamlit as st

from artgallery.models.upload import FileStatusRecord, UploadStage
from artgallery.services.ledger import ProgressLedger

STAGE_ICONS = {
    UploadStage.PENDING: "⏳",
    UploadStage.UPLOADING: "⬆️",
    UploadStage.COMPLETED: "✅",
    UploadStage.FAILED: "❌",
}


def render_file_status(key: str, record: FileStatusRecord) -> None:
    """
    Render the progress bar of one file.

    Args:
        key: Ledger key shown as the file name
        record: Current status of the file
    """
    icon = STAGE_ICONS[record.stage]
    label = f"{icon} {key} · {record.stage.value}"
    if record.stage is UploadStage.FAILED:
        label += f" · {record.error_message}"
    st.progress(record.progress / 100, text=label)


def render_ledger_progress(ledger: ProgressLedger) -> None:
    """
    Render overall progress and one bar per file.

    Args:
        ledger: Ledger of the running or finished batch
    """
    counts = ledger.stage_counts()
    total = len(ledger)

    st.progress(
        ledger.overall_progress(),
        text=f"{counts['completed'] + counts['failed']}/{total} files settled",
    )

    with st.expander("📋 Per-file progress", expanded=total <= 20):
        for key, record in ledger.snapshot().items():
            render_file_status(key, record)


def render_batch_summary(summary: dict[str, Any]) -> None:
    """
    Render the result of a finished batch and list failed files.

    Args:
        summary: Output of ``summarize_batch``
    """
    col1, col2, col3 = st.columns(3)
    with col1:
        st.metric("Files", summary["total"])
    with col2:
        st.metric("✅ Uploaded", summary["completed"])
    with col3:
        st.metric("❌ Failed", summary["failed"])

    if not summary["failures"]:
        st.success(f"🎉 All {summary['completed']} file(s) uploaded in {summary['duration']:.1f}s")
        return

    st.error(f"{summary['failed']} file(s) could not be uploaded. Drop them again to retry.")
    for failure in summary["failures"]:
        st.markdown(f"- **{failure['name']}**: {failure['error']}")
