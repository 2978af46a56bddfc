"""Configuration for UI unit tests."""

from unittest.mock import patch

import pytest
import streamlit as st


@pytest.fixture(autouse=True)
def disable_streamlit_caching():
    """Run cached UI helpers without Streamlit's cache in between."""
    st.cache_data.clear()
    st.cache_resource.clear()
    with patch("streamlit.cache_data", new=lambda *args, **kwargs: lambda f: f), patch(
        "streamlit.cache_resource", new=lambda *args, **kwargs: lambda f: f
    ):
        yield


@pytest.fixture
def session_state():
    """Plain dict standing in for ``st.session_state``."""
    with patch("streamlit.session_state", new_callable=dict) as state:
        yield state
