"""Tests for shared UI helpers."""

import pytest

from artgallery.main import PAGE_RENDERERS
from artgallery.ui.components.common import PAGES, format_file_size


@pytest.mark.parametrize(
    "size, expected",
    [
        (0, "0 B"),
        (1023, "1023 B"),
        (1024, "1.0 KB"),
        (1536, "1.5 KB"),
        (5 * 1024 * 1024, "5.0 MB"),
        (3 * 1024**3, "3.0 GB"),
        (2048 * 1024**3, "2048.0 GB"),
    ],
)
def test_format_file_size(size, expected):
    assert format_file_size(size) == expected


def test_every_navigation_entry_has_a_page():
    assert set(PAGES) == set(PAGE_RENDERERS)
