"""Tests for configuration management."""

import pytest

from artgallery.config import (
    DEFAULT_UPLOAD_BATCH_WIDTH,
    get_config,
    get_database_path,
    get_orphan_grace_period_hours,
    get_signed_url_expiration,
    get_upload_batch_width,
)


class TestConfig:
    def test_casts_and_caches(self, monkeypatch):
        monkeypatch.setenv("SOME_FLAG", "yes")
        config = get_config()

        assert config.get("SOME_FLAG", False, bool) is True

        monkeypatch.setenv("SOME_FLAG", "no")
        assert config.get("SOME_FLAG", False, bool) is True

        config.clear_cache()
        assert config.get("SOME_FLAG", False, bool) is False

    def test_failed_cast_uses_default(self, monkeypatch):
        monkeypatch.setenv("SOME_NUMBER", "many")

        assert get_config().get("SOME_NUMBER", 7, int) == 7

    def test_missing_value_uses_default(self, monkeypatch):
        monkeypatch.delenv("GALLERY_DB_PATH", raising=False)

        assert get_database_path() == "/tmp/artgallery/gallery.db"  # nosec B108


class TestGetters:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("3", 3),
            ("0", DEFAULT_UPLOAD_BATCH_WIDTH),
            ("-2", DEFAULT_UPLOAD_BATCH_WIDTH),
            ("wide", DEFAULT_UPLOAD_BATCH_WIDTH),
        ],
    )
    def test_upload_batch_width(self, monkeypatch, raw, expected):
        monkeypatch.setenv("UPLOAD_BATCH_WIDTH", raw)

        assert get_upload_batch_width() == expected

    def test_upload_batch_width_default(self, monkeypatch):
        monkeypatch.delenv("UPLOAD_BATCH_WIDTH", raising=False)

        assert get_upload_batch_width() == DEFAULT_UPLOAD_BATCH_WIDTH

    def test_grace_period_and_signed_url(self, monkeypatch):
        monkeypatch.setenv("ORPHAN_GRACE_PERIOD_HOURS", "1.5")
        monkeypatch.setenv("GCS_SIGNED_URL_EXPIRATION", "600")

        assert get_orphan_grace_period_hours() == 1.5
        assert get_signed_url_expiration() == 600
