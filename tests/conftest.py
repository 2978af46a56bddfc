"""
Pytest configuration and fixtures for artgallery tests.
"""

import tempfile
from collections.abc import Generator
from pathlib import Path

import pytest

from artgallery.config import get_config
from artgallery.services import metadata as metadata_module
from artgallery.services import storage as storage_module
from artgallery.services.metadata import MetadataService


@pytest.fixture(autouse=True)
def reset_global_state() -> Generator[None, None, None]:
    """Drop cached configuration and service singletons around every test."""
    get_config().clear_cache()
    yield
    get_config().clear_cache()
    storage_module.reset_storage_service()
    metadata_module.cleanup_metadata_service()


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmp_dir:
        yield Path(tmp_dir)


@pytest.fixture
def gcs_env(monkeypatch: pytest.MonkeyPatch) -> dict[str, str]:
    """Minimal storage environment without a database bucket."""
    env = {"GCS_IMAGES_BUCKET": "test-images-bucket", "GOOGLE_CLOUD_PROJECT": "test-project"}
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    monkeypatch.delenv("GCS_DATABASE_BUCKET", raising=False)
    return env


@pytest.fixture
def metadata_service(temp_dir: Path) -> Generator[MetadataService, None, None]:
    """Metadata service backed by a real DuckDB file without GCS backups."""
    service = MetadataService(db_path=str(temp_dir / "gallery.db"))
    yield service
    service.close()


@pytest.fixture
def sample_image_data() -> bytes:
    """Provide sample image data for testing (PNG signature plus padding)."""
    return b"\x89PNG\r\n\x1a\n" + b"\x00" * 64
