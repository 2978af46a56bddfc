"""Tests for metadata service."""

import threading
from datetime import datetime
from unittest.mock import MagicMock, patch

import pytest

from artgallery.services.metadata import (
    MetadataError,
    MetadataService,
    cleanup_metadata_service,
    get_metadata_service,
)
from artgallery.ui.handlers.error import NotFoundError, StorageError, ValidationError


def _create_image(service, title="Sunset", path="abc.jpg", category_ids=(), tag_ids=(), description=""):
    return service.create_image_record(
        title=title, description=description, path=path, category_ids=category_ids, tag_ids=tag_ids
    )


class TestImageRecords:
    """Test cases for image record operations."""

    def test_create_database_on_first_use(self, metadata_service):
        assert not metadata_service.db_path.exists()

        assert metadata_service.count_images() == 0
        assert metadata_service.db_path.exists()

    def test_create_image_record_with_classifications(self, metadata_service):
        landscape = metadata_service.create_category("Landscape")
        sky = metadata_service.create_tag("sky")

        record = _create_image(metadata_service, category_ids=[landscape.id], tag_ids=[sky.id])

        assert record.categories == [landscape]
        assert record.tags == [sky]

        stored = metadata_service.get_image(record.id)
        assert stored.title == "Sunset"
        assert stored.path == "abc.jpg"
        assert stored.description == ""
        assert stored.categories == [landscape]
        assert stored.tags == [sky]

    def test_create_image_record_unknown_category_is_atomic(self, metadata_service):
        sky = metadata_service.create_tag("sky")

        with pytest.raises(NotFoundError, match="Unknown category reference"):
            _create_image(metadata_service, category_ids=["missing"], tag_ids=[sky.id])

        assert metadata_service.count_images() == 0
        assert metadata_service.get_all_image_paths() == set()

    def test_create_image_record_duplicate_path_rolls_back(self, metadata_service):
        sky = metadata_service.create_tag("sky")
        first = _create_image(metadata_service, path="same.jpg", tag_ids=[sky.id])

        with pytest.raises(MetadataError, match="Failed to create image record"):
            _create_image(metadata_service, title="Other", path="same.jpg", tag_ids=[sky.id])

        images = metadata_service.list_images()
        assert [image.id for image in images] == [first.id]
        assert images[0].tags == [sky]

    def test_create_image_record_requires_title(self, metadata_service):
        with pytest.raises(ValidationError):
            _create_image(metadata_service, title="  ")

    def test_create_image_record_duplicate_ids_linked_once(self, metadata_service):
        sky = metadata_service.create_tag("sky")

        record = _create_image(metadata_service, tag_ids=[sky.id, sky.id])

        assert metadata_service.get_image(record.id).tags == [sky]

    def test_get_image_missing(self, metadata_service):
        assert metadata_service.get_image("missing") is None

    def test_list_images_newest_first_with_paging(self, metadata_service):
        timestamps = [datetime(2024, 1, 1, 12, 0, index) for index in range(5)]
        with patch("artgallery.models.image.utc_now", side_effect=timestamps):
            for index in range(5):
                _create_image(metadata_service, title=f"Image {index}", path=f"{index}.jpg")

        titles = [image.title for image in metadata_service.list_images()]
        page = [image.title for image in metadata_service.list_images(limit=2, offset=1)]

        assert titles == ["Image 4", "Image 3", "Image 2", "Image 1", "Image 0"]
        assert page == ["Image 3", "Image 2"]

    def test_list_images_filters(self, metadata_service):
        portrait = metadata_service.create_category("Portrait")
        sea = metadata_service.create_tag("sea")
        _create_image(metadata_service, title="Beach day", path="1.jpg", tag_ids=[sea.id])
        _create_image(metadata_service, title="Grandma", path="2.jpg", category_ids=[portrait.id])
        _create_image(metadata_service, title="Harbor", path="3.jpg", description="Boats at the BEACH")

        assert {i.title for i in metadata_service.list_images(search="beach")} == {"Beach day", "Harbor"}
        assert [i.title for i in metadata_service.list_images(category_id=portrait.id)] == ["Grandma"]
        assert [i.title for i in metadata_service.list_images(tag_id=sea.id)] == ["Beach day"]
        assert metadata_service.list_images(search="beach", category_id=portrait.id) == []

    def test_update_image(self, metadata_service):
        record = _create_image(metadata_service)

        updated = metadata_service.update_image(record.id, "  Golden hour ", " warm light ")

        assert updated.title == "Golden hour"
        assert updated.description == "warm light"
        assert updated.updated_at >= record.updated_at

    def test_update_image_validation(self, metadata_service):
        record = _create_image(metadata_service)

        with pytest.raises(ValidationError, match="Image title is required"):
            metadata_service.update_image(record.id, "", "")
        with pytest.raises(NotFoundError):
            metadata_service.update_image("missing", "Title", "")

    def test_set_image_classifications_by_name(self, metadata_service):
        landscape = metadata_service.create_category("Landscape")
        portrait = metadata_service.create_category("Portrait")
        sky = metadata_service.create_tag("sky")
        sea = metadata_service.create_tag("sea")
        record = _create_image(metadata_service, category_ids=[landscape.id], tag_ids=[sky.id])

        updated = metadata_service.set_image_classifications(record.id, ["Portrait", "Landscape"], ["sea"])

        assert updated.categories == [landscape, portrait]
        assert updated.tags == [sea]

    def test_set_image_classifications_clear(self, metadata_service):
        sky = metadata_service.create_tag("sky")
        record = _create_image(metadata_service, tag_ids=[sky.id])

        updated = metadata_service.set_image_classifications(record.id, [], [])

        assert updated.categories == []
        assert updated.tags == []

    def test_set_image_classifications_unknown_name_keeps_links(self, metadata_service):
        sky = metadata_service.create_tag("sky")
        record = _create_image(metadata_service, tag_ids=[sky.id])

        with pytest.raises(NotFoundError, match="Unknown tag name"):
            metadata_service.set_image_classifications(record.id, [], ["missing"])

        assert metadata_service.get_image(record.id).tags == [sky]

    def test_delete_image_record(self, metadata_service):
        sky = metadata_service.create_tag("sky")
        record = _create_image(metadata_service, tag_ids=[sky.id])

        assert metadata_service.delete_image_record(record.id) is True
        assert metadata_service.get_image(record.id) is None
        assert metadata_service.delete_image_record(record.id) is False

        # Link rows are gone, so the tag can be reused by a new image at the same path
        again = _create_image(metadata_service, tag_ids=[sky.id])
        assert metadata_service.get_image(again.id).tags == [sky]

    def test_get_all_image_paths(self, metadata_service):
        _create_image(metadata_service, path="a.jpg")
        _create_image(metadata_service, path="b.png")

        assert metadata_service.get_all_image_paths() == {"a.jpg", "b.png"}

    def test_concurrent_creates(self, metadata_service):
        errors = []

        def create(index):
            try:
                _create_image(metadata_service, title=f"Image {index}", path=f"{index}.jpg")
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=create, args=(index,)) for index in range(10)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert metadata_service.count_images() == 10


class TestClassifications:
    """Test cases for category and tag administration."""

    def test_create_and_list_sorted(self, metadata_service):
        metadata_service.create_category("Portrait")
        metadata_service.create_category(" Abstract ")

        assert [category.name for category in metadata_service.list_categories()] == ["Abstract", "Portrait"]

    def test_create_duplicate_name(self, metadata_service):
        metadata_service.create_tag("sky")

        with pytest.raises(ValidationError, match="Tag 'sky' already exists"):
            metadata_service.create_tag("sky ")

    def test_create_empty_name(self, metadata_service):
        with pytest.raises(ValidationError, match="Category name is required"):
            metadata_service.create_category("   ")

    def test_rename(self, metadata_service):
        tag = metadata_service.create_tag("sky")
        metadata_service.create_tag("sea")

        renamed = metadata_service.rename_tag(tag.id, "clouds")

        assert renamed.name == "clouds"
        assert renamed.id == tag.id
        assert metadata_service.rename_tag(tag.id, "clouds").name == "clouds"
        with pytest.raises(ValidationError, match="already exists"):
            metadata_service.rename_tag(tag.id, "sea")
        with pytest.raises(NotFoundError):
            metadata_service.rename_tag("missing", "x")

    def test_rename_is_visible_on_images(self, metadata_service):
        category = metadata_service.create_category("Landscpe")
        record = _create_image(metadata_service, category_ids=[category.id])

        metadata_service.rename_category(category.id, "Landscape")

        assert metadata_service.get_image(record.id).categories[0].name == "Landscape"

    def test_delete_unlinks_images(self, metadata_service):
        category = metadata_service.create_category("Landscape")
        record = _create_image(metadata_service, category_ids=[category.id])

        assert metadata_service.delete_category(category.id) is True
        assert metadata_service.delete_category(category.id) is False
        assert metadata_service.get_image(record.id).categories == []
        assert metadata_service.list_categories() == []

    def test_find_by_name(self, metadata_service):
        sky = metadata_service.create_tag("sky")

        assert metadata_service.find_tags_by_name(["sky", " sky", ""]) == [sky]
        assert metadata_service.find_categories_by_name([]) == []
        with pytest.raises(NotFoundError, match="missing"):
            metadata_service.find_tags_by_name(["sky", "missing"])

    def test_dashboard_stats(self, metadata_service):
        metadata_service.create_category("Landscape")
        metadata_service.create_tag("sky")
        metadata_service.create_tag("sea")
        _create_image(metadata_service)

        assert metadata_service.get_dashboard_stats() == {"image_count": 1, "category_count": 1, "tag_count": 2}


class TestDatabaseBackup:
    """Test cases for the optional GCS database backup."""

    def _storage(self, has_bucket=True):
        storage = MagicMock()
        storage.has_database_bucket = has_bucket
        return storage

    def test_sync_disabled_without_database_bucket(self, temp_dir):
        service = MetadataService(db_path=str(temp_dir / "gallery.db"), storage_service=self._storage(False))

        service.create_tag("sky")

        assert service.sync_to_gcs() is False
        assert service.get_sync_status()["sync_enabled"] is False
        service.close()

    def test_write_triggers_backup(self, temp_dir):
        storage = self._storage()
        storage.database_file_exists.return_value = False
        service = MetadataService(db_path=str(temp_dir / "gallery.db"), storage_service=storage)

        service.create_tag("sky")
        service.close()

        storage.upload_database_file.assert_called_with(service.db_path.read_bytes(), "gallery.db")
        assert service.get_sync_status()["last_sync_time"] is not None

    def test_restore_from_backup(self, temp_dir):
        source = MetadataService(db_path=str(temp_dir / "source.db"))
        source.create_tag("sky")
        source.close()

        storage = self._storage()
        storage.database_file_exists.return_value = True
        storage.download_database_file.return_value = (temp_dir / "source.db").read_bytes()
        service = MetadataService(db_path=str(temp_dir / "restored" / "gallery.db"), storage_service=storage)

        assert service.ensure_local_database() is True
        assert [tag.name for tag in service.list_tags()] == ["sky"]
        storage.download_database_file.assert_called_once_with("gallery.db")
        service.close()

    def test_sync_error_wrapped(self, temp_dir):
        storage = self._storage()
        storage.database_file_exists.return_value = False
        service = MetadataService(db_path=str(temp_dir / "gallery.db"), storage_service=storage)
        service.ensure_local_database()
        storage.upload_database_file.side_effect = StorageError("upload failed")

        with pytest.raises(MetadataError, match="Failed to back up database"):
            service.sync_to_gcs()
        service.close()

    def test_failed_background_sync_does_not_break_writes(self, temp_dir):
        storage = self._storage()
        storage.database_file_exists.return_value = False
        storage.upload_database_file.side_effect = StorageError("upload failed")
        service = MetadataService(db_path=str(temp_dir / "gallery.db"), storage_service=storage)

        tag = service.create_tag("sky")
        service.close()

        storage.upload_database_file.assert_called()
        assert service.get_sync_status()["last_sync_time"] is None
        assert service.list_tags() == [tag]
        service.close()

    def test_restore_without_storage_service_raises(self, temp_dir):
        service = MetadataService(db_path=str(temp_dir / "gallery.db"))

        with pytest.raises(MetadataError, match="Database backup is not configured"):
            service._download_from_gcs()


class TestGlobalMetadataService:
    """Test cases for the global instance helpers."""

    def test_singleton_and_cleanup(self, temp_dir):
        first = get_metadata_service(db_path=str(temp_dir / "gallery.db"))

        assert get_metadata_service() is first
        cleanup_metadata_service()
        assert get_metadata_service(db_path=str(temp_dir / "other.db")) is not first
