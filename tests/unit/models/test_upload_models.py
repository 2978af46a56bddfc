"""
Unit tests for upload pipeline models.
"""

import pytest

from artgallery.models.upload import (
    CANCELLED_MESSAGE,
    UNKNOWN_ERROR_MESSAGE,
    ClassificationSelection,
    FileStatusRecord,
    FileSubmission,
    InvalidTransitionError,
    UploadStage,
    partition,
)


class TestFileSubmission:
    """Test cases for FileSubmission."""

    def test_size_and_extension(self):
        submission = FileSubmission(name="sunset.beach.JPG", data=b"12345")

        assert submission.size == 5
        assert submission.extension == ".JPG"

    def test_extension_missing(self):
        assert FileSubmission(name="README", data=b"").extension == ""

    def test_from_path(self, temp_dir):
        file_path = temp_dir / "photo.png"
        file_path.write_bytes(b"png-bytes")

        submission = FileSubmission.from_path(file_path)

        assert submission.name == "photo.png"
        assert submission.data == b"png-bytes"

    def test_repr_hides_data(self):
        assert repr(FileSubmission(name="a.jpg", data=b"x" * 1000)) == "FileSubmission(name='a.jpg', size=1000)"

    def test_immutable(self):
        submission = FileSubmission(name="a.jpg", data=b"x")

        with pytest.raises(AttributeError):
            submission.name = "b.jpg"  # type: ignore[misc]


class TestClassificationSelection:
    """Test cases for ClassificationSelection."""

    def test_snapshot_deduplicates_in_order(self):
        selection = ClassificationSelection.snapshot(["c2", "c1", "c2"], ["t1", "t1"])

        assert selection.category_ids == ("c2", "c1")
        assert selection.tag_ids == ("t1",)

    def test_snapshot_is_detached_from_source(self):
        categories = ["c1"]
        selection = ClassificationSelection.snapshot(categories, [])

        categories.append("c2")

        assert selection.category_ids == ("c1",)

    def test_defaults_empty(self):
        selection = ClassificationSelection()

        assert selection.category_ids == ()
        assert selection.tag_ids == ()


class TestFileStatusRecord:
    """Test cases for FileStatusRecord transitions."""

    def test_initial_state(self):
        record = FileStatusRecord()

        assert record.stage is UploadStage.PENDING
        assert record.progress == 0
        assert record.error_message is None
        assert not record.is_terminal

    def test_happy_path(self):
        record = FileStatusRecord().advance(10).advance(30, stored_reference="abc.jpg").advance(70)
        done = record.complete()

        assert record.stage is UploadStage.UPLOADING
        assert record.stored_reference == "abc.jpg"
        assert done.stage is UploadStage.COMPLETED
        assert done.progress == 100
        assert done.stored_reference == "abc.jpg"
        assert done.is_terminal

    def test_transitions_return_new_records(self):
        record = FileStatusRecord()
        advanced = record.advance(10)

        assert record.stage is UploadStage.PENDING
        assert advanced is not record

    def test_fail_keeps_progress(self):
        failed = FileStatusRecord().advance(10).advance(30).fail("bucket unavailable")

        assert failed.stage is UploadStage.FAILED
        assert failed.progress == 30
        assert failed.error_message == "bucket unavailable"

    @pytest.mark.parametrize("message", [None, ""])
    def test_fail_without_message_uses_fallback(self, message):
        assert FileStatusRecord().advance(10).fail(message).error_message == UNKNOWN_ERROR_MESSAGE

    def test_fail_from_pending_allowed(self):
        failed = FileStatusRecord().fail(CANCELLED_MESSAGE)

        assert failed.stage is UploadStage.FAILED
        assert failed.progress == 0

    def test_progress_cannot_decrease(self):
        with pytest.raises(InvalidTransitionError):
            FileStatusRecord().advance(30).advance(10)

    @pytest.mark.parametrize("progress", [-1, 101])
    def test_progress_out_of_range(self, progress):
        with pytest.raises(InvalidTransitionError):
            FileStatusRecord().advance(progress)

    def test_complete_requires_uploading(self):
        with pytest.raises(InvalidTransitionError):
            FileStatusRecord().complete()

    @pytest.mark.parametrize(
        "terminal",
        [FileStatusRecord().advance(10).complete(), FileStatusRecord().advance(10).fail("boom")],
    )
    def test_terminal_records_never_change(self, terminal):
        with pytest.raises(InvalidTransitionError):
            terminal.advance(100)
        with pytest.raises(InvalidTransitionError):
            terminal.fail("again")
        with pytest.raises(InvalidTransitionError):
            terminal.complete()

    def test_to_dict(self):
        record = FileStatusRecord().advance(30, stored_reference="ref.png").fail("nope")

        assert record.to_dict() == {
            "stage": "failed",
            "progress": 30,
            "error_message": "nope",
            "stored_reference": "ref.png",
        }


class TestPartition:
    """Test cases for partition."""

    def test_seven_files_width_five(self):
        groups = partition(list(range(7)), 5)

        assert groups == [[0, 1, 2, 3, 4], [5, 6]]

    def test_empty(self):
        assert partition([], 5) == []

    @pytest.mark.parametrize("count,width", [(1, 1), (5, 5), (6, 5), (10, 3), (13, 4), (4, 10)])
    def test_group_count_is_ceiling(self, count, width):
        groups = partition(list(range(count)), width)

        assert len(groups) == -(-count // width)
        assert all(len(group) <= width for group in groups)
        assert [item for group in groups for item in group] == list(range(count))

    @pytest.mark.parametrize("width", [0, -3])
    def test_invalid_width(self, width):
        with pytest.raises(ValueError, match="positive integer"):
            partition([1, 2], width)
