"""
Unit tests for the progress ledger.
"""

import pytest

from artgallery.models.upload import FileStatusRecord, FileSubmission, UploadStage
from artgallery.services.ledger import ProgressLedger


def _files(*names):
    return [FileSubmission(name=name, data=b"x") for name in names]


class TestProgressLedger:
    """Test cases for ProgressLedger."""

    def test_register_seeds_pending(self):
        ledger = ProgressLedger()

        keys = ledger.register(_files("a.jpg", "b.jpg"))

        assert keys == ["a.jpg", "b.jpg"]
        assert len(ledger) == 2
        assert all(record == FileStatusRecord() for record in ledger.snapshot().values())

    def test_register_disambiguates_duplicate_names(self):
        ledger = ProgressLedger()

        first = ledger.register(_files("a.jpg", "a.jpg"))
        second = ledger.register(_files("a.jpg", "a.jpg (2)"))

        assert first == ["a.jpg", "a.jpg (2)"]
        assert second == ["a.jpg (3)", "a.jpg (2) (2)"]
        assert len(ledger) == 4

    def test_update_replaces_record(self):
        ledger = ProgressLedger()
        (key,) = ledger.register(_files("a.jpg"))
        before = ledger.get(key)

        after = ledger.update(key, lambda record: record.advance(10))

        assert ledger.get(key) is after
        assert before.stage is UploadStage.PENDING
        assert after.progress == 10

    def test_update_unknown_key(self):
        with pytest.raises(KeyError):
            ProgressLedger().update("missing", lambda record: record.advance(10))

    def test_snapshot_is_a_copy(self):
        ledger = ProgressLedger()
        (key,) = ledger.register(_files("a.jpg"))
        snapshot = ledger.snapshot()

        ledger.update(key, lambda record: record.advance(10))

        assert snapshot[key].stage is UploadStage.PENDING

    def test_stage_queries(self):
        ledger = ProgressLedger()
        done, broken, waiting = ledger.register(_files("done.jpg", "broken.jpg", "waiting.jpg"))
        ledger.update(done, lambda record: record.advance(70).complete())
        ledger.update(broken, lambda record: record.advance(30).fail("quota"))

        assert list(ledger.completed()) == [done]
        assert list(ledger.failed()) == [broken]
        assert ledger.stage_counts() == {"pending": 1, "uploading": 0, "completed": 1, "failed": 1}
        assert ledger.overall_progress() == pytest.approx((100 + 30 + 0) / 300)

        ledger.update(waiting, lambda record: record.fail("cancelled"))
        assert ledger.stage_counts() == {"pending": 0, "uploading": 0, "completed": 1, "failed": 2}

    def test_stage_counts_for_selected_keys(self):
        ledger = ProgressLedger()
        (earlier,) = ledger.register(_files("earlier.jpg"))
        ledger.update(earlier, lambda record: record.fail("quota"))
        (current,) = ledger.register(_files("current.jpg"))
        ledger.update(current, lambda record: record.advance(70).complete())

        assert ledger.stage_counts([current]) == {"pending": 0, "uploading": 0, "completed": 1, "failed": 0}

    def test_empty_ledger(self):
        ledger = ProgressLedger()

        assert ledger.stage_counts() == {"pending": 0, "uploading": 0, "completed": 0, "failed": 0}
        assert ledger.overall_progress() == 1.0
        assert ledger.snapshot() == {}

    def test_container_protocol(self):
        ledger = ProgressLedger()
        ledger.register(_files("b.jpg", "a.jpg"))

        assert "a.jpg" in ledger
        assert "c.jpg" not in ledger
        assert list(ledger) == ["b.jpg", "a.jpg"]
