"""
Tests for Cursor and Report Files
"""
import json
from datetime import datetime, timezone

import pytest

from src.homematch.pipelines.backfill import BatchCursor
from src.homematch.pipelines.cursor import CursorFileStore, CursorFingerprint, ReportWriter


FIXED_NOW = datetime(2026, 3, 14, 15, 9, 26, tzinfo=timezone.utc)


def fingerprint(**overrides):
    values = {"data_source": "db.local:5432", "entity": "property", "filters": {"min_price": 100000}}
    values.update(overrides)
    return CursorFingerprint(**values)


class TestCursorFileStore:
    """Tests for CursorFileStore."""

    def test_missing_file_starts_at_zero(self, tmp_path):
        """No cursor file means offset 0."""
        loaded = CursorFileStore(tmp_path / "cursor.json").load(fingerprint())

        assert loaded.offset == 0
        assert loaded.reason == "missing"

    def test_save_and_load(self, tmp_path):
        """A saved offset is loaded back for the same fingerprint."""
        store = CursorFileStore(tmp_path / "nested" / "cursor.json", now=lambda: FIXED_NOW)
        store.save(42, fingerprint())

        loaded = store.load(fingerprint())

        assert loaded.offset == 42
        assert loaded.reason == "ok"
        assert loaded.stored["updated_at"] == FIXED_NOW.isoformat()
        assert not (tmp_path / "nested" / "cursor.json.tmp").exists()

    def test_failed_write_leaves_no_temp_file(self, tmp_path, monkeypatch):
        """A write that fails before the rename cleans up its temp file."""
        def fail_replace(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr("src.homematch.pipelines.cursor.os.replace", fail_replace)
        store = CursorFileStore(tmp_path / "cursor.json")

        with pytest.raises(OSError):
            store.save(7, fingerprint())

        assert not (tmp_path / "cursor.json.tmp").exists()
        assert not (tmp_path / "cursor.json").exists()

    def test_full_cursor_snapshot(self, tmp_path):
        """Saving a BatchCursor records its progress counters."""
        store = CursorFileStore(tmp_path / "cursor.json")
        cursor = BatchCursor(
            offset=12,
            last_entity_id="p11",
            attempted=5,
            skipped=7,
            success=4,
            failed=1,
            total_cost_usd=0.02,
        )

        store.save(cursor, fingerprint(), canceled=True)

        data = json.loads((tmp_path / "cursor.json").read_text())
        assert data["offset"] == 12
        assert data["version"] == 1
        assert data["mode"] == "offset"
        assert data["canceled"] is True
        assert data["progress"]["last_entity_id"] == "p11"
        assert data["progress"]["skipped"] == 7

    def test_mismatched_fingerprint(self, tmp_path):
        """Another entity or filter set resumes from zero."""
        store = CursorFileStore(tmp_path / "cursor.json")
        store.save(42, fingerprint())

        assert store.load(fingerprint(entity="neighborhood")).reason == "mismatch"
        assert store.load(fingerprint(filters={"min_price": 0})).offset == 0

    def test_unreadable_file(self, tmp_path):
        """Corrupt JSON is treated as no cursor."""
        path = tmp_path / "cursor.json"
        path.write_text("{not json")

        loaded = CursorFileStore(path).load(fingerprint())

        assert loaded.offset == 0
        assert loaded.reason == "invalid"

    def test_unknown_version(self, tmp_path):
        """Cursor files of another format version are ignored."""
        path = tmp_path / "cursor.json"
        path.write_text(json.dumps({"version": 99, "mode": "offset", "offset": 5}))

        assert CursorFileStore(path).load(fingerprint()).reason == "invalid"

    def test_fingerprint_round_trip_ignores_malformed_filters(self):
        """Malformed stored filters compare as empty."""
        restored = CursorFingerprint.from_dict(
            {"data_source": "db", "entity": "property", "filters": "oops"}
        )

        assert restored == CursorFingerprint(data_source="db", entity="property", filters={})
        assert CursorFingerprint.from_dict(None) is None


class TestReportWriter:
    """Tests for ReportWriter."""

    def test_writes_latest_and_archive(self, tmp_path):
        """Both copies carry the same content plus the finish time."""
        writer = ReportWriter(tmp_path, "backfill-property-vibes", now=lambda: FIXED_NOW)

        latest, archive = writer.write({"runs": 3, "stop_reason": "exhausted"})

        assert latest.name == "backfill-property-vibes-report.json"
        assert archive.name.startswith("backfill-property-vibes-report-2026-03-14T15-09-26")
        assert ":" not in archive.name

        payload = json.loads(latest.read_text())
        assert payload == json.loads(archive.read_text())
        assert payload["runs"] == 3
        assert payload["finished_at"] == FIXED_NOW.isoformat()

    def test_latest_is_overwritten(self, tmp_path):
        """A later report replaces the latest copy."""
        writer = ReportWriter(tmp_path, "backfill-property-vibes")

        writer.write({"runs": 1})
        latest, _ = writer.write({"runs": 2})

        assert json.loads(latest.read_text())["runs"] == 2
