"""Tests for backup export/import."""

import json
import tempfile
from datetime import date
from pathlib import Path
from unittest.mock import Mock

import pytest

from runlog_sync.errors import FormatError
from runlog_sync.storage.local_store import LocalStore, TRAINING_PLANS_KEY, WORKOUTS_KEY
from runlog_sync.sync.backup import BackupService, ImportMode


class TestBackupService:
    """Tests for BackupService."""

    def setup_method(self):
        self.temp_dir = Path(tempfile.mkdtemp())
        self.store = LocalStore(db_path=self.temp_dir / "store.db")
        self.on_changed = Mock()
        self.service = BackupService(self.store, on_data_changed=self.on_changed)

    def teardown_method(self):
        self.store.close()

    def test_merge_import_scenario(self):
        self.store.set_collection(WORKOUTS_KEY, [{"id": "w1", "distance": 5}])

        result = self.service.import_text(
            '{"version":"1.0","workouts":[{"id":"w1","distance":5},{"id":"w2","distance":10}]}'
        )

        assert self.store.get_collection(WORKOUTS_KEY) == [
            {"id": "w1", "distance": 5},
            {"id": "w2", "distance": 10},
        ]
        assert result.workouts_added == 1
        assert result.plans_added == 0
        assert result.total_workouts == 2
        self.on_changed.assert_called_once()

    def test_merge_import_twice_adds_nothing(self):
        raw = '{"workouts":[{"id":"w1"}],"trainingPlans":[{"id":"p1"}]}'

        self.service.import_text(raw)
        second = self.service.import_text(raw)

        assert second.workouts_added == 0
        assert second.plans_added == 0

    def test_replace_import_overwrites(self):
        self.store.set_collection(WORKOUTS_KEY, [{"id": "old"}])
        self.store.set_collection(TRAINING_PLANS_KEY, [{"id": "old-plan"}])

        result = self.service.import_text('[{"id": "p9"}]', mode=ImportMode.REPLACE)

        assert self.store.get_collection(WORKOUTS_KEY) == []
        assert self.store.get_collection(TRAINING_PLANS_KEY) == [{"id": "p9"}]
        assert result.total_plans == 1

    def test_non_object_records_raise_format_error(self):
        self.store.set_collection(WORKOUTS_KEY, [{"id": "w1"}])

        with pytest.raises(FormatError):
            self.service.import_text("[1, 2]", mode=ImportMode.REPLACE)

        assert self.store.get_collection(WORKOUTS_KEY) == [{"id": "w1"}]
        self.on_changed.assert_not_called()

    def test_empty_input_raises(self):
        with pytest.raises(FormatError):
            self.service.import_text("   ")
        self.on_changed.assert_not_called()

    def test_unrecognized_input_leaves_data_untouched(self):
        self.store.set_collection(WORKOUTS_KEY, [{"id": "w1"}])

        with pytest.raises(FormatError):
            self.service.import_text('{"hello": "world"}')

        assert self.store.get_collection(WORKOUTS_KEY) == [{"id": "w1"}]

    def test_export_text_contains_both_collections(self):
        self.store.set_collection(WORKOUTS_KEY, [{"id": "w1"}])
        self.store.set_collection(TRAINING_PLANS_KEY, [{"id": "p1"}])

        data = json.loads(self.service.export_text())

        assert data["version"] == "1.0"
        assert data["workouts"] == [{"id": "w1"}]
        assert data["trainingPlans"] == [{"id": "p1"}]

    def test_export_to_file_and_import_file(self):
        self.store.set_collection(WORKOUTS_KEY, [{"id": "w1"}])

        path = self.service.export_to_file(self.temp_dir / "out", today=date(2026, 2, 18))
        assert path.name == "running-tracker-backup-2026-02-18.json"

        self.service.clear_all()
        assert self.service.stats().workouts == 0

        result = self.service.import_file(path)
        assert result.workouts_added == 1

    def test_stats(self):
        self.store.set_collection(WORKOUTS_KEY, [{"id": 1}, {"id": 2}])
        stats = self.service.stats()
        assert (stats.workouts, stats.plans) == (2, 0)

    def test_clear_all_notifies(self):
        self.store.set_collection(WORKOUTS_KEY, [{"id": 1}])
        self.service.clear_all()

        assert self.store.get(WORKOUTS_KEY) is None
        self.on_changed.assert_called_once()
