"""Tests for the local-to-hosted migration."""

import tempfile
from pathlib import Path
from unittest.mock import Mock

from runlog_sync.errors import DocumentStoreError
from runlog_sync.migration import MigrationRunner
from runlog_sync.storage.documents import DocumentStore
from runlog_sync.storage.local_store import (
    LocalStore,
    TRAINING_PLANS_KEY,
    WORKOUTS_KEY,
    migration_flag_key,
)


class TestMigrationRunner:
    """Tests for MigrationRunner."""

    def setup_method(self):
        self.temp_dir = Path(tempfile.mkdtemp())
        self.store = LocalStore(db_path=self.temp_dir / "store.db")
        self.documents = DocumentStore(db_path=self.temp_dir / "docs.db")
        self.runner = MigrationRunner(self.store, self.documents)

    def teardown_method(self):
        self.documents.close()
        self.store.close()

    def test_migrates_records(self):
        self.store.set_collection(WORKOUTS_KEY, [{"id": "w1", "distance": 5}, {"id": "w2"}])
        self.store.set_collection(TRAINING_PLANS_KEY, [{"id": "p1", "name": "10k"}])

        result = self.runner.migrate("user-1")

        assert result.success is True
        assert result.workouts_migrated == 2
        assert result.plans_migrated == 1
        assert result.message == "Migration complete: 2 workouts and 1 plans migrated"
        assert self.runner.is_migrated("user-1") is True

        docs = self.documents.query("workouts", "user-1")
        assert len(docs) == 2
        for doc in docs:
            assert doc["id"] not in ("w1", "w2")
            assert doc["userId"] == "user-1"
            assert doc["migrated"] is True
            assert doc["migratedAt"].endswith("Z")

    def test_second_run_is_a_no_op(self):
        self.store.set_collection(WORKOUTS_KEY, [{"id": "w1"}])
        self.runner.migrate("user-1")

        result = self.runner.migrate("user-1")

        assert result.success is True
        assert result.message == "Data was already migrated"
        assert len(self.documents.query("workouts", "user-1")) == 1

    def test_nothing_to_migrate(self):
        result = self.runner.migrate("user-1")

        assert result.success is True
        assert result.message == "No local data to migrate"
        assert self.runner.is_migrated("user-1") is False

    def test_existing_hosted_data_blocks_migration(self):
        self.documents.add("trainingPlans", {"userId": "user-1", "name": "Existing"})
        self.store.set_collection(WORKOUTS_KEY, [{"id": "w1"}])

        result = self.runner.migrate("user-1")

        assert result.success is False
        assert "duplicate" in result.message
        assert self.store.get(migration_flag_key("user-1")) is None
        assert self.documents.query("workouts", "user-1") == []

    def test_flags_are_per_user(self):
        self.store.set_collection(WORKOUTS_KEY, [{"id": "w1"}])
        self.runner.migrate("user-1")

        result = self.runner.migrate("user-2")

        assert result.workouts_migrated == 1
        assert self.runner.is_migrated("user-2") is True

    def test_partial_failure_still_sets_flag(self):
        documents = Mock()
        documents.query.return_value = []
        documents.add.side_effect = ["doc-1", DocumentStoreError("quota"), "doc-3"]
        runner = MigrationRunner(self.store, documents)
        self.store.set_collection(WORKOUTS_KEY, [{"id": "w1"}, {"id": "w2"}])
        self.store.set_collection(TRAINING_PLANS_KEY, [{"id": "p1"}])

        result = runner.migrate("user-1")

        assert result.success is True
        assert result.failures == 1
        assert result.workouts_migrated == 1
        assert result.plans_migrated == 1
        assert result.message.endswith("(1 failed)")
        assert runner.is_migrated("user-1") is True

    def test_non_object_records_count_as_failures(self):
        self.store.set(WORKOUTS_KEY, '[1, {"id": "w2", "distance": 8}, "x"]')

        result = self.runner.migrate("user-1")

        assert result.success is True
        assert result.workouts_migrated == 1
        assert result.failures == 2
        assert self.runner.is_migrated("user-1") is True
        assert [d["distance"] for d in self.documents.query("workouts", "user-1")] == [8]

    def test_unexpected_store_error_does_not_abort(self):
        documents = Mock()
        documents.query.return_value = []
        documents.add.side_effect = [RuntimeError("network"), "doc-2"]
        runner = MigrationRunner(self.store, documents)
        self.store.set_collection(WORKOUTS_KEY, [{"id": "w1"}, {"id": "w2"}])

        result = runner.migrate("user-1")

        assert result.workouts_migrated == 1
        assert result.failures == 1
        assert runner.is_migrated("user-1") is True

    def test_store_failure_on_precheck(self):
        documents = Mock()
        documents.query.side_effect = DocumentStoreError("unavailable")
        runner = MigrationRunner(self.store, documents)
        self.store.set_collection(WORKOUTS_KEY, [{"id": "w1"}])

        result = runner.migrate("user-1")

        assert result.success is False
        assert result.message.startswith("Migration failed")
        assert runner.is_migrated("user-1") is False
