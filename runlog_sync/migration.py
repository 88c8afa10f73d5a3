"""One-time migration of local data into the hosted document store."""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from .errors import DocumentStoreError, PreconditionError
from .storage.documents import DocumentStoreProtocol
from .storage.local_store import (
    LocalStore,
    TRAINING_PLANS_KEY,
    WORKOUTS_KEY,
    migration_flag_key,
)
from .sync.envelope import format_timestamp

__all__ = ["MigrationRunner", "MigrationResult"]

logger = logging.getLogger(__name__)


@dataclass
class MigrationResult:
    """Outcome of a migration attempt."""

    success: bool
    message: str
    workouts_migrated: int = 0
    plans_migrated: int = 0
    failures: int = 0


class MigrationRunner:
    """Copies local workouts and plans to the hosted store, once per user.

    The per-user flag in the local store is the only guard against
    re-running. It is written after the copy loop, even if some records
    failed, and never when the hosted store already held data.
    """

    def __init__(self, store: LocalStore, documents: DocumentStoreProtocol):
        self.store = store
        self.documents = documents

    def is_migrated(self, user_id: str) -> bool:
        return self.store.has(migration_flag_key(user_id))

    def migrate(self, user_id: str) -> MigrationResult:
        """Run the migration for ``user_id``. Never raises."""
        if self.is_migrated(user_id):
            return MigrationResult(success=True, message="Data was already migrated")

        workouts = self.store.get_collection(WORKOUTS_KEY)
        plans = self.store.get_collection(TRAINING_PLANS_KEY)
        if not workouts and not plans:
            return MigrationResult(success=True, message="No local data to migrate")

        try:
            self._check_no_hosted_data(user_id)
        except PreconditionError as e:
            logger.warning(f"Migration skipped for {user_id}: {e}")
            return MigrationResult(success=False, message=str(e))
        except DocumentStoreError as e:
            logger.error(f"Migration failed for {user_id}: {e}")
            return MigrationResult(success=False, message=f"Migration failed: {e}")

        workouts_migrated, workout_failures = self._copy(user_id, "workouts", workouts)
        plans_migrated, plan_failures = self._copy(user_id, "trainingPlans", plans)

        self.store.set(
            migration_flag_key(user_id), format_timestamp(datetime.now(timezone.utc))
        )

        failures = workout_failures + plan_failures
        message = (
            f"Migration complete: {workouts_migrated} workouts and "
            f"{plans_migrated} plans migrated"
        )
        if failures:
            message += f" ({failures} failed)"
        logger.info(f"{message} for {user_id}")

        return MigrationResult(
            success=True,
            message=message,
            workouts_migrated=workouts_migrated,
            plans_migrated=plans_migrated,
            failures=failures,
        )

    def _check_no_hosted_data(self, user_id: str) -> None:
        existing_workouts = self.documents.query("workouts", user_id)
        existing_plans = self.documents.query("trainingPlans", user_id)
        if existing_workouts or existing_plans:
            raise PreconditionError(
                "Hosted data already exists for this account; migration was "
                "not run because it would duplicate records"
            )

    def _copy(self, user_id: str, collection: str, records: list[dict]) -> tuple[int, int]:
        """Add each record as a new document. Returns (migrated, failed)."""
        migrated = 0
        failed = 0
        for index, record in enumerate(records):
            if not isinstance(record, dict):
                failed += 1
                logger.error(f"Skipping {collection} item {index}: not an object")
                continue

            doc = {k: v for k, v in record.items() if k != "id"}
            doc.update(
                userId=user_id,
                migrated=True,
                migratedAt=format_timestamp(datetime.now(timezone.utc)),
            )
            try:
                self.documents.add(collection, doc)
                migrated += 1
            except DocumentStoreError as e:
                failed += 1
                logger.error(f"Failed to migrate {collection} record {record.get('id')}: {e}")
            except Exception as e:
                failed += 1
                logger.exception(f"Unexpected error migrating {collection} record {record.get('id')}: {e}")
        return migrated, failed
