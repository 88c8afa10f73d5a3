"""Backup export/import against the local store."""

import logging
from dataclasses import dataclass
from datetime import date
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from ..errors import FormatError
from ..storage.local_store import LocalStore, TRAINING_PLANS_KEY, WORKOUTS_KEY
from .envelope import backup_filename, decode, encode
from .merge import merge

__all__ = ["BackupService", "BackupStats", "ImportMode", "ImportResult"]

logger = logging.getLogger(__name__)


class ImportMode(str, Enum):
    MERGE = "merge"
    REPLACE = "replace"


@dataclass
class BackupStats:
    workouts: int = 0
    plans: int = 0


@dataclass
class ImportResult:
    """Outcome of an import."""

    mode: ImportMode
    workouts_added: int = 0
    plans_added: int = 0
    total_workouts: int = 0
    total_plans: int = 0


class BackupService:
    """Exports, imports and wipes the local workout and plan collections."""

    def __init__(
        self,
        store: LocalStore,
        on_data_changed: Optional[Callable[[], None]] = None,
    ):
        self.store = store
        self._on_data_changed = on_data_changed

    def stats(self) -> BackupStats:
        return BackupStats(
            workouts=len(self.store.get_collection(WORKOUTS_KEY)),
            plans=len(self.store.get_collection(TRAINING_PLANS_KEY)),
        )

    def export_text(self) -> str:
        """Current local data as backup envelope text."""
        return encode(
            self.store.get_collection(WORKOUTS_KEY),
            self.store.get_collection(TRAINING_PLANS_KEY),
        )

    def export_to_file(self, directory: Path, today: Optional[date] = None) -> Path:
        """Write a dated backup file into ``directory`` and return its path."""
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / backup_filename(today)
        path.write_text(self.export_text(), encoding="utf-8")
        stats = self.stats()
        logger.info(
            f"Backup exported to {path} ({stats.workouts} workouts, {stats.plans} plans)"
        )
        return path

    def import_text(self, raw: str, mode: ImportMode = ImportMode.MERGE) -> ImportResult:
        """Import backup text.

        Args:
            raw: Backup text (current envelope or a legacy variant)
            mode: MERGE keeps existing records and adds new IDs,
                REPLACE overwrites both collections

        Raises:
            FormatError: If the text is empty or not a recognized backup
        """
        if not raw or not raw.strip():
            raise FormatError("Backup content is empty")

        payload = decode(raw)

        if mode == ImportMode.REPLACE:
            self.store.set_collection(WORKOUTS_KEY, payload.workouts)
            self.store.set_collection(TRAINING_PLANS_KEY, payload.training_plans)
            result = ImportResult(
                mode=mode,
                workouts_added=len(payload.workouts),
                plans_added=len(payload.training_plans),
                total_workouts=len(payload.workouts),
                total_plans=len(payload.training_plans),
            )
        else:
            workouts = merge(self.store.get_collection(WORKOUTS_KEY), payload.workouts)
            plans = merge(
                self.store.get_collection(TRAINING_PLANS_KEY), payload.training_plans
            )
            self.store.set_collection(WORKOUTS_KEY, workouts.merged)
            self.store.set_collection(TRAINING_PLANS_KEY, plans.merged)
            result = ImportResult(
                mode=mode,
                workouts_added=workouts.added_count,
                plans_added=plans.added_count,
                total_workouts=len(workouts.merged),
                total_plans=len(plans.merged),
            )

        logger.info(
            f"Imported backup ({mode.value}): +{result.workouts_added} workouts, "
            f"+{result.plans_added} plans"
        )
        self._data_changed()
        return result

    def import_file(self, path: Path, mode: ImportMode = ImportMode.MERGE) -> ImportResult:
        try:
            raw = path.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise FormatError(f"Backup file is not UTF-8 text: {e}") from e
        return self.import_text(raw, mode)

    def clear_all(self) -> None:
        """Delete every local workout and plan."""
        self.store.remove(WORKOUTS_KEY)
        self.store.remove(TRAINING_PLANS_KEY)
        logger.info("All local data cleared")
        self._data_changed()

    def _data_changed(self) -> None:
        if self._on_data_changed:
            self._on_data_changed()
