"""Backup envelope codec.

Current format::

    {
      "version": "1.0",
      "exportDate": "2026-02-18T10:00:00.000Z",
      "workouts": [...],
      "trainingPlans": [...]
    }

Older exports are still accepted: a bare list (plans-only export) and
objects carrying only ``workouts`` and/or ``trainingPlans``.
"""

import json
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Optional

from ..errors import FormatError

__all__ = [
    "BACKUP_VERSION",
    "BackupPayload",
    "build_envelope",
    "encode",
    "decode",
    "backup_filename",
    "format_timestamp",
]

BACKUP_VERSION = "1.0"


@dataclass
class BackupPayload:
    """Collections read from a backup."""

    workouts: list[dict] = field(default_factory=list)
    training_plans: list[dict] = field(default_factory=list)


def format_timestamp(moment: datetime) -> str:
    """ISO-8601 UTC timestamp with milliseconds and a ``Z`` suffix."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def build_envelope(
    workouts: list[dict],
    training_plans: list[dict],
    now: Optional[datetime] = None,
) -> dict:
    return {
        "version": BACKUP_VERSION,
        "exportDate": format_timestamp(now or datetime.now(timezone.utc)),
        "workouts": workouts,
        "trainingPlans": training_plans,
    }


def encode(
    workouts: list[dict],
    training_plans: list[dict],
    now: Optional[datetime] = None,
) -> str:
    """Serialize both collections as a pretty-printed current-version envelope."""
    envelope = build_envelope(workouts, training_plans, now)
    return json.dumps(envelope, indent=2, ensure_ascii=False)


def _records(value: list, key: str) -> list[dict]:
    """Every record must be an object with a scalar (hashable) id."""
    for index, record in enumerate(value):
        if not isinstance(record, dict):
            raise FormatError(f"'{key}' item {index} is not an object")
        if isinstance(record.get("id"), (list, dict)):
            raise FormatError(f"'{key}' item {index} has an invalid id")
    return value


def _collection(data: dict, key: str) -> list[dict]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise FormatError(f"'{key}' must be a list")
    return _records(value, key)


def decode(raw: str) -> BackupPayload:
    """Parse backup text, detecting the legacy variants.

    Raises:
        FormatError: If the text is not JSON or matches no known format
    """
    try:
        data: Any = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise FormatError(f"Invalid JSON: {e}") from e

    if isinstance(data, dict) and data.get("version"):
        return BackupPayload(
            workouts=_collection(data, "workouts"),
            training_plans=_collection(data, "trainingPlans"),
        )

    if isinstance(data, list):
        # Legacy export: plans only
        return BackupPayload(training_plans=_records(data, "trainingPlans"))

    if isinstance(data, dict) and ("workouts" in data or "trainingPlans" in data):
        return BackupPayload(
            workouts=_collection(data, "workouts"),
            training_plans=_collection(data, "trainingPlans"),
        )

    raise FormatError("Unrecognized backup format")


def backup_filename(today: Optional[date] = None) -> str:
    today = today or date.today()
    return f"running-tracker-backup-{today.isoformat()}.json"
