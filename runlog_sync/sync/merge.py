"""Identifier-based merge of record collections."""

from dataclasses import dataclass, field

__all__ = ["merge", "MergeResult"]


@dataclass
class MergeResult:
    """Result of merging incoming records into an existing collection."""

    merged: list[dict] = field(default_factory=list)
    added_count: int = 0


def merge(existing: list[dict], incoming: list[dict]) -> MergeResult:
    """Union of two collections keyed on ``id``, existing records winning ties.

    Existing records keep their order; new incoming records are appended in
    incoming order. Incoming duplicates are dropped, never merged field by
    field, so merging the same set twice adds nothing the second time.

    Records without an ``id`` are never treated as duplicates and are always
    appended.
    """
    existing_ids = {record.get("id") for record in existing}
    existing_ids.discard(None)

    added = [
        record
        for record in incoming
        if record.get("id") is None or record.get("id") not in existing_ids
    ]
    return MergeResult(merged=list(existing) + added, added_count=len(added))
