"""Tests for the merge engine."""

from runlog_sync.sync.merge import MergeResult, merge


class TestMerge:
    """Tests for merge()."""

    def test_appends_new_records_in_incoming_order(self):
        existing = [{"id": "w1", "distance": 5}]
        incoming = [{"id": "w3", "distance": 3}, {"id": "w2", "distance": 10}]

        result = merge(existing, incoming)

        assert [r["id"] for r in result.merged] == ["w1", "w3", "w2"]
        assert result.added_count == 2

    def test_existing_copy_wins_ties(self):
        existing = [{"id": "w1", "distance": 5, "notes": "local"}]
        incoming = [{"id": "w1", "distance": 42, "notes": "remote", "pace": "5:00"}]

        result = merge(existing, incoming)

        assert result.merged == [{"id": "w1", "distance": 5, "notes": "local"}]
        assert result.added_count == 0

    def test_merge_is_idempotent(self):
        a = [{"id": 1}, {"id": 2}]
        b = [{"id": 2}, {"id": 3}, {"id": 4}]

        first = merge(a, b)
        second = merge(first.merged, b)

        assert first.added_count == 2
        assert second.added_count == 0
        assert second.merged == first.merged

    def test_merging_merged_result_into_base_adds_nothing(self):
        a = [{"id": "a"}]
        b = [{"id": "b"}, {"id": "c"}]

        merged = merge(a, b).merged
        assert merge(merged, merge(a, merged).merged).added_count == 0
        assert merge(merged, a).added_count == 0

    def test_empty_inputs(self):
        assert merge([], []) == MergeResult(merged=[], added_count=0)
        assert merge([], [{"id": 1}]).added_count == 1
        assert merge([{"id": 1}], []).merged == [{"id": 1}]

    def test_records_without_id_are_never_deduplicated(self):
        """Known edge case: records lacking an id always get appended."""
        existing = [{"name": "Long run"}]
        incoming = [{"name": "Long run"}, {"id": None, "name": "Tempo"}]

        result = merge(existing, incoming)

        assert result.added_count == 2
        assert len(result.merged) == 3

        again = merge(result.merged, incoming)
        assert again.added_count == 2

    def test_inputs_are_not_mutated(self):
        existing = [{"id": 1}]
        incoming = [{"id": 2}]

        merge(existing, incoming)

        assert existing == [{"id": 1}]
        assert incoming == [{"id": 2}]

    def test_numeric_and_string_ids_are_distinct(self):
        result = merge([{"id": 1}], [{"id": "1"}])
        assert result.added_count == 1
