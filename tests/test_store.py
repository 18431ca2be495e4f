"""Tests for the history stores."""

import json
from datetime import timedelta

from promptlint.history.store import InMemoryHistoryStore, JsonlHistoryStore
from promptlint.models.evaluation import Severity

from conftest import NOW, make_record


class TestInMemoryHistoryStore:
    def test_read_all_is_sorted_by_timestamp(self):
        store = InMemoryHistoryStore()
        store.append(make_record(2, 60, NOW))
        store.append(make_record(1, 50, NOW - timedelta(days=1)))

        assert [r.id for r in store.read_all()] == [1, 2]

    def test_snapshot_is_not_affected_by_later_appends(self):
        store = InMemoryHistoryStore([make_record(1, 50, NOW)])
        snapshot = store.read_all()

        store.append(make_record(2, 60, NOW))

        assert len(snapshot) == 1
        assert len(store.read_all()) == 2

    def test_new_id_is_strictly_increasing(self):
        store = InMemoryHistoryStore()
        ids = [store.new_id() for _ in range(100)]

        assert ids == sorted(set(ids))


class TestJsonlHistoryStore:
    def test_round_trip_through_file(self, tmp_path):
        path = tmp_path / "nested" / "history.jsonl"
        store = JsonlHistoryStore(path)
        record = make_record(7, 72, NOW, issues=["vague-goal"], category="testing", project_path="/p")

        store.append(record)

        assert path.exists()
        loaded = JsonlHistoryStore(path).read_all()
        assert loaded == [record]
        assert loaded[0].issues[0].severity == Severity.MEDIUM

    def test_missing_file_reads_empty(self, tmp_path):
        assert JsonlHistoryStore(tmp_path / "history.jsonl").read_all() == []

    def test_corrupt_lines_are_skipped(self, tmp_path):
        path = tmp_path / "history.jsonl"
        store = JsonlHistoryStore(path)
        store.append(make_record(1, 50, NOW - timedelta(days=1)))
        with open(path, "a", encoding="utf-8") as f:
            f.write("{not json\n")
            f.write('{"id": 3}\n')
            f.write("\n")
        store.append(make_record(2, 60, NOW))

        assert [r.id for r in store.read_all()] == [1, 2]

    def test_ids_continue_after_reopen(self, tmp_path):
        path = tmp_path / "history.jsonl"
        far_future_id = 10 ** 18
        JsonlHistoryStore(path).append(make_record(far_future_id, 50, NOW))

        assert JsonlHistoryStore(path).new_id() > far_future_id

    def test_undecodable_lines_are_skipped(self, tmp_path):
        path = tmp_path / "history.jsonl"
        store = JsonlHistoryStore(path)
        store.append(make_record(1, 50, NOW - timedelta(days=1)))
        with open(path, "ab") as f:
            f.write(b'{"broken": "\xff\xfe"}\n')
        store.append(make_record(2, 60, NOW))

        assert [r.id for r in store.read_all()] == [1, 2]

    def test_opening_a_file_of_invalid_bytes(self, tmp_path):
        path = tmp_path / "history.jsonl"
        path.write_bytes(b"\xff\n")

        assert JsonlHistoryStore(path).read_all() == []

    def test_append_after_torn_last_line(self, tmp_path):
        path = tmp_path / "history.jsonl"
        JsonlHistoryStore(path).append(make_record(1, 50, NOW - timedelta(days=1)))
        with open(path, "a", encoding="utf-8") as f:
            f.write('{"id": 2, "prompt_te')

        store = JsonlHistoryStore(path)
        store.append(make_record(3, 60, NOW))

        assert [r.id for r in store.read_all()] == [1, 3]

    def test_offset_timestamps_sort_with_naive_ones(self, tmp_path):
        path = tmp_path / "history.jsonl"
        store = JsonlHistoryStore(path)
        store.append(make_record(1, 50, NOW))
        aware = make_record(2, 60, NOW).to_dict()
        aware["timestamp"] = "2024-06-01T08:00:00+00:00"
        with open(path, "a", encoding="utf-8") as f:
            f.write(json.dumps(aware) + "\n")

        records = store.read_all()

        assert [r.id for r in records] == [2, 1]
        assert records[0].timestamp.tzinfo is None
