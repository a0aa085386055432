"""
Local Store Tests - Alignment Chart
tests/test_local_store.py

SQLite-backed placement store: coalesced initialization, atomic snapshot
replacement, deletes and lenient loading of stale records.
"""
import asyncio
import json
import sqlite3
from unittest.mock import patch

import pytest

from alignment_chart.core.exceptions import PersistenceError
from alignment_chart.models.alignment import AlignmentResult, AnalysisOutcome
from alignment_chart.models.placement import Position, StoredPlacement
from alignment_chart.session.local_store import LocalStore


def record(record_id: str, **kwargs) -> StoredPlacement:
    kwargs.setdefault("src", f"https://unavatar.io/x/{record_id}")
    kwargs.setdefault("timestamp", f"2024-05-01T10:00:0{len(record_id) % 10}+00:00")
    return StoredPlacement(id=record_id, **kwargs)


class TestInitialize:
    def test_concurrent_initialize_opens_once(self, local_store):
        async def scenario():
            with patch.object(LocalStore, "_open", autospec=True, side_effect=LocalStore._open) as spy:
                await asyncio.gather(*(local_store.initialize() for _ in range(5)))
                return spy.call_count

        assert asyncio.run(scenario()) == 1
        assert local_store.is_ready

    def test_schema_version_recorded(self, store_path):
        store = LocalStore(path=store_path, schema_version=3)
        asyncio.run(store.initialize())
        with sqlite3.connect(store_path) as conn:
            assert conn.execute("PRAGMA user_version").fetchone()[0] == 3

    def test_operations_wait_for_initialize(self, local_store):
        assert not local_store.is_ready
        assert asyncio.run(local_store.load_all()) == []
        assert local_store.is_ready

    def test_unopenable_path_raises_persistence_error(self, tmp_path):
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("file")
        store = LocalStore(path=str(blocker / "chart.db"))
        with pytest.raises(PersistenceError) as exc:
            asyncio.run(store.initialize())
        assert exc.value.operation == "initialize"
        assert not store.is_ready


class TestReplaceAll:
    def test_replace_all_overwrites_snapshot(self, local_store):
        asyncio.run(local_store.replace_all([record("a"), record("b")]))
        asyncio.run(local_store.replace_all([record("c")]))
        ids = [r.id for r in asyncio.run(local_store.load_all())]
        assert ids == ["c"]

    def test_empty_snapshot_clears(self, local_store):
        asyncio.run(local_store.replace_all([record("a")]))
        asyncio.run(local_store.replace_all([]))
        assert asyncio.run(local_store.load_all()) == []

    def test_failed_replace_keeps_previous_snapshot(self, local_store):
        asyncio.run(local_store.replace_all([record("a"), record("b")]))
        with pytest.raises(PersistenceError) as exc:
            asyncio.run(local_store.replace_all([record("x"), record("x")]))
        assert exc.value.operation == "replace_all"
        ids = sorted(r.id for r in asyncio.run(local_store.load_all()))
        assert ids == ["a", "b"]

    def test_round_trip_preserves_analysis(self, local_store):
        outcome = AnalysisOutcome.success(
            AlignmentResult(lawful_chaotic=40, good_evil=-10, explanation="steady"),
            cache_key="analysis-linkedin:v1:https://www.linkedin.com/in/alice",
            cached=False,
        )
        original = record("alice", username="alice", is_ai_placed=True, analysis=outcome,
                          position=Position(x=70, y=45))
        asyncio.run(local_store.replace_all([original]))
        [loaded] = asyncio.run(local_store.load_all())
        assert loaded == original


class TestDeleteAndClear:
    def test_delete_single_record(self, local_store):
        asyncio.run(local_store.replace_all([record("a"), record("b")]))
        asyncio.run(local_store.delete("a"))
        assert [r.id for r in asyncio.run(local_store.load_all())] == ["b"]

    def test_delete_missing_id_is_noop(self, local_store):
        asyncio.run(local_store.replace_all([record("a")]))
        asyncio.run(local_store.delete("zzz"))
        assert len(asyncio.run(local_store.load_all())) == 1

    def test_clear(self, local_store):
        asyncio.run(local_store.replace_all([record("a"), record("b")]))
        asyncio.run(local_store.clear())
        assert asyncio.run(local_store.load_all()) == []


class TestStaleRecords:
    """Records from older versions load with defaults instead of failing."""

    def _insert_raw(self, store: LocalStore, record_id: str, data: str):
        asyncio.run(store.initialize())
        with sqlite3.connect(store.path) as conn:
            conn.execute(
                f"INSERT INTO {store.table} (id, data, timestamp) VALUES (?, ?, ?)",
                (record_id, data, "2024-01-01T00:00:00+00:00"),
            )

    def test_missing_fields_are_defaulted(self, local_store):
        self._insert_raw(local_store, "old", json.dumps({"id": "old", "src": "a.png"}))
        [loaded] = asyncio.run(local_store.load_all())
        assert loaded.id == "old"
        assert loaded.position == Position(x=50, y=50)
        assert loaded.analysis is None
        assert loaded.is_ai_placed is False

    def test_unknown_analysis_shape_is_dropped(self, local_store):
        data = {"id": "old", "src": "a.png", "analysis": {"score": 7}, "position": "top-left", "isAiPlaced": True}
        self._insert_raw(local_store, "old", json.dumps(data))
        [loaded] = asyncio.run(local_store.load_all())
        assert loaded.analysis is None
        assert loaded.position == Position()
        assert loaded.is_ai_placed is True

    def test_corrupt_row_is_skipped(self, local_store):
        asyncio.run(local_store.replace_all([record("good")]))
        self._insert_raw(local_store, "bad", "{not json")
        assert [r.id for r in asyncio.run(local_store.load_all())] == ["good"]
