"""
Tests for candidates.py - candidate lookup, learning and backend selection.
"""

import threading

import pytest

from kanakey.candidates import (
    FALLBACK_WORDS,
    SqlCandidateStore,
    TableCandidateStore,
    baseline_candidates,
    open_store,
)
from kanakey.db import connection
from kanakey.db.connection import dispose
from kanakey.loading.tsv import build_database


class TestQuery:
    """Ranking rules shared by every backend."""

    def test_empty_reading(self, store):
        assert store.query("") == []

    def test_exact_tier_by_cost(self, store):
        assert store.query("きょう") == ["きょう", "キョウ", "今日", "京", "京都"]

    def test_prefix_tier_grouped_by_word(self, store):
        # 私 appears under わたし and わたくし but only once, with its lowest cost
        assert store.query("わた") == ["わた", "ワタ", "私", "渡し"]

    def test_baseline_always_present(self, store):
        result = store.query("ぬぬ")
        assert result[:2] == ["ぬぬ", "ヌヌ"]

    def test_static_fallback(self, store):
        assert "にほん" in FALLBACK_WORDS
        assert store.query("にほん") == ["にほん", "ニホン", "日本"]

    def test_fallback_not_used_with_real_matches(self, store):
        # きょう is in the fallback table too, but the dictionary answers first
        assert "京都" in store.query("きょう")
        assert store.query("きょう").count("京都") == 1

    def test_results_distinct(self, store):
        result = store.query("は")
        assert len(result) == len(set(result))


class TestLearning:
    """record_selection and its effect on ranking."""

    def test_selection_promotes_word(self, store):
        before = store.query("きょう")
        assert before.index("京") > before.index("今日")
        store.record_selection("きょう", "京")
        after = store.query("きょう")
        assert after == ["きょう", "キョウ", "京", "今日", "京都"]

    def test_rank_never_worse(self, store):
        for word in ["今日", "京", "京都"]:
            before = store.query("きょう").index(word)
            store.record_selection("きょう", word)
            store.record_selection("きょう", word)
            assert store.query("きょう").index(word) <= before

    def test_prefix_tier_learns_under_query_reading(self, store):
        store.record_selection("わた", "渡し")
        assert store.query("わた") == ["わた", "ワタ", "渡し", "私"]

    def test_empty_arguments_ignored(self, store):
        store.record_selection("", "今日")
        store.record_selection("きょう", "")
        assert store.query("きょう") == ["きょう", "キョウ", "今日", "京", "京都"]


class TestSqlStore:
    """SQLite specific behaviour."""

    def test_record_creates_then_increments(self, sql_store):
        assert sql_store.learned("きょう", "今日") is None
        sql_store.record_selection("きょう", "今日")
        first = sql_store.learned("きょう", "今日")
        assert first.freq == 1
        assert first.last_used > 0
        sql_store.record_selection("きょう", "今日")
        assert sql_store.learned("きょう", "今日").freq == 2

    def test_concurrent_records_not_lost(self, sql_store):
        def worker():
            for _ in range(25):
                sql_store.record_selection("は", "葉")
                sql_store.query("は")

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sql_store.learned("は", "葉").freq == 200

    def test_learning_persists(self, sql_store):
        sql_store.record_selection("きょう", "京")
        reopened = SqlCandidateStore.open(sql_store.db_path)
        assert reopened.query("きょう")[2] == "京"

    def test_entry_count(self, sql_store):
        assert sql_store.entry_count() == 12

    def test_close_releases_engine(self, tmp_path, source_tsv):
        db_path = tmp_path / "closing.db"
        store = SqlCandidateStore.open(db_path, source_tsv)
        assert str(db_path.resolve()) in connection._engines
        store.close()
        assert str(db_path.resolve()) not in connection._engines

    def test_usable_after_close(self, sql_store):
        sql_store.close()
        assert sql_store.query("は")[2:] == ["歯", "葉"]


class TestTableStore:
    """In-memory backend."""

    def test_len(self, table_store):
        assert len(table_store) == 12

    def test_cap(self):
        entries = {("あ", f"語{i:03d}"): i for i in range(100)}
        store = TableCandidateStore(entries)
        result = store.query("あ")
        assert len(result) == 50
        assert result[:3] == ["あ", "ア", "語000"]

    def test_concurrent_records_not_lost(self, table_store):
        def worker():
            for _ in range(100):
                table_store.record_selection("は", "葉")

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert table_store.frequency("は", "葉") == 800


class TestOpenStore:
    """Backend fallback chain."""

    def test_builds_database_from_source(self, tmp_path, source_tsv):
        db_path = tmp_path / "new.db"
        store = open_store(db_path, source_tsv)
        try:
            assert isinstance(store, SqlCandidateStore)
            assert db_path.exists()
            assert store.query("てんき")[2:] == ["天気", "転機"]
        finally:
            store.close()

    def test_corrupt_database_falls_back_to_table(self, tmp_path, source_tsv):
        db_path = tmp_path / "corrupt.db"
        db_path.write_bytes(b"this is not a sqlite database" * 100)
        store = open_store(db_path, source_tsv)
        try:
            assert isinstance(store, TableCandidateStore)
            assert store.query("てんき")[2:] == ["天気", "転機"]
        finally:
            dispose(db_path)

    def test_prebuilt_database_copied(self, tmp_path, source_tsv):
        prebuilt = tmp_path / "prebuilt.db"
        other = tmp_path / "other.tsv"
        other.write_text("そら\t空\t1\n", encoding="utf-8")
        build_database(prebuilt, other)
        dispose(prebuilt)

        db_path = tmp_path / "user.db"
        store = open_store(db_path, source_tsv, prebuilt)
        try:
            assert isinstance(store, SqlCandidateStore)
            assert store.entry_count() == 1
            assert store.query("そら")[2:] == ["空"]
            store.record_selection("そら", "空")
        finally:
            store.close()

        pristine = SqlCandidateStore.open(prebuilt)
        try:
            assert pristine.learned("そら", "空") is None
        finally:
            pristine.close()

    def test_tsv_used_without_prebuilt(self, tmp_path, source_tsv):
        db_path = tmp_path / "user.db"
        store = open_store(db_path, source_tsv, tmp_path / "missing.db")
        try:
            assert store.entry_count() == 12
        finally:
            store.close()

    def test_nothing_available(self, tmp_path):
        # A directory cannot be opened as a database
        store = open_store(tmp_path, tmp_path / "missing.tsv")
        try:
            assert isinstance(store, TableCandidateStore)
            assert len(store) == 0
            assert store.query("きょう") == ["きょう", "キョウ", "今日", "京都"]
        finally:
            dispose(tmp_path)


def test_baseline_candidates():
    assert baseline_candidates("きょう") == ["きょう", "キョウ"]
    assert baseline_candidates("") == []
