"""
Tests for loading/tsv.py - bootstrap dictionary parsing and loading.
"""

import pytest
from sqlalchemy import select

from kanakey.db.connection import dispose, session_scope
from kanakey.db.models import Entry
from kanakey.loading.tsv import (
    DictionaryRecord,
    build_database,
    parse_line,
    read_entries,
)


class TestParseLine:
    """Parsing of single dictionary lines."""

    def test_full_line(self):
        assert parse_line("きょう\t今日\t100") == DictionaryRecord("きょう", "今日", 100)

    def test_default_cost(self):
        assert parse_line("きょう\t今日") == DictionaryRecord("きょう", "今日", 1000)

    def test_non_numeric_cost(self):
        assert parse_line("きょう\t今日\tcheap").cost == 1000

    def test_negative_cost(self):
        assert parse_line("きょう\t今日\t-5").cost == 1000

    def test_katakana_reading_folded(self):
        assert parse_line("キョウ\t今日\t10").reading == "きょう"

    @pytest.mark.parametrize("line", [
        "",
        "   ",
        "# comment\tline",
        "onlyonefield",
        "\t今日\t100",
        "きょう\t\t100",
    ])
    def test_skipped(self, line):
        assert parse_line(line) is None


class TestReadEntries:
    """Reading whole files."""

    def test_minimum_cost_kept(self, tmp_path):
        path = tmp_path / "dup.tsv"
        path.write_text("きょう\t今日\t500\nキョウ\t今日\t100\nきょう\t今日\n", encoding="utf-8")
        assert read_entries(path) == {("きょう", "今日"): 100}

    def test_malformed_lines_skipped(self, tmp_path):
        path = tmp_path / "mixed.tsv"
        path.write_text("broken\nきょう\t今日\t1\n\n#x\nは\t歯\n", encoding="utf-8")
        assert read_entries(path) == {("きょう", "今日"): 1, ("は", "歯"): 1000}

    def test_empty_reading_field_not_shifted(self, tmp_path):
        path = tmp_path / "shifted.tsv"
        path.write_text("\t今日\t100\nは\t歯\t200\r\n", encoding="utf-8")
        assert read_entries(path) == {("は", "歯"): 200}

    def test_missing_file(self, tmp_path):
        with pytest.raises(OSError):
            read_entries(tmp_path / "missing.tsv")


class TestBuildDatabase:
    """Bulk loading into SQLite."""

    def test_build(self, tmp_path, source_tsv):
        db_path = tmp_path / "built.db"
        progress = []
        total = build_database(db_path, source_tsv, batch_size=5, progress_callback=progress.append)
        try:
            assert total == 12
            assert progress == [5, 10, 12]
            with session_scope(db_path) as session:
                rows = session.execute(
                    select(Entry.word, Entry.cost).where(Entry.reading == "きょう").order_by(Entry.cost)
                ).all()
            assert [tuple(r) for r in rows] == [("今日", 100), ("京", 500)]
        finally:
            dispose(db_path)

    def test_reload_keeps_lower_cost(self, tmp_path, source_tsv):
        db_path = tmp_path / "built.db"
        cheaper = tmp_path / "cheaper.tsv"
        cheaper.write_text("きょう\t京\t50\nきょう\t今日\t900\n", encoding="utf-8")
        try:
            build_database(db_path, source_tsv)
            build_database(db_path, cheaper)
            with session_scope(db_path) as session:
                costs = dict(session.execute(
                    select(Entry.word, Entry.cost).where(Entry.reading == "きょう")
                ).all())
            assert costs == {"京": 50, "今日": 100}
        finally:
            dispose(db_path)
