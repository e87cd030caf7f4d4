"""
Shared fixtures for the kanakey test suite.
"""

from concurrent.futures import Executor, Future

import pytest

from kanakey.candidates import SqlCandidateStore, TableCandidateStore
from kanakey.romaji import default_romaji_map
from kanakey.session import InputEngine


DICTIONARY = """\
# test dictionary
きょう\t今日\t100
きょう\t京\t500
きょうと\t京都\t100
は\t歯\t200
は\t葉\t300
いい\t良い\t200
いい\t言い\t500
てんき\t天気\t100
てんき\t転機\t600
わたし\t私\t100
わたし\t渡し\t800
わたくし\t私\t300
"""


class ManualExecutor(Executor):
    """Executor that only runs jobs when told to, in submission order."""

    def __init__(self):
        self.jobs = []

    def submit(self, fn, *args, **kwargs):
        future = Future()
        self.jobs.append((future, fn, args, kwargs))
        return future

    def run_all(self):
        jobs, self.jobs = self.jobs, []
        for future, fn, args, kwargs in jobs:
            try:
                future.set_result(fn(*args, **kwargs))
            except Exception as e:
                future.set_exception(e)
        return len(jobs)


@pytest.fixture
def source_tsv(tmp_path):
    """Small bootstrap dictionary on disk."""
    path = tmp_path / "words.tsv"
    path.write_text(DICTIONARY, encoding="utf-8")
    return path


@pytest.fixture
def sql_store(tmp_path, source_tsv):
    """SQLite store built from the test dictionary."""
    db_path = tmp_path / "kanakey.db"
    store = SqlCandidateStore.open(db_path, source_tsv)
    yield store
    store.close()


@pytest.fixture
def table_store(source_tsv):
    """In-memory store over the test dictionary."""
    return TableCandidateStore.from_file(source_tsv)


@pytest.fixture(params=["sql", "table"])
def store(request):
    """Each store backend in turn."""
    return request.getfixturevalue(f"{request.param}_store")


@pytest.fixture
def committed():
    """Text received by the host sink."""
    return []


@pytest.fixture
def engine(table_store, committed):
    """Engine on a real worker pool."""
    eng = InputEngine(table_store, commit_text=committed.append)
    yield eng
    eng.close()


@pytest.fixture
def manual_executor():
    return ManualExecutor()


@pytest.fixture
def manual_engine(table_store, committed, manual_executor):
    """Engine whose background jobs only run on manual_executor.run_all()."""
    eng = InputEngine(table_store, commit_text=committed.append, executor=manual_executor)
    yield eng
    eng.close()


@pytest.fixture
def custom_romaji_map(tmp_path, monkeypatch):
    """Point the default romaji table at a small custom file."""
    path = tmp_path / "romaji-map.tsv"
    path.write_text("ka\tカ\na\tあ\n", encoding="utf-8")
    monkeypatch.setattr("kanakey.romaji.ROMAJI_MAP_PATH", path)
    default_romaji_map.cache_clear()
    yield path
    default_romaji_map.cache_clear()
