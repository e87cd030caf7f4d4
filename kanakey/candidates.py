"""
Candidate lookup for Kanakey.

A CandidateStore turns a hiragana reading into an ordered list of surface
words and learns from the words the user commits. Two backends share the
ranking rules implemented in CandidateStore.query:

- SqlCandidateStore: entries + learn tables in SQLite (SQLAlchemy)
- TableCandidateStore: the bootstrap TSV held in memory

open_store() picks one of them once, at startup.
"""

import bisect
import logging
import shutil
import sqlite3
import threading
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union

from sqlalchemy import and_, func, select
from sqlalchemy.dialects.sqlite import insert
from sqlalchemy.exc import SQLAlchemyError

from kanakey.characters import as_katakana
from kanakey.db.connection import dispose, get_engine, get_session_factory, init_schema
from kanakey.db.models import Entry, LearnRecord
from kanakey.loading.tsv import build_database, read_entries
from kanakey.settings import (
    BASELINE_SIZE, DB_PATH, DICTIONARY_PATH, MAX_CANDIDATES, PREBUILT_DB_PATH,
)

logger = logging.getLogger(__name__)


# ============================================================================
# Static Fallback
# ============================================================================

# Last resort when no dictionary knows a reading.
FALLBACK_WORDS: Dict[str, List[str]] = {
    "わたし": ["私"],
    "にほん": ["日本"],
    "にっぽん": ["日本"],
    "がっこう": ["学校"],
    "きょう": ["今日", "京都"],
    "とうきょう": ["東京"],
    "ありがとうございます": ["有難うございます", "ありがとうございます"],
}


def fallback_candidates(reading: str) -> List[str]:
    return list(FALLBACK_WORDS.get(reading, []))


def baseline_candidates(reading: str) -> List[str]:
    """The reading itself followed by its katakana form."""
    if not reading:
        return []
    return _unique([reading, as_katakana(reading)])


def _unique(words: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(words))


def _now_ms() -> int:
    return int(time.time() * 1000)


# ============================================================================
# Store Interface
# ============================================================================

class CandidateStore(ABC):
    """
    Dictionary and learning backed candidate lookup.

    Both public operations may be called from any thread and never raise.
    """

    max_candidates = MAX_CANDIDATES

    def query(self, reading: str) -> List[str]:
        """
        Look up candidates for a reading.

        Order: reading, katakana form, exact matches, then words whose reading
        extends the query. Within a tier, words the user picked more often
        come first, then cheaper ones.

        Args:
            reading: Hiragana reading.

        Returns:
            Distinct candidates, at most max_candidates; [] for an empty reading.
        """
        if not reading:
            return []

        limit = self.max_candidates
        out: Dict[str, None] = dict.fromkeys(baseline_candidates(reading))

        for word in self._exact(reading, limit):
            if len(out) >= limit:
                break
            out.setdefault(word)

        if len(out) < limit:
            for word in self._prefix(reading, limit):
                if len(out) >= limit:
                    break
                out.setdefault(word)

        if len(out) <= BASELINE_SIZE:
            for word in fallback_candidates(reading):
                out.setdefault(word)

        return list(out)[:limit]

    @abstractmethod
    def _exact(self, reading: str, limit: int) -> List[str]:
        """Words whose reading equals the query, best first."""

    @abstractmethod
    def _prefix(self, reading: str, limit: int) -> List[str]:
        """Words whose reading strictly extends the query, best first."""

    @abstractmethod
    def record_selection(self, reading: str, word: str) -> None:
        """Count one commit of word for reading."""

    def close(self) -> None:
        pass


# ============================================================================
# SQLite Backend
# ============================================================================

class SqlCandidateStore(CandidateStore):
    """Candidate store on the entries/learn tables of a SQLite database."""

    def __init__(self, db_path: Union[str, Path]):
        self.db_path = Path(db_path)
        self._session_factory = get_session_factory(self.db_path)
        self._write_lock = threading.Lock()

    @classmethod
    def open(
        cls,
        db_path: Union[str, Path],
        source_path: Optional[Union[str, Path]] = None,
        prebuilt_path: Optional[Union[str, Path]] = None,
    ) -> "SqlCandidateStore":
        """
        Open a database, creating it when it does not exist.

        A missing database is copied from prebuilt_path if that file exists,
        else built from source_path, else created empty.

        Raises:
            SQLAlchemyError: If the database is unreadable.
            OSError: If the file cannot be created.
        """
        db_path = Path(db_path)
        if not db_path.exists():
            if prebuilt_path is not None and Path(prebuilt_path).is_file():
                logger.info(f"Copying prebuilt dictionary {prebuilt_path} to {db_path}")
                db_path.parent.mkdir(parents=True, exist_ok=True)
                shutil.copyfile(prebuilt_path, db_path)
            elif source_path is not None and Path(source_path).exists():
                logger.info(f"Building dictionary database {db_path} from {source_path}")
                build_database(db_path, source_path)
        # The learn table may be missing from a copied database
        init_schema(get_engine(db_path))

        store = cls(db_path)
        count = store.entry_count()
        logger.info(f"Using dictionary database {db_path} ({count} entries)")
        return store

    def entry_count(self) -> int:
        with self._session_factory() as session:
            return session.execute(select(func.count()).select_from(Entry)).scalar_one()

    def _exact(self, reading: str, limit: int) -> List[str]:
        freq = func.coalesce(LearnRecord.freq, 0)
        stmt = (
            select(Entry.word)
            .outerjoin(LearnRecord, and_(
                LearnRecord.reading == Entry.reading,
                LearnRecord.word == Entry.word,
            ))
            .where(Entry.reading == reading)
            .order_by(freq.desc(), Entry.cost.asc(), Entry.word.asc())
            .limit(limit)
        )
        return self._words(stmt)

    def _prefix(self, reading: str, limit: int) -> List[str]:
        freq = func.max(func.coalesce(LearnRecord.freq, 0))
        cost = func.min(Entry.cost)
        stmt = (
            select(Entry.word)
            .outerjoin(LearnRecord, and_(
                LearnRecord.reading == reading,
                LearnRecord.word == Entry.word,
            ))
            .where(
                Entry.reading.startswith(reading, autoescape=True),
                Entry.reading != reading,
            )
            .group_by(Entry.word)
            .order_by(freq.desc(), cost.asc(), Entry.word.asc())
            .limit(limit)
        )
        return self._words(stmt)

    def _words(self, stmt) -> List[str]:
        try:
            with self._session_factory() as session:
                return list(session.execute(stmt).scalars())
        except SQLAlchemyError:
            logger.exception("Dictionary lookup failed; treating as no matches")
            return []

    def record_selection(self, reading: str, word: str) -> None:
        if not reading or not word:
            return

        stmt = insert(LearnRecord).values(reading=reading, word=word, freq=1, last_used=_now_ms())
        stmt = stmt.on_conflict_do_update(
            index_elements=[LearnRecord.reading, LearnRecord.word],
            set_={
                'freq': LearnRecord.freq + 1,
                'last_used': stmt.excluded.last_used,
            },
        )
        try:
            with self._write_lock, self._session_factory() as session, session.begin():
                session.execute(stmt)
        except SQLAlchemyError:
            logger.exception(f"Failed to record selection {word!r} for {reading!r}")

    def learned(self, reading: str, word: str) -> Optional[LearnRecord]:
        """Return the learning record for (reading, word), if any."""
        with self._session_factory() as session:
            return session.get(LearnRecord, (reading, word))

    def close(self) -> None:
        """Release the pooled connections of this database."""
        dispose(self.db_path)


# ============================================================================
# In-Memory Backend
# ============================================================================

class TableCandidateStore(CandidateStore):
    """
    Candidate store over an in-memory dictionary table.

    Learning counts live in memory only and are lost on exit.
    """

    def __init__(self, entries: Optional[Dict[Tuple[str, str], int]] = None):
        self._by_reading: Dict[str, Dict[str, int]] = {}
        for (reading, word), cost in (entries or {}).items():
            words = self._by_reading.setdefault(reading, {})
            if word not in words or cost < words[word]:
                words[word] = cost
        self._readings = sorted(self._by_reading)
        self._learn: Dict[Tuple[str, str], Tuple[int, int]] = {}
        self._write_lock = threading.Lock()

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "TableCandidateStore":
        """
        Load a bootstrap TSV file.

        Raises:
            OSError: If the file cannot be read.
        """
        store = cls(read_entries(path))
        logger.info(f"Using in-memory dictionary from {path} ({len(store)} entries)")
        return store

    def __len__(self) -> int:
        return sum(len(words) for words in self._by_reading.values())

    def frequency(self, reading: str, word: str) -> int:
        return self._learn.get((reading, word), (0, 0))[0]

    def _rank(self, reading: str, words: Dict[str, int], limit: int) -> List[str]:
        ranked = sorted(
            words.items(),
            key=lambda item: (-self.frequency(reading, item[0]), item[1], item[0]),
        )
        return [word for word, _ in ranked[:limit]]

    def _exact(self, reading: str, limit: int) -> List[str]:
        return self._rank(reading, self._by_reading.get(reading, {}), limit)

    def _prefix(self, reading: str, limit: int) -> List[str]:
        best: Dict[str, int] = {}
        start = bisect.bisect_right(self._readings, reading)
        for other in self._readings[start:]:
            if not other.startswith(reading):
                break
            for word, cost in self._by_reading[other].items():
                if word not in best or cost < best[word]:
                    best[word] = cost
        return self._rank(reading, best, limit)

    def record_selection(self, reading: str, word: str) -> None:
        if not reading or not word:
            return
        with self._write_lock:
            freq, _ = self._learn.get((reading, word), (0, 0))
            self._learn[(reading, word)] = (freq + 1, _now_ms())


# ============================================================================
# Backend Selection
# ============================================================================

def open_store(
    db_path: Optional[Union[str, Path]] = None,
    source_path: Optional[Union[str, Path]] = None,
    prebuilt_path: Optional[Union[str, Path]] = None,
) -> CandidateStore:
    """
    Open the best available candidate store.

    Tries the SQLite database (copying the prebuilt database or building it
    from the bootstrap dictionary if needed), then the bootstrap dictionary
    held in memory, then an empty table that only offers the baseline and
    static fallback candidates.

    Args:
        db_path: SQLite database path. Defaults to settings.DB_PATH.
        source_path: Bootstrap TSV path. Defaults to settings.DICTIONARY_PATH.
        prebuilt_path: Ready-made database. Defaults to settings.PREBUILT_DB_PATH.

    Returns:
        A ready CandidateStore.
    """
    db_path = Path(db_path) if db_path is not None else DB_PATH
    source_path = Path(source_path) if source_path is not None else DICTIONARY_PATH
    prebuilt_path = Path(prebuilt_path) if prebuilt_path is not None else PREBUILT_DB_PATH

    try:
        return SqlCandidateStore.open(db_path, source_path, prebuilt_path)
    except (SQLAlchemyError, sqlite3.Error, OSError) as e:
        logger.warning(f"Dictionary database {db_path} unavailable: {e}")

    try:
        return TableCandidateStore.from_file(source_path)
    except OSError as e:
        logger.warning(f"Dictionary file {source_path} unavailable: {e}")

    logger.warning("No dictionary available; only fallback candidates will be offered")
    return TableCandidateStore()
