"""
Bootstrap dictionary loading for Kanakey.

Format (UTF-8, tab-separated, one entry per line):

    reading<TAB>word<TAB>cost

The cost is optional and defaults to 1000. Blank lines and lines starting
with '#' are skipped, as is any line that cannot be parsed. Readings are
folded to hiragana before storage; duplicate (reading, word) pairs keep
their minimum cost.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Iterable, Iterator, Optional, Tuple, Union

from sqlalchemy import func
from sqlalchemy.dialects.sqlite import insert
from sqlalchemy.orm import Session

from kanakey.characters import as_hiragana
from kanakey.db.connection import get_engine, init_schema, session_scope
from kanakey.db.models import Entry
from kanakey.settings import DEFAULT_COST, LOAD_BATCH_SIZE

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DictionaryRecord:
    reading: str
    word: str
    cost: int = DEFAULT_COST


def parse_line(line: str) -> Optional[DictionaryRecord]:
    """
    Parse one dictionary line.

    Returns:
        The record, or None for blank, comment and malformed lines.
    """
    text = line.strip()
    if not text or text.startswith('#'):
        return None

    # Split before stripping so an empty leading field stays in place
    parts = line.rstrip('\r\n').split('\t')
    if len(parts) < 2:
        return None

    reading = as_hiragana(parts[0].strip())
    word = parts[1].strip()
    if not reading or not word:
        return None

    cost = DEFAULT_COST
    if len(parts) >= 3:
        try:
            cost = int(parts[2].strip())
        except ValueError:
            cost = DEFAULT_COST
        if cost < 0:
            cost = DEFAULT_COST

    return DictionaryRecord(reading, word, cost)


def iter_records(lines: Iterable[str]) -> Iterator[DictionaryRecord]:
    """Yield every well-formed record, skipping the rest."""
    for lineno, line in enumerate(lines, 1):
        record = parse_line(line)
        if record is None:
            if line.strip() and not line.lstrip().startswith('#'):
                logger.debug(f"Skipping malformed dictionary line {lineno}: {line!r}")
            continue
        yield record


def merge_records(records: Iterable[DictionaryRecord]) -> Dict[Tuple[str, str], int]:
    """Collapse records to {(reading, word): minimum cost}."""
    merged: Dict[Tuple[str, str], int] = {}
    for record in records:
        key = (record.reading, record.word)
        previous = merged.get(key)
        if previous is None or record.cost < previous:
            merged[key] = record.cost
    return merged


def read_entries(path: Union[str, Path]) -> Dict[Tuple[str, str], int]:
    """
    Read a dictionary file.

    Args:
        path: TSV file path.

    Returns:
        Mapping of (reading, word) to minimum cost.

    Raises:
        OSError: If the file cannot be opened.
    """
    with open(path, 'r', encoding='utf-8', errors='replace') as f:
        return merge_records(iter_records(f))


def load_tsv(
    session: Session,
    path: Union[str, Path],
    batch_size: int = LOAD_BATCH_SIZE,
    progress_callback: Optional[Callable[[int], None]] = None,
) -> int:
    """
    Load a dictionary file into the entries table.

    Existing rows keep the lower of the stored and the new cost.

    Args:
        session: Database session.
        path: TSV file path.
        batch_size: Rows per commit.
        progress_callback: Called with the running row count after each batch.

    Returns:
        Number of (reading, word) pairs loaded.
    """
    entries = read_entries(path)
    rows = [
        {'reading': reading, 'word': word, 'cost': cost}
        for (reading, word), cost in entries.items()
    ]
    total = len(rows)
    logger.info(f"Loading {total} dictionary entries from {path}...")

    stmt = insert(Entry)
    stmt = stmt.on_conflict_do_update(
        index_elements=[Entry.reading, Entry.word],
        set_={'cost': func.min(Entry.cost, stmt.excluded.cost)},
    )

    for start in range(0, total, batch_size):
        batch = rows[start:start + batch_size]
        session.execute(stmt, batch)
        session.commit()

        loaded = min(start + batch_size, total)
        if progress_callback:
            progress_callback(loaded)
        else:
            logger.info(f"Loaded {loaded}/{total} entries...")

    logger.info(f"Dictionary load complete. {total} entries.")
    return total


def build_database(
    db_path: Union[str, Path],
    source_path: Union[str, Path],
    batch_size: int = LOAD_BATCH_SIZE,
    progress_callback: Optional[Callable[[int], None]] = None,
) -> int:
    """Create the schema at db_path and load source_path into it."""
    init_schema(get_engine(db_path))
    with session_scope(db_path) as session:
        return load_tsv(session, source_path, batch_size, progress_callback)
