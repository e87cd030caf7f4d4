"""
Command line interface for kanakey.

Usage:
    python -m kanakey.cli "kyouhaiitenki"           # segment and list candidates
    python -m kanakey.cli -j "kyouhaiitenki"        # same, as JSON
    python -m kanakey.cli query きょう              # candidates for one reading
    python -m kanakey.cli init-db --source words.tsv --output kanakey.db
"""

import argparse
import json
import logging
import os
import sys
import time
from pathlib import Path
from typing import Optional

from kanakey import __version__, convert
from kanakey.candidates import open_store
from kanakey.characters import as_hiragana
from kanakey.models import SessionSnapshot
from kanakey.settings import DB_PATH, DEBUG, DICTIONARY_PATH


def _setup_logging() -> None:
    logging.basicConfig(
        level=logging.DEBUG if DEBUG else logging.WARNING,
        format='%(asctime)s - %(levelname)s - %(message)s',
    )


def format_snapshot_text(snapshot: SessionSnapshot) -> str:
    """Format a conversion snapshot as text output."""
    lines = ['|'.join(seg.reading for seg in snapshot.segments)]
    lines.append(snapshot.composing)
    for seg in snapshot.segments:
        lines.append('')
        lines.append(f"* {seg.reading}")
        lines.append('  ' + ', '.join(seg.candidates))
    return '\n'.join(lines)


def init_db_command(args) -> int:
    """Build the kanakey database from a dictionary TSV."""
    source_path = Path(args.source) if args.source else DICTIONARY_PATH
    db_path = Path(args.output) if args.output else DB_PATH

    if not source_path.exists():
        print(f"Error: dictionary file not found: {source_path}", file=sys.stderr)
        return 1

    if db_path.exists():
        if not args.force:
            print(f"Database already exists: {db_path}")
            print("Use --force to rebuild.")
            return 1
        db_path.unlink()

    print(f"Initializing database...")
    print(f"  Source: {source_path}")
    print(f"  Output: {db_path}")

    from kanakey.loading.tsv import build_database

    t0 = time.perf_counter()
    try:
        total = build_database(db_path, source_path)
    except Exception as e:
        print(f"Error initializing database: {e}", file=sys.stderr)
        return 1

    elapsed = time.perf_counter() - t0
    db_size = os.path.getsize(db_path) / 1024 / 1024
    print(f"Database initialized: {total:,} entries in {elapsed:.1f}s ({db_size:.1f}MB)")
    return 0


def main_init_db(args: list) -> int:
    """CLI entry point for init-db subcommand."""
    parser = argparse.ArgumentParser(
        description='Build the kanakey dictionary database from a TSV file',
        prog='kanakey init-db',
    )
    parser.add_argument(
        '--source', '-s',
        type=str,
        metavar='PATH',
        help='Dictionary TSV (reading<TAB>word<TAB>cost), default: bundled words.tsv',
    )
    parser.add_argument(
        '--output', '-o',
        type=str,
        metavar='PATH',
        help='Output database path (default: KANAKEY_DB_PATH or data/kanakey.db)',
    )
    parser.add_argument(
        '--force', '-f',
        action='store_true',
        help='Overwrite an existing database',
    )
    parsed = parser.parse_args(args)
    return init_db_command(parsed)


def main_query(args: list) -> int:
    """CLI entry point for query subcommand."""
    parser = argparse.ArgumentParser(
        description='List conversion candidates for a reading',
        prog='kanakey query',
    )
    parser.add_argument('reading', help='Reading in hiragana or katakana')
    parser.add_argument('-d', '--database', type=str, default=None, metavar='PATH',
                        help='Path to SQLite database file')
    parser.add_argument('--source', type=str, default=None, metavar='PATH',
                        help='Dictionary TSV used when the database is missing')
    parser.add_argument('-j', '--json', action='store_true', help='Output JSON')
    parsed = parser.parse_args(args)

    store = open_store(parsed.database, parsed.source)
    try:
        candidates = store.query(as_hiragana(parsed.reading))
    finally:
        store.close()

    if parsed.json:
        print(json.dumps(candidates, ensure_ascii=False))
    else:
        print('\n'.join(candidates))
    return 0


def main(args: Optional[list] = None) -> int:
    """Main CLI entry point."""
    _setup_logging()
    args_list = args if args is not None else sys.argv[1:]

    if args_list and args_list[0] == 'init-db':
        return main_init_db(args_list[1:])
    if args_list and args_list[0] == 'query':
        return main_query(args_list[1:])

    parser = argparse.ArgumentParser(
        description='Command line interface for Kanakey (romaji kana-kanji conversion)',
        prog='kanakey',
        epilog='Subcommands:\n  kanakey query READING   List candidates for a reading\n  kanakey init-db         Build the dictionary database',
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        'romaji',
        nargs='*',
        help='Romaji keystrokes to convert',
    )
    parser.add_argument(
        '-j', '--json',
        action='store_true',
        help='Output the conversion snapshot as JSON',
    )
    parser.add_argument(
        '-d', '--database',
        type=str,
        default=None,
        metavar='PATH',
        help='Path to SQLite database file',
    )
    parser.add_argument(
        '--source',
        type=str,
        default=None,
        metavar='PATH',
        help='Dictionary TSV used when the database is missing',
    )
    parser.add_argument(
        '-v', '--version',
        action='store_true',
        help='Show version information',
    )

    parsed = parser.parse_args(args_list)

    if parsed.version:
        print(f'kanakey {__version__}')
        return 0

    romaji = ''.join(parsed.romaji)
    if not romaji:
        parser.print_help()
        return 1

    store = open_store(parsed.database, parsed.source)
    try:
        snapshot = convert(romaji, store)
    finally:
        store.close()

    if snapshot is None:
        print(f"Error: nothing to convert in {romaji!r}", file=sys.stderr)
        return 1

    if parsed.json:
        print(json.dumps(snapshot.model_dump(mode='json'), ensure_ascii=False))
    else:
        print(format_snapshot_text(snapshot))
    return 0


if __name__ == '__main__':
    sys.exit(main())
