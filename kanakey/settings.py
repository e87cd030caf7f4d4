"""
Settings and configuration for Kanakey.

Every value can be overridden through an environment variable.
"""

import os
from pathlib import Path

# Data directory paths
PACKAGE_DIR = Path(__file__).parent
DATA_DIR = PACKAGE_DIR / "data"

# Database path - defaults to data/kanakey.db
DEFAULT_DB_PATH = DATA_DIR / "kanakey.db"

# Environment variable for custom database path
DB_PATH = Path(os.environ.get("KANAKEY_DB_PATH", DEFAULT_DB_PATH))

# Bootstrap dictionary (reading<TAB>word<TAB>cost), bundled with the package
DEFAULT_DICTIONARY_PATH = DATA_DIR / "words.tsv"
DICTIONARY_PATH = Path(os.environ.get("KANAKEY_DICTIONARY_PATH", DEFAULT_DICTIONARY_PATH))

# Ready-made dictionary database, copied into place when DB_PATH is missing
DEFAULT_PREBUILT_DB_PATH = DATA_DIR / "words.db"
PREBUILT_DB_PATH = Path(os.environ.get("KANAKEY_PREBUILT_DB", DEFAULT_PREBUILT_DB_PATH))

# Optional custom romaji table (romaji<TAB>kana)
ROMAJI_MAP_PATH = DATA_DIR / "romaji-map.tsv"

# Debug mode
DEBUG = os.environ.get("KANAKEY_DEBUG", "").lower() in ("1", "true", "yes")

# Maximum number of candidates returned by a single query
MAX_CANDIDATES = 50

# Longest reading slice tried by the segmenter
MAX_SEGMENT_LENGTH = 6

# Reading + katakana form, always at the head of a query result
BASELINE_SIZE = 2

# Cost used when a dictionary line has none
DEFAULT_COST = 1000

# Rows per transaction when bulk loading
LOAD_BATCH_SIZE = 5000

# Worker threads used for candidate lookups and learning writes
WORKER_COUNT = int(os.environ.get("KANAKEY_WORKERS", "2"))

# Seconds SQLite waits on a locked database before failing
BUSY_TIMEOUT = 30
