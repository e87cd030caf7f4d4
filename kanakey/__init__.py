"""
Kanakey: romaji input and kana-kanji conversion engine.
"""

from typing import Optional

__version__ = "0.1.0"


def open_engine(db_path=None, source_path=None, **kwargs):
    """
    Open the best available dictionary and wrap it in an InputEngine.

    Args:
        db_path: SQLite dictionary path. Defaults to settings.DB_PATH.
        source_path: Bootstrap TSV path. Defaults to settings.DICTIONARY_PATH.
        **kwargs: Passed on to InputEngine (commit_text, wakeup, workers...).

    Returns:
        A ready InputEngine.

    Example:
        >>> import kanakey
        >>> with kanakey.open_engine() as engine:
        ...     engine.type_text("kyouha")
        ...     engine.begin_conversion()
        ...     engine.wait_idle()
        ...     print(engine.snapshot().segments)
    """
    from kanakey.candidates import open_store
    from kanakey.session import InputEngine

    store = open_store(db_path, source_path)
    return InputEngine(store, **kwargs)


def convert(romaji: str, store=None, timeout: Optional[float] = 5.0):
    """
    Transliterate and segment romaji text, loading candidates for every segment.

    Args:
        romaji: Latin keystrokes.
        store: CandidateStore to use; opened with open_store() if None.
        timeout: Seconds to wait for background lookups.

    Returns:
        SessionSnapshot of the reviewing session, or None for empty input.
    """
    from kanakey.candidates import open_store
    from kanakey.session import InputEngine

    if store is None:
        store = open_store()

    with InputEngine(store) as engine:
        engine.type_text(romaji)
        if not engine.begin_conversion():
            return None
        engine.wait_idle(timeout)
        for index in range(1, len(engine.snapshot().segments)):
            engine.set_focus(index)
        engine.set_focus(0)
        engine.wait_idle(timeout)
        return engine.snapshot()
