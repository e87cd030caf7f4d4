"""
Streaming romaji to kana transliteration for Kanakey.

Letters are pushed one at a time while the user types. Finished kana
accumulate in ``produced``; the unresolved latin tail stays in ``pending``
until one of the resolution rules can consume it.
"""

import csv
import logging
from functools import lru_cache
from pathlib import Path
from typing import Dict, Optional, Union

from kanakey.characters import NASAL_MORA, SOKUON
from kanakey.settings import ROMAJI_MAP_PATH

logger = logging.getLogger(__name__)

VOWELS = frozenset("aiueo")
NASAL = "n"
GLIDE = "y"

# Longest key the resolution loop will try
MAX_KEY_LENGTH = 3


# ============================================================================
# Romaji Mapping
# ============================================================================

# A lone "n" is deliberately absent: it is resolved by the nasal rules.
ROMAJI_MAP: Dict[str, str] = {
    # Vowels
    'a': 'あ', 'i': 'い', 'u': 'う', 'e': 'え', 'o': 'お',

    # K-row
    'ka': 'か', 'ki': 'き', 'ku': 'く', 'ke': 'け', 'ko': 'こ',
    'kya': 'きゃ', 'kyu': 'きゅ', 'kyo': 'きょ',
    'ga': 'が', 'gi': 'ぎ', 'gu': 'ぐ', 'ge': 'げ', 'go': 'ご',
    'gya': 'ぎゃ', 'gyu': 'ぎゅ', 'gyo': 'ぎょ',

    # S-row
    'sa': 'さ', 'si': 'し', 'shi': 'し', 'su': 'す', 'se': 'せ', 'so': 'そ',
    'sha': 'しゃ', 'shu': 'しゅ', 'she': 'しぇ', 'sho': 'しょ',
    'sya': 'しゃ', 'syu': 'しゅ', 'syo': 'しょ',
    'za': 'ざ', 'zi': 'じ', 'zu': 'ず', 'ze': 'ぜ', 'zo': 'ぞ',
    'ja': 'じゃ', 'ji': 'じ', 'ju': 'じゅ', 'je': 'じぇ', 'jo': 'じょ',
    'zya': 'じゃ', 'zyu': 'じゅ', 'zyo': 'じょ',

    # T-row
    'ta': 'た', 'ti': 'ち', 'chi': 'ち', 'tu': 'つ', 'tsu': 'つ', 'te': 'て', 'to': 'と',
    'cha': 'ちゃ', 'chu': 'ちゅ', 'che': 'ちぇ', 'cho': 'ちょ',
    'tya': 'ちゃ', 'tyu': 'ちゅ', 'tyo': 'ちょ',
    'da': 'だ', 'di': 'ぢ', 'du': 'づ', 'de': 'で', 'do': 'ど',
    'dya': 'ぢゃ', 'dyu': 'ぢゅ', 'dyo': 'ぢょ',

    # N-row
    'na': 'な', 'ni': 'に', 'nu': 'ぬ', 'ne': 'ね', 'no': 'の',
    'nya': 'にゃ', 'nyu': 'にゅ', 'nyo': 'にょ',

    # H-row
    'ha': 'は', 'hi': 'ひ', 'hu': 'ふ', 'fu': 'ふ', 'he': 'へ', 'ho': 'ほ',
    'hya': 'ひゃ', 'hyu': 'ひゅ', 'hyo': 'ひょ',
    'ba': 'ば', 'bi': 'び', 'bu': 'ぶ', 'be': 'べ', 'bo': 'ぼ',
    'bya': 'びゃ', 'byu': 'びゅ', 'byo': 'びょ',
    'pa': 'ぱ', 'pi': 'ぴ', 'pu': 'ぷ', 'pe': 'ぺ', 'po': 'ぽ',
    'pya': 'ぴゃ', 'pyu': 'ぴゅ', 'pyo': 'ぴょ',

    # M-row
    'ma': 'ま', 'mi': 'み', 'mu': 'む', 'me': 'め', 'mo': 'も',
    'mya': 'みゃ', 'myu': 'みゅ', 'myo': 'みょ',

    # Y-row
    'ya': 'や', 'yu': 'ゆ', 'yo': 'よ',

    # R-row
    'ra': 'ら', 'ri': 'り', 'ru': 'る', 're': 'れ', 'ro': 'ろ',
    'rya': 'りゃ', 'ryu': 'りゅ', 'ryo': 'りょ',

    # W-row
    'wa': 'わ', 'wo': 'を',

    # Foreign sounds
    'fa': 'ふぁ', 'fi': 'ふぃ', 'fe': 'ふぇ', 'fo': 'ふぉ',
    'va': 'ゔぁ', 'vi': 'ゔぃ', 'vu': 'ゔ', 've': 'ゔぇ', 'vo': 'ゔぉ',

    # Small kana
    'xa': 'ぁ', 'xi': 'ぃ', 'xu': 'ぅ', 'xe': 'ぇ', 'xo': 'ぉ',
    'la': 'ぁ', 'li': 'ぃ', 'lu': 'ぅ', 'le': 'ぇ', 'lo': 'ぉ',
    'xya': 'ゃ', 'xyu': 'ゅ', 'xyo': 'ょ',
    'lya': 'ゃ', 'lyu': 'ゅ', 'lyo': 'ょ',
    'xtu': 'っ', 'ltu': 'っ',
}


def load_romaji_map(path: Optional[Union[str, Path]] = None) -> Dict[str, str]:
    """
    Load a romaji mapping from a TSV file (romaji<TAB>kana).

    Keys must be 1-3 latin letters; other rows are skipped. A missing
    file yields the built-in mapping.

    Args:
        path: TSV file to read. Defaults to settings.ROMAJI_MAP_PATH.

    Returns:
        Romaji to kana mapping.
    """
    map_file = Path(path) if path is not None else ROMAJI_MAP_PATH

    if not map_file.exists():
        return dict(ROMAJI_MAP)

    mapping: Dict[str, str] = {}
    with open(map_file, 'r', encoding='utf-8') as f:
        reader = csv.reader(f, delimiter='\t')
        for row in reader:
            if len(row) < 2:
                continue
            romaji = row[0].strip().lower()
            kana = row[1].strip()
            if not kana or not _is_table_key(romaji):
                logger.debug(f"Skipping romaji row: {row!r}")
                continue
            mapping[romaji] = kana

    logger.info(f"Loaded {len(mapping)} romaji mappings from {map_file}")
    return mapping


@lru_cache(maxsize=1)
def default_romaji_map() -> Dict[str, str]:
    """Mapping used by converters built without one; read once from ROMAJI_MAP_PATH."""
    return load_romaji_map()


def _is_table_key(romaji: str) -> bool:
    return 0 < len(romaji) <= MAX_KEY_LENGTH and all('a' <= c <= 'z' for c in romaji)


# ============================================================================
# Transliterator
# ============================================================================

class Transliterator:
    """
    Streaming romaji -> hiragana converter used while composing.

    Resolution rules, applied to a fixpoint after every key:

    1. a doubled consonant other than ``n`` becomes っ plus one consonant;
    2. ``nn`` becomes ん (one ``n`` is kept when a vowel or ``y`` follows);
    3. ``n`` before another consonant becomes ん;
    4. the longest table key (3, 2, then 1 letters) is replaced by its kana.
    """

    def __init__(self, mapping: Optional[Dict[str, str]] = None):
        self._map = mapping if mapping is not None else default_romaji_map()
        self._produced = ""
        self._pending = ""

    @property
    def produced(self) -> str:
        return self._produced

    @property
    def pending(self) -> str:
        return self._pending

    def has_composing(self) -> bool:
        return bool(self._produced) or bool(self._pending)

    def push_char(self, c: str) -> None:
        """Append one latin letter; anything else is ignored."""
        if len(c) != 1:
            return
        ch = c.lower()
        if not 'a' <= ch <= 'z':
            return
        self._pending += ch
        self._resolve()

    def backspace(self) -> None:
        """Remove the last pending letter, or else the last produced character."""
        if self._pending:
            self._pending = self._pending[:-1]
            return
        if self._produced:
            self._produced = self._produced[:-1]

    def get_composing(self) -> str:
        # Pending latin is never shown except the tentative nasal.
        if self._pending in (NASAL, NASAL * 2):
            return self._produced + NASAL_MORA
        return self._produced

    def flush(self) -> str:
        """Finalize the composition and return it, resetting the state."""
        if self._pending in (NASAL, NASAL * 2):
            self._produced += NASAL_MORA
            self._pending = ""
        out = self._produced + self._pending
        self.clear()
        return out

    def clear(self) -> None:
        self._produced = ""
        self._pending = ""

    def restore_from_final(self, text: str) -> None:
        """Replace the composition with already finalized kana."""
        self._produced = text
        self._pending = ""

    def _resolve(self) -> None:
        while self._step():
            pass

    def _step(self) -> bool:
        """Apply the first rule that fires. Returns False at the fixpoint."""
        buf = self._pending
        if not buf:
            return False

        if len(buf) >= 2:
            c1, c2 = buf[0], buf[1]

            # Gemination
            if c1 == c2 and c1 not in VOWELS and c1 != NASAL:
                self._emit(SOKUON, 1)
                return True

            # Double nasal; with only "nn" seen the next key decides
            if c1 == NASAL and c2 == NASAL:
                if len(buf) == 2:
                    return False
                follower = buf[2]
                self._emit(NASAL_MORA, 1 if follower in VOWELS or follower == GLIDE else 2)
                return True

            # Nasal before a consonant
            if c1 == NASAL and c2 not in VOWELS and c2 != GLIDE:
                self._emit(NASAL_MORA, 1)
                return True

        for length in range(min(MAX_KEY_LENGTH, len(buf)), 0, -1):
            kana = self._map.get(buf[:length])
            if kana is not None:
                self._emit(kana, length)
                return True

        return False

    def _emit(self, kana: str, consumed: int) -> None:
        self._produced += kana
        self._pending = self._pending[consumed:]


def romaji_to_hiragana(text: str, mapping: Optional[Dict[str, str]] = None) -> str:
    """
    Convert romanized text to hiragana.

    Non-letters are dropped; unresolved letters at the end are kept as-is.

    Args:
        text: Romanized Japanese text.
        mapping: Optional custom romaji table.

    Returns:
        Text converted to hiragana.
    """
    converter = Transliterator(mapping)
    for c in text:
        converter.push_char(c)
    return converter.flush()
