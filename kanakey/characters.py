"""
Character handling and kana conversion for Kanakey.

Provides the kana constants used by the transliterator and the
hiragana/katakana folding used for readings and candidate baselines.
"""

import re
from typing import Dict

# ============================================================================
# Kana Constants
# ============================================================================

# Sokuon (gemination marker)
SOKUON = "っ"

# Syllabic nasal
NASAL_MORA = "ん"

# ぁ..ゖ and ァ..ヶ are parallel blocks, 0x60 apart
_HIRAGANA_FIRST = 0x3041
_HIRAGANA_LAST = 0x3096
_SCRIPT_OFFSET = 0x60

# ============================================================================
# Script Mapping
# ============================================================================

HIRAGANA_TO_KATAKANA: Dict[str, str] = {
    chr(cp): chr(cp + _SCRIPT_OFFSET)
    for cp in range(_HIRAGANA_FIRST, _HIRAGANA_LAST + 1)
}
# Iteration marks
HIRAGANA_TO_KATAKANA.update({"ゝ": "ヽ", "ゞ": "ヾ"})

KATAKANA_TO_HIRAGANA: Dict[str, str] = {v: k for k, v in HIRAGANA_TO_KATAKANA.items()}

_HIRA_TRANS = str.maketrans(HIRAGANA_TO_KATAKANA)
_KATA_TRANS = str.maketrans(KATAKANA_TO_HIRAGANA)

HIRAGANA_REGEX = r"[ぁ-ゖゝゞー]"
KATAKANA_REGEX = r"[ァ-ヺヽヾー]"

_HIRAGANA_PATTERN = re.compile(rf"^{HIRAGANA_REGEX}+$")
_KATAKANA_PATTERN = re.compile(rf"^{KATAKANA_REGEX}+$")


# ============================================================================
# Character Testing Functions
# ============================================================================

def is_hiragana(word: str) -> bool:
    """Check if word consists entirely of hiragana."""
    return bool(_HIRAGANA_PATTERN.match(word))


def is_katakana(word: str) -> bool:
    """Check if word consists entirely of katakana."""
    return bool(_KATAKANA_PATTERN.match(word))


# ============================================================================
# Kana Conversion
# ============================================================================

def as_hiragana(text: str) -> str:
    """
    Convert katakana to hiragana.

    Characters without a hiragana counterpart (kanji, latin, ー, ヷ..ヺ) are kept.

    Args:
        text: Text to convert.

    Returns:
        Text with katakana converted to hiragana.
    """
    return text.translate(_KATA_TRANS)


def as_katakana(text: str) -> str:
    """
    Convert hiragana to katakana.

    Args:
        text: Text to convert.

    Returns:
        Text with hiragana converted to katakana.
    """
    return text.translate(_HIRA_TRANS)
