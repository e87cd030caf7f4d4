"""
Greedy reading segmentation for Kanakey.

A reading is cut left to right. At each position every slice of up to
MAX_SEGMENT_LENGTH characters is looked up, and the slice with the most
real dictionary candidates wins (ties go to the longer slice). There is no
backtracking, so the result is deterministic but not globally optimal.
"""

import logging
from typing import Callable, Dict, List, Optional

from kanakey.candidates import CandidateStore
from kanakey.settings import BASELINE_SIZE, MAX_SEGMENT_LENGTH

logger = logging.getLogger(__name__)

ScoreFunction = Callable[[str, List[str]], int]


def candidate_score(reading: str, candidates: List[str]) -> int:
    """Number of candidates beyond the reading/katakana baseline."""
    return max(0, len(candidates) - BASELINE_SIZE)


class ReadingSegmenter:
    """Split a reading into segments, using a CandidateStore to score slices."""

    def __init__(
        self,
        store: CandidateStore,
        max_length: int = MAX_SEGMENT_LENGTH,
        score_fn: Optional[ScoreFunction] = None,
    ):
        self.store = store
        self.max_length = max(1, max_length)
        self.score_fn = score_fn or candidate_score

    def segment(self, reading: str) -> List[str]:
        """
        Segment a reading.

        Args:
            reading: Hiragana reading.

        Returns:
            Non-overlapping slices whose concatenation is exactly reading.
        """
        cache: Dict[str, List[str]] = {}
        segments: List[str] = []
        pos = 0

        while pos < len(reading):
            remaining = len(reading) - pos
            best_len = 1
            best_score = None

            for length in range(min(self.max_length, remaining), 0, -1):
                piece = reading[pos:pos + length]
                if piece not in cache:
                    cache[piece] = self.store.query(piece)
                score = self.score_fn(piece, cache[piece])
                # Longer lengths are tried first, so only a strictly better score wins
                if best_score is None or score > best_score:
                    best_len, best_score = length, score

            segments.append(reading[pos:pos + best_len])
            pos += best_len

        logger.debug(f"Segmented {reading!r} into {segments!r}")
        return segments
