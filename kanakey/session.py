"""
Conversion session management for Kanakey.

InputEngine owns one composition at a time and walks it through

    IDLE -> COMPOSING -> REVIEWING -> (commit) IDLE
                              \\-> (cancel) COMPOSING

Every method must be called from the thread that owns the engine. Dictionary
work (segmentation, candidate loads, learning writes) runs on a worker pool;
workers only push their results onto a queue, and the owner applies them in
process_pending(). A result is applied only if the engine is still reviewing
the same session (generation) and the target segment still has the reading
the request was made for; anything else is dropped.
"""

import logging
import queue
import time
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from kanakey.candidates import CandidateStore
from kanakey.models import Mode, SegmentView, SessionSnapshot, display_text
from kanakey.romaji import Transliterator
from kanakey.segmenter import ReadingSegmenter
from kanakey.settings import WORKER_COUNT

logger = logging.getLogger(__name__)

# Result kinds
SEGMENTS = "segments"
CANDIDATES = "candidates"
LEARN = "learn"


@dataclass
class Segment:
    """One span of the reading under conversion."""
    reading: str
    candidates: List[str] = field(default_factory=list)
    selected_index: Optional[int] = None
    loading: bool = False

    @property
    def display(self) -> str:
        return display_text(self.reading, self.candidates, self.selected_index)

    def view(self) -> SegmentView:
        return SegmentView(
            reading=self.reading,
            candidates=list(self.candidates),
            selected_index=self.selected_index,
            loading=self.loading,
        )


@dataclass(frozen=True)
class WorkResult:
    """A finished background job, waiting to be applied by the owner."""
    kind: str
    generation: int
    index: int
    reading: str
    value: object = None


class InputEngine:
    """
    Romaji input with multi-segment kana-kanji conversion.

    Args:
        store: Candidate lookup and learning backend.
        segmenter: Reading segmenter; defaults to a ReadingSegmenter on store.
        transliterator: Romaji converter; a fresh one by default.
        commit_text: Host sink receiving committed text.
        executor: Worker pool; the engine creates (and later shuts down) its
            own when omitted.
        wakeup: Called from a worker thread whenever a result is queued, so
            a host loop can schedule process_pending().
    """

    def __init__(
        self,
        store: CandidateStore,
        segmenter: Optional[ReadingSegmenter] = None,
        transliterator: Optional[Transliterator] = None,
        commit_text: Optional[Callable[[str], None]] = None,
        executor: Optional[Executor] = None,
        wakeup: Optional[Callable[[], None]] = None,
        workers: int = WORKER_COUNT,
    ):
        self.store = store
        self.segmenter = segmenter or ReadingSegmenter(store)
        self.transliterator = transliterator or Transliterator()
        self._commit_text = commit_text
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=max(1, workers), thread_name_prefix="kanakey"
        )
        self._wakeup = wakeup
        self._results: "queue.SimpleQueue[WorkResult]" = queue.SimpleQueue()
        self._outstanding = 0
        self._listeners: List[Callable[[SessionSnapshot], None]] = []
        self._closed = False

        self._mode = Mode.IDLE
        self._segments: List[Segment] = []
        self._focus = 0
        self._generation = 0
        self._original_reading = ""
        self._segmented = False

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    @property
    def mode(self) -> Mode:
        return self._mode

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def composing(self) -> str:
        if self._mode == Mode.REVIEWING:
            return ''.join(seg.display for seg in self._segments)
        if self._mode == Mode.COMPOSING:
            return self.transliterator.get_composing()
        return ""

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            mode=self._mode,
            composing=self.composing,
            segments=[seg.view() for seg in self._segments],
            focus=self._focus,
            generation=self._generation,
        )

    def subscribe(self, callback: Callable[[SessionSnapshot], None]) -> Callable[[], None]:
        """
        Receive a snapshot after every state change.

        Returns:
            A function that removes the subscription.
        """
        self._listeners.append(callback)

        def unsubscribe():
            if callback in self._listeners:
                self._listeners.remove(callback)
        return unsubscribe

    def _changed(self) -> None:
        if not self._listeners:
            return
        snapshot = self.snapshot()
        for callback in list(self._listeners):
            callback(snapshot)

    # ------------------------------------------------------------------
    # Composing
    # ------------------------------------------------------------------

    def push_char(self, c: str) -> None:
        """Type one letter. While reviewing, the conversion is committed first."""
        if self._mode == Mode.REVIEWING:
            self.commit()
        self.transliterator.push_char(c)
        self._mode = Mode.COMPOSING if self.transliterator.has_composing() else Mode.IDLE
        self._changed()

    def type_text(self, text: str) -> None:
        for c in text:
            self.push_char(c)

    def backspace(self) -> None:
        """Delete while composing; while reviewing, cancel the conversion."""
        if self._mode == Mode.REVIEWING:
            self.cancel()
            return
        if self._mode != Mode.COMPOSING:
            return
        self.transliterator.backspace()
        if not self.transliterator.has_composing():
            self._mode = Mode.IDLE
        self._changed()

    # ------------------------------------------------------------------
    # Reviewing
    # ------------------------------------------------------------------

    def begin_conversion(self) -> bool:
        """
        Finish the composition and start converting it.

        The whole reading is shown as one provisional segment until the
        segmentation arrives from the worker pool.

        Returns:
            False if there was nothing to convert.
        """
        if self._mode != Mode.COMPOSING:
            logger.debug(f"begin_conversion ignored in {self._mode.value} mode")
            return False

        reading = self.transliterator.flush()
        if not reading:
            self._mode = Mode.IDLE
            self._changed()
            return False

        self._generation += 1
        self._original_reading = reading
        self._segments = [Segment(reading, loading=True)]
        self._segmented = False
        self._focus = 0
        self._mode = Mode.REVIEWING
        self._submit(SEGMENTS, 0, reading, self.segmenter.segment, reading)
        self._changed()
        return True

    def move_focus(self, delta: int) -> bool:
        return self.set_focus(self._focus + delta)

    def set_focus(self, index: int) -> bool:
        """Focus a segment (clamped), loading its candidates if needed."""
        if self._mode != Mode.REVIEWING or not self._segments:
            return False
        self._focus = max(0, min(index, len(self._segments) - 1))
        self._ensure_loaded(self._focus)
        self._changed()
        return True

    def select_candidate(self, index: int) -> bool:
        """Choose a candidate for the focused segment and move to the next one."""
        if self._mode != Mode.REVIEWING or not self._segments:
            return False
        segment = self._segments[self._focus]
        if not 0 <= index < len(segment.candidates):
            logger.debug(f"Candidate {index} out of range for {segment.reading!r}")
            return False

        segment.selected_index = index
        if self._focus < len(self._segments) - 1:
            self._focus += 1
            self._ensure_loaded(self._focus)
        self._changed()
        return True

    def adjust_boundary(self, index: int, delta: int) -> bool:
        """
        Move the boundary between segments index and index + 1 by one character.

        Args:
            index: Left segment of the boundary.
            delta: +1 grows the left segment, -1 shrinks it.

        Returns:
            False if the boundary or the donor segment does not allow it.
        """
        if self._mode != Mode.REVIEWING or delta not in (1, -1):
            return False
        if not 0 <= index < len(self._segments) - 1:
            return False

        left = self._segments[index].reading
        right = self._segments[index + 1].reading
        if delta > 0:
            if len(right) < 2:
                return False
            left, right = left + right[0], right[1:]
        else:
            if len(left) < 2:
                return False
            left, right = left[:-1], left[-1] + right

        self._segments[index] = Segment(left)
        self._segments[index + 1] = Segment(right)
        self._load(index)
        self._load(index + 1)
        self._changed()
        return True

    def commit(self) -> Optional[str]:
        """
        Commit the current text to the host.

        While reviewing, every segment contributes its selected candidate
        (or its reading) and each choice is recorded for learning. While
        composing, the flushed reading is committed as-is.

        Returns:
            The committed text, or None if there was nothing to commit.
        """
        if self._mode == Mode.COMPOSING:
            text = self.transliterator.flush()
            self._mode = Mode.IDLE
            self._emit(text)
            self._changed()
            return text

        if self._mode != Mode.REVIEWING:
            return None

        choices = [(seg.reading, seg.display) for seg in self._segments]
        text = ''.join(chosen for _, chosen in choices)

        self._end_session()
        self._mode = Mode.IDLE
        self._emit(text)
        for reading, chosen in choices:
            self._submit(LEARN, 0, reading, self.store.record_selection, reading, chosen)
        self._changed()
        return text

    def cancel(self) -> bool:
        """Drop the conversion and go back to editing the original reading."""
        if self._mode != Mode.REVIEWING:
            return False
        reading = self._original_reading
        self._end_session()
        self.transliterator.restore_from_final(reading)
        self._mode = Mode.COMPOSING
        self._changed()
        return True

    def _end_session(self) -> None:
        self._segments = []
        self._focus = 0
        self._original_reading = ""
        self._segmented = False
        self._generation += 1

    def _emit(self, text: str) -> None:
        if text and self._commit_text is not None:
            self._commit_text(text)

    # ------------------------------------------------------------------
    # Background work
    # ------------------------------------------------------------------

    def _ensure_loaded(self, index: int) -> None:
        segment = self._segments[index]
        if self._segmented and not segment.candidates and not segment.loading:
            self._load(index)

    def _load(self, index: int) -> None:
        segment = self._segments[index]
        segment.loading = True
        self._submit(CANDIDATES, index, segment.reading, self.store.query, segment.reading)

    def _submit(self, kind: str, index: int, reading: str, fn: Callable, *args) -> None:
        if self._closed:
            logger.debug(f"Engine closed; not running {kind} job for {reading!r}")
            return

        generation = self._generation
        self._outstanding += 1
        try:
            future = self._executor.submit(fn, *args)
        except RuntimeError as e:
            # Pool already shut down; settle the job as an empty result
            logger.error(f"Could not schedule {kind} job for {reading!r}: {e}")
            self._results.put(WorkResult(kind, generation, index, reading, None))
            if self._wakeup is not None:
                self._wakeup()
            return

        def done(f):
            try:
                value = f.result()
            except Exception:
                logger.exception(f"{kind} job for {reading!r} failed")
                value = None
            self._results.put(WorkResult(kind, generation, index, reading, value))
            if self._wakeup is not None:
                self._wakeup()

        future.add_done_callback(done)

    def process_pending(self) -> int:
        """
        Apply every finished background result. Call from the owning thread.

        Returns:
            Number of results that changed the session.
        """
        applied = 0
        while True:
            try:
                result = self._results.get_nowait()
            except queue.Empty:
                break
            applied += self._take(result)
        if applied:
            self._changed()
        return applied

    def wait_idle(self, timeout: Optional[float] = 5.0) -> bool:
        """
        Block until all background work has finished and been applied.

        Returns:
            False if the timeout expired first.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        applied = 0
        try:
            while self._outstanding > 0:
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    return False
                try:
                    result = self._results.get(timeout=remaining)
                except queue.Empty:
                    return False
                applied += self._take(result)
            return True
        finally:
            if applied:
                self._changed()

    def _take(self, result: WorkResult) -> int:
        self._outstanding -= 1
        return 1 if self._apply(result) else 0

    def _apply(self, result: WorkResult) -> bool:
        if result.kind == LEARN:
            return False

        if self._mode != Mode.REVIEWING or result.generation != self._generation:
            logger.debug(f"Dropping stale {result.kind} result for {result.reading!r}")
            return False

        if result.kind == SEGMENTS:
            return self._apply_segments(result)

        if (result.index >= len(self._segments)
                or self._segments[result.index].reading != result.reading):
            logger.debug(f"Dropping candidates for changed segment {result.reading!r}")
            return False

        segment = self._segments[result.index]
        segment.candidates = list(result.value or [])
        segment.loading = False
        return True

    def _apply_segments(self, result: WorkResult) -> bool:
        if self._segmented or result.reading != self._original_reading:
            return False

        pieces = result.value or []
        if ''.join(pieces) != result.reading or not all(pieces):
            logger.warning(f"Segmentation of {result.reading!r} did not cover it; using one segment")
            pieces = [result.reading]

        self._segments = [Segment(piece) for piece in pieces]
        self._segmented = True
        self._focus = 0
        self._load(0)
        return True

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Finish pending learning writes and stop the worker pool."""
        if self._closed:
            return
        self._closed = True
        if self._owns_executor:
            self._executor.shutdown(wait=True)

    def __enter__(self) -> "InputEngine":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
