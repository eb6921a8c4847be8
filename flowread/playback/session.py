"""Reading-session state machine: progress, speed, bookmark, completion.

WHY: A reading session has a small but strict lifecycle. Progress must
only grow while the reader is actually playing forward, completion is
terminal, and persistence failures must never stop playback. Keeping
all of that in one object makes the rules testable without a UI or a
real timer.

HOW: ReadingSessionMachine wraps one ReadingSession record plus the
document's word annotations. The PlaybackClock calls tick(now); the UI
or CLI calls play/pause/step/set_speed/bookmark methods. Snapshots are
pushed to the store on pause, on completion, on close, and every
``autosave_every`` ticks.

RULES:
- States: UNINITIALIZED → PAUSED ⇄ ACTIVE → COMPLETED; no way out of
  COMPLETED
- step() clamps to [0, total_words - 1] and never changes words_read or
  time_spent
- tick() is a no-op unless ACTIVE; it adds one word and the wall-clock
  seconds since the previous tick (or since play began)
- The tick that would move past the last word completes the session
  instead, counting the last word and saving a completed snapshot
- Pausing drops the partial interval; it is never counted
- Resumed sessions keep their persisted words_read and time_spent
- persist() logs and swallows PersistenceError and reports a bool
"""

from __future__ import annotations

import dataclasses
import enum
import logging
from typing import Any, Dict, List, Optional

from flowread.config import AUTOSAVE_EVERY, clamp_wpm
from flowread.core.models import ReadingSession, WordAnnotation
from flowread.errors import PersistenceError
from flowread.storage.base import Store

logger = logging.getLogger(__name__)


class SessionState(str, enum.Enum):
    """Lifecycle states of a reading session.

    RULES:
    - uninitialized: no session record bound yet
    - paused: loaded and ready, clock not running
    - active: playing; the clock ticks
    - completed: the last word was read; terminal
    """

    UNINITIALIZED = "uninitialized"
    PAUSED = "paused"
    ACTIVE = "active"
    COMPLETED = "completed"


class ReadingSessionMachine:
    """One reader's live session over one document."""

    def __init__(self, store: Store, autosave_every: int = AUTOSAVE_EVERY) -> None:
        self._store = store
        self.autosave_every = autosave_every
        self.state = SessionState.UNINITIALIZED
        self.session: Optional[ReadingSession] = None
        self.words: List[WordAnnotation] = []
        self.bookmark: Optional[int] = None
        self._last_tick_at: Optional[float] = None
        self._ticks_since_save = 0

    # -- lifecycle ---------------------------------------------------------

    def create(
        self,
        document_id: str,
        words: List[WordAnnotation],
        speed_wpm: int,
    ) -> ReadingSession:
        """Start a brand-new session at word 0 and store it.

        Raises:
            PersistenceError: The session record could not be created.
        """
        self._require_uninitialized()
        session = ReadingSession.start(document_id, len(words), speed_wpm)
        self._store.add_session(session)
        self._bind(session, words)
        logger.info("Created session %s for document %s", session.id, document_id)
        return session

    def resume(self, session: ReadingSession, words: List[WordAnnotation]) -> None:
        """Continue a persisted session from its saved index and speed."""
        self._require_uninitialized()
        session = dataclasses.replace(session)
        if words and session.total_words != len(words):
            logger.warning(
                "Session %s recorded %d words but document has %d; using %d",
                session.id, session.total_words, len(words), len(words),
            )
            session.total_words = len(words)
        session.speed_wpm = clamp_wpm(session.speed_wpm)
        session.current_word_index = self._clamp_index(
            session.current_word_index, session.total_words
        )
        self._bind(session, words)
        if session.completed:
            self.state = SessionState.COMPLETED
        logger.info(
            "Resumed session %s at word %d", session.id, session.current_word_index
        )

    def _bind(self, session: ReadingSession, words: List[WordAnnotation]) -> None:
        self.session = session
        self.words = list(words)
        self.state = SessionState.PAUSED
        self.bookmark = None
        self._ticks_since_save = 0

    def _require_uninitialized(self) -> None:
        if self.state is not SessionState.UNINITIALIZED:
            raise RuntimeError("A session is already loaded ({})".format(self.state.value))

    def _require_session(self) -> ReadingSession:
        if self.session is None:
            raise RuntimeError("No reading session loaded")
        return self.session

    # -- accessors ---------------------------------------------------------

    @property
    def total_words(self) -> int:
        return self.session.total_words if self.session else 0

    @property
    def current_word_index(self) -> int:
        return self.session.current_word_index if self.session else 0

    @property
    def words_read(self) -> int:
        return self.session.words_read if self.session else 0

    @property
    def time_spent(self) -> float:
        return self.session.time_spent if self.session else 0.0

    @property
    def speed_wpm(self) -> int:
        return self._require_session().speed_wpm

    @property
    def current_word(self) -> Optional[WordAnnotation]:
        index = self.current_word_index
        if 0 <= index < len(self.words):
            return self.words[index]
        return None

    @property
    def progress_percent(self) -> float:
        if not self.total_words:
            return 0.0
        return self.current_word_index / self.total_words * 100

    @property
    def is_playing(self) -> bool:
        return self.state is SessionState.ACTIVE

    # -- playback ----------------------------------------------------------

    def play(self, now: float) -> bool:
        """Enter ACTIVE from PAUSED. Returns True if the state changed."""
        self._require_session()
        if self.state is not SessionState.PAUSED:
            return False
        self.state = SessionState.ACTIVE
        self._last_tick_at = now
        return True

    def pause(self, now: float) -> bool:
        """Leave ACTIVE for PAUSED and save a snapshot.

        ``now`` is accepted for symmetry with play(); the partial interval
        since the last tick is deliberately not counted.
        """
        if self.state is not SessionState.ACTIVE:
            return False
        self.state = SessionState.PAUSED
        self._last_tick_at = None
        self.persist()
        return True

    def tick(self, now: float) -> SessionState:
        """Auto-advance by one word. Returns the resulting state."""
        if self.state is not SessionState.ACTIVE:
            return self.state
        session = self._require_session()

        elapsed = 0.0
        if self._last_tick_at is not None:
            elapsed = max(0.0, now - self._last_tick_at)
        self._last_tick_at = now

        if session.current_word_index + 1 > session.total_words - 1:
            if session.total_words > 0:
                session.words_read += 1
                session.time_spent += elapsed
            self._complete()
            return self.state

        session.current_word_index += 1
        session.words_read += 1
        session.time_spent += elapsed

        self._ticks_since_save += 1
        if self.autosave_every and self._ticks_since_save >= self.autosave_every:
            self.persist()
        return self.state

    def _complete(self) -> None:
        session = self._require_session()
        self.state = SessionState.COMPLETED
        self._last_tick_at = None
        session.completed = True
        logger.info(
            "Session %s completed: %d words in %.1fs",
            session.id, session.words_read, session.time_spent,
        )
        self.persist()

    def close(self, now: float) -> bool:
        """Stop playing (if needed) and save a final snapshot."""
        if self.session is None:
            return False
        if self.state is SessionState.ACTIVE:
            self.state = SessionState.PAUSED
            self._last_tick_at = None
        return self.persist()

    # -- navigation --------------------------------------------------------

    @staticmethod
    def _clamp_index(index: int, total_words: int) -> int:
        return max(0, min(max(total_words - 1, 0), index))

    def seek(self, index: int) -> int:
        """Move to ``index`` (clamped). No-op once completed."""
        session = self._require_session()
        if self.state is not SessionState.COMPLETED:
            session.current_word_index = self._clamp_index(index, session.total_words)
        return session.current_word_index

    def step(self, delta: int = 1) -> int:
        """Manually move forward (positive) or backward (negative)."""
        return self.seek(self.current_word_index + delta)

    def set_speed(self, speed_wpm: int) -> int:
        """Change the playback speed, clamped into range."""
        session = self._require_session()
        session.speed_wpm = clamp_wpm(speed_wpm)
        return session.speed_wpm

    # -- bookmark ----------------------------------------------------------

    def set_bookmark(self, index: Optional[int] = None) -> int:
        """Remember ``index`` (default: the current word), replacing any other."""
        session = self._require_session()
        target = session.current_word_index if index is None else index
        self.bookmark = self._clamp_index(target, session.total_words)
        return self.bookmark

    def jump_to_bookmark(self) -> bool:
        """Go to the bookmark and clear it. Returns False if none was set."""
        if self.bookmark is None or self.state is SessionState.COMPLETED:
            return False
        self.seek(self.bookmark)
        self.bookmark = None
        return True

    def toggle_bookmark(self) -> bool:
        """Set a bookmark if none exists, otherwise jump to it.

        Returns True when the call jumped.
        """
        if self.bookmark is None:
            self.set_bookmark()
            return False
        return self.jump_to_bookmark()

    # -- persistence -------------------------------------------------------

    def snapshot(self) -> Dict[str, Any]:
        session = self._require_session()
        return {
            "current_word_index": session.current_word_index,
            "words_read": session.words_read,
            "time_spent": session.time_spent,
            "speed_wpm": session.speed_wpm,
            "completed": session.completed,
        }

    def persist(self) -> bool:
        """Push the current snapshot to the store.

        Storage errors are logged and swallowed: local state stays the
        source of truth until the next successful write.
        """
        session = self._require_session()
        try:
            found = self._store.update_session(session.id, self.snapshot())
        except PersistenceError as exc:
            logger.warning("Could not save progress for session %s: %s", session.id, exc)
            return False
        if not found:
            logger.warning("Session %s no longer exists; progress not saved", session.id)
            return False
        self._ticks_since_save = 0
        return True
