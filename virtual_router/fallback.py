"""
Session Fallback Cursor

A single exchange can span several asynchronous notifications: the initial
dispatch, then a failure reported later and out of band. The tracker keeps,
per session, the ordered target list computed at dispatch time and the index
currently in use, so a failure report can move to the next viable target
without recomputing the order or losing its place.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from virtual_router.config import Target

logger = logging.getLogger(__name__)


@dataclass
class SessionCursor:
    model_id: str
    targets: List[Target]
    index: int = 0

    @property
    def target(self) -> Target:
        return self.targets[self.index]


@dataclass(frozen=True)
class FallbackStep:
    """Result of advancing a session after a failure report"""
    failed: Optional[Target] = None
    target: Optional[Target] = None
    index: Optional[int] = None

    @property
    def exhausted(self) -> bool:
        return self.target is None


class SessionFallbackTracker:
    """
    Per-session position over an ordered target list

    The cursor only moves forward; once the list is walked the session entry is
    removed and further failure reports are no-ops reporting exhaustion.
    """

    def __init__(self, is_excluded: Callable[[str], bool]):
        self._is_excluded = is_excluded
        self._sessions: Dict[str, SessionCursor] = {}
        self._lock = threading.Lock()

    def _first_viable(
        self,
        targets: List[Target],
        start: int,
        skip_key: Optional[str] = None
    ) -> Optional[int]:
        for i in range(start, len(targets)):
            if targets[i].key == skip_key or self._is_excluded(targets[i].key):
                logger.debug(f"Skipping {targets[i].key} (in cooldown)")
                continue
            return i
        return None

    def dispatch(
        self,
        session_id: str,
        model_id: str,
        compute_targets: Callable[[], List[Target]]
    ) -> Optional[SessionCursor]:
        """
        Bind or resume a session and pick its current target

        A live entry for the same virtual model resumes from its stored index
        over its stored list. Otherwise ``compute_targets`` produces a fresh
        order and the scan starts at 0; a different model id starts a new entry.
        When no target is viable any existing entry for the session is dropped.

        Returns:
            Copy of the session cursor, or None when no target is viable
        """
        with self._lock:
            entry = self._sessions.get(session_id)
            if entry is not None and entry.model_id == model_id:
                targets, start = entry.targets, entry.index
            else:
                targets, start = list(compute_targets()), 0

            index = self._first_viable(targets, start)
            if index is None:
                self._sessions.pop(session_id, None)
                return None

            if entry is not None and entry.model_id == model_id:
                entry.index = index
            else:
                entry = SessionCursor(model_id=model_id, targets=targets, index=index)
                self._sessions[session_id] = entry

            return SessionCursor(entry.model_id, list(entry.targets), entry.index)

    def advance(self, session_id: str, exclude_failed: bool = False) -> FallbackStep:
        """
        Move a session past its current target after a failure

        The caller applies cooldowns and metrics for ``step.failed`` after this
        returns, outside the tracker lock.

        Args:
            session_id: Session key
            exclude_failed: Treat later entries with the failed target's key as
                cooled down; set when the caller is about to cool that key down

        Returns:
            FallbackStep with the next viable target, or an exhausted step
        """
        with self._lock:
            entry = self._sessions.get(session_id)
            if entry is None:
                return FallbackStep()

            failed = entry.target
            skip_key = failed.key if exclude_failed else None
            index = self._first_viable(entry.targets, entry.index + 1, skip_key)
            if index is None:
                del self._sessions[session_id]
                logger.info(f"All targets exhausted for {entry.model_id} in session {session_id}")
                return FallbackStep(failed=failed)

            entry.index = index
            return FallbackStep(failed=failed, target=entry.targets[index], index=index)

    def get(self, session_id: str) -> Optional[SessionCursor]:
        with self._lock:
            entry = self._sessions.get(session_id)
            if entry is None:
                return None
            return SessionCursor(entry.model_id, list(entry.targets), entry.index)

    def model_for(self, session_id: str) -> Optional[str]:
        with self._lock:
            entry = self._sessions.get(session_id)
            return entry.model_id if entry else None

    def drop(self, session_id: str) -> bool:
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
