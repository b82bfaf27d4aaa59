"""
Cooldown Store

Keeps recently failed targets out of selection for a window. Entries expire
lazily: an expired entry is dropped the next time it is read, there is no
background sweep.
"""

import logging
import threading
import time
from typing import Callable, Dict, Optional

from virtual_router.duration import parse_duration

logger = logging.getLogger(__name__)


def wall_clock_ms() -> float:
    return time.time() * 1000.0


class CooldownStore:
    """Target key -> cooldown expiry instant (epoch milliseconds)"""

    def __init__(self, clock: Callable[[], float] = wall_clock_ms):
        self._clock = clock
        self._expiry: Dict[str, float] = {}
        self._lock = threading.Lock()

    def is_in_cooldown(self, key: str) -> bool:
        """
        Check whether a target is currently excluded

        Removes the entry when its expiry has passed.
        """
        with self._lock:
            expiry = self._expiry.get(key)
            if expiry is None:
                return False
            if self._clock() >= expiry:
                del self._expiry[key]
                return False
            return True

    def set_cooldown(self, key: str, duration: Optional[str]) -> Optional[float]:
        """
        Start a fresh cooldown window for a target

        Overwrites any active window rather than extending it.

        Args:
            key: Target key ("provider/model")
            duration: Duration string; None means the policy has no cooldown

        Returns:
            The new expiry instant, or None when no cooldown was set
        """
        if not duration:
            return None

        until = self._clock() + parse_duration(duration)
        self.set_until(key, until)
        return until

    def set_until(self, key: str, until: float):
        with self._lock:
            self._expiry[key] = until

    def expires_at(self, key: str) -> Optional[float]:
        with self._lock:
            return self._expiry.get(key)

    def active(self) -> Dict[str, float]:
        """Snapshot of unexpired entries; expired ones are dropped on the way"""
        with self._lock:
            now = self._clock()
            for key in [k for k, expiry in self._expiry.items() if now >= expiry]:
                del self._expiry[key]
            return dict(self._expiry)

    def clear(self, key: Optional[str] = None):
        with self._lock:
            if key is None:
                self._expiry.clear()
            else:
                self._expiry.pop(key, None)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._expiry
