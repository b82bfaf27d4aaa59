"""
Target Selection Strategies

Orders the candidate targets of a virtual model. Every strategy returns a
fresh list holding exactly the configured targets (same length, same
multiset); the configured tuple itself is never touched.
"""

import logging
import random
import threading
from typing import Dict, List, Optional

from virtual_router.config import Strategy, Target, VirtualModelConfig

logger = logging.getLogger(__name__)


class RoundRobinCursors:
    """
    Per virtual model rotation start index

    Each call to ``advance`` returns the current start index and moves it one
    step forward, wrapping modulo the target count. Models rotate independently.
    """

    def __init__(self):
        self._index: Dict[str, int] = {}
        self._lock = threading.Lock()

    def advance(self, model_id: str, length: int) -> int:
        with self._lock:
            start = self._index.get(model_id, 0) % length
            self._index[model_id] = (start + 1) % length
            return start

    def peek(self, model_id: str) -> int:
        with self._lock:
            return self._index.get(model_id, 0)

    def reset(self, model_id: Optional[str] = None):
        with self._lock:
            if model_id is None:
                self._index.clear()
            else:
                self._index.pop(model_id, None)


def select_targets(
    model_id: str,
    config: VirtualModelConfig,
    cursors: RoundRobinCursors,
    rng: Optional[random.Random] = None
) -> List[Target]:
    """
    Order a virtual model's targets according to its strategy

    Args:
        model_id: Virtual model id, keys the round-robin cursor
        config: The virtual model's configuration
        cursors: Round-robin state owned by the router
        rng: Random source for the random and weighted strategies

    Returns:
        New list with every configured target exactly once
    """
    rng = rng or random
    targets = list(config.targets)
    strategy = config.strategy

    if strategy in (Strategy.SEQUENTIAL, Strategy.PRIORITY):
        return targets

    if strategy == Strategy.ROUND_ROBIN:
        start = cursors.advance(model_id, len(targets))
        logger.debug(f"Round-robin for {model_id} starting at index {start}")
        return targets[start:] + targets[:start]

    if strategy == Strategy.RANDOM:
        rng.shuffle(targets)
        return targets

    if strategy == Strategy.WEIGHTED:
        return _weighted_order(targets, rng)

    return targets


def _weighted_order(targets: List[Target], rng) -> List[Target]:
    # Biased toward heavy targets, not exact proportional sampling.
    weights = [t.weight if t.weight is not None else 1.0 for t in targets]
    total = sum(weights)

    scored = []
    for target, weight in zip(targets, weights):
        share = weight / total if total > 0 else 1.0 / len(targets)
        scored.append((rng.random() * share, target))

    scored.sort(key=lambda pair: pair[0], reverse=True)
    return [target for _, target in scored]
