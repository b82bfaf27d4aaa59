"""Tests for the session fallback tracker."""

import threading

from virtual_router.config import Target
from virtual_router.cooldown import CooldownStore
from virtual_router.fallback import SessionFallbackTracker

A = Target(provider="p", model="a")
B = Target(provider="p", model="b")
C = Target(provider="p", model="c")


def _tracker(clock):
    store = CooldownStore(clock=clock)
    return store, SessionFallbackTracker(is_excluded=store.is_in_cooldown)


def test_first_dispatch_binds_index_zero(clock):
    _, tracker = _tracker(clock)

    cursor = tracker.dispatch("s1", "virtual/m", lambda: [A, B, C])

    assert cursor.index == 0
    assert cursor.target == A
    assert tracker.model_for("s1") == "virtual/m"


def test_first_dispatch_skips_cooled_down_targets(clock):
    store, tracker = _tracker(clock)
    store.set_cooldown(A.key, "1m")

    assert tracker.dispatch("s1", "virtual/m", lambda: [A, B, C]).index == 1


def test_dispatch_with_everything_cooled_records_nothing(clock):
    store, tracker = _tracker(clock)
    for t in (A, B):
        store.set_cooldown(t.key, "1m")

    assert tracker.dispatch("s1", "virtual/m", lambda: [A, B]) is None
    assert tracker.get("s1") is None


def test_failure_advances_to_next_index(clock):
    _, tracker = _tracker(clock)
    tracker.dispatch("s1", "virtual/m", lambda: [A, B, C])

    step = tracker.advance("s1")

    assert step.failed == A
    assert step.target == B
    assert step.index == 1
    assert step.exhausted is False


def test_advance_skips_cooled_down_indices(clock):
    store, tracker = _tracker(clock)
    tracker.dispatch("s1", "virtual/m", lambda: [A, B, C])
    store.set_cooldown(B.key, "1m")

    step = tracker.advance("s1")

    assert step.target == C
    assert step.index == 2


def test_exclude_failed_skips_later_entries_with_the_same_key(clock):
    _, tracker = _tracker(clock)
    tracker.dispatch("s1", "virtual/m", lambda: [A, A, B])

    step = tracker.advance("s1", exclude_failed=True)

    assert step.failed == A
    assert step.target == B
    assert step.index == 2


def test_without_exclude_failed_a_repeated_key_is_retried(clock):
    _, tracker = _tracker(clock)
    tracker.dispatch("s1", "virtual/m", lambda: [A, A, B])

    assert tracker.advance("s1").index == 1


def test_exhaustion_removes_the_session(clock):
    _, tracker = _tracker(clock)
    tracker.dispatch("s1", "virtual/m", lambda: [A, B])

    tracker.advance("s1")
    step = tracker.advance("s1")

    assert step.exhausted is True
    assert step.failed == B
    assert tracker.get("s1") is None


def test_exhaustion_when_remaining_targets_are_cooled(clock):
    store, tracker = _tracker(clock)
    tracker.dispatch("s1", "virtual/m", lambda: [A, B, C])
    store.set_cooldown(B.key, "1m")
    store.set_cooldown(C.key, "1m")

    assert tracker.advance("s1").exhausted is True
    assert len(tracker) == 0


def test_report_after_exhaustion_is_a_noop(clock):
    _, tracker = _tracker(clock)
    tracker.dispatch("s1", "virtual/m", lambda: [A])
    tracker.advance("s1")

    step = tracker.advance("s1")

    assert step.exhausted is True
    assert step.failed is None


def test_resume_uses_stored_order_without_recomputing(clock):
    _, tracker = _tracker(clock)
    computed = []

    def compute():
        computed.append(1)
        return [A, B, C]

    tracker.dispatch("s1", "virtual/m", compute)
    tracker.advance("s1")
    cursor = tracker.dispatch("s1", "virtual/m", compute)

    assert computed == [1]
    assert cursor.index == 1


def test_cursor_never_moves_backwards(clock):
    store, tracker = _tracker(clock)
    tracker.dispatch("s1", "virtual/m", lambda: [A, B, C])
    store.set_cooldown(B.key, "1m")
    tracker.advance("s1")
    clock.advance(120_000)

    assert tracker.dispatch("s1", "virtual/m", lambda: [A, B, C]).index == 2


def test_dispatch_for_another_model_starts_a_new_entry(clock):
    _, tracker = _tracker(clock)
    tracker.dispatch("s1", "virtual/m", lambda: [A, B])
    tracker.advance("s1")

    cursor = tracker.dispatch("s1", "virtual/other", lambda: [C])

    assert cursor.model_id == "virtual/other"
    assert cursor.index == 0


def test_sessions_are_independent(clock):
    _, tracker = _tracker(clock)
    tracker.dispatch("s1", "virtual/m", lambda: [A, B])
    tracker.dispatch("s2", "virtual/m", lambda: [A, B])
    tracker.advance("s1")

    assert tracker.get("s1").index == 1
    assert tracker.get("s2").index == 0


def test_resumed_dispatch_with_nothing_viable_drops_the_session(clock):
    store, tracker = _tracker(clock)
    tracker.dispatch("s1", "virtual/m", lambda: [A, B])
    store.set_cooldown(A.key, "1m")
    store.set_cooldown(B.key, "1m")

    assert tracker.dispatch("s1", "virtual/m", lambda: [A, B]) is None
    assert tracker.get("s1") is None

    step = tracker.advance("s1")
    assert step.exhausted is True
    assert step.failed is None


def test_concurrent_advances_hand_out_each_index_once(clock):
    targets = [Target(provider="p", model=f"m{i}") for i in range(200)]
    _, tracker = _tracker(clock)
    tracker.dispatch("s1", "virtual/m", lambda: targets)

    per_thread = [[] for _ in range(8)]
    barrier = threading.Barrier(8)

    def worker(out):
        barrier.wait()
        for _ in range(25):
            step = tracker.advance("s1")
            if step.index is not None:
                out.append(step.index)

    threads = [threading.Thread(target=worker, args=(out,)) for out in per_thread]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    for out in per_thread:
        assert out == sorted(set(out))
    seen = [i for out in per_thread for i in out]
    assert len(seen) == len(set(seen))
    assert sorted(seen) == list(range(1, 200))
    assert tracker.get("s1") is None
