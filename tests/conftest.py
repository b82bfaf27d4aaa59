"""
Shared pytest fixtures for virtual router tests
"""

import random
from dataclasses import dataclass
from typing import Any, Dict, List

import pytest

from virtual_router.config import load_config
from virtual_router.router import VirtualRouter


class FakeClock:
    """Epoch-millisecond clock that only moves when told to"""

    def __init__(self, start: float = 1_700_000_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float):
        self.now += ms


@dataclass
class FakeResponse:
    status_code: int
    body: str = ""


class SleepRecorder:
    def __init__(self):
        self.calls: List[float] = []

    async def __call__(self, seconds: float):
        self.calls.append(seconds)


WORK_BUILD_DOC: Dict[str, Any] = {
    "strategies": {
        "build": {
            "max_retries": 0,
            "fallback_on": [503],
            "cooldown": "1m",
        },
    },
    "models": {
        "work-build": {
            "strategy": "sequential",
            "strategy_profile": "build",
            "targets": [
                {"provider": "anthropic", "model": "anthropic/claude-sonnet-4"},
                {"provider": "openai", "model": "gpt-4.1"},
            ],
        },
    },
}


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def make_router(clock, sleeper):
    def _make(doc: Dict[str, Any], seed: int = 7) -> VirtualRouter:
        return VirtualRouter(
            config=load_config(doc),
            clock=clock,
            rng=random.Random(seed),
            sleep=sleeper,
        )
    return _make


@pytest.fixture
def work_build_router(make_router) -> VirtualRouter:
    return make_router(WORK_BUILD_DOC)
