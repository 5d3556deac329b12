import random

import pytest

from oubli_mem.scheduler import DegradationScheduler
from oubli_mem.storage.kv import InMemoryStore
from oubli_mem.store import MemoryStore

DAY = 86400.0


class ScriptedRng:
    """Feeds a fixed sequence of draws; choice() always picks the first item."""

    def __init__(self, draws):
        self.draws = list(draws)

    def random(self):
        return self.draws.pop(0)

    def choice(self, seq):
        return seq[0]


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def kv():
    return InMemoryStore()


@pytest.fixture
def store(kv, clock):
    return MemoryStore(kv=kv, clock=clock)


@pytest.fixture
def scheduler(store):
    return DegradationScheduler(store, rng=random.Random(7))
