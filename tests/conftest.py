# conftest.py - shared fixtures for the Poker Tallies test suite

import datetime as dt
import os
import sys

import pytest

# Import the app modules (from parent directory)
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from game_session import GameSession
from store import MemoryStore

T0 = dt.datetime(2026, 3, 14, 19, 0, tzinfo=dt.timezone.utc)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: dt.datetime = T0):
        self.now = start

    def __call__(self) -> dt.datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + dt.timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def memory_store():
    return MemoryStore()


def _started(names, clock):
    session = GameSession(now_fn=clock)
    session.select_count(len(names))
    session.set_names(names)
    return session


@pytest.fixture
def three_players(clock):
    return _started(["Alice", "Bob", "Carol"], clock)


@pytest.fixture
def four_players(clock):
    return _started(["Alice", "Bob", "Carol", "Dave"], clock)
