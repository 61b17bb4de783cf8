"""Shared fixtures: a Qt core application, a manual clock and seeded engines."""

import random

import pytest
from PyQt5 import QtCore

from lottery_show.lifecycle import DrawEngine
from lottery_show.models import Participant, Prize
from lottery_show.state import LotteryStatus
from lottery_show.store import MemoryStore


@pytest.fixture(scope="session")
def qapp():
    app = QtCore.QCoreApplication.instance() or QtCore.QCoreApplication([])
    yield app


class FakeClock:
    """Millisecond clock advanced by hand."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = float(start)

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> float:
        self.now += float(ms)
        return self.now


def make_people(count, start_id=1):
    return [
        Participant.draft(start_id + idx, f"Person {start_id + idx}", f"1380000{start_id + idx:04d}")
        for idx in range(count)
    ]


def settle(engine, step_ms=50.0, limit=400):
    """Tick the choreographer until no card transition is in flight."""

    clock = engine.choreographer._clock
    for _ in range(limit):
        if not engine.choreographer.busy:
            return
        engine.choreographer.tick(clock.advance(step_ms))
    raise AssertionError("transitions did not finish")


def drive_to(engine, status):
    """Run the lifecycle forward until ``status`` is reached."""

    for _ in range(8):
        if engine.status == status:
            return
        assert engine.advance() or engine.choreographer.busy
        settle(engine)
    assert engine.status == status


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return MemoryStore(make_people(5), [Prize(id=1, name="Grand prize", count=2)])


@pytest.fixture
def make_engine(qapp, clock):
    engines = []

    def _make(store, settings=None, seed=7):
        engine = DrawEngine(store, settings or {}, rng=random.Random(seed), clock=clock)
        engine.boot()
        settle(engine)
        engines.append(engine)
        return engine

    yield _make
    for engine in engines:
        engine.teardown()


@pytest.fixture
def engine(make_engine, store):
    return make_engine(store)


@pytest.fixture
def ready_engine(engine):
    drive_to(engine, LotteryStatus.READY)
    return engine
