"""Shared fixtures for Space Math tests."""

import random
from dataclasses import replace

import pytest

from spacemath.events import EventChannel
from spacemath.scheduling import FakeClock, Scheduler
from spacemath.session import GameSession, SessionSettings


class Recorder:
    """Subscribes to every named event and keeps (event, payload) pairs in order."""

    def __init__(self, channel, events):
        self.seen = []
        for name in events:
            channel.subscribe(name, lambda payload, name=name: self.seen.append((name, payload)))

    def of(self, name):
        return [payload for event, payload in self.seen if event == name]

    def names(self):
        return [event for event, _ in self.seen]


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def scheduler(clock):
    return Scheduler(clock)


@pytest.fixture
def channel():
    return EventChannel()


@pytest.fixture
def instant_settings():
    """No delays: every next problem is issued synchronously."""
    return replace(SessionSettings(), next_problem_delay_ms=0, missed_target_delay_ms=0, first_problem_delay_ms=0)


@pytest.fixture
def recorder(channel):
    from spacemath import events
    names = [
        events.PROBLEM_NEW, events.ANSWER_CORRECT, events.ANSWER_INCORRECT,
        events.LIVES_UPDATE, events.SCORE_UPDATE, events.SESSION_END,
    ]
    return Recorder(channel, names)


@pytest.fixture
def make_session(channel, rng, scheduler, instant_settings):
    def _make(mode="shoot", difficulty=1, settings=None, **kw):
        return GameSession(channel, mode, difficulty, settings=settings or instant_settings,
                           rng=rng, scheduler=scheduler, **kw)
    return _make
