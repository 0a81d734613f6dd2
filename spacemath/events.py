"""Publish/subscribe channel between the game session and whatever hosts it.

A channel is a plain object created by the host and handed to the session,
so every test (and every browser tab) gets its own. Delivery is synchronous:
``publish`` returns after every current subscriber has run.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

# host -> core
SESSION_START = "session:start"
SESSION_PAUSE = "session:pause"
SESSION_RESUME = "session:resume"
SESSION_QUIT = "session:quit"
ANSWER_SUBMIT = "answer:submit"
TARGET_HIT = "target:hit"
TARGET_MISSED = "target:missed"

# core -> host
PROBLEM_NEW = "problem:new"
ANSWER_CORRECT = "answer:correct"
ANSWER_INCORRECT = "answer:incorrect"
LIVES_UPDATE = "lives:update"
SCORE_UPDATE = "score:update"
SESSION_END = "session:end"

Callback = Callable[[Any], None]


@dataclass(frozen=True)
class SessionStartPayload:
    mode: str
    difficulty: int


@dataclass(frozen=True)
class ProblemNewPayload:
    equation_text: str
    correct_answer: int
    distractors: Optional[Tuple[int, ...]] = None


@dataclass(frozen=True)
class AnswerSubmitPayload:
    value: Any


@dataclass(frozen=True)
class TargetPayload:
    value: Optional[int]


@dataclass(frozen=True)
class AnswerCorrectPayload:
    xp_delta: int
    streak: int


@dataclass(frozen=True)
class LivesUpdatePayload:
    lives_remaining: int


@dataclass(frozen=True)
class ScoreUpdatePayload:
    score: int
    streak: int


@dataclass(frozen=True)
class SessionSummary:
    """Terminal result of a session; the only thing persistence ever sees."""

    score: int
    correct_count: int
    xp_earned: int
    best_streak: int
    attempts: int = 0
    operation_stats: Dict[str, Dict[str, int]] = field(default_factory=dict)


class EventChannel:
    def __init__(self):
        self._listeners: Dict[str, List[Callback]] = defaultdict(list)

    def subscribe(self, event: str, callback: Callback) -> Callable[[], None]:
        """Register ``callback`` for ``event``; returns a function that undoes it."""
        self._listeners[event].append(callback)

        def unsubscribe() -> None:
            self.unsubscribe(event, callback)

        return unsubscribe

    def unsubscribe(self, event: str, callback: Callback) -> None:
        listeners = self._listeners.get(event)
        if listeners and callback in listeners:
            listeners.remove(callback)

    def publish(self, event: str, payload: Any = None) -> None:
        listeners = list(self._listeners.get(event, ()))
        logger.debug("publish %s to %d listener(s)", event, len(listeners))
        for callback in listeners:
            callback(payload)

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, ()))

    def clear(self) -> None:
        self._listeners.clear()
