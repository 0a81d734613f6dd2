"""One play-through of Space Math, from start to lives exhausted (or quit).

The rules live in :func:`transition`, a pure function from a state value and
an action to a new state value plus a list of effects. :class:`GameSession`
is the thin driver around it: it owns the random source, the clock and the
scheduler, turns effects into published events and delayed tasks, and listens
to the host on an :class:`~spacemath.events.EventChannel`.

Phases::

    IDLE -> AWAITING_ANSWER <-> RESOLVING -> ... -> ENDED
    AWAITING_ANSWER / RESOLVING -> PAUSED -> (back where it was)

Every delayed task carries the epoch that was current when it was scheduled.
Scheduling, start, quit and end all move the epoch on, so a task that fires
late (after the session ended, or after a newer task replaced it) is dropped.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union

from .events import (
    ANSWER_CORRECT,
    ANSWER_INCORRECT,
    ANSWER_SUBMIT,
    LIVES_UPDATE,
    PROBLEM_NEW,
    SCORE_UPDATE,
    SESSION_END,
    SESSION_PAUSE,
    SESSION_QUIT,
    SESSION_RESUME,
    SESSION_START,
    TARGET_HIT,
    TARGET_MISSED,
    AnswerCorrectPayload,
    EventChannel,
    LivesUpdatePayload,
    ProblemNewPayload,
    ScoreUpdatePayload,
    SessionSummary,
)
from .problems import MathProblem, ProblemGenerator, Target
from .scheduling import Clock, RealClock, Scheduler

logger = logging.getLogger(__name__)

# ---------- Rules ----------
STARTING_LIVES = 5
BASE_XP = 10
TIME_BONUS = 5
TIME_BONUS_WINDOW_MS = 3000
STREAK_BONUS_PER_STREAK = 2
STREAK_BONUS_CAP = 20
BASE_SCORE = 100
STREAK_SCORE_MULTIPLIER = 5
NEXT_PROBLEM_DELAY_MS = 800
MISSED_TARGET_DELAY_MS = 500
FIRST_PROBLEM_DELAY_MS = 500
DISTRACTOR_COUNT = 3
MAX_REDRAWS = 10


class GameMode(str, Enum):
    SHOOT = "shoot"
    TYPE = "type"


class Phase(Enum):
    IDLE = "idle"
    AWAITING_ANSWER = "awaiting_answer"
    RESOLVING = "resolving"
    PAUSED = "paused"
    ENDED = "ended"


@dataclass(frozen=True)
class SessionSettings:
    starting_lives: int = STARTING_LIVES
    base_xp: int = BASE_XP
    time_bonus: int = TIME_BONUS
    time_bonus_window_ms: int = TIME_BONUS_WINDOW_MS
    streak_bonus_per_streak: int = STREAK_BONUS_PER_STREAK
    streak_bonus_cap: int = STREAK_BONUS_CAP
    base_score: int = BASE_SCORE
    streak_score_multiplier: int = STREAK_SCORE_MULTIPLIER
    next_problem_delay_ms: int = NEXT_PROBLEM_DELAY_MS
    missed_target_delay_ms: int = MISSED_TARGET_DELAY_MS
    first_problem_delay_ms: int = FIRST_PROBLEM_DELAY_MS
    distractor_count: int = DISTRACTOR_COUNT


@dataclass(frozen=True)
class SessionState:
    mode: GameMode
    difficulty: int
    evolution_stage_at_start: int = 1
    score: int = 0
    streak: int = 0
    best_streak: int = 0
    correct_count: int = 0
    xp_earned: int = 0
    lives_remaining: int = STARTING_LIVES
    current_problem: Optional[MathProblem] = None
    targets: Tuple[Target, ...] = ()
    phase: Phase = Phase.IDLE
    problem_issued_at: Optional[float] = None
    paused_from: Optional[Phase] = None
    paused_at: Optional[float] = None
    deferred_problem: bool = False
    epoch: int = 0
    attempts: int = 0
    # operation key -> (attempts, correct)
    operation_stats: Dict[str, Tuple[int, int]] = field(default_factory=dict)
    quit: bool = False

    @property
    def answerable(self) -> bool:
        return self.phase is Phase.AWAITING_ANSWER and self.current_problem is not None

    def summary(self) -> SessionSummary:
        return SessionSummary(
            score=self.score,
            correct_count=self.correct_count,
            xp_earned=self.xp_earned,
            best_streak=self.best_streak,
            attempts=self.attempts,
            operation_stats={
                key: {"attempts": tried, "correct": right}
                for key, (tried, right) in self.operation_stats.items()
            },
        )


# ---------- Actions (inputs) ----------
@dataclass(frozen=True)
class Start:
    at: float


@dataclass(frozen=True)
class PresentProblem:
    problem: MathProblem
    targets: Tuple[Target, ...]
    at: float


@dataclass(frozen=True)
class SubmitAnswer:
    value: Any
    at: float


@dataclass(frozen=True)
class SelectTarget:
    value: Optional[int]
    at: float


@dataclass(frozen=True)
class TargetMissed:
    value: Optional[int]
    at: float


@dataclass(frozen=True)
class ProblemDue:
    epoch: int


@dataclass(frozen=True)
class Pause:
    at: float


@dataclass(frozen=True)
class Resume:
    at: float


@dataclass(frozen=True)
class Quit:
    pass


Action = Union[Start, PresentProblem, SubmitAnswer, SelectTarget, TargetMissed,
               ProblemDue, Pause, Resume, Quit]


# ---------- Effects (outputs) ----------
@dataclass(frozen=True)
class Emit:
    event: str
    payload: Any = None


@dataclass(frozen=True)
class ScheduleProblem:
    delay_ms: int
    epoch: int


@dataclass(frozen=True)
class IssueProblem:
    pass


Effect = Union[Emit, ScheduleProblem, IssueProblem]
Result = Tuple[SessionState, List[Effect]]


def parse_answer(value: Any) -> Optional[int]:
    """Typed answers: ints, integral floats and numeric strings. Anything else is None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def _bump_stats(state: SessionState, correct: bool) -> Dict[str, Tuple[int, int]]:
    stats = dict(state.operation_stats)
    key = state.current_problem.operation.key
    tried, right = stats.get(key, (0, 0))
    stats[key] = (tried + 1, right + (1 if correct else 0))
    return stats


def _schedule_next(state: SessionState, delay_ms: int) -> Result:
    if delay_ms <= 0:
        return state, [IssueProblem()]
    epoch = state.epoch + 1
    return replace(state, epoch=epoch), [ScheduleProblem(delay_ms, epoch)]


def _resolve_correct(state: SessionState, at: float, settings: SessionSettings) -> Result:
    elapsed_ms = (at - state.problem_issued_at) * 1000 if state.problem_issued_at is not None else None
    time_bonus = settings.time_bonus if elapsed_ms is not None and elapsed_ms < settings.time_bonus_window_ms else 0
    # bonus from the streak carried into this answer: a first quick answer is worth 15 XP, not 17
    streak_bonus = min(settings.streak_bonus_cap, state.streak * settings.streak_bonus_per_streak)
    xp_delta = settings.base_xp + time_bonus + streak_bonus
    streak = state.streak + 1

    new = replace(
        state,
        streak=streak,
        best_streak=max(state.best_streak, streak),
        correct_count=state.correct_count + 1,
        xp_earned=state.xp_earned + xp_delta,
        score=state.score + settings.base_score + streak_bonus * settings.streak_score_multiplier,
        attempts=state.attempts + 1,
        operation_stats=_bump_stats(state, True),
        targets=(),
        phase=Phase.RESOLVING,
    )
    logger.debug("correct: +%d xp, streak %d", xp_delta, streak)
    effects: List[Effect] = [
        Emit(ANSWER_CORRECT, AnswerCorrectPayload(xp_delta=xp_delta, streak=streak)),
        Emit(SCORE_UPDATE, ScoreUpdatePayload(score=new.score, streak=streak)),
    ]
    new, more = _schedule_next(new, settings.next_problem_delay_ms)
    return new, effects + more


def _resolve_incorrect(state: SessionState, settings: SessionSettings,
                       targets: Tuple[Target, ...], retire: bool) -> Result:
    lives = max(0, state.lives_remaining - 1)
    new = replace(
        state,
        streak=0,
        lives_remaining=lives,
        attempts=state.attempts + 1,
        operation_stats=_bump_stats(state, False),
        targets=targets,
    )
    logger.debug("incorrect: %d lives left", lives)
    effects: List[Effect] = [
        Emit(LIVES_UPDATE, LivesUpdatePayload(lives_remaining=lives)),
        Emit(ANSWER_INCORRECT),
        Emit(SCORE_UPDATE, ScoreUpdatePayload(score=new.score, streak=0)),
    ]
    if lives == 0:
        new = replace(new, phase=Phase.ENDED, targets=(), epoch=new.epoch + 1)
        logger.info("session over: score %d, %d correct, %d xp", new.score, new.correct_count, new.xp_earned)
        effects.append(Emit(SESSION_END, new.summary()))
        return new, effects
    if retire:
        new = replace(new, phase=Phase.RESOLVING, targets=())
        new, more = _schedule_next(new, settings.missed_target_delay_ms)
        effects.extend(more)
    return new, effects


def _without(targets: Tuple[Target, ...], value: Optional[int]) -> Tuple[Target, ...]:
    for i, t in enumerate(targets):
        if t.value == value and not t.is_correct:
            return targets[:i] + targets[i + 1:]
    return targets


def _on_start(state: SessionState, action: Start, settings: SessionSettings) -> Result:
    if state.phase is not Phase.IDLE:
        return state, []
    new = replace(
        state,
        score=0,
        streak=0,
        best_streak=0,
        correct_count=0,
        xp_earned=0,
        lives_remaining=settings.starting_lives,
        current_problem=None,
        targets=(),
        phase=Phase.AWAITING_ANSWER,
        problem_issued_at=None,
        attempts=0,
        operation_stats={},
        quit=False,
        epoch=state.epoch + 1,
    )
    logger.info("session start: %s mode, difficulty %d", state.mode.value, state.difficulty)
    effects: List[Effect] = [
        Emit(LIVES_UPDATE, LivesUpdatePayload(lives_remaining=new.lives_remaining)),
        Emit(SCORE_UPDATE, ScoreUpdatePayload(score=0, streak=0)),
    ]
    new, more = _schedule_next(new, settings.first_problem_delay_ms)
    return new, effects + more


def _on_present(state: SessionState, action: PresentProblem, settings: SessionSettings) -> Result:
    waiting_for_first = state.phase is Phase.AWAITING_ANSWER and state.current_problem is None
    if not (waiting_for_first or state.phase is Phase.RESOLVING):
        return state, []
    problem = action.problem
    new = replace(
        state,
        current_problem=problem,
        targets=action.targets,
        problem_issued_at=action.at,
        phase=Phase.AWAITING_ANSWER,
        deferred_problem=False,
    )
    distractors = None
    if state.mode is GameMode.SHOOT:
        distractors = tuple(t.value for t in action.targets if not t.is_correct)
    logger.debug("problem: %s", problem.equation_text)
    return new, [Emit(PROBLEM_NEW, ProblemNewPayload(problem.equation_text, problem.correct_answer, distractors))]


def _on_submit(state: SessionState, action: SubmitAnswer, settings: SessionSettings) -> Result:
    if not state.answerable:
        return state, []
    value = parse_answer(action.value)
    if value is not None and value == state.current_problem.correct_answer:
        return _resolve_correct(state, action.at, settings)
    return _resolve_incorrect(state, settings, _without(state.targets, value), retire=False)


def _on_select(state: SessionState, action: SelectTarget, settings: SessionSettings) -> Result:
    if state.mode is not GameMode.SHOOT or not state.answerable:
        return state, []
    if action.value == state.current_problem.correct_answer:
        return _resolve_correct(state, action.at, settings)
    return _resolve_incorrect(state, settings, _without(state.targets, action.value), retire=False)


def _on_missed(state: SessionState, action: TargetMissed, settings: SessionSettings) -> Result:
    if not state.answerable:
        return state, []
    if state.mode is GameMode.SHOOT and action.value != state.current_problem.correct_answer:
        # a distractor drifting away costs nothing
        return replace(state, targets=_without(state.targets, action.value)), []
    return _resolve_incorrect(state, settings, (), retire=True)


def _on_problem_due(state: SessionState, action: ProblemDue, settings: SessionSettings) -> Result:
    if action.epoch != state.epoch or state.phase is Phase.ENDED:
        return state, []
    if state.phase is Phase.PAUSED:
        return replace(state, deferred_problem=True), []
    if state.phase is Phase.RESOLVING or (state.phase is Phase.AWAITING_ANSWER and state.current_problem is None):
        return state, [IssueProblem()]
    return state, []


def _on_pause(state: SessionState, action: Pause, settings: SessionSettings) -> Result:
    if state.phase not in (Phase.AWAITING_ANSWER, Phase.RESOLVING):
        return state, []
    return replace(state, phase=Phase.PAUSED, paused_from=state.phase, paused_at=action.at), []


def _on_resume(state: SessionState, action: Resume, settings: SessionSettings) -> Result:
    if state.phase is not Phase.PAUSED:
        return state, []
    issued_at = state.problem_issued_at
    if issued_at is not None and state.paused_at is not None:
        issued_at += max(0.0, action.at - state.paused_at)
    new = replace(
        state,
        phase=state.paused_from or Phase.AWAITING_ANSWER,
        paused_from=None,
        paused_at=None,
        problem_issued_at=issued_at,
        deferred_problem=False,
    )
    if state.deferred_problem:
        return new, [IssueProblem()]
    return new, []


def _on_quit(state: SessionState, action: Quit, settings: SessionSettings) -> Result:
    if state.phase is Phase.ENDED:
        return state, []
    logger.info("session quit at score %d", state.score)
    return replace(
        state,
        phase=Phase.ENDED,
        quit=True,
        current_problem=None,
        targets=(),
        problem_issued_at=None,
        paused_from=None,
        paused_at=None,
        deferred_problem=False,
        epoch=state.epoch + 1,
    ), []


_HANDLERS: Dict[type, Callable[[SessionState, Any, SessionSettings], Result]] = {
    Start: _on_start,
    PresentProblem: _on_present,
    SubmitAnswer: _on_submit,
    SelectTarget: _on_select,
    TargetMissed: _on_missed,
    ProblemDue: _on_problem_due,
    Pause: _on_pause,
    Resume: _on_resume,
    Quit: _on_quit,
}


def transition(state: SessionState, action: Action,
               settings: Optional[SessionSettings] = None) -> Result:
    """Apply ``action`` to ``state``. Actions that make no sense in the current phase are no-ops."""
    handler = _HANDLERS[type(action)]
    return handler(state, action, settings or SessionSettings())


def _field(payload, name: str, default: Any = None) -> Any:
    if isinstance(payload, Mapping):
        return payload.get(name, default)
    return getattr(payload, name, default)


# ---------- Driver ----------
class GameSession:
    """Runs :func:`transition` against a live channel, clock and scheduler."""

    def __init__(self, channel: EventChannel, mode: Union[GameMode, str] = GameMode.SHOOT,
                 difficulty: int = 1, evolution_stage: int = 1, *,
                 settings: Optional[SessionSettings] = None,
                 rng: Optional[random.Random] = None,
                 clock: Optional[Clock] = None,
                 scheduler: Optional[Scheduler] = None):
        self._channel = channel
        self._settings = settings or SessionSettings()
        self._rng = rng or random.Random()
        if scheduler is not None:
            self._clock = clock or scheduler.clock
            self._scheduler = scheduler
        else:
            self._clock = clock or RealClock()
            self._scheduler = Scheduler(self._clock)
        self._generator = ProblemGenerator(difficulty, self._rng)
        self._state = SessionState(
            mode=GameMode(mode),
            difficulty=self._generator.difficulty,
            evolution_stage_at_start=evolution_stage,
            lives_remaining=self._settings.starting_lives,
        )
        self._unsubscribers: List[Callable[[], None]] = []

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def settings(self) -> SessionSettings:
        return self._settings

    @property
    def channel(self) -> EventChannel:
        return self._channel

    # --- host wiring ---
    def attach(self) -> "GameSession":
        """Listen for host events on the channel.

        Payloads may be the dataclasses in :mod:`spacemath.events` or plain
        mappings with the same keys.
        """
        if self._unsubscribers:
            return self
        subscribe = self._channel.subscribe
        self._unsubscribers = [
            subscribe(SESSION_START, self._on_session_start),
            subscribe(SESSION_PAUSE, lambda _: self.pause()),
            subscribe(SESSION_RESUME, lambda _: self.resume()),
            subscribe(SESSION_QUIT, lambda _: self.quit()),
            subscribe(ANSWER_SUBMIT, lambda p: self.submit_answer(_field(p, "value"))),
            subscribe(TARGET_HIT, lambda p: self.hit_target(_field(p, "value"))),
            subscribe(TARGET_MISSED, lambda p: self.miss_target(_field(p, "value"))),
        ]
        return self

    def detach(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

    def _on_session_start(self, payload) -> None:
        if payload is not None:
            self.configure(_field(payload, "mode", self._state.mode),
                           _field(payload, "difficulty", self._state.difficulty))
        self.start()

    # --- commands ---
    def configure(self, mode: Union[GameMode, str], difficulty: int) -> None:
        if self._state.phase is not Phase.IDLE:
            return
        self._generator.set_difficulty(difficulty)
        self._state = replace(self._state, mode=GameMode(mode), difficulty=self._generator.difficulty)

    def start(self) -> None:
        self._generator.set_difficulty(self._state.difficulty)
        self.dispatch(Start(self._clock.now()))

    def pause(self) -> None:
        self.dispatch(Pause(self._clock.now()))

    def resume(self) -> None:
        self.dispatch(Resume(self._clock.now()))

    def quit(self) -> None:
        self.dispatch(Quit())

    def submit_answer(self, value: Any) -> None:
        self.dispatch(SubmitAnswer(value, self._clock.now()))

    def hit_target(self, value: Optional[int]) -> None:
        self.dispatch(SelectTarget(value, self._clock.now()))

    def miss_target(self, value: Optional[int]) -> None:
        self.dispatch(TargetMissed(value, self._clock.now()))

    def tick(self) -> int:
        """Run delayed tasks that are due. Call this every frame."""
        return self._scheduler.run_due()

    # --- effect interpreter ---
    def dispatch(self, action: Action) -> None:
        self._state, effects = transition(self._state, action, self._settings)
        for effect in effects:
            if isinstance(effect, Emit):
                self._channel.publish(effect.event, effect.payload)
            elif isinstance(effect, ScheduleProblem):
                self._scheduler.call_later(effect.delay_ms, self._problem_due(effect.epoch))
            elif isinstance(effect, IssueProblem):
                self._issue_problem()

    def _problem_due(self, epoch: int) -> Callable[[], None]:
        return lambda: self.dispatch(ProblemDue(epoch))

    def _issue_problem(self) -> None:
        previous = self._state.current_problem
        problem = self._generator.generate()
        redraws = 0
        while previous is not None and problem.equation_text == previous.equation_text and redraws < MAX_REDRAWS:
            problem = self._generator.generate()
            redraws += 1

        if self._state.mode is GameMode.SHOOT:
            wrong = self._generator.generate_wrong_answers(problem.correct_answer, self._settings.distractor_count)
            targets = self._generator.shuffle_targets(problem.correct_answer, wrong)
        else:
            targets = (Target(None, True),)
        self.dispatch(PresentProblem(problem, targets, self._clock.now()))
