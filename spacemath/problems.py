"""Arithmetic problem generation for Space Math.

Problems come from a fixed five-level difficulty ladder. Each level allows a
set of operations and caps the size of the operands. Subtraction never goes
negative and division always comes out even, by construction.

Wrong answers ("distractors") for shoot mode are drawn close to the correct
answer first, and a deterministic +1, -1, +2, -2, ... walk fills in whatever
the random phase could not find.
"""

from __future__ import annotations

import logging
import math
import operator
import random
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

MIN_DIFFICULTY = 1
MAX_DIFFICULTY = 5
DEFAULT_DISTRACTOR_COUNT = 3
DISTRACTOR_ATTEMPTS = 100


class Operation(Enum):
    ADDITION = ("addition", "+", operator.add)
    SUBTRACTION = ("subtraction", "-", operator.sub)
    MULTIPLICATION = ("multiplication", "×", operator.mul)
    DIVISION = ("division", "÷", operator.floordiv)

    def __init__(self, key: str, symbol: str, func: Callable[[int, int], int]):
        self.key = key
        self.symbol = symbol
        self._func = func

    def apply(self, a: int, b: int) -> int:
        return self._func(a, b)

    @classmethod
    def from_key(cls, key: str) -> "Operation":
        for op in cls:
            if op.key == key:
                return op
        raise ValueError(f"unknown operation: {key!r}")


@dataclass(frozen=True)
class DifficultyConfig:
    level: int
    operations: Tuple[Operation, ...]
    max_operand: int
    max_multiplier: int


DIFFICULTY_CONFIGS: Tuple[DifficultyConfig, ...] = (
    DifficultyConfig(1, (Operation.ADDITION,), 10, 5),
    DifficultyConfig(2, (Operation.ADDITION, Operation.SUBTRACTION), 15, 5),
    DifficultyConfig(3, (Operation.ADDITION, Operation.SUBTRACTION, Operation.MULTIPLICATION), 20, 5),
    DifficultyConfig(4, tuple(Operation), 50, 10),
    DifficultyConfig(5, tuple(Operation), 100, 12),
)


@dataclass(frozen=True)
class MathProblem:
    """A single problem. ``correct_answer`` is always ``operation.apply(a, b)``."""

    first_operand: int
    second_operand: int
    operation: Operation

    @property
    def correct_answer(self) -> int:
        return self.operation.apply(self.first_operand, self.second_operand)

    @property
    def equation_text(self) -> str:
        return f"{self.first_operand} {self.operation.symbol} {self.second_operand} = ?"


@dataclass(frozen=True)
class Target:
    """Something the player can shoot. Type mode uses one placeholder with no value."""

    value: Optional[int]
    is_correct: bool


def clamp_difficulty(level: int) -> int:
    return max(MIN_DIFFICULTY, min(MAX_DIFFICULTY, int(level)))


def config_for(level: int) -> DifficultyConfig:
    return DIFFICULTY_CONFIGS[clamp_difficulty(level) - 1]


# ---------- Per-operation builders ----------
def _addition(cfg: DifficultyConfig, rng: random.Random) -> MathProblem:
    a = rng.randint(1, cfg.max_operand)
    b = rng.randint(1, cfg.max_operand)
    return MathProblem(a, b, Operation.ADDITION)


def _subtraction(cfg: DifficultyConfig, rng: random.Random) -> MathProblem:
    a = rng.randint(1, cfg.max_operand)
    b = rng.randint(1, cfg.max_operand)
    if b > a:
        a, b = b, a
    return MathProblem(a, b, Operation.SUBTRACTION)


def _multiplication(cfg: DifficultyConfig, rng: random.Random) -> MathProblem:
    a = rng.randint(1, cfg.max_multiplier)
    b = rng.randint(1, cfg.max_multiplier)
    return MathProblem(a, b, Operation.MULTIPLICATION)


def _division(cfg: DifficultyConfig, rng: random.Random) -> MathProblem:
    divisor = rng.randint(1, cfg.max_multiplier)
    quotient = rng.randint(1, cfg.max_multiplier)
    return MathProblem(divisor * quotient, divisor, Operation.DIVISION)


_BUILDERS = {
    Operation.ADDITION: _addition,
    Operation.SUBTRACTION: _subtraction,
    Operation.MULTIPLICATION: _multiplication,
    Operation.DIVISION: _division,
}


def generate(level: int, preferred: Optional[Operation] = None,
             rng: Optional[random.Random] = None) -> MathProblem:
    """Build one problem at ``level`` (clamped to 1..5).

    ``preferred`` is honoured only when the level allows it; otherwise an
    allowed operation is picked uniformly at random.
    """
    rng = rng or random.Random()
    cfg = config_for(level)
    if preferred is not None and preferred in cfg.operations:
        op = preferred
    else:
        op = rng.choice(cfg.operations)
    return _BUILDERS[op](cfg, rng)


def generate_wrong_answers(correct_answer: int, count: int = DEFAULT_DISTRACTOR_COUNT,
                           rng: Optional[random.Random] = None) -> List[int]:
    """Return ``count`` distinct positive integers, none equal to ``correct_answer``."""
    rng = rng or random.Random()
    wrong: List[int] = []
    if count <= 0:
        return wrong

    def accept(candidate: int) -> None:
        if candidate > 0 and candidate != correct_answer and candidate not in wrong:
            wrong.append(candidate)

    # close misses first
    spread = max(5, math.floor(correct_answer * 0.3) + 1)
    attempts = 0
    while len(wrong) < count and attempts < DISTRACTOR_ATTEMPTS:
        attempts += 1
        offset = rng.randint(1, spread)
        sign = 1 if rng.random() > 0.5 else -1
        accept(correct_answer + offset * sign)

    if len(wrong) < count:
        logger.debug("distractor fallback for %d (%d/%d found)", correct_answer, len(wrong), count)

    # +1, -1, +2, -2, ...
    offset = 1
    while len(wrong) < count:
        accept(correct_answer + offset)
        offset = -offset if offset > 0 else -offset + 1
    return wrong


def shuffle_targets(correct_answer: int, distractors: Sequence[int],
                    rng: Optional[random.Random] = None) -> Tuple[Target, ...]:
    rng = rng or random.Random()
    pool = [Target(correct_answer, True)] + [Target(v, False) for v in distractors]
    rng.shuffle(pool)
    return tuple(pool)


class ProblemGenerator:
    """Holds the current difficulty and a random source for one session."""

    def __init__(self, difficulty: int = 1, rng: Optional[random.Random] = None):
        self._rng = rng or random.Random()
        self.set_difficulty(difficulty)

    @property
    def difficulty(self) -> int:
        return self._difficulty

    @property
    def config(self) -> DifficultyConfig:
        return self._config

    def set_difficulty(self, level: int) -> None:
        self._difficulty = clamp_difficulty(level)
        self._config = DIFFICULTY_CONFIGS[self._difficulty - 1]

    def generate(self, preferred: Optional[Operation] = None) -> MathProblem:
        return generate(self._difficulty, preferred, self._rng)

    def generate_wrong_answers(self, correct_answer: int,
                               count: int = DEFAULT_DISTRACTOR_COUNT) -> List[int]:
        return generate_wrong_answers(correct_answer, count, self._rng)

    def shuffle_targets(self, correct_answer: int, distractors: Sequence[int]) -> Tuple[Target, ...]:
        return shuffle_targets(correct_answer, distractors, self._rng)
