"""Tests for problem generation and distractors."""

import random

import pytest

from spacemath.problems import (
    DIFFICULTY_CONFIGS,
    MathProblem,
    Operation,
    ProblemGenerator,
    Target,
    clamp_difficulty,
    config_for,
    generate,
    generate_wrong_answers,
    shuffle_targets,
)


class TestDifficultyLadder:
    """The five fixed levels."""

    def test_five_levels_in_order(self):
        assert [c.level for c in DIFFICULTY_CONFIGS] == [1, 2, 3, 4, 5]

    def test_operations_only_grow(self):
        for lower, higher in zip(DIFFICULTY_CONFIGS, DIFFICULTY_CONFIGS[1:]):
            assert set(lower.operations) <= set(higher.operations)
            assert lower.max_operand <= higher.max_operand
            assert lower.max_multiplier <= higher.max_multiplier

    @pytest.mark.parametrize("level,expected", [(-3, 1), (0, 1), (1, 1), (3, 3), (5, 5), (6, 5), (99, 5)])
    def test_clamp(self, level, expected):
        assert clamp_difficulty(level) == expected
        assert config_for(level).level == expected

    def test_level_one_is_addition_only(self):
        assert DIFFICULTY_CONFIGS[0].operations == (Operation.ADDITION,)


class TestGenerate:
    """Properties over many generated problems at every level."""

    @pytest.mark.parametrize("level", [1, 2, 3, 4, 5])
    def test_answers_exact_and_operands_in_bounds(self, level):
        rng = random.Random(level)
        cfg = config_for(level)
        for _ in range(1000):
            p = generate(level, rng=rng)
            assert p.operation in cfg.operations
            a, b = p.first_operand, p.second_operand
            assert a >= 0 and b >= 0
            if p.operation is Operation.ADDITION:
                assert p.correct_answer == a + b
                assert 1 <= a <= cfg.max_operand and 1 <= b <= cfg.max_operand
            elif p.operation is Operation.SUBTRACTION:
                assert p.correct_answer == a - b >= 0
                assert 1 <= b <= a <= cfg.max_operand
            elif p.operation is Operation.MULTIPLICATION:
                assert p.correct_answer == a * b
                assert 1 <= a <= cfg.max_multiplier and 1 <= b <= cfg.max_multiplier
            else:
                assert a % b == 0
                assert p.correct_answer * b == a
                assert 1 <= b <= cfg.max_multiplier
                assert 1 <= p.correct_answer <= cfg.max_multiplier

    def test_preferred_operation_used_when_allowed(self, rng):
        for _ in range(50):
            assert generate(5, Operation.DIVISION, rng).operation is Operation.DIVISION

    def test_preferred_operation_ignored_when_not_allowed(self, rng):
        for _ in range(50):
            assert generate(1, Operation.DIVISION, rng).operation is Operation.ADDITION

    def test_equation_text(self):
        assert MathProblem(12, 3, Operation.DIVISION).equation_text == "12 ÷ 3 = ?"
        assert MathProblem(7, 2, Operation.MULTIPLICATION).equation_text == "7 × 2 = ?"
        assert MathProblem(7, 2, Operation.SUBTRACTION).equation_text == "7 - 2 = ?"
        assert MathProblem(7, 2, Operation.ADDITION).equation_text == "7 + 2 = ?"

    def test_same_seed_same_problems(self):
        first, second = random.Random(7), random.Random(7)
        a = [generate(5, rng=first) for _ in range(20)]
        b = [generate(5, rng=second) for _ in range(20)]
        assert a == b

    def test_operation_from_key(self):
        assert Operation.from_key("division") is Operation.DIVISION
        with pytest.raises(ValueError):
            Operation.from_key("modulo")


class TestWrongAnswers:
    """Distractor synthesis."""

    @pytest.mark.parametrize("count", [1, 2, 3, 4, 5])
    def test_count_distinct_positive(self, count, rng):
        for correct in list(range(1, 60)) + [100, 144, 200]:
            wrong = generate_wrong_answers(correct, count, rng)
            assert len(wrong) == count
            assert len(set(wrong)) == count
            assert all(w > 0 for w in wrong)
            assert correct not in wrong

    def test_answer_one_forces_fallback(self, rng):
        # 0 and below are rejected, so 2..6 is the only possible outcome
        for _ in range(20):
            wrong = generate_wrong_answers(1, 5, rng)
            assert sorted(wrong) == [2, 3, 4, 5, 6]

    def test_fallback_walk_when_random_phase_gives_nothing(self):
        class NegativeOnly(random.Random):
            def random(self):
                return 0.0  # always picks the minus sign

            def randint(self, a, b):
                return b

        # 2 - 5 is never positive, so the walk +1, -1, +2 ... supplies everything
        assert generate_wrong_answers(2, 3, NegativeOnly()) == [3, 1, 4]

    def test_zero_answer(self, rng):
        wrong = generate_wrong_answers(0, 3, rng)
        assert len(wrong) == 3 and all(w > 0 for w in wrong)

    def test_default_count_is_three(self, rng):
        assert len(generate_wrong_answers(10, rng=rng)) == 3

    def test_zero_count(self, rng):
        assert generate_wrong_answers(10, 0, rng) == []


class TestTargets:
    def test_shuffle_contains_everything_once(self, rng):
        targets = shuffle_targets(9, [7, 8, 11], rng)
        assert sorted(t.value for t in targets) == [7, 8, 9, 11]
        assert [t for t in targets if t.is_correct] == [Target(9, True)]

    def test_shuffle_moves_the_correct_answer_around(self, rng):
        positions = {[t.is_correct for t in shuffle_targets(9, [7, 8, 11], rng)].index(True) for _ in range(200)}
        assert positions == {0, 1, 2, 3}


class TestProblemGenerator:
    def test_clamps_difficulty(self, rng):
        gen = ProblemGenerator(42, rng)
        assert gen.difficulty == 5
        gen.set_difficulty(-1)
        assert gen.difficulty == 1
        assert gen.config is DIFFICULTY_CONFIGS[0]

    def test_generates_at_its_level(self, rng):
        gen = ProblemGenerator(3, rng)
        ops = {gen.generate().operation for _ in range(300)}
        assert ops == {Operation.ADDITION, Operation.SUBTRACTION, Operation.MULTIPLICATION}

    def test_wrong_answers_through_generator(self, rng):
        gen = ProblemGenerator(1, rng)
        assert len(gen.generate_wrong_answers(5, 4)) == 4
