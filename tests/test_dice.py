"""Tests for dice expressions and rolls."""

import random

import pytest

from rpg_companion.dice import parse_formula, roll_dice


def test_parse_formula():
    assert parse_formula("2d6+1") == (2, 6, 1)
    assert parse_formula("d20") == (1, 20, 0)
    assert parse_formula(" 3D8 - 2 ") == (3, 8, -2)


@pytest.mark.parametrize("formula", ["", "2x6", "0d6", "101d6", "1d1", "1d5000", "d"])
def test_parse_formula_rejects(formula):
    with pytest.raises(ValueError):
        parse_formula(formula)


def test_roll_is_deterministic_with_rng():
    a = roll_dice("4d6", rng=random.Random(3))
    b = roll_dice("4d6", rng=random.Random(3))
    assert a.rolls == b.rolls
    assert len(a.rolls) == 4
    assert all(1 <= r <= 6 for r in a.rolls)
    assert a.total == sum(a.rolls)


def test_roll_applies_modifier_and_normalizes():
    roll = roll_dice("d20 + 2", rng=random.Random(0))
    assert roll.formula == "1d20+2"
    assert roll.total == roll.rolls[0] + 2
    assert roll.timestamp > 0
