"""Dice rolls for the attribute check recap.

A roll stays pending on the session until the user saves it; the saved roll
is what the prompt builder reports to the model.
"""

from __future__ import annotations

import random
import re
import time

from rpg_companion.models import DiceRoll

MAX_DICE = 100
MAX_SIDES = 1000

_FORMULA_RE = re.compile(r"^\s*(\d*)d(\d+)\s*([+-]\s*\d+)?\s*$", re.IGNORECASE)


def parse_formula(formula: str) -> tuple[int, int, int]:
    """``"2d6+1"`` -> (2, 6, 1). A missing count means one die."""
    match = _FORMULA_RE.match(formula)
    if not match:
        raise ValueError(f"Invalid dice expression: {formula}")

    count = int(match.group(1)) if match.group(1) else 1
    sides = int(match.group(2))
    modifier = int(match.group(3).replace(" ", "")) if match.group(3) else 0
    if not 1 <= count <= MAX_DICE or not 2 <= sides <= MAX_SIDES:
        raise ValueError(f"Dice out of range: {formula}")
    return count, sides, modifier


def roll_dice(formula: str, rng: random.Random | None = None) -> DiceRoll:
    """Roll a dice expression like ``1d20``, ``2d6`` or ``3d8+2``."""
    count, sides, modifier = parse_formula(formula)
    resolved_rng = rng or random
    rolls = [resolved_rng.randint(1, sides) for _ in range(count)]
    normalized = f"{count}d{sides}"
    if modifier:
        normalized += f"{modifier:+d}"
    return DiceRoll(
        formula=normalized,
        total=sum(rolls) + modifier,
        rolls=rolls,
        timestamp=int(time.time() * 1000),
    )
