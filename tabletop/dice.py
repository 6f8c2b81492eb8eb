"""Dice expression parsing and rolling.

Expressions have the form ``NdS`` with an optional signed modifier, for
example ``3d8``, ``1d20+5`` or ``2d6-1``.
"""

from __future__ import annotations

import random
import re
from dataclasses import dataclass
from typing import List

from .config import get_dice_max_count, get_dice_max_modifier, get_dice_max_sides
from .errors import ValidationError


EXPRESSION_PATTERN = re.compile(r"^(\d+)d(\d+)([+-]\d+)?$")
# Totals are stored in signed 32-bit integer columns.
MAX_TOTAL = 2**31 - 1
_MAX_DIGITS = 9


@dataclass(frozen=True)
class DiceExpression:
    count: int
    sides: int
    modifier: int = 0

    def __str__(self) -> str:
        text = f"{self.count}d{self.sides}"
        if self.modifier:
            text += f"{self.modifier:+d}"
        return text


@dataclass(frozen=True)
class RollOutcome:
    expression: DiceExpression
    rolls: List[int]
    result: int

    @property
    def modifier(self) -> int:
        return self.expression.modifier


def parse_expression(expression: str) -> DiceExpression:
    if not isinstance(expression, str):
        raise ValidationError("Expression de dés invalide")
    match = EXPRESSION_PATTERN.match(expression.strip())
    if not match:
        raise ValidationError("Format d'expression invalide. Utilisez le format XdY+Z (ex: 2d6+3)")
    raw_count, raw_sides, raw_modifier = match.groups()
    if any(len(part.lstrip("+-")) > _MAX_DIGITS for part in (raw_count, raw_sides, raw_modifier or "")):
        raise ValidationError("Expression de dés hors limites")
    count = int(raw_count)
    sides = int(raw_sides)
    modifier = int(raw_modifier) if raw_modifier else 0
    if count < 1 or sides < 1:
        raise ValidationError("Le nombre de dés et le nombre de faces doivent être positifs")
    max_count = get_dice_max_count()
    if count > max_count:
        raise ValidationError(f"Impossible de lancer plus de {max_count} dés à la fois")
    max_sides = get_dice_max_sides()
    if sides > max_sides:
        raise ValidationError(f"Un dé ne peut pas avoir plus de {max_sides} faces")
    max_modifier = get_dice_max_modifier()
    if abs(modifier) > max_modifier:
        raise ValidationError(f"Le modificateur doit être compris entre -{max_modifier} et {max_modifier}")
    if count * sides + abs(modifier) > MAX_TOTAL:
        raise ValidationError("Expression de dés hors limites")
    return DiceExpression(count=count, sides=sides, modifier=modifier)


def roll(expression: str | DiceExpression, rng: random.Random | None = None) -> RollOutcome:
    """Roll ``expression`` with ``rng`` (module RNG by default)."""

    if isinstance(expression, DiceExpression):
        parsed = expression
    else:
        parsed = parse_expression(expression)
    source = rng or random
    rolls = [source.randint(1, parsed.sides) for _ in range(parsed.count)]
    return RollOutcome(expression=parsed, rolls=rolls, result=sum(rolls) + parsed.modifier)
