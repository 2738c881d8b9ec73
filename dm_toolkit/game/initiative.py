"""Initiative and hit point resolution from loosely structured stat blocks.

Stat blocks arrive from callers with many spellings for the same field.
Each value is found by trying a short, ordered list of named extraction
rules; the first rule that yields a number wins.
"""

import math
from dataclasses import dataclass
from typing import Any, Callable, Mapping

from pydantic import JsonValue

StatBag = Mapping[str, JsonValue]


def numeric(value: Any) -> int | None:
    """Coerce a stat value to an integer, or None if it is not numeric.

    Integers pass through, finite floats and numeric strings are truncated
    toward zero. Booleans are not treated as numbers.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return math.trunc(value) if math.isfinite(value) else None
    if isinstance(value, str):
        try:
            parsed = float(value.strip())
        except ValueError:
            return None
        return math.trunc(parsed) if math.isfinite(parsed) else None
    return None


@dataclass(frozen=True)
class StatRule:
    """A named way of pulling one number out of a stat bag."""

    name: str
    extract: Callable[[StatBag], int | None]

    def __call__(self, stats: StatBag) -> int | None:
        return self.extract(stats)


def field_rule(key: str) -> StatRule:
    """Rule reading a top-level key."""
    return StatRule(key, lambda stats: numeric(stats.get(key)))


def nested_rule(key: str, subkey: str) -> StatRule:
    """Rule reading ``stats[key][subkey]``, or ``stats[key]`` when it is a bare number."""

    def extract(stats: StatBag) -> int | None:
        value = stats.get(key)
        if isinstance(value, Mapping):
            return numeric(value.get(subkey))
        return numeric(value)

    return StatRule(f"{key}.{subkey}", extract)


def first_defined(rules: list[StatRule], stats: StatBag | None) -> int | None:
    """Apply rules in priority order and return the first number found."""
    if not stats:
        return None
    for rule in rules:
        value = rule(stats)
        if value is not None:
            return value
    return None


INITIATIVE_RULES = [
    field_rule("initiative"),
    field_rule("initiative_bonus"),
    field_rule("initiativeBonus"),
    field_rule("dex_mod"),
    field_rule("dexMod"),
]

MAX_HP_RULES = [
    field_rule("maxHp"),
    field_rule("max_hp"),
    field_rule("hp_max"),
    field_rule("hit_points"),
    nested_rule("hp", "max"),
]

CURRENT_HP_RULES = [
    field_rule("currentHp"),
    field_rule("current_hp"),
    field_rule("hp_current"),
    nested_rule("hp", "current"),
]


@dataclass(frozen=True)
class HitPoints:
    """Resolved hit points for a new combatant."""

    max_hp: int
    current_hp: int


def fallback_initiative(index: int, roster_size: int, step: int = 10) -> int:
    """Default initiative that favours earlier roster positions."""
    return (roster_size - index) * step


def resolve_initiative(
    stats: StatBag | None,
    index: int,
    roster_size: int,
    step: int = 10,
) -> int:
    """Derive an initiative score for a roster member.

    Args:
        stats: Stat bag supplied for the combatant, if any
        index: Position of the combatant in the roster
        roster_size: Number of combatants in the roster
        step: Spacing between fallback scores

    Returns:
        Initiative score; never fails
    """
    value = first_defined(INITIATIVE_RULES, stats)
    if value is None:
        return fallback_initiative(index, roster_size, step)
    return value


def resolve_hit_points(stats: StatBag | None) -> HitPoints:
    """Resolve max and current HP, keeping 0 <= current <= max."""
    max_hp = max(first_defined(MAX_HP_RULES, stats) or 0, 0)
    current = first_defined(CURRENT_HP_RULES, stats)
    if current is None:
        current = max_hp
    return HitPoints(max_hp=max_hp, current_hp=min(max(current, 0), max_hp))
