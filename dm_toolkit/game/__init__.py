"""Game mechanics module for dice, initiative and combat."""

from .dice import AdvantageMode, DiceRoller, RollResult, parse_notation, roll
from .rng import SeededRandom
from .initiative import resolve_hit_points, resolve_initiative
from .mutations import CombatAction, CombatantState, apply_action

__all__ = [
    "AdvantageMode", "DiceRoller", "RollResult", "parse_notation", "roll",
    "SeededRandom", "resolve_hit_points", "resolve_initiative",
    "CombatAction", "CombatantState", "apply_action",
]
