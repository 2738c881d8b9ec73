"""Dice notation parser and seeded dice roller."""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

from ..errors import InvalidAdvantageMode, InvalidModifier, MalformedNotation
from .rng import SeededRandom, new_seed

logger = logging.getLogger(__name__)


class AdvantageMode(Enum):
    """Advantage policy for a roll."""

    NONE = "none"
    ADVANTAGE = "advantage"
    DISADVANTAGE = "disadvantage"

    @classmethod
    def parse(cls, value: "AdvantageMode | str | None") -> "AdvantageMode":
        """Resolve a mode from its name or a short alias (adv, dis, normal)."""
        if isinstance(value, AdvantageMode):
            return value
        if value is None:
            return cls.NONE

        aliases = {
            "": cls.NONE,
            "none": cls.NONE,
            "normal": cls.NONE,
            "adv": cls.ADVANTAGE,
            "advantage": cls.ADVANTAGE,
            "dis": cls.DISADVANTAGE,
            "disadvantage": cls.DISADVANTAGE,
        }
        key = value.strip().lower() if isinstance(value, str) else None
        if key not in aliases:
            raise InvalidAdvantageMode(
                f"Unknown advantage mode \"{value}\" (expected none, advantage or disadvantage)"
            )
        return aliases[key]


@dataclass(frozen=True)
class DieGroup:
    """A signed group of identical dice, e.g. -2d6."""

    sign: int
    count: int
    sides: int

    def __str__(self) -> str:
        prefix = "-" if self.sign < 0 else "+"
        return f"{prefix}{self.count}d{self.sides}"


@dataclass(frozen=True)
class FlatModifier:
    """A signed integer added to the total."""

    value: int

    def __str__(self) -> str:
        return f"{self.value:+d}"


DiceTerm = Union[DieGroup, FlatModifier]


@dataclass
class RollResult:
    """Result of a dice roll with full details."""

    notation: str
    rolls: list[int]
    total: int
    narrative: str
    seed: str
    advantage: AdvantageMode = AdvantageMode.NONE  # Mode actually applied
    exploding: bool = False
    terms: list[DiceTerm] = field(default_factory=list)

    def __str__(self) -> str:
        return self.narrative

    def to_dict(self) -> dict[str, Any]:
        """Convert to the dice.roll response shape."""
        return {
            "rolls": list(self.rolls),
            "total": self.total,
            "narrative": self.narrative,
            "seed": self.seed,
        }


# Maximal runs between sign boundaries: "2d6+3-1d4" -> ["2d6", "+3", "-1d4"]
TOKEN_PATTERN = re.compile(r"[+-]?[^+-]+")
DIE_PATTERN = re.compile(r"^([+-]?)(\d*)d(\d+)$", re.IGNORECASE)
MODIFIER_PATTERN = re.compile(r"^[+-]?\d+$")


def tokenize(notation: str) -> list[str]:
    """Split notation into signed tokens.

    Args:
        notation: Dice notation such as "2d6 + 3"

    Returns:
        Tokens in source order

    Raises:
        MalformedNotation: If the notation is empty or has stray signs
    """
    raw = notation.strip()
    if not raw:
        raise MalformedNotation("Dice notation cannot be empty")

    compact = re.sub(r"\s+", "", raw)
    tokens = TOKEN_PATTERN.findall(compact)
    if not tokens:
        raise MalformedNotation(f'Unable to parse dice notation "{raw}"')
    if "".join(tokens) != compact:
        raise MalformedNotation(f'Dangling sign in dice notation "{raw}"')
    return tokens


def parse_die(token: str) -> DieGroup:
    """Parse a single die-group token such as "2d6" or "-d20"."""
    match = DIE_PATTERN.match(token)
    if not match:
        raise MalformedNotation(f'Unsupported dice token "{token}"', token=token)

    sign = -1 if match.group(1) == "-" else 1
    count = int(match.group(2)) if match.group(2) else 1
    sides = int(match.group(3))

    if count <= 0 or sides <= 0:
        raise MalformedNotation(
            f'Dice token "{token}" must have positive count and sides', token=token
        )
    return DieGroup(sign=sign, count=count, sides=sides)


def parse_modifier(token: str) -> FlatModifier:
    """Parse a flat modifier token such as "+3"."""
    if not MODIFIER_PATTERN.match(token):
        raise InvalidModifier(f'Unsupported modifier token "{token}"', token=token)
    return FlatModifier(value=int(token))


def parse_notation(notation: str) -> list[DiceTerm]:
    """Parse dice notation into terms.

    Die groups come first in source order, followed by flat modifiers in
    source order.

    Args:
        notation: Dice notation string (e.g., "2d6+3-1d4")

    Returns:
        Ordered list of DieGroup and FlatModifier terms

    Raises:
        MalformedNotation: If the notation or a die token is invalid
        InvalidModifier: If a modifier token is not an integer
    """
    tokens = tokenize(notation)
    dice = [parse_die(t) for t in tokens if "d" in t.lower()]
    modifiers = [parse_modifier(t) for t in tokens if "d" not in t.lower()]
    return [*dice, *modifiers]


def _format_die(value: int, chain: list[int]) -> str:
    if len(chain) > 1:
        return f"{value} ({'+'.join(str(face) for face in chain)})"
    return str(value)


class DiceRoller:
    """Dice rolling engine with notation parsing."""

    def __init__(self, max_explosions: int = 100):
        """Initialize the dice roller.

        Args:
            max_explosions: Cap on extra draws per exploding die
        """
        self.max_explosions = max_explosions

    def draw(self, rng: SeededRandom, sides: int, exploding: bool) -> tuple[int, list[int]]:
        """Draw one die, chaining further draws while the top face recurs.

        Returns:
            Tuple of (accumulated value, individual faces drawn)
        """
        face = rng.roll_die(sides)
        chain = [face]
        if exploding:
            while face == sides and len(chain) <= self.max_explosions:
                face = rng.roll_die(sides)
                chain.append(face)
        return sum(chain), chain

    def roll(
        self,
        notation: str,
        advantage: AdvantageMode | str | None = None,
        exploding: bool = False,
        seed: str | None = None,
    ) -> RollResult:
        """Parse and roll dice from notation string.

        Args:
            notation: Dice notation string
            advantage: Advantage mode; only honoured for a lone 1d20
            exploding: Re-roll and add whenever a die shows its top face
            seed: Seed to replay; a fresh one is generated when omitted

        Returns:
            RollResult with full roll details
        """
        terms = parse_notation(notation)
        return self.roll_terms(notation.strip(), terms, advantage, exploding, seed)

    def roll_terms(
        self,
        notation: str,
        terms: list[DiceTerm],
        advantage: AdvantageMode | str | None = None,
        exploding: bool = False,
        seed: str | None = None,
    ) -> RollResult:
        """Roll already-parsed terms."""
        mode = AdvantageMode.parse(advantage)
        seed = seed if seed is not None else new_seed()
        rng = SeededRandom(seed)

        applies_advantage = (
            mode is not AdvantageMode.NONE
            and len(terms) == 1
            and isinstance(terms[0], DieGroup)
            and terms[0].count == 1
            and terms[0].sides == 20
        )

        total = 0
        rolls: list[int] = []
        breakdown: list[str] = []
        advantage_note = None

        for term in terms:
            if isinstance(term, FlatModifier):
                total += term.value
                rolls.append(term.value)
                breakdown.append(str(term))
                continue

            if applies_advantage:
                first, _ = self.draw(rng, term.sides, exploding)
                second, _ = self.draw(rng, term.sides, exploding)
                picked = max(first, second) if mode is AdvantageMode.ADVANTAGE else min(first, second)
                contribution = term.sign * picked
                total += contribution
                rolls.extend([term.sign * first, term.sign * second])
                prefix = "-" if term.sign < 0 else ""
                breakdown.append(
                    f"{prefix}1d20({mode.value}) => [{first}, {second}] -> {contribution}"
                )
                advantage_note = f"{mode.value} applied; selected {picked}"
                continue

            rendered = []
            for _ in range(term.count):
                value, chain = self.draw(rng, term.sides, exploding)
                total += term.sign * value
                rolls.append(term.sign * value)
                rendered.append(_format_die(term.sign * value, chain))
            breakdown.append(f"{term} => [{', '.join(rendered)}]")

        summary = [f"Roll {notation}"]
        if exploding:
            summary.append("exploding")
        if advantage_note:
            summary.append(advantage_note)
        narrative = f"{' '.join(summary)} -> {total} [{'; '.join(breakdown)}]"

        logger.debug(f"Rolled {notation} with seed {seed}: {total}")

        return RollResult(
            notation=notation,
            rolls=rolls,
            total=total,
            narrative=narrative,
            seed=seed,
            advantage=mode if applies_advantage else AdvantageMode.NONE,
            exploding=exploding,
            terms=list(terms),
        )


# Convenience function for quick rolls
def roll(
    notation: str,
    advantage: AdvantageMode | str | None = None,
    exploding: bool = False,
    seed: str | None = None,
) -> RollResult:
    """Quick roll function using default roller.

    Args:
        notation: Dice notation string
        advantage: Advantage mode
        exploding: Whether dice explode on their top face
        seed: Optional seed for reproducible results

    Returns:
        RollResult with full roll details
    """
    return DiceRoller().roll(notation, advantage=advantage, exploding=exploding, seed=seed)
