"""Combatant mutation engine.

Applies one action from a closed set to a single combatant. The engine is a
pure function: it never touches storage, it returns a new CombatantState and
a human-readable description of the change.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from ..errors import InvalidAction


class CombatAction(Enum):
    """Actions that can be applied to a combatant."""

    DAMAGE = "damage"
    HEAL = "heal"
    TEMP_HP = "temp_hp"
    ADD_CONDITION = "add_condition"
    REMOVE_CONDITION = "remove_condition"
    CUSTOM_NOTE = "custom_note"

    @classmethod
    def parse(cls, tag: "CombatAction | str") -> "CombatAction":
        """Resolve an action tag, rejecting anything outside the closed set."""
        if isinstance(tag, CombatAction):
            return tag
        try:
            return cls(tag)
        except ValueError:
            allowed = ", ".join(a.value for a in cls)
            raise InvalidAction(f'Unknown combat action "{tag}" (expected one of: {allowed})') from None


@dataclass(frozen=True)
class CombatantState:
    """A combatant's tracked state within one combat."""

    name: str
    side: str
    max_hp: int = 0
    current_hp: int = 0
    temp_hp: int = 0
    initiative: int = 0
    conditions: tuple[str, ...] = ()
    notes: str | None = None
    stats: dict[str, Any] | None = field(default=None, compare=False)
    id: int | None = None

    def has_condition(self, name: str) -> bool:
        return name in self.conditions

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "name": self.name,
            "side": self.side,
            "max_hp": self.max_hp,
            "current_hp": self.current_hp,
            "temp_hp": self.temp_hp,
            "initiative": self.initiative,
            "conditions": list(self.conditions),
            "notes": self.notes,
        }


@dataclass(frozen=True)
class MutationOutcome:
    """Result of applying an action to a combatant."""

    action: CombatAction
    before: CombatantState
    combatant: CombatantState
    description: str


def _amount(action: CombatAction, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidAction(f"{action.value} requires an integer value, got {value!r}")
    return max(value, 0)


def _condition_name(action: CombatAction, condition: Any) -> str:
    name = condition.strip() if isinstance(condition, str) else ""
    if not name:
        raise InvalidAction(f"condition is required for {action.value}")
    return name


def take_damage(combatant: CombatantState, amount: int) -> tuple[CombatantState, str]:
    """Temp HP absorbs first; the remainder comes off current HP, floored at 0."""
    absorbed = min(combatant.temp_hp, amount)
    remaining = amount - absorbed
    current = max(0, combatant.current_hp - remaining)
    updated = replace(combatant, temp_hp=combatant.temp_hp - absorbed, current_hp=current)

    description = f"{combatant.name} takes {amount} damage"
    if absorbed:
        description += f" ({absorbed} absorbed by temp HP)"
    return updated, description


def heal(combatant: CombatantState, amount: int) -> tuple[CombatantState, str]:
    """Heal up to max HP."""
    current = min(combatant.max_hp, combatant.current_hp + amount)
    healed = current - combatant.current_hp
    return replace(combatant, current_hp=current), f"{combatant.name} heals {healed} HP"


def apply_action(
    combatant: CombatantState,
    action: CombatAction | str,
    value: int | str | None = None,
    condition: str | None = None,
) -> MutationOutcome:
    """Apply one combat action to a combatant.

    Args:
        combatant: Current combatant state
        action: Action tag (damage, heal, temp_hp, add_condition,
            remove_condition, custom_note)
        value: Amount for HP actions, or note text for custom_note
        condition: Condition name for condition actions; fallback note text

    Returns:
        MutationOutcome with the updated combatant and a description

    Raises:
        InvalidAction: On an unknown action or a missing payload
    """
    action = CombatAction.parse(action)

    if action is CombatAction.DAMAGE:
        updated, description = take_damage(combatant, _amount(action, value))

    elif action is CombatAction.HEAL:
        updated, description = heal(combatant, _amount(action, value))

    elif action is CombatAction.TEMP_HP:
        amount = _amount(action, value)
        updated = replace(combatant, temp_hp=amount)
        description = f"{combatant.name} now has {amount} temp HP"

    elif action is CombatAction.ADD_CONDITION:
        name = _condition_name(action, condition)
        if combatant.has_condition(name):
            updated = combatant
            description = f"{combatant.name} is already {name}"
        else:
            updated = replace(combatant, conditions=(*combatant.conditions, name))
            description = f"{combatant.name} gains {name}"

    elif action is CombatAction.REMOVE_CONDITION:
        name = _condition_name(action, condition)
        updated = replace(
            combatant, conditions=tuple(c for c in combatant.conditions if c != name)
        )
        if combatant.has_condition(name):
            description = f"{combatant.name} loses {name}"
        else:
            description = f"{combatant.name} was not {name}"

    else:
        # custom_note
        if isinstance(value, str):
            text = value
        else:
            text = condition or ""
        updated = replace(combatant, notes=text)
        description = f"Note on {combatant.name} updated"

    return MutationOutcome(
        action=action,
        before=combatant,
        combatant=updated,
        description=description,
    )
