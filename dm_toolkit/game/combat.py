"""Combat session state machine over the campaign store.

A combat is created once, in the active state, from a roster. Afterwards it
changes in two ways only:

* ``next_turn`` moves the turn pointer under optimistic concurrency: the
  caller names the version it last saw and the update commits only while
  that version is still current.
* ``apply_action`` mutates a single combatant row through the mutation
  engine. It does not touch the combat's version.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, Mapping

from sqlalchemy import update
from sqlalchemy.orm import Session

from ..campaign.campaigns import require_campaign
from ..campaign.encounters import RosterMember, load_encounter_roster, normalize_roster
from ..campaign.events import CampaignEvent, EventSink, LoggingEventSink, publish
from ..config import CombatConfig
from ..database.models import Combat, CombatantInCombat
from ..database.session import CampaignStore
from ..errors import DungeonMasterError, EmptyRoster, NotFound, VersionConflict, WrongSession
from ..summaries import make_summary, summarize_roster
from .initiative import resolve_hit_points, resolve_initiative
from .mutations import CombatAction, CombatantState, MutationOutcome, apply_action

logger = logging.getLogger(__name__)

ACTIVE = "active"


@dataclass(frozen=True)
class CombatSessionState:
    """A read of one combat: round, turn pointer, version and turn order."""

    id: int
    campaign_id: int
    round: int
    turn_index: int
    version: int
    status: str
    combatants: tuple[CombatantState, ...] = field(default_factory=tuple)

    @property
    def active(self) -> CombatantState | None:
        """The combatant whose turn it is."""
        if 0 <= self.turn_index < len(self.combatants):
            return self.combatants[self.turn_index]
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "combat_id": self.id,
            "campaign_id": self.campaign_id,
            "round": self.round,
            "turn_index": self.turn_index,
            "version": self.version,
            "status": self.status,
            "active_combatant": self.active.to_dict() if self.active else None,
            "combatants": [c.to_dict() for c in self.combatants],
        }


def to_state(row: CombatantInCombat) -> CombatantState:
    """Convert a combatant row to a mutation-engine value."""
    return CombatantState(
        id=row.id,
        name=row.name,
        side=row.side,
        max_hp=row.max_hp,
        current_hp=row.current_hp,
        temp_hp=row.temp_hp,
        initiative=row.initiative,
        conditions=tuple(row.conditions or ()),
        notes=row.notes,
        stats=row.stats,
    )


def initiative_order(rows: Iterable[CombatantInCombat]) -> list[CombatantInCombat]:
    """Descending initiative; ties keep creation order."""
    return sorted(rows, key=lambda row: (-row.initiative, row.id))


def next_position(turn_index: int, round_number: int, combatant_count: int) -> tuple[int, int]:
    """Compute the turn pointer after one advance.

    Returns:
        Tuple of (next turn index, round); the round increments on wrap
    """
    next_index = (turn_index + 1) % combatant_count
    next_round = round_number + 1 if next_index == 0 else round_number
    return next_index, next_round


def advance_if_current(
    session: Session,
    combat_id: int,
    expected_version: int,
    turn_index: int,
    round_number: int,
) -> bool:
    """Compare-and-swap on (combat id, version).

    Returns:
        True if the row still had ``expected_version`` and was updated
    """
    result = session.execute(
        update(Combat)
        .where(Combat.id == combat_id, Combat.version == expected_version)
        .values(
            turn_index=turn_index,
            round=round_number,
            version=Combat.version + 1,
            updated_at=datetime.utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


class CombatManager:
    """Starts combats, applies combatant actions and advances turns."""

    def __init__(
        self,
        store: CampaignStore,
        events: EventSink | None = None,
        config: CombatConfig | None = None,
    ):
        """Initialize the combat manager.

        Args:
            store: Campaign store holding combats and combatants
            events: Sink receiving summaries of committed changes
            config: Combat configuration
        """
        self.store = store
        self.events = events or LoggingEventSink()
        self.config = config or CombatConfig()

    def _load_state(self, session: Session, combat_id: int) -> CombatSessionState:
        combat = session.get(Combat, combat_id)
        if combat is None:
            raise NotFound(f"Combat {combat_id} not found")
        return CombatSessionState(
            id=combat.id,
            campaign_id=combat.campaign_id,
            round=combat.round,
            turn_index=combat.turn_index,
            version=combat.version,
            status=combat.status,
            combatants=tuple(to_state(row) for row in initiative_order(combat.combatants)),
        )

    def start_combat(
        self,
        campaign_id: int,
        encounter_id: int | None = None,
        roster: Iterable[RosterMember | Mapping[str, Any]] | None = None,
    ) -> dict[str, Any]:
        """Start a combat from an explicit roster or a stored encounter.

        Args:
            campaign_id: Owning campaign
            encounter_id: Encounter whose roster is used when no roster is given
            roster: Members as RosterMember or {name, side, stats?} mappings

        Returns:
            {combat_id, round, version, initiative_order}

        Raises:
            EmptyRoster: If no combatants result
            NotFound: If the campaign or encounter does not exist
        """
        members = normalize_roster(roster)
        if not members and encounter_id is None:
            raise EmptyRoster("Provide encounter_id or a non-empty roster")

        step = self.config.fallback_initiative_step

        def work(session: Session) -> tuple[Combat, list[CombatantInCombat], list[RosterMember]]:
            require_campaign(session, campaign_id)
            used = members
            if encounter_id is not None:
                encounter, stored = load_encounter_roster(session, encounter_id)
                if encounter.campaign_id != campaign_id:
                    raise WrongSession(
                        f"Encounter {encounter_id} belongs to campaign {encounter.campaign_id}, "
                        f"not {campaign_id}"
                    )
                # An explicit roster overrides the stored one
                used = members or stored
            if not used:
                raise EmptyRoster("No combatants provided")

            combat = Combat(
                campaign_id=campaign_id,
                encounter_id=encounter_id,
                round=1,
                turn_index=0,
                version=1,
                status=ACTIVE,
            )
            session.add(combat)
            session.flush()

            rows = []
            for index, member in enumerate(used):
                hp = resolve_hit_points(member.stats)
                row = CombatantInCombat(
                    combat_id=combat.id,
                    name=member.name,
                    side=member.side,
                    max_hp=hp.max_hp,
                    current_hp=hp.current_hp,
                    temp_hp=0,
                    initiative=resolve_initiative(member.stats, index, len(used), step),
                    conditions=[],
                    notes=None,
                    stats=member.stats,
                )
                session.add(row)
                rows.append(row)
            session.flush()
            return combat, initiative_order(rows), used

        combat, order, used = self.store.run(work).unwrap()

        initiative = [
            {"id": row.id, "name": row.name, "side": row.side, "initiative": row.initiative}
            for row in order
        ]
        summary = make_summary(
            "Combat started", str(combat.id), summarize_roster(m.to_dict() for m in used)
        )
        logger.info(summary)
        publish(
            self.events,
            CampaignEvent(
                campaign_id=campaign_id,
                type="combat.start",
                summary=summary,
                payload={"combat_id": combat.id, "combatants": initiative},
            )
        )
        return {
            "combat_id": combat.id,
            "round": combat.round,
            "version": combat.version,
            "initiative_order": initiative,
        }

    def get_combat(self, combat_id: int) -> CombatSessionState:
        """Read the current state of a combat.

        Raises:
            NotFound: If the combat does not exist
        """
        with self.store.transaction() as session:
            return self._load_state(session, combat_id)

    def apply_action(
        self,
        combat_id: int,
        target_combatant_id: int,
        action: CombatAction | str,
        value: int | str | None = None,
        condition: str | None = None,
    ) -> dict[str, Any]:
        """Apply one action to a combatant of a combat.

        Args:
            combat_id: Combat the caller believes the target belongs to
            target_combatant_id: Combatant to mutate
            action: damage, heal, temp_hp, add_condition, remove_condition or custom_note
            value: Amount for HP actions, or note text
            condition: Condition name for condition actions

        Returns:
            {target_combatant_id, current_hp, temp_hp, conditions, ...}

        Raises:
            NotFound: If the combatant does not exist
            WrongSession: If it belongs to another combat
            InvalidAction: On an unknown action or missing payload
        """
        action = CombatAction.parse(action)

        def work(session: Session) -> tuple[MutationOutcome, int]:
            # Claim the row's write lock before reading so concurrent actions
            # on the same combatant serialize instead of losing updates.
            claimed = session.execute(
                update(CombatantInCombat)
                .where(CombatantInCombat.id == target_combatant_id)
                .values(updated_at=datetime.utcnow())
                .execution_options(synchronize_session=False)
            )
            if claimed.rowcount == 0:
                raise NotFound(f"Combatant {target_combatant_id} not found")

            row = session.get(CombatantInCombat, target_combatant_id, populate_existing=True)
            if row.combat_id != combat_id:
                raise WrongSession(
                    f"Combatant {target_combatant_id} does not belong to combat {combat_id}"
                )

            outcome = apply_action(to_state(row), action, value=value, condition=condition)
            updated = outcome.combatant
            row.current_hp = updated.current_hp
            row.temp_hp = updated.temp_hp
            row.conditions = list(updated.conditions)
            row.notes = updated.notes
            return outcome, row.combat.campaign_id

        result = self.store.run(work)
        if not result.committed and isinstance(result.error, DungeonMasterError):
            logger.warning(f"Action {action.value} on combatant {target_combatant_id} rejected: {result.error.message}")
        outcome, campaign_id = result.unwrap()
        updated = outcome.combatant

        summary = make_summary(
            f"Combat {action.value}", updated.name, f"hp {updated.current_hp}/{updated.max_hp}"
        )
        logger.info(f"{summary} ({outcome.description})")
        publish(
            self.events,
            CampaignEvent(
                campaign_id=campaign_id,
                type=f"combat.{action.value}",
                summary=summary,
                payload={
                    "combat_id": combat_id,
                    "combatant_id": updated.id,
                    "action": action.value,
                    "value": value,
                    "condition": condition,
                },
            )
        )
        return {
            "target_combatant_id": updated.id,
            "current_hp": updated.current_hp,
            "max_hp": updated.max_hp,
            "temp_hp": updated.temp_hp,
            "conditions": list(updated.conditions),
            "notes": updated.notes,
            "summary": outcome.description,
        }

    def next_turn(self, combat_id: int, version: int) -> dict[str, Any]:
        """Advance to the next turn if ``version`` is still current.

        Args:
            combat_id: Combat to advance
            version: Version the caller last observed

        Returns:
            {active_combatant, round, turn_index, version}

        Raises:
            NotFound: If the combat does not exist
            VersionConflict: If the version is stale or another advance won
        """

        def work(session: Session) -> CombatSessionState:
            current = self._load_state(session, combat_id)
            if current.version != version:
                raise VersionConflict(
                    f"Version conflict on combat {combat_id}: supplied {version}, "
                    f"current {current.version}; fetch the latest state before advancing",
                    expected=version,
                    actual=current.version,
                )
            if not current.combatants:
                raise EmptyRoster(f"Cannot advance combat {combat_id} with no combatants")

            next_index, next_round = next_position(
                current.turn_index, current.round, len(current.combatants)
            )
            if not advance_if_current(session, combat_id, current.version, next_index, next_round):
                raise VersionConflict(
                    f"Version conflict on combat {combat_id}: state changed concurrently "
                    f"after version {version} was read",
                    expected=version,
                )
            return CombatSessionState(
                id=current.id,
                campaign_id=current.campaign_id,
                round=next_round,
                turn_index=next_index,
                version=current.version + 1,
                status=current.status,
                combatants=current.combatants,
            )

        outcome = self.store.run(work)
        if not outcome.committed and isinstance(outcome.error, VersionConflict):
            logger.warning(outcome.error.message)
        state = outcome.unwrap()

        active = state.active
        summary = make_summary(
            "Combat next turn",
            active.name if active else "n/a",
            f"round {state.round}, turn {state.turn_index + 1}",
        )
        logger.info(summary)
        publish(
            self.events,
            CampaignEvent(
                campaign_id=state.campaign_id,
                type="combat.next_turn",
                summary=summary,
                payload={
                    "combat_id": state.id,
                    "round": state.round,
                    "turn_index": state.turn_index,
                    "version": state.version,
                    "active": active.id if active else None,
                },
            )
        )
        return {
            "active_combatant": (
                {
                    "id": active.id,
                    "name": active.name,
                    "side": active.side,
                    "current_hp": active.current_hp,
                    "temp_hp": active.temp_hp,
                }
                if active
                else None
            ),
            "round": state.round,
            "turn_index": state.turn_index,
            "version": state.version,
        }
