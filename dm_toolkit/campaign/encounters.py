"""Encounter building: prepared rosters that combats start from."""

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Mapping

from sqlalchemy.orm import Session

from ..database.models import Encounter, EncounterCombatant
from ..database.session import CampaignStore
from ..errors import EmptyRoster, InvalidPayload, NotFound
from ..payloads import ensure_stat_bag
from ..summaries import make_summary, summarize_roster
from .campaigns import require_campaign
from .events import CampaignEvent, EventSink, LoggingEventSink, publish

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RosterMember:
    """A combatant as declared by a caller or an encounter."""

    name: str
    side: str
    stats: dict[str, Any] | None = None

    @classmethod
    def from_dict(cls, data: "RosterMember | Mapping[str, Any]") -> "RosterMember":
        """Build from a mapping; the stat block may be under "stats" or "base"."""
        if isinstance(data, RosterMember):
            return data
        if not isinstance(data, Mapping):
            raise InvalidPayload(f"Roster members must be mappings, got {type(data).__name__}")
        name = str(data.get("name") or "").strip()
        side = str(data.get("side") or "").strip()
        if not name or not side:
            raise InvalidPayload(f"Roster members need a name and a side: {dict(data)!r}")
        stats = data.get("stats", data.get("base"))
        return cls(name=name, side=side, stats=ensure_stat_bag(stats))

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "side": self.side, "stats": self.stats}


def normalize_roster(roster: Iterable[RosterMember | Mapping[str, Any]] | None) -> list[RosterMember]:
    return [RosterMember.from_dict(member) for member in roster or []]


def load_encounter_roster(session: Session, encounter_id: int) -> tuple[Encounter, list[RosterMember]]:
    """Read an encounter's roster in declaration order.

    Raises:
        NotFound: If the encounter does not exist
    """
    encounter = session.get(Encounter, encounter_id)
    if encounter is None:
        raise NotFound(f"Encounter {encounter_id} not found")
    roster = [
        RosterMember(name=member.name, side=member.side, stats=member.stats)
        for member in encounter.combatants
    ]
    return encounter, roster


class EncounterBuilder:
    """Persists encounters for later use by combat.start."""

    def __init__(self, store: CampaignStore, events: EventSink | None = None):
        self.store = store
        self.events = events or LoggingEventSink()

    def build_encounter(
        self,
        campaign_id: int,
        name: str,
        roster: Iterable[RosterMember | Mapping[str, Any]],
        difficulty: str = "medium",
        notes: str | None = None,
    ) -> dict[str, Any]:
        """Create an encounter with its roster.

        Args:
            campaign_id: Owning campaign
            name: Encounter name
            roster: Members as RosterMember or {name, side, stats?} mappings
            difficulty: Free-form difficulty label
            notes: Optional notes

        Returns:
            {"encounter_id": id}

        Raises:
            EmptyRoster: If the roster is empty
            NotFound: If the campaign does not exist
        """
        members = normalize_roster(roster)
        if not members:
            raise EmptyRoster(f'Encounter "{name}" needs at least one combatant')

        def work(session: Session) -> int:
            require_campaign(session, campaign_id)
            encounter = Encounter(
                campaign_id=campaign_id,
                name=name,
                difficulty=difficulty or "medium",
                notes=notes,
            )
            encounter.combatants = [
                EncounterCombatant(name=m.name, side=m.side, stats=m.stats) for m in members
            ]
            session.add(encounter)
            session.flush()
            return encounter.id

        encounter_id = self.store.run(work).unwrap()
        summary = make_summary(
            "Encounter built", name, summarize_roster(m.to_dict() for m in members)
        )
        logger.info(summary)
        publish(
            self.events,
            CampaignEvent(
                campaign_id=campaign_id,
                type="encounter.build",
                summary=summary,
                payload={
                    "encounter_id": encounter_id,
                    "difficulty": difficulty,
                    "roster": [{"name": m.name, "side": m.side} for m in members],
                },
            )
        )
        return {"encounter_id": encounter_id}
