"""Random tables rolled with the dice engine."""

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Mapping

from pydantic import JsonValue
from sqlalchemy.orm import Session

from ..database.models import RandomTable, RandomTableEntry
from ..database.session import CampaignStore
from ..errors import InvalidPayload, NotFound
from ..game.dice import DiceRoller, parse_notation
from ..payloads import ensure_json
from ..summaries import make_summary, summarize_table_roll
from .campaigns import require_campaign
from .events import CampaignEvent, EventSink, LoggingEventSink, publish

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TableEntry:
    """An inclusive roll range and what it yields."""

    min: int
    max: int
    result: JsonValue

    @classmethod
    def from_dict(cls, data: "TableEntry | Mapping[str, Any]") -> "TableEntry":
        """Build from {"range": [min, max], "result": ...}."""
        if isinstance(data, TableEntry):
            return data
        if not isinstance(data, Mapping):
            raise InvalidPayload(f"Table entries must be mappings, got {type(data).__name__}")
        bounds = data.get("range")
        if (
            not isinstance(bounds, (list, tuple))
            or len(bounds) != 2
            or not all(isinstance(b, int) and not isinstance(b, bool) for b in bounds)
        ):
            raise InvalidPayload(f"Table entry range must be two integers, got {bounds!r}")
        low, high = bounds
        if low > high:
            raise InvalidPayload(f"Table entry range must be ascending, got [{low}, {high}]")
        return cls(min=low, max=high, result=ensure_json(data.get("result"), "table entry result"))

    def covers(self, roll: int) -> bool:
        return self.min <= roll <= self.max


class RandomTables:
    """Creates random tables and rolls on them."""

    def __init__(
        self,
        store: CampaignStore,
        events: EventSink | None = None,
        roller: DiceRoller | None = None,
    ):
        self.store = store
        self.events = events or LoggingEventSink()
        self.roller = roller or DiceRoller()

    def create_table(
        self,
        name: str,
        dice: str,
        entries: Iterable[TableEntry | Mapping[str, Any]],
        campaign_id: int | None = None,
        scope: str = "campaign",
    ) -> dict[str, Any]:
        """Create a random table.

        Args:
            name: Table name
            dice: Dice notation rolled against the table
            entries: Entries as TableEntry or {"range": [min, max], "result": ...}
            campaign_id: Owning campaign, or None for a global table
            scope: Free-form scope label

        Returns:
            {"table_id": id}

        Raises:
            MalformedNotation: If the dice notation is invalid
            NotFound: If the campaign does not exist
        """
        parse_notation(dice)
        rows = [TableEntry.from_dict(entry) for entry in entries]

        def work(session: Session) -> int:
            if campaign_id is not None:
                require_campaign(session, campaign_id)
            table = RandomTable(campaign_id=campaign_id, name=name, dice=dice, scope=scope)
            table.entries = [RandomTableEntry(min=e.min, max=e.max, result=e.result) for e in rows]
            session.add(table)
            session.flush()
            return table.id

        table_id = self.store.run(work).unwrap()
        summary = make_summary("Random table created", name, f"{len(rows)} entries")
        logger.info(summary)
        publish(
            self.events,
            CampaignEvent(
                campaign_id=campaign_id,
                type="table.create",
                summary=summary,
                payload={"table_id": table_id, "dice": dice, "entries": len(rows)},
            )
        )
        return {"table_id": table_id}

    def roll_table(self, table_id: int, seed: str | None = None) -> dict[str, Any]:
        """Roll a table's dice and look up the matching entry.

        Args:
            table_id: Table to roll on
            seed: Optional seed to replay a roll

        Returns:
            {roll, seed, result, summary}; result is None when no range covers the roll

        Raises:
            NotFound: If the table does not exist or has no entries
        """
        with self.store.transaction() as session:
            table = session.get(RandomTable, table_id)
            if table is None:
                raise NotFound(f"Random table {table_id} not found")
            if not table.entries:
                raise NotFound(f"Random table {table.name} has no entries")
            name = table.name
            dice = table.dice
            entries = [TableEntry(min=e.min, max=e.max, result=e.result) for e in table.entries]

        rolled = self.roller.roll(dice, seed=seed)
        match = next((entry for entry in entries if entry.covers(rolled.total)), None)
        result = match.result if match else None
        return {
            "roll": rolled.total,
            "seed": rolled.seed,
            "result": result,
            "summary": summarize_table_roll(name, rolled.total, result),
        }
