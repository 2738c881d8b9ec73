"""Named operations exposed to a calling agent.

Each operation takes keyword arguments and returns a JSON-ready dict. The
transport that carries these calls lives outside this package.
"""

import logging
from typing import Any, Callable

from .campaign.campaigns import CampaignManager
from .campaign.encounters import EncounterBuilder
from .campaign.events import (
    CompositeEventSink,
    EventSink,
    LoggingEventSink,
    StoreEventSink,
    export_session_log,
)
from .campaign.tables import RandomTables
from .config import AppConfig
from .database.session import CampaignStore
from .errors import NotFound
from .game.combat import CombatManager
from .game.dice import AdvantageMode, DiceRoller

logger = logging.getLogger(__name__)


class DungeonMasterTools:
    """Registry of the toolkit's operations over one campaign store."""

    def __init__(
        self,
        store: CampaignStore,
        config: AppConfig | None = None,
        events: EventSink | None = None,
    ):
        """Wire the components around an explicitly owned store.

        Args:
            store: Campaign store shared by all components
            config: Application configuration
            events: Event sink; defaults to persisting and logging each event
        """
        self.store = store
        self.config = config or AppConfig()
        self.events = events or CompositeEventSink(StoreEventSink(store), LoggingEventSink())

        self.roller = DiceRoller(max_explosions=self.config.dice.max_explosions)
        self.campaigns = CampaignManager(store, self.events)
        self.encounters = EncounterBuilder(store, self.events)
        self.combat = CombatManager(store, self.events, self.config.combat)
        self.tables = RandomTables(store, self.events, self.roller)

        self._operations: dict[str, Callable[..., dict[str, Any]]] = {
            "dice.roll": self.dice_roll,
            "campaign.create": self.campaigns.create_campaign,
            "campaign.get": self.campaigns.get_campaign,
            "campaign.update": self.campaigns.update_campaign,
            "campaign.list": self.campaigns.list_campaigns,
            "encounter.build": self.encounters.build_encounter,
            "combat.start": self.combat.start_combat,
            "combat.get": self.combat_get,
            "combat.apply": self.combat.apply_action,
            "combat.next_turn": self.combat.next_turn,
            "table.create": self.tables.create_table,
            "table.roll": self.tables.roll_table,
            "export.session_log": self.export_session_log,
        }

    @property
    def operations(self) -> list[str]:
        return sorted(self._operations)

    def call(self, operation: str, /, **args: Any) -> dict[str, Any]:
        """Invoke an operation by name.

        ``operation`` is positional-only; encounter.build and table.create
        take their own ``name`` keyword.

        Raises:
            NotFound: If no operation has that name
        """
        handler = self._operations.get(operation)
        if handler is None:
            raise NotFound(f"Unknown operation: {operation}")
        logger.debug(f"Calling {operation} with {sorted(args)}")
        return handler(**args)

    def dice_roll(
        self,
        notation: str,
        advantage: AdvantageMode | str | None = None,
        exploding: bool = False,
        seed: str | None = None,
    ) -> dict[str, Any]:
        """Roll dice notation; see DiceRoller.roll."""
        if advantage is None:
            advantage = self.config.dice.default_advantage
        return self.roller.roll(notation, advantage=advantage, exploding=exploding, seed=seed).to_dict()

    def combat_get(self, combat_id: int) -> dict[str, Any]:
        return self.combat.get_combat(combat_id).to_dict()

    def export_session_log(self, campaign_id: int) -> dict[str, Any]:
        return {"events": export_session_log(self.store, campaign_id)}
