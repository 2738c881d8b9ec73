"""Tests for the combat session state machine."""

import tempfile
import threading
from pathlib import Path

import pytest

from dm_toolkit.campaign import CampaignManager, EncounterBuilder, MemoryEventSink
from dm_toolkit.config import CombatConfig
from dm_toolkit.database import CampaignStore
from dm_toolkit.errors import (
    EmptyRoster,
    EventNotRecorded,
    InvalidAction,
    NotFound,
    VersionConflict,
    WrongSession,
)
from dm_toolkit.game.combat import CombatManager, advance_if_current, next_position


@pytest.fixture
def store():
    """Create a temporary campaign store for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        store = CampaignStore(Path(tmpdir) / "test.db")
        yield store
        store.close()


@pytest.fixture
def events():
    return MemoryEventSink()


@pytest.fixture
def combat(store, events):
    return CombatManager(store, events)


@pytest.fixture
def campaign_id(store, events):
    return CampaignManager(store, events).create_campaign("The Sunless Citadel")["id"]


PARTY = [
    {"name": "Aria", "side": "party", "stats": {"initiative": 20, "max_hp": 24}},
    {"name": "Brute", "side": "monsters", "stats": {"initiative": 10, "hp": {"max": 30, "current": 18}}},
    {"name": "Cleric", "side": "party", "stats": {"initiative": 15, "maxHp": 16}},
]


class TestTurnPosition:
    """Test the pure turn pointer arithmetic."""

    def test_advance_within_round(self):
        assert next_position(0, 1, 3) == (1, 1)

    def test_wrap_increments_round(self):
        assert next_position(2, 1, 3) == (0, 2)

    def test_single_combatant(self):
        assert next_position(0, 4, 1) == (0, 5)


class TestStartCombat:
    """Test starting combats."""

    def test_initiative_order(self, combat, campaign_id):
        """Higher initiative acts first."""
        started = combat.start_combat(
            campaign_id,
            roster=[
                {"name": "B", "side": "monsters", "stats": {"initiative": 10}},
                {"name": "A", "side": "party", "stats": {"initiative": 20}},
            ],
        )
        assert [c["name"] for c in started["initiative_order"]] == ["A", "B"]
        assert started["round"] == 1
        assert started["version"] == 1

        state = combat.get_combat(started["combat_id"])
        assert state.turn_index == 0
        assert state.active.name == "A"
        assert state.status == "active"

    def test_ties_keep_roster_order(self, combat, campaign_id):
        started = combat.start_combat(
            campaign_id,
            roster=[
                {"name": "First", "side": "party", "stats": {"dex_mod": 2}},
                {"name": "Second", "side": "party", "stats": {"dex_mod": 2}},
            ],
        )
        assert [c["name"] for c in started["initiative_order"]] == ["First", "Second"]

    def test_fallback_initiative(self, store, events, campaign_id):
        """Members without stats are ordered by roster position."""
        manager = CombatManager(store, events, CombatConfig(fallback_initiative_step=5))
        started = manager.start_combat(
            campaign_id,
            roster=[{"name": "X", "side": "party"}, {"name": "Y", "side": "party"}],
        )
        order = started["initiative_order"]
        assert [(c["name"], c["initiative"]) for c in order] == [("X", 10), ("Y", 5)]

    def test_hit_points_resolved(self, combat, campaign_id):
        started = combat.start_combat(campaign_id, roster=PARTY)
        state = combat.get_combat(started["combat_id"])
        hp = {c.name: (c.current_hp, c.max_hp) for c in state.combatants}
        assert hp == {"Aria": (24, 24), "Brute": (18, 30), "Cleric": (16, 16)}
        assert all(c.temp_hp == 0 and c.conditions == () for c in state.combatants)

    def test_empty_roster(self, combat, campaign_id):
        with pytest.raises(EmptyRoster):
            combat.start_combat(campaign_id, roster=[])
        with pytest.raises(EmptyRoster):
            combat.start_combat(campaign_id)

    def test_missing_campaign(self, combat):
        with pytest.raises(NotFound):
            combat.start_combat(404, roster=PARTY)

    def test_from_encounter(self, store, events, combat, campaign_id):
        """A stored encounter supplies the roster."""
        encounter_id = EncounterBuilder(store, events).build_encounter(
            campaign_id, "Goblin ambush", PARTY
        )["encounter_id"]
        started = combat.start_combat(campaign_id, encounter_id=encounter_id)
        assert [c["name"] for c in started["initiative_order"]] == ["Aria", "Cleric", "Brute"]

    def test_missing_encounter(self, combat, campaign_id):
        with pytest.raises(NotFound):
            combat.start_combat(campaign_id, encounter_id=99)

    def test_encounter_from_other_campaign(self, store, events, combat, campaign_id):
        other = CampaignManager(store, events).create_campaign("Elsewhere")["id"]
        encounter_id = EncounterBuilder(store, events).build_encounter(
            other, "Elsewhere fight", PARTY
        )["encounter_id"]
        with pytest.raises(WrongSession):
            combat.start_combat(campaign_id, encounter_id=encounter_id)

    def test_roster_with_missing_encounter(self, combat, campaign_id):
        """A roster does not skip the encounter lookup."""
        with pytest.raises(NotFound):
            combat.start_combat(campaign_id, encounter_id=999, roster=[{"name": "A", "side": "p"}])

    def test_roster_with_foreign_encounter(self, store, events, combat, campaign_id):
        other = CampaignManager(store, events).create_campaign("Elsewhere")["id"]
        encounter_id = EncounterBuilder(store, events).build_encounter(
            other, "Elsewhere fight", PARTY
        )["encounter_id"]
        with pytest.raises(WrongSession):
            combat.start_combat(
                campaign_id, encounter_id=encounter_id, roster=[{"name": "A", "side": "p"}]
            )

    def test_roster_overrides_encounter(self, store, events, combat, campaign_id):
        encounter_id = EncounterBuilder(store, events).build_encounter(
            campaign_id, "Goblin ambush", PARTY
        )["encounter_id"]
        started = combat.start_combat(
            campaign_id, encounter_id=encounter_id, roster=[{"name": "Solo", "side": "party"}]
        )
        assert [c["name"] for c in started["initiative_order"]] == ["Solo"]

    def test_emits_event(self, combat, events, campaign_id):
        started = combat.start_combat(campaign_id, roster=PARTY)
        [event] = events.of_type("combat.start")
        assert event.campaign_id == campaign_id
        assert event.payload["combat_id"] == started["combat_id"]
        assert "3 combatants (2 party, 1 monsters)" in event.summary


class TestNextTurn:
    """Test turn advancement under optimistic concurrency."""

    def test_advance(self, combat, campaign_id):
        started = combat.start_combat(campaign_id, roster=PARTY)
        result = combat.next_turn(started["combat_id"], version=1)
        assert result["turn_index"] == 1
        assert result["round"] == 1
        assert result["version"] == 2
        assert result["active_combatant"]["name"] == "Cleric"

    def test_wrap_to_next_round(self, combat, campaign_id):
        """Advancing past the last combatant starts a new round."""
        combat_id = combat.start_combat(campaign_id, roster=PARTY)["combat_id"]
        version = 1
        for _ in range(2):
            version = combat.next_turn(combat_id, version)["version"]

        result = combat.next_turn(combat_id, version)
        assert result["turn_index"] == 0
        assert result["round"] == 2
        assert result["version"] == 4
        assert result["active_combatant"]["name"] == "Aria"

    def test_stale_version(self, combat, campaign_id):
        """A stale version is rejected and leaves the combat unchanged."""
        combat_id = combat.start_combat(campaign_id, roster=PARTY)["combat_id"]
        combat.next_turn(combat_id, version=1)

        with pytest.raises(VersionConflict) as exc_info:
            combat.next_turn(combat_id, version=1)
        assert exc_info.value.expected == 1
        assert exc_info.value.actual == 2
        assert exc_info.value.to_dict()["error"] == "version_conflict"

        state = combat.get_combat(combat_id)
        assert (state.turn_index, state.round, state.version) == (1, 1, 2)

    def test_missing_combat(self, combat):
        with pytest.raises(NotFound):
            combat.next_turn(12, version=1)

    def test_concurrent_advances(self, combat, campaign_id):
        """Two callers with the same version: exactly one advance commits."""
        combat_id = combat.start_combat(campaign_id, roster=PARTY)["combat_id"]
        results = []
        errors = []
        barrier = threading.Barrier(2)

        def advance():
            barrier.wait()
            try:
                results.append(combat.next_turn(combat_id, version=1))
            except VersionConflict as e:
                errors.append(e)

        threads = [threading.Thread(target=advance) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(results) == 1
        assert len(errors) == 1
        state = combat.get_combat(combat_id)
        assert (state.turn_index, state.version) == (1, 2)

    def test_compare_and_swap(self, store, combat, campaign_id):
        """The conditional update matches only the current version."""
        combat_id = combat.start_combat(campaign_id, roster=PARTY)["combat_id"]
        with store.transaction() as session:
            assert advance_if_current(session, combat_id, 1, 1, 1) is True
        with store.transaction() as session:
            assert advance_if_current(session, combat_id, 1, 2, 1) is False
        assert combat.get_combat(combat_id).version == 2

    def test_failed_event_keeps_advance(self, store, combat, campaign_id):
        """A sink failure after commit is reported, and the advance stands."""
        combat_id = combat.start_combat(campaign_id, roster=PARTY)["combat_id"]

        class FailingSink:
            def emit(self, event):
                raise RuntimeError("log unavailable")

        failing = CombatManager(store, FailingSink())
        with pytest.raises(EventNotRecorded):
            failing.next_turn(combat_id, version=1)

        state = combat.get_combat(combat_id)
        assert (state.turn_index, state.version) == (1, 2)
        assert combat.next_turn(combat_id, version=2)["version"] == 3

    def test_emits_event(self, combat, events, campaign_id):
        combat_id = combat.start_combat(campaign_id, roster=PARTY)["combat_id"]
        combat.next_turn(combat_id, version=1)
        [event] = events.of_type("combat.next_turn")
        assert event.payload["version"] == 2
        assert event.summary == "Combat next turn: Cleric - round 1, turn 2"


class TestApplyAction:
    """Test combatant actions within a combat."""

    def start(self, combat, campaign_id):
        started = combat.start_combat(campaign_id, roster=PARTY)
        ids = {c["name"]: c["id"] for c in started["initiative_order"]}
        return started["combat_id"], ids

    def test_damage_after_temp_hp(self, combat, campaign_id):
        combat_id, ids = self.start(combat, campaign_id)
        combat.apply_action(combat_id, ids["Aria"], "temp_hp", 4)
        result = combat.apply_action(combat_id, ids["Aria"], "damage", 6)
        assert result["temp_hp"] == 0
        assert result["current_hp"] == 22
        assert result["target_combatant_id"] == ids["Aria"]

    def test_heal_capped(self, combat, campaign_id):
        combat_id, ids = self.start(combat, campaign_id)
        result = combat.apply_action(combat_id, ids["Brute"], "heal", 50)
        assert result["current_hp"] == 30

    def test_conditions_persist(self, combat, campaign_id):
        combat_id, ids = self.start(combat, campaign_id)
        combat.apply_action(combat_id, ids["Cleric"], "add_condition", condition="prone")
        combat.apply_action(combat_id, ids["Cleric"], "add_condition", condition="prone")
        combat.apply_action(combat_id, ids["Cleric"], "add_condition", condition="poisoned")

        state = combat.get_combat(combat_id)
        cleric = next(c for c in state.combatants if c.name == "Cleric")
        assert cleric.conditions == ("prone", "poisoned")

    def test_custom_note(self, combat, campaign_id):
        combat_id, ids = self.start(combat, campaign_id)
        result = combat.apply_action(combat_id, ids["Brute"], "custom_note", "Flees at 5 HP")
        assert result["notes"] == "Flees at 5 HP"

    def test_version_unchanged(self, combat, campaign_id):
        """Actions do not bump the combat version."""
        combat_id, ids = self.start(combat, campaign_id)
        combat.apply_action(combat_id, ids["Aria"], "damage", 3)
        assert combat.get_combat(combat_id).version == 1
        assert combat.next_turn(combat_id, version=1)["version"] == 2

    def test_wrong_combat(self, combat, campaign_id):
        combat_id, ids = self.start(combat, campaign_id)
        other_id, _ = self.start(combat, campaign_id)
        with pytest.raises(WrongSession):
            combat.apply_action(other_id, ids["Aria"], "damage", 3)

        state = combat.get_combat(combat_id)
        assert next(c for c in state.combatants if c.name == "Aria").current_hp == 24

    def test_missing_combatant(self, combat, campaign_id):
        combat_id, _ = self.start(combat, campaign_id)
        with pytest.raises(NotFound):
            combat.apply_action(combat_id, 999, "damage", 3)

    def test_invalid_action(self, combat, campaign_id):
        combat_id, ids = self.start(combat, campaign_id)
        with pytest.raises(InvalidAction):
            combat.apply_action(combat_id, ids["Aria"], "polymorph", 3)
        with pytest.raises(InvalidAction):
            combat.apply_action(combat_id, ids["Aria"], "heal")

    def test_emits_event(self, combat, events, campaign_id):
        combat_id, ids = self.start(combat, campaign_id)
        combat.apply_action(combat_id, ids["Brute"], "damage", 8)
        [event] = events.of_type("combat.damage")
        assert event.summary == "Combat damage: Brute - hp 10/30"
        assert event.payload["combatant_id"] == ids["Brute"]
