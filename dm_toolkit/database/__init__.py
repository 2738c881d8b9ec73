"""Database module for SQLAlchemy models and the campaign store."""

from .models import (
    Base,
    Campaign,
    Combat,
    CombatantInCombat,
    Encounter,
    EncounterCombatant,
    EventLog,
    RandomTable,
    RandomTableEntry,
)
from .session import CampaignStore, TransactionOutcome, TransactionStatus

__all__ = [
    "Base",
    "Campaign",
    "Combat",
    "CombatantInCombat",
    "Encounter",
    "EncounterCombatant",
    "EventLog",
    "RandomTable",
    "RandomTableEntry",
    "CampaignStore",
    "TransactionOutcome",
    "TransactionStatus",
]
