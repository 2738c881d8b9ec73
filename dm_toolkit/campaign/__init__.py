"""Campaign module: campaigns, encounters, random tables and the event log."""

from .campaigns import CampaignManager
from .encounters import EncounterBuilder, RosterMember
from .events import (
    CampaignEvent,
    CompositeEventSink,
    EventSink,
    LoggingEventSink,
    MemoryEventSink,
    StoreEventSink,
    export_session_log,
    publish,
)
from .tables import RandomTables, TableEntry

__all__ = [
    "CampaignManager",
    "EncounterBuilder",
    "RosterMember",
    "CampaignEvent",
    "CompositeEventSink",
    "EventSink",
    "LoggingEventSink",
    "MemoryEventSink",
    "StoreEventSink",
    "export_session_log",
    "publish",
    "RandomTables",
    "TableEntry",
]
