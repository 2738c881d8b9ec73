"""Event sinks: where summaries of committed changes are sent."""

import logging
from dataclasses import dataclass
from typing import Any, Protocol

from pydantic import JsonValue
from sqlalchemy import select

from ..database.models import Campaign, EventLog
from ..database.session import CampaignStore
from ..errors import EventNotRecorded, NotFound
from ..payloads import ensure_json

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CampaignEvent:
    """A human-readable summary plus a structured payload."""

    campaign_id: int | None
    type: str
    summary: str
    payload: JsonValue = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "campaign_id": self.campaign_id,
            "type": self.type,
            "summary": self.summary,
            "payload": self.payload,
        }


class EventSink(Protocol):
    """Receives events after the change they describe has committed."""

    def emit(self, event: CampaignEvent) -> None:
        ...


class LoggingEventSink:
    """Writes event summaries to the log."""

    def __init__(self, level: int = logging.INFO):
        self.level = level

    def emit(self, event: CampaignEvent) -> None:
        logger.log(self.level, f"[{event.type}] {event.summary}")


class MemoryEventSink:
    """Keeps events in a list."""

    def __init__(self):
        self.events: list[CampaignEvent] = []

    def emit(self, event: CampaignEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: str) -> list[CampaignEvent]:
        return [e for e in self.events if e.type == event_type]


class StoreEventSink:
    """Persists events as EventLog rows, each in its own transaction."""

    def __init__(self, store: CampaignStore):
        self.store = store

    def emit(self, event: CampaignEvent) -> None:
        with self.store.transaction() as session:
            session.add(
                EventLog(
                    campaign_id=event.campaign_id,
                    type=event.type,
                    summary=event.summary,
                    payload=ensure_json(event.payload),
                )
            )


class CompositeEventSink:
    """Fans an event out to several sinks in order.

    Sinks run after the change an event describes has committed, so a
    failing sink cannot undo it; see ``publish``.
    """

    def __init__(self, *sinks: EventSink):
        self.sinks = list(sinks)

    def emit(self, event: CampaignEvent) -> None:
        for sink in self.sinks:
            sink.emit(event)


def publish(sink: EventSink, event: CampaignEvent) -> None:
    """Emit an event for an already committed change.

    Raises:
        EventNotRecorded: If the sink fails; the change itself stays committed
    """
    try:
        sink.emit(event)
    except Exception as e:
        logger.error(f"Event {event.type} was not recorded after its change committed: {e}")
        raise EventNotRecorded(
            f"{event.summary} (committed, but the {event.type} event was not recorded: {e})",
            event_type=event.type,
        ) from e


def export_session_log(store: CampaignStore, campaign_id: int) -> list[dict[str, Any]]:
    """Return a campaign's events in the order they were recorded.

    Raises:
        NotFound: If the campaign does not exist
    """
    with store.transaction() as session:
        if session.get(Campaign, campaign_id) is None:
            raise NotFound(f"Campaign {campaign_id} not found")

        rows = session.scalars(
            select(EventLog)
            .where(EventLog.campaign_id == campaign_id)
            .order_by(EventLog.created_at, EventLog.id)
        ).all()

        return [
            {
                "id": row.id,
                "type": row.type,
                "summary": row.summary,
                "created_at": row.created_at.isoformat() if row.created_at else None,
                "payload": row.payload,
            }
            for row in rows
        ]
