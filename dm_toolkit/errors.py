"""Error taxonomy for the dungeon master toolkit.

Every error a caller can recover from carries a stable ``kind`` code plus a
message naming the offending input. Storage failures are not wrapped: they
propagate as the underlying SQLAlchemy exception.
"""

from typing import Any


class DungeonMasterError(Exception):
    """Base class for all recoverable toolkit errors."""

    kind: str = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        """Render the error as a response payload."""
        return {"error": self.kind, "message": self.message}


class MalformedNotation(DungeonMasterError, ValueError):
    """Dice notation is empty, has no terms, or a term breaks the grammar."""

    kind = "malformed_notation"

    def __init__(self, message: str, token: str | None = None):
        super().__init__(message)
        self.token = token


class InvalidModifier(MalformedNotation):
    """A flat modifier token is not a signed integer."""

    kind = "invalid_modifier"


class InvalidAdvantageMode(DungeonMasterError, ValueError):
    """Advantage mode is not one of none, advantage or disadvantage (or an alias)."""

    kind = "invalid_advantage_mode"


class InvalidPayload(DungeonMasterError, ValueError):
    """A roster, stat block, table entry or campaign field is missing or malformed."""

    kind = "invalid_payload"


class InvalidAction(DungeonMasterError, ValueError):
    """Unknown combat action, or a required payload is missing."""

    kind = "invalid_action"


class EmptyRoster(DungeonMasterError):
    """A combat or encounter would have no combatants."""

    kind = "empty_roster"


class NotFound(DungeonMasterError, LookupError):
    """A referenced campaign, encounter, combat, combatant or table is absent."""

    kind = "not_found"


class WrongSession(DungeonMasterError):
    """A combatant was addressed through a combat it does not belong to."""

    kind = "wrong_session"


class VersionConflict(DungeonMasterError):
    """Optimistic concurrency check failed; refetch the combat and retry."""

    kind = "version_conflict"

    def __init__(self, message: str, expected: int | None = None, actual: int | None = None):
        super().__init__(message)
        self.expected = expected
        self.actual = actual

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["expected_version"] = self.expected
        data["actual_version"] = self.actual
        return data


class EventNotRecorded(DungeonMasterError):
    """An event sink failed after the change it describes had committed.

    The change is not rolled back; callers should refetch state rather than
    repeat the operation.
    """

    kind = "event_not_recorded"

    def __init__(self, message: str, event_type: str | None = None):
        super().__init__(message)
        self.event_type = event_type
