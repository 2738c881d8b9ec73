"""Human-readable one-line summaries for the event log."""

import json
from collections import Counter
from typing import Any, Iterable, Mapping


def make_summary(action: str, detail: str, extra: str | None = None) -> str:
    """Format "action: detail - extra"."""
    base = f"{action}: {detail}"
    return f"{base} - {extra}" if extra else base


def summarize_roster(roster: Iterable[Mapping[str, Any]]) -> str:
    """Describe a roster as "3 combatants (2 party, 1 monsters)"."""
    roster = list(roster)
    if not roster:
        return "empty roster"

    sides = Counter(member["side"] for member in roster)
    grouped = ", ".join(f"{qty} {side}" for side, qty in sides.items())
    return f"{len(roster)} combatants ({grouped})"


def summarize_table_roll(table_name: str, roll: int, result: Any) -> str:
    rendered = result if isinstance(result, str) else json.dumps(result)
    return f"Rolled {table_name}: {roll} -> {rendered}"
