"""
Shared document layout for snapshot repositories.

The stored document has the same shape as a data export, so loading it
hydrates the engine directly.
"""

from datetime import datetime, timezone
from typing import Any

from recall.domain.constants import EXPORT_VERSION
from recall.domain.ports import RecordChange, RecordKind

# kind -> (collection name, id field)
COLLECTIONS: dict[RecordKind, tuple[str, str]] = {
    RecordKind.CARD: ("cards", "id"),
    RecordKind.PACK: ("packs", "id"),
    RecordKind.REVIEW_EVENT: ("review_events", "id"),
    RecordKind.DAILY_RECORD: ("review_history", "date"),
}
STREAK_FIELD = "streak_history"


def empty_document() -> dict[str, Any]:
    return {
        "version": EXPORT_VERSION,
        "exported_at": datetime.now(timezone.utc).isoformat(),
        "cards": [],
        "packs": [],
        "review_history": [],
        "review_events": [],
        STREAK_FIELD: None,
    }


def apply_changes(document: dict[str, Any], changes: list[RecordChange]) -> dict[str, Any]:
    """Return a new document with ``changes`` applied in order."""
    indexed: dict[str, dict[str, dict[str, Any]]] = {}
    for name, id_field in COLLECTIONS.values():
        items = document.get(name) or []
        indexed[name] = {
            str(item[id_field]): item
            for item in items
            if isinstance(item, dict) and id_field in item
        }
    streak = document.get(STREAK_FIELD)

    for change in changes:
        if change.kind == RecordKind.STREAK:
            streak = change.payload
            continue
        name, _ = COLLECTIONS[change.kind]
        if change.is_deletion:
            indexed[name].pop(change.key, None)
        else:
            indexed[name][change.key] = change.payload

    result = {
        "version": EXPORT_VERSION,
        "exported_at": datetime.now(timezone.utc).isoformat(),
        STREAK_FIELD: streak,
    }
    for name, items in indexed.items():
        result[name] = list(items.values())
    result["review_history"].sort(key=lambda r: r["date"])
    return result
