"""In-memory snapshot repository for tests and throwaway sessions."""

import copy
from typing import Any

from recall.domain.ports import RecordChange, SnapshotRepository

from ._document import apply_changes, empty_document


class InMemoryRepository(SnapshotRepository):
    def __init__(self, document: dict[str, Any] | None = None):
        self.document = copy.deepcopy(document) if document is not None else None
        self.apply_calls = 0

    async def load(self) -> dict[str, Any] | None:
        return copy.deepcopy(self.document)

    async def apply(self, changes: list[RecordChange]) -> None:
        self.apply_calls += 1
        self.document = apply_changes(self.document or empty_document(), changes)
