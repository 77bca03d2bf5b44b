"""
Ports (interfaces) for persistence and time.

These define the contract that infrastructure adapters must implement.
Application services depend on these abstractions, not concrete implementations.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime, tzinfo
from enum import Enum
from typing import Any


class RecordKind(str, Enum):
    CARD = "card"
    PACK = "pack"
    REVIEW_EVENT = "review_event"
    DAILY_RECORD = "daily_record"
    STREAK = "streak"


@dataclass(frozen=True)
class RecordChange:
    """
    One record the engine wants durably stored.

    Attributes:
        kind: Which collection the record belongs to.
        key: Record id (card id, pack id, event id, ISO date, or "streak").
        payload: Serialized record; None means the record was deleted.
    """

    kind: RecordKind
    key: str
    payload: dict[str, Any] | None

    @property
    def is_deletion(self) -> bool:
        return self.payload is None


class SnapshotRepository(ABC):
    """
    Port for the backing store that persists engine records.

    Implementations:
        - JsonFileRepository: One JSON document on local disk.
        - InMemoryRepository: Process-local dict, for tests and ephemeral sessions.
    """

    @abstractmethod
    async def load(self) -> dict[str, Any] | None:
        """
        Return the previously persisted export document, or None if nothing is stored.
        """
        pass

    @abstractmethod
    async def apply(self, changes: list[RecordChange]) -> None:
        """
        Durably apply a batch of upserts/deletions.

        Args:
            changes: Coalesced changes in emission order.
        """
        pass


class Clock(ABC):
    """Source of wall-clock time and the user's local calendar."""

    @property
    @abstractmethod
    def tz(self) -> tzinfo:
        pass

    @abstractmethod
    def now(self) -> datetime:
        """Current time as a timezone-aware datetime."""
        pass

    def local_date(self, moment: datetime) -> date:
        return moment.astimezone(self.tz).date()

    def today(self) -> date:
        return self.local_date(self.now())


ChangeListener = Callable[[RecordChange], None]
