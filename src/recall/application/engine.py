"""
Study engine — explicitly constructed session object.

Wires the card store, review ledger, streak tracker and stats service
together, hydrates them from the persistence collaborator and writes
changes back through the write-through queue.

Lifecycle:
    engine = StudyEngine(repository, clock, config)
    await engine.open()       # hydrate
    ...                       # synchronous operations
    await engine.close()      # final flush

or ``async with StudyEngine(...) as engine:``.
"""

import asyncio
import contextlib
import logging
from datetime import timedelta
from typing import Any

from recall.domain.models import Card, DataSummary, Pack, ReviewEvent, SourceType
from recall.domain.ports import Clock, RecordChange, RecordKind, SnapshotRepository

from .card_store import CardStore
from .config import EngineConfig
from .review_ledger import ReviewLedger
from .snapshot import (
    DataExport,
    card_to_record,
    daily_to_record,
    event_to_record,
    pack_to_record,
    parse_export,
    record_to_card,
    record_to_daily,
    record_to_event,
    record_to_pack,
    record_to_streak,
    streak_to_record,
    to_payload,
)
from .stats import MasteryThreshold, MetricsCalculator, StatsService, StudyStats
from .streak_tracker import STREAK_KEY, StreakTracker
from .write_through import WriteThroughQueue

logger = logging.getLogger(__name__)


class StudyEngine:
    def __init__(
        self,
        repository: SnapshotRepository,
        clock: Clock,
        config: EngineConfig | None = None,
    ):
        self.config = config or EngineConfig()
        self.repository = repository
        self.clock = clock
        self.writer = WriteThroughQueue(repository)

        self.ledger = ReviewLedger(
            history_days=self.config.history_days, on_change=self.writer.push
        )
        self.streaks = StreakTracker(on_change=self.writer.push)
        self.store = CardStore(
            self.ledger,
            self.streaks,
            clock,
            undo_window=timedelta(seconds=self.config.undo_window_seconds),
            on_change=self.writer.push,
        )
        self.stats = StatsService(
            self.store,
            self.ledger,
            self.streaks,
            calculator=MetricsCalculator(
                MasteryThreshold(
                    min_interval=self.config.mastery_min_interval,
                    min_repetitions=self.config.mastery_min_repetitions,
                )
            ),
            insight_limit=self.config.insight_limit,
        )
        self._flush_task: asyncio.Task | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self) -> None:
        """Hydrate from the repository (or start empty with the default packs)."""
        document = await self.repository.load()
        if document is None:
            logger.info("No persisted data found, starting fresh")
            self.store.ensure_default_packs()
        else:
            export = parse_export(document)
            self.hydrate(export)
            logger.info(
                f"Hydrated {len(export.cards)} cards, {len(export.packs)} packs, "
                f"{len(export.review_history)} history days"
            )
        self.ledger.prune(self.clock.today())
        await self.flush()

    def hydrate(self, export: DataExport) -> None:
        """Replace the in-memory state with ``export`` without emitting it."""
        self.store.hydrate(
            [record_to_card(r) for r in export.cards],
            [record_to_pack(r) for r in export.packs],
        )
        self.ledger.hydrate(
            [record_to_daily(r) for r in export.review_history],
            [record_to_event(r) for r in export.review_events],
        )
        self.streaks.hydrate(record_to_streak(export.streak_history))

    def start_background_flush(self) -> None:
        if self._flush_task is None or self._flush_task.done():
            self._flush_task = asyncio.create_task(
                self.writer.run(self.config.flush_interval_seconds)
            )

    async def flush(self) -> bool:
        return await self.writer.flush()

    async def close(self) -> None:
        if self._flush_task is not None:
            self._flush_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._flush_task
            self._flush_task = None
        if not await self.flush():
            logger.warning(f"{len(self.writer.pending)} change(s) could not be persisted")

    async def __aenter__(self) -> "StudyEngine":
        await self.open()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Inbound operations
    # ------------------------------------------------------------------

    def add_card(
        self, source_type: SourceType | str, source_id: str, pack_ids: list[str] | None = None
    ) -> Card:
        return self.store.add_card(source_type, source_id, pack_ids)

    def remove_card(self, card_id: str) -> None:
        self.store.remove_card(card_id)

    def record_review(self, card_id: str, quality: int) -> ReviewEvent:
        return self.store.record_review(card_id, quality)

    def undo_last_review(self, card_id: str) -> bool:
        return self.store.undo_last_review(card_id)

    def get_due_cards(self, pack_id: str | None = None) -> list[Card]:
        return self.store.get_due_cards(pack_id)

    def is_card_saved(self, source_type: SourceType | str, source_id: str) -> bool:
        return self.store.is_card_saved(source_type, source_id)

    def create_pack(
        self, name: str, description: str | None = None, color: str | None = None
    ) -> Pack:
        return self.store.create_pack(name, description, color)

    def rename_pack(self, pack_id: str, name: str) -> Pack:
        return self.store.rename_pack(pack_id, name)

    def delete_pack(self, pack_id: str) -> None:
        self.store.delete_pack(pack_id)

    def move_card_to_pack(self, card_id: str, pack_id: str) -> Card:
        return self.store.move_card_to_pack(card_id, pack_id)

    def remove_card_from_pack(self, card_id: str, pack_id: str) -> Card:
        return self.store.remove_card_from_pack(card_id, pack_id)

    def add_study_time(self, minutes: float) -> None:
        self.ledger.add_study_time(self.clock.today(), minutes)

    def get_stats(self) -> StudyStats:
        return self.stats.get_stats()

    # ------------------------------------------------------------------
    # Export / import / clear
    # ------------------------------------------------------------------

    def export_data(self) -> DataExport:
        return DataExport(
            exported_at=self.clock.now(),
            cards=[card_to_record(c) for c in self.store.cards],
            packs=[pack_to_record(p) for p in self.store.packs],
            review_history=[daily_to_record(r) for r in self.ledger.records],
            review_events=[event_to_record(e) for e in self.ledger.events],
            streak_history=streak_to_record(self.streaks.history),
        )

    def import_data(self, document: DataExport | dict[str, Any]) -> DataSummary:
        """
        Replace all data with an exported snapshot.

        Returns:
            Summary of the imported data.

        Raises:
            ValidationError: The document is not a usable export.
        """
        export = parse_export(document)
        self._reset(recreate_defaults=False)
        self.hydrate(export)
        self._emit_everything()
        summary = self.stats.data_summary()
        logger.info(f"Imported {summary.total_cards} cards and {summary.total_packs} packs")
        return summary

    def clear_all(self) -> DataSummary:
        """
        Delete every card, pack, review and the streak history.

        Returns:
            The counts as they were before deletion.
        """
        summary = self.stats.data_summary()
        self._reset(recreate_defaults=True)
        logger.info(
            f"Cleared {summary.total_cards} cards, {summary.total_packs} packs, "
            f"{summary.total_reviews} reviews"
        )
        return summary

    def _emit_everything(self) -> None:
        push = self.writer.push
        for card in self.store.cards:
            push(RecordChange(RecordKind.CARD, card.id, to_payload(card_to_record(card))))
        for pack in self.store.packs:
            push(RecordChange(RecordKind.PACK, pack.id, to_payload(pack_to_record(pack))))
        for record in self.ledger.records:
            push(
                RecordChange(
                    RecordKind.DAILY_RECORD,
                    record.date.isoformat(),
                    to_payload(daily_to_record(record)),
                )
            )
        for event in self.ledger.events:
            push(RecordChange(RecordKind.REVIEW_EVENT, event.id, to_payload(event_to_record(event))))
        push(
            RecordChange(RecordKind.STREAK, STREAK_KEY, to_payload(streak_to_record(self.streaks.history)))
        )

    def _reset(self, recreate_defaults: bool) -> None:
        self.store.clear(recreate_defaults=recreate_defaults)
        self.ledger.clear()
        self.streaks.clear()
