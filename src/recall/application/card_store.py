"""
Card store — the authoritative in-memory set of cards and packs.

Answers due-card queries, applies scheduler transitions (recording each one
in the review ledger and streak tracker) and owns the single-level,
time-boxed undo buffer.

Mutations are expected to be serialized by the caller (one event loop or one
UI thread); the store does no locking of its own.
"""

import logging
import re
from dataclasses import dataclass
from datetime import timedelta

from recall.domain.constants import (
    ALL_CARDS_PACK,
    DEFAULT_UNDO_WINDOW_SECONDS,
    PACK_COLORS,
    PACK_DESCRIPTION_MAX,
    PACK_NAME_MAX,
    RECENTLY_ADDED_PACK,
)
from recall.domain.errors import (
    DuplicateCardError,
    DuplicatePackError,
    NotFoundError,
    UndoExpired,
    ValidationError,
)
from recall.domain.models import Card, Pack, ReviewEvent, SourceType
from recall.domain.ports import ChangeListener, Clock, RecordChange, RecordKind

from .id_service import generate_card_id, generate_pack_id, generate_review_id
from .review_ledger import ReviewLedger
from .scheduler import schedule, validate_quality
from .snapshot import card_to_record, pack_to_record, to_payload
from .streak_tracker import StreakTracker

logger = logging.getLogger(__name__)

COLOR_PATTERN = re.compile(r"^#[0-9A-Fa-f]{6}$")

DEFAULT_PACKS = (
    (ALL_CARDS_PACK, PACK_COLORS[0]),
    (RECENTLY_ADDED_PACK, PACK_COLORS[1]),
)


@dataclass(frozen=True)
class _UndoEntry:
    event: ReviewEvent


class CardStore:
    def __init__(
        self,
        ledger: ReviewLedger,
        streaks: StreakTracker,
        clock: Clock,
        undo_window: timedelta = timedelta(seconds=DEFAULT_UNDO_WINDOW_SECONDS),
        on_change: ChangeListener | None = None,
    ):
        self.ledger = ledger
        self.streaks = streaks
        self.clock = clock
        self.undo_window = undo_window
        self._on_change = on_change

        # dicts keep insertion order, which gives due queries a stable order
        self._cards: dict[str, Card] = {}
        self._packs: dict[str, Pack] = {}
        self._undo: dict[str, _UndoEntry] = {}

    # ------------------------------------------------------------------
    # Card queries
    # ------------------------------------------------------------------

    @property
    def cards(self) -> list[Card]:
        return list(self._cards.values())

    def get_card(self, card_id: str) -> Card:
        card = self._cards.get(card_id)
        if card is None:
            raise NotFoundError("card", card_id)
        return card

    def get_card_by_source(self, source_type: SourceType | str, source_id: str) -> Card | None:
        source_type = _parse_source_type(source_type)
        for card in self._cards.values():
            if card.source_type == source_type and card.source_id == source_id:
                return card
        return None

    def is_card_saved(self, source_type: SourceType | str, source_id: str) -> bool:
        return self.get_card_by_source(source_type, source_id) is not None

    def get_cards_by_pack(self, pack_id: str) -> list[Card]:
        self.get_pack(pack_id)
        return [c for c in self._cards.values() if pack_id in c.pack_ids]

    def get_due_cards(self, pack_id: str | None = None) -> list[Card]:
        """
        Cards whose next review date is unset or has passed.

        Args:
            pack_id: Restrict to members of this pack.

        Returns:
            Due cards in store order (stable for a given snapshot).
        """
        now = self.clock.now()
        cards = self.get_cards_by_pack(pack_id) if pack_id is not None else self._cards.values()
        return [c for c in cards if c.is_due(now)]

    # ------------------------------------------------------------------
    # Card mutations
    # ------------------------------------------------------------------

    def add_card(
        self,
        source_type: SourceType | str,
        source_id: str,
        pack_ids: list[str] | set[str] | None = None,
    ) -> Card:
        source_type = _parse_source_type(source_type)
        source_id = (source_id or "").strip()
        if not source_id:
            raise ValidationError("source_id must not be empty")
        if self.get_card_by_source(source_type, source_id) is not None:
            raise DuplicateCardError(f"Card already saved for {source_type.value}:{source_id}")

        memberships = set(pack_ids or ())
        for pack_id in memberships:
            self.get_pack(pack_id)
        memberships.update(p.id for p in self._packs.values() if p.is_default)

        card = Card(
            id=generate_card_id(),
            source_type=source_type,
            source_id=source_id,
            created_at=self.clock.now(),
            pack_ids=memberships,
        )
        self._cards[card.id] = card
        self._emit_card(card)
        logger.info(f"Added card {card.id} for {source_type.value}:{source_id}")
        return card

    def remove_card(self, card_id: str) -> None:
        self.get_card(card_id)
        del self._cards[card_id]
        self._undo.pop(card_id, None)
        self._emit(RecordKind.CARD, card_id, None)
        logger.info(f"Removed card {card_id}")

    def record_review(self, card_id: str, quality: int) -> ReviewEvent:
        """
        Apply a rating to a card.

        Commits the new scheduling state, appends a ledger entry and advances
        the streak. Validation and lookup happen first, so a failing call
        leaves no trace.

        Raises:
            ValidationError: quality is not an integer in [0, 5].
            NotFoundError: no card with this id.
        """
        quality = validate_quality(quality)
        card = self.get_card(card_id)

        now = self.clock.now()
        prior = card.scheduling_state()
        new_state = schedule(prior, quality, now)
        event = ReviewEvent(
            id=generate_review_id(),
            card_id=card_id,
            quality=quality,
            timestamp=now,
            prior_state=prior,
            day_bucket=self.clock.local_date(now),
        )
        card.apply_state(new_state)
        self.ledger.append(event)
        self.streaks.record_study(event.day_bucket, now)
        self._undo[card_id] = _UndoEntry(event=event)
        self._drop_expired_undo()
        self._emit_card(card)

        logger.debug(
            f"Reviewed {card_id} q={quality}: interval={card.interval} "
            f"reps={card.repetitions} ease={card.ease_factor:.2f}"
        )
        return event

    def undo_last_review(self, card_id: str) -> bool:
        """
        Revert the card's most recent review if it is still inside the undo window.

        Declining is not an error: returns False without touching any state
        when there is nothing (left) to undo.
        """
        try:
            entry = self._take_undo_entry(card_id)
        except UndoExpired as e:
            logger.debug(f"Undo declined for {card_id}: {e}")
            return False

        card = self._cards[card_id]
        event = entry.event
        card.apply_state(event.prior_state)
        self.ledger.remove(event)
        self.streaks.reconsider(event.day_bucket, self.ledger.study_days())
        self._emit_card(card)
        logger.info(f"Undid review {event.id} of {card_id}")
        return True

    def can_undo(self, card_id: str) -> bool:
        entry = self._undo.get(card_id)
        return entry is not None and self._within_window(entry)

    # ------------------------------------------------------------------
    # Packs
    # ------------------------------------------------------------------

    @property
    def packs(self) -> list[Pack]:
        return list(self._packs.values())

    def get_pack(self, pack_id: str) -> Pack:
        pack = self._packs.get(pack_id)
        if pack is None:
            raise NotFoundError("pack", pack_id)
        return pack

    def get_default_pack(self) -> Pack | None:
        return next(
            (p for p in self._packs.values() if p.is_default and p.name == ALL_CARDS_PACK),
            None,
        )

    def create_pack(
        self,
        name: str,
        description: str | None = None,
        color: str | None = None,
    ) -> Pack:
        name = self._validate_pack_name(name)
        if description is not None and len(description) > PACK_DESCRIPTION_MAX:
            raise ValidationError(f"Pack description exceeds {PACK_DESCRIPTION_MAX} characters")
        if color is None:
            color = PACK_COLORS[len(self._packs) % len(PACK_COLORS)]
        elif not COLOR_PATTERN.match(color):
            raise ValidationError(f"Invalid pack color: {color!r}")

        pack = Pack(
            id=generate_pack_id(),
            name=name,
            description=description,
            color=color,
            created_at=self.clock.now(),
        )
        self._packs[pack.id] = pack
        self._emit_pack(pack)
        logger.info(f"Created pack {pack.id} '{name}'")
        return pack

    def rename_pack(self, pack_id: str, name: str) -> Pack:
        pack = self.get_pack(pack_id)
        if pack.is_default:
            raise ValidationError(f"Default pack '{pack.name}' cannot be renamed")
        pack.name = self._validate_pack_name(name, exclude_id=pack_id)
        self._emit_pack(pack)
        return pack

    def delete_pack(self, pack_id: str) -> None:
        """Delete a pack. Member cards stay in the store; only the membership goes."""
        pack = self.get_pack(pack_id)
        if pack.is_default:
            raise ValidationError(f"Default pack '{pack.name}' cannot be deleted")

        for card in self._cards.values():
            if pack_id in card.pack_ids:
                card.pack_ids.discard(pack_id)
                self._emit_card(card)
        del self._packs[pack_id]
        self._emit(RecordKind.PACK, pack_id, None)
        logger.info(f"Deleted pack {pack_id} '{pack.name}'")

    def move_card_to_pack(self, card_id: str, pack_id: str) -> Card:
        card = self.get_card(card_id)
        self.get_pack(pack_id)
        if pack_id not in card.pack_ids:
            card.pack_ids.add(pack_id)
            self._emit_card(card)
        return card

    def remove_card_from_pack(self, card_id: str, pack_id: str) -> Card:
        card = self.get_card(card_id)
        pack = self.get_pack(pack_id)
        if pack.is_default:
            raise ValidationError(f"Cards cannot be removed from default pack '{pack.name}'")
        if pack_id in card.pack_ids:
            card.pack_ids.discard(pack_id)
            self._emit_card(card)
        return card

    def ensure_default_packs(self) -> list[Pack]:
        """Create the system packs that are missing. Returns the ones created."""
        created: list[Pack] = []
        for name, color in DEFAULT_PACKS:
            if any(p.is_default and p.name == name for p in self._packs.values()):
                continue
            pack = Pack(
                id=generate_pack_id(),
                name=name,
                color=color,
                created_at=self.clock.now(),
                is_default=True,
            )
            self._packs[pack.id] = pack
            self._emit_pack(pack)
            created.append(pack)
        return created

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def hydrate(self, cards: list[Card], packs: list[Pack]) -> None:
        self._packs = {p.id: p for p in packs}
        self._cards = {}
        self._undo = {}
        seen: dict[tuple[SourceType, str], str] = {}
        for card in cards:
            source = (card.source_type, card.source_id)
            if source in seen:
                logger.warning(
                    f"Skipping card {card.id}: {source[0].value}:{source[1]} "
                    f"is already saved as {seen[source]}"
                )
                continue
            seen[source] = card.id
            dangling = {pid for pid in card.pack_ids if pid not in self._packs}
            if dangling:
                logger.warning(f"Card {card.id} references unknown packs {sorted(dangling)}")
                card.pack_ids -= dangling
            self._cards[card.id] = card
        self.ensure_default_packs()

    def clear(self, recreate_defaults: bool = True) -> None:
        for card_id in self._cards:
            self._emit(RecordKind.CARD, card_id, None)
        for pack_id in self._packs:
            self._emit(RecordKind.PACK, pack_id, None)
        self._cards = {}
        self._packs = {}
        self._undo = {}
        if recreate_defaults:
            self.ensure_default_packs()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _within_window(self, entry: _UndoEntry) -> bool:
        return self.clock.now() - entry.event.timestamp <= self.undo_window

    def _take_undo_entry(self, card_id: str) -> _UndoEntry:
        entry = self._undo.get(card_id)
        if entry is None or card_id not in self._cards:
            raise UndoExpired("nothing to undo")
        if not self._within_window(entry):
            del self._undo[card_id]
            raise UndoExpired("undo window has closed")
        latest = self.ledger.events_for_card(card_id)
        if not latest or latest[-1].id != entry.event.id:
            del self._undo[card_id]
            raise UndoExpired("a later review exists")
        del self._undo[card_id]
        return entry

    def _drop_expired_undo(self) -> None:
        expired = [cid for cid, entry in self._undo.items() if not self._within_window(entry)]
        for cid in expired:
            del self._undo[cid]

    def _validate_pack_name(self, name: str, exclude_id: str | None = None) -> str:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Pack name must not be empty")
        if len(name) > PACK_NAME_MAX:
            raise ValidationError(f"Pack name exceeds {PACK_NAME_MAX} characters")
        folded = name.casefold()
        for pack in self._packs.values():
            if pack.id != exclude_id and pack.name.casefold() == folded:
                raise DuplicatePackError(f"A pack named '{pack.name}' already exists")
        return name

    def _emit_card(self, card: Card) -> None:
        self._emit(RecordKind.CARD, card.id, to_payload(card_to_record(card)))

    def _emit_pack(self, pack: Pack) -> None:
        self._emit(RecordKind.PACK, pack.id, to_payload(pack_to_record(pack)))

    def _emit(self, kind: RecordKind, key: str, payload: dict | None) -> None:
        if self._on_change is not None:
            self._on_change(RecordChange(kind=kind, key=key, payload=payload))


def _parse_source_type(value: SourceType | str) -> SourceType:
    try:
        return SourceType(value)
    except ValueError:
        raise ValidationError(f"Unknown source type: {value!r}") from None
