from datetime import timedelta

import pytest

from recall.application.card_store import CardStore
from recall.application.review_ledger import ReviewLedger
from recall.application.streak_tracker import StreakTracker
from recall.domain.constants import ALL_CARDS_PACK, RECENTLY_ADDED_PACK
from recall.domain.errors import (
    DuplicateCardError,
    DuplicatePackError,
    NotFoundError,
    ValidationError,
)
from recall.domain.models import SourceType, StreakSnapshot
from recall.domain.ports import RecordKind


@pytest.fixture
def changes():
    return []


@pytest.fixture
def store(clock, changes):
    s = CardStore(
        ReviewLedger(on_change=changes.append),
        StreakTracker(on_change=changes.append),
        clock,
        undo_window=timedelta(seconds=5),
        on_change=changes.append,
    )
    s.ensure_default_packs()
    return s


# --- Cards ---


def test_new_card_defaults_and_default_packs(store):
    card = store.add_card("concept", "c-1")

    assert card.id.startswith("card_")
    assert card.source_type == SourceType.CONCEPT
    assert (card.ease_factor, card.interval, card.repetitions) == (2.5, 0, 0)
    assert card.next_review_date is None
    assert card.last_reviewed_at is None
    default_ids = {p.id for p in store.packs if p.is_default}
    assert card.pack_ids == default_ids
    assert {p.name for p in store.packs} == {ALL_CARDS_PACK, RECENTLY_ADDED_PACK}


def test_duplicate_source_is_rejected(store):
    store.add_card("milestone", "m-1")
    with pytest.raises(DuplicateCardError):
        store.add_card(SourceType.MILESTONE, "m-1")
    # Same id under the other kind is a different card
    store.add_card("concept", "m-1")
    assert len(store.cards) == 2


def test_add_card_validates_input(store):
    with pytest.raises(ValidationError):
        store.add_card("lesson", "x")
    with pytest.raises(ValidationError):
        store.add_card("concept", "   ")
    with pytest.raises(NotFoundError):
        store.add_card("concept", "c-1", ["pack_missing"])
    assert store.cards == []


def test_is_card_saved(store):
    assert not store.is_card_saved("concept", "c-1")
    store.add_card("concept", "c-1")
    assert store.is_card_saved("concept", "c-1")
    assert not store.is_card_saved("milestone", "c-1")


def test_remove_card(store, changes):
    card = store.add_card("concept", "c-1")
    store.remove_card(card.id)

    assert store.cards == []
    assert changes[-1].kind == RecordKind.CARD
    assert changes[-1].is_deletion
    with pytest.raises(NotFoundError):
        store.remove_card(card.id)


def test_get_card_unknown(store):
    with pytest.raises(NotFoundError) as exc:
        store.get_card("card_nope")
    assert exc.value.kind == "card"
    assert exc.value.key == "card_nope"


# --- Due cards ---


def test_due_cards_include_new_and_past_due(store, clock):
    a = store.add_card("concept", "a")
    b = store.add_card("concept", "b")
    store.record_review(a.id, 4)

    assert [c.id for c in store.get_due_cards()] == [b.id]

    clock.advance(days=1)
    assert [c.id for c in store.get_due_cards()] == [a.id, b.id]


def test_due_cards_by_pack(store):
    pack = store.create_pack("Physics")
    a = store.add_card("concept", "a", [pack.id])
    store.add_card("concept", "b")

    assert [c.id for c in store.get_due_cards(pack.id)] == [a.id]
    with pytest.raises(NotFoundError):
        store.get_due_cards("pack_missing")


# --- Reviews ---


def test_record_review_commits_everything(store, clock):
    card = store.add_card("concept", "c-1")
    event = store.record_review(card.id, 4)

    assert event.card_id == card.id
    assert event.quality == 4
    assert event.timestamp == clock.now()
    assert event.day_bucket == clock.today()
    assert event.prior_state.repetitions == 0
    assert card.repetitions == 1
    assert card.interval == 1
    assert store.ledger.record_for(clock.today()).good_count == 1
    assert store.streaks.history.current_streak == 1


def test_invalid_review_leaves_no_trace(store, clock):
    card = store.add_card("concept", "c-1")
    before = card.scheduling_state()

    with pytest.raises(ValidationError):
        store.record_review(card.id, 9)
    with pytest.raises(NotFoundError):
        store.record_review("card_missing", 4)

    assert card.scheduling_state() == before
    assert store.ledger.total_reviews() == 0
    assert store.streaks.history.current_streak == 0


def test_invariants_hold_over_many_reviews(store, clock):
    card = store.add_card("concept", "c-1")
    for q in (5, 0, 3, 2, 4, 1, 5, 5, 0, 3):
        store.record_review(card.id, q)
        clock.advance(days=card.interval)
        assert card.ease_factor >= 1.3
        assert card.interval >= 1
        if q < 3:
            assert card.repetitions == 0
            assert card.interval == 1


# --- Undo ---


def test_undo_without_review_is_noop(store):
    card = store.add_card("concept", "c-1")
    before = card.scheduling_state()

    assert store.undo_last_review(card.id) is False
    assert store.undo_last_review("card_unknown") is False
    assert card.scheduling_state() == before


def test_undo_fully_reverses_review(store, clock):
    card = store.add_card("concept", "c-1")
    before_state = card.scheduling_state()
    before_streak = store.streaks.snapshot()

    store.record_review(card.id, 5)
    clock.advance(seconds=3)
    assert store.can_undo(card.id)
    assert store.undo_last_review(card.id) is True

    assert card.scheduling_state() == before_state
    assert store.ledger.total_reviews() == 0
    assert store.ledger.events == []
    assert store.streaks.snapshot() == before_streak
    # Only one level: a second undo declines
    assert store.undo_last_review(card.id) is False


def test_undoing_every_review_of_first_day_resets_streak(store, clock):
    a = store.add_card("concept", "a")
    b = store.add_card("concept", "b")

    store.record_review(a.id, 4)
    store.record_review(b.id, 4)
    assert store.undo_last_review(a.id) is True
    assert store.undo_last_review(b.id) is True

    assert store.ledger.total_reviews() == 0
    assert store.streaks.snapshot() == StreakSnapshot(
        current_streak=0, longest_streak=0, last_study_date=None
    )


def test_undoing_every_review_of_second_day_restores_previous_day(store, clock):
    a = store.add_card("concept", "a")
    b = store.add_card("concept", "b")
    c = store.add_card("concept", "c")
    first_day = clock.today()
    store.record_review(c.id, 4)

    clock.advance(days=1)
    store.record_review(a.id, 4)
    store.record_review(b.id, 4)
    assert store.streaks.history.current_streak == 2

    store.undo_last_review(a.id)
    assert store.streaks.history.current_streak == 2
    store.undo_last_review(b.id)

    h = store.streaks.history
    assert h.current_streak == 1
    assert h.last_study_date == first_day
    assert h.longest_streak == 1


def test_undo_after_window_declines(store, clock):
    card = store.add_card("concept", "c-1")
    store.record_review(card.id, 4)
    after = card.scheduling_state()

    clock.advance(seconds=6)
    assert not store.can_undo(card.id)
    assert store.undo_last_review(card.id) is False
    assert card.scheduling_state() == after
    assert store.ledger.total_reviews() == 1


def test_undo_only_reverts_latest_review(store, clock):
    card = store.add_card("concept", "c-1")
    store.record_review(card.id, 4)
    clock.advance(days=1)
    store.record_review(card.id, 4)
    first_prior = store.ledger.events[0].prior_state

    assert store.undo_last_review(card.id) is True
    assert card.repetitions == 1
    assert card.interval == 1
    assert store.undo_last_review(card.id) is False
    assert first_prior.repetitions == 0


def test_undo_keeps_streak_when_day_still_has_reviews(store, clock):
    a = store.add_card("concept", "a")
    b = store.add_card("concept", "b")
    store.record_review(a.id, 4)
    store.record_review(b.id, 4)

    assert store.undo_last_review(b.id) is True
    assert store.streaks.history.current_streak == 1
    assert store.streaks.history.last_study_date == clock.today()


def test_removed_card_cannot_be_undone(store):
    card = store.add_card("concept", "c-1")
    store.record_review(card.id, 4)
    store.remove_card(card.id)
    assert store.undo_last_review(card.id) is False


# --- Packs ---


def test_create_pack_validation(store):
    pack = store.create_pack("  Physics  ", description="Mechanics")
    assert pack.name == "Physics"
    assert pack.id.startswith("pack_")
    assert pack.color.startswith("#")

    with pytest.raises(DuplicatePackError):
        store.create_pack("physics")
    with pytest.raises(ValidationError):
        store.create_pack("   ")
    with pytest.raises(ValidationError):
        store.create_pack("x" * 51)
    with pytest.raises(ValidationError):
        store.create_pack("Chem", description="d" * 201)
    with pytest.raises(ValidationError):
        store.create_pack("Chem", color="blue")


def test_rename_pack(store):
    pack = store.create_pack("Physics")
    store.create_pack("Chemistry")

    assert store.rename_pack(pack.id, "Mechanics").name == "Mechanics"
    # Renaming to its own name with different case is allowed
    assert store.rename_pack(pack.id, "MECHANICS").name == "MECHANICS"
    with pytest.raises(DuplicatePackError):
        store.rename_pack(pack.id, "chemistry")


def test_default_packs_are_protected(store):
    default = store.get_default_pack()
    assert default is not None and default.name == ALL_CARDS_PACK
    card = store.add_card("concept", "c-1")

    with pytest.raises(ValidationError):
        store.rename_pack(default.id, "Everything")
    with pytest.raises(ValidationError):
        store.delete_pack(default.id)
    with pytest.raises(ValidationError):
        store.remove_card_from_pack(card.id, default.id)


def test_delete_pack_keeps_cards(store):
    pack = store.create_pack("Physics")
    card = store.add_card("concept", "c-1", [pack.id])

    store.delete_pack(pack.id)

    assert pack.id not in card.pack_ids
    assert store.get_card(card.id) is card
    with pytest.raises(NotFoundError):
        store.get_pack(pack.id)


def test_membership_changes(store):
    pack = store.create_pack("Physics")
    card = store.add_card("concept", "c-1")

    store.move_card_to_pack(card.id, pack.id)
    assert [c.id for c in store.get_cards_by_pack(pack.id)] == [card.id]

    store.remove_card_from_pack(card.id, pack.id)
    assert store.get_cards_by_pack(pack.id) == []


def test_ensure_default_packs_is_idempotent(store):
    assert store.ensure_default_packs() == []
    assert len([p for p in store.packs if p.is_default]) == 2


def test_hydrate_drops_dangling_memberships(store, clock):
    card = store.add_card("concept", "c-1")
    card.pack_ids.add("pack_gone")
    packs = store.packs

    store.hydrate([card], packs)

    assert "pack_gone" not in store.get_card(card.id).pack_ids


def test_clear_emits_deletions(store, changes):
    card = store.add_card("concept", "c-1")
    changes.clear()

    store.clear(recreate_defaults=False)

    deleted = {(c.kind, c.key) for c in changes if c.is_deletion}
    assert (RecordKind.CARD, card.id) in deleted
    assert store.cards == []
    assert store.packs == []
