from datetime import date, datetime, timezone

import pytest

from recall.application.snapshot import (
    CardRecord,
    StreakHistoryRecord,
    card_to_record,
    parse_export,
    record_to_card,
    record_to_streak,
)
from recall.domain.errors import ValidationError
from recall.domain.models import Card, SourceType

CREATED = "2026-03-01T10:00:00+00:00"


def card_doc(**overrides):
    doc = {
        "id": "card_1",
        "source_type": "concept",
        "source_id": "c-1",
        "pack_ids": ["pack_a"],
        "created_at": CREATED,
        "ease_factor": 2.36,
        "interval": 6,
        "repetitions": 2,
        "next_review_date": "2026-03-07T10:00:00+00:00",
        "last_reviewed_at": "2026-03-01T10:00:00+00:00",
    }
    doc.update(overrides)
    return doc


def test_card_record_round_trip():
    card = Card(
        id="card_1",
        source_type=SourceType.MILESTONE,
        source_id="m-1",
        created_at=datetime(2026, 3, 1, tzinfo=timezone.utc),
        pack_ids={"pack_b", "pack_a"},
        interval=6,
        repetitions=2,
    )
    record = card_to_record(card)
    assert record.pack_ids == ["pack_a", "pack_b"]
    assert record_to_card(record) == card


def test_naive_timestamps_are_taken_as_utc():
    record = CardRecord.model_validate(card_doc(created_at="2026-03-01T10:00:00"))
    assert record.created_at.tzinfo is not None
    assert record.created_at.utcoffset().total_seconds() == 0


def test_parse_export_skips_invalid_items():
    document = {
        "version": 1,
        "exported_at": CREATED,
        "cards": [
            card_doc(),
            card_doc(id="card_2", ease_factor=1.0),
            card_doc(id="card_3", source_type="lesson"),
            "not a card",
        ],
        "packs": [
            {"id": "pack_a", "name": "Physics", "color": "#3B82F6", "created_at": CREATED},
            {"id": "pack_b", "name": "", "color": "#3B82F6", "created_at": CREATED},
        ],
        "review_history": [{"date": "2026-03-01", "good_count": 2}],
        "review_events": [{"id": "rev_1"}],
    }

    export = parse_export(document)

    assert [c.id for c in export.cards] == ["card_1"]
    assert [p.id for p in export.packs] == ["pack_a"]
    assert export.review_history[0].date == date(2026, 3, 1)
    assert export.review_events == []
    assert export.streak_history.current_streak == 0


@pytest.mark.parametrize(
    "document",
    [
        [],
        "export",
        {"version": 99, "exported_at": CREATED},
        {"version": 1},
        {"version": 1, "exported_at": "yesterday"},
    ],
)
def test_parse_export_rejects_unusable_documents(document):
    with pytest.raises(ValidationError):
        parse_export(document)


def test_invalid_streak_history_is_ignored():
    export = parse_export(
        {"exported_at": CREATED, "streak_history": {"current_streak": -4}}
    )
    assert export.streak_history == StreakHistoryRecord()


def test_streak_record_fixes_longest_and_duplicate_milestones():
    record = StreakHistoryRecord.model_validate(
        {
            "current_streak": 9,
            "longest_streak": 3,
            "last_study_date": "2026-03-01",
            "achievements": [
                {"milestone": 7, "achieved_at": CREATED},
                {"milestone": 7, "achieved_at": "2026-04-01T10:00:00+00:00"},
            ],
        }
    )
    history = record_to_streak(record)

    assert history.longest_streak == 9
    assert [a.milestone for a in history.achievements] == [7]
