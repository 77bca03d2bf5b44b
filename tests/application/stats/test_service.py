from datetime import timedelta

import pytest


@pytest.fixture
def stats(engine):
    return engine.stats


def test_empty_stats(stats):
    result = stats.get_stats()

    assert result.total_cards == 0
    assert result.due_now == 0
    assert result.current_streak == 0
    assert result.retention_rate_7d == 0.0
    assert result.average_ease_factor == 2.5
    assert result.achievements == []
    assert result.last_study_date is None


def test_counts_and_performance(engine, clock):
    new = engine.add_card("concept", "new")
    learning = engine.add_card("concept", "learning")
    failed = engine.add_card("milestone", "failed")
    engine.record_review(learning.id, 4)
    engine.record_review(failed.id, 0)

    result = engine.get_stats()

    assert result.total_cards == 3
    assert result.new_cards == 1
    assert result.learning_cards == 2
    assert result.mastered_cards == 0
    assert result.due_now == 1
    assert result.total_reviews == 2
    assert result.reviews_today == 2
    assert result.retention_rate_7d == pytest.approx(0.5)
    assert result.current_streak == 1
    assert result.studied_today is True
    assert result.most_challenging_ids[0] == failed.id
    assert new.id not in result.most_challenging_ids
    assert result.due_today == 1
    assert result.due_tomorrow == 2
    assert result.due_this_week == 3


def test_retention_window_excludes_older_days(engine, clock):
    card = engine.add_card("concept", "c-1")
    engine.record_review(card.id, 0)
    clock.advance(days=10)
    engine.record_review(card.id, 5)

    assert engine.stats.retention_rate(7) == pytest.approx(1.0)
    assert engine.stats.retention_rate(30) == pytest.approx(0.5)


def test_mastered_count_and_well_known(engine):
    a = engine.add_card("concept", "a")
    b = engine.add_card("concept", "b")
    a.interval, a.repetitions, a.last_reviewed_at = 30, 4, engine.clock.now()
    b.interval, b.repetitions, b.last_reviewed_at = 6, 2, engine.clock.now()

    assert engine.stats.mastered_count() == 1
    assert [c.id for c in engine.stats.well_known()] == [a.id, b.id]


def test_overdue(engine, clock):
    card = engine.add_card("concept", "c-1")
    engine.record_review(card.id, 4)
    assert engine.stats.overdue() == []

    clock.advance(days=2)
    assert [c.id for c in engine.stats.overdue()] == [card.id]


def test_activity_window(engine, clock):
    card = engine.add_card("concept", "c-1")
    engine.record_review(card.id, 4)
    engine.add_study_time(12.0)

    activity = engine.stats.activity(7)

    assert len(activity) == 7
    assert activity[-1].date == clock.today()
    assert activity[-1].good_count == 1
    assert activity[-1].minutes_studied == pytest.approx(12.0)
    assert engine.get_stats().total_minutes_studied == pytest.approx(12.0)


def test_streak_breaks_in_stats_after_missed_day(engine, clock):
    card = engine.add_card("concept", "c-1")
    engine.record_review(card.id, 4)
    clock.advance(days=3)

    result = engine.get_stats()
    assert result.current_streak == 0
    assert result.longest_streak == 1


def test_data_summary(engine, clock):
    first = engine.add_card("concept", "a")
    clock.advance(hours=1)
    engine.add_card("concept", "b")
    engine.record_review(first.id, 4)
    engine.create_pack("Physics")

    summary = engine.stats.data_summary()

    assert summary.total_cards == 2
    assert summary.total_packs == 3
    assert summary.total_reviews == 1
    assert summary.best_streak == 1
    assert summary.oldest_card_date == first.created_at
    assert summary.oldest_card_date < clock.now() - timedelta(minutes=30)
