import pytest

from nexanova.config import settings
from nexanova.errors import InvalidInput, NotFound, PersistenceUnavailable
from nexanova.repositories.progress_repository import ProgressRepository
from nexanova.services.points_ledger import (
    LEVEL_THRESHOLDS,
    PointsLedger,
    finance_entry_points,
    habit_completion_points,
    journal_entry_points,
    level_of,
    next_level_threshold,
)


def test_level_of_thresholds():
    assert level_of(0) == 1
    assert level_of(99) == 1
    assert level_of(100) == 2
    assert level_of(299) == 2
    assert level_of(300) == 3
    assert level_of(2200) == 7
    assert level_of(5499) == 9
    assert level_of(5500) == 10
    assert level_of(1_000_000) == 10


def test_level_of_is_non_decreasing():
    levels = [level_of(total) for total in range(0, 7000, 7)]
    assert levels == sorted(levels)
    assert set(levels) == set(range(1, len(LEVEL_THRESHOLDS) + 1))


def test_next_level_threshold():
    assert next_level_threshold(0) == 100
    assert next_level_threshold(100) == 300
    assert next_level_threshold(4999) == 5500
    assert next_level_threshold(5500) is None


def test_habit_completion_points_stack_streak_bonuses():
    assert habit_completion_points(1) == 10
    assert habit_completion_points(6) == 10
    assert habit_completion_points(7) == 15
    assert habit_completion_points(21) == 25
    assert habit_completion_points(30) == 40
    assert habit_completion_points(365) == 40


def test_journal_and_finance_points():
    assert journal_entry_points("short note") == 5
    assert journal_entry_points(" ".join(["word"] * 150)) == 10
    assert journal_entry_points(" ".join(["word"] * 250)) == 15
    assert finance_entry_points("income") == 5
    assert finance_entry_points("expense") == 3
    with pytest.raises(InvalidInput):
        finance_entry_points("gift")


@pytest.mark.asyncio
async def test_award_appends_entry_and_updates_totals(db_session, user):
    repo = ProgressRepository(db_session)
    ledger = PointsLedger(repo)

    first = await ledger.award(user.id, 60, "Habit completion")
    second = await ledger.award(user.id, 50, "Milestone badge: 3 days")

    assert (first.total, first.level, first.leveled_up) == (60, 1, False)
    assert (second.total, second.level, second.leveled_up) == (110, 2, True)
    assert second.previous_level == 1

    totals = await repo.get_owner_totals(user.id)
    assert (totals.total, totals.level) == (110, 2)
    assert await repo.ledger_total(user.id) == totals.total
    entries = await repo.list_ledger(user.id)
    assert [e.delta for e in entries] == [50, 60]


@pytest.mark.asyncio
@pytest.mark.parametrize("delta", [0, -5, 2.5, True])
async def test_award_rejects_non_positive_or_non_integer(db_session, user, delta):
    ledger = PointsLedger(ProgressRepository(db_session))
    with pytest.raises(InvalidInput):
        await ledger.award(user.id, delta, "bad")


@pytest.mark.asyncio
async def test_award_unknown_user(db_session):
    ledger = PointsLedger(ProgressRepository(db_session))
    with pytest.raises(NotFound):
        await ledger.award(4242, 10, "Habit completion")


@pytest.mark.asyncio
async def test_award_retries_after_concurrent_write(db_session, user, monkeypatch):
    repo = ProgressRepository(db_session)
    ledger = PointsLedger(repo, max_retries=3)
    real_update = repo.update_owner_totals
    calls = []

    async def racing_update(user_id, total, level, expected_version):
        calls.append(expected_version)
        if len(calls) == 1:
            # Another request lands 500 points between our read and our write
            assert await real_update(user_id, 500, level_of(500), expected_version)
        return await real_update(user_id, total, level, expected_version)

    monkeypatch.setattr(repo, "update_owner_totals", racing_update)

    result = await ledger.award(user.id, 10, "Habit completion")

    assert calls == [0, 1]
    assert result.total == 510
    assert result.level == 3
    assert result.previous_level == 3


@pytest.mark.asyncio
async def test_award_gives_up_after_max_retries(db_session, user, monkeypatch):
    repo = ProgressRepository(db_session)
    ledger = PointsLedger(repo, max_retries=2)

    async def always_stale(*args, **kwargs):
        return False

    monkeypatch.setattr(repo, "update_owner_totals", always_stale)

    with pytest.raises(PersistenceUnavailable) as exc_info:
        await ledger.award(user.id, 10, "Habit completion")
    assert exc_info.value.retriable is True
    assert await repo.ledger_total(user.id) == 0


def test_explicit_max_retries_is_honored():
    repo = ProgressRepository(session=None)

    assert PointsLedger(repo, max_retries=1).max_retries == 1
    assert PointsLedger(repo).max_retries == settings.POINTS_MAX_RETRIES
    with pytest.raises(ValueError):
        PointsLedger(repo, max_retries=0)


@pytest.mark.asyncio
async def test_single_attempt_gives_up_after_one_conflict(db_session, user, monkeypatch):
    repo = ProgressRepository(db_session)
    ledger = PointsLedger(repo, max_retries=1)
    calls = []

    async def always_stale(*args, **kwargs):
        calls.append(args)
        return False

    monkeypatch.setattr(repo, "update_owner_totals", always_stale)

    with pytest.raises(PersistenceUnavailable):
        await ledger.award(user.id, 10, "Habit completion")
    assert len(calls) == 1
