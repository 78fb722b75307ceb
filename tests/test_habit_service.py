import pytest
from datetime import timedelta

from nexanova.errors import InvalidInput, NotFound
from nexanova.services.habit_service import HabitService
from nexanova.services.savings_service import SavingsService

from conftest import TODAY


@pytest.mark.asyncio
async def test_habit_streak(db_session, rewards, user):
    habit = await HabitService.create_habit(
        db_session,
        user_id=user.id,
        title="  Drink water ",
        kind="build",
    )
    assert habit.title == "Drink water"
    assert habit.streak == 0

    await rewards.record_habit_completion(habit.id, user.id, day=TODAY - timedelta(days=1))
    await rewards.record_habit_completion(habit.id, user.id, day=TODAY)
    await db_session.commit()

    await db_session.refresh(habit)
    assert habit.streak == 2

    stats = await HabitService.get_habit_stats(db_session, habit.id, user.id)
    assert stats["streak"] == 2
    assert stats["total_completions"] == 2
    assert stats["target_progress"] == pytest.approx(2 / 30)
    assert stats["last_completed"] == TODAY.isoformat()

    completions = await HabitService.list_completions(db_session, habit.id, user.id)
    assert [c.completion_date for c in completions] == [TODAY, TODAY - timedelta(days=1)]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "title,kind",
    [("", "build"), ("   ", "break"), ("Smoking", "quit"), ("Smoking", None)],
)
async def test_create_habit_validation(db_session, user, title, kind):
    with pytest.raises(InvalidInput):
        await HabitService.create_habit(db_session, user.id, title, kind=kind)


@pytest.mark.asyncio
async def test_archived_habits_are_hidden_but_kept(db_session, user, other_user):
    keep = await HabitService.create_habit(db_session, user.id, "Read", kind="build")
    drop = await HabitService.create_habit(db_session, user.id, "Doomscrolling", kind="break")

    with pytest.raises(NotFound):
        await HabitService.archive_habit(db_session, drop.id, other_user.id)

    await HabitService.archive_habit(db_session, drop.id, user.id)

    active = await HabitService.list_habits(db_session, user.id)
    everything = await HabitService.list_habits(db_session, user.id, active_only=False)
    assert [h.id for h in active] == [keep.id]
    assert {h.id for h in everything} == {keep.id, drop.id}


@pytest.mark.asyncio
async def test_list_completions_checks_owner(db_session, habit, other_user):
    with pytest.raises(NotFound):
        await HabitService.list_completions(db_session, habit.id, other_user.id)


@pytest.mark.asyncio
async def test_stats_check_owner_and_existence(db_session, habit, user, other_user):
    with pytest.raises(NotFound):
        await HabitService.get_habit_stats(db_session, habit.id, other_user.id)
    with pytest.raises(NotFound):
        await HabitService.get_habit_stats(db_session, 404, user.id)


@pytest.mark.asyncio
@pytest.mark.parametrize("target", [0, -100, "1000", float("nan"), float("inf"), float("-inf")])
async def test_savings_goal_requires_positive_finite_target(db_session, user, target):
    with pytest.raises(InvalidInput):
        await SavingsService.create_goal(db_session, user.id, "Vacation", target)


@pytest.mark.asyncio
async def test_list_goals(db_session, user):
    await SavingsService.create_goal(db_session, user.id, "Vacation", 5000)
    goals = await SavingsService.list_goals(db_session, user.id)
    assert [g.title for g in goals] == ["Vacation"]
    assert goals[0].is_completed is False
