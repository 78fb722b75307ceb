import pytest
from datetime import timedelta
from sqlmodel import select, func

from nexanova.models.reward import RewardGrant
from nexanova.repositories.progress_repository import ProgressRepository
from nexanova.services.badge_detector import BadgeDetector, habit_badge_title
from nexanova.services.points_ledger import PointsLedger

from conftest import TODAY


@pytest.fixture
def detector(db_session):
    repo = ProgressRepository(db_session)
    return BadgeDetector(repo, PointsLedger(repo))


async def _grant_count(session, user_id):
    result = await session.execute(select(func.count(RewardGrant.id)).where(RewardGrant.user_id == user_id))
    return result.scalar_one()


@pytest.mark.asyncio
async def test_habit_milestone_fires_on_exact_match(detector, habit, user):
    outcome = await detector.check_habit_milestone(user.id, habit, 3)

    assert [b.title for b in outcome.badges] == ["3 Days Morning run ✅"]
    assert outcome.badges[0].category == "habit"
    assert outcome.badges[0].description == "Completed 3 days of Morning run"
    assert outcome.award.delta == 50
    assert outcome.award.total == 50


@pytest.mark.asyncio
@pytest.mark.parametrize("streak", [1, 2, 4, 8, 29, 31, 100])
async def test_habit_milestone_ignores_non_milestones(detector, habit, user, db_session, streak):
    outcome = await detector.check_habit_milestone(user.id, habit, streak)

    assert outcome.badges == []
    assert outcome.award is None
    assert await _grant_count(db_session, user.id) == 0


@pytest.mark.asyncio
async def test_habit_milestone_is_granted_once(detector, habit, user, db_session):
    await detector.check_habit_milestone(user.id, habit, 7)
    again = await detector.check_habit_milestone(user.id, habit, 7)

    assert again.badges == []
    assert again.award is None
    assert await _grant_count(db_session, user.id) == 1
    totals = await detector.repo.get_owner_totals(user.id)
    assert totals.total == 50


@pytest.mark.asyncio
async def test_seven_day_run_grants_one_seven_day_badge(rewards, habit, user):
    start = TODAY - timedelta(days=6)
    results = [
        await rewards.record_habit_completion(habit.id, user.id, day=start + timedelta(days=i))
        for i in range(7)
    ]

    titles = [b.title for r in results for b in r.badges_granted]
    assert titles == [habit_badge_title(3, "Morning run"), habit_badge_title(7, "Morning run")]
    assert results[6].badges_granted[0].title == "7 Days Morning run ✅"
    # 6 x 10 base, 15 on day seven, 50 per badge
    assert results[6].points == 60 + 15 + 100
    assert results[6].level == 2
    assert results[6].points_awarded == 15 + 50


@pytest.mark.asyncio
async def test_skipped_milestone_is_not_back_granted(rewards, habit, user, db_session):
    habit.streak = 6
    habit.longest_streak = 6
    habit.last_completed = TODAY - timedelta(days=3)
    await db_session.flush()

    # Gap resets to 1, so 7 is never reached
    result = await rewards.record_habit_completion(habit.id, user.id, day=TODAY - timedelta(days=1))
    assert result.streak == 1
    assert result.badges_granted == []

    result = await rewards.record_habit_completion(habit.id, user.id, day=TODAY)
    assert result.streak == 2
    assert await _grant_count(db_session, user.id) == 0


@pytest.mark.asyncio
async def test_savings_sweep_grants_every_threshold_met(detector, user):
    badges = await detector.check_savings_milestones(user.id, 120000, "Emergency fund")

    assert [b.title for b in badges] == [
        "Savings Goal Achieved: Emergency fund 💰",
        "First 10K Saved 🎯",
        "50K Milestone Achieved 💵",
        "100K Savings Champion 🏆",
    ]
    assert all(b.category == "financial" for b in badges)


@pytest.mark.asyncio
async def test_savings_sweep_large_target_grants_all_four_milestones(detector, user):
    badges = await detector.check_savings_milestones(user.id, 600000, "House")
    assert len(badges) == 5
    assert badges[-1].title == "Half Million Saver ⭐"


@pytest.mark.asyncio
async def test_savings_small_target_only_goal_badge(detector, user):
    badges = await detector.check_savings_milestones(user.id, 5000, "Bike")
    assert [b.title for b in badges] == ["Savings Goal Achieved: Bike 💰"]


@pytest.mark.asyncio
async def test_savings_milestones_not_regranted_for_second_goal(detector, user):
    await detector.check_savings_milestones(user.id, 60000, "Car")
    badges = await detector.check_savings_milestones(user.id, 150000, "Travel")

    assert [b.title for b in badges] == [
        "Savings Goal Achieved: Travel 💰",
        "100K Savings Champion 🏆",
    ]


@pytest.mark.asyncio
async def test_unique_constraint_stops_racing_duplicate_grant(db_session, user):
    repo = ProgressRepository(db_session)

    first = await repo.insert_reward_grant(user.id, "habit", "3 Days Read ✅", "Completed 3 days of Read")
    second = await repo.insert_reward_grant(user.id, "habit", "3 Days Read ✅", "Completed 3 days of Read")

    assert first is not None
    assert second is None
    assert await _grant_count(db_session, user.id) == 1
