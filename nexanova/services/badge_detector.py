from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Optional
from loguru import logger

from ..models.habit import Habit
from ..repositories.progress_repository import ProgressRepository
from .points_ledger import PointsLedger, MILESTONE_BADGE_POINTS
from .results import AwardResult, GrantedBadge

# Streak lengths that earn a badge; matched exactly, a skipped value is not back-granted
HABIT_STREAK_MILESTONES = (3, 7, 21, 30, 60, 90)

# Savings goal targets; every threshold the target meets is granted in one sweep
SAVINGS_MILESTONES = (
    (10000, "First 10K Saved 🎯"),
    (50000, "50K Milestone Achieved 💵"),
    (100000, "100K Savings Champion 🏆"),
    (500000, "Half Million Saver ⭐"),
)


@dataclass
class MilestoneOutcome:
    badges: List[GrantedBadge] = field(default_factory=list)
    award: Optional[AwardResult] = None


def habit_badge_title(streak: int, habit_title: str) -> str:
    return f"{streak} Days {habit_title} ✅"


def savings_goal_badge_title(goal_title: str) -> str:
    return f"Savings Goal Achieved: {goal_title} 💰"


class BadgeDetector:
    def __init__(self, repo: ProgressRepository, ledger: PointsLedger):
        self.repo = repo
        self.ledger = ledger

    async def check_habit_milestone(self, user_id: int, habit: Habit, new_streak: int) -> MilestoneOutcome:
        outcome = MilestoneOutcome()
        if new_streak not in HABIT_STREAK_MILESTONES:
            return outcome

        title = habit.title or "Habit"
        badge = await self._grant(
            user_id,
            "habit",
            habit_badge_title(new_streak, title),
            f"Completed {new_streak} days of {title}",
        )
        if badge is None:
            return outcome

        outcome.badges.append(badge)
        outcome.award = await self.ledger.award(user_id, MILESTONE_BADGE_POINTS, f"Milestone badge: {new_streak} days")
        return outcome

    async def check_savings_milestones(self, user_id: int, target_amount: float, goal_title: str) -> List[GrantedBadge]:
        granted: List[GrantedBadge] = []

        badge = await self._grant(
            user_id,
            "financial",
            savings_goal_badge_title(goal_title),
            f"Successfully saved {target_amount:,.0f}",
        )
        if badge:
            granted.append(badge)

        for amount, title in SAVINGS_MILESTONES:
            if target_amount < amount:
                break
            badge = await self._grant(user_id, "financial", title, f"Reached {amount:,} savings milestone")
            if badge:
                granted.append(badge)
        return granted

    async def _grant(self, user_id: int, category: str, title: str, description: str) -> Optional[GrantedBadge]:
        if await self.repo.grant_exists(user_id, category, title):
            logger.debug("User {} already holds '{}', skipping", user_id, title)
            return None

        grant = await self.repo.insert_reward_grant(user_id, category, title, description)
        if grant is None:
            logger.info("Reward '{}' for user {} was granted concurrently, skipping", title, user_id)
            return None

        logger.info("Granted {} badge '{}' to user {}", category, title, user_id)
        return GrantedBadge(id=grant.id, category=grant.category, title=grant.title, description=grant.description)
