from __future__ import annotations
import math
from typing import Awaitable, Callable, List, Optional, TypeVar, Union
from datetime import date, datetime, timezone
from decimal import Decimal
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from loguru import logger

from ..config import settings
from ..errors import CompletionExists, InvalidInput, NotFound, ProgressError
from ..models.habit import Habit
from ..models.points import PointsLedgerEntry
from ..repositories.progress_repository import ProgressRepository
from ..utils.clock import Clock, SystemClock
from .badge_detector import BadgeDetector
from .points_ledger import (
    PointsLedger,
    SAVINGS_GOAL_POINTS,
    finance_entry_points,
    habit_completion_points,
    journal_entry_points,
    next_level_threshold,
)
from .results import (
    AwardResult,
    CompletionResult,
    GrantedBadge,
    HabitState,
    ProgressSummary,
    SavingsProgressResult,
)
from .streak_tracker import StreakTracker

T = TypeVar("T")
DayLike = Union[date, str, None]


class RewardsEngine:
    """
    Turns user actions into progress: streaks, points, levels and badges.

    One engine per session; the caller owns the transaction and commits.
    Streak and goal state are the primary result of each operation and
    propagate failures. Badges and points run in their own savepoint: if they
    fail they are rolled back, logged and named in `secondary_failures`.
    """

    def __init__(
        self,
        session: AsyncSession,
        clock: Optional[Clock] = None,
        repo: Optional[ProgressRepository] = None,
        max_retries: Optional[int] = None,
    ):
        self.repo = repo or ProgressRepository(session)
        self.clock = clock or SystemClock(settings.DEFAULT_TIMEZONE)
        self.streaks = StreakTracker(self.repo)
        self.ledger = PointsLedger(self.repo, max_retries=max_retries)
        self.badges = BadgeDetector(self.repo, self.ledger)

    # --- Habits ----------------------------------------------------------

    async def record_habit_completion(
        self,
        habit_id: int,
        user_id: int,
        day: DayLike = None,
        note: Optional[str] = None,
        trigger: Optional[str] = None,
        mood: Optional[int] = None,
    ) -> CompletionResult:
        day = self._resolve_day(day)
        if mood is not None and (isinstance(mood, bool) or not isinstance(mood, int) or not 1 <= mood <= 10):
            raise InvalidInput("mood must be an integer between 1 and 10")

        habit = await self._owned_habit(habit_id, user_id)
        if not note and trigger:
            note = f"Trigger: {trigger}. Mood: {mood or 'N/A'}/10"

        try:
            await self.repo.insert_completion(habit.id, day, note=note, trigger=trigger, mood=mood)
        except CompletionExists:
            logger.info("Habit {} already completed on {}", habit.id, day)
            if habit.last_completed is None or habit.last_completed < day:
                logger.warning("Habit {} progress lags its completions, rebuilding from history", habit.id)
                await self.streaks.rebuild_from_history(habit)
            result = self._completion_result(habit, day)
            result.already_completed = True
            result.points, result.level = await self._current_totals(user_id)
            return result

        new_streak = await self.streaks.on_completion_added(habit, day)
        logger.info("Habit {} completed on {} by user {}, streak {}", habit.id, day, user_id, new_streak)
        result = self._completion_result(habit, day)

        awards: List[AwardResult] = []
        outcome = await self._best_effort(
            "habit_milestone", user_id, result.secondary_failures,
            lambda: self.badges.check_habit_milestone(user_id, habit, new_streak),
        )
        if outcome is not None:
            result.badges_granted.extend(outcome.badges)
            if outcome.award:
                awards.append(outcome.award)

        points = habit_completion_points(new_streak)
        award = await self._best_effort(
            "habit_points", user_id, result.secondary_failures,
            lambda: self.ledger.award(user_id, points, "Habit completion"),
        )
        if award is not None:
            awards.append(award)

        await self._apply_awards(result, user_id, awards)
        return result

    async def remove_habit_completion(self, habit_id: int, user_id: int, day: DayLike = None) -> HabitState:
        """
        Undo one completed day. Earned points and badges are kept, and the
        streak is not recomputed; only last_completed moves back.
        """
        day = self._resolve_day(day)
        habit = await self._owned_habit(habit_id, user_id)

        if not await self.repo.delete_completion(habit.id, day):
            raise NotFound(f"Habit {habit_id} has no completion on {day}")

        await self.streaks.on_completion_removed(habit, day)
        return self._habit_state(habit)

    async def reconcile_habit(self, habit_id: int, user_id: int) -> HabitState:
        """Rebuild a habit's cached progress from its completion history."""
        habit = await self._owned_habit(habit_id, user_id)
        await self.streaks.rebuild_from_history(habit)
        logger.info("Reconciled habit {}: streak {}, total {}", habit.id, habit.streak, habit.total_completions)
        return self._habit_state(habit)

    # --- Savings ---------------------------------------------------------

    async def record_savings_progress(
        self,
        goal_id: int,
        user_id: int,
        new_current_amount: Union[int, float, Decimal],
        mark_completed: bool = False,
    ) -> SavingsProgressResult:
        if isinstance(new_current_amount, bool) or not isinstance(new_current_amount, (int, float, Decimal)):
            raise InvalidInput("current_amount must be a number")
        if not math.isfinite(new_current_amount):
            raise InvalidInput("current_amount must be a finite number")
        if new_current_amount < 0:
            raise InvalidInput("current_amount cannot be negative")

        goal = await self.repo.get_savings_goal(goal_id)
        if goal is None or goal.user_id != user_id:
            raise NotFound(f"Savings goal {goal_id} not found")

        was_completed = goal.is_completed
        goal.current_amount = float(new_current_amount)
        just_completed = not was_completed and (mark_completed or goal.current_amount >= goal.target_amount)
        if just_completed:
            goal.is_completed = True
            goal.completed_at = datetime.now(timezone.utc)
        await self.repo.save_savings_goal(goal)

        result = SavingsProgressResult(
            goal_id=goal.id,
            title=goal.title,
            target_amount=goal.target_amount,
            current_amount=goal.current_amount,
            is_completed=goal.is_completed,
            just_completed=just_completed,
        )
        if not just_completed:
            result.points, result.level = await self._current_totals(user_id)
            return result

        logger.info("Savings goal {} '{}' completed by user {}", goal.id, goal.title, user_id)
        badges = await self._best_effort(
            "savings_milestones", user_id, result.secondary_failures,
            lambda: self.badges.check_savings_milestones(user_id, result.target_amount, result.title),
        )
        if badges:
            result.badges_granted.extend(badges)

        award = await self._best_effort(
            "savings_points", user_id, result.secondary_failures,
            lambda: self.ledger.award(user_id, SAVINGS_GOAL_POINTS, f"Savings goal achieved: {result.title}"),
        )
        await self._apply_awards(result, user_id, [award] if award else [])
        return result

    # --- Other point sources ---------------------------------------------

    async def award_journal_entry(self, user_id: int, content: str) -> AwardResult:
        if not isinstance(content, str) or not content.strip():
            raise InvalidInput("Journal content is required")
        return await self.ledger.award(user_id, journal_entry_points(content), "Journal entry")

    async def award_finance_entry(self, user_id: int, entry_type: str) -> AwardResult:
        return await self.ledger.award(user_id, finance_entry_points(entry_type), "Finance tracking")

    # --- Reads -----------------------------------------------------------

    async def get_progress(self, user_id: int) -> ProgressSummary:
        totals = await self.repo.get_owner_totals(user_id)
        if totals is None:
            raise NotFound(f"User {user_id} not found")
        next_at = next_level_threshold(totals.total)
        return ProgressSummary(
            user_id=user_id,
            total_points=totals.total,
            level=totals.level,
            next_level_at=next_at,
            points_to_next_level=next_at - totals.total if next_at is not None else None,
        )

    async def list_rewards(self, user_id: int) -> List[GrantedBadge]:
        grants = await self.repo.list_rewards(user_id)
        return [GrantedBadge(id=g.id, category=g.category, title=g.title, description=g.description) for g in grants]

    async def list_ledger(self, user_id: int, limit: int = 50) -> List[PointsLedgerEntry]:
        return await self.repo.list_ledger(user_id, limit=limit)

    # --- Internals -------------------------------------------------------

    def _resolve_day(self, day: DayLike) -> date:
        today = self.clock.today()
        if day is None:
            return today
        if isinstance(day, str):
            try:
                day = date.fromisoformat(day)
            except ValueError:
                raise InvalidInput(f"Malformed date '{day}', expected YYYY-MM-DD")
        if isinstance(day, datetime) or not isinstance(day, date):
            raise InvalidInput("day must be a calendar date")
        if day > today:
            raise InvalidInput(f"Cannot record progress for a future day ({day})")
        return day

    async def _owned_habit(self, habit_id: int, user_id: int) -> Habit:
        habit = await self.repo.get_habit(habit_id, lock=True)
        if habit is None or habit.user_id != user_id:
            raise NotFound(f"Habit {habit_id} not found")
        return habit

    async def _current_totals(self, user_id: int):
        totals = await self.repo.get_owner_totals(user_id)
        if totals is None:
            return None, None
        return totals.total, totals.level

    async def _best_effort(
        self,
        step: str,
        user_id: int,
        failures: List[str],
        action: Callable[[], Awaitable[T]],
    ) -> Optional[T]:
        try:
            async with self.repo.savepoint():
                return await action()
        except (SQLAlchemyError, ProgressError) as e:
            logger.exception("Step '{}' failed for user {} and was rolled back: {}", step, user_id, e)
            failures.append(step)
            return None

    async def _apply_awards(self, result, user_id: int, awards: List[AwardResult]) -> None:
        result.points_awarded = sum(a.delta for a in awards)
        result.leveled_up = any(a.leveled_up for a in awards)
        if awards:
            result.points, result.level = awards[-1].total, awards[-1].level
            return
        try:
            result.points, result.level = await self._current_totals(user_id)
        except ProgressError as e:
            logger.warning("Could not read totals for user {}: {}", user_id, e)

    @staticmethod
    def _habit_state(habit: Habit) -> HabitState:
        return HabitState(
            habit_id=habit.id,
            streak=habit.streak,
            longest_streak=habit.longest_streak,
            total_completions=habit.total_completions,
            last_completed=habit.last_completed,
        )

    @staticmethod
    def _completion_result(habit: Habit, day: date) -> CompletionResult:
        return CompletionResult(
            habit_id=habit.id,
            day=day,
            streak=habit.streak,
            longest_streak=habit.longest_streak,
            total_completions=habit.total_completions,
            last_completed=habit.last_completed,
        )
