from __future__ import annotations
from typing import List, Optional
from datetime import date, timedelta
from loguru import logger

from ..models.habit import Habit
from ..repositories.progress_repository import ProgressRepository


class StreakTracker:
    """
    Owns Habit.streak / longest_streak / total_completions / last_completed.
    Transitions are computed incrementally from the cached fields; history is
    only consulted on removal and on an explicit rebuild.
    """

    def __init__(self, repo: ProgressRepository):
        self.repo = repo

    @staticmethod
    def next_streak(current: int, last_completed: Optional[date], day: date) -> int:
        if last_completed is None:
            return 1
        gap = (day - last_completed).days
        if gap == 1:
            return current + 1
        if gap == 0:
            return current
        return 1

    async def on_completion_added(self, habit: Habit, day: date) -> int:
        """
        Apply a freshly inserted completion and return the new streak.
        A day older than last_completed is a back-fill: it counts toward
        total_completions but leaves the current run alone.
        """
        if habit.last_completed is not None and day < habit.last_completed:
            logger.info(
                "Back-filled completion for habit {} on {} (last completed {}), streak kept at {}",
                habit.id, day, habit.last_completed, habit.streak,
            )
        else:
            habit.streak = self.next_streak(habit.streak, habit.last_completed, day)
            habit.last_completed = day

        habit.longest_streak = max(habit.longest_streak or 0, habit.streak)
        habit.total_completions = (habit.total_completions or 0) + 1
        await self.repo.save_habit(habit)
        return habit.streak

    async def on_completion_removed(self, habit: Habit, day: date) -> None:
        """
        Move last_completed back when the latest day is undone.
        The streak is deliberately left as-is; see DESIGN.md.
        """
        if habit.last_completed != day:
            return
        habit.last_completed = await self.repo.latest_completion_before(habit.id, day)
        await self.repo.save_habit(habit)
        logger.info(
            "Removed latest completion of habit {}; last_completed now {}, streak stays {}",
            habit.id, habit.last_completed, habit.streak,
        )

    async def rebuild_from_history(self, habit: Habit) -> Habit:
        """
        Re-derive the cached fields from stored completions. longest_streak
        is never lowered so the invariant longest >= streak keeps holding.
        """
        log_dates = await self.repo.completion_dates(habit.id)

        if not log_dates:
            habit.streak = 0
            habit.last_completed = None
        else:
            habit.streak = self._calculate_daily_streak(log_dates)
            habit.last_completed = log_dates[0]
            habit.longest_streak = max(habit.longest_streak or 0, self._longest_run(log_dates))
        habit.longest_streak = max(habit.longest_streak or 0, habit.streak)
        habit.total_completions = len(log_dates)

        await self.repo.save_habit(habit)
        return habit

    @staticmethod
    def _calculate_daily_streak(log_dates: List[date]) -> int:
        """Consecutive run ending at the most recent date (dates sorted descending)."""
        streak = 0
        expected_date = log_dates[0]

        for log_date in log_dates:
            if log_date == expected_date:
                streak += 1
                expected_date -= timedelta(days=1)
            else:
                break
        return streak

    @staticmethod
    def _longest_run(log_dates: List[date]) -> int:
        longest = run = 1
        for newer, older in zip(log_dates, log_dates[1:]):
            if (newer - older).days == 1:
                run += 1
                longest = max(longest, run)
            else:
                run = 1
        return longest
