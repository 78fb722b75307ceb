from __future__ import annotations
from typing import List, Optional
from datetime import date
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select, and_
from loguru import logger

from ..errors import InvalidInput, NotFound
from ..models.habit import Habit, HabitCompletion, HABIT_KINDS


class HabitService:
    """
    CRUD for habits. Progress fields are left to RewardsEngine.
    """

    @staticmethod
    async def create_habit(
        session: AsyncSession,
        user_id: int,
        title: str,
        kind: str = "build",
        category: Optional[str] = None,
        description: Optional[str] = None,
        trigger: Optional[str] = None,
        replacement: Optional[str] = None,
        target_streak: int = 30,
        start_date: Optional[date] = None,
    ) -> Habit:
        """Create a new habit."""
        if not title or not title.strip():
            raise InvalidInput("Habit title is required")
        if kind not in HABIT_KINDS:
            raise InvalidInput('Habit kind must be "build" or "break"')
        if target_streak < 1:
            raise InvalidInput("target_streak must be positive")

        habit = Habit(
            user_id=user_id,
            title=title.strip(),
            kind=kind,
            category=(category or "").strip() or None,
            description=(description or "").strip() or None,
            trigger=(trigger or "").strip() or None,
            replacement=(replacement or "").strip() or None,
            target_streak=target_streak,
            start_date=start_date or date.today(),
        )
        session.add(habit)
        await session.flush()
        logger.info("Created habit {} for user {}", habit.id, user_id)
        return habit

    @staticmethod
    async def list_habits(session: AsyncSession, user_id: int, active_only: bool = True) -> List[Habit]:
        """List user's habits."""
        filters = [Habit.user_id == user_id]
        if active_only:
            filters.append(Habit.is_active == True)  # noqa: E712

        result = await session.execute(select(Habit).where(and_(*filters)).order_by(Habit.created_at.desc()))
        return list(result.scalars().all())

    @staticmethod
    async def list_completions(session: AsyncSession, habit_id: int, user_id: int) -> List[HabitCompletion]:
        habit = await session.get(Habit, habit_id)
        if not habit or habit.user_id != user_id:
            raise NotFound(f"Habit {habit_id} not found")

        result = await session.execute(
            select(HabitCompletion)
            .where(HabitCompletion.habit_id == habit_id)
            .order_by(HabitCompletion.completion_date.desc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def get_habit_stats(session: AsyncSession, habit_id: int, user_id: int) -> dict:
        habit = await session.get(Habit, habit_id)
        if not habit or habit.user_id != user_id:
            raise NotFound(f"Habit {habit_id} not found")

        return {
            "habit_id": habit.id,
            "title": habit.title,
            "kind": habit.kind,
            "streak": habit.streak,
            "longest_streak": habit.longest_streak,
            "total_completions": habit.total_completions,
            "target_streak": habit.target_streak,
            "target_progress": min(1.0, habit.streak / habit.target_streak) if habit.target_streak else 0.0,
            "last_completed": habit.last_completed.isoformat() if habit.last_completed else None,
        }

    @staticmethod
    async def archive_habit(session: AsyncSession, habit_id: int, user_id: int) -> Habit:
        """Soft-delete: the habit and its history stay, it just stops being listed."""
        habit = await session.get(Habit, habit_id)
        if not habit or habit.user_id != user_id:
            raise NotFound(f"Habit {habit_id} not found")
        habit.is_active = False
        habit.touch()
        session.add(habit)
        await session.flush()
        logger.info("Archived habit {}", habit_id)
        return habit
