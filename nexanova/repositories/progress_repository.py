"""Persistence gateway for the progress & rewards engine."""

from __future__ import annotations

import functools
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import List, Optional

from loguru import logger
from sqlalchemy import update, func
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select, delete

from ..errors import CompletionExists, ConstraintViolation, PersistenceUnavailable
from ..models.habit import Habit, HabitCompletion
from ..models.points import PointsLedgerEntry
from ..models.reward import RewardGrant
from ..models.savings_goal import SavingsGoal
from ..models.users import User


@dataclass(frozen=True)
class OwnerTotals:
    total: int
    level: int
    version: int


def _storage_call(func):
    """Surface driver/pool I/O failures as PersistenceUnavailable."""

    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except (OperationalError, InterfaceError, PoolTimeoutError) as e:
            logger.error("Storage failure in {}: {}", func.__name__, e)
            raise PersistenceUnavailable(f"Storage unavailable during {func.__name__}") from e

    return wrapper


class ProgressRepository:
    """
    SQLModel-backed gateway. Every read and write the engine performs goes
    through here; nothing above this layer touches the session directly
    except to open a savepoint.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    def savepoint(self):
        return self.session.begin_nested()

    # --- Users -----------------------------------------------------------

    @_storage_call
    async def get_owner_totals(self, user_id: int) -> Optional[OwnerTotals]:
        result = await self.session.execute(
            select(User.total_points, User.level, User.progress_version).where(User.id == user_id)
        )
        row = result.one_or_none()
        if row is None:
            return None
        return OwnerTotals(total=row[0], level=row[1], version=row[2])

    @_storage_call
    async def update_owner_totals(self, user_id: int, total: int, level: int, expected_version: int) -> bool:
        """Conditional write; False means another writer bumped the version first."""
        result = await self.session.execute(
            update(User)
            .where(User.id == user_id, User.progress_version == expected_version)
            .values(
                total_points=total,
                level=level,
                progress_version=expected_version + 1,
                updated_at=datetime.now(timezone.utc),
            )
        )
        return result.rowcount == 1

    # --- Habits ----------------------------------------------------------

    @_storage_call
    async def get_habit(self, habit_id: int, lock: bool = False) -> Optional[Habit]:
        """
        With lock=True the row is read SELECT ... FOR UPDATE and the cached
        counters are refreshed from it, so concurrent writers to the same
        habit serialize instead of overwriting each other.
        """
        if lock:
            return await self.session.get(Habit, habit_id, with_for_update=True, populate_existing=True)
        return await self.session.get(Habit, habit_id)

    @_storage_call
    async def save_habit(self, habit: Habit) -> Habit:
        habit.touch()
        self.session.add(habit)
        await self.session.flush()
        return habit

    @_storage_call
    async def iter_habit_ids(self, after_id: int = 0, limit: int = 500) -> List[int]:
        result = await self.session.execute(
            select(Habit.id).where(Habit.id > after_id).order_by(Habit.id.asc()).limit(limit)
        )
        return list(result.scalars().all())

    # --- Completions -----------------------------------------------------

    @_storage_call
    async def get_completion(self, habit_id: int, day: date) -> Optional[HabitCompletion]:
        result = await self.session.execute(
            select(HabitCompletion).where(
                HabitCompletion.habit_id == habit_id,
                HabitCompletion.completion_date == day,
            )
        )
        return result.scalar_one_or_none()

    @_storage_call
    async def insert_completion(
        self,
        habit_id: int,
        day: date,
        note: Optional[str] = None,
        trigger: Optional[str] = None,
        mood: Optional[int] = None,
    ) -> HabitCompletion:
        """
        Insert relying on the (habit, day) unique constraint. Runs in a
        savepoint so a duplicate does not poison the request transaction.
        """
        completion = HabitCompletion(
            habit_id=habit_id,
            completion_date=day,
            note=note,
            trigger=trigger,
            mood=mood,
        )
        try:
            async with self.session.begin_nested():
                self.session.add(completion)
                await self.session.flush()
        except IntegrityError as e:
            if await self.get_completion(habit_id, day) is not None:
                raise CompletionExists(habit_id, day) from e
            raise ConstraintViolation(f"Could not record completion for habit {habit_id}: {e.orig}") from e
        return completion

    @_storage_call
    async def delete_completion(self, habit_id: int, day: date) -> bool:
        result = await self.session.execute(
            delete(HabitCompletion).where(
                HabitCompletion.habit_id == habit_id,
                HabitCompletion.completion_date == day,
            )
        )
        return result.rowcount > 0

    @_storage_call
    async def latest_completion_before(self, habit_id: int, day: date) -> Optional[date]:
        result = await self.session.execute(
            select(HabitCompletion.completion_date)
            .where(
                HabitCompletion.habit_id == habit_id,
                HabitCompletion.completion_date < day,
            )
            .order_by(HabitCompletion.completion_date.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    @_storage_call
    async def completion_dates(self, habit_id: int) -> List[date]:
        """All completion days for a habit, most recent first."""
        result = await self.session.execute(
            select(HabitCompletion.completion_date)
            .where(HabitCompletion.habit_id == habit_id)
            .order_by(HabitCompletion.completion_date.desc())
        )
        return list(result.scalars().all())

    # --- Points ledger ---------------------------------------------------

    @_storage_call
    async def append_ledger_entry(self, user_id: int, delta: int, reason: str) -> PointsLedgerEntry:
        entry = PointsLedgerEntry(user_id=user_id, delta=delta, reason=reason)
        self.session.add(entry)
        await self.session.flush()
        return entry

    @_storage_call
    async def ledger_total(self, user_id: int) -> int:
        result = await self.session.execute(
            select(func.coalesce(func.sum(PointsLedgerEntry.delta), 0)).where(PointsLedgerEntry.user_id == user_id)
        )
        return int(result.scalar_one())

    @_storage_call
    async def list_ledger(self, user_id: int, limit: int = 50) -> List[PointsLedgerEntry]:
        result = await self.session.execute(
            select(PointsLedgerEntry)
            .where(PointsLedgerEntry.user_id == user_id)
            .order_by(PointsLedgerEntry.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    # --- Reward grants ---------------------------------------------------

    @_storage_call
    async def grant_exists(self, user_id: int, category: str, title: str) -> bool:
        result = await self.session.execute(
            select(RewardGrant.id).where(
                RewardGrant.user_id == user_id,
                RewardGrant.category == category,
                RewardGrant.title == title,
            )
        )
        return result.first() is not None

    @_storage_call
    async def insert_reward_grant(
        self,
        user_id: int,
        category: str,
        title: str,
        description: Optional[str] = None,
    ) -> Optional[RewardGrant]:
        """Returns None when the same milestone was already granted."""
        grant = RewardGrant(user_id=user_id, category=category, title=title, description=description)
        try:
            async with self.session.begin_nested():
                self.session.add(grant)
                await self.session.flush()
        except IntegrityError as e:
            if await self.grant_exists(user_id, category, title):
                return None
            raise ConstraintViolation(f"Could not store reward '{title}': {e.orig}") from e
        return grant

    @_storage_call
    async def list_rewards(self, user_id: int) -> List[RewardGrant]:
        result = await self.session.execute(
            select(RewardGrant)
            .where(RewardGrant.user_id == user_id)
            .order_by(RewardGrant.granted_at.desc(), RewardGrant.id.desc())
        )
        return list(result.scalars().all())

    # --- Savings goals ---------------------------------------------------

    @_storage_call
    async def get_savings_goal(self, goal_id: int) -> Optional[SavingsGoal]:
        return await self.session.get(SavingsGoal, goal_id)

    @_storage_call
    async def save_savings_goal(self, goal: SavingsGoal) -> SavingsGoal:
        goal.touch()
        self.session.add(goal)
        await self.session.flush()
        return goal
