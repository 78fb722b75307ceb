from typing import Optional, List, TYPE_CHECKING
from datetime import datetime, date, timezone
from sqlmodel import SQLModel, Field, Relationship, UniqueConstraint
from sqlalchemy import DateTime, Column, CheckConstraint


if TYPE_CHECKING:
    from .users import User

HABIT_KINDS = ("build", "break")


class Habit(SQLModel, table=True):
    """
    A habit to build or break, with cached streak progress.
    """
    __tablename__ = "habits"
    __table_args__ = (CheckConstraint("longest_streak >= streak", name="ck_habits_longest_ge_streak"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(index=True, foreign_key="users.id")
    user: "User" = Relationship(back_populates="habits")

    title: str = Field(max_length=200)
    kind: str = Field(default="build", max_length=10)  # build, break
    category: Optional[str] = Field(default=None, max_length=100)
    description: Optional[str] = Field(default=None, max_length=1000)
    trigger: Optional[str] = Field(default=None, max_length=500)
    replacement: Optional[str] = Field(default=None, max_length=500)
    target_streak: int = Field(default=30)
    start_date: Optional[date] = None

    # Streak tracking; mutated only by StreakTracker
    streak: int = Field(default=0)
    longest_streak: int = Field(default=0)
    total_completions: int = Field(default=0)
    last_completed: Optional[date] = Field(default=None, index=True)

    is_active: bool = Field(default=True, index=True)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )

    completions: List["HabitCompletion"] = Relationship(back_populates="habit")

    def touch(self) -> None:
        self.updated_at = datetime.now(timezone.utc)


class HabitCompletion(SQLModel, table=True):
    """
    One completed day of a habit. At most one row per (habit, day).
    """
    __tablename__ = "habit_completions"
    __table_args__ = (
        UniqueConstraint("habit_id", "completion_date", name="uq_habit_completions_day"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    habit_id: int = Field(index=True, foreign_key="habits.id")
    habit: Optional[Habit] = Relationship(back_populates="completions")

    completion_date: date = Field(index=True)
    note: Optional[str] = Field(default=None, max_length=1000)
    trigger: Optional[str] = Field(default=None, max_length=500)
    mood: Optional[int] = Field(default=None, ge=1, le=10)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
