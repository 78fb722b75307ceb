from typing import Optional, TYPE_CHECKING
from datetime import datetime, date, timezone
from sqlmodel import SQLModel, Field, Relationship
from sqlalchemy import DateTime, Column, CheckConstraint


if TYPE_CHECKING:
    from .users import User


class SavingsGoal(SQLModel, table=True):
    """
    Savings target. is_completed only ever flips false -> true.
    """
    __tablename__ = "savings_goals"
    __table_args__ = (
        CheckConstraint("target_amount > 0", name="ck_savings_goals_target_positive"),
        CheckConstraint("current_amount >= 0", name="ck_savings_goals_current_non_negative"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(index=True, foreign_key="users.id")
    user: "User" = Relationship(back_populates="savings_goals")

    title: str = Field(max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    target_amount: float = Field(gt=0)
    current_amount: float = Field(default=0.0, ge=0)
    deadline: Optional[date] = None

    is_completed: bool = Field(default=False, index=True)
    completed_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True),
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )

    def touch(self) -> None:
        self.updated_at = datetime.now(timezone.utc)
