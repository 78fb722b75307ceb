from typing import Optional, List, TYPE_CHECKING
from datetime import datetime, timezone
from sqlmodel import SQLModel, Field, UniqueConstraint, Relationship
from sqlalchemy import DateTime, Column


if TYPE_CHECKING:
    from .habit import Habit
    from .points import PointsLedgerEntry
    from .reward import RewardGrant
    from .savings_goal import SavingsGoal


class User(SQLModel, table=True):
    """
    Owner of habits, goals and the points ledger. Only the progress subset
    lives here; authentication is handled elsewhere.
    """
    __tablename__ = "users"
    __table_args__ = (UniqueConstraint("email", name="uq_users_email"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(max_length=320, index=True)
    nickname: Optional[str] = Field(default=None, max_length=100)

    # Cached from the points ledger; written only by PointsLedger
    total_points: int = Field(default=0)
    level: int = Field(default=1)
    progress_version: int = Field(default=0)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )

    # --- Relationships ---
    habits: List["Habit"] = Relationship(back_populates="user")
    ledger_entries: List["PointsLedgerEntry"] = Relationship(back_populates="user")
    rewards: List["RewardGrant"] = Relationship(back_populates="user")
    savings_goals: List["SavingsGoal"] = Relationship(back_populates="user")

    def touch(self) -> None:
        self.updated_at = datetime.now(timezone.utc)
