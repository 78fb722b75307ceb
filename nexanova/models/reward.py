from typing import Optional, TYPE_CHECKING
from datetime import datetime, timezone
from sqlmodel import SQLModel, Field, Relationship, UniqueConstraint
from sqlalchemy import DateTime, Column


if TYPE_CHECKING:
    from .users import User

REWARD_CATEGORIES = ("habit", "financial")


class RewardGrant(SQLModel, table=True):
    """
    A one-time badge. The unique constraint keeps a milestone from being
    granted twice even when two requests race past the existence check.
    """
    __tablename__ = "reward_grants"
    __table_args__ = (
        UniqueConstraint("user_id", "category", "title", name="uq_reward_grants_milestone"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(index=True, foreign_key="users.id")
    user: "User" = Relationship(back_populates="rewards")

    category: str = Field(max_length=20, index=True)  # habit, financial
    title: str = Field(max_length=300)
    description: Optional[str] = Field(default=None, max_length=1000)

    granted_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
