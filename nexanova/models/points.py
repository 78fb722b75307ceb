from typing import Optional, TYPE_CHECKING
from datetime import datetime, timezone
from sqlmodel import SQLModel, Field, Relationship
from sqlalchemy import DateTime, Column


if TYPE_CHECKING:
    from .users import User


class PointsLedgerEntry(SQLModel, table=True):
    """
    Immutable point grant. Rows are appended, never updated or deleted.
    """
    __tablename__ = "points_ledger"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(index=True, foreign_key="users.id")
    user: "User" = Relationship(back_populates="ledger_entries")

    delta: int
    reason: str = Field(max_length=200)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True),
    )
