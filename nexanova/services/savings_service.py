from __future__ import annotations
import math
from typing import List, Optional
from datetime import date
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select
from loguru import logger

from ..errors import InvalidInput
from ..models.savings_goal import SavingsGoal


class SavingsService:
    """Create and list savings goals. Progress updates go through RewardsEngine."""

    @staticmethod
    async def create_goal(
        session: AsyncSession,
        user_id: int,
        title: str,
        target_amount: float,
        description: Optional[str] = None,
        deadline: Optional[date] = None,
    ) -> SavingsGoal:
        if not title or not title.strip():
            raise InvalidInput("Goal title is required")
        if isinstance(target_amount, bool) or not isinstance(target_amount, (int, float)):
            raise InvalidInput("target_amount must be a number")
        if not math.isfinite(target_amount) or target_amount <= 0:
            raise InvalidInput("target_amount must be greater than zero")

        goal = SavingsGoal(
            user_id=user_id,
            title=title.strip(),
            target_amount=float(target_amount),
            description=description,
            deadline=deadline,
        )
        session.add(goal)
        await session.flush()
        logger.info("Created savings goal {} for user {}", goal.id, user_id)
        return goal

    @staticmethod
    async def list_goals(session: AsyncSession, user_id: int) -> List[SavingsGoal]:
        result = await session.execute(
            select(SavingsGoal).where(SavingsGoal.user_id == user_id).order_by(SavingsGoal.created_at.desc())
        )
        return list(result.scalars().all())
