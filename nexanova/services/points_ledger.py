from __future__ import annotations
from bisect import bisect_right
from typing import Optional
from loguru import logger

from ..config import settings
from ..errors import InvalidInput, NotFound, PersistenceUnavailable
from ..repositories.progress_repository import ProgressRepository
from .results import AwardResult

# Inclusive lower bound of each level; index 0 is level 1
LEVEL_THRESHOLDS = (0, 100, 300, 600, 1000, 1500, 2200, 3000, 4000, 5500)
MAX_LEVEL = len(LEVEL_THRESHOLDS)

HABIT_COMPLETION_POINTS = 10
# (streak reached, bonus); every threshold reached adds its bonus
HABIT_STREAK_BONUSES = ((7, 5), (21, 10), (30, 15))
MILESTONE_BADGE_POINTS = 50
JOURNAL_ENTRY_POINTS = 5
JOURNAL_LENGTH_BONUSES = ((100, 5), (200, 5))
FINANCE_ENTRY_POINTS = 3
FINANCE_INCOME_BONUS = 2
SAVINGS_GOAL_POINTS = 100

FINANCE_ENTRY_TYPES = ("income", "expense")


def level_of(total: int) -> int:
    return max(1, bisect_right(LEVEL_THRESHOLDS, total))


def next_level_threshold(total: int) -> Optional[int]:
    idx = bisect_right(LEVEL_THRESHOLDS, total)
    if idx >= MAX_LEVEL:
        return None
    return LEVEL_THRESHOLDS[idx]


def habit_completion_points(streak: int) -> int:
    return HABIT_COMPLETION_POINTS + sum(bonus for reached, bonus in HABIT_STREAK_BONUSES if streak >= reached)


def journal_entry_points(content: str) -> int:
    words = len(content.split())
    return JOURNAL_ENTRY_POINTS + sum(bonus for over, bonus in JOURNAL_LENGTH_BONUSES if words > over)


def finance_entry_points(entry_type: str) -> int:
    if entry_type not in FINANCE_ENTRY_TYPES:
        raise InvalidInput(f"Finance entry type must be one of {', '.join(FINANCE_ENTRY_TYPES)}")
    return FINANCE_ENTRY_POINTS + (FINANCE_INCOME_BONUS if entry_type == "income" else 0)


class PointsLedger:
    """
    Append-only points ledger. The cached total and level on the user row
    are written with a version check and retried on conflict, so two awards
    racing for the same user never lose an update.
    """

    def __init__(self, repo: ProgressRepository, max_retries: Optional[int] = None):
        self.repo = repo
        self.max_retries = max_retries if max_retries is not None else settings.POINTS_MAX_RETRIES
        if self.max_retries < 1:
            raise ValueError(f"max_retries must be at least 1, got {self.max_retries}")

    async def award(self, user_id: int, delta: int, reason: str) -> AwardResult:
        if isinstance(delta, bool) or not isinstance(delta, int) or delta <= 0:
            raise InvalidInput(f"Point grants must be a positive integer, got {delta!r}")

        for attempt in range(1, self.max_retries + 1):
            totals = await self.repo.get_owner_totals(user_id)
            if totals is None:
                raise NotFound(f"User {user_id} not found")

            new_total = totals.total + delta
            new_level = level_of(new_total)
            if await self.repo.update_owner_totals(user_id, new_total, new_level, totals.version):
                await self.repo.append_ledger_entry(user_id, delta, reason)
                result = AwardResult(
                    delta=delta,
                    reason=reason,
                    total=new_total,
                    level=new_level,
                    previous_level=totals.level,
                )
                logger.info("Awarded {} points to user {} ({}); total {}", delta, user_id, reason, new_total)
                if result.leveled_up:
                    logger.info("User {} reached level {}", user_id, new_level)
                return result

            logger.warning(
                "Points total for user {} changed concurrently (attempt {}/{})",
                user_id, attempt, self.max_retries,
            )

        raise PersistenceUnavailable(f"Could not update points for user {user_id} after {self.max_retries} attempts")
