"""
Rebuild every habit's cached streak fields from its completion history.

Repairs habits whose cached progress fell behind their completions, e.g.
after a partially applied write on storage without transactions.

Usage:
    python scripts/reconcile_streaks.py
"""

from __future__ import annotations

import asyncio

from loguru import logger

from nexanova.db import AsyncSessionLocal, get_session
from nexanova.repositories.progress_repository import ProgressRepository
from nexanova.services.streak_tracker import StreakTracker

BATCH_SIZE = 500


async def reconcile_all(session_factory=AsyncSessionLocal, batch_size: int = BATCH_SIZE) -> int:
    """
    Keyset-paginates over habit ids with a fresh session per batch so the
    identity map never grows past one batch. Returns the number of habits changed.
    """
    last_seen_id = 0
    changed = 0

    while True:
        async with get_session(session_factory) as session:
            repo = ProgressRepository(session)
            tracker = StreakTracker(repo)

            habit_ids = await repo.iter_habit_ids(after_id=last_seen_id, limit=batch_size)
            if not habit_ids:
                break

            for habit_id in habit_ids:
                habit = await repo.get_habit(habit_id, lock=True)
                before = (habit.streak, habit.longest_streak, habit.total_completions, habit.last_completed)
                await tracker.rebuild_from_history(habit)
                after = (habit.streak, habit.longest_streak, habit.total_completions, habit.last_completed)
                if before != after:
                    changed += 1
                    logger.info("Habit {}: {} -> {}", habit_id, before, after)

            last_seen_id = habit_ids[-1]

            if len(habit_ids) < batch_size:
                break

    logger.info("Reconciliation finished, {} habit(s) changed", changed)
    return changed


async def main() -> None:
    try:
        await reconcile_all()
    except Exception as e:
        logger.exception("Fatal error during reconciliation: {}", e)
        raise


if __name__ == "__main__":
    asyncio.run(main())
