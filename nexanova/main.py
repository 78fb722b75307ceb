from __future__ import annotations
import sys
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional
from datetime import date, datetime, timezone
from dataclasses import asdict
from fastapi import FastAPI, Depends, Header, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession
from loguru import logger

from .config import settings
from .db import get_session, init_db
from .errors import ProgressError
from .services.rewards_engine import RewardsEngine
from .utils.clock import SystemClock


ERROR_STATUS = {
    "NOT_FOUND": 404,
    "INVALID_INPUT": 422,
    "CONSTRAINT_VIOLATION": 409,
    "PERSISTENCE_UNAVAILABLE": 503,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    # --- startup ---
    logger.remove()
    logger.add(sys.stderr, level=settings.LOG_LEVEL)

    await init_db()
    logger.info("NexaNova progress service started ({})", settings.ENV)

    yield

    # --- shutdown ---
    logger.info("NexaNova progress service shut down")


app = FastAPI(title="NexaNova Progress", lifespan=lifespan)


class CompletionIn(BaseModel):
    day: Optional[date] = None
    note: Optional[str] = Field(default=None, max_length=1000)
    trigger: Optional[str] = Field(default=None, max_length=500)
    mood: Optional[int] = None


class SavingsProgressIn(BaseModel):
    current_amount: float = Field(allow_inf_nan=False)
    is_completed: bool = False


async def session_scope() -> AsyncIterator[AsyncSession]:
    async with get_session() as session:
        yield session


def get_engine(
    session: AsyncSession = Depends(session_scope),
    x_user_timezone: Optional[str] = Header(default=None),
) -> RewardsEngine:
    return RewardsEngine(session, clock=SystemClock(x_user_timezone or settings.DEFAULT_TIMEZONE))


def current_user_id(x_user_id: int = Header(...)) -> int:
    # Token verification happens upstream; the gateway forwards the user id
    return x_user_id


@app.exception_handler(ProgressError)
async def progress_error_handler(request: Request, exc: ProgressError):
    status_code = ERROR_STATUS.get(exc.error_code, 500)
    if status_code >= 500:
        logger.error("{} {} failed: {}", request.method, request.url.path, exc.detail)
    return JSONResponse(
        {"success": False, "error_code": exc.error_code, "detail": exc.detail, "retriable": exc.retriable},
        status_code=status_code,
    )


@app.get("/health")
async def health():
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}


@app.post("/habits/{habit_id}/completions")
async def complete_habit(
    habit_id: int,
    body: CompletionIn,
    user_id: int = Depends(current_user_id),
    engine: RewardsEngine = Depends(get_engine),
):
    result = await engine.record_habit_completion(
        habit_id, user_id, day=body.day, note=body.note, trigger=body.trigger, mood=body.mood
    )
    return {"success": True, **asdict(result)}


@app.delete("/habits/{habit_id}/completions/{day}")
async def uncomplete_habit(
    habit_id: int,
    day: str,
    user_id: int = Depends(current_user_id),
    engine: RewardsEngine = Depends(get_engine),
):
    state = await engine.remove_habit_completion(habit_id, user_id, day=day)
    return {"success": True, **asdict(state)}


@app.patch("/savings-goals/{goal_id}")
async def update_savings_goal(
    goal_id: int,
    body: SavingsProgressIn,
    user_id: int = Depends(current_user_id),
    engine: RewardsEngine = Depends(get_engine),
):
    result = await engine.record_savings_progress(
        goal_id, user_id, body.current_amount, mark_completed=body.is_completed
    )
    return {"success": True, **asdict(result)}


@app.get("/progress")
async def progress(user_id: int = Depends(current_user_id), engine: RewardsEngine = Depends(get_engine)):
    return {"success": True, **asdict(await engine.get_progress(user_id))}


@app.get("/rewards")
async def rewards(user_id: int = Depends(current_user_id), engine: RewardsEngine = Depends(get_engine)):
    badges: List = await engine.list_rewards(user_id)
    return {"success": True, "rewards": [asdict(b) for b in badges]}
