from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlmodel import SQLModel
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, AsyncSession
from sqlalchemy.orm import sessionmaker
from loguru import logger

from .config import settings


def _enable_sqlite_savepoints(engine: AsyncEngine) -> None:
    """
    pysqlite/aiosqlite defer BEGIN on their own, which breaks SAVEPOINT.
    Take over transaction control so begin_nested() behaves like on Postgres.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


def build_engine(url: str, **kwargs) -> AsyncEngine:
    if url.startswith("sqlite"):
        eng = create_async_engine(url, echo=settings.DATABASE_ECHO, future=True, **kwargs)
        _enable_sqlite_savepoints(eng)
        return eng
    return create_async_engine(url, echo=settings.DATABASE_ECHO, future=True, pool_pre_ping=True, **kwargs)


engine = build_engine(settings.DATABASE_URL)
AsyncSessionLocal = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


def register_models() -> None:
    """Import every table model so SQLModel.metadata knows about it."""
    from .models.users import User  # noqa: F401
    from .models.habit import Habit, HabitCompletion  # noqa: F401
    from .models.points import PointsLedgerEntry  # noqa: F401
    from .models.reward import RewardGrant  # noqa: F401
    from .models.savings_goal import SavingsGoal  # noqa: F401


async def init_db(bind: AsyncEngine = engine) -> None:
    """Create tables."""
    register_models()
    async with bind.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    logger.info("Database tables created/verified")


@asynccontextmanager
async def get_session(session_factory=None) -> AsyncGenerator[AsyncSession, None]:
    """Unit of work: commit on success, roll back on any error."""
    session = (session_factory or AsyncSessionLocal)()
    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()
