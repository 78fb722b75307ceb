import os
import sys

# Put the repository root on sys.path so the nexanova package imports without installing
ROOT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

from datetime import date

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from nexanova.db import build_engine, register_models
from nexanova.models.users import User
from nexanova.services.habit_service import HabitService
from nexanova.services.rewards_engine import RewardsEngine
from nexanova.utils.clock import FixedClock

TODAY = date(2026, 3, 15)


@pytest_asyncio.fixture
async def db_engine():
    register_models()
    engine = build_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def clock():
    return FixedClock(TODAY)


@pytest_asyncio.fixture
async def user(db_session):
    u = User(email="ada@example.com", nickname="ada")
    db_session.add(u)
    await db_session.flush()
    return u


@pytest_asyncio.fixture
async def other_user(db_session):
    u = User(email="grace@example.com", nickname="grace")
    db_session.add(u)
    await db_session.flush()
    return u


@pytest_asyncio.fixture
async def habit(db_session, user):
    return await HabitService.create_habit(db_session, user.id, "Morning run", kind="build")


@pytest.fixture
def rewards(db_session, clock):
    return RewardsEngine(db_session, clock=clock)
