"""Tests for engine and session helpers."""

import pytest
from sqlalchemy import select

from talko.db.base import ping_database, session_scope
from talko.db.models.user import User

pytestmark = pytest.mark.unit


def _user(name: str) -> User:
    return User(username=name, email=f"{name}@example.com", password_hash="x")


async def test_session_scope_commits(engine, db_session):
    async with session_scope() as session:
        session.add(_user("ada"))

    names = (await db_session.execute(select(User.username))).scalars().all()
    assert names == ["ada"]


async def test_session_scope_rolls_back_on_error(engine, db_session):
    with pytest.raises(RuntimeError):
        async with session_scope() as session:
            session.add(_user("alan"))
            await session.flush()
            raise RuntimeError("boom")

    assert (await db_session.execute(select(User))).scalars().all() == []


async def test_ping_shared_engine(engine):
    await ping_database()


async def test_ping_without_engine_raises():
    with pytest.raises(RuntimeError, match="not initialized"):
        await ping_database()
