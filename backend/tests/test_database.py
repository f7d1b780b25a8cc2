"""
Tests for the request-scoped database session

Tests cover:
- A failing request rolls back its uncommitted work and re-raises
- A successful request keeps what it committed
"""
import pytest

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core import database
from app.models import Client


@pytest.fixture
def request_sessions(test_engine, monkeypatch):
    """Point get_db at the test database."""
    monkeypatch.setattr(
        database,
        "async_session_maker",
        async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False),
    )


class TestGetDb:
    """Tests for the get_db dependency."""

    @pytest.mark.asyncio
    async def test_failed_request_rolls_back(self, request_sessions, db_session, test_user):
        user_id = test_user.id
        sessions = database.get_db()
        session = await sessions.__anext__()

        rolled_back = []
        rollback = session.rollback

        async def counting_rollback():
            rolled_back.append(True)
            await rollback()

        session.rollback = counting_rollback
        session.add(Client(user_id=user_id, name="Niet opgeslagen"))
        await session.flush()

        with pytest.raises(RuntimeError):
            await sessions.athrow(RuntimeError("verzoek mislukt"))

        assert rolled_back == [True]
        result = await db_session.execute(select(Client.id).where(Client.name == "Niet opgeslagen"))
        assert result.scalar_one_or_none() is None

    @pytest.mark.asyncio
    async def test_committed_work_is_kept(self, request_sessions, db_session, test_user):
        user_id = test_user.id
        sessions = database.get_db()
        session = await sessions.__anext__()

        session.add(Client(user_id=user_id, name="Opgeslagen"))
        await session.commit()
        with pytest.raises(StopAsyncIteration):
            await sessions.__anext__()

        result = await db_session.execute(select(Client.name).where(Client.user_id == user_id))
        assert result.scalars().all() == ["Opgeslagen"]
