"""
Pytest configuration and fixtures for backend tests.

Provides common test fixtures for async client, database sessions,
test profiles and clients, a seeded BTW code table and authentication
headers.
"""
import pytest
import pytest_asyncio
import uuid
from datetime import datetime, timezone
from io import BytesIO
from typing import AsyncGenerator, Callable, List, Optional

from httpx import ASGITransport, AsyncClient
from openpyxl import Workbook
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from app.main import app
from app.core.database import get_db, Base
from app.core.rate_limit import rate_limiter
from app.core.security import create_access_token, get_password_hash
from app.models import Profile, Client, GrootboekAccount, BtwCode
from app.services.btw.codes import BTW_CODES


# One shared in-memory database per test; StaticPool keeps the single
# connection alive so the tables created below stay visible.
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

TEST_PASSWORD = "TestPassword123"


@pytest.fixture(autouse=True)
def reset_rate_limiter():
    """Every test starts with empty rate limit windows."""
    rate_limiter.reset()
    yield
    rate_limiter.reset()


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
        echo=False,
    )

    # ON DELETE CASCADE / SET NULL only work with foreign keys enabled
    @event.listens_for(engine.sync_engine, "connect")
    def enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for tests."""
    async_session = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def btw_codes(db_session: AsyncSession) -> List[BtwCode]:
    """Seed the btw_codes table from the static code table."""
    codes = [
        BtwCode(
            code=info.code,
            description=info.description,
            percentage=info.percentage,
            rubriek=info.rubriek,
            type=info.type.value,
            is_active=True,
        )
        for info in BTW_CODES.values()
    ]
    db_session.add_all(codes)
    await db_session.commit()
    return codes


@pytest_asyncio.fixture(scope="function")
async def test_user(db_session: AsyncSession) -> Profile:
    """Create a test bookkeeper profile."""
    profile = Profile(
        id=uuid.uuid4(),
        email="boekhouder@example.com",
        hashed_password=get_password_hash(TEST_PASSWORD),
        full_name="Test Boekhouder",
        company_name="Boekhoudkantoor Test",
        is_active=True,
        created_at=datetime.now(timezone.utc),
        updated_at=datetime.now(timezone.utc),
    )
    db_session.add(profile)
    await db_session.commit()
    await db_session.refresh(profile)
    return profile


@pytest_asyncio.fixture(scope="function")
async def other_user(db_session: AsyncSession) -> Profile:
    """A second bookkeeper whose clients must stay invisible to test_user."""
    profile = Profile(
        id=uuid.uuid4(),
        email="collega@example.com",
        hashed_password=get_password_hash(TEST_PASSWORD),
        full_name="Andere Boekhouder",
        is_active=True,
    )
    db_session.add(profile)
    await db_session.commit()
    await db_session.refresh(profile)
    return profile


@pytest_asyncio.fixture(scope="function")
async def test_client(db_session: AsyncSession, test_user: Profile) -> Client:
    """Create a client administration for the test bookkeeper."""
    client = Client(
        id=uuid.uuid4(),
        user_id=test_user.id,
        name="Bakkerij de Vries",
        company_name="Bakkerij de Vries B.V.",
        kvk_number="12345678",
        btw_number="NL123456789B01",
        address="Dorpsstraat 1",
        postal_code="1234AB",
        city="Utrecht",
        email="info@bakkerijdevries.nl",
        fiscal_year_start=1,
    )
    db_session.add(client)
    await db_session.commit()
    await db_session.refresh(client)
    return client


@pytest_asyncio.fixture(scope="function")
async def other_client(db_session: AsyncSession, other_user: Profile) -> Client:
    """A client of another bookkeeper."""
    client = Client(
        id=uuid.uuid4(),
        user_id=other_user.id,
        name="Garage Jansen",
    )
    db_session.add(client)
    await db_session.commit()
    await db_session.refresh(client)
    return client


@pytest_asyncio.fixture(scope="function")
async def test_accounts(db_session: AsyncSession, test_client: Client) -> List[GrootboekAccount]:
    """A small grootboek: bank, voorbelasting, kantoorkosten and omzet."""
    accounts = [
        GrootboekAccount(
            client_id=test_client.id, account_number="1100", account_name="Bank",
            account_type="activa",
        ),
        GrootboekAccount(
            client_id=test_client.id, account_number="1900", account_name="Te vorderen BTW",
            account_type="activa", btw_code="5b", btw_percentage=BTW_CODES["5b"].percentage, rubriek="5b",
        ),
        GrootboekAccount(
            client_id=test_client.id, account_number="4300", account_name="Kantoorkosten",
            account_type="kosten", btw_code="5b", btw_percentage=BTW_CODES["5b"].percentage, rubriek="5b",
        ),
        GrootboekAccount(
            client_id=test_client.id, account_number="8000", account_name="Omzet hoog tarief",
            account_type="omzet", btw_code="1a", btw_percentage=BTW_CODES["1a"].percentage, rubriek="1a",
        ),
    ]
    db_session.add_all(accounts)
    await db_session.commit()
    return accounts


@pytest_asyncio.fixture(scope="function")
async def auth_headers(test_user: Profile) -> dict:
    """Create authentication headers for the test user."""
    token = create_access_token(
        data={"sub": str(test_user.id), "email": test_user.email}
    )
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture(scope="function")
async def async_client(
    db_session: AsyncSession,
    test_user: Profile,
    btw_codes: List[BtwCode],
) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client with database override."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def make_xlsx() -> Callable[..., bytes]:
    """Factory building an .xlsx file in memory from a list of rows."""

    def build(rows: List[list], sheet_title: Optional[str] = None, extra_sheets: Optional[dict] = None) -> bytes:
        wb = Workbook()
        ws = wb.active
        if sheet_title:
            ws.title = sheet_title
        for row in rows:
            ws.append(row)
        for title, sheet_rows in (extra_sheets or {}).items():
            sheet = wb.create_sheet(title)
            for row in sheet_rows:
                sheet.append(row)
        buffer = BytesIO()
        wb.save(buffer)
        return buffer.getvalue()

    return build
