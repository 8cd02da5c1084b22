"""Pytest configuration and fixtures."""

from datetime import date
from typing import AsyncGenerator, List

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from servicedesk.main import app
from servicedesk.models.base import Base
from servicedesk.models.customer import Customer
from servicedesk.models.machine import Machine
from servicedesk.models.service_record import ServiceRecord
from servicedesk.models.user import User, UserRole
from servicedesk.services.database import create_session_maker, get_db
from servicedesk.services.notification_service import NotificationDispatcher
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

# In-memory database shared across connections of one engine
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


class FakePushSender:
    """Records push sends instead of calling FCM."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: List[dict] = []
        self.closed = False

    @property
    def enabled(self) -> bool:
        return True

    async def send(self, token, title, body, data=None):
        if self.fail:
            raise RuntimeError("push backend unavailable")
        self.sent.append({"token": token, "title": title, "body": body, "data": data or {}})
        return f"projects/test/messages/{len(self.sent)}"

    async def close(self):
        self.closed = True


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Create test database engine."""
    engine = create_async_engine(TEST_DATABASE_URL, poolclass=StaticPool, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async with create_session_maker(db_engine)() as session:
        yield session


@pytest.fixture
def push_sender() -> FakePushSender:
    return FakePushSender()


@pytest.fixture
def dispatcher(push_sender: FakePushSender) -> NotificationDispatcher:
    return NotificationDispatcher(push_sender)


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession, dispatcher: NotificationDispatcher) -> AsyncGenerator[AsyncClient, None]:
    """Create test HTTP client."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.state.dispatcher = dispatcher

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def make_user(db: AsyncSession, role: UserRole, name: str = None, **fields) -> User:
    user = User(name=name or role.value.title(), role=role, phone="9876543210", **fields)
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


def auth(user: User) -> dict:
    return {"Authorization": f"Bearer {user.id}"}


@pytest_asyncio.fixture
async def admin(db_session: AsyncSession) -> User:
    return await make_user(db_session, UserRole.ADMIN, "Asha Admin", email="admin@example.com", push_token="tok-admin")


@pytest_asyncio.fixture
async def service_head(db_session: AsyncSession) -> User:
    return await make_user(db_session, UserRole.SERVICE_HEAD, "Sunil Head", push_token="tok-head")


@pytest_asyncio.fixture
async def engineer(db_session: AsyncSession) -> User:
    return await make_user(db_session, UserRole.ENGINEER, "Esha Engineer", push_token="tok-eng")


@pytest_asyncio.fixture
async def other_engineer(db_session: AsyncSession) -> User:
    return await make_user(db_session, UserRole.ENGINEER, "Omar Engineer")


@pytest_asyncio.fixture
async def sales(db_session: AsyncSession) -> User:
    return await make_user(db_session, UserRole.SALES, "Sara Sales")


@pytest_asyncio.fixture
async def commercial(db_session: AsyncSession) -> User:
    return await make_user(db_session, UserRole.COMMERCIAL, "Chetan Commercial")


@pytest_asyncio.fixture
async def test_customer(db_session: AsyncSession) -> Customer:
    """Create test customer."""
    customer = Customer(name="Precision Tools Pvt Ltd", phone="+91 98765 43210", address="Plot 12, MIDC, Pune")
    db_session.add(customer)
    await db_session.commit()
    await db_session.refresh(customer)
    return customer


@pytest_asyncio.fixture
async def test_machine(db_session: AsyncSession) -> Machine:
    """Create test machine with a 24 month warranty."""
    machine = Machine(
        name="VMC 850",
        category="Vertical Machining Center",
        brand="Haas",
        warranty_time_in_months=24,
        serial_number="HS-850-0001",
    )
    db_session.add(machine)
    await db_session.commit()
    await db_session.refresh(machine)
    return machine


@pytest_asyncio.fixture
async def test_service_record(
    db_session: AsyncSession, test_customer: Customer, test_machine: Machine, engineer: User
) -> ServiceRecord:
    """Service record inserted directly, without the creation notifications."""
    record = ServiceRecord(
        customer_id=test_customer.id,
        machine_id=test_machine.id,
        created_by_id=engineer.id,
        purchase_date=date(2024, 1, 15),
        warranty_expires_at=date(2026, 1, 15),
        pending_amount=0,
        kpis={},
    )
    db_session.add(record)
    await db_session.commit()
    await db_session.refresh(record)
    return record
