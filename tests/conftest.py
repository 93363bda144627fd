"""
Pytest configuration and fixtures for Tilly tests.

Provides:
- Async test database with SQLite
- Test client for API testing
- Factory fixtures for accounts, devices, people and reminders
- In-memory fakes for the storage, user source and push collaborators
"""

import asyncio
import uuid
from collections.abc import AsyncGenerator, AsyncIterator
from datetime import datetime

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import StaticPool
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from tilly.config import PushConfig, Settings, get_settings
from tilly.core.database import get_session_factory
from tilly.main import app
from tilly.models import Account, Base, Person, PushDevice, Reminder, Repeat
from tilly.schemas.notifications import NotificationPayload, NotificationSettings, PushDeviceInfo
from tilly.services.notification_store import AccountNotFoundError
from tilly.services.push_service import SendResult
from tilly.services.user_source import UserSourceError

# Test database URL (in-memory SQLite)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

CRON_SECRET = "test-cron-secret"


# Override settings for testing
class SettingsForTests(Settings):
    database_url: str = TEST_DATABASE_URL
    debug: bool = True
    cron_secret: str = CRON_SECRET
    vapid_private_key: str = "test-vapid-key"
    scheduler_enabled: bool = False


@pytest_asyncio.fixture
async def db_engine():
    """Create async test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine."""
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create async database session for tests."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """Create async test client with database override."""

    def override_get_session_factory():
        return session_factory

    def override_get_settings():
        return SettingsForTests()

    app.dependency_overrides[get_session_factory] = override_get_session_factory
    app.dependency_overrides[get_settings] = override_get_settings

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {CRON_SECRET}"}


@pytest.fixture
def push_config() -> PushConfig:
    return PushConfig({"max_concurrent_users": 50, "page_size": 500})


# ============================================================================
# Factory Fixtures
# ============================================================================


@pytest_asyncio.fixture
async def account_factory(db_session: AsyncSession):
    """Factory for creating test accounts with optional devices."""

    async def _create_account(
        account_id: str = None,
        timezone: str = "UTC",
        notification_time: str = "09:00",
        language: str = "en",
        last_delivered_at: datetime = None,
        devices: list[dict] = None,
    ) -> Account:
        if account_id is None:
            account_id = f"user_{uuid.uuid4().hex[:8]}"

        account = Account(
            id=account_id,
            timezone=timezone,
            notification_time=notification_time,
            language=language,
            last_delivered_at=last_delivered_at,
        )
        db_session.add(account)

        for i, device in enumerate(devices or []):
            db_session.add(
                PushDevice(
                    account_id=account_id,
                    endpoint=device.get("endpoint", f"https://push.example.com/{account_id}/{i}"),
                    p256dh=device.get("p256dh", "p256dh-key"),
                    auth=device.get("auth", "auth-key"),
                    device_name=device.get("device_name", f"Device {i}"),
                    is_enabled=device.get("is_enabled", True),
                )
            )

        await db_session.commit()
        return account

    return _create_account


@pytest_asyncio.fixture
async def person_factory(db_session: AsyncSession):
    """Factory for creating people with reminders."""

    async def _create_person(
        account_id: str,
        name: str = "Ada",
        reminders: list[dict] = None,
        deleted_at: datetime = None,
    ) -> Person:
        person = Person(account_id=account_id, name=name, deleted_at=deleted_at)
        db_session.add(person)
        await db_session.flush()

        for data in reminders or []:
            db_session.add(
                Reminder(
                    person_id=person.id,
                    text=data.get("text", "Call"),
                    due_at_date=data["due_at_date"],
                    done=data.get("done", False),
                    deleted_at=data.get("deleted_at"),
                    repeat_interval=data.get("repeat_interval"),
                    repeat_unit=data.get("repeat_unit"),
                )
            )

        await db_session.commit()
        return person

    return _create_person


# ============================================================================
# In-Memory Test Helpers (no DB)
# ============================================================================


@pytest.fixture
def make_reminder():
    """Factory for in-memory Reminder objects (no DB)."""

    def _make(
        due_at_date: str = "2025-06-01",
        done: bool = False,
        deleted_at: datetime = None,
        permanently_deleted_at: datetime = None,
        repeat: Repeat = None,
    ) -> Reminder:
        reminder = Reminder(
            text="Call",
            due_at_date=due_at_date,
            done=done,
            deleted_at=deleted_at,
            permanently_deleted_at=permanently_deleted_at,
        )
        reminder.repeat = repeat
        return reminder

    return _make


@pytest.fixture
def make_person():
    """Factory for in-memory Person objects with reminders (no DB)."""

    def _make(
        reminders: list[Reminder] = None,
        deleted_at: datetime = None,
        permanently_deleted_at: datetime = None,
    ) -> Person:
        person = Person(
            name="Ada",
            deleted_at=deleted_at,
            permanently_deleted_at=permanently_deleted_at,
        )
        person.reminders = list(reminders or [])
        return person

    return _make


def _make_device(endpoint: str = "https://push.example.com/a", is_enabled: bool = True):
    return PushDeviceInfo(endpoint=endpoint, p256dh="p256dh", auth="auth", is_enabled=is_enabled)


class FakeNotificationStore:
    """In-memory NotificationStore that records writes.

    ``delay`` makes every load suspend, which lets concurrency tests observe
    how many account pipelines overlap.
    """

    def __init__(self, delay: float = 0.0) -> None:
        self.settings: dict[str, NotificationSettings] = {}
        self.people: dict[str, list[Person]] = {}
        self.delivered: dict[str, datetime] = {}
        self.removed: list[tuple[str, str]] = []
        self.fail_for: set[str] = set()
        self.delay = delay
        self.active = 0
        self.peak_active = 0

    def add_account(
        self,
        settings: NotificationSettings,
        people: list[Person] = None,
    ) -> None:
        self.settings[settings.account_id] = settings
        self.people[settings.account_id] = list(people or [])

    async def load_settings(self, account_id: str) -> NotificationSettings:
        self.active += 1
        self.peak_active = max(self.peak_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if account_id in self.fail_for:
                raise RuntimeError(f"storage unavailable for {account_id}")
            if account_id not in self.settings:
                raise AccountNotFoundError(account_id)
            return self.settings[account_id].model_copy(deep=True)
        finally:
            self.active -= 1

    async def load_people(self, account_id: str) -> list[Person]:
        return self.people.get(account_id, [])

    async def set_last_delivered_at(self, account_id: str, instant: datetime) -> None:
        self.delivered[account_id] = instant
        self.settings[account_id].last_delivered_at = instant

    async def remove_device(self, account_id: str, endpoint: str) -> bool:
        self.removed.append((account_id, endpoint))
        devices = self.settings[account_id].push_devices
        self.settings[account_id].push_devices = [d for d in devices if d.endpoint != endpoint]
        return len(devices) != len(self.settings[account_id].push_devices)


class FakeUserSource:
    """UserSource over a fixed list of account IDs."""

    def __init__(self, account_ids: list[str], fail_after: int | None = None) -> None:
        self.account_ids = account_ids
        self.fail_after = fail_after

    async def iter_account_ids(self) -> AsyncIterator[str]:
        for index, account_id in enumerate(self.account_ids):
            if self.fail_after is not None and index >= self.fail_after:
                raise UserSourceError("identity provider unavailable")
            yield account_id


class FakePushSender:
    """PushSender stand-in returning scripted results per endpoint."""

    def __init__(self, results: dict[str, SendResult] = None) -> None:
        self.results = results or {}
        self.sent: list[tuple[str, NotificationPayload]] = []

    async def send(self, device: PushDeviceInfo, payload: NotificationPayload) -> SendResult:
        self.sent.append((device.endpoint, payload))
        return self.results.get(device.endpoint, SendResult(ok=True))


@pytest.fixture
def fake_store() -> FakeNotificationStore:
    return FakeNotificationStore()


@pytest.fixture
def fake_sender() -> FakePushSender:
    return FakePushSender()


@pytest.fixture
def make_device():
    """Factory for detached PushDeviceInfo objects."""
    return _make_device


@pytest.fixture
def make_settings():
    """Factory for NotificationSettings with sensible defaults."""

    def _make(
        account_id: str = "user_1",
        timezone: str = "UTC",
        notification_time: str = "09:00",
        language: str = "en",
        last_delivered_at: datetime = None,
        endpoints: list[str] = None,
    ) -> NotificationSettings:
        if endpoints is None:
            endpoints = [f"https://push.example.com/{account_id}"]
        return NotificationSettings(
            account_id=account_id,
            timezone=timezone,
            notification_time=notification_time,
            language=language,
            last_delivered_at=last_delivered_at,
            push_devices=[_make_device(endpoint) for endpoint in endpoints],
        )

    return _make


@pytest.fixture
def make_store():
    return FakeNotificationStore


@pytest.fixture
def make_source():
    return FakeUserSource


@pytest.fixture
def make_sender():
    return FakePushSender
