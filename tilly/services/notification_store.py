"""Storage access for the delivery pipeline.

``NotificationStore`` is the narrow interface the pipeline depends on. The SQL
implementation opens a fresh session per call because account tasks run
concurrently and an ``AsyncSession`` must not be shared between them.
"""

from datetime import datetime
from typing import Protocol

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tilly.core.datetime_utils import to_naive_utc
from tilly.core.logging import get_logger
from tilly.models.account import Account
from tilly.models.person import Person
from tilly.models.push_device import PushDevice
from tilly.schemas.notifications import NotificationSettings, PushDeviceInfo

logger = get_logger(__name__)


class AccountNotFoundError(Exception):
    """Raised when an account has no stored settings."""

    def __init__(self, account_id: str) -> None:
        super().__init__(f"account {account_id} not found")
        self.account_id = account_id


class NotificationStore(Protocol):
    """Protocol for the storage collaborator."""

    async def load_settings(self, account_id: str) -> NotificationSettings: ...

    async def load_people(self, account_id: str) -> list[Person]: ...

    async def set_last_delivered_at(self, account_id: str, instant: datetime) -> None: ...

    async def remove_device(self, account_id: str, endpoint: str) -> bool: ...


class SqlNotificationStore:
    """NotificationStore backed by the SQLAlchemy models."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def load_settings(self, account_id: str) -> NotificationSettings:
        async with self._session_factory() as db:
            account = await db.get(Account, account_id)
            if account is None:
                raise AccountNotFoundError(account_id)

            return NotificationSettings(
                account_id=account.id,
                timezone=account.timezone or "UTC",
                notification_time=account.notification_time or "12:00",
                language=account.language or "en",
                last_delivered_at=account.last_delivered_at,
                push_devices=[
                    PushDeviceInfo(
                        endpoint=device.endpoint,
                        p256dh=device.p256dh,
                        auth=device.auth,
                        is_enabled=device.is_enabled,
                        device_name=device.device_name,
                    )
                    for device in account.push_devices
                ],
            )

    async def load_people(self, account_id: str) -> list[Person]:
        """Load people with their reminders eagerly attached."""
        async with self._session_factory() as db:
            result = await db.execute(select(Person).where(Person.account_id == account_id))
            return list(result.scalars().all())

    async def set_last_delivered_at(self, account_id: str, instant: datetime) -> None:
        async with self._session_factory() as db:
            await db.execute(
                update(Account)
                .where(Account.id == account_id)
                .values(last_delivered_at=to_naive_utc(instant))
            )
            await db.commit()

    async def remove_device(self, account_id: str, endpoint: str) -> bool:
        async with self._session_factory() as db:
            result = await db.execute(
                delete(PushDevice).where(
                    PushDevice.account_id == account_id,
                    PushDevice.endpoint == endpoint,
                )
            )
            await db.commit()
            return bool(result.rowcount)


async def mark_delivered(store: NotificationStore, account_id: str, now_utc: datetime) -> None:
    """Record that today's delivery decision for an account has been made."""
    await store.set_last_delivered_at(account_id, now_utc)
    logger.bind(user_id=account_id, delivered_at=now_utc.isoformat()).debug("marked_delivered")


async def remove_device_by_endpoint(
    store: NotificationStore, account_id: str, endpoint: str
) -> None:
    """Prune a push subscription the transport reported as gone."""
    removed = await store.remove_device(account_id, endpoint)
    if removed:
        logger.bind(user_id=account_id, endpoint=endpoint[-10:]).info("stale_device_removed")
