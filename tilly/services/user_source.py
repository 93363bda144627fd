"""Paginated enumeration of accounts eligible for notification processing."""

import asyncio
from collections.abc import AsyncIterator
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tilly.core.logging import get_logger
from tilly.core.retry import RetryConfig, retry_with_backoff
from tilly.models.account import Account

logger = get_logger(__name__)


class UserSourceError(Exception):
    """Raised when accounts cannot be enumerated at all."""


class UserSource(Protocol):
    """Protocol for account sources."""

    def iter_account_ids(self) -> AsyncIterator[str]:
        """Yield account IDs one at a time, fetching pages lazily."""
        ...


class DatabaseUserSource:
    """Keyset-paginated account listing.

    Only one page is held in memory at a time. Each page fetch is bounded by a
    timeout and retried with backoff; exhausting retries raises
    ``UserSourceError``.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        page_size: int = 500,
        timeout_seconds: float = 30,
        max_attempts: int = 3,
    ) -> None:
        self._session_factory = session_factory
        self.page_size = page_size
        self.timeout_seconds = timeout_seconds
        self.retry_config = RetryConfig(
            max_attempts=max_attempts,
            backoff_base=0.5,
            backoff_max=5.0,
        )

    async def _fetch_page(self, after_id: str | None) -> list[str]:
        async with self._session_factory() as db:
            query = select(Account.id).order_by(Account.id).limit(self.page_size)
            if after_id is not None:
                query = query.where(Account.id > after_id)
            result = await db.execute(query)
            return list(result.scalars().all())

    async def _fetch_page_with_timeout(self, after_id: str | None) -> list[str]:
        return await asyncio.wait_for(self._fetch_page(after_id), timeout=self.timeout_seconds)

    async def iter_account_ids(self) -> AsyncIterator[str]:
        after_id: str | None = None
        page_number = 0
        while True:
            try:
                page = await retry_with_backoff(
                    lambda: self._fetch_page_with_timeout(after_id),
                    config=self.retry_config,
                    operation_name=f"list_accounts:page{page_number}",
                )
            except Exception as e:
                raise UserSourceError(f"Failed to list accounts: {e!r}") from e

            logger.bind(page=page_number, accounts=len(page)).debug("account_page_fetched")
            for account_id in page:
                yield account_id

            if len(page) < self.page_size:
                return
            after_id = page[-1]
            page_number += 1
