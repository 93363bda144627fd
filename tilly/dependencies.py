from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tilly.config import AppConfig, Settings, get_config, get_settings
from tilly.core.database import get_session_factory
from tilly.core.security import verify_cron_secret
from tilly.services.notification_store import SqlNotificationStore
from tilly.services.push_service import PushSender
from tilly.services.user_source import DatabaseUserSource

# Type aliases for dependency injection
AppSettings = Annotated[Settings, Depends(get_settings)]
Config = Annotated[AppConfig, Depends(get_config)]
SessionFactory = Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)]

bearer_scheme = HTTPBearer(auto_error=False)


async def require_cron_secret(
    settings: AppSettings,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> None:
    """Reject requests without the scheduler's bearer token."""
    token = credentials.credentials if credentials else None
    if not verify_cron_secret(token, settings.cron_secret):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )


def get_notification_store(session_factory: SessionFactory) -> SqlNotificationStore:
    return SqlNotificationStore(session_factory)


def get_user_source(session_factory: SessionFactory, config: Config) -> DatabaseUserSource:
    return DatabaseUserSource(
        session_factory,
        page_size=config.push.page_size,
        timeout_seconds=config.push.user_source_timeout_seconds,
        max_attempts=config.push.user_source_max_attempts,
    )


def get_push_sender(settings: AppSettings, config: Config) -> PushSender:
    return PushSender.from_settings(settings, config.push)


CronAuth = Depends(require_cron_secret)
Store = Annotated[SqlNotificationStore, Depends(get_notification_store)]
Source = Annotated[DatabaseUserSource, Depends(get_user_source)]
Sender = Annotated[PushSender, Depends(get_push_sender)]
