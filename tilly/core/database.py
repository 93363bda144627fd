from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from tilly.config import get_settings

settings = get_settings()

engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_pre_ping=True,
    pool_size=10,
    max_overflow=20,
    pool_recycle=280,
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Dependency that provides the session factory.

    The delivery run opens one session per account task, so it needs the
    factory rather than a single request-scoped session.
    """
    return AsyncSessionLocal

