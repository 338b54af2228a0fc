from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from app.core.settings import settings

_engine_kwargs = {"echo": settings.ENV == "dev" and settings.LOG_LEVEL == "DEBUG", "future": True}
if settings.SQLALCHEMY_URL.startswith("postgresql"):
    _engine_kwargs.update(pool_size=settings.DB_POOL_SIZE, max_overflow=settings.DB_MAX_OVERFLOW)

engine = create_async_engine(settings.SQLALCHEMY_URL, **_engine_kwargs)

AsyncSessionLocal = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_session():
    """
    Request-scoped session. Services own their commits; anything left open
    when the request dies (error, timeout, cancellation) is rolled back.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


@asynccontextmanager
async def transaction(session: AsyncSession):
    """
    One unit of atomicity: commit on clean exit, rollback on any exception.
    Works whether or not the session already auto-began a transaction.
    """
    try:
        yield session
        await session.commit()
    except BaseException:
        await session.rollback()
        raise
