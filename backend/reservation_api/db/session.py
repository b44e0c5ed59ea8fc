"""
Async engine and per-request session dependency.

Each request gets one session and one transaction: committed when the
handler returns, rolled back when it raises. Side effects that must only
happen for committed work, such as emails, are queued with
call_after_commit.
"""

from typing import AsyncGenerator, Callable

from sqlalchemy import event as sa_event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import Session

from reservation_api.core.config import get_settings

settings = get_settings()

engine = create_async_engine(
    settings.DATABASE_URL,
    pool_size=settings.DB_POOL_SIZE,
    max_overflow=settings.DB_MAX_OVERFLOW,
    pool_timeout=settings.DB_POOL_TIMEOUT,
    pool_recycle=settings.DB_POOL_RECYCLE,
    pool_pre_ping=True,
    echo=settings.DEBUG,
)

AsyncSessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


AFTER_COMMIT_KEY = "after_commit_callbacks"


def call_after_commit(db: AsyncSession, callback: Callable[[], None]) -> None:
    """
    Run `callback` once the session's current transaction commits.
    Callbacks queued in a transaction that rolls back are discarded.
    """
    sync_session = db.sync_session
    callbacks = sync_session.info.get(AFTER_COMMIT_KEY)
    if callbacks is None:
        callbacks = sync_session.info[AFTER_COMMIT_KEY] = []
        sa_event.listen(sync_session, "after_commit", _run_after_commit)
        sa_event.listen(sync_session, "after_rollback", _discard_after_commit)
    callbacks.append(callback)


def _run_after_commit(session: Session) -> None:
    callbacks = session.info[AFTER_COMMIT_KEY]
    pending = list(callbacks)
    callbacks.clear()
    for callback in pending:
        callback()


def _discard_after_commit(session: Session) -> None:
    session.info[AFTER_COMMIT_KEY].clear()
