"""Database engine, session factory, and declarative base.

  - Base            → every access-control table (single schema)
  - async_session   → session factory used by the engine and the audit writer
  - get_db()        → FastAPI dependency yielding a request-scoped session
"""

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    create_async_engine,
    async_sessionmaker,
)
from sqlalchemy.orm import DeclarativeBase

from jewelcrm.config import settings

engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_size=20,
    max_overflow=10,
)

async_session = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


class Base(DeclarativeBase):
    """Declarative base for all access-control models."""
    pass


async def get_db() -> AsyncSession:
    """Yield a session for the duration of a request."""
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
