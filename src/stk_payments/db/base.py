from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Annotated
from datetime import datetime, timezone

from sqlalchemy import MetaData, DateTime
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase, mapped_column

convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

class Base(DeclarativeBase):
    metadata = MetaData(naming_convention=convention)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)

# Время ставим на стороне Python: func.now() в SQLite имеет секундную точность,
# а история платежей сортируется по created_at.
CreatedAt = Annotated[datetime, mapped_column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)]

@asynccontextmanager
async def get_session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        try:
            yield session
        finally:
            await session.close()
