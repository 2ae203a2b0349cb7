from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
import logging

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

from core.config import settings, mask_database_url

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


engine = create_async_engine(settings.database_url, echo=settings.database_echo)
async_session_maker = async_sessionmaker(engine, expire_on_commit=False)


async def create_db_and_tables(bind: AsyncEngine = engine):
    # Import the model modules so every table is registered on Base.metadata
    from . import client, client_stock, product, users  # noqa: F401

    logger.info("Creating tables on %s", mask_database_url(str(bind.url)))
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_maker() as session:
        yield session


@asynccontextmanager
async def session_transaction(session_maker: async_sessionmaker = async_session_maker):
    """
    Open a fresh session and a transaction on it.

    Commits when the block exits cleanly and rolls back when it raises, so a
    caller only ever observes all of the block's writes or none of them.
    The session is private to the block and never shared with a request.
    """
    async with session_maker() as session:
        async with session.begin():
            yield session
