import logging
from typing import AsyncIterator, Optional

from fastapi import Request
from sqlalchemy import insert, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

import inventory_ledger.models  # noqa: F401  registers mappers on Base.metadata
from inventory_ledger.models.base import Base
from inventory_ledger.models.sequence import KNOWN_SEQUENCES, LedgerSequence

logger = logging.getLogger(__name__)


class Database:
    """Owns the async engine and session factory.

    Constructed explicitly and started/stopped by the application lifespan,
    so tests can run several isolated databases side by side.
    """

    def __init__(self, url: str, echo: bool = False, **engine_kwargs):
        self.url = url
        self.echo = echo
        self.engine_kwargs = engine_kwargs
        self._engine: Optional[AsyncEngine] = None
        self._sessionmaker: Optional[async_sessionmaker] = None

    @property
    def started(self) -> bool:
        return self._engine is not None

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise RuntimeError("Database.start() has not been called")
        return self._engine

    async def start(self, create_schema: bool = True) -> None:
        if self._engine is not None:
            return
        self._engine = create_async_engine(self.url, echo=self.echo, **self.engine_kwargs)
        self._sessionmaker = async_sessionmaker(bind=self._engine, class_=AsyncSession, expire_on_commit=False)
        if create_schema:
            await self.create_all()
        logger.info(f"database started url={self._engine.url.render_as_string(hide_password=True)}")

    async def stop(self) -> None:
        if self._engine is None:
            return
        await self._engine.dispose()
        self._engine = None
        self._sessionmaker = None
        logger.info("database stopped")

    async def create_all(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
            existing = set((await conn.execute(select(LedgerSequence.name))).scalars().all())
            missing = [name for name in KNOWN_SEQUENCES if name not in existing]
            if missing:
                await conn.execute(insert(LedgerSequence), [{"name": name, "current_value": 0} for name in missing])
                logger.info(f"seeded sequences={missing}")

    def session(self) -> AsyncSession:
        if self._sessionmaker is None:
            raise RuntimeError("Database.start() has not been called")
        return self._sessionmaker()


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    database: Database = request.app.state.database
    async with database.session() as session:
        yield session
