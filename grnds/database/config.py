import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool


class Base(DeclarativeBase):
    pass


class Database:
    """
    Engine + session factory for the player store.
    Built once by the entry point and handed to every repository.
    """

    def __init__(self, url: str, echo: bool = False):
        self.url = url
        engine_kwargs = {"echo": echo, "future": True}

        if url.startswith("sqlite") and ":memory:" in url:
            # A single shared connection, otherwise every session sees an empty database
            engine_kwargs["poolclass"] = StaticPool
            engine_kwargs["connect_args"] = {"check_same_thread": False}
        elif url.startswith("sqlite"):
            # aiosqlite does not create the parent folder of the file
            path = url.split("///", 1)[-1]
            folder = os.path.dirname(path)
            if folder:
                os.makedirs(folder, exist_ok=True)

        self.engine = create_async_engine(url, **engine_kwargs)
        self.async_session = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False
        )

    async def init_db(self):
        # Models must be imported so the tables are registered on Base.metadata
        import grnds.database.models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self):
        await self.engine.dispose()

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        async with self.async_session() as session:
            try:
                yield session
                # Commit only when the block finished without an exception.
                await session.commit()
            except Exception:
                await session.rollback()
                raise
