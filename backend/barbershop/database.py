from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

from .config import settings
from .models.tables import Base


def make_engine(url: str) -> AsyncEngine:
    # SQLite: sessions run on their own connections, writers serialize
    # on the database lock and wait up to `timeout` seconds for it.
    if url.startswith("sqlite"):
        return create_async_engine(url, connect_args={"timeout": 15})
    return create_async_engine(url, pool_pre_ping=True)


def make_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        engine,
        autoflush=False,
        expire_on_commit=False,
    )


engine = make_engine(settings.resolved_database_url)

SessionLocal = make_session_factory(engine)


async def init_db(bind: AsyncEngine = engine) -> None:
    """Create tables if they do not exist."""
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
