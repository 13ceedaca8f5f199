from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool
from .config import settings


class Base(DeclarativeBase):
    pass


def make_engine(url: str) -> AsyncEngine:
    # in-memory sqlite has to share one connection or every session sees an empty db
    if url.startswith("sqlite") and (":memory:" in url or url.endswith("://")):
        return create_async_engine(url, poolclass=StaticPool, connect_args={"check_same_thread": False})
    return create_async_engine(url, pool_pre_ping=not url.startswith("sqlite"))


def make_sessionmaker(bind: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(bind, expire_on_commit=False)


engine = make_engine(settings.database_url)
SessionLocal = make_sessionmaker(engine)


async def init_db(bind: AsyncEngine | None = None):
    from . import models  # noqa: F401  registers the tables on Base.metadata

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
