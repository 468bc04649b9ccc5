"""SQLAlchemy async engine and session setup.

Folder creation and every batch job rely on SAVEPOINTs (``begin_nested``),
so SQLite engines are switched to explicit ``BEGIN`` handling on creation.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from logtree_cloud.config import settings

_DIALECT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def enable_sqlite_savepoints(engine: AsyncEngine) -> None:
    """Let SQLAlchemy emit BEGIN itself; pysqlite's implicit transactions break SAVEPOINT."""

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")


def create_engine(url: str) -> AsyncEngine:
    kwargs = {"echo": settings.log_level.upper() == "DEBUG"}
    if not url.startswith("sqlite"):
        kwargs["pool_pre_ping"] = True
    new_engine = create_async_engine(url, **kwargs)
    if new_engine.dialect.name == "sqlite":
        enable_sqlite_savepoints(new_engine)
    return new_engine


def dialect_insert(db: AsyncSession):
    """Return the ``insert`` construct with ``on_conflict_do_update`` for the session's backend."""
    dialect_name = db.bind.dialect.name
    try:
        return _DIALECT_INSERTS[dialect_name]
    except KeyError as exc:
        raise RuntimeError(f"Upserts are not supported on {dialect_name}") from exc


engine = create_engine(settings.database_url)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one session and one transaction per request."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """Create all tables in dev. Alembic owns the schema everywhere else."""
    from logtree_cloud.models.base import Base

    import logtree_cloud.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_engine() -> None:
    await engine.dispose()
