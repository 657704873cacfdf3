from typing import AsyncIterator

from fastapi import Depends
from sqlalchemy import event
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from config import Settings, get_settings


def build_engine(url: str, echo: bool = False) -> AsyncEngine:
    if not url.startswith("sqlite"):
        return create_async_engine(url, echo=echo, pool_pre_ping=True)

    # writers queue on the database lock for up to 30s instead of failing at once
    engine = create_async_engine(url, echo=echo, connect_args={"timeout": 30})

    # pysqlite/aiosqlite need explicit BEGIN for SAVEPOINT to behave
    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")
    return engine


class Database:
    def __init__(self, settings: Settings):
        self.engine = build_engine(settings.database_url(), echo=settings.env.DEBUG)
        self.session_factory = async_sessionmaker(self.engine, expire_on_commit=False)

    async def dispose(self) -> None:
        await self.engine.dispose()


_database: Database | None = None


def get_database(settings: Settings = Depends(get_settings)) -> Database:
    global _database
    if _database is None:
        _database = Database(settings)
    return _database


async def get_session(database: Database = Depends(get_database)) -> AsyncIterator[AsyncSession]:
    async with database.session_factory() as session:
        yield session


def insert_ignore(session: AsyncSession, model, values: dict, *conflict_columns: str):
    """INSERT ... ON CONFLICT (<conflict_columns>) DO NOTHING RETURNING id.

    Executing the statement yields the new id, or nothing when the row
    already existed.
    """
    dialect = session.bind.dialect.name
    if dialect == "postgresql":
        stmt = pg_insert(model)
    elif dialect == "sqlite":
        stmt = sqlite_insert(model)
    else:
        raise NotImplementedError(f"insert_ignore is not supported for {dialect}")
    return (
        stmt.values(**values)
        .on_conflict_do_nothing(index_elements=list(conflict_columns))
        .returning(model.id)
    )
