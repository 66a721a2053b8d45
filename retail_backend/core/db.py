from typing import AsyncGenerator
from sqlalchemy import event
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from retail_backend.core.config import DATABASE_URL, DB_TYPE
import ssl

Base = declarative_base()


def _connect_args() -> dict:
    if DB_TYPE != "postgres":
        return {}
    # SSL setup for hosted Postgres behind PgBouncer
    ssl_ctx = ssl.create_default_context()
    ssl_ctx.check_hostname = False
    ssl_ctx.verify_mode = ssl.CERT_NONE
    return {
        # Disable prepared statements (important for PgBouncer)
        "statement_cache_size": 0,
        "prepared_statement_cache_size": 0,
        "server_settings": {"prepareThreshold": "0"},  # must be string!
        "ssl": ssl_ctx,
    }


def build_engine(url: str = DATABASE_URL):
    kwargs = {"echo": False, "future": True, "connect_args": _connect_args()}
    if url.startswith("postgresql"):
        kwargs.update(pool_size=5, max_overflow=10)
    new_engine = create_async_engine(url, **kwargs)

    if new_engine.dialect.name == "sqlite":
        @event.listens_for(new_engine.sync_engine, "connect")
        def enable_sqlite_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return new_engine


def build_session_factory(bind) -> sessionmaker:
    return sessionmaker(
        bind=bind,
        class_=AsyncSession,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
    )


engine = build_engine()
AsyncSessionLocal = build_session_factory(engine)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionLocal() as session:
        yield session


def dialect_insert(db: AsyncSession, model):
    """Return an INSERT construct supporting ON CONFLICT for the session's backend."""
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return pg_insert(model)
    if dialect == "sqlite":
        return sqlite_insert(model)
    raise NotImplementedError(f"Upsert not supported for dialect '{dialect}'")


import retail_backend.models  # noqa: E402,F401


# Auto-create tables (optional for dev)
async def init_models(bind=None):
    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
