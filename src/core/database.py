from collections.abc import AsyncGenerator
from pathlib import Path

from loguru import logger
from sqlalchemy import event
from sqlalchemy.engine.interfaces import DBAPIConnection
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import ConnectionPoolEntry
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from src.config.settings import settings

DATABASE_URL = f"sqlite+aiosqlite:///{settings.SQLITE_DB_PATH}"

engine: AsyncEngine = create_async_engine(
    DATABASE_URL,
    echo=settings.DEBUG,
    connect_args={
        "check_same_thread": False,
        "timeout": 30.0,  # busy timeout for overlapping request writes
    },
)


@event.listens_for(engine.sync_engine, "connect")
def set_sqlite_pragma(
    dbapi_connection: DBAPIConnection,
    connection_record: ConnectionPoolEntry
) -> None:
    """Configures SQLite connection pragmas for concurrent request handling.

    Enables Write-Ahead Logging (WAL) so readers never block on the single
    writer, and sets synchronous mode to NORMAL.

    Args:
        dbapi_connection: The raw DBAPI connection object.
        connection_record: The connection pool record.

    Raises:
        sqlite3.OperationalError: If the database is locked and pragmas cannot be set.
    """
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.execute("PRAGMA busy_timeout=30000")
    except Exception as e:
        logger.error(f"Failed to set SQLite pragmas: {e}")
        raise
    finally:
        cursor.close()


async_session_maker = sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False
)


def _import_models() -> None:
    """Registers every table model on the shared SQLModel metadata."""
    import src.domain.audit.models  # noqa: F401
    import src.domain.catalog.models  # noqa: F401
    import src.domain.invitations.models  # noqa: F401
    import src.domain.policy.models  # noqa: F401
    import src.domain.users.models  # noqa: F401


def _ensure_db_directory() -> None:
    if settings.SQLITE_DB_PATH != ":memory:":
        Path(settings.SQLITE_DB_PATH).parent.mkdir(parents=True, exist_ok=True)


async def init_db(target: AsyncEngine | None = None) -> None:
    """Creates any missing tables. Safe to call repeatedly.

    Args:
        target: Engine to initialise; defaults to the application engine, whose
            database directory is created on first use.
    """
    _import_models()
    if target is None:
        _ensure_db_directory()
    target = target or engine
    async with target.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    logger.info("Database schema ensured at {}", target.url)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Dependency provider for asynchronous database sessions.

    Yields:
        AsyncSession: An active SQLAlchemy/SQLModel asynchronous session.
    """
    async with async_session_maker() as session:
        yield session
