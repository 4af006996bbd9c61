"""Database engine and session handling for the SQL document store."""

import asyncio
import logging
from typing import AsyncGenerator, Optional
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import (
    create_async_engine as sa_create_async_engine,
    AsyncSession,
    async_sessionmaker,
    AsyncEngine,
)
from sqlalchemy.engine import make_url
from sqlalchemy.pool import StaticPool

from . import models

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./card_gateway.db"


def get_database_url(db_url: Optional[str] = None) -> str:
    """
    Normalise a database URL for the async drivers.
    Falls back to a local SQLite file when no URL is configured.
    """
    if db_url:
        # Convert postgresql:// to postgresql+asyncpg://
        if db_url.startswith("postgresql://"):
            db_url = db_url.replace("postgresql://", "postgresql+asyncpg://", 1)
        # Convert postgres:// to postgresql+asyncpg://
        elif db_url.startswith("postgres://"):
            db_url = db_url.replace("postgres://", "postgresql+asyncpg://", 1)
        return db_url
    return DEFAULT_DATABASE_URL


def is_sqlite(url: str) -> bool:
    return make_url(url).get_backend_name() == "sqlite"


def is_memory_sqlite(url: str) -> bool:
    parsed = make_url(url)
    return parsed.get_backend_name() == "sqlite" and parsed.database in (None, "", ":memory:")


def create_async_engine(
    database_url: Optional[str] = None,
    echo: bool = False,
    pool_size: int = 5,
    max_overflow: int = 10,
) -> AsyncEngine:
    """
    Create an async SQLAlchemy engine.
    
    Args:
        database_url: Database connection URL, normalised by get_database_url().
        echo: If True, log all SQL statements.
        pool_size: Number of connections to keep in the pool.
        max_overflow: Maximum overflow connections beyond pool_size.
    
    Returns:
        AsyncEngine instance.
    """
    url = get_database_url(database_url)

    # An in-memory database lives in one connection, so every session must share it
    if is_memory_sqlite(url):
        return sa_create_async_engine(
            url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    if is_sqlite(url):
        return sa_create_async_engine(url, echo=echo)

    return sa_create_async_engine(
        url,
        echo=echo,
        pool_size=pool_size,
        max_overflow=max_overflow,
    )


class DatabaseManager:
    """
    Owns one engine and its session factory.
    
    Example:
        db_manager = DatabaseManager("sqlite+aiosqlite:///:memory:")
        await db_manager.initialize()
        
        async with db_manager.session() as session:
            # use session
            pass
        
        await db_manager.shutdown()
    """
    
    def __init__(
        self,
        database_url: Optional[str] = None,
        echo: bool = False,
        pool_size: int = 5,
        max_overflow: int = 10,
    ):
        self.database_url = get_database_url(database_url)
        self.echo = echo
        self.pool_size = pool_size
        self.max_overflow = max_overflow
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker[AsyncSession]] = None
        # SQLite allows one writer; sessions are serialized per manager
        self._lock: Optional[asyncio.Lock] = None
    
    @property
    def is_initialized(self) -> bool:
        return self._engine is not None

    async def initialize(self, create_tables: bool = True) -> None:
        """Initialize the database connection."""
        logger.info("Initializing database connection...")
        self._engine = create_async_engine(
            self.database_url,
            self.echo,
            self.pool_size,
            self.max_overflow,
        )
        self._session_factory = async_sessionmaker(
            self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
        if is_sqlite(self.database_url):
            self._lock = asyncio.Lock()
        
        if create_tables:
            async with self._engine.begin() as conn:
                await conn.run_sync(models.Base.metadata.create_all)
                logger.info("Database tables created successfully.")
    
    async def shutdown(self) -> None:
        """Shutdown the database connection."""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None
            self._lock = None
            logger.info("Database connection closed.")
    
    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Get a database session; rolled back if the block raises.

        On SQLite only one session is open at a time.
        """
        if self._session_factory is None:
            raise RuntimeError(
                "DatabaseManager not initialized. Call initialize() first."
            )
        
        lock = self._lock
        if lock is not None:
            await lock.acquire()
        try:
            async with self._session_factory() as session:
                try:
                    yield session
                except Exception:
                    await session.rollback()
                    raise
        finally:
            if lock is not None:
                lock.release()
