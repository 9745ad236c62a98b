"""
Database engine, session factory and connection instrumentation
"""
import time
from typing import Optional

from sqlalchemy import event, text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from core.config import settings
from core.logging_config import get_logger
from infrastructure.models import Base


logger = get_logger(__name__)


def _build_async_url(database_url: str) -> str:
    """Make sure the URL names an async driver"""
    url = make_url(database_url)
    drivername = url.drivername

    if "+" in drivername:
        return database_url

    driver_map = {
        "postgresql": "postgresql+asyncpg",
        "postgres": "postgresql+asyncpg",
        "sqlite": "sqlite+aiosqlite",
    }

    if drivername not in driver_map:
        raise ValueError(f"Unsupported database driver: {drivername}. Use an async driver in DATABASE__URL")

    return url.set(drivername=driver_map[drivername]).render_as_string(hide_password=False)


def _is_memory_sqlite(url: str) -> bool:
    parsed = make_url(url)
    return parsed.get_backend_name() == "sqlite" and parsed.database in (None, "", ":memory:")


class Database:
    """Owns the async engine and hands out sessions.

    Two instruments are attached to the engine:

    * every statement is timed; slow ones are logged at warning level
    * a pooled connection held longer than ``checkout_warn_seconds`` is
      reported when it goes back to the pool
    """

    def __init__(
        self,
        url: str,
        *,
        echo: bool = False,
        pool_size: int = 20,
        max_overflow: int = 10,
        pool_timeout: float = 10.0,
        slow_query_ms: float = 500.0,
        checkout_warn_seconds: float = 5.0,
    ) -> None:
        self.url = _build_async_url(url)
        self.echo = echo
        self.pool_size = pool_size
        self.max_overflow = max_overflow
        self.pool_timeout = pool_timeout
        self.slow_query_ms = slow_query_ms
        self.checkout_warn_seconds = checkout_warn_seconds
        self._engine: Optional[AsyncEngine] = None
        self._sessionmaker: Optional[async_sessionmaker[AsyncSession]] = None

    @classmethod
    def from_settings(cls) -> "Database":
        db = settings.database
        return cls(
            db.url,
            echo=db.echo,
            pool_size=db.pool_size,
            max_overflow=db.max_overflow,
            pool_timeout=db.pool_timeout,
            slow_query_ms=db.slow_query_ms,
            checkout_warn_seconds=db.checkout_warn_seconds,
        )

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise RuntimeError("Database is not connected")
        return self._engine

    def connect(self) -> None:
        if self._engine is not None:
            return
        kwargs = {"echo": self.echo, "future": True}
        if _is_memory_sqlite(self.url):
            # a single shared connection keeps the in-memory schema alive
            kwargs.update(poolclass=StaticPool, connect_args={"check_same_thread": False})
        elif make_url(self.url).get_backend_name() != "sqlite":
            kwargs.update(
                pool_size=self.pool_size,
                max_overflow=self.max_overflow,
                pool_timeout=self.pool_timeout,
                pool_pre_ping=True,
            )
        self._engine = create_async_engine(self.url, **kwargs)
        self._instrument(self._engine)
        self._sessionmaker = async_sessionmaker(bind=self._engine, expire_on_commit=False)
        logger.info("database_connected", backend=make_url(self.url).get_backend_name())

    async def disconnect(self) -> None:
        if self._engine is None:
            return
        await self._engine.dispose()
        self._engine = None
        self._sessionmaker = None
        logger.info("database_disconnected")

    def session(self) -> AsyncSession:
        """A new session; the caller owns its transaction and closes it"""
        if self._sessionmaker is None:
            raise RuntimeError("Database is not connected")
        return self._sessionmaker()

    async def create_tables(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def drop_tables(self) -> None:
        """Drop every table. Test use only."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    async def ping(self) -> bool:
        """True when a trivial round trip succeeds"""
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception as exc:
            logger.warning("database_ping_failed", error=str(exc))
            return False

    def _instrument(self, engine: AsyncEngine) -> None:
        sync_engine = engine.sync_engine
        slow_query_ms = self.slow_query_ms
        checkout_warn_seconds = self.checkout_warn_seconds

        @event.listens_for(sync_engine, "before_cursor_execute")
        def _before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
            # kept on the execution context so a failed statement leaves nothing behind
            if context is not None:
                context._query_start_time = time.perf_counter()

        @event.listens_for(sync_engine, "after_cursor_execute")
        def _after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
            started = getattr(context, "_query_start_time", None)
            if started is None:
                return
            duration_ms = round((time.perf_counter() - started) * 1000, 2)
            if duration_ms >= slow_query_ms:
                logger.warning("slow_query", duration_ms=duration_ms, statement=statement[:200])
            else:
                logger.debug("query_executed", duration_ms=duration_ms, rows=cursor.rowcount)

        @event.listens_for(sync_engine, "handle_error")
        def _on_error(exception_context):
            started = getattr(exception_context.execution_context, "_query_start_time", None)
            logger.warning(
                "query_failed",
                duration_ms=None if started is None else round((time.perf_counter() - started) * 1000, 2),
                statement=(exception_context.statement or "")[:200],
                error_type=type(exception_context.original_exception).__name__,
            )

        @event.listens_for(sync_engine, "checkout")
        def _on_checkout(dbapi_connection, connection_record, connection_proxy):
            connection_record.info["checked_out_at"] = time.monotonic()

        @event.listens_for(sync_engine, "checkin")
        def _on_checkin(dbapi_connection, connection_record):
            started = connection_record.info.pop("checked_out_at", None)
            if started is None:
                return
            held = time.monotonic() - started
            if held > checkout_warn_seconds:
                logger.warning(
                    "connection_held_too_long",
                    held_seconds=round(held, 2),
                    threshold_seconds=checkout_warn_seconds,
                )
