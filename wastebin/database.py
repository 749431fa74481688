"""
Database connection layer.
Establishes the SQLAlchemy engine (local SQLite file or remote PostgreSQL)
with retry and backoff, configures the connection pool, and provides
health checks and a bounded graceful close.
"""
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, Optional

from sqlalchemy import create_engine, event, exc, func, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from wastebin.config import Settings
from wastebin.errors import (
    CloseTimeout,
    ConnectionFailure,
    HealthCheckFailure,
    StorageFailure,
)
from wastebin.records import Base, PasteRow

logger = logging.getLogger(__name__)

PING_TIMEOUT_SECONDS = 5.0
CLOSE_TIMEOUT_SECONDS = 10.0
DEFAULT_CONNECT_ATTEMPTS = 3
DEFAULT_MAX_IDLE_CONNS = 5
DEFAULT_MAX_OPEN_CONNS = 25
CONN_MAX_LIFETIME_SECONDS = 30 * 60
CONN_MAX_IDLE_SECONDS = 10 * 60
MAX_TIMED_WORKERS = 4

EngineFactory = Callable[[Settings], Engine]

_timed_calls = ThreadPoolExecutor(max_workers=MAX_TIMED_WORKERS, thread_name_prefix="wastebin-db")


def backoff_seconds(attempt: int) -> int:
    """Quadratic backoff: 1s, 4s, 9s, ..."""
    return attempt * attempt


def _run_with_timeout(fn: Callable[[], Any], timeout: float, what: str) -> Any:
    """
    Run ``fn`` on the shared worker pool and wait at most ``timeout`` seconds.

    A call that overruns is abandoned, not interrupted. At most
    MAX_TIMED_WORKERS calls hang at once; later calls queue behind them
    and time out in turn, so a stuck database never piles up threads.

    Raises:
        TimeoutError: if ``fn`` did not finish in time
    """
    future = _timed_calls.submit(fn)
    try:
        return future.result(timeout=timeout)
    except FutureTimeoutError as e:
        future.cancel()
        raise TimeoutError(f"{what} timed out after {timeout:g}s") from e


def _ping(engine: Engine) -> None:
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))


def _count_pastes(engine: Engine) -> int:
    with engine.connect() as conn:
        return conn.execute(select(func.count()).select_from(PasteRow)).scalar_one()


def pool_options(settings: Settings) -> Dict[str, Any]:
    """
    Translate the configured pool limits into QueuePool arguments.

    SQLAlchemy keeps ``pool_size`` connections around when idle and opens
    up to ``max_overflow`` more under load, so the idle limit maps to
    ``pool_size`` and the open limit to their sum.
    """
    max_idle = settings.DB_MAX_IDLE_CONNS
    if max_idle <= 0:
        max_idle = DEFAULT_MAX_IDLE_CONNS
    max_open = settings.DB_MAX_OPEN_CONNS
    if max_open <= 0:
        max_open = DEFAULT_MAX_OPEN_CONNS
    max_idle = min(max_idle, max_open)

    return {
        "pool_size": max_idle,
        "max_overflow": max_open - max_idle,
        "pool_recycle": CONN_MAX_LIFETIME_SECONDS,
        "pool_pre_ping": True,
    }


def configure_pool(engine: Engine, max_idle_time: float = CONN_MAX_IDLE_SECONDS) -> None:
    """Discard pooled connections that sat idle longer than ``max_idle_time``."""

    @event.listens_for(engine, "checkin")
    def _stamp_checkin(dbapi_connection, connection_record):
        connection_record.info["checked_in_at"] = time.monotonic()

    @event.listens_for(engine, "checkout")
    def _expire_idle(dbapi_connection, connection_record, connection_proxy):
        checked_in_at = connection_record.info.get("checked_in_at")
        if checked_in_at is not None and time.monotonic() - checked_in_at > max_idle_time:
            # The pool invalidates the record and retries with a fresh connection
            connection_record.info.pop("checked_in_at", None)
            raise exc.DisconnectionError("connection exceeded max idle time")


def create_engine_for(settings: Settings) -> Engine:
    """Open an engine for the configured backing store."""
    url = settings.database_url()

    if settings.LOCAL_DB:
        logger.info(f"Connecting to local SQLite database: {settings.DB_PATH}")
        if settings.DB_PATH == ":memory:":
            # One shared connection, otherwise each thread sees its own empty database
            return create_engine(
                url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
                echo=settings.DEBUG,
            )
        options = pool_options(settings)
        engine = create_engine(url, echo=settings.DEBUG, **options)
    else:
        logger.info(
            f"Connecting to remote PostgreSQL database: host={settings.DB_HOST} "
            f"port={settings.DB_PORT} name={settings.DB_NAME}"
        )
        options = pool_options(settings)
        engine = create_engine(
            url,
            connect_args={"connect_timeout": int(PING_TIMEOUT_SECONDS)},
            echo=settings.DEBUG,
            **options,
        )

    configure_pool(engine)
    logger.info(
        f"Database connection pool configured: max_idle_conns={options['pool_size']} "
        f"max_open_conns={options['pool_size'] + options['max_overflow']} "
        f"conn_max_lifetime={CONN_MAX_LIFETIME_SECONDS}s conn_max_idle_time={CONN_MAX_IDLE_SECONDS}s"
    )
    return engine


class ConnectionManager:
    """Owns the database handle for the lifetime of the application."""

    def __init__(
        self,
        settings: Settings,
        engine_factory: Optional[EngineFactory] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.settings = settings
        self._engine_factory = engine_factory or create_engine_for
        self._sleep = sleep
        self._engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker] = None

    @property
    def engine(self) -> Optional[Engine]:
        return self._engine

    @property
    def is_connected(self) -> bool:
        return self._engine is not None

    @property
    def mode(self) -> str:
        return "sqlite" if self.settings.LOCAL_DB else "postgresql"

    def connect(self, max_attempts: Optional[int] = None) -> Engine:
        """
        Open and verify the database connection, retrying with backoff.

        Args:
            max_attempts: Number of attempts (defaults to DB_CONNECT_RETRIES)

        Returns:
            The live engine, also installed on this manager

        Raises:
            ConnectionFailure: if every attempt failed
        """
        if max_attempts is None:
            max_attempts = self.settings.DB_CONNECT_RETRIES or DEFAULT_CONNECT_ATTEMPTS
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        last_error: Optional[Exception] = None
        for attempt in range(1, max_attempts + 1):
            logger.info(f"Attempting database connection ({self.mode}), attempt {attempt}/{max_attempts}")
            engine = None
            try:
                engine = self._engine_factory(self.settings)
                _run_with_timeout(lambda: _ping(engine), PING_TIMEOUT_SECONDS, "database ping")
            except Exception as e:
                last_error = e
                logger.warning(f"Database connection failed (attempt {attempt}/{max_attempts}): {type(e).__name__}: {e}")
                if engine is not None:
                    engine.dispose()
                if attempt < max_attempts:
                    delay = backoff_seconds(attempt)
                    logger.info(f"Retrying database connection in {delay}s")
                    self._sleep(delay)
                continue

            self._engine = engine
            self._session_factory = sessionmaker(bind=engine, class_=Session, expire_on_commit=False)
            logger.info(f"Database connection established successfully on attempt {attempt}")
            return engine

        raise ConnectionFailure(
            f"failed to connect to the database after {max_attempts} attempts: {last_error}"
        ) from last_error

    def migrate(self) -> None:
        """Create the pastes table if it does not exist yet."""
        if self._engine is None:
            raise StorageFailure("database connection is not initialized")
        logger.info("Starting database migration")
        try:
            Base.metadata.create_all(self._engine)
        except exc.SQLAlchemyError as e:
            logger.error(f"Error migrating the database: {e}")
            raise StorageFailure(f"auto migrate: {e}") from e
        logger.info("Database migration completed successfully")

    @contextmanager
    def session(self) -> Iterator[Session]:
        if self._session_factory is None:
            raise StorageFailure("database connection is not initialized")
        with self._session_factory() as session:
            yield session

    def health_check(self, timeout: float = PING_TIMEOUT_SECONDS) -> int:
        """
        Ping the database, then run a trivial query against the pastes table.

        Returns:
            Number of stored pastes

        Raises:
            HealthCheckFailure: with ``reason`` naming the failing stage
        """
        engine = self._engine
        if engine is None:
            raise HealthCheckFailure(
                HealthCheckFailure.NOT_INITIALIZED,
                "database connection is not initialized",
            )

        deadline = time.monotonic() + timeout

        try:
            _run_with_timeout(lambda: _ping(engine), timeout, "database health ping")
        except TimeoutError as e:
            raise HealthCheckFailure(HealthCheckFailure.TIMEOUT, f"database health check timed out: {e}") from e
        except Exception as e:
            raise HealthCheckFailure(HealthCheckFailure.PING_FAILED, f"database health check failed: {e}") from e

        remaining = max(deadline - time.monotonic(), 0.0)
        try:
            return _run_with_timeout(lambda: _count_pastes(engine), remaining, "database health query")
        except TimeoutError as e:
            raise HealthCheckFailure(HealthCheckFailure.TIMEOUT, f"database health check timed out: {e}") from e
        except Exception as e:
            raise HealthCheckFailure(HealthCheckFailure.QUERY_FAILED, f"database query test failed: {e}") from e

    def close(self, timeout: float = CLOSE_TIMEOUT_SECONDS) -> None:
        """
        Dispose of the connection pool. Safe to call more than once.

        Raises:
            CloseTimeout: if disposing did not finish within ``timeout``
            StorageFailure: if disposing raised
        """
        engine = self._engine
        if engine is None:
            logger.info("Database connection is already closed, nothing to close")
            return

        self._engine = None
        self._session_factory = None
        logger.info("Closing database connection...")

        try:
            _run_with_timeout(engine.dispose, timeout, "database close")
        except TimeoutError as e:
            logger.warning("Database connection close timed out")
            raise CloseTimeout("database connection close timed out") from e
        except Exception as e:
            logger.error(f"Error closing the database connection: {e}")
            raise StorageFailure(f"error closing the database connection: {e}") from e

        logger.info("Database connection closed successfully")
