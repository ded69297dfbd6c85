"""
Conexión a base de datos PostgreSQL

SQLAlchemy provides the connection pool (pre-ping, overflow); queries run as
raw SQL on the pooled psycopg2 connections with RealDictCursor.

The Database object is created once in the application lifespan and
injected into repositories, never imported as a module global.
"""
import logging
import time
from contextlib import contextmanager
from typing import Iterator

import psycopg2
from psycopg2.extras import RealDictCursor
from sqlalchemy import create_engine
from sqlalchemy import exc as sa_exc

from catalog_api.core.config import Settings
from catalog_api.core.exceptions import StoreUnavailableError

logger = logging.getLogger(__name__)

# Errors that mean "the store is not reachable right now"
CONNECTION_ERRORS = (psycopg2.OperationalError, sa_exc.OperationalError, sa_exc.TimeoutError)


class Database:
    """
    Pooled access to PostgreSQL

    Usage:
        db = Database.from_settings(settings)
        with db.connection() as conn:
            cursor = conn.cursor(cursor_factory=RealDictCursor)
            cursor.execute("SELECT 1")
        db.dispose()
    """

    def __init__(self, engine, max_retries: int = 3, retry_delay: float = 1.0):
        self.engine = engine
        self.max_retries = max_retries
        self.retry_delay = retry_delay

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        if not settings.DATABASE_URL:
            raise ValueError("DATABASE_URL not configured")

        engine = create_engine(
            settings.DATABASE_URL,
            pool_pre_ping=True,  # Verificar conexión antes de usar
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
        )
        return cls(
            engine,
            max_retries=settings.DB_CONNECT_RETRIES,
            retry_delay=settings.DB_RETRY_DELAY_SECONDS,
        )

    def _connect_with_retry(self):
        """
        Check out a psycopg2 connection from the pool, retrying on
        connection failures with exponential backoff.

        Raises:
            StoreUnavailableError: If all retry attempts fail
        """
        last_error = None

        for attempt in range(1, self.max_retries + 1):
            try:
                logger.debug(f"Database connection attempt {attempt}/{self.max_retries}")
                return self.engine.raw_connection()

            except CONNECTION_ERRORS as e:
                last_error = e
                error_msg = str(e)

                if "SSL connection has been closed unexpectedly" in error_msg:
                    logger.warning(f"SSL connection error on attempt {attempt}/{self.max_retries}: {error_msg}")
                else:
                    logger.warning(f"Connection error on attempt {attempt}/{self.max_retries}: {error_msg}")

                if attempt < self.max_retries:
                    delay = self.retry_delay * (2 ** (attempt - 1))
                    logger.info(f"Retrying in {delay:.2f} seconds...")
                    time.sleep(delay)

        logger.error(f"All {self.max_retries} connection attempts failed")
        raise StoreUnavailableError("Database unavailable", error=str(last_error))

    @contextmanager
    def connection(self) -> Iterator:
        """Yield a pooled connection; it goes back to the pool on exit."""
        conn = self._connect_with_retry()
        try:
            yield conn
        finally:
            conn.close()

    def ping(self) -> float:
        """Run SELECT 1 and return the latency in milliseconds"""
        start = time.time()
        with self.connection() as conn:
            cursor = conn.cursor(cursor_factory=RealDictCursor)
            try:
                cursor.execute("SELECT 1")
                cursor.fetchone()
            finally:
                cursor.close()
        return round((time.time() - start) * 1000, 2)

    def dispose(self) -> None:
        self.engine.dispose()
