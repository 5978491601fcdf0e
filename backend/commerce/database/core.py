# backend/commerce/database/core.py

"""
Async database core for composition-based architecture.

Operations classes receive an AsyncDatabase instance and borrow
transactional connections from it; nothing here knows about tables.
"""

import asyncio
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Optional

import psycopg
from loguru import logger
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool, PoolTimeout

from ..config import settings
from ..utils.time_utils import utc_now


class AsyncDatabaseCore:
    """
    Core async database functionality.

    Owns the connection pool and hands out connections that are already
    inside a transaction.
    """

    def __init__(self, database_url: Optional[str] = None) -> None:
        """Initialize with an empty connection pool."""
        self._database_url = database_url or settings.database_url
        self._pool: Optional[AsyncConnectionPool] = None
        self._connection_attempts = 0
        self._failed_connections = 0
        self._last_health_check = None
        self._pool_created_at = None

    async def initialize(self) -> None:
        """
        Initialize the async connection pool.

        Must be called before any database operation, typically from the
        FastAPI lifespan or the worker entrypoint.

        Raises:
            psycopg.Error: If the pool cannot be opened
        """
        try:
            self._pool = AsyncConnectionPool(
                self._database_url,
                min_size=2,
                max_size=min(15, settings.db_pool_size),
                max_waiting=min(15, settings.db_max_overflow),
                timeout=settings.db_pool_timeout,
                kwargs={
                    "row_factory": dict_row,
                    "connect_timeout": 15,
                    "keepalives_idle": 300,
                    "keepalives_interval": 60,
                    "keepalives_count": 5,
                },
                open=False,
            )
            await self._pool.open()
            self._pool_created_at = utc_now()
            self._connection_attempts = 0
            self._failed_connections = 0
            logger.info("✅ Database connection pool initialized")
        except (psycopg.Error, ConnectionError, OSError) as e:
            self._failed_connections += 1
            logger.error(f"❌ Failed to initialize async database pool: {e}")
            raise

    async def close(self) -> None:
        """Close the connection pool."""
        if self._pool:
            await self._pool.close()
            self._pool = None
            logger.info("Database connection pool closed")

    async def check_pool_health(self) -> bool:
        """
        Check if the connection pool can serve a trivial query.

        Returns:
            True if pool is healthy, False otherwise
        """
        if not self._pool:
            return False

        try:
            async with self._pool.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute("SELECT 1")
                    await cur.fetchone()

            self._last_health_check = utc_now()
            return True
        except (psycopg.Error, PoolTimeout, OSError) as e:
            self._failed_connections += 1
            logger.warning(f"⚠️ Async database health check failed: {e}")
            return False

    async def recover_connection_pool(self) -> bool:
        """
        Recreate the connection pool after connection failures.

        Returns:
            True if recovery successful, False otherwise
        """
        logger.warning("Attempting async database connection pool recovery...")

        if self._pool:
            try:
                await self._pool.close()
            except (psycopg.Error, OSError) as e:
                logger.warning(f"Error closing old async pool: {e}")

        # Avoid rapid reconnection attempts
        await asyncio.sleep(1)

        try:
            await self.initialize()
        except (psycopg.Error, ConnectionError, OSError) as e:
            logger.error(f"❌ Async database connection pool recovery failed: {e}")
            return False

        if await self.check_pool_health():
            logger.info("✅ Async database connection pool recovery successful")
            return True

        logger.error("❌ Async database pool recovery failed - health check failed")
        return False

    async def _acquire(
        self, auto_recover: bool, max_retries: int
    ) -> "tuple[AsyncConnectionPool, Any]":
        """Borrow a connection, retrying and recovering the pool on failures."""
        retries = 0
        while True:
            if not self._pool:
                raise RuntimeError("Database pool not initialized")
            pool = self._pool
            try:
                self._connection_attempts += 1
                conn = await pool.getconn()
                return pool, conn
            except (psycopg.OperationalError, PoolTimeout) as e:
                self._failed_connections += 1
                logger.warning(
                    f"Async database connection failed "
                    f"(attempt {retries + 1}/{max_retries + 1}): {e}"
                )
                if retries >= max_retries:
                    logger.error(
                        f"Async database connection failed after "
                        f"{max_retries + 1} attempts"
                    )
                    raise ConnectionError("Database connection failed") from e

                if auto_recover and isinstance(e, psycopg.OperationalError):
                    if not await self.recover_connection_pool():
                        logger.warning(
                            f"Async database recovery attempt {retries + 1} failed"
                        )
                else:
                    await asyncio.sleep(0.5)
                retries += 1

    @asynccontextmanager
    async def get_connection(
        self, auto_recover: bool = True, max_retries: int = 2
    ) -> AsyncGenerator[Any, None]:
        """
        Get an async database connection inside a transaction.

        Only acquiring the connection is retried; errors raised by the
        caller's block roll the transaction back and propagate.

        Args:
            auto_recover: Whether to attempt pool recovery on failures
            max_retries: Maximum number of acquisition retries

        Yields:
            Connection: An async connection with dict_row factory

        Usage:
            async with db.get_connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute("SELECT * FROM replenishments")
                    rows = await cur.fetchall()
        """
        pool, conn = await self._acquire(auto_recover, max_retries)
        try:
            async with conn.transaction():
                yield conn
        finally:
            await pool.putconn(conn)

    async def get_pool_stats(self) -> Dict[str, Any]:
        """Connection pool statistics for monitoring."""
        if not self._pool:
            return {"status": "not_initialized"}

        stats: Dict[str, Any] = {
            "status": "healthy",
            "pool_created_at": (
                self._pool_created_at.isoformat() if self._pool_created_at else None
            ),
            "connection_attempts": self._connection_attempts,
            "failed_connections": self._failed_connections,
            "success_rate": (self._connection_attempts - self._failed_connections)
            / max(self._connection_attempts, 1)
            * 100,
        }
        pool_stats = self._pool.get_stats()
        stats["pool_stats"] = {
            "pool_size": pool_stats.get("pool_size"),
            "pool_available": pool_stats.get("pool_available"),
            "requests_waiting": pool_stats.get("requests_waiting"),
        }
        return stats

    async def health_check(self, timeout: float = 5.0) -> Dict[str, Any]:
        """
        Perform a health check of the database connection.

        Args:
            timeout: Maximum time to wait for health check to complete

        Returns:
            Dict containing health status and response time
        """
        if not self._pool:
            return {"status": "unhealthy", "error": "Pool not initialized"}

        start_time = time.time()

        try:
            async with asyncio.timeout(timeout):
                async with self.get_connection(auto_recover=False) as conn:
                    async with conn.cursor() as cur:
                        await cur.execute("SELECT NOW() AS now")
                        result = await cur.fetchone()

            self._last_health_check = utc_now()
            return {
                "status": "healthy",
                "response_time_ms": round((time.time() - start_time) * 1000, 2),
                "database_time": result["now"].isoformat() if result else None,
            }
        except asyncio.TimeoutError:
            return {
                "status": "unhealthy",
                "error": f"Health check timed out after {timeout}s",
                "response_time_ms": round((time.time() - start_time) * 1000, 2),
            }
        except (psycopg.Error, ConnectionError, RuntimeError) as e:
            return {
                "status": "unhealthy",
                "error": str(e),
                "response_time_ms": round((time.time() - start_time) * 1000, 2),
            }


AsyncDatabase = AsyncDatabaseCore
