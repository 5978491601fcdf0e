# backend/commerce/workers/base_worker.py
"""
Base class for the workers of the job-executing process.

Workers never decide when to run. APScheduler calls a module-level job
function when a job scheduler fires, and that function hands the payload
to the registered worker inside ``worker.job(...)`` so every execution is
counted and timed the same way.
"""

import time
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator, Dict, Optional

from loguru import logger

from ..utils.time_utils import utc_now


class BaseWorker(ABC):
    """
    Lifecycle and bookkeeping shared by job workers.

    Subclasses register themselves as the target of their job functions
    in initialize() and unregister in cleanup().
    """

    def __init__(self, name: str):
        """
        Args:
            name: Worker name used as log prefix
        """
        self.name = name
        self.running = False
        self.jobs_processed = 0
        self.jobs_failed = 0
        self.last_job_at: Optional[datetime] = None

    async def start(self) -> None:
        if self.running:
            return
        await self.initialize()
        self.running = True
        logger.info(f"✅ {self.name} worker started")

    async def stop(self) -> None:
        if not self.running:
            return
        self.running = False
        await self.cleanup()
        logger.info(f"{self.name} worker stopped")

    @abstractmethod
    async def initialize(self) -> None:
        """Claim the worker's job functions."""

    @abstractmethod
    async def cleanup(self) -> None:
        """Release the worker's job functions."""

    @asynccontextmanager
    async def job(self, job_ref: str) -> AsyncIterator[None]:
        """
        Wrap one job execution.

        Exceptions are counted, logged and re-raised so APScheduler records
        the run as failed.

        Raises:
            RuntimeError: The worker is not running
        """
        if not self.running:
            raise RuntimeError(f"{self.name} worker is not running")

        started = time.perf_counter()
        try:
            yield
        except Exception as e:
            self.jobs_failed += 1
            self.log_error(f"❌ Job {job_ref} raised", e)
            raise
        else:
            self.jobs_processed += 1
        finally:
            self.last_job_at = utc_now()
            self.log_debug(f"Job {job_ref} took {(time.perf_counter() - started) * 1000:.1f}ms")

    def log_info(self, message: str) -> None:
        logger.info(f"[{self.name}] {message}")

    def log_warning(self, message: str) -> None:
        logger.warning(f"[{self.name}] {message}")

    def log_error(self, message: str, error: Optional[Exception] = None) -> None:
        logger.error(f"[{self.name}] {message}: {error}" if error else f"[{self.name}] {message}")

    def log_debug(self, message: str) -> None:
        logger.debug(f"[{self.name}] {message}")

    def get_status(self) -> Dict[str, Any]:
        """Counters reported when the process shuts down."""
        return {
            "name": self.name,
            "running": self.running,
            "jobs_processed": self.jobs_processed,
            "jobs_failed": self.jobs_failed,
            "last_job_at": self.last_job_at.isoformat() if self.last_job_at else None,
        }
