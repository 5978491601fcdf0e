#!/usr/bin/env python3
"""
Commerce job worker.

Runs the job stores shared with the API process unpaused and executes due
jobs:
- ReplenishmentWorker: one payment cycle per fired replenishment scheduler
- PromotionWorker: holiday and birthday promotions

The API process writes job descriptors straight to Redis; this process
wakes its scheduler on a short interval so new descriptors are picked up
without waiting for the previously computed wakeup.
"""

import asyncio
import signal

from apscheduler.triggers.interval import IntervalTrigger
from loguru import logger

from commerce.config import settings
from commerce.constants import (
    BIRTHDAY_PROMOTION_JOB_PROCESSOR,
    HOLIDAY_PROMOTION_JOB_PROCESSOR,
    JOBSTORE_WAKEUP_JOB_ID,
    REPLENISHMENT_JOB_PROCESSOR,
)
from commerce.database import async_db
from commerce.database.customer_operations import CustomerOperations
from commerce.database.replenishment_operations import ReplenishmentOperations
from commerce.dependencies import job_options_from_settings
from commerce.logging import setup_logging
from commerce.services.cache_store import ReplenishmentCacheStore, create_redis_client
from commerce.services.payment_gateway import HttpPaymentGateway
from commerce.services.scheduling import JobQueueService, PromotionScheduler, create_scheduler
from commerce.workers.promotion_worker import PromotionWorker
from commerce.workers.replenishment_worker import ReplenishmentWorker


class CommerceWorker:
    """Owns the scheduler, shared clients and the job workers of this process."""

    def __init__(self):
        self.running = False
        self._stop_event = asyncio.Event()

        self.scheduler = create_scheduler(settings)
        self.redis = create_redis_client(settings)
        self.payment_gateway = HttpPaymentGateway.from_settings(settings)

        customer_ops = CustomerOperations(async_db)
        self.customer_ops = customer_ops
        replenishment_queue = JobQueueService(
            self.scheduler, settings.replenishment_queue_name, REPLENISHMENT_JOB_PROCESSOR
        )
        self.promotion_scheduler = PromotionScheduler(
            JobQueueService(
                self.scheduler,
                settings.holiday_promotion_queue_name,
                HOLIDAY_PROMOTION_JOB_PROCESSOR,
            ),
            JobQueueService(
                self.scheduler,
                settings.birthday_promotion_queue_name,
                BIRTHDAY_PROMOTION_JOB_PROCESSOR,
            ),
            job_options=job_options_from_settings(),
        )

        self.workers = [
            ReplenishmentWorker(
                customer_ops,
                ReplenishmentOperations(async_db),
                replenishment_queue,
                ReplenishmentCacheStore(self.redis),
                self.payment_gateway,
            ),
            PromotionWorker(
                customer_ops,
                self.payment_gateway,
                concurrency=settings.promotion_concurrency,
            ),
        ]

    def request_stop(self) -> None:
        logger.info("Shutdown requested")
        self._stop_event.set()

    async def start(self) -> None:
        """Start everything and block until a stop is requested."""
        await async_db.initialize()
        for worker in self.workers:
            await worker.start()

        self.scheduler.start()
        self.scheduler.add_job(
            self.scheduler.wakeup,
            IntervalTrigger(seconds=settings.jobstore_poll_seconds),
            id=JOBSTORE_WAKEUP_JOB_ID,
            jobstore="default",
            replace_existing=True,
        )
        self.running = True
        logger.info("✅ Worker started")

        await self.promotion_scheduler.seed_holiday_schedulers()
        customers = await self.customer_ops.get_all()
        scheduled = await self.promotion_scheduler.sync_birthday_schedulers(customers)
        logger.info(f"Birthday promotions scheduled for {scheduled} customers")

        await self._stop_event.wait()
        await self.stop()

    async def stop(self) -> None:
        if not self.running:
            return
        self.running = False
        self.scheduler.shutdown(wait=True)
        for worker in self.workers:
            logger.info(f"{worker.name} worker status: {worker.get_status()}")
            await worker.stop()
        await self.payment_gateway.close()
        await self.redis.aclose()
        await async_db.close()
        logger.info("Worker stopped")


async def main():
    setup_logging(settings)
    worker = CommerceWorker()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, worker.request_stop)

    try:
        await worker.start()
    finally:
        await worker.stop()


if __name__ == "__main__":
    asyncio.run(main())
