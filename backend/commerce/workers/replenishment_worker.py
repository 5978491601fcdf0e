# backend/commerce/workers/replenishment_worker.py
"""
Replenishment worker - executes one payment cycle per fired job.

Each cycle charges the order template through the payment gateway,
records the payment and moves the replenishment forward. Reaching the
occurrence limit or the expiry finishes the replenishment and removes its
job scheduler.
"""

import asyncio
from datetime import datetime
from decimal import Decimal
from typing import Any, Awaitable, Callable, Dict, Optional

from ..database.customer_operations import CustomerOperations
from ..database.replenishment_operations import ReplenishmentOperations
from ..enums import ReplenishmentStatus
from ..exceptions import PaymentGatewayError
from ..models.customer_model import Customer
from ..models.job_model import ReplenishmentJobTemplate
from ..models.replenishment_model import Replenishment
from ..services.cache_store import ReplenishmentCacheStore, order_data_key
from ..services.payment_gateway import ChargeResult, PaymentGateway
from ..services.scheduling.interval_utils import period_ms
from ..services.scheduling.job_queue_service import JobQueueService
from ..utils.time_utils import add_milliseconds, ensure_utc, utc_now
from .base_worker import BaseWorker


class ReplenishmentWorker(BaseWorker):
    """
    Runs replenishment payment cycles.

    Responsibilities:
    - Charge each due cycle with exponential retry
    - Record every attempt outcome in one transaction with the status change
    - Finish replenishments that reached their limit or expiry
    """

    def __init__(
        self,
        customer_ops: CustomerOperations,
        replenishment_ops: ReplenishmentOperations,
        job_queue: JobQueueService,
        cache_store: ReplenishmentCacheStore,
        payment_gateway: PaymentGateway,
        clock: Callable[[], datetime] = utc_now,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        super().__init__("replenishment")
        self.customer_ops = customer_ops
        self.replenishment_ops = replenishment_ops
        self.job_queue = job_queue
        self.cache_store = cache_store
        self.payment_gateway = payment_gateway
        self.clock = clock
        self.sleep = sleep
        self.cycles_succeeded = 0
        self.cycles_failed = 0

    async def initialize(self) -> None:
        register_worker(self)

    async def cleanup(self) -> None:
        register_worker(None)

    async def process_cycle(self, template: ReplenishmentJobTemplate) -> Optional[Replenishment]:
        """
        Execute one cycle of the replenishment behind ``template``.

        Returns:
            The replenishment after the cycle, or None if nothing ran
        """
        data = template.data
        replenishment = await self.replenishment_ops.get_by_scheduler_id(data.scheduler_id)
        if replenishment is None or replenishment.status.is_terminal:
            self.log_warning(f"No live replenishment for {data.scheduler_id}, removing its job")
            await self.job_queue.remove_job_scheduler(data.scheduler_id)
            return None

        now = self.clock()
        if replenishment.remaining_times == 0 or (
            replenishment.end_date and ensure_utc(replenishment.end_date) <= now
        ):
            return await self._finish(replenishment)

        customer = await self.customer_ops.get_by_user_id(data.user_id)
        if customer is None or not customer.stripe_id:
            self.log_error(f"Customer {data.user_id} cannot be charged for {data.scheduler_id}")
            return await self._record_failure(replenishment, now)

        result = await self._charge_with_retry(
            customer, replenishment, template.opts.attempts, template.opts.backoff_delay_ms
        )
        if result is None:
            return await self._record_failure(replenishment, now)
        return await self._record_success(replenishment, customer, result, now)

    async def _charge_with_retry(
        self,
        customer: Customer,
        replenishment: Replenishment,
        attempts: int,
        backoff_delay_ms: int,
    ) -> Optional[ChargeResult]:
        idempotency_key = f"{replenishment.scheduler_id}:{replenishment.executions + 1}"
        for attempt in range(1, attempts + 1):
            try:
                return await self.payment_gateway.charge(
                    customer.stripe_id, replenishment.order_template, idempotency_key
                )
            except PaymentGatewayError as e:
                self.log_warning(
                    f"Charge attempt {attempt}/{attempts} for replenishment "
                    f"{replenishment.id} failed: {e}"
                )
                if attempt < attempts:
                    await self.sleep(backoff_delay_ms * 2 ** (attempt - 1) / 1000)
        return None

    async def _record_success(
        self,
        replenishment: Replenishment,
        customer: Customer,
        result: ChargeResult,
        now: datetime,
    ) -> Optional[Replenishment]:
        executions = replenishment.executions + 1
        next_date = add_milliseconds(now, period_ms(replenishment.interval, replenishment.unit))
        end_date = ensure_utc(replenishment.end_date)
        finished = (replenishment.times is not None and executions >= replenishment.times) or (
            end_date is not None and next_date > end_date
        )

        fields: Dict[str, Any] = {
            "executions": executions,
            "last_payment_date": now,
            "order_id": result.order_id,
        }
        handle = None
        if finished:
            fields.update(
                status=ReplenishmentStatus.FINISHED, next_payment_date=None, next_job_id=None
            )
        else:
            handle = await self.job_queue.get_job_scheduler(replenishment.scheduler_id)
            fields.update(
                status=ReplenishmentStatus.ACTIVE,
                next_payment_date=handle.next_run_time if handle else next_date,
                next_job_id=order_data_key(handle) if handle else None,
            )

        updated = await self.replenishment_ops.record_cycle_outcome(
            replenishment.id, result.amount, now, True, fields
        )
        self.cycles_succeeded += 1

        if finished:
            await self.job_queue.remove_job_scheduler(replenishment.scheduler_id)
            await self.cache_store.drop(replenishment.next_job_id)
            self.log_info(f"✅ Replenishment {replenishment.id} finished after {executions} cycles")
        elif handle is not None:
            await self.cache_store.refresh(
                replenishment.next_job_id, handle, customer.id, replenishment.order_template
            )
            self.log_info(f"✅ Replenishment {replenishment.id} cycle {executions} paid")
        else:
            await self.cache_store.drop(replenishment.next_job_id)
        return updated

    async def _record_failure(
        self, replenishment: Replenishment, now: datetime
    ) -> Optional[Replenishment]:
        updated = await self.replenishment_ops.record_cycle_outcome(
            replenishment.id,
            Decimal("0"),
            now,
            False,
            {
                "status": ReplenishmentStatus.FAILED,
                "next_job_id": None,
                "next_payment_date": None,
            },
        )
        await self.cache_store.drop(replenishment.next_job_id)
        self.cycles_failed += 1
        self.log_error(f"❌ Replenishment {replenishment.id} cycle failed")
        return updated

    async def _finish(self, replenishment: Replenishment) -> Optional[Replenishment]:
        await self.job_queue.remove_job_scheduler(replenishment.scheduler_id)
        await self.cache_store.drop(replenishment.next_job_id)
        self.log_info(f"Replenishment {replenishment.id} reached its limit or expiry")
        return await self.replenishment_ops.update(
            replenishment.id,
            {
                "status": ReplenishmentStatus.FINISHED,
                "next_payment_date": None,
                "next_job_id": None,
            },
        )

    def get_status(self) -> Dict[str, Any]:
        status = super().get_status()
        status.update(
            cycles_succeeded=self.cycles_succeeded, cycles_failed=self.cycles_failed
        )
        return status


_worker: Optional[ReplenishmentWorker] = None


def register_worker(worker: Optional[ReplenishmentWorker]) -> None:
    """Set the worker that fired replenishment jobs are handed to."""
    global _worker
    _worker = worker


async def run_replenishment_cycle(payload: Dict[str, Any]) -> None:
    """Job function stored in every replenishment job scheduler."""
    if _worker is None:
        raise RuntimeError("Replenishment worker is not running")
    template = ReplenishmentJobTemplate.model_validate(payload)
    async with _worker.job(template.data.scheduler_id):
        await _worker.process_cycle(template)
