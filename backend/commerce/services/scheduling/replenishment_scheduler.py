# backend/commerce/services/scheduling/replenishment_scheduler.py
"""
Replenishment Scheduler - lifecycle of recurring auto-reorders.

A replenishment is a relational record plus one job scheduler in the
replenishment queue, keyed by the record's scheduler_id. Every mutating
operation validates against the persisted state before touching anything,
writes the queue before the database, and mirrors the next job into the
cache store last.

Business Rules:
- Finished, failed and canceled replenishments are never updated
- A scheduled replenishment needs an explicit start date on update
- An active replenishment continues from its payment history and never
  takes a new start date
- Executions are reconciled against recorded payments before an active
  replenishment is rescheduled
"""

from datetime import datetime
from typing import Callable, Optional

from loguru import logger

from ...database.customer_operations import CustomerOperations
from ...database.replenishment_operations import ReplenishmentOperations
from ...enums import ReplenishmentStatus, ReplenishmentUnit
from ...exceptions import (
    CustomerNotFoundError,
    InvalidScheduleError,
    InvalidStateTransitionError,
    ReplenishmentNotFoundError,
    SchedulingFailureError,
)
from ...models.customer_model import Customer
from ...models.job_model import (
    JobHandle,
    JobOptions,
    RepeatRule,
    ReplenishmentJobData,
    ReplenishmentJobTemplate,
)
from ...models.replenishment_model import (
    OrderTemplate,
    Replenishment,
    ReplenishmentCreate,
)
from ...utils.time_utils import ensure_utc, start_of_day, utc_now
from ..cache_store import ReplenishmentCacheStore, order_data_key
from .interval_utils import generate_scheduler_id, next_payment_date, period_ms
from .job_queue_service import JobQueueService
from .state_transitions import allowed_cancel_toggle, allowed_update, rejection_message


def build_replenishment_job(
    customer: Customer,
    scheduler_id: str,
    order_template: OrderTemplate,
    period: int,
    start_date: datetime,
    end_date: Optional[datetime],
    limit: Optional[int],
    opts: JobOptions,
) -> ReplenishmentJobTemplate:
    """Job template every cycle of a replenishment runs with."""
    return ReplenishmentJobTemplate(
        data=ReplenishmentJobData(
            scheduler_id=scheduler_id,
            customer_id=customer.id,
            user_id=customer.user_id,
            order_template=order_template,
            period_ms=period,
            start_date=start_date,
            end_date=end_date,
            limit=limit,
        ),
        opts=opts,
    )


class ReplenishmentScheduler:
    """
    Create, update, cancel/resume and remove replenishments.

    Responsibilities:
    - Guard every change with the replenishment state machine
    - Keep exactly one job scheduler per live, non-terminal replenishment
    - Keep the cache pointer aligned with the next scheduled job

    Interactions:
    - CustomerOperations / ReplenishmentOperations for persistence
    - JobQueueService for the replenishment queue
    - ReplenishmentCacheStore for job to order pointers
    """

    def __init__(
        self,
        customer_ops: CustomerOperations,
        replenishment_ops: ReplenishmentOperations,
        job_queue: JobQueueService,
        cache_store: ReplenishmentCacheStore,
        job_options: Optional[JobOptions] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Initialize ReplenishmentScheduler with injected collaborators.

        Args:
            customer_ops: Customer lookups
            replenishment_ops: Replenishment persistence
            job_queue: Queue holding replenishment job schedulers
            cache_store: Job pointer cache
            job_options: Options attached to every cycle job
            clock: Source of the current UTC time
        """
        self.customer_ops = customer_ops
        self.replenishment_ops = replenishment_ops
        self.job_queue = job_queue
        self.cache_store = cache_store
        self.job_options = job_options or JobOptions()
        self.clock = clock

    async def create_replenishment(
        self,
        user_id: int,
        order_template: OrderTemplate,
        interval: int,
        unit: ReplenishmentUnit,
        trial_start: Optional[datetime] = None,
        expiry: Optional[datetime] = None,
        max_times: Optional[int] = None,
    ) -> Replenishment:
        """
        Create a replenishment and its job scheduler.

        The queue is written first. If persisting the record then fails,
        the job scheduler is removed again before the error propagates.

        Raises:
            CustomerNotFoundError: Unknown user
            InvalidScheduleError: Bad interval, dates or occurrence limit
            SchedulingFailureError: The queue did not schedule a job
        """
        customer = await self._require_customer(user_id)
        period = period_ms(interval, unit)
        now = self.clock()

        start_date = ensure_utc(trial_start) if trial_start else start_of_day(now)
        if start_date < start_of_day(now):
            raise InvalidScheduleError("Start date cannot be in the past")
        end_date = ensure_utc(expiry)
        self._validate_window(start_date, end_date, now)
        if max_times is not None and max_times <= 0:
            raise InvalidScheduleError("Times must be a positive integer")

        scheduler_id = generate_scheduler_id(customer.id, now)
        template = build_replenishment_job(
            customer,
            scheduler_id,
            order_template,
            period,
            start_date,
            end_date,
            max_times,
            self.job_options,
        )
        handle = await self._upsert(
            scheduler_id,
            RepeatRule(every_ms=period, start_date=start_date, end_date=end_date, limit=max_times),
            template,
        )

        try:
            replenishment = await self.replenishment_ops.create(
                ReplenishmentCreate(
                    customer_id=customer.id,
                    scheduler_id=scheduler_id,
                    next_job_id=order_data_key(handle),
                    order_template=order_template,
                    interval=interval,
                    unit=unit,
                    start_date=start_date,
                    end_date=end_date,
                    times=max_times,
                    next_payment_date=handle.next_run_time,
                    status=ReplenishmentStatus.SCHEDULED,
                )
            )
        except Exception:
            logger.error(f"❌ Failed to persist replenishment {scheduler_id}, removing its job")
            await self.job_queue.remove_job_scheduler(scheduler_id)
            raise

        await self.cache_store.mirror(handle, customer.id, order_template)
        logger.info(
            f"✅ Created replenishment {replenishment.id} for customer {customer.id} "
            f"every {interval} {unit.value}, first run {handle.next_run_time}"
        )
        return replenishment

    async def update_replenishment(
        self,
        user_id: int,
        replenishment_id: int,
        order_template: OrderTemplate,
        interval: int,
        unit: ReplenishmentUnit,
        new_start_date: Optional[datetime] = None,
        expiry: Optional[datetime] = None,
        times: Optional[int] = None,
    ) -> Replenishment:
        """
        Replace the template and interval of a scheduled or active replenishment.

        Raises:
            CustomerNotFoundError: Unknown user
            ReplenishmentNotFoundError: No such replenishment for the customer
            InvalidStateTransitionError: Status forbids this update
            InvalidScheduleError: Bad interval, dates or occurrence limit
            SchedulingFailureError: The queue did not reschedule the job
        """
        customer = await self._require_customer(user_id)
        replenishment = await self._require_replenishment(replenishment_id, customer)

        reason = allowed_update(replenishment.status, new_start_date is not None)
        if reason is not None:
            raise InvalidStateTransitionError(reason, rejection_message(reason))

        period = period_ms(interval, unit)
        now = self.clock()
        # Omitted bounds keep the stored ones
        end_date = ensure_utc(expiry) if expiry else ensure_utc(replenishment.end_date)
        if times is None:
            times = replenishment.times
        executions = replenishment.executions

        if replenishment.status == ReplenishmentStatus.SCHEDULED:
            start_date = ensure_utc(new_start_date)
            if start_date < start_of_day(now):
                raise InvalidScheduleError("Start date cannot be in the past")
            first_run = start_date
        else:
            counted = await self.replenishment_ops.count_payments(replenishment.id)
            if counted != executions:
                logger.warning(
                    f"⚠️ Replenishment {replenishment.id} recorded {executions} executions "
                    f"but has {counted} payments, correcting"
                )
                executions = counted
            start_date = replenishment.start_date
            first_run = next_payment_date(replenishment.last_payment_date, period, now)

        self._validate_window(first_run, end_date, now)
        limit = times
        if times is not None:
            if times <= executions:
                raise InvalidScheduleError(
                    f"Times must exceed the {executions} cycles already executed"
                )
            limit = times - executions

        template = build_replenishment_job(
            customer,
            replenishment.scheduler_id,
            order_template,
            period,
            first_run,
            end_date,
            limit,
            self.job_options,
        )
        handle = await self._upsert(
            replenishment.scheduler_id,
            RepeatRule(every_ms=period, start_date=first_run, end_date=end_date, limit=limit),
            template,
        )
        next_job_id = await self._refresh_pointer(replenishment, handle, customer, order_template)

        updated = await self.replenishment_ops.update(
            replenishment.id,
            {
                "order_template": order_template,
                "interval": interval,
                "unit": unit,
                "start_date": start_date,
                "end_date": end_date,
                "times": times,
                "executions": executions,
                "next_payment_date": handle.next_run_time,
                "next_job_id": next_job_id,
            },
        )
        if updated is None:
            raise ReplenishmentNotFoundError()

        logger.info(f"✅ Updated replenishment {replenishment.id}, next run {handle.next_run_time}")
        return updated

    async def toggle_cancel_status(self, user_id: int, replenishment_id: int) -> Replenishment:
        """
        Cancel a running replenishment or resume a canceled one.

        Raises:
            CustomerNotFoundError: Unknown user
            ReplenishmentNotFoundError: No such replenishment for the customer
            InvalidStateTransitionError: Finished or failed replenishment
            InvalidScheduleError: A canceled replenishment has nothing left to run
            SchedulingFailureError: The queue did not reschedule the job
        """
        customer = await self._require_customer(user_id)
        replenishment = await self._require_replenishment(replenishment_id, customer)

        reason = allowed_cancel_toggle(replenishment.status)
        if reason is not None:
            raise InvalidStateTransitionError(reason, rejection_message(reason))

        if replenishment.status == ReplenishmentStatus.CANCELED:
            updated = await self._resume(replenishment, customer)
        else:
            updated = await self._cancel(replenishment)
        if updated is None:
            raise ReplenishmentNotFoundError()
        return updated

    async def remove_replenishment(self, user_id: int, replenishment_id: int) -> None:
        """
        Delete a replenishment with its job scheduler and cache pointer.

        Raises:
            CustomerNotFoundError: Unknown user
            ReplenishmentNotFoundError: No such replenishment for the customer
        """
        customer = await self._require_customer(user_id)
        replenishment = await self._require_replenishment(replenishment_id, customer)

        await self.job_queue.remove_job_scheduler(replenishment.scheduler_id)
        await self.cache_store.drop(replenishment.next_job_id)
        await self.replenishment_ops.soft_delete(replenishment.id)
        logger.info(f"✅ Removed replenishment {replenishment.id}")

    async def _cancel(self, replenishment: Replenishment) -> Optional[Replenishment]:
        await self.job_queue.remove_job_scheduler(replenishment.scheduler_id)
        await self.cache_store.drop(replenishment.next_job_id)
        updated = await self.replenishment_ops.update(
            replenishment.id,
            {
                "status": ReplenishmentStatus.CANCELED,
                "next_payment_date": None,
                "next_job_id": None,
            },
        )
        logger.info(f"✅ Canceled replenishment {replenishment.id}")
        return updated

    async def _resume(
        self, replenishment: Replenishment, customer: Customer
    ) -> Optional[Replenishment]:
        remaining = replenishment.remaining_times
        if remaining == 0:
            raise InvalidScheduleError("Replenishment has no cycles left to run")

        period = period_ms(replenishment.interval, replenishment.unit)
        now = self.clock()
        start_date = replenishment.start_date

        if ensure_utc(start_date) > now:
            status = ReplenishmentStatus.SCHEDULED
            first_run = ensure_utc(start_date)
        elif replenishment.executions > 0:
            status = ReplenishmentStatus.ACTIVE
            first_run = next_payment_date(replenishment.last_payment_date, period, now)
        else:
            # Never ran; restart one period from now
            status = ReplenishmentStatus.SCHEDULED
            first_run = next_payment_date(None, period, now)
            start_date = first_run

        end_date = ensure_utc(replenishment.end_date)
        self._validate_window(first_run, end_date, now)

        template = build_replenishment_job(
            customer,
            replenishment.scheduler_id,
            replenishment.order_template,
            period,
            first_run,
            end_date,
            remaining,
            self.job_options,
        )
        handle = await self._upsert(
            replenishment.scheduler_id,
            RepeatRule(every_ms=period, start_date=first_run, end_date=end_date, limit=remaining),
            template,
        )
        next_job_id = await self._refresh_pointer(
            replenishment, handle, customer, replenishment.order_template
        )
        updated = await self.replenishment_ops.update(
            replenishment.id,
            {
                "status": status,
                "start_date": start_date,
                "next_payment_date": handle.next_run_time,
                "next_job_id": next_job_id,
            },
        )
        logger.info(f"✅ Resumed replenishment {replenishment.id} as {status.value}")
        return updated

    async def _require_customer(self, user_id: int) -> Customer:
        customer = await self.customer_ops.get_by_user_id(user_id)
        if customer is None:
            raise CustomerNotFoundError()
        return customer

    async def _require_replenishment(
        self, replenishment_id: int, customer: Customer
    ) -> Replenishment:
        replenishment = await self.replenishment_ops.get_for_customer(
            replenishment_id, customer.id
        )
        if replenishment is None:
            raise ReplenishmentNotFoundError()
        return replenishment

    async def _upsert(
        self, scheduler_id: str, repeat: RepeatRule, template: ReplenishmentJobTemplate
    ) -> JobHandle:
        handle = await self.job_queue.upsert_job_scheduler(scheduler_id, repeat, template)
        if handle is None:
            logger.error(f"❌ Job queue returned no job for scheduler {scheduler_id}")
            raise SchedulingFailureError()
        return handle

    async def _refresh_pointer(
        self,
        replenishment: Replenishment,
        handle: JobHandle,
        customer: Customer,
        order_template: OrderTemplate,
    ) -> str:
        await self.cache_store.refresh(
            replenishment.next_job_id, handle, customer.id, order_template
        )
        return order_data_key(handle)

    @staticmethod
    def _validate_window(
        first_run: datetime, end_date: Optional[datetime], now: datetime
    ) -> None:
        if end_date is None:
            return
        if end_date <= now:
            raise InvalidScheduleError("Expiry must be in the future")
        if end_date <= first_run:
            raise InvalidScheduleError("Expiry must be after the first cycle")
