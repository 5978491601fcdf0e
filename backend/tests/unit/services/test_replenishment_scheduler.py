#!/usr/bin/env python3
"""
Unit tests for ReplenishmentScheduler.

Persistence, the job queue and the cache store are mocked; the tests pin
down ordering (validate, queue, database, cache) and the state machine.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from commerce.database.exceptions import ReplenishmentOperationError
from commerce.enums import RejectionReason, ReplenishmentStatus, ReplenishmentUnit
from commerce.exceptions import (
    CustomerNotFoundError,
    InvalidScheduleError,
    InvalidStateTransitionError,
    ReplenishmentNotFoundError,
    SchedulingFailureError,
)
from commerce.models.job_model import JobOptions, ReplenishmentJobTemplate
from commerce.services.scheduling.replenishment_scheduler import ReplenishmentScheduler

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)
TODAY = datetime(2026, 3, 10, tzinfo=timezone.utc)
TWO_DAYS_MS = 172800000


@pytest.fixture
def scheduler(mock_customer_ops, mock_replenishment_ops, mock_job_queue, mock_cache_store, clock):
    return ReplenishmentScheduler(
        mock_customer_ops,
        mock_replenishment_ops,
        mock_job_queue,
        mock_cache_store,
        job_options=JobOptions(attempts=3),
        clock=clock,
    )


def upsert_args(mock_job_queue):
    scheduler_id, repeat, template = mock_job_queue.upsert_job_scheduler.await_args.args
    return scheduler_id, repeat, template


@pytest.mark.unit
class TestCreateReplenishment:
    @pytest.mark.asyncio
    async def test_create_schedules_then_persists_then_caches(
        self,
        scheduler,
        order_template,
        make_replenishment,
        mock_replenishment_ops,
        mock_job_queue,
        mock_cache_store,
    ):
        mock_replenishment_ops.create.return_value = make_replenishment()

        result = await scheduler.create_replenishment(42, order_template, 2, ReplenishmentUnit.DAY)

        assert result.id == 1
        scheduler_id, repeat, template = upsert_args(mock_job_queue)
        assert repeat.every_ms == TWO_DAYS_MS
        assert repeat.start_date == TODAY
        assert repeat.end_date is None
        assert repeat.limit is None
        assert isinstance(template, ReplenishmentJobTemplate)
        assert template.data.period_ms == TWO_DAYS_MS
        assert template.data.scheduler_id == scheduler_id
        assert template.data.user_id == 42
        assert template.opts.attempts == 3

        created = mock_replenishment_ops.create.await_args.args[0]
        assert created.scheduler_id == scheduler_id
        assert created.status == ReplenishmentStatus.SCHEDULED
        assert created.start_date == TODAY
        assert created.next_job_id.startswith(f"orderData:repeat:{scheduler_id}:")
        mock_cache_store.mirror.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_trial_start_expiry_and_times_flow_into_repeat_rule(
        self, scheduler, order_template, make_replenishment, mock_replenishment_ops, mock_job_queue
    ):
        mock_replenishment_ops.create.return_value = make_replenishment()
        trial_start = NOW + timedelta(days=7)
        expiry = NOW + timedelta(days=90)

        await scheduler.create_replenishment(
            42,
            order_template,
            1,
            ReplenishmentUnit.WEEK,
            trial_start=trial_start,
            expiry=expiry,
            max_times=4,
        )

        _, repeat, template = upsert_args(mock_job_queue)
        assert repeat.every_ms == 604800000
        assert repeat.start_date == trial_start
        assert repeat.end_date == expiry
        assert repeat.limit == 4
        assert template.data.limit == 4
        created = mock_replenishment_ops.create.await_args.args[0]
        assert created.times == 4
        assert created.end_date == expiry

    @pytest.mark.asyncio
    async def test_missing_customer_performs_no_writes(
        self,
        scheduler,
        order_template,
        mock_customer_ops,
        mock_replenishment_ops,
        mock_job_queue,
        mock_cache_store,
    ):
        mock_customer_ops.get_by_user_id.return_value = None

        with pytest.raises(CustomerNotFoundError):
            await scheduler.create_replenishment(42, order_template, 2, ReplenishmentUnit.DAY)

        mock_replenishment_ops.create.assert_not_awaited()
        mock_job_queue.upsert_job_scheduler.assert_not_awaited()
        mock_cache_store.mirror.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_job_handle_leaves_no_record(
        self, scheduler, order_template, mock_replenishment_ops, mock_job_queue, mock_cache_store
    ):
        mock_job_queue.upsert_job_scheduler = AsyncMock(return_value=None)

        with pytest.raises(SchedulingFailureError):
            await scheduler.create_replenishment(42, order_template, 2, ReplenishmentUnit.DAY)

        mock_replenishment_ops.create.assert_not_awaited()
        mock_cache_store.mirror.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failed_insert_removes_job_scheduler(
        self, scheduler, order_template, mock_replenishment_ops, mock_job_queue, mock_cache_store
    ):
        mock_replenishment_ops.create.side_effect = ReplenishmentOperationError(
            "boom", operation="create"
        )

        with pytest.raises(ReplenishmentOperationError):
            await scheduler.create_replenishment(42, order_template, 2, ReplenishmentUnit.DAY)

        scheduler_id, _, _ = upsert_args(mock_job_queue)
        mock_job_queue.remove_job_scheduler.assert_awaited_once_with(scheduler_id)
        mock_cache_store.mirror.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_past_start_date_rejected(self, scheduler, order_template, mock_job_queue):
        with pytest.raises(InvalidScheduleError):
            await scheduler.create_replenishment(
                42,
                order_template,
                2,
                ReplenishmentUnit.DAY,
                trial_start=NOW - timedelta(days=2),
            )
        mock_job_queue.upsert_job_scheduler.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_expiry_before_start_rejected(self, scheduler, order_template, mock_job_queue):
        with pytest.raises(InvalidScheduleError):
            await scheduler.create_replenishment(
                42,
                order_template,
                2,
                ReplenishmentUnit.DAY,
                trial_start=NOW + timedelta(days=10),
                expiry=NOW + timedelta(days=5),
            )
        mock_job_queue.upsert_job_scheduler.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_invalid_interval_rejected(self, scheduler, order_template, mock_job_queue):
        with pytest.raises(InvalidScheduleError):
            await scheduler.create_replenishment(42, order_template, 0, ReplenishmentUnit.DAY)
        mock_job_queue.upsert_job_scheduler.assert_not_awaited()


@pytest.mark.unit
class TestUpdateReplenishment:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("new_start", [None, NOW + timedelta(days=3)])
    @pytest.mark.parametrize(
        "status", [ReplenishmentStatus.FINISHED, ReplenishmentStatus.FAILED]
    )
    async def test_ended_replenishment_always_rejected(
        self,
        scheduler,
        order_template,
        make_replenishment,
        mock_replenishment_ops,
        mock_job_queue,
        status,
        new_start,
    ):
        mock_replenishment_ops.get_for_customer.return_value = make_replenishment(
            status=status, executions=3
        )

        with pytest.raises(InvalidStateTransitionError) as exc_info:
            await scheduler.update_replenishment(
                42, 1, order_template, 2, ReplenishmentUnit.DAY, new_start_date=new_start
            )

        assert exc_info.value.reason == RejectionReason.FINISHED_IMMUTABLE
        mock_job_queue.upsert_job_scheduler.assert_not_awaited()
        mock_replenishment_ops.update.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_scheduled_without_start_date_rejected(
        self, scheduler, order_template, make_replenishment, mock_replenishment_ops
    ):
        mock_replenishment_ops.get_for_customer.return_value = make_replenishment()

        with pytest.raises(InvalidStateTransitionError) as exc_info:
            await scheduler.update_replenishment(42, 1, order_template, 2, ReplenishmentUnit.DAY)

        assert exc_info.value.reason == RejectionReason.SCHEDULED_REQUIRES_START_DATE
        mock_replenishment_ops.update.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_scheduled_with_start_date_reschedules(
        self,
        scheduler,
        order_template,
        make_replenishment,
        mock_replenishment_ops,
        mock_job_queue,
        mock_cache_store,
    ):
        record = make_replenishment()
        mock_replenishment_ops.get_for_customer.return_value = record
        mock_replenishment_ops.update.return_value = record
        new_start = NOW + timedelta(days=5)

        await scheduler.update_replenishment(
            42, 1, order_template, 3, ReplenishmentUnit.WEEK, new_start_date=new_start
        )

        scheduler_id, repeat, _ = upsert_args(mock_job_queue)
        assert scheduler_id == record.scheduler_id
        assert repeat.every_ms == 3 * 604800000
        assert repeat.start_date == new_start

        replenishment_id, fields = mock_replenishment_ops.update.await_args.args
        assert replenishment_id == 1
        assert fields["start_date"] == new_start
        assert fields["interval"] == 3
        assert fields["unit"] == ReplenishmentUnit.WEEK
        assert fields["next_payment_date"] == new_start
        mock_replenishment_ops.count_payments.assert_not_awaited()
        mock_cache_store.refresh.assert_awaited_once()
        assert mock_cache_store.refresh.await_args.args[0] == record.next_job_id

    @pytest.mark.asyncio
    async def test_active_with_start_date_rejected(
        self, scheduler, order_template, make_replenishment, mock_replenishment_ops
    ):
        mock_replenishment_ops.get_for_customer.return_value = make_replenishment(
            status=ReplenishmentStatus.ACTIVE, executions=1
        )

        with pytest.raises(InvalidStateTransitionError) as exc_info:
            await scheduler.update_replenishment(
                42,
                1,
                order_template,
                2,
                ReplenishmentUnit.DAY,
                new_start_date=NOW + timedelta(days=1),
            )

        assert exc_info.value.reason == RejectionReason.ACTIVE_FORBIDS_START_DATE

    @pytest.mark.asyncio
    async def test_active_reconciles_executions_with_payments(
        self,
        scheduler,
        order_template,
        make_replenishment,
        mock_replenishment_ops,
        mock_job_queue,
    ):
        record = make_replenishment(
            status=ReplenishmentStatus.ACTIVE,
            executions=1,
            last_payment_date=NOW - timedelta(days=1),
        )
        mock_replenishment_ops.get_for_customer.return_value = record
        mock_replenishment_ops.count_payments.return_value = 5
        mock_replenishment_ops.update.return_value = record

        await scheduler.update_replenishment(42, 1, order_template, 2, ReplenishmentUnit.DAY)

        mock_replenishment_ops.count_payments.assert_awaited_once_with(1)
        _, repeat, _ = upsert_args(mock_job_queue)
        assert repeat.every_ms == TWO_DAYS_MS
        assert repeat.start_date == NOW + timedelta(days=1)

        _, fields = mock_replenishment_ops.update.await_args.args
        assert fields["executions"] == 5
        assert fields["start_date"] == record.start_date
        assert fields["next_payment_date"] == NOW + timedelta(days=1)

    @pytest.mark.asyncio
    async def test_active_times_become_remaining_limit(
        self, scheduler, order_template, make_replenishment, mock_replenishment_ops, mock_job_queue
    ):
        record = make_replenishment(
            status=ReplenishmentStatus.ACTIVE,
            executions=2,
            last_payment_date=NOW - timedelta(hours=6),
        )
        mock_replenishment_ops.get_for_customer.return_value = record
        mock_replenishment_ops.count_payments.return_value = 2
        mock_replenishment_ops.update.return_value = record

        await scheduler.update_replenishment(
            42, 1, order_template, 2, ReplenishmentUnit.DAY, times=6
        )

        _, repeat, template = upsert_args(mock_job_queue)
        assert repeat.limit == 4
        assert template.data.limit == 4
        _, fields = mock_replenishment_ops.update.await_args.args
        assert fields["times"] == 6

    @pytest.mark.asyncio
    async def test_update_without_bounds_keeps_stored_expiry_and_times(
        self, scheduler, order_template, make_replenishment, mock_replenishment_ops, mock_job_queue
    ):
        expiry = NOW + timedelta(days=60)
        record = make_replenishment(
            status=ReplenishmentStatus.ACTIVE,
            executions=2,
            times=6,
            end_date=expiry,
            last_payment_date=NOW - timedelta(hours=6),
        )
        mock_replenishment_ops.get_for_customer.return_value = record
        mock_replenishment_ops.count_payments.return_value = 2
        mock_replenishment_ops.update.return_value = record

        await scheduler.update_replenishment(42, 1, order_template, 3, ReplenishmentUnit.DAY)

        _, repeat, template = upsert_args(mock_job_queue)
        assert repeat.limit == 4
        assert repeat.end_date == expiry
        assert template.data.limit == 4
        assert template.data.end_date == expiry
        _, fields = mock_replenishment_ops.update.await_args.args
        assert fields["times"] == 6
        assert fields["end_date"] == expiry
        assert fields["interval"] == 3

    @pytest.mark.asyncio
    async def test_scheduled_update_without_bounds_keeps_stored_ones(
        self, scheduler, order_template, make_replenishment, mock_replenishment_ops, mock_job_queue
    ):
        expiry = NOW + timedelta(days=30)
        record = make_replenishment(times=3, end_date=expiry)
        mock_replenishment_ops.get_for_customer.return_value = record
        mock_replenishment_ops.update.return_value = record

        await scheduler.update_replenishment(
            42, 1, order_template, 2, ReplenishmentUnit.DAY, new_start_date=NOW + timedelta(days=2)
        )

        _, repeat, _ = upsert_args(mock_job_queue)
        assert repeat.limit == 3
        assert repeat.end_date == expiry
        _, fields = mock_replenishment_ops.update.await_args.args
        assert fields["times"] == 3
        assert fields["end_date"] == expiry

    @pytest.mark.asyncio
    async def test_times_not_above_executions_rejected(
        self, scheduler, order_template, make_replenishment, mock_replenishment_ops, mock_job_queue
    ):
        mock_replenishment_ops.get_for_customer.return_value = make_replenishment(
            status=ReplenishmentStatus.ACTIVE, executions=1
        )
        mock_replenishment_ops.count_payments.return_value = 5

        with pytest.raises(InvalidScheduleError):
            await scheduler.update_replenishment(
                42, 1, order_template, 2, ReplenishmentUnit.DAY, times=5
            )
        mock_job_queue.upsert_job_scheduler.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("new_start", [None, NOW + timedelta(days=3)])
    async def test_canceled_always_rejected(
        self, scheduler, order_template, make_replenishment, mock_replenishment_ops, new_start
    ):
        mock_replenishment_ops.get_for_customer.return_value = make_replenishment(
            status=ReplenishmentStatus.CANCELED
        )

        with pytest.raises(InvalidStateTransitionError) as exc_info:
            await scheduler.update_replenishment(
                42, 1, order_template, 2, ReplenishmentUnit.DAY, new_start_date=new_start
            )

        assert exc_info.value.reason == RejectionReason.CANCELED_IMMUTABLE

    @pytest.mark.asyncio
    async def test_missing_customer(self, scheduler, order_template, mock_customer_ops):
        mock_customer_ops.get_by_user_id.return_value = None
        with pytest.raises(CustomerNotFoundError):
            await scheduler.update_replenishment(42, 1, order_template, 2, ReplenishmentUnit.DAY)

    @pytest.mark.asyncio
    async def test_missing_replenishment(self, scheduler, order_template, mock_replenishment_ops):
        mock_replenishment_ops.get_for_customer.return_value = None
        with pytest.raises(ReplenishmentNotFoundError):
            await scheduler.update_replenishment(42, 1, order_template, 2, ReplenishmentUnit.DAY)
        mock_replenishment_ops.get_for_customer.assert_awaited_once_with(1, 1)

    @pytest.mark.asyncio
    async def test_missing_job_handle_leaves_record_untouched(
        self, scheduler, order_template, make_replenishment, mock_replenishment_ops, mock_job_queue
    ):
        mock_replenishment_ops.get_for_customer.return_value = make_replenishment()
        mock_job_queue.upsert_job_scheduler = AsyncMock(return_value=None)

        with pytest.raises(SchedulingFailureError):
            await scheduler.update_replenishment(
                42,
                1,
                order_template,
                2,
                ReplenishmentUnit.DAY,
                new_start_date=NOW + timedelta(days=1),
            )
        mock_replenishment_ops.update.assert_not_awaited()


@pytest.mark.unit
class TestToggleCancelStatus:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status", [ReplenishmentStatus.ACTIVE, ReplenishmentStatus.SCHEDULED]
    )
    async def test_cancel_removes_job_and_pointer(
        self,
        scheduler,
        make_replenishment,
        mock_replenishment_ops,
        mock_job_queue,
        mock_cache_store,
        status,
    ):
        record = make_replenishment(status=status, executions=1)
        mock_replenishment_ops.get_for_customer.return_value = record
        mock_replenishment_ops.update.return_value = record

        await scheduler.toggle_cancel_status(42, 1)

        mock_job_queue.remove_job_scheduler.assert_awaited_once_with(record.scheduler_id)
        mock_cache_store.drop.assert_awaited_once_with(record.next_job_id)
        _, fields = mock_replenishment_ops.update.await_args.args
        assert fields == {
            "status": ReplenishmentStatus.CANCELED,
            "next_payment_date": None,
            "next_job_id": None,
        }

    @pytest.mark.asyncio
    async def test_resume_before_start_is_scheduled(
        self, scheduler, make_replenishment, mock_replenishment_ops, mock_job_queue
    ):
        start = NOW + timedelta(days=4)
        record = make_replenishment(
            status=ReplenishmentStatus.CANCELED, start_date=start, next_job_id=None
        )
        mock_replenishment_ops.get_for_customer.return_value = record
        mock_replenishment_ops.update.return_value = record

        await scheduler.toggle_cancel_status(42, 1)

        scheduler_id, repeat, _ = upsert_args(mock_job_queue)
        assert scheduler_id == record.scheduler_id
        assert repeat.start_date == start
        _, fields = mock_replenishment_ops.update.await_args.args
        assert fields["status"] == ReplenishmentStatus.SCHEDULED
        assert fields["next_payment_date"] == start
        assert fields["next_job_id"].startswith(f"orderData:repeat:{record.scheduler_id}:")

    @pytest.mark.asyncio
    async def test_resume_after_payments_is_active(
        self, scheduler, make_replenishment, mock_replenishment_ops, mock_job_queue
    ):
        record = make_replenishment(
            status=ReplenishmentStatus.CANCELED,
            executions=2,
            times=5,
            last_payment_date=NOW - timedelta(days=1),
            next_job_id=None,
        )
        mock_replenishment_ops.get_for_customer.return_value = record
        mock_replenishment_ops.update.return_value = record

        await scheduler.toggle_cancel_status(42, 1)

        _, repeat, _ = upsert_args(mock_job_queue)
        assert repeat.start_date == NOW + timedelta(days=1)
        assert repeat.limit == 3
        _, fields = mock_replenishment_ops.update.await_args.args
        assert fields["status"] == ReplenishmentStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_resume_with_no_cycles_left_rejected(
        self, scheduler, make_replenishment, mock_replenishment_ops, mock_job_queue
    ):
        mock_replenishment_ops.get_for_customer.return_value = make_replenishment(
            status=ReplenishmentStatus.CANCELED, executions=3, times=3
        )

        with pytest.raises(InvalidScheduleError):
            await scheduler.toggle_cancel_status(42, 1)
        mock_job_queue.upsert_job_scheduler.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status", [ReplenishmentStatus.FINISHED, ReplenishmentStatus.FAILED]
    )
    async def test_ended_replenishment_cannot_toggle(
        self, scheduler, make_replenishment, mock_replenishment_ops, mock_job_queue, status
    ):
        mock_replenishment_ops.get_for_customer.return_value = make_replenishment(status=status)

        with pytest.raises(InvalidStateTransitionError) as exc_info:
            await scheduler.toggle_cancel_status(42, 1)

        assert exc_info.value.reason == RejectionReason.CANNOT_CANCEL_FINISHED
        mock_job_queue.remove_job_scheduler.assert_not_awaited()


@pytest.mark.unit
class TestRemoveReplenishment:
    @pytest.mark.asyncio
    async def test_remove_clears_queue_cache_and_record(
        self, scheduler, make_replenishment, mock_replenishment_ops, mock_job_queue, mock_cache_store
    ):
        record = make_replenishment(status=ReplenishmentStatus.ACTIVE, executions=1)
        mock_replenishment_ops.get_for_customer.return_value = record

        await scheduler.remove_replenishment(42, 1)

        mock_job_queue.remove_job_scheduler.assert_awaited_once_with(record.scheduler_id)
        mock_cache_store.drop.assert_awaited_once_with(record.next_job_id)
        mock_replenishment_ops.soft_delete.assert_awaited_once_with(1)

    @pytest.mark.asyncio
    async def test_remove_when_job_already_gone(
        self, scheduler, make_replenishment, mock_replenishment_ops, mock_job_queue
    ):
        mock_replenishment_ops.get_for_customer.return_value = make_replenishment()
        mock_job_queue.remove_job_scheduler.return_value = False

        await scheduler.remove_replenishment(42, 1)
        await scheduler.remove_replenishment(42, 1)

        assert mock_job_queue.remove_job_scheduler.await_count == 2
        assert mock_replenishment_ops.soft_delete.await_count == 2

    @pytest.mark.asyncio
    async def test_remove_other_customers_replenishment(
        self, scheduler, mock_replenishment_ops, mock_job_queue
    ):
        mock_replenishment_ops.get_for_customer.return_value = None

        with pytest.raises(ReplenishmentNotFoundError):
            await scheduler.remove_replenishment(42, 99)
        mock_job_queue.remove_job_scheduler.assert_not_awaited()
