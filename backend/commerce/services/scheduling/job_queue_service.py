# backend/commerce/services/scheduling/job_queue_service.py
"""
Job Queue Service - recurring job schedulers on top of APScheduler.

Each named queue is an APScheduler RedisJobStore, so the API process and
the worker process see the same job descriptors. The API process runs its
scheduler paused and only writes descriptors; the worker process runs the
same stores unpaused and executes due jobs.

Key Features:
- Upsert semantics: writing a scheduler id that already exists replaces
  its descriptor instead of adding a second one
- Idempotent removal
- Job-store failures come back as a missing handle, never as an exception
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from apscheduler.jobstores.base import ConflictingIdError, JobLookupError
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.jobstores.redis import RedisJobStore
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from loguru import logger
from redis.exceptions import RedisError

from ...config import Settings
from ...constants import (
    JOB_HANDLE_PREFIX,
    JOB_MISFIRE_GRACE_SECONDS,
    MILLISECONDS_PER_SECOND,
)
from ...models.job_model import JobHandle, JobTemplate, RepeatRule
from ...utils.time_utils import UTC_TIMEZONE, ensure_utc, to_epoch_ms, utc_now


def build_job_handle_id(scheduler_id: str, next_run_time: datetime) -> str:
    """Id of the job a scheduler will run next."""
    return f"{JOB_HANDLE_PREFIX}:{scheduler_id}:{to_epoch_ms(next_run_time)}"


def build_repeat_trigger(repeat: RepeatRule) -> IntervalTrigger:
    """Interval trigger equivalent of a repeat rule."""
    return IntervalTrigger(
        seconds=repeat.every_ms / MILLISECONDS_PER_SECOND,
        start_date=ensure_utc(repeat.start_date),
        end_date=ensure_utc(repeat.end_date),
        timezone=UTC_TIMEZONE,
    )


def create_scheduler(app_settings: Settings) -> AsyncIOScheduler:
    """
    Build an AsyncIOScheduler with one Redis job store per queue.

    The "default" store is in memory and holds process-local housekeeping
    jobs only.
    """
    jobstores: Dict[str, Any] = {"default": MemoryJobStore()}
    for queue_name in (
        app_settings.replenishment_queue_name,
        app_settings.holiday_promotion_queue_name,
        app_settings.birthday_promotion_queue_name,
    ):
        jobstores[queue_name] = RedisJobStore(
            jobs_key=f"apscheduler.{queue_name}.jobs",
            run_times_key=f"apscheduler.{queue_name}.run_times",
            **app_settings.redis_connect_args,
        )

    return AsyncIOScheduler(
        jobstores=jobstores,
        job_defaults={
            "coalesce": True,
            "max_instances": 1,
            "misfire_grace_time": JOB_MISFIRE_GRACE_SECONDS,
        },
        timezone=UTC_TIMEZONE,
    )


class JobQueueService:
    """
    One named queue of recurring job schedulers.

    Responsibilities:
    - Translate repeat rules into interval triggers
    - Write and remove job descriptors in the queue's job store
    - Report the next job a scheduler will run

    Interactions:
    - Shares one AsyncIOScheduler with the other queues of the process
    - Every job in the queue runs the same processor function
    """

    def __init__(self, scheduler: AsyncIOScheduler, queue_name: str, processor: str):
        """
        Initialize JobQueueService.

        Args:
            scheduler: Scheduler owning the queue's job store
            queue_name: Job store alias
            processor: Textual reference ("module:function") of the job function
        """
        self.scheduler = scheduler
        self.queue_name = queue_name
        self.processor = processor

    async def upsert_job_scheduler(
        self, scheduler_id: str, repeat: RepeatRule, template: JobTemplate
    ) -> Optional[JobHandle]:
        """
        Create or replace the job scheduler ``scheduler_id``.

        Args:
            scheduler_id: Stable scheduler key
            repeat: How often and within which window the job runs
            template: Job name, payload and options

        Returns:
            Handle of the next job, or None if nothing was scheduled
        """
        trigger = build_repeat_trigger(repeat)
        first_run = trigger.get_next_fire_time(None, utc_now())
        if first_run is None:
            logger.warning(
                f"⚠️ Repeat rule for {scheduler_id} in {self.queue_name} has no future run"
            )
            return None

        try:
            job = self.scheduler.add_job(
                self.processor,
                trigger,
                id=scheduler_id,
                name=template.name.value,
                jobstore=self.queue_name,
                replace_existing=True,
                kwargs={"payload": template.model_dump(mode="json")},
            )
        except (RedisError, ConflictingIdError, LookupError, ValueError) as e:
            logger.error(
                f"❌ Failed to upsert job scheduler {scheduler_id} in {self.queue_name}: {e}"
            )
            return None

        next_run_time = getattr(job, "next_run_time", None) or first_run
        logger.debug(f"Upserted job scheduler {scheduler_id}, next run at {next_run_time}")
        return JobHandle(
            id=build_job_handle_id(scheduler_id, next_run_time),
            scheduler_id=scheduler_id,
            next_run_time=next_run_time,
        )

    async def remove_job_scheduler(self, scheduler_id: str) -> bool:
        """
        Remove a job scheduler. Removing an absent one is not an error.

        Returns:
            True if a scheduler was removed
        """
        try:
            self.scheduler.remove_job(scheduler_id, jobstore=self.queue_name)
        except JobLookupError:
            logger.debug(f"Job scheduler {scheduler_id} already absent from {self.queue_name}")
            return False
        logger.debug(f"Removed job scheduler {scheduler_id} from {self.queue_name}")
        return True

    async def get_job_scheduler(self, scheduler_id: str) -> Optional[JobHandle]:
        """Handle of the next job of ``scheduler_id``, if it is scheduled."""
        job = self.scheduler.get_job(scheduler_id, jobstore=self.queue_name)
        if job is None or job.next_run_time is None:
            return None
        return JobHandle(
            id=build_job_handle_id(scheduler_id, job.next_run_time),
            scheduler_id=scheduler_id,
            next_run_time=job.next_run_time,
        )

    async def get_job_scheduler_ids(self) -> List[str]:
        """Ids of every scheduler in the queue."""
        return [job.id for job in self.scheduler.get_jobs(jobstore=self.queue_name)]
