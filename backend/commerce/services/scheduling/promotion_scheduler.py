# backend/commerce/services/scheduling/promotion_scheduler.py
"""
Promotion Scheduler - yearly holiday and birthday promotion jobs.

Holiday schedulers are seeded once per job store; birthday schedulers are
added per customer. Both repeat every 365 days from their first date.
"""

from datetime import date, datetime, timedelta
from typing import Callable, Dict, List, NamedTuple, Optional

from loguru import logger

from ...constants import YEARLY_PERIOD_MS
from ...exceptions import SchedulingFailureError
from ...models.customer_model import Customer
from ...models.job_model import (
    BirthdayPromotionJobData,
    BirthdayPromotionJobTemplate,
    HolidayPromotionJobData,
    HolidayPromotionJobTemplate,
    JobHandle,
    JobOptions,
    PromotionDetails,
    RepeatRule,
)
from ...utils.time_utils import date_to_utc_datetime, utc_now
from .job_queue_service import JobQueueService

BLACK_FRIDAY = "blackFriday"
CYBER_MONDAY = "cyberMonday"


class Holiday(NamedTuple):
    key: str
    name: str
    month_day: Optional[str]  # "MM/DD"; None for dates computed per year
    promotion: PromotionDetails


HOLIDAYS: List[Holiday] = [
    Holiday("valentinesDay", "Valentine's Day", "02/14",
            PromotionDetails(loyalty_points=300, promo_code=True, percent_off=20)),
    Holiday("internationalWomenDay", "International Women's Day", "03/08",
            PromotionDetails(loyalty_points=250, promo_code=True, percent_off=15)),
    Holiday("aprilFoolsDay", "April Fools' Day", "04/01",
            PromotionDetails(loyalty_points=100)),
    Holiday("earthDay", "Earth Day", "04/22",
            PromotionDetails(loyalty_points=200)),
    Holiday("internationalLaborDay", "International Labor Day", "05/01",
            PromotionDetails(loyalty_points=350, promo_code=True, percent_off=25)),
    Holiday("worldEnvironmentDay", "World Environment Day", "06/05",
            PromotionDetails(loyalty_points=150, promo_code=True, percent_off=10)),
    Holiday("internationalFriendshipDay", "International Friendship Day", "07/30",
            PromotionDetails(loyalty_points=250, promo_code=True, percent_off=20)),
    Holiday("halloween", "Halloween", "10/31",
            PromotionDetails(loyalty_points=400, promo_code=True, percent_off=30)),
    Holiday(BLACK_FRIDAY, "Black Friday", None,
            PromotionDetails(loyalty_points=800, promo_code=True, percent_off=60)),
    Holiday(CYBER_MONDAY, "Cyber Monday", None,
            PromotionDetails(loyalty_points=750, promo_code=True, percent_off=55)),
    Holiday("humanRightsDay", "Human Rights Day", "12/10",
            PromotionDetails(loyalty_points=300)),
    Holiday("newYearsEve", "New Year's Eve", "12/31",
            PromotionDetails(loyalty_points=500, promo_code=True, percent_off=50)),
]


def black_friday(year: int) -> date:
    """Last Friday of November."""
    day = date(year, 11, 30)
    while day.weekday() != 4:
        day -= timedelta(days=1)
    return day


def cyber_monday(year: int) -> date:
    """The Monday after Black Friday."""
    return black_friday(year) + timedelta(days=3)


def holiday_date(holiday: Holiday, year: int) -> date:
    if holiday.key == BLACK_FRIDAY:
        return black_friday(year)
    if holiday.key == CYBER_MONDAY:
        return cyber_monday(year)
    month, day = (int(part) for part in holiday.month_day.split("/"))
    return date(year, month, day)


def holiday_scheduler_id(holiday: Holiday, year: int) -> str:
    return f"{holiday.key}:{holiday_date(holiday, year).strftime('%Y/%m/%d')}:promotion:jobScheduler"


def birthday_in_year(birthday: date, year: int) -> date:
    """The birthday's anniversary in ``year``; Feb 29 falls back to Feb 28."""
    try:
        return birthday.replace(year=year)
    except ValueError:
        return date(year, 2, 28)


def birthday_scheduler_id(birthday: date, user_id: int) -> str:
    """Keyed by month and day so the yearly resync replaces the same scheduler."""
    return f"birthday:scheduler:{birthday.strftime('%m-%d')}:{user_id}"


class PromotionScheduler:
    """Writes yearly promotion job schedulers to the promotion queues."""

    def __init__(
        self,
        holiday_queue: JobQueueService,
        birthday_queue: JobQueueService,
        job_options: Optional[JobOptions] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.holiday_queue = holiday_queue
        self.birthday_queue = birthday_queue
        self.job_options = job_options or JobOptions()
        self.clock = clock

    async def seed_holiday_schedulers(self, year: Optional[int] = None) -> Dict[str, JobHandle]:
        """
        Upsert one yearly scheduler per holiday.

        Does nothing when the holiday queue already holds schedulers.
        Individual failures are logged; the remaining holidays are still
        seeded.

        Returns:
            Handles of the schedulers written, keyed by scheduler id
        """
        existing = await self.holiday_queue.get_job_scheduler_ids()
        if existing:
            logger.info(f"Holiday promotions already scheduled ({len(existing)} schedulers)")
            return {}

        year = year or self.clock().year
        handles: Dict[str, JobHandle] = {}
        for holiday in HOLIDAYS:
            scheduler_id = holiday_scheduler_id(holiday, year)
            handle = await self.holiday_queue.upsert_job_scheduler(
                scheduler_id,
                RepeatRule(
                    every_ms=YEARLY_PERIOD_MS,
                    start_date=date_to_utc_datetime(holiday_date(holiday, year)),
                ),
                HolidayPromotionJobTemplate(
                    data=HolidayPromotionJobData(
                        holiday_name=holiday.name, promotion=holiday.promotion
                    ),
                    opts=self.job_options,
                ),
            )
            if handle is None:
                logger.warning(f"⚠️ Could not schedule holiday promotion {holiday.name}")
                continue
            handles[scheduler_id] = handle

        logger.info(f"✅ Seeded {len(handles)}/{len(HOLIDAYS)} holiday promotion schedulers")
        return handles

    async def add_birthday_job_scheduler(self, customer: Customer) -> JobHandle:
        """
        Schedule a yearly birthday promotion starting this year.

        Raises:
            SchedulingFailureError: The queue did not schedule a job, or the
                customer has no birthday or payment reference
        """
        if customer.birthday is None or not customer.stripe_id:
            raise SchedulingFailureError(
                f"Customer {customer.user_id} has no birthday or payment reference"
            )

        start = birthday_in_year(customer.birthday, self.clock().year)
        scheduler_id = birthday_scheduler_id(customer.birthday, customer.user_id)
        handle = await self.birthday_queue.upsert_job_scheduler(
            scheduler_id,
            RepeatRule(every_ms=YEARLY_PERIOD_MS, start_date=date_to_utc_datetime(start)),
            BirthdayPromotionJobTemplate(
                data=BirthdayPromotionJobData(
                    user_id=customer.user_id,
                    stripe_customer_id=customer.stripe_id,
                    email=customer.email,
                    first_name=customer.first_name,
                    birthday=customer.birthday,
                ),
                opts=self.job_options,
            ),
        )
        if handle is None:
            raise SchedulingFailureError(f"Failed to schedule birthday promotion {scheduler_id}")
        logger.info(f"✅ Scheduled birthday promotion for user {customer.user_id}")
        return handle

    async def sync_birthday_schedulers(self, customers: List[Customer]) -> int:
        """
        Upsert birthday schedulers for every customer that can receive one.

        Returns:
            Number of schedulers written
        """
        scheduled = 0
        for customer in customers:
            if customer.birthday is None or not customer.stripe_id:
                continue
            try:
                await self.add_birthday_job_scheduler(customer)
                scheduled += 1
            except SchedulingFailureError as e:
                logger.warning(f"⚠️ {e}")
        return scheduled
