# backend/commerce/constants.py
"""
Application constants.

Values here are part of the scheduling contract shared by the API and
worker processes; changing them changes when jobs run.
"""

from .enums import ReplenishmentUnit

# =============================================================================
# INTERVAL ARITHMETIC
# =============================================================================

MILLISECONDS_PER_SECOND = 1000
MILLISECONDS_PER_DAY = 24 * 60 * 60 * MILLISECONDS_PER_SECOND

# Months are 30 days and years are 365 days, never calendar-accurate.
UNIT_MILLISECONDS = {
    ReplenishmentUnit.DAY: MILLISECONDS_PER_DAY,
    ReplenishmentUnit.WEEK: 7 * MILLISECONDS_PER_DAY,
    ReplenishmentUnit.MONTH: 30 * MILLISECONDS_PER_DAY,
    ReplenishmentUnit.YEAR: 365 * MILLISECONDS_PER_DAY,
    ReplenishmentUnit.CUSTOM: MILLISECONDS_PER_SECOND,
}

YEARLY_PERIOD_MS = UNIT_MILLISECONDS[ReplenishmentUnit.YEAR]

# =============================================================================
# IDENTIFIERS & CACHE KEYS
# =============================================================================

SCHEDULER_ID_PREFIX = "scheduler"
JOB_HANDLE_PREFIX = "repeat"
ORDER_DATA_KEY_PREFIX = "orderData"

# =============================================================================
# PROMOTIONS
# =============================================================================

BIRTHDAY_PROMOTION_PERCENT_OFF = 50
DEFAULT_PROMOTION_CONCURRENCY = 10

# =============================================================================
# JOB PROCESSORS
# =============================================================================

# Textual references so job descriptors stay loadable by either process
REPLENISHMENT_JOB_PROCESSOR = "commerce.workers.replenishment_worker:run_replenishment_cycle"
HOLIDAY_PROMOTION_JOB_PROCESSOR = "commerce.workers.promotion_worker:run_holiday_promotion"
BIRTHDAY_PROMOTION_JOB_PROCESSOR = "commerce.workers.promotion_worker:run_birthday_promotion"

JOBSTORE_WAKEUP_JOB_ID = "jobstore-wakeup"
JOB_MISFIRE_GRACE_SECONDS = 3600
