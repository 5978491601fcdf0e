# backend/commerce/enums.py
"""
Application Enums - Centralized enum definitions.

Kept apart from constants.py and the pydantic models so every layer can
import them without creating circular dependencies.
"""

from enum import Enum


# =============================================================================
# LOGGING
# =============================================================================


class LogLevel(str, Enum):
    """Log levels accepted by the logging setup."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


# =============================================================================
# REPLENISHMENT SYSTEM
# =============================================================================


class ReplenishmentUnit(str, Enum):
    """Interval unit of a replenishment. Must be: day, week, month, year, custom."""

    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"
    CUSTOM = "custom"


class ReplenishmentStatus(str, Enum):
    """Lifecycle status of a replenishment."""

    SCHEDULED = "scheduled"
    ACTIVE = "active"
    CANCELED = "canceled"
    FINISHED = "finished"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        """Terminal records never execute again."""
        return self in (ReplenishmentStatus.CANCELED, ReplenishmentStatus.FINISHED)


class RejectionReason(str, Enum):
    """Why a state transition on a replenishment was refused."""

    FINISHED_IMMUTABLE = "finished_immutable"
    SCHEDULED_REQUIRES_START_DATE = "scheduled_requires_start_date"
    ACTIVE_FORBIDS_START_DATE = "active_forbids_start_date"
    CANCELED_IMMUTABLE = "canceled_immutable"
    CANNOT_CANCEL_FINISHED = "cannot_cancel_finished"


class PaymentMethod(str, Enum):
    """Payment methods a replenishment can be charged with."""

    CARD = "card"
    WALLET = "wallet"
    BANK_TRANSFER = "bank-transfer"


class Currency(str, Enum):
    """Currencies accepted by the payment service."""

    USD = "usd"
    EUR = "eur"


# =============================================================================
# JOB SYSTEMS
# =============================================================================


class JobName(str, Enum):
    """Names given to the jobs each scheduler produces."""

    REPLENISHMENT_PAYMENT = "replenishment-payment"
    HOLIDAY_PROMOTION = "holiday-promotion"
    BIRTHDAY_PROMOTION = "birthday-promocode"
