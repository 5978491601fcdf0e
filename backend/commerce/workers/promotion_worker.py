# backend/commerce/workers/promotion_worker.py
"""
Promotion worker - holiday and birthday promotion jobs.

Holiday promotions credit loyalty points to every customer and, when the
holiday has one, issue each customer a promotion code. Code requests are
fanned out with a bounded number in flight; a failed request is logged and
does not fail the batch.
"""

import asyncio
from typing import Any, Dict, Optional

from ..constants import BIRTHDAY_PROMOTION_PERCENT_OFF, DEFAULT_PROMOTION_CONCURRENCY
from ..database.customer_operations import CustomerOperations
from ..exceptions import PaymentGatewayError
from ..models.customer_model import Customer
from ..models.job_model import BirthdayPromotionJobTemplate, HolidayPromotionJobTemplate
from ..services.payment_gateway import PaymentGateway
from .base_worker import BaseWorker


class PromotionWorker(BaseWorker):
    """Runs holiday and birthday promotion jobs."""

    def __init__(
        self,
        customer_ops: CustomerOperations,
        payment_gateway: PaymentGateway,
        concurrency: int = DEFAULT_PROMOTION_CONCURRENCY,
    ):
        super().__init__("promotion")
        self.customer_ops = customer_ops
        self.payment_gateway = payment_gateway
        self.concurrency = concurrency

    async def initialize(self) -> None:
        register_worker(self)

    async def cleanup(self) -> None:
        register_worker(None)

    async def process_holiday(self, template: HolidayPromotionJobTemplate) -> Dict[str, int]:
        """
        Apply one holiday promotion to all customers.

        Returns:
            Counts of credited customers, issued codes and failed code requests
        """
        data = template.data
        promotion = data.promotion
        credited = await self.customer_ops.add_loyalty_points_to_all(promotion.loyalty_points)
        self.log_info(
            f"Credited {promotion.loyalty_points} loyalty points to {credited} customers "
            f"for {data.holiday_name}"
        )

        summary = {"credited": credited, "codes_issued": 0, "codes_failed": 0}
        if not promotion.promo_code:
            return summary

        customers = [c for c in await self.customer_ops.get_all() if c.stripe_id]
        semaphore = asyncio.Semaphore(self.concurrency)

        async def issue(customer: Customer) -> bool:
            async with semaphore:
                try:
                    await self.payment_gateway.create_promotion_code(
                        customer.stripe_id, promotion.percent_off, data.holiday_name
                    )
                    return True
                except PaymentGatewayError as e:
                    self.log_warning(
                        f"Promotion code for customer {customer.id} ({data.holiday_name}) failed: {e}"
                    )
                    return False

        results = await asyncio.gather(*(issue(customer) for customer in customers))
        summary["codes_issued"] = sum(results)
        summary["codes_failed"] = len(results) - summary["codes_issued"]
        self.log_info(
            f"✅ {data.holiday_name}: issued {summary['codes_issued']} promotion codes, "
            f"{summary['codes_failed']} failed"
        )
        return summary

    async def process_birthday(self, template: BirthdayPromotionJobTemplate) -> Optional[str]:
        """Issue a birthday promotion code; returns None if the request failed."""
        data = template.data
        try:
            code = await self.payment_gateway.create_promotion_code(
                data.stripe_customer_id, BIRTHDAY_PROMOTION_PERCENT_OFF, "Happy Birthday"
            )
        except PaymentGatewayError as e:
            self.log_error(f"Birthday promotion for user {data.user_id} failed", e)
            return None
        self.log_info(f"✅ Birthday promotion issued for user {data.user_id}")
        return code


_worker: Optional[PromotionWorker] = None


def register_worker(worker: Optional[PromotionWorker]) -> None:
    """Set the worker that fired promotion jobs are handed to."""
    global _worker
    _worker = worker


def _require_worker() -> PromotionWorker:
    if _worker is None:
        raise RuntimeError("Promotion worker is not running")
    return _worker


async def run_holiday_promotion(payload: Dict[str, Any]) -> None:
    """Job function stored in every holiday promotion scheduler."""
    worker = _require_worker()
    template = HolidayPromotionJobTemplate.model_validate(payload)
    async with worker.job(template.data.holiday_name):
        await worker.process_holiday(template)


async def run_birthday_promotion(payload: Dict[str, Any]) -> None:
    """Job function stored in every birthday promotion scheduler."""
    worker = _require_worker()
    template = BirthdayPromotionJobTemplate.model_validate(payload)
    async with worker.job(f"birthday:{template.data.user_id}"):
        await worker.process_birthday(template)
