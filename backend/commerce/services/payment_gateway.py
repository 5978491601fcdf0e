# backend/commerce/services/payment_gateway.py
"""
Payment gateway client.

The payment service owns card data and promotion codes; this module only
knows its HTTP contract. Workers depend on the PaymentGateway protocol so
tests can substitute a fake.
"""

import time
from decimal import Decimal
from typing import Any, Dict, Optional, Protocol

import httpx
from loguru import logger
from pydantic import BaseModel

from ..config import Settings
from ..enums import Currency
from ..exceptions import PaymentGatewayError
from ..models.replenishment_model import OrderTemplate


class ChargeResult(BaseModel):
    """Outcome of one charge request."""

    payment_id: str
    amount: Decimal
    currency: Currency
    order_id: Optional[int] = None


class PaymentGateway(Protocol):
    async def charge(
        self,
        customer_stripe_id: str,
        order_template: OrderTemplate,
        idempotency_key: str,
    ) -> ChargeResult: ...

    async def create_promotion_code(
        self, customer_stripe_id: str, percent_off: int, name: str
    ) -> str: ...


class HttpPaymentGateway:
    """
    PaymentGateway over the payment service's REST API.

    Requests and responses are logged through httpx event hooks. Every
    non-2xx response or transport error becomes PaymentGatewayError.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url
        self.timeout = timeout
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            event_hooks={"request": [self._log_request], "response": [self._log_response]},
        )

    @classmethod
    def from_settings(cls, app_settings: Settings) -> "HttpPaymentGateway":
        return cls(app_settings.payment_service_url, app_settings.payment_service_timeout)

    async def charge(
        self,
        customer_stripe_id: str,
        order_template: OrderTemplate,
        idempotency_key: str,
    ) -> ChargeResult:
        """
        Charge the stored payment method for one order.

        Args:
            customer_stripe_id: Customer reference at the payment provider
            order_template: Items, payment method and currency to charge
            idempotency_key: Repeated keys never charge twice

        Raises:
            PaymentGatewayError: If the charge was declined or could not be sent
        """
        body = {
            "customer": customer_stripe_id,
            "payment_method": order_template.payment_method.value,
            "payment_method_id": order_template.payment_method_id,
            "currency": order_template.currency.value,
            "shipping_country": order_template.shipping_country,
            "items": [item.model_dump() for item in order_template.order_items],
        }
        data = await self._post(
            "/payments/charges", body, headers={"Idempotency-Key": idempotency_key}
        )
        try:
            return ChargeResult.model_validate(data)
        except ValueError as e:
            raise PaymentGatewayError(f"Unexpected charge response: {e}") from e

    async def create_promotion_code(
        self, customer_stripe_id: str, percent_off: int, name: str
    ) -> str:
        """Create a single-customer promotion code and return it."""
        data = await self._post(
            "/promotions/codes",
            {"customer": customer_stripe_id, "percent_off": percent_off, "name": name},
        )
        code = data.get("code")
        if not code:
            raise PaymentGatewayError("Promotion code missing from response")
        return code

    async def close(self) -> None:
        await self._client.aclose()

    async def _post(
        self, path: str, body: Dict[str, Any], headers: Optional[Dict[str, str]] = None
    ) -> Dict[str, Any]:
        try:
            response = await self._client.post(path, json=body, headers=headers)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            raise PaymentGatewayError(
                f"Payment service returned {e.response.status_code} for {path}"
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise PaymentGatewayError(f"Payment service request to {path} failed: {e}") from e

    @staticmethod
    async def _log_request(request: httpx.Request) -> None:
        request.extensions["start_time"] = time.perf_counter()
        logger.debug(f"→ {request.method} {request.url}")

    @staticmethod
    async def _log_response(response: httpx.Response) -> None:
        start_time = response.request.extensions.get("start_time")
        duration_ms = (time.perf_counter() - start_time) * 1000 if start_time else 0.0
        if response.status_code >= 400:
            await response.aread()
            logger.warning(
                f"⚠️ {response.request.method} {response.request.url} → "
                f"{response.status_code} ({duration_ms:.1f}ms): {response.text[:500]}"
            )
        else:
            logger.debug(
                f"← {response.request.method} {response.request.url} → "
                f"{response.status_code} ({duration_ms:.1f}ms)"
            )
