# backend/commerce/services/cache_store.py
"""
Replenishment cache store.

Denormalized lookup hashes keyed by the replenishment's next job id, so a
cancellation can find the customer and order behind a job without a
database round trip. The relational record stays the source of truth:
failures here are logged and reported as False, never raised.
"""

import json
from typing import Any, Dict, Optional

import redis.asyncio as redis
from loguru import logger
from redis.exceptions import RedisError

from ..config import Settings
from ..constants import ORDER_DATA_KEY_PREFIX
from ..models.job_model import JobHandle
from ..models.replenishment_model import OrderTemplate

REDIS_MAX_CONNECTIONS = 20
REDIS_SOCKET_CONNECT_TIMEOUT = 5


def create_redis_client(app_settings: Settings) -> redis.Redis:
    """Process-wide async Redis client for the cache store."""
    pool = redis.ConnectionPool(
        decode_responses=True,
        max_connections=REDIS_MAX_CONNECTIONS,
        socket_keepalive=True,
        socket_connect_timeout=REDIS_SOCKET_CONNECT_TIMEOUT,
        retry_on_timeout=True,
        **app_settings.redis_connect_args,
    )
    return redis.Redis(connection_pool=pool)


def order_data_key(handle: JobHandle) -> str:
    """Cache key of the job a handle points at."""
    return f"{ORDER_DATA_KEY_PREFIX}:{handle.id}"


class ReplenishmentCacheStore:
    """Hash-per-job pointers from a scheduled job back to its order."""

    def __init__(self, client: redis.Redis) -> None:
        self.client = client

    async def mirror(
        self,
        handle: JobHandle,
        customer_id: int,
        order_template: OrderTemplate,
    ) -> Optional[str]:
        """
        Write the pointer hash for ``handle``.

        Returns:
            The cache key, or None if the write failed
        """
        key = order_data_key(handle)
        mapping = {
            "customerId": str(customer_id),
            "schedulerId": handle.scheduler_id,
            "paymentMethod": order_template.payment_method.value,
            "shippingCountry": order_template.shipping_country,
            "orderItems": json.dumps(
                [item.model_dump() for item in order_template.order_items]
            ),
        }
        try:
            await self.client.hset(key, mapping=mapping)
        except RedisError as e:
            logger.warning(f"⚠️ Failed to mirror cache pointer {key}: {e}")
            return None
        return key

    async def drop(self, key: Optional[str]) -> bool:
        """Delete a pointer hash; a missing key is not an error."""
        if not key:
            return False
        try:
            return bool(await self.client.delete(key))
        except RedisError as e:
            logger.warning(f"⚠️ Failed to drop cache pointer {key}: {e}")
            return False

    async def lookup(self, key: str) -> Optional[Dict[str, Any]]:
        """Read a pointer hash back, decoding the order items."""
        try:
            data = await self.client.hgetall(key)
        except RedisError as e:
            logger.warning(f"⚠️ Failed to read cache pointer {key}: {e}")
            return None
        if not data:
            return None
        data["customerId"] = int(data["customerId"])
        data["orderItems"] = json.loads(data.get("orderItems", "[]"))
        return data

    async def refresh(
        self,
        old_key: Optional[str],
        handle: JobHandle,
        customer_id: int,
        order_template: OrderTemplate,
    ) -> Optional[str]:
        """Move a pointer to a new job; unchanged keys are rewritten in place."""
        new_key = order_data_key(handle)
        if old_key and old_key != new_key:
            await self.drop(old_key)
        return await self.mirror(handle, customer_id, order_template)

    async def close(self) -> None:
        await self.client.aclose()
