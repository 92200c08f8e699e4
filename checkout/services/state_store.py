# checkout/services/state_store.py
import json

import redis

from checkout.utils.retry import redis_retry
from checkout.utils.settings import (
    REDIS_URL,
    PAYMENT_STATE_TTL_SECONDS,
    CART_CACHE_TTL_SECONDS,
    CART_CACHE_ENABLED,
)
from checkout.utils.logging import get_logger

logger = get_logger(__name__)


def _client(url: str | None):
    return redis.Redis.from_url(url or REDIS_URL, decode_responses=True)


class PaymentStateStore:
    """
    Short-lived payment correlation data, one key per pending transaction:
    {provider}:{transaction_id} -> json, expires after 1h (SETEX).
    """

    def __init__(self, client=None, url: str | None = None, ttl: int = PAYMENT_STATE_TTL_SECONDS):
        self.redis = client if client is not None else _client(url)
        self.ttl = ttl

    @staticmethod
    def _key(provider: str, txn_id: int) -> str:
        return f"{provider.lower()}:{txn_id}"

    @redis_retry()
    def save(self, provider: str, txn_id: int, data: dict) -> None:
        key = self._key(provider, txn_id)
        logger.info(f"Store payment state {key} (ttl={self.ttl}s)")
        self.redis.setex(key, self.ttl, json.dumps(data))

    @redis_retry()
    def load(self, provider: str, txn_id: int) -> dict | None:
        raw = self.redis.get(self._key(provider, txn_id))
        return json.loads(raw) if raw else None

    @redis_retry()
    def clear(self, provider: str, txn_id: int) -> None:
        key = self._key(provider, txn_id)
        logger.info(f"Clear payment state {key}")
        self.redis.delete(key)


class CartCache:
    """Cached cart views. Purely a read aid: everything works with it disabled."""

    def __init__(
        self,
        client=None,
        url: str | None = None,
        ttl: int = CART_CACHE_TTL_SECONDS,
        enabled: bool = CART_CACHE_ENABLED,
    ):
        self.enabled = enabled
        self.redis = client if client is not None or not enabled else _client(url)
        self.ttl = ttl

    @staticmethod
    def cart_key(user_id: int) -> str:
        return f"cart:{user_id}"

    @staticmethod
    def promotions_key(user_id: int) -> str:
        return f"promotions:user:{user_id}"

    def get(self, user_id: int) -> dict | None:
        if not self.enabled:
            return None
        #a cache miss and an unreachable cache both fall back to the db
        try:
            raw = self._get(self.cart_key(user_id))
        except redis.RedisError as e:
            logger.warning(f"Cart cache read failed for user {user_id}: {e}")
            return None
        return json.loads(raw) if raw else None

    def put(self, user_id: int, view: dict) -> None:
        if not self.enabled:
            return
        try:
            self._setex(self.cart_key(user_id), json.dumps(view, default=str))
        except redis.RedisError as e:
            logger.warning(f"Cart cache write failed for user {user_id}: {e}")

    def invalidate(self, user_id: int) -> None:
        if not self.enabled:
            return
        #a failed delete leaves a stale view for at most ttl seconds
        try:
            self._delete(self.cart_key(user_id), self.promotions_key(user_id))
        except redis.RedisError as e:
            logger.warning(f"Failed to invalidate cart cache for user {user_id}: {e}")

    @redis_retry()
    def _delete(self, *keys: str) -> None:
        self.redis.delete(*keys)

    @redis_retry()
    def _get(self, key: str):
        return self.redis.get(key)

    @redis_retry()
    def _setex(self, key: str, value: str) -> None:
        self.redis.setex(key, self.ttl, value)
