import hashlib
import json
from typing import Optional

from redis.exceptions import RedisError

from supportpay.extensions import redis_client
from supportpay.models import PaymentRequest
from supportpay.utils.logger import get_logger

logger = get_logger(__name__)

IN_FLIGHT = '__in_flight__'


class IdempotencyService:
    """Guard STK Push initiation against duplicate charges using Redis.

    Every Redis failure fails open: the request goes through unguarded.
    """

    DEFAULT_TTL = 60

    @staticmethod
    def get_key(idempotency_key: str) -> str:
        """Generate Redis key for idempotency"""
        return f'idempotency:{idempotency_key}'

    @staticmethod
    def fingerprint(payment: PaymentRequest) -> str:
        """Key for requests without an Idempotency-Key header: phone + amount + reference."""
        raw = f'{payment.phone_number}:{payment.amount}:{payment.reference}'
        return hashlib.sha256(raw.encode('utf-8')).hexdigest()

    @staticmethod
    def claim(idempotency_key: str, ttl: int = DEFAULT_TTL) -> bool:
        """Mark a request as in flight. False if another request already holds the key."""
        key = IdempotencyService.get_key(idempotency_key)
        try:
            return bool(redis_client.set(key, IN_FLIGHT, ex=ttl, nx=True))
        except RedisError as e:
            logger.warning(f'Idempotency claim failed, continuing without guard: {e}')
            return True

    @staticmethod
    def get_cached_response(idempotency_key: str):
        """Cached response dict, IN_FLIGHT, or None"""
        key = IdempotencyService.get_key(idempotency_key)
        try:
            cached = redis_client.get(key)
        except RedisError as e:
            logger.warning(f'Idempotency lookup failed: {e}')
            return None

        if not cached:
            return None
        if isinstance(cached, bytes):
            cached = cached.decode('utf-8')
        if cached == IN_FLIGHT:
            return IN_FLIGHT
        try:
            return json.loads(cached)
        except ValueError:
            logger.warning(f'Discarding unreadable cached response for {key}')
            return None

    @staticmethod
    def cache_response(idempotency_key: str, response_data: dict, ttl: int = DEFAULT_TTL):
        """Cache response for future idempotent requests"""
        key = IdempotencyService.get_key(idempotency_key)
        try:
            redis_client.set(key, json.dumps(response_data), ex=ttl)
        except RedisError as e:
            logger.warning(f'Idempotency cache write failed: {e}')

    @staticmethod
    def release(idempotency_key: Optional[str]):
        """Drop the key so the same payment can be attempted again"""
        if not idempotency_key:
            return
        key = IdempotencyService.get_key(idempotency_key)
        try:
            redis_client.delete(key)
        except RedisError as e:
            logger.warning(f'Idempotency release failed: {e}')
