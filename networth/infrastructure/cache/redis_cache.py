"""
Redis store for FX rate snapshots shared between API workers.
"""

from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation
from typing import Optional

import redis.asyncio as redis

logger = logging.getLogger(__name__)


class RedisRateCache:
    def __init__(self, url: str, prefix: str = "fx:", enabled: bool = True, client=None):
        self._client = client if client is not None else redis.Redis.from_url(url, decode_responses=True)
        self._prefix = prefix
        self._enabled = enabled

    def _key(self, from_currency: str, to_currency: str) -> str:
        return f"{self._prefix}{from_currency.upper()}:{to_currency.upper()}"

    async def get_rate(self, from_currency: str, to_currency: str) -> Optional[Decimal]:
        if not self._enabled:
            return None
        try:
            raw = await self._client.get(self._key(from_currency, to_currency))
        except redis.RedisError as exc:
            logger.debug("Redis get_rate failed: %s", exc)
            return None
        if raw is None:
            return None
        try:
            return Decimal(raw)
        except InvalidOperation:
            logger.debug("Ignoring malformed cached rate %r", raw)
            return None

    async def set_rate(self, from_currency: str, to_currency: str, rate: Decimal, ttl_seconds: int) -> None:
        if not self._enabled:
            return
        try:
            await self._client.set(self._key(from_currency, to_currency), str(rate), ex=ttl_seconds)
        except redis.RedisError as exc:
            logger.debug("Redis set_rate failed: %s", exc)

    async def close(self) -> None:
        try:
            await self._client.aclose()
        except redis.RedisError:
            return
