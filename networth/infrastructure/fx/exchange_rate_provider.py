"""
ExchangeRate-API FX provider.

Keyed plan:  GET {api_base_url}/v6/{key}/pair/{from}/{to}  -> conversion_rate
Free plan:   GET {free_api_base_url}/v4/latest/{from}      -> rates[to]
"""

from __future__ import annotations

import asyncio
import logging
import time
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Optional, Tuple

import httpx

from networth.domain.errors import ConversionUnavailable
from networth.infrastructure.cache.redis_cache import RedisRateCache
from networth.infrastructure.fx.types import ConversionResult

logger = logging.getLogger(__name__)

ONE = Decimal("1")


class ExchangeRateApiProvider:
    def __init__(
        self,
        api_base_url: str = "https://v6.exchangerate-api.com",
        free_api_base_url: str = "https://api.exchangerate-api.com",
        api_key: Optional[str] = None,
        cache_ttl_seconds: int = 300,
        timeout_seconds: float = 10.0,
        rate_cache: Optional[RedisRateCache] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_base_url = api_base_url.rstrip("/")
        self.free_api_base_url = free_api_base_url.rstrip("/")
        self.api_key = (api_key or "").strip() or None
        self.cache_ttl_seconds = cache_ttl_seconds
        self.timeout_seconds = timeout_seconds
        self._rate_cache = rate_cache
        self._transport = transport
        self._cache: Dict[Tuple[str, str], Tuple[float, Decimal]] = {}
        self.request_count = 0

    def _cache_get(self, key: Tuple[str, str]) -> Optional[Decimal]:
        cached = self._cache.get(key)
        if not cached:
            return None
        ts, rate = cached
        if time.time() - ts > self.cache_ttl_seconds:
            return None
        return rate

    def _cache_set(self, key: Tuple[str, str], rate: Decimal) -> None:
        self._cache[key] = (time.time(), rate)

    async def _request_json(self, url: str, from_currency: str, to_currency: str) -> dict:
        self.request_count += 1
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
                response = await client.get(url, headers={"Accept": "application/json"})
        except httpx.HTTPError as exc:
            raise ConversionUnavailable(from_currency, to_currency, f"request failed: {exc}") from exc

        if response.status_code != 200:
            logger.debug("FX API %s: %s", response.status_code, response.text)
            raise ConversionUnavailable(from_currency, to_currency, f"HTTP {response.status_code}")
        try:
            payload = response.json()
        except ValueError as exc:
            raise ConversionUnavailable(from_currency, to_currency, "invalid JSON") from exc
        if payload.get("result") == "error":
            raise ConversionUnavailable(
                from_currency, to_currency, str(payload.get("error-type", "api error"))
            )
        return payload

    @staticmethod
    def _parse_rate(value, from_currency: str, to_currency: str) -> Decimal:
        if value is None:
            raise ConversionUnavailable(from_currency, to_currency, "rate missing in response")
        try:
            rate = Decimal(str(value))
        except InvalidOperation as exc:
            raise ConversionUnavailable(from_currency, to_currency, f"bad rate {value!r}") from exc
        if not rate.is_finite() or rate <= 0:
            raise ConversionUnavailable(from_currency, to_currency, f"bad rate {value!r}")
        return rate

    async def _fetch_rate(self, from_currency: str, to_currency: str) -> Decimal:
        if self.api_key:
            url = f"{self.api_base_url}/v6/{self.api_key}/pair/{from_currency}/{to_currency}"
            payload = await self._request_json(url, from_currency, to_currency)
            return self._parse_rate(payload.get("conversion_rate"), from_currency, to_currency)

        url = f"{self.free_api_base_url}/v4/latest/{from_currency}"
        payload = await self._request_json(url, from_currency, to_currency)
        rates = payload.get("rates") or {}
        # the free endpoint returns the whole table; keep every quote we got
        for code, value in rates.items():
            try:
                self._cache_set((from_currency, code.upper()), self._parse_rate(value, from_currency, code))
            except ConversionUnavailable:
                continue
        return self._parse_rate(rates.get(to_currency), from_currency, to_currency)

    async def get_rate(self, from_currency: str, to_currency: str) -> Decimal:
        from_currency = from_currency.upper()
        to_currency = to_currency.upper()
        if from_currency == to_currency:
            return ONE

        key = (from_currency, to_currency)
        rate = self._cache_get(key)
        if rate is not None:
            return rate

        if self._rate_cache is not None:
            rate = await self._rate_cache.get_rate(from_currency, to_currency)
            if rate is not None:
                self._cache_set(key, rate)
                return rate

        rate = await self._fetch_rate(from_currency, to_currency)
        self._cache_set(key, rate)
        if self._rate_cache is not None:
            await self._rate_cache.set_rate(from_currency, to_currency, rate, self.cache_ttl_seconds)
        return rate

    async def convert(self, from_currency: str, to_currency: str, amount: Decimal) -> ConversionResult:
        rate = await self.get_rate(from_currency, to_currency)
        amount = Decimal(str(amount))
        return ConversionResult(
            from_currency=from_currency.upper(),
            to_currency=to_currency.upper(),
            rate=rate,
            amount=amount,
            converted_amount=amount * rate,
        )

    async def get_rates(self, from_currency: str, to_currencies: List[str]) -> Dict[str, Decimal]:
        """Several rates at once; a failed currency falls back to 1:1"""

        async def _one(to_currency: str) -> Decimal:
            try:
                return await self.get_rate(from_currency, to_currency)
            except ConversionUnavailable as exc:
                logger.warning("Rate %s->%s unavailable, using 1: %s", from_currency, to_currency, exc.reason)
                return ONE

        rates = await asyncio.gather(*(_one(code) for code in to_currencies))
        return dict(zip(to_currencies, rates))

    async def close(self) -> None:
        if self._rate_cache is not None:
            await self._rate_cache.close()
