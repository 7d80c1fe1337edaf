"""
FX provider factory (settings-driven).
"""

from __future__ import annotations

import logging
from typing import Optional

from networth.config import Settings, settings as default_settings
from networth.infrastructure.cache.redis_cache import RedisRateCache
from networth.infrastructure.fx.exchange_rate_provider import ExchangeRateApiProvider
from networth.infrastructure.fx.static_provider import StaticRateProvider
from networth.infrastructure.fx.types import FxProvider

logger = logging.getLogger(__name__)


def get_fx_provider(config: Optional[Settings] = None) -> FxProvider:
    cfg = config or default_settings
    name = (cfg.FX_PROVIDER or "").lower()

    if name == "static":
        logger.info("Using static FX rates (%d pairs)", len(cfg.FX_STATIC_RATES))
        return StaticRateProvider(cfg.FX_STATIC_RATES)

    if name != "exchangerate_api":
        raise ValueError(f"Unknown FX provider: {cfg.FX_PROVIDER}")

    rate_cache = None
    if cfg.REDIS_ENABLED:
        rate_cache = RedisRateCache(cfg.REDIS_URL, prefix=cfg.REDIS_PREFIX)

    return ExchangeRateApiProvider(
        api_base_url=cfg.FX_API_BASE_URL,
        free_api_base_url=cfg.FX_FREE_API_BASE_URL,
        api_key=cfg.FX_API_KEY,
        cache_ttl_seconds=cfg.FX_RATE_CACHE_TTL_SECONDS,
        timeout_seconds=cfg.FX_REQUEST_TIMEOUT_SECONDS,
        rate_cache=rate_cache,
    )
