import json
from decimal import Decimal

import httpx
import pytest

from networth.config import Settings
from networth.domain.errors import ConversionUnavailable
from networth.infrastructure.cache.redis_cache import RedisRateCache
from networth.infrastructure.fx.exchange_rate_provider import ExchangeRateApiProvider
from networth.infrastructure.fx.provider_factory import get_fx_provider
from networth.infrastructure.fx.static_provider import StaticRateProvider, parse_rate_map


def _transport(handler, seen=None):
    def _handle(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(str(request.url))
        return handler(request)

    return httpx.MockTransport(_handle)


class FakeRedis:
    def __init__(self):
        self.store = {}

    async def get(self, key):
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        self.store[key] = value

    async def aclose(self):
        return None


class TestExchangeRateApiProvider:
    @pytest.mark.asyncio
    async def test_keyed_pair_endpoint(self):
        seen = []
        provider = ExchangeRateApiProvider(
            api_key="abcdef123456",
            transport=_transport(
                lambda r: httpx.Response(200, json={"result": "success", "conversion_rate": 1.1}),
                seen,
            ),
        )

        result = await provider.convert("eur", "usd", Decimal("50"))

        assert result.rate == Decimal("1.1")
        assert result.converted_amount == Decimal("55.0")
        assert seen == ["https://v6.exchangerate-api.com/v6/abcdef123456/pair/EUR/USD"]

    @pytest.mark.asyncio
    async def test_free_endpoint_caches_whole_table(self):
        seen = []
        provider = ExchangeRateApiProvider(
            transport=_transport(
                lambda r: httpx.Response(200, json={"rates": {"USD": 1.1, "GBP": 0.85}}),
                seen,
            ),
        )

        await provider.convert("EUR", "USD", Decimal("10"))
        result = await provider.convert("EUR", "GBP", Decimal("10"))

        assert result.converted_amount == Decimal("8.50")
        assert seen == ["https://api.exchangerate-api.com/v4/latest/EUR"]
        assert provider.request_count == 1

    @pytest.mark.asyncio
    async def test_same_currency_skips_http(self):
        provider = ExchangeRateApiProvider(
            transport=_transport(lambda r: httpx.Response(500)),
        )
        result = await provider.convert("USD", "USD", Decimal("12"))
        assert result.converted_amount == Decimal("12")
        assert provider.request_count == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(503, text="down"),
            httpx.Response(200, json={"result": "error", "error-type": "invalid-key"}),
            httpx.Response(200, json={"rates": {"GBP": 0.85}}),
            httpx.Response(200, text="not json"),
        ],
    )
    async def test_failures_raise_conversion_unavailable(self, response):
        provider = ExchangeRateApiProvider(transport=_transport(lambda r: response))
        with pytest.raises(ConversionUnavailable):
            await provider.convert("EUR", "USD", Decimal("1"))

    @pytest.mark.asyncio
    async def test_transport_error_raises_conversion_unavailable(self):
        def _boom(request):
            raise httpx.ConnectError("refused", request=request)

        provider = ExchangeRateApiProvider(transport=httpx.MockTransport(_boom))
        with pytest.raises(ConversionUnavailable):
            await provider.convert("EUR", "USD", Decimal("1"))

    @pytest.mark.asyncio
    async def test_get_rates_falls_back_to_one(self):
        def _handler(request):
            if request.url.path.endswith("/USD"):
                return httpx.Response(200, json={"conversion_rate": 1.1})
            return httpx.Response(404)

        provider = ExchangeRateApiProvider(api_key="abcdef123456", transport=_transport(_handler))
        rates = await provider.get_rates("EUR", ["USD", "XYZ"])
        assert rates == {"USD": Decimal("1.1"), "XYZ": Decimal("1")}

    @pytest.mark.asyncio
    async def test_shared_rate_cache_is_used(self):
        fake = FakeRedis()
        rate_cache = RedisRateCache("redis://unused", client=fake)
        provider = ExchangeRateApiProvider(
            api_key="abcdef123456",
            rate_cache=rate_cache,
            transport=_transport(lambda r: httpx.Response(200, json={"conversion_rate": 1.2})),
        )

        await provider.convert("EUR", "USD", Decimal("1"))
        assert fake.store == {"fx:EUR:USD": "1.2"}

        fresh = ExchangeRateApiProvider(
            api_key="abcdef123456",
            rate_cache=rate_cache,
            transport=_transport(lambda r: httpx.Response(500)),
        )
        result = await fresh.convert("EUR", "USD", Decimal("10"))
        assert result.converted_amount == Decimal("12.0")
        assert fresh.request_count == 0


class TestStaticRateProvider:
    @pytest.mark.asyncio
    async def test_direct_and_inverse_rates(self):
        provider = StaticRateProvider({"EUR/USD": 1.25})

        direct = await provider.convert("EUR", "USD", Decimal("4"))
        inverse = await provider.convert("USD", "EUR", Decimal("5"))

        assert direct.converted_amount == Decimal("5.00")
        assert inverse.converted_amount == Decimal("4")

    @pytest.mark.asyncio
    async def test_get_rates_uses_one_for_unknown_pairs(self):
        provider = StaticRateProvider({"EUR/USD": 1.1})
        rates = await provider.get_rates("USD", ["EUR", "JPY"])
        assert rates["JPY"] == Decimal("1")
        assert rates["EUR"] == Decimal("1") / Decimal("1.1")

    @pytest.mark.asyncio
    async def test_unknown_pair_raises(self):
        provider = StaticRateProvider({})
        with pytest.raises(ConversionUnavailable):
            await provider.convert("JPY", "USD", Decimal("1"))

    def test_rate_keys_must_be_pairs(self):
        with pytest.raises(ValueError):
            parse_rate_map({"EURUSD": 1.1})


class TestProviderFactory:
    def test_static(self):
        cfg = Settings(FX_PROVIDER="static", FX_STATIC_RATES={"EUR/USD": 1.1})
        assert isinstance(get_fx_provider(cfg), StaticRateProvider)

    def test_exchangerate_api(self):
        cfg = Settings(FX_PROVIDER="exchangerate_api", FX_API_KEY="abcdef123456")
        provider = get_fx_provider(cfg)
        assert isinstance(provider, ExchangeRateApiProvider)
        assert provider.api_key == "abcdef123456"

    def test_unknown_provider(self):
        with pytest.raises(ValueError):
            get_fx_provider(Settings(FX_PROVIDER="carrier_pigeon"))


def test_static_rates_parse_from_env(monkeypatch):
    monkeypatch.setenv("FX_STATIC_RATES", json.dumps({"GBP/USD": 1.3}))
    assert Settings().FX_STATIC_RATES == {"GBP/USD": 1.3}
