"""
Fixed-rate FX provider for demo data and offline runs.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Dict, List, Mapping, Tuple

from networth.domain.errors import ConversionUnavailable
from networth.infrastructure.fx.types import ConversionResult

ONE = Decimal("1")


def parse_rate_map(raw: Mapping[str, object]) -> Dict[Tuple[str, str], Decimal]:
    """{"EUR/USD": 1.1} -> {("EUR", "USD"): Decimal("1.1")}"""
    rates: Dict[Tuple[str, str], Decimal] = {}
    for pair, value in raw.items():
        source, _, target = pair.partition("/")
        if not source or not target:
            raise ValueError(f"Rate key must look like 'EUR/USD', got {pair!r}")
        rates[(source.strip().upper(), target.strip().upper())] = Decimal(str(value))
    return rates


class StaticRateProvider:
    def __init__(self, rates: Mapping[str, object]):
        self._rates = parse_rate_map(rates)

    def _rate(self, from_currency: str, to_currency: str) -> Decimal:
        if from_currency == to_currency:
            return ONE
        direct = self._rates.get((from_currency, to_currency))
        if direct is not None:
            return direct
        inverse = self._rates.get((to_currency, from_currency))
        if inverse:
            return ONE / inverse
        raise ConversionUnavailable(from_currency, to_currency, "no static rate configured")

    async def convert(self, from_currency: str, to_currency: str, amount: Decimal) -> ConversionResult:
        source, target = from_currency.upper(), to_currency.upper()
        rate = self._rate(source, target)
        amount = Decimal(str(amount))
        return ConversionResult(
            from_currency=source,
            to_currency=target,
            rate=rate,
            amount=amount,
            converted_amount=amount * rate,
        )

    async def get_rates(self, from_currency: str, to_currencies: List[str]) -> Dict[str, Decimal]:
        rates: Dict[str, Decimal] = {}
        for code in to_currencies:
            try:
                rates[code] = self._rate(from_currency.upper(), code.upper())
            except ConversionUnavailable:
                rates[code] = ONE
        return rates
