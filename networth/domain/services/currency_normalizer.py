"""
CURRENCY NORMALIZER

RESPONSIBILITIES:
- Express a list of MonetaryAmounts in one target currency
- Batch by currency: at most one FX call per unique (currency, amount)
- Issue independent currency groups concurrently

RULES:
- Same-currency amounts never touch the cache or the FX service
- A failing currency group degrades to its native amounts, it never aborts the pass
"""

from __future__ import annotations

import asyncio
import logging
from decimal import Decimal
from typing import Dict, List, Optional, Sequence

from networth.domain.models import MonetaryAmount, ZERO
from networth.domain.services.conversion_cache import ConversionCache
from networth.infrastructure.fx.types import FxProvider

logger = logging.getLogger(__name__)

# currency -> {native amount: converted amount}, None when the group degraded
ConversionTable = Optional[Dict[Decimal, Decimal]]


class CurrencyNormalizer:
    """Converts heterogeneous amounts into a single display currency"""

    def __init__(self, fx_provider: FxProvider, cache: Optional[ConversionCache] = None):
        self.fx_provider = fx_provider
        self.cache = cache if cache is not None else ConversionCache()

    async def normalize(self, amounts: Sequence[MonetaryAmount], target: str) -> List[Decimal]:
        """
        Convert each amount (per-row display values).

        Returns:
            Converted amounts, same order and length as the input
        """
        target = target.upper()
        groups: Dict[str, Dict[Decimal, None]] = {}
        for money in amounts:
            if money.currency_code == target:
                continue
            groups.setdefault(money.currency_code, {})[money.amount] = None

        tables = await self._convert_groups(
            {currency: list(unique) for currency, unique in groups.items()},
            target,
        )

        converted: List[Decimal] = []
        for money in amounts:
            if money.currency_code == target:
                converted.append(money.amount)
                continue
            table = tables.get(money.currency_code)
            converted.append(table[money.amount] if table is not None else money.amount)
        return converted

    async def normalize_total(self, amounts: Sequence[MonetaryAmount], target: str) -> Decimal:
        """
        Sum per currency first, then convert each currency total once.
        Used for aggregate totals (debt total of a pass).
        """
        target = target.upper()
        total = ZERO
        sums: Dict[str, Decimal] = {}
        for money in amounts:
            if money.currency_code == target:
                total += money.amount
            else:
                sums[money.currency_code] = sums.get(money.currency_code, ZERO) + money.amount

        tables = await self._convert_groups(
            {currency: [amount] for currency, amount in sums.items()},
            target,
        )
        for currency, amount in sums.items():
            table = tables.get(currency)
            total += table[amount] if table is not None else amount
        return total

    @property
    def degraded_currencies(self):
        return self.cache.unavailable_currencies

    async def _convert_groups(
        self,
        groups: Dict[str, List[Decimal]],
        target: str,
    ) -> Dict[str, ConversionTable]:
        if not groups:
            return {}
        currencies = list(groups)
        tables = await asyncio.gather(
            *(self._convert_group(currency, groups[currency], target) for currency in currencies)
        )
        return dict(zip(currencies, tables))

    async def _convert_group(
        self,
        currency: str,
        amounts: List[Decimal],
        target: str,
    ) -> ConversionTable:
        if self.cache.is_unavailable(currency, target):
            return None

        table: Dict[Decimal, Decimal] = {}
        missing: List[Decimal] = []
        for amount in amounts:
            if amount == ZERO:
                table[amount] = ZERO
                continue
            cached = self.cache.get(currency, target, amount)
            if cached is None:
                missing.append(amount)
            else:
                table[amount] = cached

        if not missing:
            return table

        try:
            results = await asyncio.gather(
                *(self.fx_provider.convert(currency, target, amount) for amount in missing)
            )
        except Exception as exc:
            logger.warning(
                "Conversion %s->%s unavailable, using native amounts for %d value(s): %s",
                currency,
                target,
                len(amounts),
                exc,
            )
            self.cache.mark_unavailable(currency, target)
            return None

        for amount, result in zip(missing, results):
            converted = Decimal(str(result.converted_amount))
            self.cache.put(currency, target, amount, converted)
            table[amount] = converted
        return table
