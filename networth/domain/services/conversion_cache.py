"""
Conversion cache scoped to a single aggregation pass.

Keyed by the exact (from, to, amount) triple. A fresh instance is created for
every top-level aggregation so a currency-preference change or a newer
snapshot never reads results computed for an older pass.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Dict, FrozenSet, Optional, Set, Tuple

from networth.domain.models import ConversionCacheEntry

CacheKey = Tuple[str, str, Decimal]


class ConversionCache:
    def __init__(self):
        self._entries: Dict[CacheKey, ConversionCacheEntry] = {}
        self._unavailable: Set[Tuple[str, str]] = set()
        self.hits = 0
        self.misses = 0

    @staticmethod
    def _key(from_currency: str, to_currency: str, amount: Decimal) -> CacheKey:
        return (from_currency.upper(), to_currency.upper(), amount)

    def get(self, from_currency: str, to_currency: str, amount: Decimal) -> Optional[Decimal]:
        entry = self._entries.get(self._key(from_currency, to_currency, amount))
        if entry is None:
            self.misses += 1
            return None
        self.hits += 1
        return entry.converted_amount

    def put(self, from_currency: str, to_currency: str, amount: Decimal, converted: Decimal) -> None:
        if from_currency.upper() == to_currency.upper():
            return
        key = self._key(from_currency, to_currency, amount)
        self._entries[key] = ConversionCacheEntry(
            from_currency=key[0],
            to_currency=key[1],
            amount=amount,
            converted_amount=converted,
        )

    def mark_unavailable(self, from_currency: str, to_currency: str) -> None:
        """Remember a failed pair so later lookups in this pass skip the service"""
        self._unavailable.add((from_currency.upper(), to_currency.upper()))

    def is_unavailable(self, from_currency: str, to_currency: str) -> bool:
        return (from_currency.upper(), to_currency.upper()) in self._unavailable

    @property
    def unavailable_currencies(self) -> FrozenSet[str]:
        return frozenset(src for src, _ in self._unavailable)

    def __len__(self) -> int:
        return len(self._entries)
