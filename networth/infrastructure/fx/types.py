"""
FX provider protocol for type hints.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Protocol


@dataclass(frozen=True)
class ConversionResult:
    from_currency: str
    to_currency: str
    rate: Decimal
    amount: Decimal
    converted_amount: Decimal


class FxProvider(Protocol):
    async def convert(self, from_currency: str, to_currency: str, amount: Decimal) -> ConversionResult:
        """Raises ConversionUnavailable when no rate can be obtained"""
        ...

    async def get_rates(self, from_currency: str, to_currencies: List[str]) -> Dict[str, Decimal]:
        ...
