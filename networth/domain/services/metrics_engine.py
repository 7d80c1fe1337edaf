"""
METRICS ENGINE
Invested capital, value, return and day change over converted rows.

RULES:
- total_value sums every row, with or without a cost basis
- total_invested and total_return only see rows whose cost basis is > 0
- total_return is summed per row, never total_value - total_invested
- day change is summed per row, never derived from totals
"""

from decimal import Decimal
from typing import Iterable, Optional

from networth.domain.models import ConvertedRow, PortfolioMetrics, ZERO

HUNDRED = Decimal("100")


def return_percent(total_return: Decimal, total_invested: Decimal) -> Decimal:
    if total_invested <= 0:
        return ZERO
    return total_return / total_invested * HUNDRED


def day_change_percent(day_change: Optional[Decimal], total_value: Decimal) -> Optional[Decimal]:
    """Day change relative to current value; None when no row reports one"""
    if day_change is None:
        return None
    if total_value <= 0:
        return ZERO
    return day_change / total_value * HUNDRED


def compute_metrics(rows: Iterable[ConvertedRow], currency: str) -> PortfolioMetrics:
    """
    Derive portfolio metrics from rows already expressed in `currency`.

    Args:
        rows: converted rows (holdings and account summaries)
        currency: the currency all row amounts are in

    Returns:
        PortfolioMetrics
    """
    total_value = ZERO
    total_invested = ZERO
    total_return = ZERO
    day_change: Optional[Decimal] = None

    for row in rows:
        total_value += row.value
        if row.counts_as_invested:
            total_invested += row.cost_basis
            total_return += row.value - row.cost_basis
        if row.day_change is not None:
            day_change = (day_change or ZERO) + row.day_change

    return PortfolioMetrics(
        currency=currency.upper(),
        total_value=total_value,
        total_invested=total_invested,
        total_return=total_return,
        total_return_percent=return_percent(total_return, total_invested),
        day_change=day_change,
        day_change_percent=day_change_percent(day_change, total_value),
    )
