"""
PORTFOLIO AGGREGATOR

RESPONSIBILITIES:
- Run one aggregation pass: convert -> consolidate -> totals
- Convert debt balances; net worth is total value minus total debts
- Load snapshots from the persistence collaborator
- Discard results of passes superseded by a newer snapshot

RULES:
- Every pass gets its own ConversionCache
- Never raises past the public methods: a failed pass yields an
  "unavailable" view / zeroed metrics
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Callable, Iterable, List, Optional, Protocol, Sequence, Tuple

from networth.domain.models import (
    Account,
    AggregateRow,
    AggregateView,
    Container,
    ConvertedRow,
    DebtLine,
    DebtRecord,
    HoldingRecord,
    MonetaryAmount,
    PersistResult,
    PortfolioMetrics,
    PortfolioRow,
    PortfolioSnapshot,
    RowKind,
)
from networth.domain.services.account_view import build_display_rows
from networth.domain.services.consolidation_engine import consolidate
from networth.domain.services.conversion_cache import ConversionCache
from networth.domain.services.currency_normalizer import CurrencyNormalizer
from networth.domain.services.metrics_engine import compute_metrics
from networth.infrastructure.fx.types import FxProvider

logger = logging.getLogger(__name__)


class PortfolioStore(Protocol):
    """Protocol for portfolio data access - ASYNC"""

    async def fetch_containers(self, scope_id: str) -> List[Container]:
        """Containers of one sheet / user, ordered by position"""
        ...

    async def fetch_holdings_for_containers(self, container_ids: List[str]) -> List[HoldingRecord]:
        ...

    async def fetch_accounts(self, container_ids: List[str]) -> List[Account]:
        ...

    async def fetch_debts(self, scope_id: str) -> List[DebtRecord]:
        ...

    async def persist_reorder(
        self,
        record_id: str,
        target_container_id: str,
        target_index: int,
    ) -> PersistResult:
        ...


def _value_of(row: PortfolioRow) -> MonetaryAmount:
    if row.kind is RowKind.ACCOUNT_SUMMARY:
        return row.balance
    return row.current_value


async def convert_rows(
    rows: Sequence[PortfolioRow],
    target_currency: str,
    normalizer: CurrencyNormalizer,
) -> List[ConvertedRow]:
    """
    Express values, cost bases and day changes of every row in the target currency.

    All amounts go through a single normalize() call so a value and a cost
    basis that happen to be equal share one FX lookup.
    """
    amounts: List[MonetaryAmount] = []
    layout = []
    for row in rows:
        value_idx = len(amounts)
        amounts.append(_value_of(row))

        basis_idx = day_idx = None
        if row.kind is RowKind.HOLDING:
            if row.has_cost_basis:
                basis_idx = len(amounts)
                amounts.append(row.cost_basis)
            if row.day_change is not None:
                day_idx = len(amounts)
                amounts.append(row.day_change)
        layout.append((row, value_idx, basis_idx, day_idx))

    converted = await normalizer.normalize(amounts, target_currency)

    return [
        ConvertedRow(
            row=row,
            value=converted[value_idx],
            cost_basis=converted[basis_idx] if basis_idx is not None else None,
            day_change=converted[day_idx] if day_idx is not None else None,
        )
        for row, value_idx, basis_idx, day_idx in layout
    ]


async def convert_debts(
    debts: Sequence[DebtRecord],
    target_currency: str,
    normalizer: CurrencyNormalizer,
) -> Tuple[List[DebtLine], Decimal]:
    """
    Per-debt display balances plus the debt total.

    The total is summed per currency first and each currency sum is
    converted once.
    """
    balances = [debt.balance for debt in debts]
    converted = await normalizer.normalize(balances, target_currency)
    total = await normalizer.normalize_total(balances, target_currency)
    return [DebtLine(debt=d, balance=b) for d, b in zip(debts, converted)], total


async def aggregate(
    snapshot: PortfolioSnapshot,
    target_currency: str,
    fx_provider: FxProvider,
    generation: int = 0,
) -> AggregateView:
    """
    One aggregation pass over an immutable snapshot.

    Returns:
        AggregateView; AggregateView.unavailable(...) if the pass failed
    """
    target = target_currency.upper()
    normalizer = CurrencyNormalizer(fx_provider, ConversionCache())
    try:
        converted = await convert_rows(snapshot.rows, target, normalizer)
        rows = consolidate(converted, target)
        totals = compute_metrics(converted, target)
        debts, total_debts = await convert_debts(snapshot.debts, target, normalizer)
    except Exception:
        logger.exception("Aggregation pass %d failed; returning unavailable view", generation)
        return AggregateView.unavailable(target, generation=generation)

    return AggregateView(
        currency=target,
        rows=tuple(rows),
        totals=totals,
        degraded_currencies=normalizer.degraded_currencies,
        generation=generation,
        debts=tuple(debts),
        total_debts=total_debts,
    )


class PortfolioAggregationService:
    """
    Entry point used by the presentation layer.

    on_snapshot() is driven by the store's change feed; get_* methods load
    a fresh snapshot on demand.
    """

    def __init__(
        self,
        store: PortfolioStore,
        fx_provider: FxProvider,
        scope_id: str,
        default_currency: str = "USD",
    ):
        self.store = store
        self.fx_provider = fx_provider
        self.scope_id = scope_id
        self.default_currency = default_currency.upper()
        self.latest_view: Optional[AggregateView] = None
        self._generation = 0
        self._listeners: List[Callable[[AggregateView], None]] = []

    @property
    def generation(self) -> int:
        return self._generation

    def subscribe(self, listener: Callable[[AggregateView], None]) -> None:
        self._listeners.append(listener)

    def invalidate(self) -> None:
        """Consumer went away: results of in-flight passes are dropped"""
        self._generation += 1

    def _currency(self, target_currency: Optional[str]) -> str:
        return (target_currency or self.default_currency).upper()

    async def _rows_for(self, container_ids: List[str]) -> List[PortfolioRow]:
        holdings = await self.store.fetch_holdings_for_containers(container_ids)
        accounts = await self.store.fetch_accounts(container_ids)
        return build_display_rows(holdings, accounts)

    async def load_snapshot(self) -> PortfolioSnapshot:
        containers = await self.store.fetch_containers(self.scope_id)
        rows = await self._rows_for([c.id for c in containers])
        debts = await self.store.fetch_debts(self.scope_id)
        return PortfolioSnapshot(containers=tuple(containers), rows=tuple(rows), debts=tuple(debts))

    async def load_view(self, target_currency: Optional[str] = None) -> AggregateView:
        target = self._currency(target_currency)
        try:
            snapshot = await self.load_snapshot()
        except Exception:
            logger.exception("Loading snapshot for scope %s failed", self.scope_id)
            return AggregateView.unavailable(target)
        return await aggregate(snapshot, target, self.fx_provider)

    async def get_aggregate_view(self, target_currency: Optional[str] = None) -> List[AggregateRow]:
        view = await self.load_view(target_currency)
        return list(view.rows)

    async def get_container_metrics(
        self,
        container_id: str,
        target_currency: Optional[str] = None,
    ) -> PortfolioMetrics:
        target = self._currency(target_currency)
        try:
            rows = await self._rows_for([container_id])
            normalizer = CurrencyNormalizer(self.fx_provider, ConversionCache())
            converted = await convert_rows(rows, target, normalizer)
            return compute_metrics(converted, target)
        except Exception:
            logger.exception("Metrics for container %s failed", container_id)
            return PortfolioMetrics.zeroed(target)

    async def refresh(self, target_currency: Optional[str] = None) -> Optional[AggregateView]:
        """Load the current snapshot and run it through on_snapshot()"""
        try:
            snapshot = await self.load_snapshot()
        except Exception:
            logger.exception("Loading snapshot for scope %s failed", self.scope_id)
            return None
        return await self.on_snapshot(snapshot, target_currency)

    async def on_snapshot(
        self,
        snapshot: PortfolioSnapshot,
        target_currency: Optional[str] = None,
    ) -> Optional[AggregateView]:
        """
        Re-run aggregation for a new snapshot.

        Returns:
            The published view, or None when a newer pass started meanwhile
        """
        self._generation += 1
        generation = self._generation
        view = await aggregate(snapshot, self._currency(target_currency), self.fx_provider, generation)
        if generation != self._generation:
            logger.debug("Discarding stale aggregation pass %d (current %d)", generation, self._generation)
            return None
        self.latest_view = view
        self._notify(view)
        return view

    def _notify(self, view: AggregateView) -> None:
        for listener in self._listeners:
            try:
                listener(view)
            except Exception:
                logger.exception("Aggregate view listener failed for scope %s", self.scope_id)


def snapshot_from_rows(
    containers: Iterable[Container],
    holdings: Iterable[HoldingRecord],
    accounts: Iterable[Account] = (),
    debts: Iterable[DebtRecord] = (),
) -> PortfolioSnapshot:
    """Build a snapshot from already-fetched records"""
    return PortfolioSnapshot(
        containers=tuple(containers),
        rows=tuple(build_display_rows(holdings, accounts)),
        debts=tuple(debts),
    )
