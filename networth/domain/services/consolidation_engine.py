"""
Consolidation Engine
Merges rows for the same logical holding across sections into one aggregate row.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Tuple, Union

from networth.domain.errors import InvalidIdentityKey
from networth.domain.models import (
    AggregateRow,
    ConvertedRow,
    HoldingRecord,
    MonetaryAmount,
    RowKind,
    ZERO,
    make_identity_key,
)
from networth.domain.services.metrics_engine import day_change_percent, return_percent

logger = logging.getLogger(__name__)

# grouped partitions use the identity key; everything else gets a private slot
SlotKey = Union[str, Tuple[str, str]]


@dataclass
class _Partition:
    identity_key: Optional[str]
    kind: RowKind
    name: str
    symbol: Optional[str]
    instrument_type: Optional[str]
    value: Decimal = ZERO
    invested: Decimal = ZERO
    total_return: Decimal = ZERO
    quantity: Decimal = ZERO
    day_change: Optional[Decimal] = None
    containers: set = field(default_factory=set)
    record_ids: List[str] = field(default_factory=list)

    def add(self, converted: ConvertedRow) -> None:
        self.value += converted.value
        if converted.counts_as_invested:
            self.invested += converted.cost_basis
            self.total_return += converted.value - converted.cost_basis
        if converted.day_change is not None:
            self.day_change = (self.day_change or ZERO) + converted.day_change
        if isinstance(converted.row, HoldingRecord):
            self.quantity += converted.row.quantity
        self.containers.add(converted.row.container_id)
        self.record_ids.append(converted.row.id)

    def to_row(self, currency: str) -> AggregateRow:
        return AggregateRow(
            identity_key=self.identity_key,
            kind=self.kind,
            name=self.name,
            total_value=MonetaryAmount(self.value, currency),
            total_invested=MonetaryAmount(self.invested, currency),
            total_return=MonetaryAmount(self.total_return, currency),
            total_return_percent=return_percent(self.total_return, self.invested),
            containers=frozenset(self.containers),
            record_ids=tuple(self.record_ids),
            symbol=self.symbol,
            instrument_type=self.instrument_type,
            quantity=self.quantity,
            day_change=(
                MonetaryAmount(self.day_change, currency)
                if self.day_change is not None
                else None
            ),
            day_change_percent=day_change_percent(self.day_change, self.value),
        )


def resolve_identity_key(record: HoldingRecord) -> str:
    """Use the stored key when present, otherwise derive it from symbol/name + type"""
    stored = (record.identity_key or "").strip()
    if stored:
        return stored
    return make_identity_key(
        record.instrument_type,
        symbol=record.symbol,
        name=record.name,
        record_id=record.id,
    )


def consolidate(rows: Sequence[ConvertedRow], currency: str) -> List[AggregateRow]:
    """
    Partition converted rows by identity key and merge each partition.

    Account summaries and rows without a usable identity key are emitted
    as single, un-grouped rows. Output is ordered by total value descending;
    equal values keep first-seen order.
    """
    currency = currency.upper()
    partitions: Dict[SlotKey, _Partition] = {}

    for converted in rows:
        row = converted.row
        if row.kind is RowKind.ACCOUNT_SUMMARY:
            slot: SlotKey = ("account", row.id)
            partitions[slot] = _Partition(
                identity_key=None,
                kind=RowKind.ACCOUNT_SUMMARY,
                name=row.name,
                symbol=None,
                instrument_type="account",
            )
            partitions[slot].add(converted)
            continue

        try:
            key = resolve_identity_key(row)
        except InvalidIdentityKey as exc:
            logger.warning("Holding %s shown un-grouped: %s", row.id, exc.reason)
            slot = ("record", row.id)
            partitions[slot] = _Partition(
                identity_key=None,
                kind=RowKind.HOLDING,
                name=row.name,
                symbol=row.symbol,
                instrument_type=row.instrument_type,
            )
            partitions[slot].add(converted)
            continue

        partition = partitions.get(key)
        if partition is None:
            partition = _Partition(
                identity_key=key,
                kind=RowKind.HOLDING,
                name=row.name,
                symbol=row.symbol,
                instrument_type=row.instrument_type,
            )
            partitions[key] = partition
        partition.add(converted)

    merged = [p.to_row(currency) for p in partitions.values()]
    return sorted(merged, key=lambda r: r.total_value.amount, reverse=True)
