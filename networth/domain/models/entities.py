"""
Domain Models - Entities
Pure domain objects with no infrastructure dependencies
"""

import math
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import FrozenSet, Optional, Tuple, Union

from networth.domain.errors import InvalidIdentityKey


ZERO = Decimal("0")


def to_decimal(value) -> Decimal:
    """Coerce floats/ints/strings coming from documents or JSON into Decimal"""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float) and not math.isfinite(value):
        raise ValueError(f"Amount must be finite, got {value}")
    return Decimal(str(value))


class RowKind(str, Enum):
    """Variant tag for rows flowing through the engine"""
    HOLDING = "holding"
    ACCOUNT_SUMMARY = "account_summary"


class DisplayPreference(str, Enum):
    """How a linked account is presented in section lists"""
    CONSOLIDATED = "consolidated"
    HOLDINGS = "holdings"


class DragPhase(str, Enum):
    IDLE = "IDLE"
    DRAGGING = "DRAGGING"
    RESOLVED = "RESOLVED"


@dataclass(frozen=True)
class MonetaryAmount:
    """An amount tagged with its native currency - Immutable"""
    amount: Decimal
    currency_code: str

    def __post_init__(self):
        amount = to_decimal(self.amount)
        if not amount.is_finite():
            raise ValueError(f"Amount must be finite, got {self.amount}")
        code = (self.currency_code or "").strip().upper()
        if len(code) != 3 or not code.isalpha():
            raise ValueError(f"Invalid currency code: {self.currency_code!r}")
        object.__setattr__(self, "amount", amount)
        object.__setattr__(self, "currency_code", code)

    @classmethod
    def zero(cls, currency_code: str) -> "MonetaryAmount":
        return cls(ZERO, currency_code)


def make_identity_key(
    instrument_type: Optional[str],
    symbol: Optional[str] = None,
    name: Optional[str] = None,
    record_id: Optional[str] = None,
) -> str:
    """
    Build the consolidation join key.

    Symbol wins over name when both exist: "AAPL_stock_ticker" for a ticker,
    "Savings_cash" for a manually named asset.

    Raises:
        InvalidIdentityKey: if the type is missing or there is nothing to key on
    """
    kind = (instrument_type or "").strip()
    if not kind:
        raise InvalidIdentityKey(record_id, "missing instrument type")
    base = (symbol or "").strip() or (name or "").strip()
    if not base:
        raise InvalidIdentityKey(record_id, "neither symbol nor name present")
    return f"{base}_{kind}"


@dataclass(frozen=True)
class HoldingRecord:
    """A tradable or manual holding inside one container - Immutable snapshot"""
    id: str
    identity_key: Optional[str]
    current_value: MonetaryAmount
    cost_basis: Optional[MonetaryAmount]
    container_id: str
    position: int
    name: str = ""
    symbol: Optional[str] = None
    instrument_type: str = "generic_asset"
    quantity: Decimal = ZERO
    day_change: Optional[MonetaryAmount] = None
    account_id: Optional[str] = None

    kind = RowKind.HOLDING

    def __post_init__(self):
        if self.position < 0:
            raise ValueError(f"Position must be >= 0, got {self.position}")

    @property
    def currency_code(self) -> str:
        return self.current_value.currency_code

    @property
    def has_cost_basis(self) -> bool:
        """No basis, or a non-positive one, means uninvested"""
        return self.cost_basis is not None and self.cost_basis.amount > 0


@dataclass(frozen=True)
class AccountSummaryRow:
    """
    One linked account shown as a single balance line.
    Never consolidated and never counted as invested capital.
    """
    id: str
    account_id: str
    name: str
    balance: MonetaryAmount
    container_id: str
    position: int = 0
    institution: str = ""

    kind = RowKind.ACCOUNT_SUMMARY

    @property
    def currency_code(self) -> str:
        return self.balance.currency_code


PortfolioRow = Union[HoldingRecord, AccountSummaryRow]


@dataclass(frozen=True)
class Container:
    """A section: ordered group of holdings that can be a drag source/target"""
    id: str
    name: str
    scope_id: str
    position: int = 0


@dataclass(frozen=True)
class Account:
    """Aggregator-linked account (balance only; holdings live in HoldingRecord)"""
    id: str
    name: str
    container_id: str
    balance: MonetaryAmount
    institution: str = ""
    display_preference: DisplayPreference = DisplayPreference.CONSOLIDATED


@dataclass(frozen=True)
class DebtRecord:
    """A liability owned by the scope (card, mortgage, loan); not part of any section"""
    id: str
    name: str
    scope_id: str
    balance: MonetaryAmount
    debt_type: str = "personal_loan"
    principal: Optional[MonetaryAmount] = None
    interest_rate: Decimal = ZERO
    institution: str = ""

    @property
    def currency_code(self) -> str:
        return self.balance.currency_code


@dataclass(frozen=True)
class DebtLine:
    """Debt with its balance expressed in the view currency"""
    debt: DebtRecord
    balance: Decimal


@dataclass(frozen=True)
class PortfolioSnapshot:
    """Immutable input to one aggregation pass"""
    containers: Tuple[Container, ...]
    rows: Tuple[PortfolioRow, ...]
    debts: Tuple[DebtRecord, ...] = ()

    def rows_for(self, container_id: str) -> Tuple[PortfolioRow, ...]:
        return tuple(r for r in self.rows if r.container_id == container_id)

    def ordering(self) -> dict:
        """container_id -> holding ids sorted by position (summary rows are not movable)"""
        columns = {c.id: [] for c in sorted(self.containers, key=lambda c: c.position)}
        for row in sorted(self.rows, key=lambda r: r.position):
            if row.kind is not RowKind.HOLDING:
                continue
            columns.setdefault(row.container_id, []).append(row.id)
        return {cid: tuple(ids) for cid, ids in columns.items()}


@dataclass(frozen=True)
class ConvertedRow:
    """A row with every amount already expressed in the target currency"""
    row: PortfolioRow
    value: Decimal
    cost_basis: Optional[Decimal] = None
    day_change: Optional[Decimal] = None

    @property
    def counts_as_invested(self) -> bool:
        return (
            self.row.kind is RowKind.HOLDING
            and self.cost_basis is not None
            and self.cost_basis > 0
        )


@dataclass(frozen=True)
class PortfolioMetrics:
    """Invested / value / return figures in one currency"""
    currency: str
    total_value: Decimal
    total_invested: Decimal
    total_return: Decimal
    total_return_percent: Decimal
    day_change: Optional[Decimal] = None
    day_change_percent: Optional[Decimal] = None
    available: bool = True

    @classmethod
    def zeroed(cls, currency: str) -> "PortfolioMetrics":
        """Placeholder when a render could not be computed"""
        return cls(
            currency=currency,
            total_value=ZERO,
            total_invested=ZERO,
            total_return=ZERO,
            total_return_percent=ZERO,
            available=False,
        )


@dataclass(frozen=True)
class AggregateRow:
    """One logical position merged across containers"""
    identity_key: Optional[str]
    kind: RowKind
    name: str
    total_value: MonetaryAmount
    total_invested: MonetaryAmount
    total_return: MonetaryAmount
    total_return_percent: Decimal
    containers: FrozenSet[str]
    record_ids: Tuple[str, ...]
    symbol: Optional[str] = None
    instrument_type: Optional[str] = None
    quantity: Decimal = ZERO
    day_change: Optional[MonetaryAmount] = None
    day_change_percent: Optional[Decimal] = None

    @property
    def grouped(self) -> bool:
        return self.identity_key is not None

    @property
    def container_count(self) -> int:
        return len(self.containers)


@dataclass(frozen=True)
class AggregateView:
    """Result of one aggregation pass"""
    currency: str
    rows: Tuple[AggregateRow, ...]
    totals: PortfolioMetrics
    degraded_currencies: FrozenSet[str] = frozenset()
    generation: int = 0
    debts: Tuple[DebtLine, ...] = ()
    total_debts: Decimal = ZERO

    @property
    def available(self) -> bool:
        return self.totals.available

    @property
    def net_worth(self) -> Decimal:
        """Assets minus debts, both in the view currency"""
        return self.totals.total_value - self.total_debts

    @classmethod
    def unavailable(cls, currency: str, generation: int = 0) -> "AggregateView":
        return cls(
            currency=currency,
            rows=(),
            totals=PortfolioMetrics.zeroed(currency),
            generation=generation,
        )


@dataclass(frozen=True)
class ConversionCacheEntry:
    from_currency: str
    to_currency: str
    amount: Decimal
    converted_amount: Decimal


@dataclass(frozen=True)
class ReorderInstruction:
    """Single write handed to the persistence collaborator"""
    record_id: str
    target_container_id: str
    target_index: int
    source_container_id: str = ""
    source_index: int = 0
    seq: int = 0


@dataclass(frozen=True)
class ContainerTarget:
    """Drop onto a container itself: index 0, used for empty sections"""
    container_id: str

    @property
    def target_index(self) -> int:
        return 0


@dataclass(frozen=True)
class SlotTarget:
    """Drop immediately before a sibling"""
    container_id: str
    target_index: int
    before_record_id: Optional[str] = None


DropTarget = Union[ContainerTarget, SlotTarget]


@dataclass(frozen=True)
class PersistResult:
    success: bool
    error: Optional[str] = None


@dataclass(frozen=True)
class ReorderNotice:
    """Transient, non-blocking message for the view after a rollback"""
    kind: str
    record_id: str
    message: str


@dataclass(frozen=True)
class ReorderOutcome:
    instruction: ReorderInstruction
    committed: bool
    notice: Optional[ReorderNotice] = None
