from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from networth.domain.models import (
    AggregateRow,
    AggregateView,
    DebtLine,
    PortfolioMetrics,
    ReorderInstruction,
    ReorderNotice,
)

CENT = Decimal("0.01")


def _money(value: Optional[Decimal]) -> Optional[float]:
    if value is None:
        return None
    return float(Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP))


class MetricsSchema(BaseModel):
    currency: str
    total_value: float
    total_invested: float
    total_return: float
    total_return_percent: float
    day_change: Optional[float] = None
    day_change_percent: Optional[float] = None
    available: bool = True

    @classmethod
    def from_domain(cls, metrics: PortfolioMetrics) -> "MetricsSchema":
        return cls(
            currency=metrics.currency,
            total_value=_money(metrics.total_value),
            total_invested=_money(metrics.total_invested),
            total_return=_money(metrics.total_return),
            total_return_percent=_money(metrics.total_return_percent),
            day_change=_money(metrics.day_change),
            day_change_percent=_money(metrics.day_change_percent),
            available=metrics.available,
        )


class AggregateRowSchema(BaseModel):
    identity_key: Optional[str]
    kind: str
    name: str
    symbol: Optional[str] = None
    instrument_type: Optional[str] = None
    quantity: float
    total_value: float
    total_invested: float
    total_return: float
    total_return_percent: float
    day_change: Optional[float] = None
    day_change_percent: Optional[float] = None
    containers: List[str]
    container_count: int
    record_ids: List[str]

    @classmethod
    def from_domain(cls, row: AggregateRow) -> "AggregateRowSchema":
        return cls(
            identity_key=row.identity_key,
            kind=row.kind.value,
            name=row.name,
            symbol=row.symbol,
            instrument_type=row.instrument_type,
            quantity=float(row.quantity),
            total_value=_money(row.total_value.amount),
            total_invested=_money(row.total_invested.amount),
            total_return=_money(row.total_return.amount),
            total_return_percent=_money(row.total_return_percent),
            day_change=_money(row.day_change.amount) if row.day_change is not None else None,
            day_change_percent=_money(row.day_change_percent),
            containers=sorted(row.containers),
            container_count=row.container_count,
            record_ids=list(row.record_ids),
        )


class DebtSchema(BaseModel):
    id: str
    name: str
    debt_type: str
    institution: str = ""
    balance: float
    native_balance: float
    native_currency: str
    interest_rate: float = 0

    @classmethod
    def from_domain(cls, line: DebtLine) -> "DebtSchema":
        debt = line.debt
        return cls(
            id=debt.id,
            name=debt.name,
            debt_type=debt.debt_type,
            institution=debt.institution,
            balance=_money(line.balance),
            native_balance=_money(debt.balance.amount),
            native_currency=debt.currency_code,
            interest_rate=float(debt.interest_rate),
        )


class AggregateViewResponse(BaseModel):
    currency: str
    available: bool
    rows: List[AggregateRowSchema]
    totals: MetricsSchema
    debts: List[DebtSchema] = []
    total_debts: float = 0
    net_worth: float = 0
    degraded_currencies: List[str] = []

    @classmethod
    def from_domain(cls, view: AggregateView) -> "AggregateViewResponse":
        return cls(
            currency=view.currency,
            available=view.available,
            rows=[AggregateRowSchema.from_domain(r) for r in view.rows],
            totals=MetricsSchema.from_domain(view.totals),
            debts=[DebtSchema.from_domain(d) for d in view.debts],
            total_debts=_money(view.total_debts),
            net_worth=_money(view.net_worth),
            degraded_currencies=sorted(view.degraded_currencies),
        )


class ReorderRequest(BaseModel):
    record_id: str = Field(..., min_length=1)
    target_container_id: str = Field(..., min_length=1)
    target_index: int = Field(..., ge=0)


class InstructionSchema(BaseModel):
    record_id: str
    source_container_id: str
    source_index: int
    target_container_id: str
    target_index: int

    @classmethod
    def from_domain(cls, instruction: ReorderInstruction) -> "InstructionSchema":
        return cls(
            record_id=instruction.record_id,
            source_container_id=instruction.source_container_id,
            source_index=instruction.source_index,
            target_container_id=instruction.target_container_id,
            target_index=instruction.target_index,
        )


class NoticeSchema(BaseModel):
    kind: str
    record_id: str
    message: str

    @classmethod
    def from_domain(cls, notice: ReorderNotice) -> "NoticeSchema":
        return cls(kind=notice.kind, record_id=notice.record_id, message=notice.message)


class ReorderResponse(BaseModel):
    committed: bool
    instruction: Optional[InstructionSchema] = None
    notice: Optional[NoticeSchema] = None
