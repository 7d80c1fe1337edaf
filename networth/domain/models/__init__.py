"""
Domain Models Package
Export all domain entities
"""

from .entities import (
    # Enums
    DisplayPreference,
    DragPhase,
    RowKind,

    # Value objects
    MonetaryAmount,
    ZERO,

    # Entities
    Account,
    AccountSummaryRow,
    AggregateRow,
    AggregateView,
    Container,
    ContainerTarget,
    ConversionCacheEntry,
    ConvertedRow,
    DebtLine,
    DebtRecord,
    DropTarget,
    HoldingRecord,
    PersistResult,
    PortfolioMetrics,
    PortfolioRow,
    PortfolioSnapshot,
    ReorderInstruction,
    ReorderNotice,
    ReorderOutcome,
    SlotTarget,

    # Helpers
    make_identity_key,
    to_decimal,
)

__all__ = [
    # Enums
    "DisplayPreference",
    "DragPhase",
    "RowKind",

    # Value objects
    "MonetaryAmount",
    "ZERO",

    # Entities
    "Account",
    "AccountSummaryRow",
    "AggregateRow",
    "AggregateView",
    "Container",
    "ContainerTarget",
    "ConversionCacheEntry",
    "ConvertedRow",
    "DebtLine",
    "DebtRecord",
    "DropTarget",
    "HoldingRecord",
    "PersistResult",
    "PortfolioMetrics",
    "PortfolioRow",
    "PortfolioSnapshot",
    "ReorderInstruction",
    "ReorderNotice",
    "ReorderOutcome",
    "SlotTarget",

    # Helpers
    "make_identity_key",
    "to_decimal",
]
