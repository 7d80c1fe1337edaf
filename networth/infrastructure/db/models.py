"""
Database Models (SQLAlchemy ORM)
Sections, linked accounts, holdings and debts
"""

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.sql import func

from networth.infrastructure.db.database import Base


class ContainerModel(Base):
    """Section: ordered group of holdings inside one sheet"""
    __tablename__ = "containers"

    id = Column(String(64), primary_key=True)
    scope_id = Column(String(64), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    position = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())


class AccountModel(Base):
    """Aggregator-linked account"""
    __tablename__ = "accounts"

    id = Column(String(64), primary_key=True)
    container_id = Column(String(64), ForeignKey("containers.id"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    institution = Column(String(200), nullable=False, default="")
    currency = Column(String(3), nullable=False)
    balance = Column(Numeric(18, 4), nullable=False, default=0)
    display_preference = Column(String(20), nullable=False, default="consolidated")
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())


class HoldingModel(Base):
    """Holding (asset) inside a section"""
    __tablename__ = "holdings"

    id = Column(String(64), primary_key=True)
    container_id = Column(String(64), ForeignKey("containers.id"), nullable=False)
    account_id = Column(String(64), ForeignKey("accounts.id"), nullable=True)
    name = Column(String(200), nullable=False, default="")
    symbol = Column(String(32), nullable=True)
    instrument_type = Column(String(50), nullable=False, default="generic_asset")
    currency = Column(String(3), nullable=False)
    quantity = Column(Numeric(24, 8), nullable=False, default=0)
    current_value = Column(Numeric(18, 4), nullable=False, default=0)
    cost_basis = Column(Numeric(18, 4), nullable=True)
    day_change = Column(Numeric(18, 4), nullable=True)
    position = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index("ix_holdings_container_position", "container_id", "position"),
    )


class DebtModel(Base):
    """Liability owned by a sheet / user"""
    __tablename__ = "debts"

    id = Column(String(64), primary_key=True)
    scope_id = Column(String(64), nullable=False, index=True)
    name = Column(String(200), nullable=False, default="")
    debt_type = Column(String(30), nullable=False, default="personal_loan")
    institution = Column(String(200), nullable=False, default="")
    currency = Column(String(3), nullable=False)
    current_balance = Column(Numeric(18, 4), nullable=False, default=0)
    principal = Column(Numeric(18, 4), nullable=True)
    interest_rate = Column(Numeric(8, 4), nullable=False, default=0)
    status = Column(String(20), nullable=False, default="active")
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())
