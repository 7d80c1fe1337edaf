"""
Portfolio Repository
Reads sections/holdings/accounts/debts and applies reorder writes
"""

import logging
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from networth.domain.errors import InvalidIdentityKey
from networth.domain.models import (
    Account,
    Container,
    DebtRecord,
    DisplayPreference,
    HoldingRecord,
    MonetaryAmount,
    PersistResult,
    make_identity_key,
)
from networth.infrastructure.db.models import AccountModel, ContainerModel, DebtModel, HoldingModel

logger = logging.getLogger(__name__)


class SqlPortfolioStore:
    """Persistence collaborator backed by SQLAlchemy"""

    def __init__(self, session: AsyncSession, commit: bool = False):
        """
        Args:
            session: database session
            commit: commit after each reorder (callers without a
                request-scoped transaction)
        """
        self.session = session
        self.commit = commit

    async def fetch_containers(self, scope_id: str) -> List[Container]:
        result = await self.session.execute(
            select(ContainerModel)
            .where(ContainerModel.scope_id == scope_id)
            .order_by(ContainerModel.position, ContainerModel.id)
        )
        return [
            Container(id=m.id, name=m.name, scope_id=m.scope_id, position=m.position)
            for m in result.scalars().all()
        ]

    async def fetch_holdings_for_containers(self, container_ids: List[str]) -> List[HoldingRecord]:
        if not container_ids:
            return []
        result = await self.session.execute(
            select(HoldingModel)
            .where(HoldingModel.container_id.in_(container_ids))
            .order_by(HoldingModel.container_id, HoldingModel.position, HoldingModel.id)
        )
        records = []
        for model in result.scalars().all():
            record = self._holding_to_domain(model)
            if record is not None:
                records.append(record)
        return records

    async def fetch_accounts(self, container_ids: List[str]) -> List[Account]:
        if not container_ids:
            return []
        result = await self.session.execute(
            select(AccountModel)
            .where(AccountModel.container_id.in_(container_ids))
            .order_by(AccountModel.name)
        )
        accounts = []
        for model in result.scalars().all():
            try:
                accounts.append(
                    Account(
                        id=model.id,
                        name=model.name,
                        container_id=model.container_id,
                        balance=MonetaryAmount(model.balance, model.currency),
                        institution=model.institution or "",
                        display_preference=DisplayPreference(model.display_preference),
                    )
                )
            except ValueError as exc:
                logger.warning("Skipping malformed account %s: %s", model.id, exc)
        return accounts

    async def fetch_debts(self, scope_id: str) -> List[DebtRecord]:
        result = await self.session.execute(
            select(DebtModel)
            .where(DebtModel.scope_id == scope_id)
            .order_by(DebtModel.name, DebtModel.id)
        )
        debts = []
        for model in result.scalars().all():
            try:
                debts.append(
                    DebtRecord(
                        id=model.id,
                        name=model.name or "Unknown Debt",
                        scope_id=model.scope_id,
                        balance=MonetaryAmount(model.current_balance or 0, model.currency),
                        debt_type=model.debt_type or "personal_loan",
                        principal=(
                            MonetaryAmount(model.principal, model.currency)
                            if model.principal is not None
                            else None
                        ),
                        interest_rate=Decimal(str(model.interest_rate or 0)),
                        institution=model.institution or "",
                    )
                )
            except ValueError as exc:
                logger.warning("Skipping malformed debt %s: %s", model.id, exc)
        return debts

    async def scope_of_holding(self, record_id: str) -> Optional[str]:
        result = await self.session.execute(
            select(ContainerModel.scope_id)
            .join(HoldingModel, HoldingModel.container_id == ContainerModel.id)
            .where(HoldingModel.id == record_id)
        )
        return result.scalar_one_or_none()

    async def persist_reorder(
        self,
        record_id: str,
        target_container_id: str,
        target_index: int,
    ) -> PersistResult:
        """
        Move a holding and renumber both affected containers 0..n-1.

        target_index is the final index in the target container once the
        record has been removed from its old place.
        """
        holding = await self.session.get(HoldingModel, record_id)
        if holding is None:
            return PersistResult(success=False, error="Asset not found")
        target = await self.session.get(ContainerModel, target_container_id)
        if target is None:
            return PersistResult(success=False, error="Target section not found")

        source_container_id = holding.container_id
        siblings = await self._ordered(target_container_id, exclude_id=record_id)
        if target_index < 0 or target_index > len(siblings):
            return PersistResult(success=False, error="Target index out of range")

        try:
            siblings.insert(target_index, holding)
            holding.container_id = target_container_id
            self._renumber(siblings)
            if source_container_id != target_container_id:
                self._renumber(await self._ordered(source_container_id, exclude_id=record_id))
            await self.session.flush()
            if self.commit:
                await self.session.commit()
        except SQLAlchemyError as exc:
            await self.session.rollback()
            logger.error("Reorder of %s failed: %s", record_id, exc)
            return PersistResult(success=False, error=str(exc))

        return PersistResult(success=True)

    async def _ordered(self, container_id: str, exclude_id: Optional[str] = None) -> List[HoldingModel]:
        query = select(HoldingModel).where(HoldingModel.container_id == container_id)
        if exclude_id is not None:
            query = query.where(HoldingModel.id != exclude_id)
        result = await self.session.execute(query.order_by(HoldingModel.position, HoldingModel.id))
        return list(result.scalars().all())

    @staticmethod
    def _renumber(models: List[HoldingModel]) -> None:
        for index, model in enumerate(models):
            if model.position != index:
                model.position = index

    @staticmethod
    def _holding_to_domain(model: HoldingModel) -> Optional[HoldingRecord]:
        try:
            identity_key = make_identity_key(
                model.instrument_type, symbol=model.symbol, name=model.name, record_id=model.id
            )
        except InvalidIdentityKey:
            # consolidation reports it and shows the row un-grouped
            identity_key = None

        try:
            return HoldingRecord(
                id=model.id,
                identity_key=identity_key,
                current_value=MonetaryAmount(model.current_value, model.currency),
                cost_basis=(
                    MonetaryAmount(model.cost_basis, model.currency)
                    if model.cost_basis is not None
                    else None
                ),
                container_id=model.container_id,
                position=model.position,
                name=model.name or "",
                symbol=model.symbol,
                instrument_type=model.instrument_type,
                quantity=Decimal(str(model.quantity or 0)),
                day_change=(
                    MonetaryAmount(model.day_change, model.currency)
                    if model.day_change is not None
                    else None
                ),
                account_id=model.account_id,
            )
        except ValueError as exc:
            logger.warning("Skipping malformed holding %s: %s", model.id, exc)
            return None


class SessionFactoryPortfolioStore:
    """
    Store for long-lived consumers (live scope watchers) that outlive a
    request: every call runs in its own short session.
    """

    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    async def fetch_containers(self, scope_id: str) -> List[Container]:
        async with self._session_factory() as session:
            return await SqlPortfolioStore(session).fetch_containers(scope_id)

    async def fetch_holdings_for_containers(self, container_ids: List[str]) -> List[HoldingRecord]:
        async with self._session_factory() as session:
            return await SqlPortfolioStore(session).fetch_holdings_for_containers(container_ids)

    async def fetch_accounts(self, container_ids: List[str]) -> List[Account]:
        async with self._session_factory() as session:
            return await SqlPortfolioStore(session).fetch_accounts(container_ids)

    async def fetch_debts(self, scope_id: str) -> List[DebtRecord]:
        async with self._session_factory() as session:
            return await SqlPortfolioStore(session).fetch_debts(scope_id)

    async def persist_reorder(
        self,
        record_id: str,
        target_container_id: str,
        target_index: int,
    ) -> PersistResult:
        async with self._session_factory() as session:
            store = SqlPortfolioStore(session, commit=True)
            return await store.persist_reorder(record_id, target_container_id, target_index)
