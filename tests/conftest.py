from decimal import Decimal
from typing import AsyncGenerator

import pytest
from fastapi import FastAPI
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from networth.api.routes import health, portfolio
from networth.infrastructure.db.database import Base, get_db
from networth.infrastructure.db.models import AccountModel, ContainerModel, DebtModel, HoldingModel
from networth.infrastructure.fx.static_provider import StaticRateProvider


@pytest.fixture()
async def db_engine(tmp_path):
    db_path = tmp_path / "test.db"
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{db_path}",
        future=True,
        echo=False
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture()
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    session_maker = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_maker() as session:
        yield session


@pytest.fixture()
async def seeded_portfolio(db_session):
    """Two sections in sheet-1 sharing AAPL (USD + EUR), an empty section, a EUR card debt and a foreign sheet"""
    db_session.add_all(
        [
            ContainerModel(id="c1", scope_id="sheet-1", name="Brokerage", position=0),
            ContainerModel(id="c2", scope_id="sheet-1", name="Europe", position=1),
            ContainerModel(id="c3", scope_id="sheet-1", name="Empty", position=2),
            ContainerModel(id="other", scope_id="sheet-2", name="Elsewhere", position=0),
        ]
    )
    await db_session.flush()
    db_session.add(
        AccountModel(
            id="acc1",
            container_id="c2",
            name="Euro Broker",
            institution="Bank",
            currency="EUR",
            balance=Decimal("1500"),
            display_preference="holdings",
        )
    )
    await db_session.flush()
    db_session.add_all(
        [
            HoldingModel(id="h1", container_id="c1", name="Apple", symbol="AAPL", instrument_type="equity",
                         currency="USD", quantity=Decimal("1"), current_value=Decimal("100"),
                         cost_basis=Decimal("80"), position=0),
            HoldingModel(id="h2", container_id="c1", name="Bonds", symbol="BND", instrument_type="etf",
                         currency="USD", quantity=Decimal("2"), current_value=Decimal("40"), position=1),
            HoldingModel(id="h3", container_id="c1", name="Cash", symbol=None, instrument_type="cash",
                         currency="USD", current_value=Decimal("10"), position=2),
            HoldingModel(id="h4", container_id="c2", account_id="acc1", name="Apple", symbol="AAPL",
                         instrument_type="equity", currency="EUR", quantity=Decimal("1"),
                         current_value=Decimal("50"), cost_basis=Decimal("0"), position=0),
        ]
    )
    db_session.add_all(
        [
            DebtModel(id="d1", scope_id="sheet-1", name="Visa", debt_type="credit_card", institution="Bank",
                      currency="EUR", current_balance=Decimal("20"), interest_rate=Decimal("19.9")),
            DebtModel(id="d2", scope_id="sheet-2", name="Mortgage", debt_type="mortgage",
                      currency="USD", current_balance=Decimal("999"), principal=Decimal("1200")),
        ]
    )
    await db_session.commit()


@pytest.fixture()
def fx_provider():
    return StaticRateProvider({"EUR/USD": Decimal("1.1"), "GBP/USD": Decimal("1.25")})


@pytest.fixture()
async def app(db_session, fx_provider) -> FastAPI:
    app = FastAPI()
    app.include_router(health.router, tags=["Health"])
    app.include_router(portfolio.router, prefix="/api/v1/portfolio", tags=["Portfolio"])

    async def override_get_db():
        try:
            yield db_session
            await db_session.commit()
        except Exception:
            await db_session.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db
    app.state.fx_provider = fx_provider

    return app


@pytest.fixture()
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
