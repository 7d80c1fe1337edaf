"""
Portfolio API Routes
Aggregated net worth view, per-section metrics, drag-and-drop reorder
and live per-scope views fed by the snapshot queue
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from networth.config import settings
from networth.domain.models import AggregateView
from networth.domain.schemas.portfolio import (
    AggregateViewResponse,
    InstructionSchema,
    MetricsSchema,
    NoticeSchema,
    ReorderRequest,
    ReorderResponse,
)
from networth.domain.services.portfolio_aggregator import (
    PortfolioAggregationService,
    snapshot_from_rows,
)
from networth.domain.services.reorder_resolver import OrderedListState, ReorderResolver
from networth.infrastructure.db import database
from networth.infrastructure.db.database import get_db
from networth.infrastructure.db.repositories.portfolio_repository import (
    SessionFactoryPortfolioStore,
    SqlPortfolioStore,
)
from networth.infrastructure.fx.provider_factory import get_fx_provider
from networth.realtime.snapshot_queue import SnapshotEvent

logger = logging.getLogger(__name__)
router = APIRouter()


def _get_fx_provider(request: Request):
    provider = getattr(request.app.state, "fx_provider", None)
    if provider is None:
        provider = get_fx_provider()
        request.app.state.fx_provider = provider
    return provider


def _live_services(app: FastAPI) -> dict:
    services = getattr(app.state, "aggregation_services", None)
    if services is None:
        services = {}
        app.state.aggregation_services = services
    return services


def _currency(currency: Optional[str]) -> str:
    code = (currency or settings.DEFAULT_CURRENCY).strip().upper()
    if len(code) != 3 or not code.isalpha():
        raise HTTPException(status_code=422, detail=f"Invalid currency code: {currency}")
    return code


@router.get("/aggregate", response_model=AggregateViewResponse)
async def get_aggregate(
    scope_id: str = Query(..., min_length=1),
    currency: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    fx_provider=Depends(_get_fx_provider),
):
    """Holdings merged across sections, totals in one currency"""
    target = _currency(currency)
    service = PortfolioAggregationService(
        SqlPortfolioStore(db),
        fx_provider,
        scope_id=scope_id,
        default_currency=settings.DEFAULT_CURRENCY,
    )
    view = await service.load_view(target)
    if view.degraded_currencies:
        logger.info(
            "Aggregate for %s shown with native amounts for %s",
            scope_id,
            ", ".join(sorted(view.degraded_currencies)),
        )
    return AggregateViewResponse.from_domain(view)


@router.get("/containers/{container_id}/metrics", response_model=MetricsSchema)
async def get_container_metrics(
    container_id: str,
    currency: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    fx_provider=Depends(_get_fx_provider),
):
    target = _currency(currency)
    service = PortfolioAggregationService(SqlPortfolioStore(db), fx_provider, scope_id="")
    metrics = await service.get_container_metrics(container_id, target)
    return MetricsSchema.from_domain(metrics)


@router.post("/reorder", response_model=ReorderResponse)
async def reorder(payload: ReorderRequest, request: Request, db: AsyncSession = Depends(get_db)):
    """
    Move one holding to (target_container_id, target_index).

    target_index counts slots in the target section as currently listed,
    i.e. before the moved holding is taken out of it.
    """
    store = SqlPortfolioStore(db, commit=True)
    scope_id = await store.scope_of_holding(payload.record_id)
    if scope_id is None:
        raise HTTPException(status_code=404, detail="Asset not found")

    containers = await store.fetch_containers(scope_id)
    container_ids = [c.id for c in containers]
    if payload.target_container_id not in container_ids:
        raise HTTPException(status_code=404, detail="Target section not found")

    # hidden holdings of consolidated accounts keep their slots
    holdings = await store.fetch_holdings_for_containers(container_ids)
    columns = snapshot_from_rows(containers, holdings).ordering()

    resolver = ReorderResolver(store, OrderedListState(columns))
    instruction = resolver.resolve(
        payload.record_id,
        {
            "type": "slot",
            "container_id": payload.target_container_id,
            "index": payload.target_index,
        },
    )
    if instruction is None:
        return ReorderResponse(committed=True)

    outcome = await resolver.persist(instruction)
    if not outcome.committed:
        body = ReorderResponse(
            committed=False,
            instruction=InstructionSchema.from_domain(instruction),
            notice=NoticeSchema.from_domain(outcome.notice),
        )
        return JSONResponse(status_code=409, content=body.model_dump())

    await _publish_snapshot(request.app, store, scope_id)
    return ReorderResponse(committed=True, instruction=InstructionSchema.from_domain(instruction))



async def _publish_snapshot(app: FastAPI, store: SqlPortfolioStore, scope_id: str) -> None:
    """Queue the committed state for live watchers of the scope"""
    queue = getattr(app.state, "snapshot_queue", None)
    if queue is None or scope_id not in _live_services(app):
        return
    try:
        containers = await store.fetch_containers(scope_id)
        container_ids = [c.id for c in containers]
        snapshot = snapshot_from_rows(
            containers,
            await store.fetch_holdings_for_containers(container_ids),
            await store.fetch_accounts(container_ids),
            await store.fetch_debts(scope_id),
        )
    except SQLAlchemyError:
        logger.exception("Snapshot for scope %s not published", scope_id)
        return
    await queue.publish(SnapshotEvent(scope_id=scope_id, snapshot=snapshot))


@router.post("/scopes/{scope_id}/watch", response_model=AggregateViewResponse)
async def watch_scope(
    scope_id: str,
    request: Request,
    currency: Optional[str] = None,
    fx_provider=Depends(_get_fx_provider),
):
    """
    Keep an aggregate view of the scope up to date.

    Committed reorders publish a snapshot; the snapshot worker re-runs
    aggregation and the result is served by GET /scopes/{scope_id}/live.
    """
    target = _currency(currency)
    services = _live_services(request.app)
    service = services.get(scope_id)
    if service is None:
        session_factory = getattr(request.app.state, "session_factory", None) or database.async_session_factory
        service = PortfolioAggregationService(
            SessionFactoryPortfolioStore(session_factory),
            fx_provider,
            scope_id=scope_id,
            default_currency=target,
        )
        services[scope_id] = service
        logger.info("Watching scope %s in %s", scope_id, target)
    else:
        service.default_currency = target

    view = await service.refresh()
    return AggregateViewResponse.from_domain(view or AggregateView.unavailable(target))


@router.get("/scopes/{scope_id}/live", response_model=AggregateViewResponse)
async def get_live_view(scope_id: str, request: Request):
    service = _live_services(request.app).get(scope_id)
    if service is None:
        raise HTTPException(status_code=404, detail="Scope is not being watched")
    view = service.latest_view or AggregateView.unavailable(service.default_currency)
    return AggregateViewResponse.from_domain(view)


@router.delete("/scopes/{scope_id}/watch")
async def unwatch_scope(scope_id: str, request: Request):
    service = _live_services(request.app).pop(scope_id, None)
    if service is None:
        raise HTTPException(status_code=404, detail="Scope is not being watched")
    service.invalidate()
    return {"scope_id": scope_id, "watching": False}
