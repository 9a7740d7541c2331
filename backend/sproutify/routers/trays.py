"""Tray router: growing trays, losses, harvests and step progress.

Endpoints:
    GET    /api/trays/                  Trays with derived status
    GET    /api/trays/passive           Passive growth groups and nearly-ready trays
    POST   /api/trays/lost              Mark trays lost
    POST   /api/trays/harvest           Record a harvest for trays
    POST   /api/trays/{tray_id}/harvest Harvest one tray today
    POST   /api/trays/steps/complete    Complete a named step on trays
    POST   /api/trays/steps/skip        Skip a named step on trays
"""

from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from sproutify.database import get_db
from sproutify.farm_context import current_actor, current_farm_id
from sproutify.models.tray import Tray
from sproutify.schemas.tray import (
    HarvestRequest,
    MarkLostRequest,
    PassiveGroupOut,
    PassiveStatusOut,
    StepActionRequest,
    StepActionResult,
    TrayOut,
    TrayStepOut,
)
from sproutify.services.lifecycle import (
    TrayView,
    complete_tray_steps,
    harvest_tray_now,
    list_trays,
    mark_trays_lost,
    passive_tray_status,
    record_harvest,
    skip_tray_steps,
    tray_harvest_date,
    tray_status,
)

router = APIRouter()


def _tray_out(view: TrayView) -> TrayOut:
    tray = view.tray
    return TrayOut(
        id=tray.id,
        tray_code=tray.tray_code,
        recipe_id=tray.recipe_id,
        recipe_name=tray.recipe.name,
        sow_date=tray.sow_date,
        harvest_date=tray.harvest_date,
        projected_harvest_date=view.projected_harvest_date,
        yield_grams=tray.yield_grams,
        status=tray.status,
        display_status=view.status,
        loss_reason=tray.loss_reason,
        customer_id=tray.customer_id,
        batch_id=tray.batch_id,
        steps=[TrayStepOut.model_validate(s) for s in tray.steps],
    )


def _view(tray: Tray) -> TrayView:
    today = date.today()
    return TrayView(
        tray=tray,
        status=tray_status(tray),
        projected_harvest_date=tray_harvest_date(tray),
        days_since_sow=(today - tray.sow_date).days,
    )


@router.get("/", response_model=list[TrayOut])
async def get_trays(
    include_finished: bool = Query(False),
    db: AsyncSession = Depends(get_db),
    farm_id: str = Depends(current_farm_id),
):
    views = await list_trays(db, farm_id, include_finished=include_finished)
    return [_tray_out(v) for v in views]


@router.get("/passive", response_model=PassiveStatusOut)
async def get_passive_status(
    on_date: date | None = Query(None, alias="date"),
    db: AsyncSession = Depends(get_db),
    farm_id: str = Depends(current_farm_id),
):
    """Growing trays grouped by passive phase and variety."""
    passive = await passive_tray_status(db, farm_id, on_date)
    return PassiveStatusOut(
        groups=[PassiveGroupOut.model_validate(g) for g in passive.groups],
        nearly_ready=[_tray_out(v) for v in passive.nearly_ready],
    )


@router.post("/lost", response_model=list[TrayOut])
async def post_lost(
    body: MarkLostRequest,
    db: AsyncSession = Depends(get_db),
    farm_id: str = Depends(current_farm_id),
    actor: str | None = Depends(current_actor),
):
    trays = await mark_trays_lost(db, farm_id, body.tray_ids, body.reason, body.notes, actor)
    return [_tray_out(_view(t)) for t in trays]


@router.post("/harvest", response_model=list[TrayOut])
async def post_harvest(
    body: HarvestRequest,
    db: AsyncSession = Depends(get_db),
    farm_id: str = Depends(current_farm_id),
    actor: str | None = Depends(current_actor),
):
    """Harvest trays; a total yield is split evenly across them."""
    trays = await record_harvest(
        db, farm_id, body.tray_ids, body.harvest_date, body.total_yield_grams, actor
    )
    return [_tray_out(_view(t)) for t in trays]


@router.post("/steps/complete", response_model=StepActionResult)
async def post_complete_steps(
    body: StepActionRequest,
    db: AsyncSession = Depends(get_db),
    farm_id: str = Depends(current_farm_id),
    actor: str | None = Depends(current_actor),
):
    updated = await complete_tray_steps(db, farm_id, body.tray_ids, body.step_name, actor)
    return StepActionResult(updated=updated)


@router.post("/steps/skip", response_model=StepActionResult)
async def post_skip_steps(
    body: StepActionRequest,
    db: AsyncSession = Depends(get_db),
    farm_id: str = Depends(current_farm_id),
    actor: str | None = Depends(current_actor),
):
    updated = await skip_tray_steps(db, farm_id, body.tray_ids, body.step_name, actor)
    return StepActionResult(updated=updated)


@router.post("/{tray_id}/harvest", response_model=TrayOut)
async def post_harvest_now(
    tray_id: str,
    yield_grams: float | None = Query(None, ge=0),
    db: AsyncSession = Depends(get_db),
    farm_id: str = Depends(current_farm_id),
    actor: str | None = Depends(current_actor),
):
    tray = await harvest_tray_now(db, farm_id, tray_id, yield_grams, actor)
    return _tray_out(_view(tray))
