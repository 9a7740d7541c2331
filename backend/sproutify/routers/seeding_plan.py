"""Seeding plan router: one sow date's planting schedule, for printing.

Endpoints:
    GET    /api/seeding-plan/{sow_date}              Plan as JSON
    GET    /api/seeding-plan/{sow_date}/export.csv   Plan as CSV
"""

from datetime import date

from fastapi import APIRouter, Depends
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from sproutify.database import get_db
from sproutify.farm_context import current_farm_id
from sproutify.schemas.seeding_plan import SeedingPlanOut
from sproutify.services.seeding_plan import load_seeding_plan, seeding_plan_csv

router = APIRouter()


@router.get("/{sow_date}", response_model=SeedingPlanOut)
async def get_seeding_plan(
    sow_date: date,
    db: AsyncSession = Depends(get_db),
    farm_id: str = Depends(current_farm_id),
):
    plan = await load_seeding_plan(db, farm_id, sow_date)
    return SeedingPlanOut.model_validate(plan)


@router.get("/{sow_date}/export.csv")
async def export_seeding_plan(
    sow_date: date,
    db: AsyncSession = Depends(get_db),
    farm_id: str = Depends(current_farm_id),
):
    plan = await load_seeding_plan(db, farm_id, sow_date)
    return Response(
        content=seeding_plan_csv(plan),
        media_type="text/csv",
        headers={
            "Content-Disposition": f'attachment; filename="seeding-plan-{sow_date.isoformat()}.csv"'
        },
    )
