"""Seed batch router: seed inventory and batch matching.

Endpoints:
    GET    /api/seed-batches/                List active batches
    POST   /api/seed-batches/                Record a purchased batch
    GET    /api/seed-batches/match           Batches able to seed N trays of a recipe
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from sproutify.database import get_db
from sproutify.farm_context import current_actor, current_farm_id
from sproutify.middleware.exceptions import ResourceNotFoundError
from sproutify.models.seed_batch import SeedBatch
from sproutify.models.variety import Variety
from sproutify.schemas.seed_batch import BatchMatchOut, SeedBatchCreate, SeedBatchOut
from sproutify.services.batch_matching import SeedQuantity, earliest_purchase_first, match_batches
from sproutify.utils.activity import log_activity

router = APIRouter()


@router.get("/", response_model=list[SeedBatchOut])
async def list_seed_batches(
    variety_id: str | None = Query(None),
    include_inactive: bool = Query(False),
    db: AsyncSession = Depends(get_db),
    farm_id: str = Depends(current_farm_id),
):
    stmt = select(SeedBatch).where(SeedBatch.farm_id == farm_id)
    if variety_id:
        stmt = stmt.where(SeedBatch.variety_id == variety_id)
    if not include_inactive:
        stmt = stmt.where(SeedBatch.is_active == True)  # noqa: E712
    result = await db.execute(stmt.order_by(SeedBatch.purchase_date, SeedBatch.id))
    return [SeedBatchOut.model_validate(b) for b in result.scalars().all()]


@router.post("/", response_model=SeedBatchOut, status_code=status.HTTP_201_CREATED)
async def create_seed_batch(
    body: SeedBatchCreate,
    db: AsyncSession = Depends(get_db),
    farm_id: str = Depends(current_farm_id),
    actor: str | None = Depends(current_actor),
):
    """Record a batch; the quantity is normalised to grams here, once."""
    variety = await db.get(Variety, body.variety_id)
    if not variety or variety.farm_id not in (None, farm_id):
        raise ResourceNotFoundError("Variety", body.variety_id)

    grams = SeedQuantity(body.quantity, body.unit).grams
    batch = SeedBatch(
        farm_id=farm_id,
        variety_id=variety.id,
        variety=variety,
        lot_number=body.lot_number,
        quantity_grams=grams,
        purchase_date=body.purchase_date,
        vendor=body.vendor,
        notes=body.notes,
        is_active=True,
    )
    db.add(batch)
    await db.flush()

    await log_activity(
        db, farm_id, actor,
        action="created",
        entity_type="seed_batch",
        entity_id=batch.id,
        entity_code=batch.lot_number,
        summary=f"Received {grams:.1f} g of {variety.name}",
    )
    return SeedBatchOut.model_validate(batch)


@router.get("/match", response_model=BatchMatchOut)
async def match_seed_batches(
    recipe_id: str = Query(...),
    trays: int = Query(1, ge=1),
    db: AsyncSession = Depends(get_db),
    farm_id: str = Depends(current_farm_id),
):
    """Every batch of the recipe's variety holding enough seed.

    409 INSUFFICIENT_INVENTORY when none does; 422
    RECIPE_CONFIGURATION_ERROR when the recipe cannot say how much it needs.
    """
    match = await match_batches(db, farm_id, recipe_id, trays)
    suggested = earliest_purchase_first(match.candidates)
    return BatchMatchOut(
        recipe_id=match.recipe_id,
        variety_id=match.variety_id,
        variety_name=match.variety_name,
        per_tray_grams=match.per_tray_grams,
        trays=match.trays,
        required_grams=match.required_grams,
        candidates=[SeedBatchOut.model_validate(b) for b in match.candidates],
        suggested_batch_id=suggested.id if suggested else None,
    )
