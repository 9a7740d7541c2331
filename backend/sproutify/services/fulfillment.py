"""Fulfillment boundary: converts allocated seeding requests into trays.

Picks up pending requests that carry a seed batch and, for each one:

  1. decrements the batch with a single conditional UPDATE
     (… WHERE quantity_grams >= need), so the stock read when the
     request was made is re-validated at allocation time and two
     allocations can never overdraw a batch
  2. creates ``quantity`` Tray rows, each with a TrayStep snapshot of the
     recipe's ordered steps and their scheduled dates
  3. marks the request fulfilled

A request that cannot be allocated stays pending with
``fulfillment_error`` set and is retried on the next run.
"""

import logging
from dataclasses import dataclass, field
from datetime import timedelta

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from sproutify.database import utcnow
from sproutify.middleware.exceptions import RecipeConfigurationError
from sproutify.models.recipe import Recipe
from sproutify.models.seed_batch import SeedBatch
from sproutify.models.tray import Tray, TrayStep
from sproutify.models.tray_creation_request import TrayCreationRequest
from sproutify.services.batch_matching import seed_requirement_grams
from sproutify.services.durations import step_windows
from sproutify.utils.activity import log_activity
from sproutify.utils.numbering import generate_tray_codes

logger = logging.getLogger(__name__)


@dataclass
class FulfillmentSummary:
    fulfilled_request_ids: list[str] = field(default_factory=list)
    failed_request_ids: list[str] = field(default_factory=list)
    trays_created: int = 0


def snapshot_steps(recipe: Recipe, sow_date) -> list[TrayStep]:
    return [
        TrayStep(
            step_id=w.step.id,
            sequence_order=w.step.sequence_order,
            step_name=w.step.name,
            duration=w.step.duration,
            duration_unit=w.step.duration_unit,
            scheduled_date=sow_date + timedelta(days=w.start_day),
            completed=False,
            skipped=False,
        )
        for w in step_windows(recipe.steps)
    ]


async def _allocate(db: AsyncSession, batch_id: str, grams: float) -> tuple[bool, SeedBatch | None]:
    result = await db.execute(
        update(SeedBatch)
        .where(SeedBatch.id == batch_id, SeedBatch.quantity_grams >= grams)
        .values(quantity_grams=SeedBatch.quantity_grams - grams)
        .execution_options(synchronize_session=False)
    )
    batch = await db.get(SeedBatch, batch_id)
    if batch is not None:
        await db.refresh(batch)
    return result.rowcount == 1, batch


async def fulfill_request(db: AsyncSession, req: TrayCreationRequest) -> list[Tray]:
    """Convert one request; returns no trays when it cannot be allocated."""
    recipe = await db.get(Recipe, req.recipe_id)
    try:
        need = round(seed_requirement_grams(recipe) * req.quantity, 3)
    except RecipeConfigurationError as exc:
        req.fulfillment_error = exc.message
        logger.warning("Request %s not fulfilled: %s", req.id, exc.message)
        return []

    allocated, batch = await _allocate(db, req.batch_id, need)
    if not allocated:
        held = batch.quantity_grams if batch else 0.0
        req.fulfillment_error = (
            f"Insufficient seed in batch {req.batch_id}: "
            f"need {need:.2f} g, batch holds {held:.2f} g"
        )
        logger.warning("Request %s not fulfilled: %s", req.id, req.fulfillment_error)
        return []

    codes = await generate_tray_codes(db, req.farm_id, req.seed_date, req.quantity)
    trays = [
        Tray(
            farm_id=req.farm_id,
            tray_code=code,
            recipe_id=recipe.id,
            recipe=recipe,
            request_id=req.id,
            batch_id=req.batch_id,
            customer_id=req.customer_id,
            sow_date=req.seed_date,
            status="active",
            steps=snapshot_steps(recipe, req.seed_date),
        )
        for code in codes
    ]
    db.add_all(trays)

    req.status = "fulfilled"
    req.fulfilled_at = utcnow()
    req.fulfillment_error = None
    await db.flush()

    await log_activity(
        db, req.farm_id, None,
        action="fulfilled",
        entity_type="seeding_request",
        entity_id=req.id,
        summary=f"Created {len(trays)} tray(s) of {req.recipe_name} using {need:.1f} g of seed",
        details={"tray_codes": codes, "batch_id": req.batch_id},
    )
    return trays


async def fulfill_pending_requests(
    db: AsyncSession,
    farm_id: str | None = None,
) -> FulfillmentSummary:
    query = select(TrayCreationRequest).where(
        TrayCreationRequest.status == "pending",
        TrayCreationRequest.batch_id.is_not(None),
    )
    if farm_id:
        query = query.where(TrayCreationRequest.farm_id == farm_id)
    result = await db.execute(
        query.order_by(TrayCreationRequest.seed_date, TrayCreationRequest.requested_at)
    )

    summary = FulfillmentSummary()
    for req in result.scalars().all():
        trays = await fulfill_request(db, req)
        if trays:
            summary.fulfilled_request_ids.append(req.id)
            summary.trays_created += len(trays)
        else:
            summary.failed_request_ids.append(req.id)
    await db.flush()
    return summary
