"""Seeding request pipeline: turns seeding intent into tray creation requests.

Entry points:
  create_seeding_request()        manual "N trays of recipe R on date D";
                                  one pending row, quantity N
  complete_seed_task()            a Seed task done with an operator-chosen
                                  batch; N rows of quantity 1, each stamped
                                  with the batch and dated on the task date
  complete_soak_task()            a Soak task done; records the soaked seed
  generate_requests_from_orders() pending rows ahead of time from the
                                  planting schedule

Rules shared by all of them:
  - validation (batch present, quantities, status, ledger) happens before
    anything is written
  - a global template recipe is copied into the farm (once) before any
    request references it
  - inventory is never decremented here; the fulfillment boundary does that
    when it turns requests into trays
  - nothing is committed here: the caller's transaction commits or rolls
    back the whole sequence
"""

import logging
from collections import OrderedDict
from datetime import date, datetime, time, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from sproutify.config import settings
from sproutify.database import utcnow
from sproutify.middleware.exceptions import (
    BusinessLogicError,
    DuplicateTaskError,
    InsufficientInventoryError,
    ResourceNotFoundError,
    TerminalStateError,
)
from sproutify.models.customer import Customer
from sproutify.models.recipe import Recipe, Step
from sproutify.models.soaked_seed import SoakedSeed
from sproutify.models.tray_creation_request import TrayCreationRequest
from sproutify.services.batch_matching import seed_requirement_grams, validate_batch_choice
from sproutify.services.durations import ordered_steps
from sproutify.services.planting_schedule import load_planting_schedule, recipe_key
from sproutify.services.recipes import get_visible_recipe
from sproutify.services.task_ledger import (
    COMPLETED,
    IN_PROGRESS,
    TaskKey,
    get_task_status,
    request_tag,
    set_task_status,
)
from sproutify.utils.activity import log_activity

logger = logging.getLogger(__name__)

REQUEST_STATUSES = ("pending", "fulfilled", "cancelled")


# ── Global recipe copy-on-use ───────────────────────────────

async def ensure_farm_recipe(
    db: AsyncSession,
    farm_id: str,
    recipe: Recipe,
    actor: str | None = None,
) -> Recipe:
    """Return a farm-owned recipe for ``recipe``, copying a template once."""
    if recipe.farm_id == farm_id:
        return recipe
    if not recipe.is_global:
        raise ResourceNotFoundError("Recipe", recipe.id)

    result = await db.execute(
        select(Recipe).where(
            Recipe.farm_id == farm_id,
            Recipe.source_recipe_id == recipe.id,
        )
    )
    existing = result.scalar_one_or_none()
    if existing:
        return existing

    copy = Recipe(
        farm_id=farm_id,
        is_global=False,
        source_recipe_id=recipe.id,
        name=recipe.name,
        variety_id=recipe.variety_id,
        variety=recipe.variety,
        variety_name=recipe.variety_name,
        seed_quantity=recipe.seed_quantity,
        seed_quantity_unit=recipe.seed_quantity_unit,
        requires_soak=recipe.requires_soak,
        soak_hours=recipe.soak_hours,
        steps=[
            Step(
                sequence_order=s.sequence_order,
                name=s.name,
                description=s.description,
                duration=s.duration,
                duration_unit=s.duration_unit,
            )
            for s in ordered_steps(recipe.steps)
        ],
    )
    db.add(copy)
    await db.flush()

    await log_activity(
        db, farm_id, actor,
        action="copied",
        entity_type="recipe",
        entity_id=copy.id,
        entity_code=copy.name,
        summary=f"Copied global recipe '{recipe.name}' into the farm",
        details={"source_recipe_id": recipe.id},
    )
    logger.info("Farm %s: copied global recipe %s as %s", farm_id, recipe.id, copy.id)
    return copy


# ── Helpers ─────────────────────────────────────────────────

async def get_seeding_request(db: AsyncSession, farm_id: str, request_id: str) -> TrayCreationRequest:
    req = await db.get(TrayCreationRequest, request_id)
    if not req or req.farm_id != farm_id:
        raise ResourceNotFoundError("Seeding request", request_id)
    return req


def _require_pending(req: TrayCreationRequest) -> None:
    if req.status != "pending":
        raise TerminalStateError(f"Seeding request {req.id} is already {req.status}")


async def _get_customer(db: AsyncSession, farm_id: str, customer_id: str | None) -> Customer | None:
    if not customer_id:
        return None
    customer = await db.get(Customer, customer_id)
    if not customer or customer.farm_id != farm_id:
        raise ResourceNotFoundError("Customer", customer_id)
    return customer


def _task_requested_at(task_date: date) -> datetime:
    """Requests made from a task are dated on the task, not the wall clock."""
    return datetime.combine(task_date, time())


async def _consume_soaked_seed(
    db: AsyncSession,
    farm_id: str,
    recipe_id: str,
    sow_date: date,
    grams: float,
) -> None:
    """Draw down seed soaked the day before for this recipe, if any."""
    result = await db.execute(
        select(SoakedSeed)
        .where(
            SoakedSeed.farm_id == farm_id,
            SoakedSeed.recipe_id == recipe_id,
            SoakedSeed.soak_date == sow_date - timedelta(days=1),
            SoakedSeed.status == "available",
        )
        .order_by(SoakedSeed.created_at)
    )
    for soaked in result.scalars().all():
        if grams <= 0:
            break
        used = min(grams, soaked.quantity_remaining_grams)
        soaked.quantity_remaining_grams = round(soaked.quantity_remaining_grams - used, 3)
        grams -= used
        if soaked.quantity_remaining_grams <= 0:
            soaked.status = "used"


# ── Manual requests ─────────────────────────────────────────

async def create_seeding_request(
    db: AsyncSession,
    farm_id: str,
    *,
    recipe_id: str,
    quantity: int,
    seed_date: date,
    batch_id: str | None = None,
    customer_id: str | None = None,
    actor: str | None = None,
) -> TrayCreationRequest:
    if quantity < 1:
        raise BusinessLogicError("Quantity must be at least 1 tray")

    recipe = await get_visible_recipe(db, farm_id, recipe_id)
    customer = await _get_customer(db, farm_id, customer_id)
    if batch_id:
        await validate_batch_choice(db, farm_id, recipe, batch_id, quantity)

    farm_recipe = await ensure_farm_recipe(db, farm_id, recipe, actor)

    req = TrayCreationRequest(
        farm_id=farm_id,
        recipe_id=farm_recipe.id,
        recipe_name=farm_recipe.name,
        variety_name=farm_recipe.variety_name,
        quantity=quantity,
        quantity_completed=0,
        seed_date=seed_date,
        batch_id=batch_id,
        customer_id=customer.id if customer else None,
        customer_name=customer.name if customer else None,
        source="manual",
        status="pending",
        requested_by=actor,
    )
    db.add(req)
    await db.flush()

    await log_activity(
        db, farm_id, actor,
        action="created",
        entity_type="seeding_request",
        entity_id=req.id,
        summary=f"Requested {quantity} tray(s) of {req.recipe_name} for {seed_date.isoformat()}",
    )
    return req


async def list_seeding_requests(
    db: AsyncSession,
    farm_id: str,
    status: str | None = None,
    start: date | None = None,
    end: date | None = None,
) -> list[TrayCreationRequest]:
    query = select(TrayCreationRequest).where(TrayCreationRequest.farm_id == farm_id)
    if status:
        query = query.where(TrayCreationRequest.status == status)
    if start:
        query = query.where(TrayCreationRequest.seed_date >= start)
    if end:
        query = query.where(TrayCreationRequest.seed_date <= end)
    result = await db.execute(
        query.order_by(TrayCreationRequest.seed_date, TrayCreationRequest.requested_at)
    )
    return list(result.scalars().all())


async def cancel_seeding_request(
    db: AsyncSession,
    farm_id: str,
    request_id: str,
    reason: str | None = None,
    actor: str | None = None,
) -> TrayCreationRequest:
    """Cancel a pending request; trays already created are untouched."""
    req = await get_seeding_request(db, farm_id, request_id)
    _require_pending(req)

    req.status = "cancelled"
    req.cancelled_at = utcnow()
    req.cancelled_reason = reason
    await db.flush()

    await log_activity(
        db, farm_id, actor,
        action="cancelled",
        entity_type="seeding_request",
        entity_id=req.id,
        summary=f"Cancelled request for {req.quantity_remaining} tray(s) of {req.recipe_name}",
        details={"reason": reason},
    )
    return req


async def reschedule_seeding_request(
    db: AsyncSession,
    farm_id: str,
    request_id: str,
    new_date: date,
    actor: str | None = None,
) -> TrayCreationRequest:
    req = await get_seeding_request(db, farm_id, request_id)
    _require_pending(req)
    if new_date == req.seed_date:
        return req

    req.rescheduled_from = req.seed_date
    req.seed_date = new_date
    await db.flush()

    await log_activity(
        db, farm_id, actor,
        action="rescheduled",
        entity_type="seeding_request",
        entity_id=req.id,
        summary=(
            f"Moved {req.recipe_name} from {req.rescheduled_from.isoformat()} "
            f"to {new_date.isoformat()}"
        ),
    )
    return req


# ── Task-driven fulfillment ─────────────────────────────────

async def complete_seed_task(
    db: AsyncSession,
    farm_id: str,
    *,
    recipe_id: str,
    task_date: date,
    quantity: int,
    batch_id: str | None,
    request_id: str | None = None,
    customer_id: str | None = None,
    standing_order_id: str | None = None,
    actor: str | None = None,
) -> list[TrayCreationRequest]:
    """Record a completed Seed task as ``quantity`` single-tray requests."""
    if not batch_id:
        raise BusinessLogicError("Batch ID is required for seeding tasks")
    if quantity < 1:
        raise BusinessLogicError("Quantity must be at least 1 tray")

    source = None
    if request_id:
        source = await get_seeding_request(db, farm_id, request_id)
        _require_pending(source)
        if source.batch_id:
            raise TerminalStateError(
                f"Seeding request {source.id} already has a batch allocated"
            )
        if quantity > source.quantity_remaining:
            raise BusinessLogicError(
                f"Only {source.quantity_remaining} tray(s) remain on request {source.id}"
            )
        recipe_id = source.recipe_id

    recipe = await get_visible_recipe(db, farm_id, recipe_id)
    schedule_key = TaskKey("sowing", task_date, recipe_key(recipe))
    keys = [schedule_key]
    if source is not None:
        request_key = TaskKey(
            "sowing", source.seed_date, recipe_key(recipe),
            product_name=request_tag(source.id),
        )
        # A standing-order request stands in for its schedule task
        keys = [request_key, schedule_key] if source.standing_order_id else [request_key]
    elif await get_task_status(db, farm_id, schedule_key) == COMPLETED:
        raise DuplicateTaskError(schedule_key.as_string())
    key = keys[0]

    await validate_batch_choice(db, farm_id, recipe, batch_id, quantity)

    if source is not None:
        customer_id = customer_id or source.customer_id
        standing_order_id = standing_order_id or source.standing_order_id
    customer = await _get_customer(db, farm_id, customer_id)

    farm_recipe = await ensure_farm_recipe(db, farm_id, recipe, actor)

    requests = [
        TrayCreationRequest(
            farm_id=farm_id,
            recipe_id=farm_recipe.id,
            recipe_name=farm_recipe.name,
            variety_name=farm_recipe.variety_name,
            quantity=1,
            quantity_completed=0,
            seed_date=task_date,
            batch_id=batch_id,
            customer_id=customer.id if customer else None,
            customer_name=customer.name if customer else None,
            standing_order_id=standing_order_id,
            parent_request_id=source.id if source else None,
            source="task",
            status="pending",
            requested_at=_task_requested_at(task_date),
            requested_by=actor,
        )
        for _ in range(quantity)
    ]
    db.add_all(requests)

    if source is not None:
        source.quantity_completed = (source.quantity_completed or 0) + quantity
        if source.quantity_remaining == 0:
            source.status = "fulfilled"
            source.fulfilled_at = utcnow()

    if farm_recipe.requires_soak:
        grams = seed_requirement_grams(farm_recipe) * quantity
        await _consume_soaked_seed(db, farm_id, farm_recipe.id, task_date, grams)

    await db.flush()
    # A partly sown request keeps its task open until the last tray
    status = IN_PROGRESS if source is not None and source.quantity_remaining > 0 else COMPLETED
    for k in keys:
        await set_task_status(db, farm_id, k, status, batch_id=batch_id, actor=actor)

    await log_activity(
        db, farm_id, actor,
        action="completed",
        entity_type="task",
        entity_code=key.as_string(),
        summary=f"Seeded {quantity} tray(s) of {farm_recipe.name} on {task_date.isoformat()}",
        details={"batch_id": batch_id, "request_ids": [r.id for r in requests]},
    )
    logger.info(
        "Farm %s: seed task %s completed with batch %s (%d request(s))",
        farm_id, key.as_string(), batch_id, len(requests),
    )
    return requests


# ── Soaking ─────────────────────────────────────────────────

async def complete_soak_task(
    db: AsyncSession,
    farm_id: str,
    *,
    recipe_id: str,
    soak_date: date,
    quantity: int,
    batch_id: str | None,
    request_id: str | None = None,
    actor: str | None = None,
) -> SoakedSeed:
    """Record seed put to soak for ``quantity`` trays sown the next day."""
    if not batch_id:
        raise BusinessLogicError("Batch ID is required for soaking tasks")
    if quantity < 1:
        raise BusinessLogicError("Quantity must be at least 1 tray")

    if request_id:
        source = await get_seeding_request(db, farm_id, request_id)
        _require_pending(source)
        result = await db.execute(
            select(SoakedSeed.id).where(
                SoakedSeed.request_id == source.id,
                SoakedSeed.status != "discarded",
            )
        )
        if result.first():
            raise TerminalStateError(f"Seed for request {source.id} is already soaked")
        recipe_id = source.recipe_id

    recipe = await get_visible_recipe(db, farm_id, recipe_id)
    if not recipe.requires_soak:
        raise BusinessLogicError(f"Recipe '{recipe.name}' does not require soaking")

    if request_id:
        key = TaskKey("soaking", soak_date, recipe_key(recipe), product_name=request_tag(request_id))
    else:
        key = TaskKey("soaking", soak_date, recipe_key(recipe))
        if await get_task_status(db, farm_id, key) == COMPLETED:
            raise DuplicateTaskError(key.as_string())

    await validate_batch_choice(db, farm_id, recipe, batch_id, quantity)
    farm_recipe = await ensure_farm_recipe(db, farm_id, recipe, actor)

    grams = round(seed_requirement_grams(farm_recipe) * quantity, 3)
    soaked = SoakedSeed(
        farm_id=farm_id,
        request_id=request_id,
        recipe_id=farm_recipe.id,
        seed_batch_id=batch_id,
        variety_name=farm_recipe.variety_name,
        soak_date=soak_date,
        expires_on=soak_date + timedelta(days=settings.soaked_seed_window_days),
        quantity_grams=grams,
        quantity_remaining_grams=grams,
        status="available",
    )
    db.add(soaked)
    await db.flush()
    await set_task_status(db, farm_id, key, COMPLETED, batch_id=batch_id, actor=actor)

    await log_activity(
        db, farm_id, actor,
        action="soaked",
        entity_type="soaked_seed",
        entity_id=soaked.id,
        summary=f"Soaked {grams:.1f} g of {farm_recipe.variety_name or farm_recipe.name}",
    )
    return soaked


async def get_soaked_seed(db: AsyncSession, farm_id: str, soaked_id: str) -> SoakedSeed:
    soaked = await db.get(SoakedSeed, soaked_id)
    if not soaked or soaked.farm_id != farm_id:
        raise ResourceNotFoundError("Soaked seed", soaked_id)
    if soaked.status != "available":
        raise TerminalStateError(f"Soaked seed {soaked_id} is already {soaked.status}")
    return soaked


async def use_soaked_seed(
    db: AsyncSession,
    farm_id: str,
    soaked_id: str,
    trays: int,
    seed_date: date | None = None,
    actor: str | None = None,
) -> list[TrayCreationRequest]:
    """Seed leftover soaked seed into ``trays`` new trays."""
    if trays < 1:
        raise BusinessLogicError("Quantity must be at least 1 tray")
    soaked = await get_soaked_seed(db, farm_id, soaked_id)
    recipe = await get_visible_recipe(db, farm_id, soaked.recipe_id)

    need = round(seed_requirement_grams(recipe) * trays, 3)
    if need > soaked.quantity_remaining_grams:
        raise InsufficientInventoryError(need, soaked.quantity_remaining_grams, soaked.variety_name)

    seed_date = seed_date or date.today()
    requests = [
        TrayCreationRequest(
            farm_id=farm_id,
            recipe_id=recipe.id,
            recipe_name=recipe.name,
            variety_name=recipe.variety_name,
            quantity=1,
            quantity_completed=0,
            seed_date=seed_date,
            batch_id=soaked.seed_batch_id,
            parent_request_id=soaked.request_id,
            source="soaked_seed",
            status="pending",
            requested_at=_task_requested_at(seed_date),
            requested_by=actor,
        )
        for _ in range(trays)
    ]
    db.add_all(requests)

    soaked.quantity_remaining_grams = round(soaked.quantity_remaining_grams - need, 3)
    if soaked.quantity_remaining_grams <= 0:
        soaked.status = "used"
    await db.flush()

    await log_activity(
        db, farm_id, actor,
        action="completed",
        entity_type="soaked_seed",
        entity_id=soaked.id,
        summary=f"Used soaked {soaked.variety_name or recipe.name} for {trays} tray(s)",
    )
    return requests


async def discard_soaked_seed(
    db: AsyncSession,
    farm_id: str,
    soaked_id: str,
    reason: str | None = None,
    actor: str | None = None,
) -> SoakedSeed:
    soaked = await get_soaked_seed(db, farm_id, soaked_id)
    soaked.status = "discarded"
    soaked.discard_reason = reason
    await db.flush()

    await log_activity(
        db, farm_id, actor,
        action="discarded",
        entity_type="soaked_seed",
        entity_id=soaked.id,
        summary=(
            f"Discarded {soaked.quantity_remaining_grams:.1f} g of soaked "
            f"{soaked.variety_name or 'seed'}"
        ),
        details={"reason": reason},
    )
    return soaked


# ── Requests from standing orders ───────────────────────────

async def generate_requests_from_orders(
    db: AsyncSession,
    farm_id: str,
    start: date,
    end: date,
    actor: str | None = None,
) -> list[TrayCreationRequest]:
    """Queue pending requests for every scheduled sowing in [start, end].

    One request per (recipe, sow date, standing order), trays rounded up
    per order line.  Sowings that already have a live request, or whose
    task is completed, are skipped, so re-running is harmless.
    """
    if end < start:
        raise BusinessLogicError("End date must not be before start date")

    entries = [
        e for e in await load_planting_schedule(db, farm_id, start, end)
        if start <= e.sow_date <= end
    ]

    groups: "OrderedDict[tuple, list]" = OrderedDict()
    for entry in entries:
        groups.setdefault(
            (entry.recipe_id, entry.sow_date, entry.standing_order_id), []
        ).append(entry)

    result = await db.execute(
        select(
            TrayCreationRequest.seed_date,
            TrayCreationRequest.standing_order_id,
            Recipe.id,
            Recipe.source_recipe_id,
        )
        .join(Recipe, Recipe.id == TrayCreationRequest.recipe_id)
        .where(
            TrayCreationRequest.farm_id == farm_id,
            TrayCreationRequest.status != "cancelled",
            TrayCreationRequest.standing_order_id.is_not(None),
            TrayCreationRequest.seed_date >= start,
            TrayCreationRequest.seed_date <= end,
        )
    )
    existing = {
        (source_id or rid, seed_date, order_id)
        for seed_date, order_id, rid, source_id in result.all()
    }

    farm_recipes: dict[str, Recipe] = {}
    created = []
    for (rkey, sow_date, order_id), group in groups.items():
        if (rkey, sow_date, order_id) in existing:
            continue
        if await get_task_status(db, farm_id, TaskKey("sowing", sow_date, rkey)) == COMPLETED:
            continue

        if rkey not in farm_recipes:
            recipe = await get_visible_recipe(db, farm_id, rkey)
            farm_recipes[rkey] = await ensure_farm_recipe(db, farm_id, recipe, actor)
        farm_recipe = farm_recipes[rkey]

        first = group[0]
        req = TrayCreationRequest(
            farm_id=farm_id,
            recipe_id=farm_recipe.id,
            recipe_name=farm_recipe.name,
            variety_name=farm_recipe.variety_name,
            quantity=sum(e.trays for e in group),
            quantity_completed=0,
            seed_date=sow_date,
            customer_id=first.customer_id,
            customer_name=first.customer_name,
            standing_order_id=order_id,
            source="standing_order",
            status="pending",
            requested_by=actor,
        )
        db.add(req)
        created.append(req)

    await db.flush()
    if created:
        await log_activity(
            db, farm_id, actor,
            action="created",
            entity_type="seeding_request",
            summary=(
                f"Generated {len(created)} seeding request(s) from standing orders "
                f"for {start.isoformat()} to {end.isoformat()}"
            ),
        )
    logger.info(
        "Farm %s: generated %d request(s) for %s..%s", farm_id, len(created), start, end
    )
    return created
