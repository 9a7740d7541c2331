"""Seeding request router: tray creation requests and soaked seed.

Endpoints:
    GET    /api/seeding-requests/                         List requests
    POST   /api/seeding-requests/                         Request N trays of a recipe
    POST   /api/seeding-requests/{id}/cancel              Cancel a pending request
    POST   /api/seeding-requests/{id}/reschedule          Move a pending request
    POST   /api/seeding-requests/generate                 Queue requests from standing orders
    POST   /api/seeding-requests/fulfill                  Run the fulfillment boundary now
    POST   /api/seeding-requests/soaked/{id}/use          Seed leftover soaked seed
    POST   /api/seeding-requests/soaked/{id}/discard      Discard soaked seed
"""

from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from sproutify.database import get_db
from sproutify.farm_context import current_actor, current_farm_id
from sproutify.schemas.seeding import (
    CancelRequest,
    DiscardSoakedSeedRequest,
    FulfillmentOut,
    GenerateRequest,
    RescheduleRequest,
    SeedingRequestCreate,
    SeedingRequestOut,
    SoakedSeedOut,
    UseSoakedSeedRequest,
)
from sproutify.services.fulfillment import fulfill_pending_requests
from sproutify.services.seeding import (
    cancel_seeding_request,
    create_seeding_request,
    discard_soaked_seed,
    generate_requests_from_orders,
    list_seeding_requests,
    reschedule_seeding_request,
    use_soaked_seed,
)

router = APIRouter()


@router.get("/", response_model=list[SeedingRequestOut])
async def get_seeding_requests(
    request_status: str | None = Query(None, alias="status"),
    date_from: date | None = Query(None),
    date_to: date | None = Query(None),
    db: AsyncSession = Depends(get_db),
    farm_id: str = Depends(current_farm_id),
):
    requests = await list_seeding_requests(db, farm_id, request_status, date_from, date_to)
    return [SeedingRequestOut.model_validate(r) for r in requests]


@router.post("/", response_model=SeedingRequestOut, status_code=status.HTTP_201_CREATED)
async def post_seeding_request(
    body: SeedingRequestCreate,
    db: AsyncSession = Depends(get_db),
    farm_id: str = Depends(current_farm_id),
    actor: str | None = Depends(current_actor),
):
    """Request trays of a recipe.

    A request with a batch is picked up by the next fulfillment run; one
    without a batch shows up as a Seed task on its seed date.
    """
    req = await create_seeding_request(
        db, farm_id,
        recipe_id=body.recipe_id,
        quantity=body.quantity,
        seed_date=body.seed_date,
        batch_id=body.batch_id,
        customer_id=body.customer_id,
        actor=actor,
    )
    return SeedingRequestOut.model_validate(req)


@router.post("/generate", response_model=list[SeedingRequestOut], status_code=status.HTTP_201_CREATED)
async def post_generate(
    body: GenerateRequest,
    db: AsyncSession = Depends(get_db),
    farm_id: str = Depends(current_farm_id),
    actor: str | None = Depends(current_actor),
):
    created = await generate_requests_from_orders(db, farm_id, body.start_date, body.end_date, actor)
    return [SeedingRequestOut.model_validate(r) for r in created]


@router.post("/fulfill", response_model=FulfillmentOut)
async def post_fulfill(
    db: AsyncSession = Depends(get_db),
    farm_id: str = Depends(current_farm_id),
):
    """Run the fulfillment boundary for this farm without waiting for the scheduler."""
    summary = await fulfill_pending_requests(db, farm_id)
    return FulfillmentOut.model_validate(summary)


@router.post("/{request_id}/cancel", response_model=SeedingRequestOut)
async def post_cancel(
    request_id: str,
    body: CancelRequest,
    db: AsyncSession = Depends(get_db),
    farm_id: str = Depends(current_farm_id),
    actor: str | None = Depends(current_actor),
):
    req = await cancel_seeding_request(db, farm_id, request_id, body.reason, actor)
    return SeedingRequestOut.model_validate(req)


@router.post("/{request_id}/reschedule", response_model=SeedingRequestOut)
async def post_reschedule(
    request_id: str,
    body: RescheduleRequest,
    db: AsyncSession = Depends(get_db),
    farm_id: str = Depends(current_farm_id),
    actor: str | None = Depends(current_actor),
):
    req = await reschedule_seeding_request(db, farm_id, request_id, body.seed_date, actor)
    return SeedingRequestOut.model_validate(req)


# ── Soaked seed ──────────────────────────────────────────────

@router.post(
    "/soaked/{soaked_id}/use",
    response_model=list[SeedingRequestOut],
    status_code=status.HTTP_201_CREATED,
)
async def post_use_soaked(
    soaked_id: str,
    body: UseSoakedSeedRequest,
    db: AsyncSession = Depends(get_db),
    farm_id: str = Depends(current_farm_id),
    actor: str | None = Depends(current_actor),
):
    requests = await use_soaked_seed(db, farm_id, soaked_id, body.trays, body.seed_date, actor)
    return [SeedingRequestOut.model_validate(r) for r in requests]


@router.post("/soaked/{soaked_id}/discard", response_model=SoakedSeedOut)
async def post_discard_soaked(
    soaked_id: str,
    body: DiscardSoakedSeedRequest,
    db: AsyncSession = Depends(get_db),
    farm_id: str = Depends(current_farm_id),
    actor: str | None = Depends(current_actor),
):
    soaked = await discard_soaked_seed(db, farm_id, soaked_id, body.reason, actor)
    return SoakedSeedOut.model_validate(soaked)
