"""Task router: daily and weekly task lists and task completion.

Endpoints:
    GET    /api/tasks/daily            Tasks for one date (default today)
    GET    /api/tasks/weekly           Tasks for the week containing a date
    POST   /api/tasks/seed/complete    Complete a Seed task with a chosen batch
    POST   /api/tasks/soak/complete    Complete a Soak task
    PUT    /api/tasks/status           Set a task's ledger status
"""

from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from sproutify.database import get_db
from sproutify.farm_context import current_actor, current_farm_id
from sproutify.schemas.seeding import SeedingRequestOut, SoakedSeedOut
from sproutify.schemas.task import (
    DailyTaskOut,
    SeedTaskComplete,
    SoakTaskComplete,
    TaskStatusOut,
    TaskStatusUpdate,
    WeeklyTasksOut,
)
from sproutify.services.daily_tasks import build_daily_tasks
from sproutify.services.seeding import complete_seed_task, complete_soak_task
from sproutify.services.task_ledger import TaskKey, set_task_status
from sproutify.services.weekly_tasks import build_weekly_tasks
from sproutify.utils.activity import log_activity

router = APIRouter()


@router.get("/daily", response_model=list[DailyTaskOut])
async def get_daily_tasks(
    on_date: date | None = Query(None, alias="date"),
    db: AsyncSession = Depends(get_db),
    farm_id: str = Depends(current_farm_id),
):
    """Everything to do on one date, urgent tasks first."""
    tasks = await build_daily_tasks(db, farm_id, on_date or date.today())
    return [DailyTaskOut.model_validate(t) for t in tasks]


@router.get("/weekly", response_model=WeeklyTasksOut)
async def get_weekly_tasks(
    reference_date: date | None = Query(None, alias="date"),
    db: AsyncSession = Depends(get_db),
    farm_id: str = Depends(current_farm_id),
):
    """Soak/sow/harvest/delivery and maintenance for the Monday-Sunday week."""
    weekly = await build_weekly_tasks(db, farm_id, reference_date or date.today())
    return WeeklyTasksOut.model_validate(weekly)


@router.post(
    "/seed/complete",
    response_model=list[SeedingRequestOut],
    status_code=status.HTTP_201_CREATED,
)
async def post_complete_seed(
    body: SeedTaskComplete,
    db: AsyncSession = Depends(get_db),
    farm_id: str = Depends(current_farm_id),
    actor: str | None = Depends(current_actor),
):
    """Complete a Seed task: one single-tray request per tray, all on the chosen batch.

    Nothing is written when the batch is missing, too small, or the task is
    already completed.
    """
    requests = await complete_seed_task(
        db, farm_id,
        recipe_id=body.recipe_id,
        task_date=body.task_date,
        quantity=body.quantity,
        batch_id=body.batch_id,
        request_id=body.request_id,
        customer_id=body.customer_id,
        standing_order_id=body.standing_order_id,
        actor=actor,
    )
    return [SeedingRequestOut.model_validate(r) for r in requests]


@router.post("/soak/complete", response_model=SoakedSeedOut, status_code=status.HTTP_201_CREATED)
async def post_complete_soak(
    body: SoakTaskComplete,
    db: AsyncSession = Depends(get_db),
    farm_id: str = Depends(current_farm_id),
    actor: str | None = Depends(current_actor),
):
    soaked = await complete_soak_task(
        db, farm_id,
        recipe_id=body.recipe_id,
        soak_date=body.soak_date,
        quantity=body.quantity,
        batch_id=body.batch_id,
        request_id=body.request_id,
        actor=actor,
    )
    return SoakedSeedOut.model_validate(soaked)


@router.put("/status", response_model=TaskStatusOut)
async def put_task_status(
    body: TaskStatusUpdate,
    db: AsyncSession = Depends(get_db),
    farm_id: str = Depends(current_farm_id),
    actor: str | None = Depends(current_actor),
):
    """Set a generated task's status; ``pending`` clears its ledger row."""
    key = TaskKey(
        body.task_type,
        body.task_date,
        body.recipe_id,
        customer_name=body.customer_name,
        product_name=body.product_name,
    )
    await set_task_status(db, farm_id, key, body.status, actor=actor)
    await log_activity(
        db, farm_id, actor,
        action="status_changed",
        entity_type="task",
        entity_code=key.as_string(),
        summary=f"Set {body.task_type} task on {body.task_date.isoformat()} to {body.status}",
    )
    return TaskStatusOut(task_key=key.as_string(), status=body.status)
