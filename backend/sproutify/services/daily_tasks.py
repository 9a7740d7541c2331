"""Daily task list: everything an operator has to do on one date.

Sources, unioned and de-duplicated by task id:

  tray steps         pending TraySteps scheduled that day on growing trays,
                     one task per (recipe, step) with its tray ids
  harvests           growing trays whose harvest date has arrived, one task
                     per (recipe, customer)
  seeding requests   pending requests without a batch: Seed on the seed
                     date (overdue afterwards), Soak the day before when the
                     recipe soaks
  planting schedule  Seed/Soak for scheduled sowings not already covered by
                     a manual or standing-order request
  soaked seed        leftovers at or past their expiry date
  at risk            scheduled lines sown before the date and not yet
                     harvested that have fewer trays on track for the
                     delivery than they need, one task per (recipe,
                     customer, delivery date)

Urgent: expiring soaked seed, every Seed task, harvests and at-risk lines.

Each task carries a TaskKey; its status comes from the completion ledger.
"""

from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import date, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from sproutify.models.customer import Customer
from sproutify.models.soaked_seed import SoakedSeed
from sproutify.models.tray import Tray
from sproutify.models.tray_creation_request import TrayCreationRequest
from sproutify.services.lifecycle import is_growing, pending_tray_steps, tray_harvest_date
from sproutify.services.planting_schedule import load_growing_entries, load_planting_schedule, recipe_key
from sproutify.services.recipes import load_recipes
from sproutify.services.task_ledger import PENDING, TaskKey, load_statuses, request_tag, status_for

SEED = "Seed"
SOAK = "Soak"
HARVEST = "Harvest"
USE_OR_DISCARD = "Use or Discard Soaked Seed"
AT_RISK = "At Risk"

URGENT_SOURCES = ("expiring_seed", "seed_request", "planting_schedule")

# Requests that stand for a sowing, as opposed to the per-tray rows
# written when a Seed task is completed
_PLANNING_SOURCES = ("manual", "standing_order")


@dataclass
class DailyTask:
    id: str
    key: TaskKey
    action: str
    crop: str
    source: str
    task_date: date
    trays: int = 0
    tray_ids: list[str] = field(default_factory=list)
    recipe_id: str | None = None
    step_name: str | None = None
    request_id: str | None = None
    soaked_seed_id: str | None = None
    customer_name: str | None = None
    quantity_grams: float | None = None
    is_overdue: bool = False
    status: str = PENDING

    @property
    def urgent(self) -> bool:
        action = self.action.lower()
        if self.source == "expiring_seed":
            return True
        if self.source in URGENT_SOURCES and self.action == SEED:
            return True
        return "harvest" in action or self.source == "at_risk"


def _crop(recipe) -> str:
    return recipe.variety_name or recipe.name


# ── Source (a): trays ───────────────────────────────────────

async def _growing_trays(db: AsyncSession, farm_id: str, on_date: date) -> list[Tray]:
    result = await db.execute(
        select(Tray).where(
            Tray.farm_id == farm_id,
            Tray.status == "active",
            Tray.harvest_date.is_(None),
            Tray.sow_date <= on_date,
        )
    )
    return [t for t in result.scalars().all() if is_growing(t)]


def _tray_step_tasks(trays: list[Tray], on_date: date) -> list[DailyTask]:
    buckets: "OrderedDict[tuple, DailyTask]" = OrderedDict()
    for tray in trays:
        rkey = recipe_key(tray.recipe)
        for step in pending_tray_steps(tray.steps):
            # Harvest steps are reported as harvest tasks below
            if step.scheduled_date != on_date or "harvest" in step.step_name.lower():
                continue
            task = buckets.get((rkey, step.step_name))
            if task is None:
                task = DailyTask(
                    id=f"tray_step-{rkey}-{step.step_name}",
                    key=TaskKey("tray_step", on_date, rkey, product_name=step.step_name),
                    action=step.step_name,
                    crop=_crop(tray.recipe),
                    source="tray_step",
                    task_date=on_date,
                    recipe_id=rkey,
                    step_name=step.step_name,
                )
                buckets[(rkey, step.step_name)] = task
            task.tray_ids.append(tray.id)
            task.trays += 1
    return list(buckets.values())


async def _harvest_tasks(
    db: AsyncSession,
    trays: list[Tray],
    on_date: date,
) -> list[DailyTask]:
    ready = [t for t in trays if tray_harvest_date(t) <= on_date]
    customer_ids = {t.customer_id for t in ready if t.customer_id}
    names = {}
    if customer_ids:
        result = await db.execute(
            select(Customer.id, Customer.name).where(Customer.id.in_(customer_ids))
        )
        names = dict(result.all())

    buckets: "OrderedDict[tuple, DailyTask]" = OrderedDict()
    for tray in ready:
        rkey = recipe_key(tray.recipe)
        customer_name = names.get(tray.customer_id)
        task = buckets.get((rkey, tray.customer_id))
        if task is None:
            task = DailyTask(
                id=f"harvest-{rkey}-{tray.customer_id or 'stock'}",
                key=TaskKey("harvesting", on_date, rkey, customer_name=customer_name),
                action=HARVEST,
                crop=_crop(tray.recipe),
                source="tray_step",
                task_date=on_date,
                recipe_id=rkey,
                customer_name=customer_name,
            )
            buckets[(rkey, tray.customer_id)] = task
        task.tray_ids.append(tray.id)
        task.trays += 1
        if tray_harvest_date(tray) < on_date:
            task.is_overdue = True
    return list(buckets.values())


# ── Source (b): requests and planting schedule ──────────────

async def _request_tasks(
    db: AsyncSession,
    farm_id: str,
    on_date: date,
) -> tuple[list[DailyTask], set[tuple[str, date]]]:
    """Seed/Soak tasks for open requests, plus the sowings requests cover."""
    result = await db.execute(
        select(TrayCreationRequest).where(
            TrayCreationRequest.farm_id == farm_id,
            TrayCreationRequest.status != "cancelled",
            TrayCreationRequest.source.in_(_PLANNING_SOURCES),
            TrayCreationRequest.seed_date <= on_date + timedelta(days=1),
        )
    )
    requests = list(result.scalars().all())
    recipes = await load_recipes(db, farm_id, {r.recipe_id for r in requests})

    open_ids = [r.id for r in requests if r.status == "pending"]
    soaked_ids = set()
    if open_ids:
        soaked = await db.execute(
            select(SoakedSeed.request_id).where(
                SoakedSeed.request_id.in_(open_ids),
                SoakedSeed.status != "discarded",
            )
        )
        soaked_ids = {row[0] for row in soaked.all()}

    tasks = []
    covered = set()
    for req in requests:
        recipe = recipes.get(req.recipe_id)
        if recipe is None:
            continue
        rkey = recipe_key(recipe)
        if req.seed_date >= on_date:
            covered.add((rkey, req.seed_date))

        if req.status != "pending" or req.batch_id or req.quantity_remaining == 0:
            continue
        crop = req.variety_name or req.recipe_name

        if req.seed_date <= on_date:
            tasks.append(DailyTask(
                id=f"seed_request-{req.id}",
                key=TaskKey("sowing", req.seed_date, rkey, product_name=request_tag(req.id)),
                action=SEED,
                crop=crop,
                source="seed_request",
                task_date=req.seed_date,
                trays=req.quantity_remaining,
                recipe_id=rkey,
                request_id=req.id,
                customer_name=req.customer_name,
                is_overdue=req.seed_date < on_date,
            ))
        elif recipe.requires_soak and req.id not in soaked_ids:
            tasks.append(DailyTask(
                id=f"soak_request-{req.id}",
                key=TaskKey("soaking", on_date, rkey, product_name=request_tag(req.id)),
                action=SOAK,
                crop=crop,
                source="soak_request",
                task_date=on_date,
                trays=req.quantity_remaining,
                recipe_id=rkey,
                request_id=req.id,
                customer_name=req.customer_name,
            ))
    return tasks, covered


async def _schedule_tasks(
    db: AsyncSession,
    farm_id: str,
    on_date: date,
    covered: set[tuple[str, date]],
) -> list[DailyTask]:
    entries = await load_planting_schedule(db, farm_id, on_date, on_date + timedelta(days=1))

    buckets: "OrderedDict[tuple, DailyTask]" = OrderedDict()
    for entry in entries:
        if entry.sow_date == on_date:
            action, task_type = SEED, "sowing"
        elif entry.soak_date == on_date:
            action, task_type = SOAK, "soaking"
        else:
            continue
        if (entry.recipe_id, entry.sow_date) in covered:
            continue

        task = buckets.get((action, entry.recipe_id))
        if task is None:
            task = DailyTask(
                id=f"planting_schedule-{task_type}-{entry.recipe_id}",
                key=TaskKey(task_type, on_date, entry.recipe_id),
                action=action,
                crop=entry.variety_name or entry.recipe_name,
                source="planting_schedule",
                task_date=on_date,
                recipe_id=entry.recipe_id,
            )
            buckets[(action, entry.recipe_id)] = task
        task.trays += entry.trays
    return list(buckets.values())


# ── Source (c): soaked seed ─────────────────────────────────

async def _expiring_seed_tasks(db: AsyncSession, farm_id: str, on_date: date) -> list[DailyTask]:
    result = await db.execute(
        select(SoakedSeed)
        .where(
            SoakedSeed.farm_id == farm_id,
            SoakedSeed.status == "available",
            SoakedSeed.quantity_remaining_grams > 0,
            SoakedSeed.expires_on <= on_date,
        )
        .order_by(SoakedSeed.expires_on)
    )
    return [
        DailyTask(
            id=f"expiring_seed-{s.id}",
            key=TaskKey("soaked_seed", on_date, s.recipe_id, product_name=s.id),
            action=USE_OR_DISCARD,
            crop=s.variety_name or "Soaked seed",
            source="expiring_seed",
            task_date=on_date,
            recipe_id=s.recipe_id,
            request_id=s.request_id,
            soaked_seed_id=s.id,
            quantity_grams=s.quantity_remaining_grams,
            is_overdue=s.expires_on < on_date,
        )
        for s in result.scalars().all()
    ]


# ── Source (d): at-risk deliveries ──────────────────────────

async def _at_risk_tasks(db: AsyncSession, farm_id: str, on_date: date) -> list[DailyTask]:
    """Scheduled lines already past sowing that have too few trays behind them."""
    entries = await load_growing_entries(db, farm_id, on_date)
    if not entries:
        return []

    lines: "OrderedDict[tuple, list]" = OrderedDict()
    for entry in entries:
        lines.setdefault((entry.recipe_id, entry.customer_id, entry.delivery_date), []).append(entry)

    result = await db.execute(
        select(Tray).where(
            Tray.farm_id == farm_id,
            Tray.status != "lost",
            Tray.sow_date >= min(e.sow_date for e in entries),
        )
    )
    trays = list(result.scalars().all())

    tasks = []
    for (rkey, customer_id, delivery_date), group in lines.items():
        first = group[0]
        needed = sum(e.trays for e in group)
        sown_from = min(e.sow_date for e in group)
        ready = [
            t for t in trays
            if recipe_key(t.recipe) == rkey
            and t.customer_id == customer_id
            and t.sow_date >= sown_from
            and tray_harvest_date(t) <= delivery_date
        ]
        if len(ready) >= needed:
            continue
        tasks.append(DailyTask(
            id=f"at_risk-{rkey}-{customer_id or 'stock'}-{delivery_date.isoformat()}",
            key=TaskKey("at_risk", delivery_date, rkey, customer_name=first.customer_name),
            action=AT_RISK,
            crop=first.variety_name or first.recipe_name,
            source="at_risk",
            task_date=on_date,
            trays=needed - len(ready),
            tray_ids=[t.id for t in ready],
            recipe_id=rkey,
            customer_name=first.customer_name,
        ))
    return tasks


# ── Assembly ────────────────────────────────────────────────

async def build_daily_tasks(db: AsyncSession, farm_id: str, on_date: date) -> list[DailyTask]:
    trays = await _growing_trays(db, farm_id, on_date)
    request_tasks, covered = await _request_tasks(db, farm_id, on_date)

    candidates = (
        _tray_step_tasks(trays, on_date)
        + await _harvest_tasks(db, trays, on_date)
        + request_tasks
        + await _schedule_tasks(db, farm_id, on_date, covered)
        + await _expiring_seed_tasks(db, farm_id, on_date)
        + await _at_risk_tasks(db, farm_id, on_date)
    )

    tasks: "OrderedDict[str, DailyTask]" = OrderedDict()
    for task in candidates:
        tasks.setdefault(task.id, task)

    statuses = await load_statuses(db, farm_id, [t.key for t in tasks.values()])
    for task in tasks.values():
        task.status = status_for(statuses, task.key)

    return sorted(tasks.values(), key=lambda t: (not t.urgent, t.action, t.crop, t.id))
