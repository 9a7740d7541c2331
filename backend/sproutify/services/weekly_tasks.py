"""Weekly task list: soak/sow/harvest/delivery plus maintenance for one week.

The week runs Monday to Sunday around the reference date.  Tasks come from
the planting schedule:

  soaking     the day before sowing, for recipes that soak; reported in
              whichever week that day falls, even when sowing is next week
  sowing      on the sow date
  harvesting  on the harvest date
  delivery    on the delivery date, per customer and product

Tasks sharing a key (type, date, recipe[, customer, product]) are merged
and their quantities summed.  Tray quantities are rounded up per order
line before summing.  Maintenance tasks land on their weekday and are never
merged.  Status comes from the completion ledger, so regenerating the same
week with an unchanged ledger yields identical tasks.
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from sproutify.models.maintenance_task import MaintenanceTask
from sproutify.services.planting_schedule import ScheduleEntry, load_planting_schedule
from sproutify.services.task_ledger import PENDING, TaskKey, load_statuses, status_for

TYPE_ORDER = {"soaking": 0, "sowing": 1, "harvesting": 2, "delivery": 3, "maintenance": 4}


@dataclass
class WeeklyTask:
    key: TaskKey
    recipe_name: str | None = None
    variety_name: str | None = None
    quantity: float = 0
    status: str = PENDING
    order_names: list[str] = field(default_factory=list)

    @property
    def task_type(self) -> str:
        return self.key.task_type

    @property
    def task_date(self) -> date:
        return self.key.task_date

    @property
    def recipe_id(self) -> str | None:
        return self.key.recipe_id

    @property
    def customer_name(self) -> str | None:
        return self.key.customer_name

    @property
    def product_name(self) -> str | None:
        return self.key.product_name

    def as_tuple(self) -> tuple:
        return (self.task_type, self.task_date, self.recipe_id, self.quantity, self.status)


@dataclass
class WeeklyTasks:
    week_start: date
    week_end: date
    tasks: list[WeeklyTask]


def week_start_for(reference: date) -> date:
    """The Monday of the week containing ``reference``."""
    return reference - timedelta(days=reference.weekday())


def _sort_key(task: WeeklyTask) -> tuple:
    return (
        task.task_date,
        TYPE_ORDER[task.task_type],
        task.recipe_name or "",
        task.customer_name or "",
        task.product_name or "",
        task.recipe_id or "",
    )


def aggregate_weekly_tasks(
    entries: Iterable[ScheduleEntry],
    maintenance: Iterable[Any],
    week_start: date,
    statuses: dict[str, str] | None = None,
) -> list[WeeklyTask]:
    week_end = week_start + timedelta(days=6)
    statuses = statuses or {}
    merged: dict[TaskKey, WeeklyTask] = {}

    def add(key: TaskKey, entry: ScheduleEntry, quantity: float) -> None:
        if not week_start <= key.task_date <= week_end:
            return
        task = merged.get(key)
        if task is None:
            task = merged[key] = WeeklyTask(
                key=key,
                recipe_name=entry.recipe_name if key.recipe_id else None,
                variety_name=entry.variety_name if key.recipe_id else None,
            )
        task.quantity += quantity
        if entry.order_name not in task.order_names:
            task.order_names.append(entry.order_name)

    delivered_lines = set()
    for entry in entries:
        if entry.soak_date is not None:
            add(TaskKey("soaking", entry.soak_date, entry.recipe_id), entry, entry.trays)
        add(TaskKey("sowing", entry.sow_date, entry.recipe_id), entry, entry.trays)
        add(TaskKey("harvesting", entry.harvest_date, entry.recipe_id), entry, entry.trays)

        # One delivery per order line, however many recipes the product splits into
        line = (entry.order_item_id, entry.delivery_date)
        if line not in delivered_lines:
            delivered_lines.add(line)
            add(
                TaskKey(
                    "delivery", entry.delivery_date,
                    customer_name=entry.customer_name,
                    product_name=entry.product_name,
                ),
                entry,
                entry.product_quantity,
            )

    tasks = list(merged.values())
    for chore in maintenance:
        if not chore.is_active or not 0 <= chore.day_of_week <= 6:
            continue
        task_date = week_start + timedelta(days=chore.day_of_week)
        tasks.append(WeeklyTask(
            key=TaskKey("maintenance", task_date, product_name=chore.task_name),
            quantity=chore.quantity or 1,
        ))

    for task in tasks:
        task.status = status_for(statuses, task.key)
    return sorted(tasks, key=_sort_key)


async def build_weekly_tasks(db: AsyncSession, farm_id: str, reference_date: date) -> WeeklyTasks:
    week_start = week_start_for(reference_date)
    week_end = week_start + timedelta(days=6)

    entries = await load_planting_schedule(db, farm_id, week_start, week_end)
    result = await db.execute(
        select(MaintenanceTask)
        .where(
            MaintenanceTask.farm_id == farm_id,
            MaintenanceTask.is_active == True,  # noqa: E712
        )
        .order_by(MaintenanceTask.day_of_week, MaintenanceTask.task_name)
    )
    maintenance = list(result.scalars().all())

    tasks = aggregate_weekly_tasks(entries, maintenance, week_start)
    statuses = await load_statuses(db, farm_id, [t.key for t in tasks])
    for task in tasks:
        task.status = status_for(statuses, task.key)
    return WeeklyTasks(week_start=week_start, week_end=week_end, tasks=tasks)
