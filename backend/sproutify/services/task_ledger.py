"""Task completion ledger: the idempotency store behind generated task lists.

Tasks are regenerated from recipes, orders and trays on every request.  A
task's status is whatever the ledger holds for its TaskKey; no row means
pending.  Writes are a single atomic statement per key:

  pending                          → DELETE the row
  completed | in_progress | skipped → INSERT … ON CONFLICT (farm_id, task_key)
                                      DO UPDATE

so two operators completing the same task can never produce two rows.
"""

import uuid
from dataclasses import dataclass
from datetime import date
from typing import Iterable

from sqlalchemy import delete, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from sproutify.database import utcnow
from sproutify.middleware.exceptions import BusinessLogicError
from sproutify.models.task_completion import TaskCompletion

PENDING = "pending"
COMPLETED = "completed"
IN_PROGRESS = "in_progress"
SKIPPED = "skipped"

LEDGER_STATUSES = (COMPLETED, IN_PROGRESS, SKIPPED)
TASK_STATUSES = (PENDING,) + LEDGER_STATUSES

TASK_TYPES = (
    "soaking", "sowing", "harvesting", "delivery", "maintenance", "tray_step", "soaked_seed", "at_risk",
)

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def _escape(part: str | None) -> str:
    return (part or "").replace("\\", "\\\\").replace("|", "\\|")


@dataclass(frozen=True)
class TaskKey:
    """Composite identity of a generated task."""
    task_type: str
    task_date: date
    recipe_id: str | None = None
    customer_name: str | None = None
    product_name: str | None = None

    def as_string(self) -> str:
        return "|".join([
            self.task_type,
            self.task_date.isoformat(),
            _escape(self.recipe_id),
            _escape(self.customer_name),
            _escape(self.product_name),
        ])


async def load_statuses(
    db: AsyncSession,
    farm_id: str,
    keys: Iterable[TaskKey],
) -> dict[str, str]:
    """Map of ``task_key`` → ledger status for the keys that have a row."""
    key_strings = sorted({k.as_string() for k in keys})
    if not key_strings:
        return {}
    result = await db.execute(
        select(TaskCompletion.task_key, TaskCompletion.status).where(
            TaskCompletion.farm_id == farm_id,
            TaskCompletion.task_key.in_(key_strings),
        )
    )
    return {row.task_key: row.status for row in result.all()}


def request_tag(request_id: str) -> str:
    """Product slot of keys for tasks that belong to a single seeding request."""
    return f"request:{request_id}"


def status_for(statuses: dict[str, str], key: TaskKey) -> str:
    return statuses.get(key.as_string(), PENDING)


async def get_task_status(db: AsyncSession, farm_id: str, key: TaskKey) -> str:
    statuses = await load_statuses(db, farm_id, [key])
    return status_for(statuses, key)


async def set_task_status(
    db: AsyncSession,
    farm_id: str,
    key: TaskKey,
    status: str,
    batch_id: str | None = None,
    actor: str | None = None,
) -> None:
    if key.task_type not in TASK_TYPES:
        raise BusinessLogicError(f"Unknown task type '{key.task_type}'")

    if status == PENDING:
        await db.execute(
            delete(TaskCompletion).where(
                TaskCompletion.farm_id == farm_id,
                TaskCompletion.task_key == key.as_string(),
            )
        )
        return

    if status not in LEDGER_STATUSES:
        raise BusinessLogicError(
            f"Invalid task status '{status}'. Must be one of: {', '.join(TASK_STATUSES)}"
        )

    dialect = db.get_bind().dialect.name
    insert = _UPSERT_DIALECTS.get(dialect)
    if insert is None:
        raise NotImplementedError(f"No atomic upsert for dialect '{dialect}'")

    stmt = insert(TaskCompletion).values(
        id=str(uuid.uuid4()),
        farm_id=farm_id,
        task_key=key.as_string(),
        task_type=key.task_type,
        task_date=key.task_date,
        recipe_id=key.recipe_id,
        customer_name=key.customer_name,
        product_name=key.product_name,
        status=status,
        batch_id=batch_id,
        completed_by=actor,
        completed_at=utcnow(),
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["farm_id", "task_key"],
        set_={
            "status": stmt.excluded.status,
            "batch_id": stmt.excluded.batch_id,
            "completed_by": stmt.excluded.completed_by,
            "completed_at": stmt.excluded.completed_at,
        },
    )
    await db.execute(stmt)
