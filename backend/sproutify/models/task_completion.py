"""TaskCompletion: the idempotency ledger for generated tasks.

Tasks are re-derived from recipes, orders and trays on every request; a
row here is the only thing that records that one of them was acted on.
Rows are keyed by the canonical ``task_key`` string of a TaskKey
(type, date, recipe, customer, product), unique per farm, and written
with an atomic INSERT … ON CONFLICT upsert.  Absence of a row means the
task is pending.
"""

import uuid
from datetime import date, datetime

from sqlalchemy import Date, DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from sproutify.database import Base, utcnow


class TaskCompletion(Base):
    __tablename__ = "task_completions"
    __table_args__ = (
        UniqueConstraint("farm_id", "task_key", name="uq_task_completions_farm_key"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    farm_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("farms.id"), nullable=False, index=True
    )
    task_key: Mapped[str] = mapped_column(String(512), nullable=False)

    # ── Key components ───────────────────────────────────────
    # soaking | sowing | harvesting | delivery | maintenance | tray_step
    task_type: Mapped[str] = mapped_column(String(30), nullable=False)
    task_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    recipe_id: Mapped[str | None] = mapped_column(String(36))
    customer_name: Mapped[str | None] = mapped_column(String(255))
    product_name: Mapped[str | None] = mapped_column(String(255))

    # ── Outcome ──────────────────────────────────────────────
    # completed | in_progress | skipped
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    batch_id: Mapped[str | None] = mapped_column(String(36))
    completed_by: Mapped[str | None] = mapped_column(String(100))
    completed_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
