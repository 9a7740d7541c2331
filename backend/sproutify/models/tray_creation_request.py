"""TrayCreationRequest: a queued intent to create trays.

Decouples "the operator decided to seed X" from "seed was allocated and
tray rows exist".  Rows come from three places:

  - manual          operator asks for N trays (one row, quantity N)
  - task            a Seed task was completed with a chosen batch
                    (N rows of quantity 1, each stamped with the batch)
  - standing_order  generated ahead of time from the planting schedule
  - soaked_seed     leftover soaked seed put to use

Recipe and variety names are snapshotted at creation so recipe edits
never rewrite history.

Lifecycle:  pending → fulfilled
            pending → cancelled

Only pending rows that carry a ``batch_id`` are converted into trays by
the fulfillment boundary.  A pending row without a batch waits for an
operator to complete its Seed task.
"""

import uuid
from datetime import date, datetime

from sqlalchemy import Date, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from sproutify.database import Base, utcnow


class TrayCreationRequest(Base):
    __tablename__ = "tray_creation_requests"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    farm_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("farms.id"), nullable=False, index=True
    )

    # ── What to grow (snapshot) ──────────────────────────────
    recipe_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("recipes.id"), nullable=False, index=True
    )
    recipe_name: Mapped[str] = mapped_column(String(255), nullable=False)
    variety_name: Mapped[str | None] = mapped_column(String(255))

    # ── How many & when ──────────────────────────────────────
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    quantity_completed: Mapped[int] = mapped_column(Integer, default=0)
    seed_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    rescheduled_from: Mapped[date | None] = mapped_column(Date)

    # ── Allocation ───────────────────────────────────────────
    batch_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("seed_batches.id"), index=True
    )

    # ── For whom ─────────────────────────────────────────────
    customer_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("customers.id")
    )
    customer_name: Mapped[str | None] = mapped_column(String(255))
    standing_order_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("standing_orders.id"), index=True
    )
    parent_request_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("tray_creation_requests.id")
    )

    # ── Status ───────────────────────────────────────────────
    # manual | task | standing_order | soaked_seed
    source: Mapped[str] = mapped_column(String(20), default="manual")
    # pending | fulfilled | cancelled
    status: Mapped[str] = mapped_column(String(20), default="pending", index=True)
    requested_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    requested_by: Mapped[str | None] = mapped_column(String(100))
    fulfilled_at: Mapped[datetime | None] = mapped_column(DateTime)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime)
    cancelled_reason: Mapped[str | None] = mapped_column(Text)
    # Last reason the fulfillment boundary could not convert this row
    fulfillment_error: Mapped[str | None] = mapped_column(Text)

    @property
    def quantity_remaining(self) -> int:
        return max(0, self.quantity - (self.quantity_completed or 0))
