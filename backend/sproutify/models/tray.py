"""Tray: the unit of production, and its TraySteps.

A tray is created by the fulfillment boundary when a seeding request that
carries a seed batch is converted.  At that moment the recipe's ordered
steps are snapshotted into TrayStep rows (name, order, duration and a
scheduled date), so later edits to the recipe never change the plan of a
tray already growing.

Lifecycle:  active → harvested
            active → lost (terminal, operator action)

The displayed stage (Growing / <step name> / Harvested / Lost) is derived
on read from these flags and the pending TraySteps; it is never stored.
"""

import uuid
from datetime import date, datetime

from sqlalchemy import (
    Boolean, Date, DateTime, Float, ForeignKey, Integer, String, Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sproutify.database import Base, utcnow


class Tray(Base):
    __tablename__ = "trays"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    farm_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("farms.id"), nullable=False, index=True
    )
    tray_code: Mapped[str] = mapped_column(String(50), nullable=False, index=True)

    # ── Origin ───────────────────────────────────────────────
    recipe_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("recipes.id"), nullable=False, index=True
    )
    request_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("tray_creation_requests.id"), index=True
    )
    batch_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("seed_batches.id"), index=True
    )
    customer_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("customers.id"), index=True
    )

    # ── Dates & yield ────────────────────────────────────────
    sow_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    harvest_date: Mapped[date | None] = mapped_column(Date)
    yield_grams: Mapped[float | None] = mapped_column(Float)

    # ── Status ───────────────────────────────────────────────
    # active | harvested | lost
    status: Mapped[str] = mapped_column(String(20), default="active", index=True)
    loss_reason: Mapped[str | None] = mapped_column(String(50))
    loss_notes: Mapped[str | None] = mapped_column(Text)
    lost_at: Mapped[datetime | None] = mapped_column(DateTime)

    location: Mapped[str | None] = mapped_column(String(100))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow
    )

    # ── Relationships ────────────────────────────────────────
    steps: Mapped[list["TrayStep"]] = relationship(
        back_populates="tray",
        order_by="TrayStep.sequence_order",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    recipe = relationship("Recipe", lazy="selectin")


class TrayStep(Base):
    __tablename__ = "tray_steps"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    tray_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("trays.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    # Kept for traceability; the snapshot below is what the tray follows
    step_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("steps.id", ondelete="SET NULL")
    )

    # ── Step snapshot ────────────────────────────────────────
    sequence_order: Mapped[int] = mapped_column(Integer, nullable=False)
    step_name: Mapped[str] = mapped_column(String(100), nullable=False)
    duration: Mapped[float] = mapped_column(Float, default=0)
    duration_unit: Mapped[str | None] = mapped_column(String(10))
    scheduled_date: Mapped[date | None] = mapped_column(Date, index=True)

    # ── Progress ─────────────────────────────────────────────
    completed: Mapped[bool] = mapped_column(Boolean, default=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime)
    skipped: Mapped[bool] = mapped_column(Boolean, default=False)
    skipped_at: Mapped[datetime | None] = mapped_column(DateTime)

    tray: Mapped[Tray] = relationship(back_populates="steps")

    @property
    def is_pending(self) -> bool:
        return not self.completed and not self.skipped
