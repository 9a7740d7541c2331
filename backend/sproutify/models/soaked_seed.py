"""SoakedSeed: seed that was soaked ahead of sowing.

Soaked seed is only usable for a short window (``expires_on``).  Leftovers
surface as urgent "Use or Discard Soaked Seed" tasks on and after that
date until they are used up or discarded.

Lifecycle:  available → used
            available → discarded
"""

import uuid
from datetime import date, datetime

from sqlalchemy import Date, DateTime, Float, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from sproutify.database import Base, utcnow


class SoakedSeed(Base):
    __tablename__ = "soaked_seeds"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    farm_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("farms.id"), nullable=False, index=True
    )
    request_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("tray_creation_requests.id")
    )
    recipe_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("recipes.id"), nullable=False
    )
    seed_batch_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("seed_batches.id"), nullable=False
    )
    variety_name: Mapped[str | None] = mapped_column(String(255))

    soak_date: Mapped[date] = mapped_column(Date, nullable=False)
    expires_on: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    quantity_grams: Mapped[float] = mapped_column(Float, nullable=False)
    quantity_remaining_grams: Mapped[float] = mapped_column(Float, nullable=False)

    # available | used | discarded
    status: Mapped[str] = mapped_column(String(20), default="available", index=True)
    discard_reason: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
