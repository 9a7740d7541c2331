"""SeedBatch: a purchased lot of seed for one variety.

``quantity_grams`` is the authoritative remaining quantity.  Seeding code
never decrements it; only the fulfillment boundary does, with a
conditional UPDATE so concurrent allocations cannot overdraw a batch.
"""

import uuid
from datetime import date, datetime

from sqlalchemy import Boolean, Date, DateTime, Float, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sproutify.database import Base, utcnow


class SeedBatch(Base):
    __tablename__ = "seed_batches"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    farm_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("farms.id"), nullable=False, index=True
    )
    variety_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("varieties.id"), nullable=False, index=True
    )
    lot_number: Mapped[str | None] = mapped_column(String(100))

    # ── Stock ────────────────────────────────────────────────
    quantity_grams: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    purchase_date: Mapped[date | None] = mapped_column(Date, index=True)
    vendor: Mapped[str | None] = mapped_column(String(255))

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    variety = relationship("Variety", lazy="selectin")
