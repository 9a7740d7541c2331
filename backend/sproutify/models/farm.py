"""Farm: the owner of every operational record.

Carries the per-farm scheduling preferences used when planting schedules
are derived from standing orders.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Integer, JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from sproutify.database import Base, utcnow


class Farm(Base):
    __tablename__ = "farms"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # ── Scheduling preferences ───────────────────────────────
    # ["monday", "thursday"]; empty/null means seeding on any day
    seeding_days: Mapped[list | None] = mapped_column(JSON)
    # Days between harvest and delivery; null falls back to settings
    delivery_lead_days: Mapped[int | None] = mapped_column(Integer)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
