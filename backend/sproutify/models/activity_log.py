"""ActivityLog: immutable audit trail for operator and system actions.

Records who did what, when, and to which entity.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from sproutify.database import Base, utcnow


class ActivityLog(Base):
    __tablename__ = "activity_logs"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    farm_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("farms.id"), nullable=False, index=True
    )

    # ── Who ────────────────────────────────────────────────────
    # Operator name, or "system" for the fulfillment loop
    actor: Mapped[str] = mapped_column(String(100), nullable=False)

    # ── What ───────────────────────────────────────────────────
    # created | copied | cancelled | rescheduled | fulfilled |
    # harvested | lost | completed | skipped | soaked | discarded
    action: Mapped[str] = mapped_column(String(50), nullable=False, index=True)

    # ── Target ─────────────────────────────────────────────────
    # recipe | tray | seeding_request | task | soaked_seed
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    entity_id: Mapped[str | None] = mapped_column(String(36))
    entity_code: Mapped[str | None] = mapped_column(String(100))

    # ── Context ────────────────────────────────────────────────
    summary: Mapped[str | None] = mapped_column(Text)
    details: Mapped[dict | None] = mapped_column(JSON)

    # ── Timestamp ──────────────────────────────────────────────
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, nullable=False, index=True
    )
