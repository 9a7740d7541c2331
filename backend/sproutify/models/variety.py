import uuid
from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from sproutify.database import Base, utcnow


class Variety(Base):
    __tablename__ = "varieties"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    # Null for varieties shared by every farm
    farm_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("farms.id"), index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # ── Seed requirement per tray ────────────────────────────
    seed_quantity: Mapped[float | None] = mapped_column(Float)
    # grams | oz | kg | lb
    seed_quantity_unit: Mapped[str] = mapped_column(String(10), default="grams")

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
