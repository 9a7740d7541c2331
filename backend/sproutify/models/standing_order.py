"""StandingOrder: a recurring delivery commitment to a customer.

Delivery dates repeat every week (``weekly``) or every other week
(``bi-weekly``) on the listed weekdays, counted from ``start_date``.
Planting schedules are derived from these orders on demand and are
never stored.
"""

import uuid
from datetime import date, datetime

from sqlalchemy import Boolean, Date, DateTime, Float, ForeignKey, Integer, JSON, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sproutify.database import Base, utcnow


class StandingOrder(Base):
    __tablename__ = "standing_orders"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    farm_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("farms.id"), nullable=False, index=True
    )
    customer_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("customers.id"), index=True
    )
    order_name: Mapped[str] = mapped_column(String(255), nullable=False)

    # ── Recurrence ───────────────────────────────────────────
    # weekly | bi-weekly
    frequency: Mapped[str] = mapped_column(String(20), default="weekly")
    # ["tuesday", "friday"]
    delivery_days: Mapped[list] = mapped_column(JSON, default=list)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date)
    # Days between harvest and delivery; overrides the farm default
    lead_days: Mapped[int | None] = mapped_column(Integer)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    items: Mapped[list["StandingOrderItem"]] = relationship(
        back_populates="standing_order",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    customer = relationship("Customer", lazy="selectin")


class StandingOrderItem(Base):
    __tablename__ = "standing_order_items"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    standing_order_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("standing_orders.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    product_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("products.id"), nullable=False
    )
    # Trays of product per delivery
    quantity: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)

    standing_order: Mapped[StandingOrder] = relationship(back_populates="items")
    product = relationship("Product", lazy="selectin")
