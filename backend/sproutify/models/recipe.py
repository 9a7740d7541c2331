"""Recipe and Step: the ordered growth procedure for a variety.

A recipe is either owned by a farm or is a shared global template
(``is_global=True``, ``farm_id`` null).  Templates are read-only; the first
time a farm seeds from one, a farm-owned copy is made and remembers its
template through ``source_recipe_id``.  A farm holds at most one copy of
any template.

Steps are totally ordered by ``sequence_order``, unique within a recipe.
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean, DateTime, Float, ForeignKey, Integer, String, Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sproutify.database import Base, utcnow


class Recipe(Base):
    __tablename__ = "recipes"
    __table_args__ = (
        UniqueConstraint("farm_id", "source_recipe_id", name="uq_recipes_farm_source"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    farm_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("farms.id"), index=True
    )
    is_global: Mapped[bool] = mapped_column(Boolean, default=False)
    source_recipe_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("recipes.id"), index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # ── Variety & seed ───────────────────────────────────────
    variety_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("varieties.id"), index=True
    )
    variety_name: Mapped[str | None] = mapped_column(String(255))
    # Overrides the variety's per-tray seed requirement when set
    seed_quantity: Mapped[float | None] = mapped_column(Float)
    seed_quantity_unit: Mapped[str] = mapped_column(String(10), default="grams")

    # ── Soaking ──────────────────────────────────────────────
    requires_soak: Mapped[bool] = mapped_column(Boolean, default=False)
    soak_hours: Mapped[float | None] = mapped_column(Float)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow
    )

    # ── Relationships ────────────────────────────────────────
    steps: Mapped[list["Step"]] = relationship(
        back_populates="recipe",
        order_by="Step.sequence_order",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    variety = relationship("Variety", lazy="selectin")


class Step(Base):
    __tablename__ = "steps"
    __table_args__ = (
        UniqueConstraint("recipe_id", "sequence_order", name="uq_steps_recipe_sequence"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    recipe_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("recipes.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    sequence_order: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)

    duration: Mapped[float] = mapped_column(Float, default=0)
    # days | hours
    duration_unit: Mapped[str | None] = mapped_column(String(10), default="days")

    recipe: Mapped[Recipe] = relationship(back_populates="steps")
