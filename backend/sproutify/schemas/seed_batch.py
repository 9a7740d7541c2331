"""Pydantic schemas for seed batches and batch matching."""

from datetime import date

from pydantic import BaseModel, Field, field_validator

from sproutify.services.batch_matching import to_grams


class SeedBatchCreate(BaseModel):
    """Quantities arrive with their unit and are stored in grams."""
    variety_id: str
    quantity: float = Field(..., ge=0)
    unit: str = "grams"
    lot_number: str | None = Field(None, max_length=100)
    purchase_date: date | None = None
    vendor: str | None = None
    notes: str | None = None

    @field_validator("unit")
    @classmethod
    def known_unit(cls, v: str) -> str:
        to_grams(1, v)
        return v.strip().lower()


class SeedBatchOut(BaseModel):
    id: str
    variety_id: str
    lot_number: str | None = None
    quantity_grams: float
    purchase_date: date | None = None
    vendor: str | None = None
    is_active: bool

    model_config = {"from_attributes": True}


class BatchMatchOut(BaseModel):
    recipe_id: str
    variety_id: str
    variety_name: str | None = None
    per_tray_grams: float
    trays: int
    required_grams: float
    candidates: list[SeedBatchOut]
    # Earliest purchase among candidates; the operator still chooses
    suggested_batch_id: str | None = None

    model_config = {"from_attributes": True}
