"""Pydantic schemas for recipes and their steps."""

from typing import Literal

from pydantic import BaseModel, Field, computed_field, model_validator

from sproutify.services.durations import total_grow_days


class StepIn(BaseModel):
    sequence_order: int = Field(..., ge=0)
    name: str = Field(..., max_length=100)
    description: str | None = None
    duration: float = Field(0, ge=0)
    duration_unit: Literal["days", "hours"] = "days"


class RecipeCreate(BaseModel):
    name: str = Field(..., max_length=255)
    variety_id: str | None = None
    variety_name: str | None = None
    seed_quantity: float | None = Field(None, gt=0)
    seed_quantity_unit: Literal["grams", "oz", "kg", "lb"] = "grams"
    requires_soak: bool = False
    soak_hours: float | None = Field(None, ge=0)
    steps: list[StepIn] = []

    @model_validator(mode="after")
    def unique_step_positions(self):
        positions = [s.sequence_order for s in self.steps]
        if len(positions) != len(set(positions)):
            raise ValueError("Two steps share a sequence position")
        return self


class RecipeCopyRequest(BaseModel):
    """Copy a global template into the current farm."""
    recipe_id: str


class StepOut(BaseModel):
    id: str
    sequence_order: int
    name: str
    description: str | None = None
    duration: float
    duration_unit: str | None = None

    model_config = {"from_attributes": True}


class RecipeOut(BaseModel):
    id: str
    farm_id: str | None = None
    is_global: bool
    source_recipe_id: str | None = None
    name: str
    variety_id: str | None = None
    variety_name: str | None = None
    seed_quantity: float | None = None
    seed_quantity_unit: str
    requires_soak: bool
    soak_hours: float | None = None
    steps: list[StepOut] = []

    model_config = {"from_attributes": True}

    @computed_field
    @property
    def total_days(self) -> int:
        return total_grow_days(self.steps)
