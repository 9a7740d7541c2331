"""Pydantic schemas for the printable seeding plan."""

from datetime import date

from pydantic import BaseModel, computed_field

from sproutify.services.seeding_plan import format_seed_mass


class PlanOrderOut(BaseModel):
    order_name: str
    customer_name: str | None = None
    product_name: str
    trays: int
    delivery_date: date
    days_before_delivery: int

    model_config = {"from_attributes": True}


class PlanGroupOut(BaseModel):
    recipe_id: str
    recipe_name: str
    variety_name: str | None = None
    seed_grams_per_tray: float | None = None
    total_trays: int
    total_seed_grams: float
    orders: list[PlanOrderOut]

    model_config = {"from_attributes": True}

    @computed_field
    @property
    def total_seed_display(self) -> str:
        return format_seed_mass(self.total_seed_grams)


class SeedingPlanOut(BaseModel):
    sow_date: date
    variety_count: int
    total_trays: int
    total_seed_grams: float
    groups: list[PlanGroupOut]

    model_config = {"from_attributes": True}

    @computed_field
    @property
    def total_seed_display(self) -> str:
        return format_seed_mass(self.total_seed_grams)
