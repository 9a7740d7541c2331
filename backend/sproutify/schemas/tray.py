"""Pydantic schemas for trays and tray actions."""

from datetime import date
from typing import Literal

from pydantic import BaseModel, Field

LossReason = Literal[
    "disease",
    "dried_out",
    "bad_seed",
    "mold",
    "pest",
    "contamination",
    "overwatered",
    "temperature",
    "other",
]


class TrayStepOut(BaseModel):
    id: str
    sequence_order: int
    step_name: str
    duration: float
    duration_unit: str | None = None
    scheduled_date: date | None = None
    completed: bool
    skipped: bool

    model_config = {"from_attributes": True}


class TrayOut(BaseModel):
    id: str
    tray_code: str
    recipe_id: str
    recipe_name: str
    sow_date: date
    harvest_date: date | None = None
    projected_harvest_date: date
    yield_grams: float | None = None
    # Stored flag: active | harvested | lost
    status: str
    # Derived: Lost | Harvested | <stage> | Growing
    display_status: str
    loss_reason: str | None = None
    customer_id: str | None = None
    batch_id: str | None = None
    steps: list[TrayStepOut] = []


class MarkLostRequest(BaseModel):
    tray_ids: list[str] = Field(..., min_length=1)
    reason: LossReason
    notes: str | None = None


class HarvestRequest(BaseModel):
    tray_ids: list[str] = Field(..., min_length=1)
    harvest_date: date | None = None
    total_yield_grams: float | None = Field(None, ge=0)


class StepActionRequest(BaseModel):
    tray_ids: list[str] = Field(..., min_length=1)
    step_name: str


class StepActionResult(BaseModel):
    updated: int


class PassiveGroupOut(BaseModel):
    phase: str
    variety: str
    trays: int
    tray_ids: list[str]

    model_config = {"from_attributes": True}


class PassiveStatusOut(BaseModel):
    groups: list[PassiveGroupOut]
    nearly_ready: list[TrayOut]
