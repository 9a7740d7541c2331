"""Pydantic schemas for daily/weekly task lists and task completion."""

from datetime import date
from typing import Literal

from pydantic import BaseModel, Field, model_validator

TaskType = Literal["soaking", "sowing", "harvesting", "delivery", "maintenance", "tray_step", "soaked_seed", "at_risk"]
TaskStatus = Literal["pending", "completed", "in_progress", "skipped"]


class DailyTaskOut(BaseModel):
    id: str
    action: str
    crop: str
    source: str
    task_date: date
    trays: int
    tray_ids: list[str]
    recipe_id: str | None = None
    step_name: str | None = None
    request_id: str | None = None
    soaked_seed_id: str | None = None
    customer_name: str | None = None
    quantity_grams: float | None = None
    is_overdue: bool
    urgent: bool
    status: str

    model_config = {"from_attributes": True}


def _require_recipe_or_request(model):
    if not model.recipe_id and not model.request_id:
        raise ValueError("Either recipe_id or request_id is required")
    return model


class WeeklyTaskOut(BaseModel):
    task_type: str
    task_date: date
    recipe_id: str | None = None
    recipe_name: str | None = None
    variety_name: str | None = None
    customer_name: str | None = None
    product_name: str | None = None
    quantity: float
    status: str
    order_names: list[str] = []

    model_config = {"from_attributes": True}


class WeeklyTasksOut(BaseModel):
    week_start: date
    week_end: date
    tasks: list[WeeklyTaskOut]

    model_config = {"from_attributes": True}


class SeedTaskComplete(BaseModel):
    """Completing a Seed task; ``batch_id`` is checked by the pipeline."""
    recipe_id: str | None = None
    task_date: date
    quantity: int = Field(..., ge=1)
    batch_id: str | None = None
    request_id: str | None = None
    customer_id: str | None = None
    standing_order_id: str | None = None

    @model_validator(mode="after")
    def recipe_or_request(self):
        return _require_recipe_or_request(self)


class SoakTaskComplete(BaseModel):
    recipe_id: str | None = None
    soak_date: date
    quantity: int = Field(..., ge=1)
    batch_id: str | None = None
    request_id: str | None = None

    @model_validator(mode="after")
    def recipe_or_request(self):
        return _require_recipe_or_request(self)


class TaskStatusUpdate(BaseModel):
    task_type: TaskType
    task_date: date
    recipe_id: str | None = None
    customer_name: str | None = None
    product_name: str | None = None
    status: TaskStatus


class TaskStatusOut(BaseModel):
    task_key: str
    status: str
