"""Pydantic schemas for seeding requests and soaked seed."""

from datetime import date, datetime

from pydantic import BaseModel, Field, model_validator


class SeedingRequestCreate(BaseModel):
    recipe_id: str
    quantity: int = Field(..., ge=1)
    seed_date: date
    batch_id: str | None = None
    customer_id: str | None = None


class SeedingRequestOut(BaseModel):
    id: str
    recipe_id: str
    recipe_name: str
    variety_name: str | None = None
    quantity: int
    quantity_completed: int
    quantity_remaining: int
    seed_date: date
    rescheduled_from: date | None = None
    batch_id: str | None = None
    customer_id: str | None = None
    customer_name: str | None = None
    standing_order_id: str | None = None
    parent_request_id: str | None = None
    source: str
    status: str
    requested_at: datetime
    requested_by: str | None = None
    fulfilled_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancelled_reason: str | None = None
    fulfillment_error: str | None = None

    model_config = {"from_attributes": True}


class CancelRequest(BaseModel):
    reason: str | None = None


class RescheduleRequest(BaseModel):
    seed_date: date


class GenerateRequest(BaseModel):
    start_date: date
    end_date: date

    @model_validator(mode="after")
    def ordered_range(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class FulfillmentOut(BaseModel):
    fulfilled_request_ids: list[str]
    failed_request_ids: list[str]
    trays_created: int

    model_config = {"from_attributes": True}


class SoakedSeedOut(BaseModel):
    id: str
    request_id: str | None = None
    recipe_id: str
    seed_batch_id: str
    variety_name: str | None = None
    soak_date: date
    expires_on: date
    quantity_grams: float
    quantity_remaining_grams: float
    status: str
    discard_reason: str | None = None

    model_config = {"from_attributes": True}


class UseSoakedSeedRequest(BaseModel):
    trays: int = Field(..., ge=1)
    seed_date: date | None = None


class DiscardSoakedSeedRequest(BaseModel):
    reason: str | None = None
