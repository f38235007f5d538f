"""Pydantic schemas for subscriptions and billing schedule entries."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from billing.schemas.billing import UTCDateTime


class SubscribeRequest(BaseModel):
    billing_plan: str
    amount: int = Field(..., gt=0)
    vat: int | None = Field(default=None, ge=0)
    charge_num: int = Field(default=0, ge=0)


class ChangeSubscriptionRequest(BaseModel):
    billing_plan: str
    amount: int = Field(..., gt=0)


class SubscriptionChange(BaseModel):
    business_id: str
    schedule: datetime
    old_billing_plan: str
    new_billing_plan: str
    old_amount: int
    new_amount: int


class ScheduleEntryResponse(BaseModel):
    id: UUID
    merchant_uid: str
    business_id: str
    schedule: UTCDateTime
    amount: int
    vat: int | None = None
    billing_plan: str
    status: str
    failures: list[dict[str, Any]]

    model_config = {"from_attributes": True}
