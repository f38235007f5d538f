"""Pydantic schemas for PaymentMethod."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class CardRegistration(BaseModel):
    """Card details forwarded to the gateway to issue a billing key."""

    card_number: str = Field(..., min_length=1, description="Dash separated, e.g. 1234-5678-9012-3456")
    expiry: str = Field(..., min_length=1, description="YYYY-MM")
    birth: str = Field(..., min_length=1)
    pwd_2digit: str | None = None
    customer_name: str | None = None
    customer_tel: str | None = None
    customer_email: str | None = None
    customer_addr: str | None = None
    customer_postcode: str | None = None


class PaymentMethodResponse(BaseModel):
    id: UUID
    business_id: str
    customer_uid: str
    default_method: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}
