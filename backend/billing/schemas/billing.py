"""Pydantic schemas for billing intents and the gateway charge contract."""

from datetime import datetime
from typing import Annotated, Any

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, ValidationError

from billing.models.billing import BillingPlan, PaymentIntentType
from billing.models.shared import ensure_utc

CONFIRMATION_METADATA_VERSION = 1

UTCDateTime = Annotated[datetime, AfterValidator(ensure_utc)]


class PaymentName(BaseModel):
    """Display names of one charge."""

    short: str
    long: str
    long_kr: str


class BillingIntent(BaseModel):
    """What to charge, for whom, and for which cycle."""

    business_id: str = Field(..., min_length=1)
    merchant_uid: str = Field(..., min_length=1)
    type: PaymentIntentType
    billing_plan: BillingPlan
    pay_date: UTCDateTime
    amount: int = Field(..., gt=0)
    vat: int | None = Field(default=None, ge=0)


class ConfirmationMetadata(BaseModel):
    """Billing context round-tripped through the gateway as ``custom_data``.

    The asynchronous confirmation path recovers everything it needs from this
    payload. Unknown fields are ignored so newer writers stay readable, and a
    payload written before versioning decodes as version 1.
    """

    model_config = ConfigDict(extra="ignore")

    version: int = CONFIRMATION_METADATA_VERSION
    business_id: str
    merchant_uid: str
    customer_uid: str
    name: PaymentName
    type: PaymentIntentType
    billing_plan: BillingPlan
    pay_date: UTCDateTime
    amount: int
    cancel_amount: int | None = None
    vat: int | None = None

    def encode(self) -> str:
        return self.model_dump_json()

    @classmethod
    def decode(cls, raw: str | dict[str, Any] | None) -> "ConfirmationMetadata":
        if raw is None:
            raise ValueError("Confirmation metadata is missing")
        try:
            if isinstance(raw, dict):
                return cls.model_validate(raw)
            return cls.model_validate_json(raw)
        except ValidationError as e:
            raise ValueError(f"Malformed confirmation metadata: {e}") from e


class GatewayChargeRequest(BaseModel):
    """Body of a billing-key charge request."""

    merchant_uid: str
    customer_uid: str
    name: str
    amount: int
    cancel_amount: int | None = None
    vat: int | None = None
    custom_data: str

    def diagnostic_params(self) -> dict[str, Any]:
        """Submitted parameters with the metadata blob decoded, for error reports."""
        params = self.model_dump(mode="json")
        params["custom_data"] = ConfirmationMetadata.decode(self.custom_data).model_dump(
            mode="json"
        )
        return params


class GatewayPaymentResult(BaseModel):
    """Payment outcome as returned by the charge call or fetched after a webhook."""

    model_config = ConfigDict(extra="ignore")

    imp_uid: str
    merchant_uid: str
    status: str
    amount: int | None = None
    currency: str | None = None
    pay_method: str | None = None
    card_name: str | None = None
    receipt_url: str | None = None
    paid_at: int | None = None
    failed_at: int | None = None
    cancelled_at: int | None = None
    fail_reason: str | None = None
    custom_data: str | None = None

    def metadata(self) -> ConfirmationMetadata:
        return ConfirmationMetadata.decode(self.custom_data)


class FailureRecord(BaseModel):
    """One declined attempt of a scheduled charge."""

    imp_uid: str
    params: dict[str, Any]
    reason: str | None = None
    time_failed: UTCDateTime
