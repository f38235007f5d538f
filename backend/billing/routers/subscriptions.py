"""Subscription API endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from billing.core.database import get_db
from billing.repositories.payment_schedule_repository import PaymentScheduleRepository
from billing.runtime import BillingRuntime, get_runtime
from billing.schemas.response import ApiResponse
from billing.schemas.subscription import (
    ChangeSubscriptionRequest,
    ScheduleEntryResponse,
    SubscribeRequest,
)
from billing.services.subscription_service import SubscriptionService

router = APIRouter()


@router.post(
    "/{business_id}/subscription",
    response_model=ApiResponse,
    summary="Subscribe",
    responses={
        400: {"description": "Unsupported billing plan"},
        402: {"description": "Payment declined"},
        404: {"description": "No default payment method"},
        502: {"description": "Gateway error"},
    },
)
async def subscribe(
    business_id: str,
    data: SubscribeRequest,
    db: Session = Depends(get_db),
    runtime: BillingRuntime = Depends(get_runtime),
) -> ApiResponse:
    """Charge the first cycle; later cycles are scheduled once it is confirmed."""
    result = await SubscriptionService(db, runtime).subscribe(
        business_id, data.billing_plan, data.amount, data.vat, data.charge_num
    )
    return ApiResponse.ok(
        f"Payment ({result.merchant_uid}) has been requested.",
        result.model_dump(mode="json"),
    )


@router.put(
    "/{business_id}/subscription",
    response_model=ApiResponse,
    summary="Change subscription plan",
    responses={
        400: {"description": "Unsupported billing plan"},
        404: {"description": "No active payment schedule"},
    },
)
async def change_subscription(
    business_id: str,
    data: ChangeSubscriptionRequest,
    db: Session = Depends(get_db),
    runtime: BillingRuntime = Depends(get_runtime),
) -> ApiResponse:
    change = SubscriptionService(db, runtime).change_subscription(
        business_id, data.billing_plan, data.amount
    )
    return ApiResponse.ok(
        f"Billing plan changed from {change.old_billing_plan} to {change.new_billing_plan}.",
        change.model_dump(mode="json"),
    )


@router.get(
    "/{business_id}/schedule",
    response_model=ApiResponse,
    summary="List payment schedule",
)
async def list_schedule(business_id: str, db: Session = Depends(get_db)) -> ApiResponse:
    """Every scheduled charge of the business, earliest first."""
    entries = PaymentScheduleRepository(db).get_by_business(business_id)
    return ApiResponse.ok(
        f"Successfully fetched {len(entries)} scheduled payments.",
        [ScheduleEntryResponse.model_validate(e).model_dump(mode="json") for e in entries],
    )


@router.post("/{business_id}/subscription/pause", response_model=ApiResponse)
async def pause_subscription(
    business_id: str,
    db: Session = Depends(get_db),
    runtime: BillingRuntime = Depends(get_runtime),
) -> ApiResponse:
    SubscriptionService(db, runtime).pause(business_id)
    return ApiResponse.ok("Subscription paused.")


@router.post("/{business_id}/subscription/resume", response_model=ApiResponse)
async def resume_subscription(
    business_id: str,
    db: Session = Depends(get_db),
    runtime: BillingRuntime = Depends(get_runtime),
) -> ApiResponse:
    SubscriptionService(db, runtime).resume(business_id)
    return ApiResponse.ok("Subscription resumed.")


@router.post("/{business_id}/subscription/refund", response_model=ApiResponse)
async def refund_subscription(
    business_id: str,
    db: Session = Depends(get_db),
    runtime: BillingRuntime = Depends(get_runtime),
) -> ApiResponse:
    SubscriptionService(db, runtime).refund(business_id)
    return ApiResponse.ok("Subscription refunded.")
