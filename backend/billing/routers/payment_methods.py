"""Payment methods API endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from billing.core.database import get_db
from billing.runtime import BillingRuntime, get_runtime
from billing.schemas.payment_method import CardRegistration, PaymentMethodResponse
from billing.schemas.response import ApiResponse
from billing.services.payment_method_service import PaymentMethodService

router = APIRouter()


@router.get(
    "/{business_id}/payment_methods",
    response_model=ApiResponse,
    summary="List payment methods",
)
async def list_payment_methods(
    business_id: str,
    db: Session = Depends(get_db),
    runtime: BillingRuntime = Depends(get_runtime),
) -> ApiResponse:
    """List the business's payment methods with the card details held by the gateway."""
    methods = await PaymentMethodService(db, runtime).list_methods(business_id)
    return ApiResponse.ok(f"Successfully fetched {len(methods)} payment methods.", methods)


@router.post(
    "/{business_id}/payment_methods",
    response_model=ApiResponse,
    status_code=201,
    summary="Register payment method",
    responses={400: {"description": "Malformed card number"}},
)
async def register_payment_method(
    business_id: str,
    data: CardRegistration,
    db: Session = Depends(get_db),
    runtime: BillingRuntime = Depends(get_runtime),
) -> ApiResponse:
    payment_method, details = await PaymentMethodService(db, runtime).register_method(
        business_id, data
    )
    return ApiResponse.ok(
        f"New payment method ({payment_method.customer_uid}) has been created.",
        {
            "payment_method": PaymentMethodResponse.model_validate(payment_method).model_dump(
                mode="json"
            ),
            "gateway": details,
        },
    )


@router.delete(
    "/{business_id}/payment_methods/{customer_uid}",
    response_model=ApiResponse,
    summary="Remove payment method",
    responses={404: {"description": "Payment method not found"}},
)
async def delete_payment_method(
    business_id: str,
    customer_uid: str,
    db: Session = Depends(get_db),
    runtime: BillingRuntime = Depends(get_runtime),
) -> ApiResponse:
    details = await PaymentMethodService(db, runtime).delete_method(business_id, customer_uid)
    return ApiResponse.ok(f"Payment method ({customer_uid}) has been removed.", details)


@router.post(
    "/{business_id}/payment_methods/{customer_uid}/default",
    response_model=ApiResponse,
    summary="Set default payment method",
    responses={404: {"description": "Payment method not found"}},
)
async def set_default_payment_method(
    business_id: str,
    customer_uid: str,
    db: Session = Depends(get_db),
    runtime: BillingRuntime = Depends(get_runtime),
) -> ApiResponse:
    """Set the default method; a failed charge of the business is retried in the background."""
    change = await PaymentMethodService(db, runtime).set_as_default(business_id, customer_uid)
    return ApiResponse.ok(
        f"Default payment method changed to ({customer_uid}).",
        {
            "payment_method": PaymentMethodResponse.model_validate(
                change.payment_method
            ).model_dump(mode="json"),
            "retried_merchant_uid": change.retried_merchant_uid,
        },
    )
