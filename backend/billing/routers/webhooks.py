"""Gateway notification endpoint."""

import logging

from fastapi import APIRouter, Depends

from billing.runtime import BillingRuntime, get_runtime
from billing.schemas.response import ApiResponse
from billing.schemas.webhook import IamportNotification

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/webhook", response_model=ApiResponse)
async def handle_iamport_webhook(
    notification: IamportNotification,
    runtime: BillingRuntime = Depends(get_runtime),
) -> ApiResponse:
    """Handle an I'mport payment notification.

    The notification body is not trusted: the payment is fetched from the
    gateway and that result is handed to reconciliation.
    """
    result = await runtime.gateway.get_payment(notification.imp_uid)
    if result.merchant_uid != notification.merchant_uid:
        logger.warning(
            "Notification for %s does not match payment %s (%s)",
            notification.merchant_uid,
            notification.imp_uid,
            result.merchant_uid,
        )
        return ApiResponse.ok(
            f"Notification for {notification.merchant_uid} does not match the payment.",
            {"status": "ignored", "imp_uid": notification.imp_uid},
        )

    await runtime.dispatcher.dispatch(result)
    return ApiResponse.ok(
        f"Payment ({result.merchant_uid}) has been handed to reconciliation.",
        {"status": "dispatched", "imp_uid": result.imp_uid, "payment_status": result.status},
    )
