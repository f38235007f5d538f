"""Submits one charge to the gateway against the business's default method."""

import logging

from sqlalchemy.orm import Session

from billing.core.errors import GatewayError, NoDefaultMethodError, PaymentDeclinedError
from billing.models.billing import PaymentStatus, status_from_gateway
from billing.repositories.payment_method_repository import PaymentMethodRepository
from billing.schemas.billing import (
    BillingIntent,
    ConfirmationMetadata,
    GatewayChargeRequest,
    GatewayPaymentResult,
)
from billing.services.billing_dates import BillingDatesService, PaymentNaming
from billing.services.confirmation_dispatch import ConfirmationDispatcher
from billing.services.payment_gateway import PaymentGatewayBase
from billing.services.payment_reconciler import PaymentReconciler

logger = logging.getLogger(__name__)


class PaymentSubmitter:
    def __init__(
        self,
        db: Session,
        gateway: PaymentGatewayBase,
        dispatcher: ConfirmationDispatcher,
        dates: BillingDatesService,
        naming: PaymentNaming | None = None,
    ):
        self.db = db
        self.gateway = gateway
        self.dispatcher = dispatcher
        self.dates = dates
        self.naming = naming or PaymentNaming()
        self.method_repo = PaymentMethodRepository(db)

    def build_request(self, intent: BillingIntent, customer_uid: str) -> GatewayChargeRequest:
        name = self.dates.payment_name(
            intent.business_id, intent.billing_plan, intent.pay_date, self.naming
        )
        metadata = ConfirmationMetadata(
            business_id=intent.business_id,
            merchant_uid=intent.merchant_uid,
            customer_uid=customer_uid,
            name=name,
            type=intent.type,
            billing_plan=intent.billing_plan,
            pay_date=intent.pay_date,
            amount=intent.amount,
            cancel_amount=intent.amount,
            vat=intent.vat,
        )
        return GatewayChargeRequest(
            merchant_uid=intent.merchant_uid,
            customer_uid=customer_uid,
            name=name.short,
            amount=intent.amount,
            cancel_amount=intent.amount,
            vat=intent.vat,
            custom_data=metadata.encode(),
        )

    async def pay(self, intent: BillingIntent) -> GatewayPaymentResult:
        """Charge ``intent`` with the business's default payment method.

        The gateway result is handed to the confirmation dispatcher before
        this returns; the store is updated by reconciliation, not here. If the
        hand-off itself fails, the result is reconciled inline with this session.

        Raises:
            NoDefaultMethodError: the business has no default method.
            GatewayError: the charge request itself failed.
            PaymentDeclinedError: the gateway declined the charge.
        """
        default_method = self.method_repo.get_default(intent.business_id)
        if default_method is None:
            raise NoDefaultMethodError(
                "Could not find a default payment method for the business "
                f"({intent.business_id}).",
                params=intent.model_dump(mode="json"),
            )

        request = self.build_request(intent, str(default_method.customer_uid))
        try:
            result = await self.gateway.charge_again(request)
        except GatewayError as e:
            logger.error("Payment request %s failed: %s", intent.merchant_uid, e.message)
            raise GatewayError(
                e.message,
                gateway_code=e.gateway_code,
                code=e.code,
                params=request.diagnostic_params(),
            ) from e

        try:
            await self.dispatcher.dispatch(result)
        except Exception:
            # Reconcile inline when the hand-off is unavailable
            logger.exception(
                "Failed to hand off confirmation of %s; reconciling in place",
                result.merchant_uid,
            )
            PaymentReconciler(self.db, self.dates).reconcile(result)

        if status_from_gateway(result.status) == PaymentStatus.FAILED:
            metadata = ConfirmationMetadata.decode(request.custom_data)
            raise PaymentDeclinedError(
                result.fail_reason or "Payment was declined",
                params=metadata.model_dump(mode="json"),
            )
        return result
