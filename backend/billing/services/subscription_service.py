"""Subscription lifecycle: start, plan change, and the unimplemented transitions."""

import logging
from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

from billing.core.errors import LifecycleNotImplementedError, NoActiveScheduleError
from billing.models.billing import BillingPlan, PaymentIntentType, build_merchant_uid
from billing.models.shared import ensure_utc, utc_now
from billing.repositories.payment_schedule_repository import PaymentScheduleRepository
from billing.schemas.billing import BillingIntent, GatewayPaymentResult
from billing.schemas.subscription import SubscriptionChange

if TYPE_CHECKING:
    from billing.runtime import BillingRuntime

logger = logging.getLogger(__name__)


class SubscriptionService:
    def __init__(self, db: Session, runtime: "BillingRuntime"):
        self.db = db
        self.runtime = runtime
        self.schedule_repo = PaymentScheduleRepository(db)

    async def subscribe(
        self,
        business_id: str,
        billing_plan: str | BillingPlan,
        amount: int,
        vat: int | None = None,
        charge_num: int = 0,
    ) -> GatewayPaymentResult:
        """Charge the first cycle now.

        The recurring schedule starts when this payment's confirmation is
        reconciled, which inserts the next PENDING entry.
        """
        plan = BillingPlan.parse(billing_plan)
        intent = BillingIntent(
            business_id=business_id,
            merchant_uid=build_merchant_uid(business_id, charge_num),
            type=PaymentIntentType.INITIAL,
            billing_plan=plan,
            pay_date=utc_now(),
            amount=amount,
            vat=vat,
        )
        logger.info("Subscribing business %s to %s", business_id, plan.value)
        return await self.runtime.submitter(self.db).pay(intent)

    def change_subscription(
        self, business_id: str, new_billing_plan: str | BillingPlan, new_amount: int
    ) -> SubscriptionChange:
        """Change plan and amount of the in-flight entry; its due date is kept."""
        plan = BillingPlan.parse(new_billing_plan)
        entry = self.schedule_repo.get_active(business_id)
        if entry is None:
            raise NoActiveScheduleError(
                f"No active payment schedule for the business ({business_id}).",
                params={"business_id": business_id},
            )
        old_plan, old_amount = str(entry.billing_plan), int(entry.amount)
        entry = self.schedule_repo.update_plan(entry, plan, new_amount)
        logger.info(
            "Changed plan of %s from %s to %s", entry.merchant_uid, old_plan, plan.value
        )
        return SubscriptionChange(
            business_id=business_id,
            schedule=ensure_utc(entry.schedule),
            old_billing_plan=old_plan,
            new_billing_plan=plan.value,
            old_amount=old_amount,
            new_amount=new_amount,
        )

    def pause(self, business_id: str) -> None:
        raise LifecycleNotImplementedError("Pausing a subscription is not supported yet.")

    def resume(self, business_id: str) -> None:
        raise LifecycleNotImplementedError("Resuming a subscription is not supported yet.")

    def refund(self, business_id: str) -> None:
        raise LifecycleNotImplementedError("Refunding a subscription is not supported yet.")
