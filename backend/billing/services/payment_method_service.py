"""Payment method management: registration, listing, removal and the default flag."""

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError as SchemaValidationError
from sqlalchemy.orm import Session

from billing.core.errors import (
    BillingError,
    GatewayError,
    PaymentMethodNotFoundError,
    ValidationError,
)
from billing.models.billing import BillingPlan, PaymentIntentType
from billing.models.payment_method import PaymentMethod
from billing.models.shared import utc_now
from billing.repositories.payment_method_repository import PaymentMethodRepository
from billing.repositories.payment_schedule_repository import PaymentScheduleRepository
from billing.schemas.billing import BillingIntent
from billing.schemas.payment_method import CardRegistration

if TYPE_CHECKING:
    from billing.runtime import BillingRuntime

logger = logging.getLogger(__name__)


@dataclass
class DefaultMethodChange:
    payment_method: PaymentMethod
    retried_merchant_uid: str | None = None


def customer_uid_for(business_id: str, card_number: str) -> str:
    """``<business_id>_<last4>`` from a dash-separated card number."""
    groups = card_number.split("-")
    last_4_digits = groups[3] if len(groups) > 3 else ""
    if len(last_4_digits) != 4 or not last_4_digits.isdigit():
        raise ValidationError(
            f"The last 4 digits are not 4 digits long ({last_4_digits}).",
            params={"business_id": business_id},
        )
    return f"{business_id}_{last_4_digits}"


class PaymentMethodService:
    def __init__(self, db: Session, runtime: "BillingRuntime"):
        self.db = db
        self.runtime = runtime
        self.method_repo = PaymentMethodRepository(db)
        self.schedule_repo = PaymentScheduleRepository(db)

    async def list_methods(self, business_id: str) -> list[dict[str, Any]]:
        """Stored methods with the gateway's card details, fetched concurrently.

        A method the gateway fails to return is listed as an error entry.
        """
        methods = self.method_repo.get_all(business_id)
        return list(await asyncio.gather(*(self._describe(m) for m in methods)))

    async def _describe(self, method: PaymentMethod) -> dict[str, Any]:
        customer_uid = str(method.customer_uid)
        try:
            details = await self.runtime.gateway.get_customer(customer_uid)
        except GatewayError as e:
            logger.error("Failed to fetch payment method (%s): %s", customer_uid, e.message)
            return {
                "message": f"Failed to fetch payment method ({customer_uid}) from the gateway.",
                "params": {"customer_uid": customer_uid},
                "error": e.to_dict(),
            }
        return {**details, "customer_uid": customer_uid, "default_method": method.default_method}

    async def register_method(
        self, business_id: str, card: CardRegistration
    ) -> tuple[PaymentMethod, dict[str, Any]]:
        """Register a card with the gateway and record it as a non-default method."""
        customer_uid = customer_uid_for(business_id, card.card_number)
        details = await self.runtime.gateway.create_customer(customer_uid, card)
        payment_method = self.method_repo.upsert(business_id, customer_uid)
        logger.info("Registered payment method (%s) for business %s", customer_uid, business_id)
        return payment_method, details

    async def delete_method(self, business_id: str, customer_uid: str) -> dict[str, Any]:
        if self.method_repo.get_by_customer_uid(customer_uid, business_id) is None:
            raise PaymentMethodNotFoundError(
                f"No payment method was found for the given 'customer_uid' ({customer_uid}).",
                params={"business_id": business_id, "customer_uid": customer_uid},
            )
        details = await self.runtime.gateway.delete_customer(customer_uid)
        self.method_repo.delete(business_id, customer_uid)
        logger.info("Payment method (%s) has been removed", customer_uid)
        return details

    async def set_as_default(self, business_id: str, customer_uid: str) -> DefaultMethodChange:
        """Make ``customer_uid`` the business's only default method.

        If the business has a FAILED charge it is resubmitted with the new
        method in the background; the caller does not wait for the outcome.
        """
        retry = self._failed_charge_retry(business_id)
        payment_method = self.method_repo.swap_default(business_id, customer_uid)
        if payment_method is None:
            raise PaymentMethodNotFoundError(
                f"No payment method was found for the given 'customer_uid' ({customer_uid}).",
                params={"business_id": business_id, "customer_uid": customer_uid},
            )
        logger.info(
            "Business (%s): default pay_method changed to %s", business_id, customer_uid
        )

        change = DefaultMethodChange(payment_method)
        if retry is not None:
            logger.info("Retrying failed payment %s with %s", retry.merchant_uid, customer_uid)
            self.runtime.submit_in_background(retry, f"retry {retry.merchant_uid}")
            change.retried_merchant_uid = retry.merchant_uid
        return change

    def _failed_charge_retry(self, business_id: str) -> BillingIntent | None:
        """Intent resubmitting the business's FAILED charge, if it has a usable one."""
        failed = self.schedule_repo.get_failed(business_id)
        if failed is None:
            return None
        try:
            return BillingIntent(
                business_id=business_id,
                merchant_uid=failed.merchant_uid,
                type=PaymentIntentType.SCHEDULED,
                billing_plan=BillingPlan.parse(failed.billing_plan),
                pay_date=utc_now(),
                amount=failed.amount,
                vat=failed.vat,
            )
        except (BillingError, SchemaValidationError) as e:
            logger.error("Cannot retry malformed schedule entry %s: %s", failed.merchant_uid, e)
            return None
