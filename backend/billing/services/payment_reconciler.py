"""Applies gateway payment confirmations to the billing store."""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime

from sqlalchemy.orm import Session

from billing.core.errors import StoreError
from billing.models.billing import (
    PaymentIntentType,
    PaymentStatus,
    next_merchant_uid,
    status_from_gateway,
)
from billing.models.shared import utc_now
from billing.repositories.payment_schedule_repository import PaymentScheduleRepository
from billing.repositories.payment_transaction_repository import PaymentTransactionRepository
from billing.schemas.billing import ConfirmationMetadata, FailureRecord, GatewayPaymentResult
from billing.services.billing_dates import BillingDatesService

logger = logging.getLogger(__name__)

ActivationHook = Callable[[ConfirmationMetadata], None]


@dataclass
class ReconciliationResult:
    """What a single confirmation did to the store.

    ``action`` is one of ``recorded``, ``duplicate``, ``failure_recorded``,
    ``acknowledged`` or ``ignored``.
    """

    merchant_uid: str
    status: PaymentStatus | None
    action: str
    next_merchant_uid: str | None = None
    next_schedule: datetime | None = None


def _from_epoch(value: int | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromtimestamp(value, tz=UTC)


def log_activation(metadata: ConfirmationMetadata) -> None:
    logger.info("Enabling service for business %s", metadata.business_id)


class PaymentReconciler:
    """Turns one ``GatewayPaymentResult`` into store updates.

    Safe to run more than once for the same payment: transactions are keyed by
    ``imp_uid`` and schedule entries by ``merchant_uid``.
    """

    def __init__(
        self,
        db: Session,
        dates: BillingDatesService,
        on_activation: ActivationHook | None = None,
    ):
        self.db = db
        self.dates = dates
        self.on_activation = on_activation or log_activation
        self.schedule_repo = PaymentScheduleRepository(db)
        self.transaction_repo = PaymentTransactionRepository(db)

    def reconcile(self, result: GatewayPaymentResult) -> ReconciliationResult:
        status = status_from_gateway(result.status)
        if status == PaymentStatus.PAID:
            return self._reconcile_paid(result)
        if status == PaymentStatus.FAILED:
            return self._reconcile_failed(result)
        if status == PaymentStatus.REFUNDED:
            logger.info(
                "Payment %s (%s) was cancelled at the gateway", result.merchant_uid, result.imp_uid
            )
            return ReconciliationResult(result.merchant_uid, status, "acknowledged")

        logger.warning(
            "No reconciliation for payment %s with status %r", result.merchant_uid, result.status
        )
        return ReconciliationResult(result.merchant_uid, status, "ignored")

    def _reconcile_paid(self, result: GatewayPaymentResult) -> ReconciliationResult:
        metadata = result.metadata()
        transaction, created = self.transaction_repo.create_if_absent(
            result.imp_uid,
            business_id=metadata.business_id,
            merchant_uid=metadata.merchant_uid,
            type=metadata.type.value,
            name=metadata.name.model_dump(),
            currency=result.currency,
            amount=metadata.amount,
            vat=metadata.vat,
            customer_uid=metadata.customer_uid,
            pay_method=result.pay_method,
            card_name=result.card_name,
            status=PaymentStatus.PAID.value,
            receipt_url=result.receipt_url,
            pay_date=metadata.pay_date,
            time_paid=_from_epoch(result.paid_at) or utc_now(),
        )
        if created:
            logger.info(
                "Payment (%s) for business %s recorded", metadata.merchant_uid, metadata.business_id
            )
        else:
            logger.warning(
                "Payment %s (%s) was already recorded", metadata.merchant_uid, result.imp_uid
            )

        if metadata.type == PaymentIntentType.SCHEDULED:
            if self.schedule_repo.mark_paid(metadata.merchant_uid) is None:
                logger.warning("No schedule entry for paid payment %s", metadata.merchant_uid)
        elif metadata.type == PaymentIntentType.INITIAL and created:
            self.on_activation(metadata)

        next_uid, next_schedule = self._schedule_next(metadata)
        return ReconciliationResult(
            merchant_uid=metadata.merchant_uid,
            status=PaymentStatus.PAID,
            action="recorded" if created else "duplicate",
            next_merchant_uid=next_uid,
            next_schedule=next_schedule,
        )

    def _schedule_next(
        self, metadata: ConfirmationMetadata
    ) -> tuple[str | None, datetime | None]:
        next_uid = next_merchant_uid(metadata.business_id, metadata.merchant_uid)
        next_date = self.dates.next_pay_date(metadata.pay_date, metadata.billing_plan)
        try:
            entry, created = self.schedule_repo.create(
                merchant_uid=next_uid,
                business_id=metadata.business_id,
                schedule=next_date,
                amount=metadata.amount,
                vat=metadata.vat,
                billing_plan=metadata.billing_plan,
            )
        except StoreError:
            logger.exception("Failed to schedule next payment %s", next_uid)
            return None, None
        if created:
            logger.info("Next payment (%s) scheduled for %s", next_uid, next_date.isoformat())
        return entry.merchant_uid, entry.schedule

    def _reconcile_failed(self, result: GatewayPaymentResult) -> ReconciliationResult:
        metadata = result.metadata()
        if metadata.type != PaymentIntentType.SCHEDULED:
            logger.info(
                "Payment %s declined: %s", metadata.merchant_uid, result.fail_reason
            )
            return ReconciliationResult(metadata.merchant_uid, PaymentStatus.FAILED, "ignored")

        entry = self.schedule_repo.get_by_merchant_uid(metadata.merchant_uid)
        if entry is None:
            logger.warning("No schedule entry for declined payment %s", metadata.merchant_uid)
            return ReconciliationResult(metadata.merchant_uid, PaymentStatus.FAILED, "ignored")
        if entry.status == PaymentStatus.PAID.value:
            logger.warning(
                "Ignoring decline %s for already paid payment %s",
                result.imp_uid,
                metadata.merchant_uid,
            )
            return ReconciliationResult(metadata.merchant_uid, PaymentStatus.FAILED, "ignored")

        failure = FailureRecord(
            imp_uid=result.imp_uid,
            params=metadata.model_dump(mode="json"),
            reason=result.fail_reason,
            time_failed=_from_epoch(result.failed_at) or utc_now(),
        )
        self.schedule_repo.record_failure(metadata.merchant_uid, failure)
        logger.info(
            "Scheduled payment (%s) rejected: %s", metadata.merchant_uid, result.fail_reason
        )
        logger.info(
            "Disabling service for business %s until the failed payment is resolved",
            metadata.business_id,
        )
        return ReconciliationResult(
            metadata.merchant_uid, PaymentStatus.FAILED, "failure_recorded"
        )
