"""Read side of the payment transaction ledger."""

from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from billing.models.payment_transaction import PaymentTransaction
from billing.models.shared import ensure_utc
from billing.repositories.payment_transaction_repository import PaymentTransactionRepository
from billing.services.billing_dates import BillingDatesService


class TransactionHistoryService:
    def __init__(self, db: Session, dates: BillingDatesService):
        self.db = db
        self.dates = dates
        self.transaction_repo = PaymentTransactionRepository(db)

    def describe_date(self, value: datetime | None) -> dict[str, Any] | None:
        if value is None:
            return None
        value = ensure_utc(value)
        return {
            "date": value,
            "string": self.dates.format_date(value),
            "string_kr": self.dates.format_date_kr(value),
        }

    def serialize(self, transaction: PaymentTransaction) -> dict[str, Any]:
        return {
            "id": transaction.id,
            "business_id": transaction.business_id,
            "imp_uid": transaction.imp_uid,
            "merchant_uid": transaction.merchant_uid,
            "type": transaction.type,
            "name": transaction.name,
            "currency": transaction.currency,
            "amount": transaction.amount,
            "vat": transaction.vat,
            "customer_uid": transaction.customer_uid,
            "pay_method": transaction.pay_method,
            "card_name": transaction.card_name,
            "status": transaction.status,
            "receipt_url": transaction.receipt_url,
            "pay_date": self.describe_date(transaction.pay_date),
            "time_paid": self.describe_date(transaction.time_paid),
        }

    def get_history(self, business_id: str) -> list[dict[str, Any]]:
        """Every transaction of the business, most recently paid first."""
        return [self.serialize(t) for t in self.transaction_repo.get_history(business_id)]
