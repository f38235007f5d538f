"""Repository for PaymentTransaction records."""

from __future__ import annotations

from typing import Any

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from billing.core.errors import StoreError
from billing.models.payment_transaction import PaymentTransaction


class PaymentTransactionRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_by_imp_uid(self, imp_uid: str) -> PaymentTransaction | None:
        return (
            self.db.query(PaymentTransaction)
            .filter(PaymentTransaction.imp_uid == imp_uid)
            .first()
        )

    def count_by_imp_uid(self, imp_uid: str) -> int:
        return (
            self.db.query(func.count(PaymentTransaction.id))
            .filter(PaymentTransaction.imp_uid == imp_uid)
            .scalar()
            or 0
        )

    def get_history(self, business_id: str) -> list[PaymentTransaction]:
        """All transactions of a business, most recently paid first."""
        return (
            self.db.query(PaymentTransaction)
            .filter(PaymentTransaction.business_id == business_id)
            .order_by(PaymentTransaction.time_paid.desc())
            .all()
        )

    def create_if_absent(self, imp_uid: str, **fields: Any) -> tuple[PaymentTransaction, bool]:
        """Insert a transaction keyed by the gateway transaction id.

        Returns ``(transaction, created)``. When ``imp_uid`` was already
        recorded the stored row is returned with ``created=False``.
        """
        existing = self.get_by_imp_uid(imp_uid)
        if existing is not None:
            return existing, False
        transaction = PaymentTransaction(imp_uid=imp_uid, **fields)
        self.db.add(transaction)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            existing = self.get_by_imp_uid(imp_uid)
            if existing is None:
                raise StoreError(f"Failed to record transaction {imp_uid}: {e}") from e
            return existing, False
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreError(f"Failed to record transaction {imp_uid}: {e}") from e
        self.db.refresh(transaction)
        return transaction, True
