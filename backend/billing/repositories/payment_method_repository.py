"""Repository for PaymentMethod records."""

from __future__ import annotations

from sqlalchemy import case, func, update
from sqlalchemy.orm import Session

from billing.core.database import commit_or_raise
from billing.models.payment_method import PaymentMethod
from billing.models.shared import utc_now


class PaymentMethodRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_all(self, business_id: str) -> list[PaymentMethod]:
        return (
            self.db.query(PaymentMethod)
            .filter(PaymentMethod.business_id == business_id)
            .order_by(PaymentMethod.created_at.asc())
            .all()
        )

    def get_by_customer_uid(
        self, customer_uid: str, business_id: str | None = None
    ) -> PaymentMethod | None:
        query = self.db.query(PaymentMethod).filter(PaymentMethod.customer_uid == customer_uid)
        if business_id is not None:
            query = query.filter(PaymentMethod.business_id == business_id)
        return query.first()

    def get_default(self, business_id: str) -> PaymentMethod | None:
        return (
            self.db.query(PaymentMethod)
            .filter(
                PaymentMethod.business_id == business_id,
                PaymentMethod.default_method == True,  # noqa: E712
            )
            .first()
        )

    def count_defaults(self, business_id: str) -> int:
        return (
            self.db.query(func.count(PaymentMethod.id))
            .filter(
                PaymentMethod.business_id == business_id,
                PaymentMethod.default_method == True,  # noqa: E712
            )
            .scalar()
            or 0
        )

    def upsert(self, business_id: str, customer_uid: str) -> PaymentMethod:
        """Insert the method as non-default, or touch it if already registered."""
        payment_method = self.get_by_customer_uid(customer_uid, business_id)
        if payment_method is None:
            payment_method = PaymentMethod(
                business_id=business_id,
                customer_uid=customer_uid,
                default_method=False,
            )
            self.db.add(payment_method)
        else:
            payment_method.updated_at = utc_now()  # type: ignore[assignment]
        commit_or_raise(self.db, f"save payment method {customer_uid}")
        self.db.refresh(payment_method)
        return payment_method

    def swap_default(self, business_id: str, customer_uid: str) -> PaymentMethod | None:
        """Make ``customer_uid`` the only default method of the business.

        A single UPDATE sets the flag on the target and clears it everywhere
        else, so no reader can observe zero or two defaults mid-swap.
        Returns None when the business has no such method.
        """
        if self.get_by_customer_uid(customer_uid, business_id) is None:
            return None
        self.db.execute(
            update(PaymentMethod)
            .where(PaymentMethod.business_id == business_id)
            .values(
                default_method=case(
                    (PaymentMethod.customer_uid == customer_uid, True),
                    else_=False,
                ),
                updated_at=utc_now(),
            )
            .execution_options(synchronize_session="fetch")
        )
        commit_or_raise(self.db, f"set default payment method {customer_uid}")
        return self.get_by_customer_uid(customer_uid, business_id)

    def delete(self, business_id: str, customer_uid: str) -> bool:
        payment_method = self.get_by_customer_uid(customer_uid, business_id)
        if not payment_method:
            return False
        self.db.delete(payment_method)
        commit_or_raise(self.db, f"delete payment method {customer_uid}")
        return True
