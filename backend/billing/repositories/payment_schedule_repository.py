"""Repository for BillingScheduleEntry records."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from billing.core.database import commit_or_raise
from billing.core.errors import StoreError
from billing.models.billing import BillingPlan, PaymentStatus
from billing.models.payment_schedule import BillingScheduleEntry
from billing.models.shared import ensure_utc
from billing.schemas.billing import FailureRecord


class PaymentScheduleRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_by_merchant_uid(self, merchant_uid: str) -> BillingScheduleEntry | None:
        return (
            self.db.query(BillingScheduleEntry)
            .filter(BillingScheduleEntry.merchant_uid == merchant_uid)
            .first()
        )

    def get_by_business(self, business_id: str) -> list[BillingScheduleEntry]:
        return (
            self.db.query(BillingScheduleEntry)
            .filter(BillingScheduleEntry.business_id == business_id)
            .order_by(BillingScheduleEntry.schedule.asc())
            .all()
        )

    def get_due(self, cutoff: datetime) -> list[BillingScheduleEntry]:
        """Pending entries due on or before ``cutoff``, oldest first."""
        return (
            self.db.query(BillingScheduleEntry)
            .filter(
                BillingScheduleEntry.status == PaymentStatus.PENDING.value,
                BillingScheduleEntry.schedule <= ensure_utc(cutoff),
            )
            .order_by(BillingScheduleEntry.schedule.asc())
            .all()
        )

    def get_active(self, business_id: str) -> BillingScheduleEntry | None:
        """The business's in-flight entry: PENDING or FAILED."""
        return (
            self.db.query(BillingScheduleEntry)
            .filter(
                BillingScheduleEntry.business_id == business_id,
                BillingScheduleEntry.status.in_(
                    [PaymentStatus.PENDING.value, PaymentStatus.FAILED.value]
                ),
            )
            .order_by(BillingScheduleEntry.schedule.asc())
            .first()
        )

    def get_failed(self, business_id: str) -> BillingScheduleEntry | None:
        return (
            self.db.query(BillingScheduleEntry)
            .filter(
                BillingScheduleEntry.business_id == business_id,
                BillingScheduleEntry.status == PaymentStatus.FAILED.value,
            )
            .order_by(BillingScheduleEntry.schedule.asc())
            .first()
        )

    def create(
        self,
        merchant_uid: str,
        business_id: str,
        schedule: datetime,
        amount: int,
        vat: int | None,
        billing_plan: BillingPlan,
    ) -> tuple[BillingScheduleEntry, bool]:
        """Insert a PENDING entry.

        Returns ``(entry, created)``; an entry already holding ``merchant_uid``
        is returned unchanged with ``created=False``.
        """
        existing = self.get_by_merchant_uid(merchant_uid)
        if existing is not None:
            return existing, False
        entry = BillingScheduleEntry(
            merchant_uid=merchant_uid,
            business_id=business_id,
            schedule=ensure_utc(schedule),
            amount=amount,
            vat=vat,
            billing_plan=billing_plan.value,
            status=PaymentStatus.PENDING.value,
            failures=[],
        )
        self.db.add(entry)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            existing = self.get_by_merchant_uid(merchant_uid)
            if existing is None:
                raise StoreError(f"Failed to schedule {merchant_uid}: {e}") from e
            return existing, False
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreError(f"Failed to schedule {merchant_uid}: {e}") from e
        self.db.refresh(entry)
        return entry, True

    def mark_paid(self, merchant_uid: str) -> BillingScheduleEntry | None:
        entry = self.get_by_merchant_uid(merchant_uid)
        if not entry:
            return None
        entry.status = PaymentStatus.PAID.value  # type: ignore[assignment]
        commit_or_raise(self.db, f"mark schedule {merchant_uid} paid")
        self.db.refresh(entry)
        return entry

    def record_failure(
        self, merchant_uid: str, failure: FailureRecord
    ) -> BillingScheduleEntry | None:
        """Set the entry FAILED and add ``failure``, keeping the newest first.

        A failure whose ``imp_uid`` is already recorded leaves the entry as is.
        """
        entry = self.get_by_merchant_uid(merchant_uid)
        if not entry:
            return None
        records = [FailureRecord.model_validate(f) for f in (entry.failures or [])]
        if any(r.imp_uid == failure.imp_uid for r in records):
            return entry
        records.append(failure)
        records.sort(key=lambda r: r.time_failed, reverse=True)
        entry.status = PaymentStatus.FAILED.value  # type: ignore[assignment]
        # JSON columns are not mutation-tracked; assign a new list
        entry.failures = [r.model_dump(mode="json") for r in records]  # type: ignore[assignment]
        commit_or_raise(self.db, f"record failure on schedule {merchant_uid}")
        self.db.refresh(entry)
        return entry

    def update_plan(
        self, entry: BillingScheduleEntry, billing_plan: BillingPlan, amount: int
    ) -> BillingScheduleEntry:
        entry.billing_plan = billing_plan.value  # type: ignore[assignment]
        entry.amount = amount  # type: ignore[assignment]
        commit_or_raise(self.db, f"change plan of schedule {entry.merchant_uid}")
        self.db.refresh(entry)
        return entry
