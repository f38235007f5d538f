"""BillingScheduleEntry model - the durable record of one billing cycle."""

from sqlalchemy import JSON, Column, DateTime, Integer, String, func

from billing.core.database import Base
from billing.models.billing import PaymentStatus
from billing.models.shared import UUIDType, generate_uuid


class BillingScheduleEntry(Base):
    __tablename__ = "payment_schedule"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    merchant_uid = Column(String(255), nullable=False, unique=True, index=True)
    business_id = Column(String(255), nullable=False, index=True)

    # Due date: local midnight, stored as a UTC instant
    schedule = Column(DateTime(timezone=True), nullable=False, index=True)

    amount = Column(Integer, nullable=False)
    vat = Column(Integer, nullable=True)
    billing_plan = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value, index=True)

    # Failure records, most recent first
    failures = Column(JSON, nullable=False, default=list)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
