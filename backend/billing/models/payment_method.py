"""PaymentMethod model for stored gateway credentials."""

from sqlalchemy import Boolean, Column, DateTime, String, func

from billing.core.database import Base
from billing.models.shared import UUIDType, generate_uuid


class PaymentMethod(Base):
    """PaymentMethod model - one gateway billing key registered for a business."""

    __tablename__ = "payment_methods"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    business_id = Column(String(255), nullable=False, index=True)

    # Gateway-issued credential token
    customer_uid = Column(String(255), nullable=False, unique=True, index=True)

    # At most one default per business
    default_method = Column(Boolean, nullable=False, default=False)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
