"""PaymentTransaction model - immutable record of a confirmed charge."""

from sqlalchemy import JSON, Column, DateTime, Integer, String, Text, func

from billing.core.database import Base
from billing.models.shared import UUIDType, generate_uuid


class PaymentTransaction(Base):
    __tablename__ = "payment_transactions"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    business_id = Column(String(255), nullable=False, index=True)

    # Gateway transaction id; unique so repeated confirmations insert once
    imp_uid = Column(String(255), nullable=False, unique=True, index=True)
    merchant_uid = Column(String(255), nullable=False, index=True)

    type = Column(String(20), nullable=False)
    name = Column(JSON, nullable=False, default=dict)  # short / long / long_kr
    currency = Column(String(3), nullable=True)
    amount = Column(Integer, nullable=False)
    vat = Column(Integer, nullable=True)

    customer_uid = Column(String(255), nullable=True)
    pay_method = Column(String(50), nullable=True)
    card_name = Column(String(100), nullable=True)
    status = Column(String(20), nullable=False)
    receipt_url = Column(Text, nullable=True)

    pay_date = Column(DateTime(timezone=True), nullable=False)
    time_paid = Column(DateTime(timezone=True), nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
