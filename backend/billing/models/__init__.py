from billing.models.billing import BillingPlan, PaymentIntentType, PaymentStatus
from billing.models.payment_method import PaymentMethod
from billing.models.payment_schedule import BillingScheduleEntry
from billing.models.payment_transaction import PaymentTransaction

__all__ = [
    "BillingPlan",
    "BillingScheduleEntry",
    "PaymentIntentType",
    "PaymentMethod",
    "PaymentStatus",
    "PaymentTransaction",
]
