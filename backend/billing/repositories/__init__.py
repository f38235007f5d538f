from billing.repositories.payment_method_repository import PaymentMethodRepository
from billing.repositories.payment_schedule_repository import PaymentScheduleRepository
from billing.repositories.payment_transaction_repository import PaymentTransactionRepository

__all__ = [
    "PaymentMethodRepository",
    "PaymentScheduleRepository",
    "PaymentTransactionRepository",
]
