from billing.schemas.billing import (
    BillingIntent,
    ConfirmationMetadata,
    FailureRecord,
    GatewayChargeRequest,
    GatewayPaymentResult,
    PaymentName,
)
from billing.schemas.payment_method import CardRegistration, PaymentMethodResponse
from billing.schemas.response import ApiResponse, ErrorDetail
from billing.schemas.subscription import (
    ChangeSubscriptionRequest,
    ScheduleEntryResponse,
    SubscribeRequest,
    SubscriptionChange,
)
from billing.schemas.webhook import IamportNotification

__all__ = [
    "ApiResponse",
    "BillingIntent",
    "CardRegistration",
    "ChangeSubscriptionRequest",
    "ConfirmationMetadata",
    "ErrorDetail",
    "FailureRecord",
    "GatewayChargeRequest",
    "GatewayPaymentResult",
    "IamportNotification",
    "PaymentMethodResponse",
    "PaymentName",
    "ScheduleEntryResponse",
    "SubscribeRequest",
    "SubscriptionChange",
]
