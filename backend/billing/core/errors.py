"""Error taxonomy for billing operations.

Every business failure is a ``BillingError`` carrying a stable ``code``, a
human-readable ``message`` and, where useful, the parameters that were being
processed. The HTTP layer turns these into the ``{success, message, error}``
envelope; background paths log them.
"""

from typing import Any


class BillingError(Exception):
    """Base class for billing failures."""

    code = "billing_error"
    status_code = 500

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        params: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.params = params or {}

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message}


class ValidationError(BillingError):
    """Malformed input, rejected before any external call."""

    code = "validation_error"
    status_code = 400


class InvalidPlanError(ValidationError):
    code = "invalid_plan"


class NotFoundError(BillingError):
    code = "not_found"
    status_code = 404


class NoDefaultMethodError(NotFoundError):
    code = "no_default_method"


class NoActiveScheduleError(NotFoundError):
    code = "no_active_schedule"


class PaymentMethodNotFoundError(NotFoundError):
    code = "payment_method_not_found"


class GatewayError(BillingError):
    """Transport failure or gateway-side rejection."""

    code = "gateway_error"
    status_code = 502

    def __init__(
        self,
        message: str,
        *,
        gateway_code: Any = None,
        code: str | None = None,
        params: dict[str, Any] | None = None,
    ):
        super().__init__(message, code=code, params=params)
        self.gateway_code = gateway_code

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["gateway_code"] = self.gateway_code
        return data


class PaymentDeclinedError(GatewayError):
    """The gateway accepted the request but the charge itself was declined."""

    code = "payment_declined"
    status_code = 402


class StoreError(BillingError):
    """Persistence failure; fatal to the operation, not to the process."""

    code = "store_error"
    status_code = 500


class LifecycleNotImplementedError(BillingError):
    code = "not_implemented"
    status_code = 501
