"""Payment gateway abstraction.

The billing core talks to the gateway only through this contract: charge a
stored credential, fetch a payment, and manage stored credentials.
"""

from abc import ABC, abstractmethod
from typing import Any

from billing.schemas.billing import GatewayChargeRequest, GatewayPaymentResult
from billing.schemas.payment_method import CardRegistration


class PaymentGatewayBase(ABC):
    """Abstract base class for recurring-payment gateways."""

    @abstractmethod
    async def charge_again(self, request: GatewayChargeRequest) -> GatewayPaymentResult:
        """Charge a stored credential. Raises ``GatewayError`` on transport failure."""
        pass  # pragma: no cover

    @abstractmethod
    async def get_payment(self, imp_uid: str) -> GatewayPaymentResult:
        """Fetch the current state of a payment."""
        pass  # pragma: no cover

    @abstractmethod
    async def get_customer(self, customer_uid: str) -> dict[str, Any]:
        """Fetch the card details registered under ``customer_uid``."""
        pass  # pragma: no cover

    @abstractmethod
    async def create_customer(
        self, customer_uid: str, card: CardRegistration
    ) -> dict[str, Any]:
        """Register a card and bind it to ``customer_uid``."""
        pass  # pragma: no cover

    @abstractmethod
    async def delete_customer(self, customer_uid: str) -> dict[str, Any]:
        """Remove the credential registered under ``customer_uid``."""
        pass  # pragma: no cover

    async def aclose(self) -> None:
        """Release transport resources."""
        return None

    async def __aenter__(self) -> "PaymentGatewayBase":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
