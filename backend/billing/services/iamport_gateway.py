"""I'mport (PortOne v1) gateway client.

Uses the REST API directly:
1. ``POST /users/getToken`` exchanges the API key/secret for an access token
2. ``POST /subscribe/payments/again`` charges a stored billing key
3. ``GET /payments/{imp_uid}`` returns the full payment after a notification
4. ``/subscribe/customers/{customer_uid}`` manages billing keys

Every response is wrapped as ``{"code": 0, "message": ..., "response": ...}``;
a non-zero code is a gateway-side rejection.
"""

import logging
import time
from typing import Any

import httpx

from billing.core.errors import GatewayError
from billing.schemas.billing import GatewayChargeRequest, GatewayPaymentResult
from billing.schemas.payment_method import CardRegistration
from billing.services.payment_gateway import PaymentGatewayBase

logger = logging.getLogger(__name__)

# Refresh the token this many seconds before it expires
TOKEN_EXPIRY_MARGIN = 60


class IamportGateway(PaymentGatewayBase):
    def __init__(
        self,
        api_key: str,
        api_secret: str,
        base_url: str = "https://api.iamport.kr",
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.api_key = api_key
        self.api_secret = api_secret
        self._client = client or httpx.AsyncClient(base_url=base_url.rstrip("/"), timeout=timeout)
        self._token: str | None = None
        self._token_expires_at = 0.0

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _send(
        self,
        method: str,
        path: str,
        json: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        try:
            resp = await self._client.request(method, path, json=json, headers=headers)
        except httpx.HTTPError as e:
            raise GatewayError(
                f"I'mport request failed ({method} {path}): {e}",
                code="gateway_transport_error",
            ) from e

        try:
            body = resp.json()
        except ValueError:
            raise GatewayError(
                f"I'mport returned a non-JSON response ({resp.status_code})",
                gateway_code=resp.status_code,
            ) from None

        code = body.get("code", resp.status_code if resp.is_error else 0)
        if code != 0 or resp.is_error:
            raise GatewayError(
                body.get("message") or f"I'mport request failed ({resp.status_code})",
                gateway_code=code,
            )
        return body.get("response")

    async def _access_token(self) -> str:
        if self._token and time.time() < self._token_expires_at - TOKEN_EXPIRY_MARGIN:
            return self._token
        response = await self._send(
            "POST",
            "/users/getToken",
            json={"imp_key": self.api_key, "imp_secret": self.api_secret},
        )
        self._token = str(response["access_token"])
        self._token_expires_at = float(response.get("expired_at") or 0)
        logger.debug("Obtained I'mport access token")
        return self._token

    async def _request(self, method: str, path: str, json: dict[str, Any] | None = None) -> Any:
        token = await self._access_token()
        return await self._send(method, path, json=json, headers={"Authorization": token})

    async def charge_again(self, request: GatewayChargeRequest) -> GatewayPaymentResult:
        response = await self._request(
            "POST",
            "/subscribe/payments/again",
            json=request.model_dump(exclude_none=True),
        )
        return GatewayPaymentResult.model_validate(response)

    async def get_payment(self, imp_uid: str) -> GatewayPaymentResult:
        response = await self._request("GET", f"/payments/{imp_uid}")
        return GatewayPaymentResult.model_validate(response)

    async def get_customer(self, customer_uid: str) -> dict[str, Any]:
        response: dict[str, Any] = await self._request(
            "GET", f"/subscribe/customers/{customer_uid}"
        )
        return response

    async def create_customer(
        self, customer_uid: str, card: CardRegistration
    ) -> dict[str, Any]:
        response: dict[str, Any] = await self._request(
            "POST",
            f"/subscribe/customers/{customer_uid}",
            json=card.model_dump(exclude_none=True),
        )
        return response

    async def delete_customer(self, customer_uid: str) -> dict[str, Any]:
        response: dict[str, Any] = await self._request(
            "DELETE", f"/subscribe/customers/{customer_uid}"
        )
        return response
