"""Composition root wiring the gateway, store and confirmation hand-off."""

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from typing import Any

from arq.connections import ArqRedis
from fastapi import Request
from sqlalchemy.orm import Session

from billing.core.background import BackgroundTaskRegistry
from billing.core.config import Settings
from billing.core.database import new_session
from billing.schemas.billing import BillingIntent, GatewayPaymentResult
from billing.services.billing_dates import BillingDatesService, PaymentNaming
from billing.services.confirmation_dispatch import (
    ArqConfirmationDispatcher,
    BackgroundConfirmationDispatcher,
    ConfirmationDispatcher,
)
from billing.services.iamport_gateway import IamportGateway
from billing.services.payment_gateway import PaymentGatewayBase
from billing.services.payment_submitter import PaymentSubmitter

logger = logging.getLogger(__name__)


class BillingRuntime:
    """Long-lived collaborators shared by requests, the scheduler and the worker.

    Request handlers and background jobs never build gateways or dispatchers
    themselves; they get them from here. Background work opens its own
    session through ``session_factory``.
    """

    def __init__(
        self,
        gateway: PaymentGatewayBase,
        session_factory: Callable[[], Session] = new_session,
        dates: BillingDatesService | None = None,
        naming: PaymentNaming | None = None,
        dispatcher: ConfirmationDispatcher | None = None,
        registry: BackgroundTaskRegistry | None = None,
        redis_pool: ArqRedis | None = None,
    ):
        self.gateway = gateway
        self.session_factory = session_factory
        self.dates = dates or BillingDatesService()
        self.naming = naming or PaymentNaming()
        self.registry = registry or BackgroundTaskRegistry()
        self.dispatcher = dispatcher or BackgroundConfirmationDispatcher(
            session_factory, self.dates, self.registry
        )
        self.redis_pool = redis_pool

    def submitter(self, db: Session) -> PaymentSubmitter:
        return PaymentSubmitter(db, self.gateway, self.dispatcher, self.dates, self.naming)

    def submit_in_background(self, intent: BillingIntent, description: str) -> asyncio.Task[Any]:
        """Submit ``intent`` without waiting; the outcome is logged by the registry."""
        return self.registry.spawn(self._submit_detached(intent), description)

    async def _submit_detached(self, intent: BillingIntent) -> GatewayPaymentResult:
        db = self.session_factory()
        try:
            return await self.submitter(db).pay(intent)
        finally:
            db.close()

    async def drain(self) -> None:
        """Wait for background submissions and in-process reconciliations."""
        await self.registry.drain()
        await self.dispatcher.drain()

    async def aclose(self) -> None:
        await self.drain()
        await self.gateway.aclose()
        if self.redis_pool is not None:
            await self.redis_pool.close()

    async def __aenter__(self) -> "BillingRuntime":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    @classmethod
    @asynccontextmanager
    async def from_settings(cls, settings: Settings) -> AsyncIterator["BillingRuntime"]:
        """Build a runtime from configuration and close it on exit."""
        from billing.tasks import get_redis_pool

        gateway = IamportGateway(
            api_key=settings.IAMPORT_API_KEY,
            api_secret=settings.IAMPORT_API_SECRET,
            base_url=settings.IAMPORT_BASE_URL,
            timeout=settings.GATEWAY_TIMEOUT,
        )
        pool: ArqRedis | None = None
        dispatcher: ConfirmationDispatcher | None = None
        if settings.arq_dispatch_enabled:
            pool = await get_redis_pool()
            dispatcher = ArqConfirmationDispatcher(pool)
        naming = PaymentNaming(
            prefix=settings.PAYMENT_NAME_PREFIX,
            service_name=settings.SERVICE_NAME,
            service_name_kr=settings.SERVICE_NAME_KR,
        )
        runtime = cls(
            gateway,
            dates=BillingDatesService(settings.BILLING_TIMEZONE),
            naming=naming,
            dispatcher=dispatcher,
            redis_pool=pool,
        )
        logger.info(
            "Billing runtime started (confirmations: %s)", settings.CONFIRMATION_DISPATCH
        )
        async with runtime:
            yield runtime


def get_runtime(request: Request) -> BillingRuntime:
    """FastAPI dependency returning the runtime built by the app lifespan."""
    runtime: BillingRuntime = request.app.state.runtime
    return runtime
