"""Hand-off of gateway payment results to reconciliation.

The submitter hands every result to a dispatcher exactly once and returns
without waiting for the store to be updated. Two dispatchers exist:

- ``BackgroundConfirmationDispatcher`` reconciles in a tracked asyncio task
  inside the API process, with its own database session.
- ``ArqConfirmationDispatcher`` enqueues ``reconcile_payment_task`` on the arq
  queue, for deployments that run ``billing.worker``.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable

from arq.connections import ArqRedis
from sqlalchemy.orm import Session

from billing.core.background import BackgroundTaskRegistry
from billing.core.errors import StoreError
from billing.schemas.billing import GatewayPaymentResult
from billing.services.billing_dates import BillingDatesService
from billing.services.payment_reconciler import (
    ActivationHook,
    PaymentReconciler,
    ReconciliationResult,
)

logger = logging.getLogger(__name__)

RECONCILE_TASK = "reconcile_payment_task"


def reconcile_job_id(result: GatewayPaymentResult) -> str:
    return f"reconcile:{result.imp_uid}:{result.status}"


class ConfirmationDispatcher(ABC):
    @abstractmethod
    async def dispatch(self, result: GatewayPaymentResult) -> None:
        """Schedule reconciliation of ``result``; must not wait for it."""
        pass  # pragma: no cover

    async def retry_failed(self) -> int:
        """Re-dispatch results whose reconciliation failed; returns how many."""
        return 0

    async def drain(self) -> None:
        """Wait for in-process reconciliations, if any."""
        return None


class BackgroundConfirmationDispatcher(ConfirmationDispatcher):
    """Reconciles results in background tasks of the running event loop.

    Results whose reconciliation hit a store error are kept in ``failed``
    until the next ``retry_failed``, which the daily scan calls before
    submitting charges. Malformed results are logged and dropped.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        dates: BillingDatesService,
        registry: BackgroundTaskRegistry | None = None,
        on_activation: ActivationHook | None = None,
    ):
        self.session_factory = session_factory
        self.dates = dates
        self.registry = registry or BackgroundTaskRegistry()
        self.on_activation = on_activation
        self.failed: list[GatewayPaymentResult] = []

    async def dispatch(self, result: GatewayPaymentResult) -> None:
        self.registry.spawn(
            self._reconcile(result),
            f"reconcile {result.merchant_uid} ({result.imp_uid})",
        )

    async def _reconcile(self, result: GatewayPaymentResult) -> ReconciliationResult:
        db = self.session_factory()
        try:
            outcome = PaymentReconciler(db, self.dates, self.on_activation).reconcile(result)
        except StoreError:
            self.failed.append(result)
            raise
        finally:
            db.close()
        logger.debug("Reconciled %s: %s", result.merchant_uid, outcome.action)
        return outcome

    async def retry_failed(self) -> int:
        pending, self.failed = self.failed, []
        for result in pending:
            await self.dispatch(result)
        return len(pending)

    async def drain(self) -> None:
        await self.registry.drain()


class ArqConfirmationDispatcher(ConfirmationDispatcher):
    """Enqueues reconciliation on the arq worker.

    The job id is derived from the gateway transaction and status, so the same
    notification enqueued twice while a job is known to Redis runs once.
    """

    def __init__(self, pool: ArqRedis):
        self.pool = pool

    async def dispatch(self, result: GatewayPaymentResult) -> None:
        job = await self.pool.enqueue_job(
            RECONCILE_TASK,
            result.model_dump(mode="json"),
            _job_id=reconcile_job_id(result),
        )
        if job is None:
            logger.info(
                "Reconciliation of %s (%s) is already queued", result.merchant_uid, result.imp_uid
            )
        else:
            logger.info("Queued reconciliation of %s as job %s", result.merchant_uid, job.job_id)
