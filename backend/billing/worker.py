import logging
from typing import Any

from arq import Retry

from billing.core.config import settings
from billing.core.database import SessionLocal
from billing.core.errors import StoreError
from billing.core.logging import configure_logging
from billing.runtime import BillingRuntime
from billing.schemas.billing import GatewayPaymentResult
from billing.services.billing_dates import BillingDatesService, PaymentNaming
from billing.services.confirmation_dispatch import ArqConfirmationDispatcher
from billing.services.daily_scheduler import DailyScheduler
from billing.services.iamport_gateway import IamportGateway
from billing.services.payment_reconciler import PaymentReconciler
from billing.tasks import redis_settings

logger = logging.getLogger(__name__)

# Seconds to wait before retry n of a reconciliation that hit a store error
RETRY_BACKOFF = 10


async def reconcile_payment_task(ctx: dict[str, Any], payload: dict[str, Any]) -> str:
    """Background task: apply one gateway payment result to the store.

    Store failures are retried by arq; a malformed payload is not.
    """
    result = GatewayPaymentResult.model_validate(payload)
    db = SessionLocal()
    try:
        dates = ctx.get("dates") or BillingDatesService(settings.BILLING_TIMEZONE)
        outcome = PaymentReconciler(db, dates).reconcile(result)
    except StoreError as e:
        job_try = ctx.get("job_try", 1)
        logger.error("Reconciliation of %s failed (try %d): %s", result.merchant_uid, job_try, e)
        raise Retry(defer=job_try * RETRY_BACKOFF) from e
    finally:
        db.close()
    logger.info("Reconciled %s: %s", outcome.merchant_uid, outcome.action)
    return outcome.action


async def scan_due_payments_task(ctx: dict[str, Any]) -> int:
    """Background task: submit every due scheduled payment.

    Not registered as a cron job; the API process runs the daily scan.
    """
    runtime: BillingRuntime = ctx["runtime"]
    report = await DailyScheduler(runtime, settings.SCAN_HOUR).scan_and_process()
    logger.info("Submitted %d of %d due payments", len(report.succeeded), report.total)
    return len(report.succeeded)


async def startup(ctx: dict[str, Any]) -> None:
    configure_logging(settings.LOG_LEVEL)
    dates = BillingDatesService(settings.BILLING_TIMEZONE)
    gateway = IamportGateway(
        api_key=settings.IAMPORT_API_KEY,
        api_secret=settings.IAMPORT_API_SECRET,
        base_url=settings.IAMPORT_BASE_URL,
        timeout=settings.GATEWAY_TIMEOUT,
    )
    ctx["dates"] = dates
    ctx["runtime"] = BillingRuntime(
        gateway,
        dates=dates,
        naming=PaymentNaming(
            prefix=settings.PAYMENT_NAME_PREFIX,
            service_name=settings.SERVICE_NAME,
            service_name_kr=settings.SERVICE_NAME_KR,
        ),
        dispatcher=ArqConfirmationDispatcher(ctx["redis"]),
    )


async def shutdown(ctx: dict[str, Any]) -> None:
    runtime: BillingRuntime | None = ctx.get("runtime")
    if runtime is not None:
        await runtime.aclose()


class WorkerSettings:
    functions = [
        reconcile_payment_task,
        scan_due_payments_task,
    ]
    on_startup = startup
    on_shutdown = shutdown
    redis_settings = redis_settings
