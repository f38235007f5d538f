import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from billing.core.config import settings
from billing.core.database import init_db
from billing.core.errors import BillingError, GatewayError
from billing.core.logging import configure_logging
from billing.routers import payment_methods, schedule, subscriptions, transactions, webhooks
from billing.runtime import BillingRuntime
from billing.schemas.response import ApiResponse
from billing.services.daily_scheduler import DailyScheduler

logger = logging.getLogger(__name__)

OPENAPI_TAGS = [
    {"name": "Payment Methods", "description": "Register cards and choose the default one."},
    {"name": "Subscriptions", "description": "Start and change recurring subscriptions."},
    {"name": "Transactions", "description": "Query the payment transaction history."},
    {"name": "Webhooks", "description": "Receive payment notifications from I'mport."},
    {"name": "Schedule", "description": "Run the due-payment scan on demand."},
]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    configure_logging(settings.LOG_LEVEL)
    init_db()
    async with BillingRuntime.from_settings(settings) as runtime:
        app.state.runtime = runtime
        scheduler = DailyScheduler(runtime, settings.SCAN_HOUR)
        app.state.scheduler = scheduler
        if settings.SCHEDULER_ENABLED:
            scheduler.start()
        try:
            yield
        finally:
            scheduler.stop()
            await scheduler.wait_idle()


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.version,
    description="Recurring subscription billing on top of the I'mport billing-key API.",
    openapi_tags=OPENAPI_TAGS,
    lifespan=lifespan,
)


@app.exception_handler(BillingError)
async def billing_error_handler(request: Request, exc: BillingError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    gateway_code = exc.gateway_code if isinstance(exc, GatewayError) else None
    body = ApiResponse.fail(exc.message, exc.code, gateway_code)
    return JSONResponse(status_code=exc.status_code, content=body.model_dump(mode="json"))


app.include_router(
    payment_methods.router, prefix="/v1/businesses", tags=["Payment Methods"]
)
app.include_router(subscriptions.router, prefix="/v1/businesses", tags=["Subscriptions"])
app.include_router(transactions.router, prefix="/v1/businesses", tags=["Transactions"])
app.include_router(webhooks.router, prefix="/v1/iamport", tags=["Webhooks"])
app.include_router(schedule.router, prefix="/v1/schedule", tags=["Schedule"])


@app.get("/")
async def root() -> dict[str, str]:
    return {
        "app": settings.APP_NAME,
        "version": settings.version,
        "status": "running",
    }
