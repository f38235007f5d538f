"""Operator endpoint for running the due-payment scan out of band."""

from fastapi import APIRouter, Depends

from billing.runtime import BillingRuntime, get_runtime
from billing.schemas.response import ApiResponse
from billing.services.daily_scheduler import DailyScheduler
from billing.tasks import enqueue_scan_due_payments

router = APIRouter()


@router.post(
    "/scan",
    status_code=202,
    response_model=ApiResponse,
    summary="Run the due-payment scan",
    description="Submit every due scheduled payment now, outside the daily timer.",
)
async def trigger_scan(runtime: BillingRuntime = Depends(get_runtime)) -> ApiResponse:
    if runtime.redis_pool is not None:
        job = await enqueue_scan_due_payments()
        job_id = job.job_id if job is not None else None
        return ApiResponse.ok("Payment scan has been queued.", {"job_id": job_id})

    runtime.registry.spawn(DailyScheduler(runtime).scan_and_process(), "manual payment scan")
    return ApiResponse.ok("Payment scan has been started.", {"job_id": None})
