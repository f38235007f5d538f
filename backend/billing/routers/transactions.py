"""Transaction history API endpoints."""

from fastapi import APIRouter, Depends
from fastapi.encoders import jsonable_encoder
from sqlalchemy.orm import Session

from billing.core.database import get_db
from billing.runtime import BillingRuntime, get_runtime
from billing.schemas.response import ApiResponse
from billing.services.transaction_history import TransactionHistoryService

router = APIRouter()


@router.get(
    "/{business_id}/transactions",
    response_model=ApiResponse,
    summary="List payment transactions",
)
async def list_transactions(
    business_id: str,
    db: Session = Depends(get_db),
    runtime: BillingRuntime = Depends(get_runtime),
) -> ApiResponse:
    """All transactions of the business, most recently paid first."""
    history = TransactionHistoryService(db, runtime.dates).get_history(business_id)
    return ApiResponse.ok(
        f"Successfully fetched {len(history)} payment transactions.", jsonable_encoder(history)
    )
