"""Shared test fixtures for all test modules."""

import contextlib
import itertools
from datetime import UTC, datetime
from typing import Any

import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import billing.models  # noqa: F401
from billing.core import database as db_module
from billing.core.database import Base, get_db
from billing.core.errors import GatewayError
from billing.models.billing import BillingPlan
from billing.models.payment_method import PaymentMethod
from billing.models.payment_schedule import BillingScheduleEntry
from billing.runtime import BillingRuntime
from billing.schemas.billing import GatewayChargeRequest, GatewayPaymentResult
from billing.schemas.payment_method import CardRegistration
from billing.services.billing_dates import BillingDatesService
from billing.services.confirmation_dispatch import ConfirmationDispatcher
from billing.services.payment_gateway import PaymentGatewayBase

# Create an in-memory SQLite engine with StaticPool so all connections
# share the same database state and there are no file-locking issues.
_test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
_TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=_test_engine)

BUSINESS_ID = "B1"
CUSTOMER_UID = "B1_4242"

# 2024-01-01 00:00 in Seoul
SEOUL_JAN_1 = datetime(2023, 12, 31, 15, 0, tzinfo=UTC)


@pytest.fixture(autouse=True)
def setup_database():
    """Create tables before each test and truncate all data after.

    Patches the module-level engine and SessionLocal so all application code
    uses the in-memory test database.
    """
    original_engine = db_module.engine
    original_session = db_module.SessionLocal
    db_module.engine = _test_engine
    db_module.SessionLocal = _TestSessionLocal

    Base.metadata.create_all(bind=_test_engine)

    yield
    with _test_engine.connect() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            with contextlib.suppress(OperationalError):
                conn.execute(table.delete())
        conn.commit()

    db_module.engine = original_engine
    db_module.SessionLocal = original_session


@pytest.fixture
def db_session():
    """Create a database session for direct repository testing."""
    gen = get_db()
    db = next(gen)
    try:
        yield db
    finally:
        for _ in gen:
            pass


class FakeGateway(PaymentGatewayBase):
    """In-memory gateway that echoes ``custom_data`` like I'mport does."""

    def __init__(self) -> None:
        self.charges: list[GatewayChargeRequest] = []
        self.statuses: dict[str, str] = {}
        self.fail_reasons: dict[str, str] = {}
        self.transport_errors: dict[str, GatewayError] = {}
        self.customers: dict[str, dict[str, Any]] = {}
        self.customer_errors: dict[str, GatewayError] = {}
        self.payments: dict[str, GatewayPaymentResult] = {}
        self.paid_at = int(SEOUL_JAN_1.timestamp())
        self.closed = False
        self._imp_uids = itertools.count(1)

    async def charge_again(self, request: GatewayChargeRequest) -> GatewayPaymentResult:
        self.charges.append(request)
        if request.merchant_uid in self.transport_errors:
            raise self.transport_errors[request.merchant_uid]
        status = self.statuses.get(request.merchant_uid, "paid")
        result = GatewayPaymentResult(
            imp_uid=f"imp_{next(self._imp_uids)}",
            merchant_uid=request.merchant_uid,
            status=status,
            amount=request.amount,
            currency="KRW",
            pay_method="card",
            card_name="Test Card",
            receipt_url="https://receipts.example/1",
            paid_at=self.paid_at if status == "paid" else 0,
            failed_at=self.paid_at if status == "failed" else 0,
            fail_reason=self.fail_reasons.get(request.merchant_uid),
            custom_data=request.custom_data,
        )
        self.payments[result.imp_uid] = result
        return result

    async def get_payment(self, imp_uid: str) -> GatewayPaymentResult:
        if imp_uid not in self.payments:
            raise GatewayError(f"Payment {imp_uid} not found", gateway_code=1)
        return self.payments[imp_uid]

    async def get_customer(self, customer_uid: str) -> dict[str, Any]:
        if customer_uid in self.customer_errors:
            raise self.customer_errors[customer_uid]
        return self.customers.get(customer_uid, {"customer_uid": customer_uid})

    async def create_customer(self, customer_uid: str, card: CardRegistration) -> dict[str, Any]:
        details = {
            "customer_uid": customer_uid,
            "card_name": "Test Card",
            "card_number": card.card_number[-4:],
        }
        self.customers[customer_uid] = details
        return details

    async def delete_customer(self, customer_uid: str) -> dict[str, Any]:
        return self.customers.pop(customer_uid, {"customer_uid": customer_uid})

    async def aclose(self) -> None:
        self.closed = True


class RecordingDispatcher(ConfirmationDispatcher):
    def __init__(self) -> None:
        self.results: list[GatewayPaymentResult] = []

    async def dispatch(self, result: GatewayPaymentResult) -> None:
        self.results.append(result)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def dates():
    return BillingDatesService("Asia/Seoul")


@pytest.fixture
def runtime(gateway, dispatcher, dates):
    """Runtime whose confirmations are recorded, not reconciled."""
    return BillingRuntime(gateway, dates=dates, dispatcher=dispatcher)


@pytest.fixture
def live_runtime(gateway, dates):
    """Runtime reconciling confirmations in background tasks."""
    return BillingRuntime(gateway, dates=dates)


def add_payment_method(
    db, business_id: str = BUSINESS_ID, customer_uid: str = CUSTOMER_UID, default: bool = True
) -> PaymentMethod:
    method = PaymentMethod(
        business_id=business_id, customer_uid=customer_uid, default_method=default
    )
    db.add(method)
    db.commit()
    db.refresh(method)
    return method


def add_schedule_entry(
    db,
    merchant_uid: str = "B1_ch1",
    business_id: str = BUSINESS_ID,
    schedule: datetime = SEOUL_JAN_1,
    amount: int = 10000,
    vat: int | None = 1000,
    billing_plan: BillingPlan = BillingPlan.FOUR_WEEK,
    status: str = "PENDING",
) -> BillingScheduleEntry:
    entry = BillingScheduleEntry(
        merchant_uid=merchant_uid,
        business_id=business_id,
        schedule=schedule,
        amount=amount,
        vat=vat,
        billing_plan=billing_plan.value,
        status=status,
        failures=[],
    )
    db.add(entry)
    db.commit()
    db.refresh(entry)
    return entry
