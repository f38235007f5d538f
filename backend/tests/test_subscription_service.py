"""Tests for SubscriptionService."""

from datetime import UTC, datetime, timedelta

import pytest

from billing.core.errors import (
    InvalidPlanError,
    LifecycleNotImplementedError,
    NoActiveScheduleError,
    NoDefaultMethodError,
)
from billing.models.billing import PaymentIntentType
from billing.repositories.payment_schedule_repository import PaymentScheduleRepository
from billing.schemas.billing import ConfirmationMetadata
from billing.services.subscription_service import SubscriptionService
from tests.conftest import BUSINESS_ID, SEOUL_JAN_1, add_payment_method, add_schedule_entry


class TestSubscribe:
    @pytest.mark.asyncio
    async def test_invalid_plan_is_rejected_before_charging(self, db_session, runtime, gateway):
        add_payment_method(db_session)
        with pytest.raises(InvalidPlanError):
            await SubscriptionService(db_session, runtime).subscribe(BUSINESS_ID, "1_WEEK", 1000)
        assert gateway.charges == []

    @pytest.mark.asyncio
    async def test_initial_charge(self, db_session, runtime, gateway):
        add_payment_method(db_session)
        before = datetime.now(UTC)

        result = await SubscriptionService(db_session, runtime).subscribe(
            BUSINESS_ID, "4_WEEK", 1000, vat=100
        )

        assert result.merchant_uid == "B1_ch0"
        request = gateway.charges[0]
        metadata = ConfirmationMetadata.decode(request.custom_data)
        assert metadata.type == PaymentIntentType.INITIAL
        assert metadata.amount == 1000
        assert metadata.vat == 100
        assert before - timedelta(seconds=1) <= metadata.pay_date <= datetime.now(UTC)

    @pytest.mark.asyncio
    async def test_charge_number(self, db_session, runtime, gateway):
        add_payment_method(db_session)
        await SubscriptionService(db_session, runtime).subscribe(
            BUSINESS_ID, "52_WEEK", 1000, charge_num=3
        )
        assert gateway.charges[0].merchant_uid == "B1_ch3"

    @pytest.mark.asyncio
    async def test_no_default_method(self, db_session, runtime):
        with pytest.raises(NoDefaultMethodError):
            await SubscriptionService(db_session, runtime).subscribe(BUSINESS_ID, "4_WEEK", 1000)


class TestChangeSubscription:
    def test_updates_pending_entry_in_place(self, db_session, runtime):
        add_schedule_entry(db_session, "B1_ch1", status="PAID")
        add_schedule_entry(db_session, "B1_ch2", schedule=SEOUL_JAN_1 + timedelta(weeks=4))

        change = SubscriptionService(db_session, runtime).change_subscription(
            BUSINESS_ID, "26_WEEK", 50000
        )

        assert change.old_billing_plan == "4_WEEK"
        assert change.new_billing_plan == "26_WEEK"
        assert change.old_amount == 10000
        assert change.new_amount == 50000
        assert change.schedule == SEOUL_JAN_1 + timedelta(weeks=4)

        repo = PaymentScheduleRepository(db_session)
        entry = repo.get_by_merchant_uid("B1_ch2")
        assert entry.billing_plan == "26_WEEK"
        assert entry.amount == 50000
        assert entry.schedule.replace(tzinfo=UTC) == SEOUL_JAN_1 + timedelta(weeks=4)
        assert repo.get_by_merchant_uid("B1_ch1").billing_plan == "4_WEEK"

    def test_failed_entry_can_be_changed(self, db_session, runtime):
        add_schedule_entry(db_session, "B1_ch1", status="FAILED")
        change = SubscriptionService(db_session, runtime).change_subscription(
            BUSINESS_ID, "52_WEEK", 90000
        )
        assert change.new_billing_plan == "52_WEEK"

    def test_no_active_schedule(self, db_session, runtime):
        add_schedule_entry(db_session, "B1_ch1", status="PAID")
        with pytest.raises(NoActiveScheduleError):
            SubscriptionService(db_session, runtime).change_subscription(
                BUSINESS_ID, "26_WEEK", 50000
            )

    def test_invalid_plan(self, db_session, runtime):
        add_schedule_entry(db_session, "B1_ch1")
        with pytest.raises(InvalidPlanError):
            SubscriptionService(db_session, runtime).change_subscription(
                BUSINESS_ID, "2_WEEK", 50000
            )
        entry = PaymentScheduleRepository(db_session).get_by_merchant_uid("B1_ch1")
        assert entry.billing_plan == "4_WEEK"


class TestUnimplementedTransitions:
    @pytest.mark.parametrize("operation", ["pause", "resume", "refund"])
    def test_raises_not_implemented(self, db_session, runtime, operation):
        service = SubscriptionService(db_session, runtime)
        with pytest.raises(LifecycleNotImplementedError) as exc_info:
            getattr(service, operation)(BUSINESS_ID)
        assert exc_info.value.code == "not_implemented"
        assert exc_info.value.status_code == 501
