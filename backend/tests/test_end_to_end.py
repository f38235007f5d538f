"""Full billing cycles through the in-process confirmation path."""

from datetime import UTC, timedelta

import pytest

from billing.core.errors import PaymentDeclinedError
from billing.models.billing import BillingPlan
from billing.models.payment_schedule import BillingScheduleEntry
from billing.models.payment_transaction import PaymentTransaction
from billing.repositories.payment_schedule_repository import PaymentScheduleRepository
from billing.schemas.billing import ConfirmationMetadata
from billing.services.daily_scheduler import DailyScheduler
from billing.services.payment_method_service import PaymentMethodService
from billing.services.subscription_service import SubscriptionService
from tests.conftest import BUSINESS_ID, add_payment_method, add_schedule_entry


class TestSubscriptionCycle:
    @pytest.mark.asyncio
    async def test_initial_then_scheduled_charge(self, db_session, live_runtime, dates):
        add_payment_method(db_session)

        result = await SubscriptionService(db_session, live_runtime).subscribe(
            BUSINESS_ID, "4_WEEK", 1000
        )
        await live_runtime.drain()

        assert result.status == "paid"
        assert db_session.query(PaymentTransaction).count() == 1
        repo = PaymentScheduleRepository(db_session)
        first = repo.get_by_merchant_uid("B1_ch1")
        assert first.status == "PENDING"
        pay_date = ConfirmationMetadata.decode(result.custom_data).pay_date
        first_due = first.schedule.replace(tzinfo=UTC)
        assert first_due == dates.next_pay_date(pay_date, BillingPlan.FOUR_WEEK)
        assert first_due == dates.local_midnight(pay_date + timedelta(weeks=4))

        # Later that day the scan fires
        report = await DailyScheduler(live_runtime).scan_and_process(first_due + timedelta(hours=6))
        await live_runtime.drain()

        assert [o.merchant_uid for o in report.succeeded] == ["B1_ch1"]
        db_session.expire_all()
        assert repo.get_by_merchant_uid("B1_ch1").status == "PAID"
        second = repo.get_by_merchant_uid("B1_ch2")
        assert second.status == "PENDING"
        assert second.schedule.replace(tzinfo=UTC) == dates.local_midnight(
            first_due + timedelta(weeks=4)
        )
        assert db_session.query(PaymentTransaction).count() == 2
        assert db_session.query(BillingScheduleEntry).count() == 2

        # The next scan on the same day finds nothing new
        report = await DailyScheduler(live_runtime).scan_and_process(first_due + timedelta(hours=7))
        assert report.total == 0


class TestDeclinedChargeRecovery:
    @pytest.mark.asyncio
    async def test_failed_charge_is_retried_with_new_default(
        self, db_session, live_runtime, gateway, dates
    ):
        add_payment_method(db_session, customer_uid="B1_1111", default=True)
        add_payment_method(db_session, customer_uid="B1_2222", default=False)
        entry = add_schedule_entry(db_session, "B1_ch3")
        due = entry.schedule.replace(tzinfo=UTC)
        gateway.statuses["B1_ch3"] = "failed"
        gateway.fail_reasons["B1_ch3"] = "Insufficient funds"

        report = await DailyScheduler(live_runtime).scan_and_process(due + timedelta(hours=6))
        await live_runtime.drain()

        assert report.failed[0].error == "Insufficient funds"
        db_session.expire_all()
        repo = PaymentScheduleRepository(db_session)
        failed = repo.get_by_merchant_uid("B1_ch3")
        assert failed.status == "FAILED"
        assert len(failed.failures) == 1
        assert failed.failures[0]["reason"] == "Insufficient funds"

        # A FAILED entry is not picked up by the scan
        report = await DailyScheduler(live_runtime).scan_and_process(due + timedelta(days=1))
        assert report.total == 0

        gateway.statuses["B1_ch3"] = "paid"
        change = await PaymentMethodService(db_session, live_runtime).set_as_default(
            BUSINESS_ID, "B1_2222"
        )
        await live_runtime.drain()

        assert change.retried_merchant_uid == "B1_ch3"
        retry = gateway.charges[-1]
        assert retry.merchant_uid == "B1_ch3"
        assert retry.customer_uid == "B1_2222"
        retry_pay_date = ConfirmationMetadata.decode(retry.custom_data).pay_date
        assert retry_pay_date > due

        db_session.expire_all()
        assert repo.get_by_merchant_uid("B1_ch3").status == "PAID"
        next_entry = repo.get_by_merchant_uid("B1_ch4")
        assert next_entry.schedule.replace(tzinfo=UTC) == dates.next_pay_date(
            retry_pay_date, BillingPlan.FOUR_WEEK
        )

    @pytest.mark.asyncio
    async def test_declined_initial_charge_creates_no_schedule(
        self, db_session, live_runtime, gateway
    ):
        add_payment_method(db_session)
        gateway.statuses["B1_ch0"] = "failed"

        with pytest.raises(PaymentDeclinedError):
            await SubscriptionService(db_session, live_runtime).subscribe(
                BUSINESS_ID, "4_WEEK", 1000
            )
        await live_runtime.drain()

        assert db_session.query(PaymentTransaction).count() == 0
        assert db_session.query(BillingScheduleEntry).count() == 0

