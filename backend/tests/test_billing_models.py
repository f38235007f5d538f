"""Billing catalog, status mapping and merchant uid tests."""

from datetime import UTC, datetime, timedelta, timezone

import pytest

from billing.core.errors import InvalidPlanError
from billing.models.billing import (
    BillingPlan,
    PaymentStatus,
    build_merchant_uid,
    next_merchant_uid,
    status_from_gateway,
)
from billing.models.shared import ensure_utc


class TestBillingPlan:
    def test_weeks(self):
        assert BillingPlan.FOUR_WEEK.weeks == 4
        assert BillingPlan.TWENTY_SIX_WEEK.weeks == 26
        assert BillingPlan.FIFTY_TWO_WEEK.weeks == 52

    def test_parse_identifier(self):
        assert BillingPlan.parse("26_WEEK") is BillingPlan.TWENTY_SIX_WEEK
        assert BillingPlan.parse(BillingPlan.FOUR_WEEK) is BillingPlan.FOUR_WEEK

    def test_parse_rejects_unknown_plan(self):
        with pytest.raises(InvalidPlanError) as exc_info:
            BillingPlan.parse("3_WEEK")
        assert exc_info.value.code == "invalid_plan"
        assert exc_info.value.status_code == 400
        assert "4_WEEK, 26_WEEK, 52_WEEK" in exc_info.value.message
        assert exc_info.value.params == {"billing_plan": "3_WEEK"}


class TestStatusMapping:
    @pytest.mark.parametrize(
        ("gateway_status", "expected"),
        [
            ("ready", PaymentStatus.PENDING),
            ("paid", PaymentStatus.PAID),
            ("failed", PaymentStatus.FAILED),
            ("cancelled", PaymentStatus.REFUNDED),
            ("PAID", PaymentStatus.PAID),
        ],
    )
    def test_known_statuses(self, gateway_status, expected):
        assert status_from_gateway(gateway_status) == expected

    def test_unknown_status(self):
        assert status_from_gateway("refunding") is None
        assert status_from_gateway(None) is None


class TestMerchantUid:
    def test_build(self):
        assert build_merchant_uid("B1", 0) == "B1_ch0"

    def test_next_increments_trailing_number(self):
        assert next_merchant_uid("B1", "B1_ch3") == "B1_ch4"
        assert next_merchant_uid("B1", "B1_ch9") == "B1_ch10"

    def test_next_requires_trailing_number(self):
        with pytest.raises(ValueError):
            next_merchant_uid("B1", "B1_ch")


class TestEnsureUtc:
    def test_naive_value_is_read_as_utc(self):
        value = ensure_utc(datetime(2024, 1, 1, 12, 0))
        assert value == datetime(2024, 1, 1, 12, 0, tzinfo=UTC)

    def test_aware_value_is_converted(self):
        kst = timezone(timedelta(hours=9))
        value = ensure_utc(datetime(2024, 1, 1, 9, 0, tzinfo=kst))
        assert value == datetime(2024, 1, 1, 0, 0, tzinfo=UTC)
        assert value.utcoffset() == timedelta(0)
