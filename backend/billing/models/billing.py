"""Billing catalog and state enums."""

import re
from enum import Enum

from billing.core.errors import InvalidPlanError

_CHARGE_NUMBER = re.compile(r"(\d+)$")


class BillingPlan(str, Enum):
    """Recurring-charge cadences, identified by their cadence in weeks."""

    FOUR_WEEK = "4_WEEK"
    TWENTY_SIX_WEEK = "26_WEEK"
    FIFTY_TWO_WEEK = "52_WEEK"

    @property
    def weeks(self) -> int:
        return _PLAN_WEEKS[self]

    @classmethod
    def parse(cls, value: "str | BillingPlan") -> "BillingPlan":
        try:
            return cls(value)
        except ValueError:
            supported = ", ".join(plan.value for plan in cls)
            raise InvalidPlanError(
                f"'billing_plan' not supported, must provide either: {supported}.",
                params={"billing_plan": value},
            ) from None


_PLAN_WEEKS = {
    BillingPlan.FOUR_WEEK: 4,
    BillingPlan.TWENTY_SIX_WEEK: 26,
    BillingPlan.FIFTY_TWO_WEEK: 52,
}


class PaymentIntentType(str, Enum):
    INITIAL = "INITIAL"
    SCHEDULED = "SCHEDULED"
    REFUND = "REFUND"  # reserved


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


# Gateway status strings -> local status
GATEWAY_STATUS_MAP = {
    "ready": PaymentStatus.PENDING,
    "paid": PaymentStatus.PAID,
    "failed": PaymentStatus.FAILED,
    "cancelled": PaymentStatus.REFUNDED,
}


def status_from_gateway(status: str | None) -> PaymentStatus | None:
    """Map a gateway status to a ``PaymentStatus``; ``None`` if unrecognized."""
    if status is None:
        return None
    return GATEWAY_STATUS_MAP.get(status.lower())


def build_merchant_uid(business_id: str, charge_num: int) -> str:
    return f"{business_id}_ch{charge_num}"


def next_merchant_uid(business_id: str, merchant_uid: str) -> str:
    """Increment the charge counter at the end of ``merchant_uid``.

    ``next_merchant_uid("B1", "B1_ch3") == "B1_ch4"``
    """
    match = _CHARGE_NUMBER.search(merchant_uid)
    if match is None:
        raise ValueError(f"merchant_uid has no charge number: {merchant_uid}")
    return build_merchant_uid(business_id, int(match.group(1)) + 1)
