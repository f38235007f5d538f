"""Service for billing-cycle date logic in the business timezone."""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta, tzinfo
from zoneinfo import ZoneInfo

from billing.models.billing import BillingPlan
from billing.models.shared import ensure_utc, utc_now
from billing.schemas.billing import PaymentName

DEFAULT_TIMEZONE = "Asia/Seoul"

_MONTHS = [
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
]


@dataclass(frozen=True)
class PaymentNaming:
    prefix: str = "CAS"
    service_name: str = "Castr subscription"
    service_name_kr: str = "캐스터 정기구독"


class BillingDatesService:
    """Converts between UTC instants and local billing days."""

    def __init__(self, timezone: str | tzinfo = DEFAULT_TIMEZONE):
        self.tz = ZoneInfo(timezone) if isinstance(timezone, str) else timezone

    def local(self, value: datetime) -> datetime:
        return ensure_utc(value).astimezone(self.tz)

    def local_midnight(self, value: datetime) -> datetime:
        """Midnight (local) of the local day containing ``value``, as UTC."""
        local = self.local(value).replace(hour=0, minute=0, second=0, microsecond=0)
        return local.astimezone(UTC)

    def start_of_today(self, now: datetime | None = None) -> datetime:
        return self.local_midnight(now or utc_now())

    def next_pay_date(self, pay_date: datetime, billing_plan: BillingPlan) -> datetime:
        """Due date of the following cycle: ``pay_date`` + cadence, at local midnight.

        The weeks are added on the local calendar so DST shifts never move the
        due day.
        """
        local = self.local(pay_date) + timedelta(weeks=billing_plan.weeks)
        return local.replace(hour=0, minute=0, second=0, microsecond=0).astimezone(UTC)

    def seconds_until_hour(
        self, hour: int, now: datetime | None = None, min_delay: float = 0.0
    ) -> float:
        """Seconds until the next local ``hour:00``.

        At or after today's ``hour:00`` the target is tomorrow's, as it is when
        today's is no more than ``min_delay`` seconds away.
        """
        local_now = self.local(now or utc_now())
        target = local_now.replace(hour=hour, minute=0, second=0, microsecond=0)
        if (target - local_now).total_seconds() <= min_delay:
            target = (local_now + timedelta(days=1)).replace(
                hour=hour, minute=0, second=0, microsecond=0
            )
        return (target.astimezone(UTC) - local_now.astimezone(UTC)).total_seconds()

    def service_window(
        self, pay_date: datetime, billing_plan: BillingPlan
    ) -> tuple[datetime, datetime]:
        """First and last local day covered by a charge."""
        start = self.local(pay_date)
        end = start + timedelta(weeks=billing_plan.weeks) - timedelta(days=1)
        return start, end

    def payment_name(
        self,
        business_id: str,
        billing_plan: BillingPlan,
        pay_date: datetime,
        naming: PaymentNaming | None = None,
    ) -> PaymentName:
        naming = naming or PaymentNaming()
        start, end = self.service_window(pay_date, billing_plan)
        span = f"{start.month}/{start.day}-{end.month}/{end.day}"
        weeks = billing_plan.weeks
        return PaymentName(
            short=f"{naming.prefix}#{business_id}={span}({weeks}WK)",
            long=f"{naming.service_name} #{business_id} {span} ({billing_plan.value})",
            long_kr=f"{naming.service_name_kr} #{business_id} {span} ({weeks}주)",
        )

    def format_date(self, value: datetime) -> str:
        """English long date in UTC, e.g. ``January 29, 2024``."""
        value = ensure_utc(value)
        return f"{_MONTHS[value.month - 1]} {value.day}, {value.year}"

    def format_date_kr(self, value: datetime) -> str:
        """Korean long date in the business timezone, e.g. ``2024년 1월 29일``."""
        value = self.local(value)
        return f"{value.year}년 {value.month}월 {value.day}일"
