"""Daily scan that submits every due recurring charge.

A single one-shot timer is armed for the next local ``scan_hour:00``. When it
fires, the scan starts and the timer is re-armed; the delay is recomputed from
the wall clock each time, so nothing about the next run is persisted.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING

from pydantic import ValidationError as SchemaValidationError

from billing.core.errors import BillingError
from billing.models.billing import BillingPlan, PaymentIntentType
from billing.repositories.payment_schedule_repository import PaymentScheduleRepository
from billing.schemas.billing import BillingIntent
from billing.services.payment_submitter import PaymentSubmitter

if TYPE_CHECKING:
    from billing.runtime import BillingRuntime

logger = logging.getLogger(__name__)

# A timer that fires early must not target the scan it just started
RESCAN_GUARD_SECONDS = 3600


@dataclass
class ScanOutcome:
    merchant_uid: str
    amount: int
    succeeded: bool
    currency: str | None = None
    error: str | None = None


@dataclass
class ScanReport:
    cutoff: datetime
    outcomes: list[ScanOutcome] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def succeeded(self) -> list[ScanOutcome]:
        return [o for o in self.outcomes if o.succeeded]

    @property
    def failed(self) -> list[ScanOutcome]:
        return [o for o in self.outcomes if not o.succeeded]


class DailyScheduler:
    def __init__(self, runtime: "BillingRuntime", scan_hour: int = 6):
        self.runtime = runtime
        self.scan_hour = scan_hour
        self._timer: asyncio.TimerHandle | None = None
        self._scan_task: asyncio.Task[ScanReport] | None = None

    @property
    def running(self) -> bool:
        return self._timer is not None

    def seconds_until_next_scan(
        self, now: datetime | None = None, after_fire: bool = False
    ) -> float:
        min_delay = RESCAN_GUARD_SECONDS if after_fire else 0.0
        return self.runtime.dates.seconds_until_hour(self.scan_hour, now, min_delay)

    def schedule_next_scan(self, after_fire: bool = False) -> float:
        delay = self.seconds_until_next_scan(after_fire=after_fire)
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(delay, self._fire)
        logger.info("Next schedule check scheduled at %.2f hours later.", delay / 3600)
        return delay

    def start(self) -> None:
        if self.running:
            return
        self.schedule_next_scan()

    def stop(self) -> None:
        """Cancel the pending timer; a scan already running completes."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    async def wait_idle(self) -> None:
        if self._scan_task is not None:
            await asyncio.gather(self._scan_task, return_exceptions=True)

    def _fire(self) -> None:
        self._scan_task = asyncio.get_running_loop().create_task(
            self.scan_and_process(), name="daily-payment-scan"
        )
        self._scan_task.add_done_callback(self._on_scan_done)
        self.schedule_next_scan(after_fire=True)

    def _on_scan_done(self, task: "asyncio.Task[ScanReport]") -> None:
        if task.cancelled():
            logger.warning("Daily payment scan was cancelled")
            return
        error = task.exception()
        if error is not None:
            logger.error("Daily payment scan failed: %s", error, exc_info=error)

    async def scan_and_process(self, now: datetime | None = None) -> ScanReport:
        """Submit a SCHEDULED charge for every PENDING entry due by today."""
        retried = await self.runtime.dispatcher.retry_failed()
        if retried:
            logger.info("Retrying %d unreconciled payment results.", retried)

        cutoff = self.runtime.dates.start_of_today(now)
        logger.info("Checking for payments scheduled on or before %s.", cutoff.isoformat())

        report = ScanReport(cutoff=cutoff)
        db = self.runtime.session_factory()
        try:
            entries = PaymentScheduleRepository(db).get_due(cutoff)
            intents: list[BillingIntent] = []
            for entry in entries:
                try:
                    intents.append(
                        BillingIntent(
                            business_id=entry.business_id,
                            merchant_uid=entry.merchant_uid,
                            type=PaymentIntentType.SCHEDULED,
                            billing_plan=BillingPlan.parse(entry.billing_plan),
                            pay_date=entry.schedule,
                            amount=entry.amount,
                            vat=entry.vat,
                        )
                    )
                except (BillingError, SchemaValidationError) as e:
                    logger.error("Skipping malformed schedule entry %s: %s", entry.merchant_uid, e)
                    report.outcomes.append(
                        ScanOutcome(str(entry.merchant_uid), int(entry.amount), False, error=str(e))
                    )

            submitter = self.runtime.submitter(db)
            outcomes = await asyncio.gather(*(self._submit(submitter, i) for i in intents))
            report.outcomes.extend(outcomes)
        finally:
            db.close()

        logger.info(
            "(%d/%d) scheduled payment requests approved:%s",
            len(report.succeeded),
            report.total,
            "".join(f"\n  {o.merchant_uid}: {o.amount} {o.currency}" for o in report.succeeded),
        )
        if report.failed:
            logger.error(
                "(%d/%d) scheduled payment requests failed:%s",
                len(report.failed),
                report.total,
                "".join(f"\n  {o.merchant_uid}: {o.error}" for o in report.failed),
            )
        return report

    async def _submit(self, submitter: PaymentSubmitter, intent: BillingIntent) -> ScanOutcome:
        try:
            result = await submitter.pay(intent)
        except BillingError as e:
            return ScanOutcome(intent.merchant_uid, intent.amount, False, error=e.message)
        except Exception as e:
            logger.exception("Unexpected error submitting %s", intent.merchant_uid)
            return ScanOutcome(intent.merchant_uid, intent.amount, False, error=str(e))
        return ScanOutcome(intent.merchant_uid, intent.amount, True, currency=result.currency)
