"""Recurring transaction scheduler - materializes due templates into transactions"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Callable, List, Optional

from peanuts_budget.config import settings
from peanuts_budget.domain.ledger import Ledger
from peanuts_budget.domain.models import STATUS_OPEN, RecurringTemplate, Transaction, TransactionPosting
from peanuts_budget.infrastructure.observability.logging import log_scheduler_pass
from peanuts_budget.infrastructure.observability.metrics import record_scheduler_pass
from peanuts_budget.utils.date_utils import get_timezone, local_day, start_of_day


@dataclass
class SchedulerPassResult:
    """Outcome of one scheduler pass, template ids grouped by what happened"""

    today: date
    created: List[Transaction] = field(default_factory=list)
    already_materialized: List[str] = field(default_factory=list)
    ended: List[str] = field(default_factory=list)
    not_due: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    duration_seconds: float = 0.0


def _today(today: date | datetime | None) -> date:
    if today is None:
        return datetime.now(get_timezone()).date()
    return local_day(today)


def has_materialized_instance(ledger: Ledger, template: RecurringTemplate) -> bool:
    """Whether a transaction from this template already sits on or after its cursor"""
    tz = get_timezone()
    return any(
        t.recurring_template_id == template.id and local_day(t.date, tz) >= template.next_scheduled_date
        for t in ledger.transactions
    )


def materialize(ledger: Ledger, template: RecurringTemplate) -> Transaction:
    """Create the transaction for the template's current cursor date"""
    transaction = Transaction(
        date=start_of_day(template.next_scheduled_date),
        account_id=template.account_id,
        payee_id=template.payee_id,
        status=STATUS_OPEN,
        recurring_template_id=template.id,
        postings=[
            TransactionPosting(
                amount=template.amount,
                budget_id=template.budget_id,
                note=template.note,
            )
        ],
    )
    ledger.transactions.append(transaction)
    logging.info(
        "Created recurring transaction",
        extra={
            "template_id": template.id,
            "transaction_id": transaction.id,
            "account_id": template.account_id,
            "date": template.next_scheduled_date.isoformat(),
        },
    )
    return transaction


def _process_template(
    ledger: Ledger,
    template: RecurringTemplate,
    horizon: date,
    result: SchedulerPassResult,
) -> None:
    # 1. Normalize the cursor to a calendar day
    template.next_scheduled_date = local_day(template.next_scheduled_date)

    # 2. Never create a second instance for the same or a later date
    if has_materialized_instance(ledger, template):
        result.already_materialized.append(template.id)
        return

    # 3. Templates past their end date stay dormant, cursor untouched
    if template.has_ended(template.next_scheduled_date):
        result.ended.append(template.id)
        return

    # 4. Only templates whose cursor has come due
    if template.next_scheduled_date > horizon:
        result.not_due.append(template.id)
        return

    # 5. Resolve the next cursor before writing anything, so a rule that
    #    fails leaves no transaction behind and is retried next pass
    next_date = template.calculate_next_occurrence(template.next_scheduled_date)
    result.created.append(materialize(ledger, template))
    template.next_scheduled_date = next_date


def process_recurring_templates(ledger: Ledger, today: date | datetime | None = None) -> SchedulerPassResult:
    """
    Run one scheduler pass over every recurring template.

    Requirements:
    - At most one transaction per template per pass; a cursor that fell
      behind advances one occurrence per pass (see `catch_up`)
    - Idempotent: a template with a transaction on or after its cursor is
      skipped, so re-running against an unsaved/reloaded ledger never
      duplicates
    - A template is due when its cursor is on or before
      today + `scheduler_lookahead_days`
    - A failing template is logged and skipped; the others still run
    - The whole pass is one ledger mutation
    """
    start_time = time.time()
    result = SchedulerPassResult(today=_today(today))
    horizon = result.today + timedelta(days=settings.scheduler_lookahead_days)

    with ledger.mutation():
        for template in list(ledger.recurring_templates):
            try:
                _process_template(ledger, template, horizon, result)
            except Exception as e:
                result.failed.append(template.id)
                logging.error(
                    f"Recurring template failed: {e}",
                    extra={"template_id": template.id},
                    exc_info=True,
                )

    result.duration_seconds = time.time() - start_time
    record_scheduler_pass(
        created=len(result.created),
        already_materialized=len(result.already_materialized),
        ended=len(result.ended),
        not_due=len(result.not_due),
        failed=len(result.failed),
        duration_seconds=result.duration_seconds,
    )
    log_scheduler_pass(
        today=result.today.isoformat(),
        created=len(result.created),
        already_materialized=len(result.already_materialized),
        ended=len(result.ended),
        not_due=len(result.not_due),
        failed=len(result.failed),
        duration_ms=result.duration_seconds * 1000,
    )
    return result


def catch_up(
    ledger: Ledger,
    today: date | datetime | None = None,
    max_passes: int | None = None,
) -> List[Transaction]:
    """
    Repeat scheduler passes until one creates nothing.

    For hosts that were not running for a while and want every missed
    occurrence at once instead of one per day.
    """
    max_passes = max_passes or settings.scheduler_max_catch_up_passes
    created: List[Transaction] = []
    for _ in range(max_passes):
        result = process_recurring_templates(ledger, today)
        if not result.created:
            break
        created.extend(result.created)
    return created


class DailyScheduler:
    """Runs a scheduler pass on start and whenever the calendar day changes"""

    def __init__(
        self,
        ledger: Ledger,
        poll_seconds: float | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.ledger = ledger
        self.poll_seconds = settings.scheduler_poll_seconds if poll_seconds is None else poll_seconds
        self.clock = clock or (lambda: datetime.now(get_timezone()))
        self.last_check: Optional[date] = None
        self._running = False

    def check(self, now: datetime | None = None) -> Optional[SchedulerPassResult]:
        """Run a pass if this is the first check or the day has advanced since the last one"""
        today = local_day(now or self.clock())
        if self.last_check is not None and today <= self.last_check:
            return None
        self.last_check = today
        return process_recurring_templates(self.ledger, today)

    async def run(self) -> None:
        """Poll until `stop()` is called"""
        self._running = True
        while self._running:
            self.check()
            await asyncio.sleep(self.poll_seconds)

    def stop(self) -> None:
        self._running = False
