"""Domain models - pure Python dataclasses representing budgeting entities"""

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import List, Optional

from peanuts_budget.config import settings
from peanuts_budget.domain import recurrence
from peanuts_budget.domain.exceptions import EmptyTransactionError
from peanuts_budget.utils.date_utils import local_day

ACCOUNT_BUDGET = "budget"
ACCOUNT_TRACKING = "tracking"

STATUS_OPEN = "open"
STATUS_CLEARED = "cleared"

GOAL_MONTHLY_ASSIGNMENT = "monthly_assignment"
GOAL_AVAILABLE = "available"


def new_id() -> str:
    return uuid.uuid4().hex


@dataclass
class Account:
    """Bank or tracking account; its balance is derived from the ledger"""

    name: str
    type: str = ACCOUNT_BUDGET  # "budget" or "tracking"
    archived: bool = False
    id: str = field(default_factory=new_id)

    @property
    def is_tracking(self) -> bool:
        return self.type == ACCOUNT_TRACKING


@dataclass
class Payee:
    name: str
    id: str = field(default_factory=new_id)


@dataclass
class BudgetCategory:
    """Grouping label for budgets"""

    name: str
    id: str = field(default_factory=new_id)


@dataclass
class Budget:
    """Spending envelope; the To-Be-Budgeted budget collects unassigned income"""

    name: str
    budget_category_id: Optional[str] = None
    is_to_be_budgeted: bool = False
    id: str = field(default_factory=new_id)


@dataclass
class TransactionPosting:
    """Line item of a transaction"""

    amount: int = 0  # signed, minor units
    budget_id: Optional[str] = None
    note: str = ""
    id: str = field(default_factory=new_id)


@dataclass
class Transaction:
    """Dated movement on one account, split across one or more postings"""

    date: datetime
    account_id: Optional[str]
    postings: List[TransactionPosting]
    payee_id: Optional[str] = None
    status: str = STATUS_OPEN  # "open" or "cleared"
    recurring_template_id: Optional[str] = None
    id: str = field(default_factory=new_id)

    def __post_init__(self) -> None:
        self.postings = list(self.postings)
        if not self.postings:
            raise EmptyTransactionError(f"Transaction {self.id} must have at least one posting")

    @property
    def amount(self) -> int:
        """Headline amount: the single posting's amount, or the split total"""
        return sum(posting.amount for posting in self.postings)

    @property
    def is_split(self) -> bool:
        return len(self.postings) > 1

    @property
    def is_cleared(self) -> bool:
        return self.status == STATUS_CLEARED

    @property
    def is_valid(self) -> bool:
        # Every posting needs a budget to be counted in an envelope
        return bool(self.postings) and all(posting.budget_id for posting in self.postings)

    def adds_up(self, expected_total: int) -> bool:
        """Whether the split postings sum to the total entered for the transaction"""
        return self.amount == expected_total

    def is_future(self, today: date) -> bool:
        return local_day(self.date) > today


@dataclass
class Transfer:
    """
    Money moved between two accounts.

    `amount` is an unsigned magnitude: it leaves `from_account_id` and
    arrives in `to_account_id`.
    """

    date: datetime
    from_account_id: Optional[str]
    to_account_id: Optional[str]
    amount: int
    from_status: str = STATUS_OPEN
    to_status: str = STATUS_OPEN
    note: str = ""
    budget_id: Optional[str] = None
    id: str = field(default_factory=new_id)


@dataclass
class Assignment:
    """Money moved from Inflow into a budget (negative amounts move it back)"""

    date: datetime
    budget_id: Optional[str]
    amount: int
    id: str = field(default_factory=new_id)


@dataclass
class Goal:
    """Savings target for a budget; progress is derived, never stored"""

    budget_id: Optional[str]
    target_amount: int
    type: str = GOAL_AVAILABLE  # "available" or "monthly_assignment"
    is_archived: bool = False
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    id: str = field(default_factory=new_id)


@dataclass
class RecurringTemplate:
    """
    Rule plus transaction prototype materialized by the scheduler.

    `next_scheduled_date` is the scheduler cursor. All template dates are
    calendar days; datetimes passed in are reduced to their day.
    """

    start_date: date
    next_scheduled_date: Optional[date] = None
    rrule_string: str = field(default_factory=lambda: settings.default_rrule)
    end_date: Optional[date] = None
    account_id: Optional[str] = None
    amount: int = 0
    budget_id: Optional[str] = None
    payee_id: Optional[str] = None
    note: str = ""
    id: str = field(default_factory=new_id)

    def __post_init__(self) -> None:
        if self.next_scheduled_date is None:
            self.next_scheduled_date = self.start_date
        self.normalize_dates()

    def normalize_dates(self) -> None:
        self.start_date = local_day(self.start_date)
        self.next_scheduled_date = local_day(self.next_scheduled_date)
        if self.end_date is not None:
            self.end_date = local_day(self.end_date)

    @property
    def rule(self):
        """Parsed rule anchored at `start_date` (default monthly rule if malformed)"""
        return recurrence.build_rule(self.rrule_string, self.start_date, self.id)

    @property
    def schedule_description(self) -> str:
        return recurrence.describe_schedule(self.rrule_string)

    def calculate_next_occurrence(self, from_date: date | datetime) -> date:
        """First occurrence strictly after `from_date`, or `from_date` itself once the rule is exhausted"""
        return recurrence.next_occurrence(self.rule, from_date, self.id)

    def upcoming_occurrences(self, until: date) -> List[date]:
        """Occurrences from the cursor through `until`, honoring `end_date`"""
        last = min(until, self.end_date) if self.end_date else until
        if last < self.next_scheduled_date:
            return []
        return recurrence.occurrences_between(self.rule, self.next_scheduled_date, last)

    def has_ended(self, day: date) -> bool:
        return self.end_date is not None and local_day(day) > self.end_date
