"""Pytest fixtures for testing"""

import pytest
from datetime import date, datetime, timezone
from typing import Callable

from peanuts_budget.config import settings
from peanuts_budget.domain.ledger import Ledger
from peanuts_budget.domain.models import (
    ACCOUNT_TRACKING,
    Account,
    Assignment,
    Budget,
    BudgetCategory,
    Payee,
    RecurringTemplate,
    Transaction,
    TransactionPosting,
)


def utc(year: int, month: int, day: int) -> datetime:
    """Midnight UTC instant, the way documents store transaction dates"""
    return datetime(year, month, day, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def calendar_settings(monkeypatch):
    """Pin the calendar to UTC and disable lookahead regardless of the host environment"""
    monkeypatch.setattr(settings, "timezone", "UTC")
    monkeypatch.setattr(settings, "scheduler_lookahead_days", 0)
    monkeypatch.setattr(settings, "default_rrule", "FREQ=MONTHLY;BYMONTHDAY=1")


@pytest.fixture
def ledger() -> Ledger:
    """Ledger with one budget account, one tracking account and two budgets"""
    ledger = Ledger.create(name="Household")
    bills = ledger.add_budget_category(BudgetCategory(name="Bills", id="cat_bills"))
    ledger.add_budget(Budget(name="Rent", budget_category_id=bills.id, id="budget_rent"))
    ledger.add_budget(Budget(name="Groceries", budget_category_id=bills.id, id="budget_groceries"))
    ledger.add_account(Account(name="Checking", id="acct_checking"))
    ledger.add_account(Account(name="Brokerage", type=ACCOUNT_TRACKING, id="acct_brokerage"))
    ledger.add_payee(Payee(name="Landlord", id="payee_landlord"))
    return ledger


@pytest.fixture
def inflow(ledger: Ledger) -> Budget:
    return ledger.inflow_budget


@pytest.fixture
def rent(ledger: Ledger) -> Budget:
    return ledger.get_budget("budget_rent")


@pytest.fixture
def groceries(ledger: Ledger) -> Budget:
    return ledger.get_budget("budget_groceries")


@pytest.fixture
def checking(ledger: Ledger) -> Account:
    return ledger.get_account("acct_checking")


@pytest.fixture
def brokerage(ledger: Ledger) -> Account:
    return ledger.get_account("acct_brokerage")


@pytest.fixture
def funded_ledger(ledger: Ledger, inflow: Budget, rent: Budget, checking: Account) -> Ledger:
    """Paycheck of 10000 into Inflow on Jan 15 with 4000 assigned to Rent"""
    ledger.add_transaction(
        Transaction(
            date=utc(2024, 1, 15),
            account_id=checking.id,
            postings=[TransactionPosting(amount=10000, budget_id=inflow.id)],
            id="tx_paycheck",
        )
    )
    ledger.add_assignment(Assignment(date=utc(2024, 1, 15), budget_id=rent.id, amount=4000, id="assign_rent"))
    return ledger


@pytest.fixture
def make_template(ledger: Ledger) -> Callable[..., RecurringTemplate]:
    """Factory adding a recurring template to the ledger"""

    def factory(**overrides) -> RecurringTemplate:
        values = {
            "start_date": date(2024, 1, 1),
            "rrule_string": "FREQ=MONTHLY;BYMONTHDAY=1",
            "account_id": "acct_checking",
            "budget_id": "budget_rent",
            "payee_id": "payee_landlord",
            "amount": -150000,
            "note": "Rent",
        }
        values.update(overrides)
        return ledger.add_template(RecurringTemplate(**values))

    return factory
