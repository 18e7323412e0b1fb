"""Unit tests for domain entities"""

import pytest
from datetime import date, datetime, timezone

from peanuts_budget.domain.exceptions import DomainException, EmptyTransactionError
from peanuts_budget.domain.models import (
    Account,
    RecurringTemplate,
    Transaction,
    TransactionPosting,
)


def test_transaction_requires_a_posting():
    with pytest.raises(EmptyTransactionError):
        Transaction(date=datetime(2024, 1, 1, tzinfo=timezone.utc), account_id="a", postings=[])


def test_empty_transaction_error_is_a_domain_exception():
    assert issubclass(EmptyTransactionError, DomainException)


def test_transaction_amount_single_posting():
    tx = Transaction(
        date=datetime(2024, 1, 1, tzinfo=timezone.utc),
        account_id="a",
        postings=[TransactionPosting(amount=-2500, budget_id="b")],
    )

    assert tx.amount == -2500
    assert not tx.is_split
    assert tx.is_valid


def test_split_transaction_amount_is_posting_sum():
    tx = Transaction(
        date=datetime(2024, 1, 1, tzinfo=timezone.utc),
        account_id="a",
        postings=[
            TransactionPosting(amount=-3000, budget_id="groceries"),
            TransactionPosting(amount=-1500, budget_id="household"),
            TransactionPosting(amount=-500, budget_id=None),
        ],
    )

    assert tx.is_split
    assert tx.amount == -5000
    assert tx.adds_up(-5000)
    assert not tx.adds_up(-4500)
    assert not tx.is_valid  # one posting has no budget


def test_transaction_is_future():
    tx = Transaction(
        date=datetime(2024, 6, 2, tzinfo=timezone.utc),
        account_id="a",
        postings=[TransactionPosting(amount=1)],
    )

    assert tx.is_future(date(2024, 6, 1))
    assert not tx.is_future(date(2024, 6, 2))


def test_account_is_tracking():
    assert Account(name="Brokerage", type="tracking").is_tracking
    assert not Account(name="Checking").is_tracking


def test_entities_get_unique_ids():
    assert Account(name="A").id != Account(name="A").id


def test_template_cursor_defaults_to_start_date():
    template = RecurringTemplate(start_date=date(2024, 1, 1))

    assert template.next_scheduled_date == date(2024, 1, 1)
    assert template.rrule_string == "FREQ=MONTHLY;BYMONTHDAY=1"


def test_template_dates_are_reduced_to_calendar_days():
    template = RecurringTemplate(
        start_date=datetime(2024, 1, 1, tzinfo=timezone.utc),
        next_scheduled_date=datetime(2024, 3, 1, 12, tzinfo=timezone.utc),
        end_date=datetime(2024, 12, 31, tzinfo=timezone.utc),
    )

    assert template.start_date == date(2024, 1, 1)
    assert template.next_scheduled_date == date(2024, 3, 1)
    assert template.end_date == date(2024, 12, 31)


def test_template_has_ended():
    template = RecurringTemplate(start_date=date(2024, 1, 1), end_date=date(2024, 3, 31))

    assert not template.has_ended(date(2024, 3, 31))
    assert template.has_ended(date(2024, 4, 1))
    assert not RecurringTemplate(start_date=date(2024, 1, 1)).has_ended(date(2099, 1, 1))


def test_template_upcoming_occurrences_stop_at_end_date():
    template = RecurringTemplate(
        start_date=date(2024, 1, 1),
        rrule_string="FREQ=MONTHLY;BYMONTHDAY=1",
        end_date=date(2024, 3, 15),
    )

    assert template.upcoming_occurrences(date(2024, 12, 31)) == [
        date(2024, 1, 1),
        date(2024, 2, 1),
        date(2024, 3, 1),
    ]


def test_template_schedule_description():
    template = RecurringTemplate(start_date=date(2024, 1, 1), rrule_string="FREQ=WEEKLY;INTERVAL=2;BYDAY=MO")
    assert template.schedule_description == "Every 2 weeks on Monday"
