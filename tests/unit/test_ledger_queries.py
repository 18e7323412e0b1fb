"""Unit tests for ledger balance and budget queries"""

from datetime import date, datetime, timezone

from peanuts_budget.domain.ledger import Ledger
from peanuts_budget.domain.models import (
    Account,
    Assignment,
    Budget,
    Goal,
    Transaction,
    TransactionPosting,
    Transfer,
)


def utc(year: int, month: int, day: int, hour: int = 0) -> datetime:
    return datetime(year, month, day, hour, tzinfo=timezone.utc)


def spend(ledger: Ledger, account: Account, budget: Budget, amount: int, when: datetime, status: str = "open"):
    return ledger.add_transaction(
        Transaction(
            date=when,
            account_id=account.id,
            status=status,
            postings=[TransactionPosting(amount=amount, budget_id=budget.id)],
        )
    )


def test_create_adds_inflow_budget():
    ledger = Ledger.create(name="New")

    assert ledger.inflow_budget is not None
    assert ledger.inflow_budget.name == "Inflow"
    assert ledger.spending_budgets == []


def test_budget_availability_round_trip(funded_ledger, inflow, rent):
    """10000 income with 4000 assigned leaves 6000 to budget"""
    assert funded_ledger.budget_available_for_month(inflow, date(2024, 1, 1)) == 6000
    assert funded_ledger.budget_available_for_month(rent, date(2024, 1, 1)) == 4000


def test_budget_available_is_cumulative(funded_ledger, rent, checking):
    spend(funded_ledger, checking, rent, -1500, utc(2024, 2, 3))
    funded_ledger.add_assignment(Assignment(date=utc(2024, 2, 1), budget_id=rent.id, amount=1000))

    assert funded_ledger.budget_available_for_month(rent, date(2024, 1, 1)) == 4000
    assert funded_ledger.budget_available_for_month(rent, date(2024, 2, 1)) == 3500
    assert funded_ledger.budget_available_for_month(rent, date(2024, 6, 1)) == 3500


def test_budget_available_includes_last_day_of_month(funded_ledger, rent, checking):
    spend(funded_ledger, checking, rent, -500, utc(2024, 1, 31, 18))
    assert funded_ledger.budget_available_for_month(rent, date(2024, 1, 15)) == 3500


def test_budget_available_excludes_next_month(funded_ledger, rent, checking):
    spend(funded_ledger, checking, rent, -500, utc(2024, 2, 1))
    assert funded_ledger.budget_available_for_month(rent, date(2024, 1, 15)) == 4000


def test_tracking_account_postings_do_not_count(funded_ledger, rent, brokerage):
    spend(funded_ledger, brokerage, rent, -2000, utc(2024, 1, 20))

    assert funded_ledger.budget_available_for_month(rent, date(2024, 1, 1)) == 4000
    assert funded_ledger.budget_activity_for_month(rent, date(2024, 1, 1)) == 0


def test_transfer_to_tracking_reduces_inflow(funded_ledger, inflow, checking, brokerage):
    funded_ledger.add_transfer(
        Transfer(date=utc(2024, 2, 10), from_account_id=checking.id, to_account_id=brokerage.id, amount=5000)
    )

    assert funded_ledger.budget_available_for_month(inflow, date(2024, 1, 1)) == 6000
    assert funded_ledger.budget_available_for_month(inflow, date(2024, 2, 1)) == 1000
    assert funded_ledger.budget_available_for_month(inflow, date(2024, 3, 1)) == 1000


def test_transfer_from_tracking_increases_inflow(funded_ledger, inflow, checking, brokerage):
    funded_ledger.add_transfer(
        Transfer(date=utc(2024, 1, 20), from_account_id=brokerage.id, to_account_id=checking.id, amount=2500)
    )
    assert funded_ledger.budget_available_for_month(inflow, date(2024, 1, 1)) == 8500


def test_same_type_transfer_leaves_inflow_alone(funded_ledger, inflow, checking):
    savings = funded_ledger.add_account(Account(name="Savings"))
    funded_ledger.add_transfer(
        Transfer(date=utc(2024, 1, 20), from_account_id=checking.id, to_account_id=savings.id, amount=5000)
    )
    assert funded_ledger.budget_available_for_month(inflow, date(2024, 1, 1)) == 6000


def test_transfer_with_missing_endpoint_has_no_effect(funded_ledger, inflow, checking):
    funded_ledger.add_transfer(
        Transfer(date=utc(2024, 1, 20), from_account_id=checking.id, to_account_id="acct_deleted", amount=5000)
    )
    funded_ledger.add_transfer(
        Transfer(date=utc(2024, 1, 21), from_account_id=None, to_account_id=checking.id, amount=700)
    )
    assert funded_ledger.budget_available_for_month(inflow, date(2024, 1, 1)) == 6000


def test_activity_and_assigned_are_month_only(funded_ledger, rent, checking):
    spend(funded_ledger, checking, rent, -1200, utc(2024, 1, 5))
    spend(funded_ledger, checking, rent, -800, utc(2024, 2, 5))
    funded_ledger.add_assignment(Assignment(date=utc(2024, 2, 1), budget_id=rent.id, amount=2500))

    assert funded_ledger.budget_activity_for_month(rent, date(2024, 1, 1)) == -1200
    assert funded_ledger.budget_activity_for_month(rent, date(2024, 2, 1)) == -800
    assert funded_ledger.budget_assigned_for_month(rent, date(2024, 1, 1)) == 4000
    assert funded_ledger.budget_assigned_for_month(rent, date(2024, 2, 1)) == 2500


def test_assigned_for_month_covers_all_budgets(funded_ledger, groceries):
    funded_ledger.add_assignment(Assignment(date=utc(2024, 1, 16), budget_id=groceries.id, amount=600))
    funded_ledger.add_assignment(Assignment(date=utc(2024, 2, 1), budget_id=groceries.id, amount=999))

    assert funded_ledger.assigned_for_month(date(2024, 1, 1)) == 4600


def test_split_transaction_feeds_each_budget(funded_ledger, rent, groceries, checking):
    funded_ledger.add_transaction(
        Transaction(
            date=utc(2024, 1, 18),
            account_id=checking.id,
            postings=[
                TransactionPosting(amount=-700, budget_id=rent.id),
                TransactionPosting(amount=-300, budget_id=groceries.id),
            ],
        )
    )

    assert funded_ledger.budget_activity_for_month(rent, date(2024, 1, 1)) == -700
    assert funded_ledger.budget_activity_for_month(groceries, date(2024, 1, 1)) == -300


def test_account_balances_by_status(funded_ledger, rent, checking):
    funded_ledger.get_transaction("tx_paycheck").status = "cleared"
    spend(funded_ledger, checking, rent, -2500, utc(2024, 1, 20))

    assert funded_ledger.current_balance(checking) == 7500
    assert funded_ledger.cleared_balance(checking) == 10000
    assert funded_ledger.uncleared_balance(checking) == -2500


def test_transfers_count_on_both_accounts(funded_ledger, checking, brokerage):
    funded_ledger.add_transfer(
        Transfer(
            date=utc(2024, 1, 20),
            from_account_id=checking.id,
            to_account_id=brokerage.id,
            amount=3000,
            from_status="cleared",
        )
    )

    assert funded_ledger.current_balance(checking) == 7000
    assert funded_ledger.current_balance(brokerage) == 3000
    assert funded_ledger.cleared_balance(checking) == -3000
    assert funded_ledger.uncleared_balance(brokerage) == 3000
    assert funded_ledger.net_worth() == 10000


def test_balance_at_date_is_inclusive(funded_ledger, rent, checking):
    spend(funded_ledger, checking, rent, -1000, utc(2024, 1, 20, 22))

    assert funded_ledger.account_balance_at_date(checking, date(2024, 1, 19)) == 10000
    assert funded_ledger.account_balance_at_date(checking, date(2024, 1, 20)) == 9000
    assert funded_ledger.net_worth(date(2024, 1, 14)) == 0


def test_dangling_references_are_ignored(funded_ledger, checking):
    funded_ledger.add_transaction(
        Transaction(
            date=utc(2024, 1, 10),
            account_id=checking.id,
            payee_id="payee_gone",
            postings=[TransactionPosting(amount=-100, budget_id="budget_gone")],
        )
    )

    assert funded_ledger.get_payee("payee_gone") is None
    assert funded_ledger.get_budget("budget_gone") is None
    assert funded_ledger.current_balance(checking) == 9900


def test_budget_groups(ledger, rent, groceries):
    loose = ledger.add_budget(Budget(name="Gifts"))
    groups = ledger.budget_groups()

    assert list(groups) == ["Bills", None]
    assert groups["Bills"] == [rent, groceries]
    assert groups[None] == [loose]


def test_account_register(funded_ledger, rent, checking, brokerage):
    rent_paid = spend(funded_ledger, checking, rent, -1000, utc(2024, 1, 20))
    invested = funded_ledger.add_transfer(
        Transfer(date=utc(2024, 1, 21), from_account_id=checking.id, to_account_id=brokerage.id, amount=500)
    )

    assert funded_ledger.transactions_for_account(checking) == [funded_ledger.get_transaction("tx_paycheck"), rent_paid]
    assert funded_ledger.transactions_for_account(brokerage) == []
    assert funded_ledger.transfers_for_account(checking) == [invested]
    assert funded_ledger.transfers_for_account(brokerage) == [invested]


def test_posting_lookup(funded_ledger):
    tx = funded_ledger.get_transaction("tx_paycheck")
    posting = tx.postings[0]

    assert funded_ledger.get_posting(posting.id) is posting
    assert funded_ledger.posting_owner(posting.id) == (tx, posting)
    assert funded_ledger.get_posting("missing") is None
    assert funded_ledger.transaction_postings == [posting]


def test_posting_lookup_follows_direct_edits(funded_ledger):
    """Collections edited without going through the ledger are still indexed"""
    tx = funded_ledger.get_transaction("tx_paycheck")
    extra = TransactionPosting(amount=5)
    tx.postings.append(extra)

    assert funded_ledger.posting_owner(extra.id) == (tx, extra)

    funded_ledger.transactions.remove(tx)
    assert funded_ledger.get_posting(extra.id) is None


def test_goal_for_budget_skips_archived(ledger, rent):
    ledger.add_goal(Goal(budget_id=rent.id, target_amount=8000, is_archived=True))
    goal = ledger.add_goal(Goal(budget_id=rent.id, target_amount=5000))

    assert ledger.goal_for_budget(rent) is goal
    assert ledger.get_goal(goal.id) is goal
