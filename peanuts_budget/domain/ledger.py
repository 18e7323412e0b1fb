"""Ledger aggregate - owns every entity and derives balances and budget math from them"""

import threading
from contextlib import contextmanager
from dataclasses import fields
from datetime import date, datetime
from typing import Callable, Dict, Iterator, List, Optional, Tuple

from peanuts_budget.config import settings
from peanuts_budget.domain.exceptions import EmptyTransactionError, UnknownEntityError
from peanuts_budget.domain.models import (
    ACCOUNT_BUDGET,
    STATUS_CLEARED,
    STATUS_OPEN,
    Account,
    Assignment,
    Budget,
    BudgetCategory,
    Goal,
    Payee,
    RecurringTemplate,
    Transaction,
    TransactionPosting,
    Transfer,
)
from peanuts_budget.utils.date_utils import end_of_month, get_timezone, is_same_month, local_day

Subscriber = Callable[[int], None]


def _find(collection, entity_id: Optional[str]):
    if entity_id is None:
        return None
    return next((entity for entity in collection if entity.id == entity_id), None)


class Ledger:
    """
    Aggregate root for one budget file.

    Entities reference each other by id; lookups of ids that no longer
    resolve return None and are ignored by every calculation. Postings are
    owned by their transaction only, the flat posting view and the id index
    are derived from `transactions`.

    Every mutating method runs inside `mutation()`, which serializes writers
    and bumps `version` once the outermost mutation has finished.
    """

    def __init__(self, name: str = "", source: str = "", file_name: str = ""):
        self.name = name
        self.source = source
        self.file_name = file_name

        self.accounts: List[Account] = []
        self.payees: List[Payee] = []
        self.budget_categories: List[BudgetCategory] = []
        self.budgets: List[Budget] = []
        self.transactions: List[Transaction] = []
        self.transfers: List[Transfer] = []
        self.assignments: List[Assignment] = []
        self.recurring_templates: List[RecurringTemplate] = []
        self.goals: List[Goal] = []

        self._version = 0
        self._subscribers: List[Subscriber] = []
        self._lock = threading.RLock()
        self._mutation_depth = 0
        self._posting_index: Dict[str, Tuple[Transaction, TransactionPosting]] = {}
        self._posting_index_version = -1

    @classmethod
    def create(cls, name: str = "", inflow_name: str | None = None) -> "Ledger":
        """New empty ledger with its To-Be-Budgeted budget"""
        ledger = cls(name=name)
        ledger.budgets.append(Budget(name=inflow_name or settings.inflow_budget_name, is_to_be_budgeted=True))
        return ledger

    # ------------------------------------------------------------------
    # Change notification
    # ------------------------------------------------------------------

    @property
    def version(self) -> int:
        return self._version

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Call `callback(version)` after each committed mutation; returns an unsubscribe function"""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    @contextmanager
    def mutation(self) -> Iterator["Ledger"]:
        """
        Single-writer critical section.

        Re-entrant: nested mutations are folded into the outermost one, so
        subscribers see exactly one notification, after all changes are in.
        A block that raises out of the outermost section is not counted.
        """
        with self._lock:
            self._mutation_depth += 1
            try:
                yield self
            finally:
                self._mutation_depth -= 1
            if self._mutation_depth == 0:
                self._version += 1
                for callback in list(self._subscribers):
                    callback(self._version)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_account(self, account_id: Optional[str]) -> Optional[Account]:
        return _find(self.accounts, account_id)

    def get_payee(self, payee_id: Optional[str]) -> Optional[Payee]:
        return _find(self.payees, payee_id)

    def get_budget_category(self, category_id: Optional[str]) -> Optional[BudgetCategory]:
        return _find(self.budget_categories, category_id)

    def get_budget(self, budget_id: Optional[str]) -> Optional[Budget]:
        return _find(self.budgets, budget_id)

    def get_transaction(self, transaction_id: Optional[str]) -> Optional[Transaction]:
        return _find(self.transactions, transaction_id)

    def get_transfer(self, transfer_id: Optional[str]) -> Optional[Transfer]:
        return _find(self.transfers, transfer_id)

    def get_template(self, template_id: Optional[str]) -> Optional[RecurringTemplate]:
        return _find(self.recurring_templates, template_id)

    def get_goal(self, goal_id: Optional[str]) -> Optional[Goal]:
        return _find(self.goals, goal_id)

    def goal_for_budget(self, budget: Budget) -> Optional[Goal]:
        return next((g for g in self.goals if g.budget_id == budget.id and not g.is_archived), None)

    def get_posting(self, posting_id: str) -> Optional[TransactionPosting]:
        entry = self.posting_owner(posting_id)
        return entry[1] if entry else None

    def posting_owner(self, posting_id: str) -> Optional[Tuple[Transaction, TransactionPosting]]:
        """(transaction, posting) for a posting id, via the derived index"""
        if self._posting_index_version != self._version:
            self._rebuild_posting_index()
        entry = self._posting_index.get(posting_id)
        if entry is None or not self._still_owned(*entry):
            # Collections may have been edited directly, outside mutation()
            self._rebuild_posting_index()
            entry = self._posting_index.get(posting_id)
        return entry

    def _still_owned(self, transaction: Transaction, posting: TransactionPosting) -> bool:
        return any(p is posting for p in transaction.postings) and any(
            t is transaction for t in self.transactions
        )

    def _rebuild_posting_index(self) -> None:
        self._posting_index = {
            posting.id: (transaction, posting)
            for transaction in self.transactions
            for posting in transaction.postings
        }
        self._posting_index_version = self._version

    @property
    def transaction_postings(self) -> List[TransactionPosting]:
        """Flat view of every posting, in transaction order"""
        return [posting for transaction in self.transactions for posting in transaction.postings]

    @property
    def inflow_budget(self) -> Optional[Budget]:
        return next((b for b in self.budgets if b.is_to_be_budgeted), None)

    @property
    def spending_budgets(self) -> List[Budget]:
        """All budgets except To-Be-Budgeted"""
        return [b for b in self.budgets if not b.is_to_be_budgeted]

    def budget_groups(self) -> Dict[Optional[str], List[Budget]]:
        """Spending budgets grouped by category name; uncategorized budgets under None, last"""
        groups: Dict[Optional[str], List[Budget]] = {c.name: [] for c in self.budget_categories}
        uncategorized: List[Budget] = []
        for budget in self.spending_budgets:
            category = self.get_budget_category(budget.budget_category_id)
            if category is None:
                uncategorized.append(budget)
            else:
                groups[category.name].append(budget)
        if uncategorized:
            groups[None] = uncategorized
        return groups

    def transactions_for_account(self, account: Account) -> List[Transaction]:
        return [t for t in self.transactions if t.account_id == account.id]

    def transfers_for_account(self, account: Account) -> List[Transfer]:
        return [t for t in self.transfers if account.id in (t.from_account_id, t.to_account_id)]

    def transactions_for_template(self, template: RecurringTemplate) -> List[Transaction]:
        return [t for t in self.transactions if t.recurring_template_id == template.id]

    # ------------------------------------------------------------------
    # Account balances
    # ------------------------------------------------------------------

    def _account_total(self, account: Account, statuses: Tuple[str, ...], through: Optional[date] = None) -> int:
        tz = get_timezone()

        def included(value) -> bool:
            return through is None or local_day(value, tz) <= through

        total = sum(
            t.amount
            for t in self.transactions
            if t.account_id == account.id and t.status in statuses and included(t.date)
        )
        for transfer in self.transfers:
            if not included(transfer.date):
                continue
            if transfer.to_account_id == account.id and transfer.to_status in statuses:
                total += transfer.amount
            if transfer.from_account_id == account.id and transfer.from_status in statuses:
                total -= transfer.amount
        return total

    def current_balance(self, account: Account) -> int:
        return self._account_total(account, (STATUS_OPEN, STATUS_CLEARED))

    def cleared_balance(self, account: Account) -> int:
        return self._account_total(account, (STATUS_CLEARED,))

    def uncleared_balance(self, account: Account) -> int:
        return self._account_total(account, (STATUS_OPEN,))

    def account_balance_at_date(self, account: Account, day: date | datetime) -> int:
        """Balance including everything dated on or before `day`"""
        return self._account_total(account, (STATUS_OPEN, STATUS_CLEARED), local_day(day))

    def net_worth(self, day: date | datetime | None = None) -> int:
        """Sum of all account balances, budget and tracking alike"""
        if day is None:
            return sum(self.current_balance(a) for a in self.accounts)
        return sum(self.account_balance_at_date(a, day) for a in self.accounts)

    # ------------------------------------------------------------------
    # Budget math
    # ------------------------------------------------------------------

    def _tracking_account_ids(self) -> set:
        return {a.id for a in self.accounts if a.is_tracking}

    def budget_available_for_month(self, budget: Budget, month: date | datetime) -> int:
        """
        Cumulative available balance of `budget` through the end of `month`.

        Requirements:
        - Assignments and postings dated on any day up to and including the
          last day of the month count
        - Postings on tracking accounts never count
        - For To-Be-Budgeted, "assigned" is minus everything assigned to
          other budgets, and transfers between a budget and a tracking
          account move money into (destination is budget) or out of
          (destination is tracking) the budgeting system
        """
        tz = get_timezone()
        cutoff = end_of_month(month)
        tracking = self._tracking_account_ids()

        activity = sum(
            posting.amount
            for t in self.transactions
            if t.account_id not in tracking and local_day(t.date, tz) <= cutoff
            for posting in t.postings
            if posting.budget_id == budget.id
        )

        if budget.is_to_be_budgeted:
            assigned = -sum(
                a.amount
                for a in self.assignments
                if a.budget_id != budget.id and local_day(a.date, tz) <= cutoff
            )
            activity += self._cross_type_transfer_activity(cutoff)
        else:
            assigned = sum(
                a.amount
                for a in self.assignments
                if a.budget_id == budget.id and local_day(a.date, tz) <= cutoff
            )

        return assigned + activity

    def _cross_type_transfer_activity(self, cutoff: date) -> int:
        tz = get_timezone()
        activity = 0
        for transfer in self.transfers:
            if local_day(transfer.date, tz) > cutoff:
                continue
            source = self.get_account(transfer.from_account_id)
            destination = self.get_account(transfer.to_account_id)
            # Transfers with a deleted endpoint have no effect
            if source is None or destination is None or source.type == destination.type:
                continue
            if destination.type == ACCOUNT_BUDGET:
                activity += transfer.amount
            else:
                activity -= transfer.amount
        return activity

    def budget_activity_for_month(self, budget: Budget, month: date | datetime) -> int:
        """Posting total against `budget` within the calendar month only"""
        tracking = self._tracking_account_ids()
        return sum(
            posting.amount
            for t in self.transactions
            if t.account_id not in tracking and is_same_month(local_day(t.date), month)
            for posting in t.postings
            if posting.budget_id == budget.id
        )

    def budget_assigned_for_month(self, budget: Budget, month: date | datetime) -> int:
        return sum(
            a.amount
            for a in self.assignments
            if a.budget_id == budget.id and is_same_month(local_day(a.date), month)
        )

    def assigned_for_month(self, month: date | datetime) -> int:
        """Everything assigned to any budget within the month"""
        return sum(a.amount for a in self.assignments if is_same_month(local_day(a.date), month))

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def _add(self, collection: list, entity):
        with self.mutation():
            collection.append(entity)
        return entity

    def add_account(self, account: Account) -> Account:
        return self._add(self.accounts, account)

    def add_payee(self, payee: Payee) -> Payee:
        return self._add(self.payees, payee)

    def add_budget_category(self, category: BudgetCategory) -> BudgetCategory:
        return self._add(self.budget_categories, category)

    def add_budget(self, budget: Budget) -> Budget:
        return self._add(self.budgets, budget)

    def add_transaction(self, transaction: Transaction) -> Transaction:
        return self._add(self.transactions, transaction)

    def add_transfer(self, transfer: Transfer) -> Transfer:
        return self._add(self.transfers, transfer)

    def add_assignment(self, assignment: Assignment) -> Assignment:
        return self._add(self.assignments, assignment)

    def add_template(self, template: RecurringTemplate) -> RecurringTemplate:
        return self._add(self.recurring_templates, template)

    def add_goal(self, goal: Goal) -> Goal:
        return self._add(self.goals, goal)

    def _require(self, collection: list, entity, kind: str) -> None:
        if not any(item is entity for item in collection):
            raise UnknownEntityError(f"{kind} {entity.id} is not part of this ledger")

    def _remove(self, collection: list, entity, kind: str) -> None:
        with self.mutation():
            self._require(collection, entity, kind)
            collection[:] = [item for item in collection if item is not entity]

    def add_posting(self, transaction: Transaction, posting: TransactionPosting | None = None) -> TransactionPosting:
        """Append a posting (a zero-amount one by default), turning the transaction into a split"""
        posting = posting or TransactionPosting()
        with self.mutation():
            self._require(self.transactions, transaction, "Transaction")
            transaction.postings.append(posting)
        return posting

    def remove_posting(self, transaction: Transaction, posting: TransactionPosting) -> None:
        with self.mutation():
            self._require(self.transactions, transaction, "Transaction")
            if not any(p is posting for p in transaction.postings):
                raise UnknownEntityError(f"Posting {posting.id} does not belong to transaction {transaction.id}")
            if len(transaction.postings) == 1:
                raise EmptyTransactionError(f"Cannot remove the last posting of transaction {transaction.id}")
            transaction.postings[:] = [p for p in transaction.postings if p is not posting]

    def delete_transaction(self, transaction: Transaction) -> None:
        """Remove a transaction together with all of its postings"""
        self._remove(self.transactions, transaction, "Transaction")

    def delete_transfer(self, transfer: Transfer) -> None:
        self._remove(self.transfers, transfer, "Transfer")

    def delete_assignment(self, assignment: Assignment) -> None:
        self._remove(self.assignments, assignment, "Assignment")

    def delete_template(self, template: RecurringTemplate) -> None:
        """Remove a template; transactions it already created stay"""
        self._remove(self.recurring_templates, template, "Recurring template")

    def archive_account(self, account: Account, archived: bool = True) -> None:
        self.update(account, archived=archived)

    def update(self, entity, **changes) -> None:
        """Set fields on an entity as one committed mutation"""
        names = {f.name for f in fields(entity)}
        unknown = set(changes) - names
        if unknown:
            raise TypeError(f"{type(entity).__name__} has no field(s): {', '.join(sorted(unknown))}")
        if "postings" in changes and not changes["postings"]:
            raise EmptyTransactionError(f"Transaction {entity.id} must have at least one posting")
        with self.mutation():
            for name, value in changes.items():
                setattr(entity, name, list(value) if name == "postings" else value)
            if isinstance(entity, RecurringTemplate):
                entity.normalize_dates()

    # ------------------------------------------------------------------
    # Conversions
    # ------------------------------------------------------------------

    def convert_transaction_to_transfer(self, transaction: Transaction, other_account: Account) -> Transfer:
        """
        Replace a transaction with a transfer to or from `other_account`.

        An outflow (negative first posting) becomes a transfer from the
        transaction's account; an inflow becomes a transfer into it.
        """
        posting = transaction.postings[0]
        if posting.amount < 0:
            transfer = Transfer(
                date=transaction.date,
                from_account_id=transaction.account_id,
                to_account_id=other_account.id,
                amount=abs(posting.amount),
                from_status=transaction.status,
                note=posting.note,
            )
        else:
            transfer = Transfer(
                date=transaction.date,
                from_account_id=other_account.id,
                to_account_id=transaction.account_id,
                amount=posting.amount,
                to_status=transaction.status,
                note=posting.note,
            )
        with self.mutation():
            self.delete_transaction(transaction)
            self.transfers.append(transfer)
        return transfer

    def convert_transfer_to_transaction(self, transfer: Transfer, account: Account) -> Transaction:
        """Replace a transfer with a transaction on `account`, one of its two endpoints"""
        if account.id == transfer.from_account_id:
            amount, status = -transfer.amount, transfer.from_status
        elif account.id == transfer.to_account_id:
            amount, status = transfer.amount, transfer.to_status
        else:
            raise UnknownEntityError(f"Account {account.id} is not an endpoint of transfer {transfer.id}")
        transaction = Transaction(
            date=transfer.date,
            account_id=account.id,
            status=status,
            postings=[TransactionPosting(amount=amount, budget_id=transfer.budget_id, note=transfer.note)],
        )
        with self.mutation():
            self.delete_transfer(transfer)
            self.transactions.append(transaction)
        return transaction
