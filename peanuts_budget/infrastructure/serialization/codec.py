"""Load and save ledgers in the persisted JSON document format"""

import copy
import json
import logging
from datetime import date, datetime, tzinfo
from typing import Any, Dict, Mapping, Optional, Tuple

from pydantic import ValidationError

from peanuts_budget.config import settings
from peanuts_budget.domain.exceptions import InvalidDocumentError
from peanuts_budget.domain.ledger import Ledger
from peanuts_budget.domain.models import (
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
from peanuts_budget.infrastructure.observability.logging import log_document_loaded
from peanuts_budget.infrastructure.observability.metrics import document_load_counter
from peanuts_budget.infrastructure.serialization.migrations import (
    migrate_payee_to_transaction,
    needs_payee_migration,
)
from peanuts_budget.infrastructure.serialization.schemas import (
    AccountSchema,
    AssignmentSchema,
    BudgetCategorySchema,
    BudgetSchema,
    GoalSchema,
    LedgerDocument,
    PayeeSchema,
    RecurringTemplateSchema,
    TransactionPostingSchema,
    TransactionSchema,
    TransferSchema,
)
from peanuts_budget.utils.date_utils import get_timezone, local_day, start_of_day


def _describe_validation_error(error: ValidationError) -> str:
    problems = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"]) or "document"
        problems.append(f"{location}: {item['msg']}")
    return "Invalid ledger document - " + "; ".join(problems)


def parse_document(source: str | bytes | Mapping[str, Any]) -> Tuple[LedgerDocument, bool]:
    """
    Decode and validate a ledger document.

    Documents in the older payee-on-posting format are migrated before
    validation. Returns the document and whether it was migrated. Raises
    InvalidDocumentError for anything that is not a complete document, so a
    ledger is never partially loaded.
    """
    if isinstance(source, (str, bytes)):
        try:
            raw = json.loads(source)
        except json.JSONDecodeError as e:
            document_load_counter.labels(outcome="invalid").inc()
            raise InvalidDocumentError(f"Ledger document is not valid JSON: {e}") from e
    else:
        raw = copy.deepcopy(dict(source))

    if not isinstance(raw, dict):
        document_load_counter.labels(outcome="invalid").inc()
        raise InvalidDocumentError("Ledger document must be a JSON object")

    migrated = needs_payee_migration(raw)
    if migrated:
        migrate_payee_to_transaction(raw)
        document_load_counter.labels(outcome="migrated").inc()

    try:
        return LedgerDocument.model_validate(raw), migrated
    except ValidationError as e:
        document_load_counter.labels(outcome="invalid").inc()
        raise InvalidDocumentError(_describe_validation_error(e)) from e


def load_ledger(source: str | bytes | Mapping[str, Any], file_name: str = "") -> Ledger:
    """Build a Ledger from a JSON string or an already decoded document"""
    document, migrated = parse_document(source)
    ledger = ledger_from_document(document)
    if isinstance(source, bytes):
        ledger.source = source.decode("utf-8")
    elif isinstance(source, str):
        ledger.source = source
    ledger.file_name = file_name
    document_load_counter.labels(outcome="ok").inc()
    log_document_loaded(
        file_name,
        migrated,
        {
            "accounts": len(ledger.accounts),
            "budgets": len(ledger.budgets),
            "transactions": len(ledger.transactions),
            "recurring_templates": len(ledger.recurring_templates),
        },
    )
    return ledger


def _resolve(ids: set, ref: Optional[str], kind: str, owner_id: str) -> Optional[str]:
    """Keep a reference only if it points at something in the document"""
    if ref is None or ref in ids:
        return ref
    logging.debug(
        f"Dropping dangling {kind} reference",
        extra={"owner_id": owner_id, "ref": ref},
    )
    return None


def ledger_from_document(document: LedgerDocument, tz: tzinfo | None = None) -> Ledger:
    tz = tz or get_timezone()
    ledger = Ledger(name=document.name)

    ledger.accounts = [Account(id=a.id, name=a.name, type=a.type, archived=a.archived) for a in document.accounts]
    ledger.budget_categories = [BudgetCategory(id=c.id, name=c.name) for c in document.budget_categories]
    ledger.payees = [Payee(id=p.id, name=p.name) for p in document.payees]

    account_ids = {a.id for a in ledger.accounts}
    category_ids = {c.id for c in ledger.budget_categories}
    payee_ids = {p.id for p in ledger.payees}

    ledger.budgets = [
        Budget(
            id=b.id,
            name=b.name,
            budget_category_id=_resolve(category_ids, b.budget_category_id, "budget category", b.id),
            is_to_be_budgeted=b.is_to_be_budgeted,
        )
        for b in document.budgets
    ]
    budget_ids = {b.id for b in ledger.budgets}

    postings_by_id: Dict[str, TransactionPostingSchema] = {p.id: p for p in document.transaction_postings}

    for t in document.transactions:
        postings = [
            TransactionPosting(
                id=p.id,
                amount=p.amount,
                budget_id=_resolve(budget_ids, p.budget_id, "budget", p.id),
                note=p.note,
            )
            for p in (postings_by_id.get(pid) for pid in t.transaction_posting_ids)
            if p is not None
        ]
        if not postings:
            raise InvalidDocumentError(f"Invalid ledger document - transaction {t.id} has no postings")
        ledger.transactions.append(
            Transaction(
                id=t.id,
                date=t.date,
                account_id=_resolve(account_ids, t.account_id, "account", t.id),
                payee_id=_resolve(payee_ids, t.payee_id, "payee", t.id),
                status=t.status,
                # Kept even if the template was deleted: it still guards against re-creation
                recurring_template_id=t.recurring_template_id,
                postings=postings,
            )
        )

    owned = {p.id for t in ledger.transactions for p in t.postings}
    orphaned = len(postings_by_id) - len(owned & set(postings_by_id))
    if orphaned:
        logging.debug("Dropping postings without a transaction", extra={"count": orphaned})

    ledger.recurring_templates = [
        RecurringTemplate(
            id=r.id,
            rrule_string=r.rrule_string or settings.default_rrule,
            start_date=local_day(r.start_date, tz),
            next_scheduled_date=local_day(r.next_scheduled_date, tz),
            end_date=local_day(r.end_date, tz) if r.end_date else None,
            account_id=_resolve(account_ids, r.account_id, "account", r.id),
            amount=r.amount,
            budget_id=_resolve(budget_ids, r.budget_id, "budget", r.id),
            payee_id=_resolve(payee_ids, r.payee_id, "payee", r.id),
            note=r.note,
        )
        for r in document.recurring_templates
    ]

    ledger.assignments = [
        Assignment(
            id=a.id,
            date=a.date,
            budget_id=_resolve(budget_ids, a.budget_id, "budget", a.id),
            amount=a.amount,
        )
        for a in document.assignments
    ]

    ledger.transfers = [
        Transfer(
            id=t.id,
            date=t.date,
            from_account_id=_resolve(account_ids, t.from_account_id, "account", t.id),
            to_account_id=_resolve(account_ids, t.to_account_id, "account", t.id),
            amount=t.amount,
            from_status=t.from_status,
            to_status=t.to_status,
            note=t.note,
            budget_id=_resolve(budget_ids, t.budget_id, "budget", t.id),
        )
        for t in document.transfers
    ]

    ledger.goals = [
        Goal(
            id=g.id,
            type=g.type,
            target_amount=g.target_amount,
            budget_id=_resolve(budget_ids, g.budget_id, "budget", g.id),
            is_archived=g.is_archived,
            **({"created_at": g.created_at} if g.created_at else {}),
        )
        for g in document.goals
    ]

    return ledger


def _instant(value: date | datetime, tz: tzinfo) -> datetime:
    if isinstance(value, datetime):
        return value
    return start_of_day(value, tz)


def ledger_to_document(ledger: Ledger, tz: tzinfo | None = None) -> LedgerDocument:
    tz = tz or get_timezone()
    return LedgerDocument(
        name=ledger.name,
        accounts=[
            AccountSchema(id=a.id, name=a.name, type=a.type, archived=a.archived)
            for a in ledger.accounts
        ],
        budget_categories=[BudgetCategorySchema(id=c.id, name=c.name) for c in ledger.budget_categories],
        budgets=[
            BudgetSchema(
                id=b.id,
                name=b.name,
                budget_category_id=b.budget_category_id,
                is_to_be_budgeted=b.is_to_be_budgeted,
            )
            for b in ledger.budgets
        ],
        payees=[PayeeSchema(id=p.id, name=p.name) for p in ledger.payees],
        transactions=[
            TransactionSchema(
                id=t.id,
                account_id=t.account_id,
                payee_id=t.payee_id,
                transaction_posting_ids=[p.id for p in t.postings],
                status=t.status,
                date=_instant(t.date, tz),
                recurring_template_id=t.recurring_template_id,
            )
            for t in ledger.transactions
        ],
        transaction_postings=[
            TransactionPostingSchema(id=p.id, budget_id=p.budget_id, amount=p.amount, note=p.note)
            for p in ledger.transaction_postings
        ],
        recurring_templates=[
            RecurringTemplateSchema(
                id=r.id,
                rrule_string=r.rrule_string,
                next_scheduled_date=start_of_day(r.next_scheduled_date, tz),
                start_date=start_of_day(r.start_date, tz),
                end_date=start_of_day(r.end_date, tz) if r.end_date else None,
                account_id=r.account_id,
                amount=r.amount,
                budget_id=r.budget_id,
                payee_id=r.payee_id,
                note=r.note,
            )
            for r in ledger.recurring_templates
        ],
        assignments=[
            AssignmentSchema(id=a.id, date=_instant(a.date, tz), budget_id=a.budget_id, amount=a.amount)
            for a in ledger.assignments
        ],
        transfers=[
            TransferSchema(
                id=t.id,
                from_account_id=t.from_account_id,
                to_account_id=t.to_account_id,
                amount=t.amount,
                from_status=t.from_status,
                to_status=t.to_status,
                date=_instant(t.date, tz),
                note=t.note,
                budget_id=t.budget_id,
            )
            for t in ledger.transfers
        ],
        goals=[
            GoalSchema(
                id=g.id,
                type=g.type,
                target_amount=g.target_amount,
                budget_id=g.budget_id,
                is_archived=g.is_archived,
                created_at=g.created_at,
            )
            for g in ledger.goals
        ],
    )


def dump_ledger(ledger: Ledger, indent: int | None = 2) -> str:
    """Serialize a ledger to the persisted JSON document"""
    return json.dumps(ledger_to_document(ledger).model_dump(), indent=indent)
