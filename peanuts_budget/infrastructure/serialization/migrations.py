"""One-way migrations for older ledger document formats"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping


@dataclass
class PayeeMigrationReport:
    """What the payee migration changed"""

    postings_with_payee: int = 0
    transactions_migrated: int = 0
    conflicting_transactions: List[str] = field(default_factory=list)
    postings_stripped: int = 0


def _dicts(document: Mapping[str, Any], key: str) -> List[Dict[str, Any]]:
    items = document.get(key)
    if not isinstance(items, list):
        return []
    return [item for item in items if isinstance(item, dict)]


def needs_payee_migration(document: Mapping[str, Any]) -> bool:
    """Older documents stored the payee on each posting instead of on the transaction"""
    return any("payee_id" in posting for posting in _dicts(document, "transaction_postings"))


def migrate_payee_to_transaction(document: Dict[str, Any]) -> PayeeMigrationReport:
    """
    Move `payee_id` from postings up to their transaction, in place.

    Requirements:
    - A transaction takes the payee of its first posting
    - Split transactions whose postings disagree keep the first posting's
      payee; the conflict is logged, never raised
    - `payee_id` is removed from every posting afterwards
    - Malformed entries are left for document validation to reject
    """
    report = PayeeMigrationReport()
    postings = _dicts(document, "transaction_postings")

    posting_payees = {
        posting.get("id"): posting["payee_id"]
        for posting in postings
        if posting.get("payee_id")
    }
    report.postings_with_payee = len(posting_payees)

    for transaction in _dicts(document, "transactions"):
        posting_ids = transaction.get("transaction_posting_ids")
        if not isinstance(posting_ids, list) or not posting_ids:
            continue

        payee_id = posting_payees.get(posting_ids[0])
        if not payee_id:
            continue

        distinct_payees = {posting_payees[pid] for pid in posting_ids if pid in posting_payees}
        if len(distinct_payees) > 1:
            report.conflicting_transactions.append(transaction.get("id"))
            logging.warning(
                "Transaction has different payees across postings, using the first posting's payee",
                extra={"transaction_id": transaction.get("id"), "payee_id": payee_id},
            )

        transaction["payee_id"] = payee_id
        report.transactions_migrated += 1

    for posting in postings:
        if "payee_id" in posting:
            del posting["payee_id"]
            report.postings_stripped += 1

    logging.info(
        "Migrated payees from postings to transactions",
        extra={
            "step": "payee_migration",
            "transactions_migrated": report.transactions_migrated,
            "conflicting_transactions": len(report.conflicting_transactions),
            "postings_stripped": report.postings_stripped,
        },
    )
    return report
