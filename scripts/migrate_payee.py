#!/usr/bin/env python3
"""Move payee_id from transaction postings to their transactions in a ledger file."""

from __future__ import annotations

import argparse
import json
import shutil
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from peanuts_budget.infrastructure.observability.logging import setup_logging
from peanuts_budget.infrastructure.serialization.migrations import (
    migrate_payee_to_transaction,
    needs_payee_migration,
)


def main(input_path: Path, output_path: Path | None = None) -> int:
    if not input_path.exists():
        print(f"File not found: {input_path}", file=sys.stderr)
        return 1

    try:
        document = json.loads(input_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        print(f"Not a JSON file: {e}", file=sys.stderr)
        return 1

    if not isinstance(document, dict) or not isinstance(document.get("transactions"), list) \
            or not isinstance(document.get("transaction_postings"), list):
        print("Not a ledger file: missing transactions or transaction_postings", file=sys.stderr)
        return 1

    if not needs_payee_migration(document):
        print("Nothing to migrate, postings carry no payee_id.")
        return 0

    report = migrate_payee_to_transaction(document)

    target = output_path or input_path
    if output_path is None:
        backup = input_path.with_name(input_path.name + ".bak")
        shutil.copyfile(input_path, backup)
        print(f"Backup written to {backup}")

    target.write_text(json.dumps(document, indent=2), encoding="utf-8")

    print(f"Postings with a payee: {report.postings_with_payee}")
    print(f"Transactions migrated: {report.transactions_migrated}")
    print(f"Postings stripped: {report.postings_stripped}")
    if report.conflicting_transactions:
        print(f"Transactions with conflicting payees ({len(report.conflicting_transactions)}):")
        for transaction_id in report.conflicting_transactions:
            print(f"  {transaction_id}")
    print(f"Migrated ledger written to {target}")
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Move payees from postings to transactions.")
    parser.add_argument("input", type=Path, help="Ledger JSON file")
    parser.add_argument("-o", "--output", type=Path, help="Write here instead of migrating in place")
    parser.add_argument("--log-level", default=None, help="Log level for the JSON logs")
    args = parser.parse_args()
    setup_logging(args.log_level)
    sys.exit(main(args.input, args.output))
