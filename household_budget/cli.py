"""Console interface for the household budget tracker."""

from __future__ import annotations

import argparse
import json
import sys
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import List, Optional

from budget_core.aggregation import member_name
from budget_core.exceptions import PersistenceError, RecordNotFoundError, ValidationError
from budget_core.models import Transaction, parse_date
from budget_core.services import (
    BudgetApp,
    clear_all,
    dump_export,
    import_data,
    open_budget,
)
from budget_core.settings import Settings, configure_logging
from budget_core.sweeper import SweepReport
from budget_core.validators import DEFAULT_CATEGORIES

STATUS_LABELS = {
    "on_track": "On track",
    "high_spending": "High spending",
    "over_budget": "Over budget",
}


def _parse_date(value: str) -> str:
    try:
        parse_date(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(
            f"Invalid date '{value}'. Expected format YYYY-MM-DD."
        ) from exc
    return value


def _parse_amount(value: str) -> str:
    try:
        Decimal(value)
    except InvalidOperation as exc:
        raise argparse.ArgumentTypeError("Amount must be a numeric value") from exc
    return value


def _plural(count: int, word: str) -> str:
    return f"{count} {word}{'' if count == 1 else 's'}"


def _format_transaction(transaction: Transaction, name: str) -> str:
    return (
        f"[{transaction.id}] {transaction.date.isoformat()} {transaction.amount:.2f}\n"
        f"  Category: {transaction.category} | By: {name}\n"
        f"  Description: {transaction.description}\n"
    )


def _print_cleanup(report: SweepReport) -> None:
    print(report.message())


def handle_budget(args: argparse.Namespace, app: BudgetApp) -> None:
    if args.command == "set":
        config = app.config_store.set_budget(args.amount)
        print(f"Budget updated: {config.budget:.2f}")
    elif args.command == "show":
        config = app.config_store.load()
        print(f"Budget: {config.budget:.2f}")


def handle_member(args: argparse.Namespace, app: BudgetApp) -> None:
    if args.command == "add":
        member = app.config_store.add_member(args.name)
        print(f"{member.name} added successfully! (id {member.id})")
    elif args.command == "remove":
        member = app.config_store.remove_member(args.id)
        if member is None:
            print(f"No member with id {args.id}.")
        else:
            print(f"Member {member.name} deleted with all of their transactions.")
    elif args.command == "list":
        members = app.config_store.load().members
        if not members:
            print("No members added yet.")
            return
        for member in members:
            print(f"[{member.id}] {member.name}")


def handle_transaction(args: argparse.Namespace, app: BudgetApp) -> None:
    if args.command == "add":
        payload = {
            "member_id": args.member_id,
            "amount": args.amount,
            "category": args.category,
            "description": args.description,
            "date": args.date,
        }
        transaction = app.transactions.add(payload)
        name = member_name(app.config_store.load(), transaction.member_id)
        print("Transaction added:\n" + _format_transaction(transaction, name))
    elif args.command == "list":
        transactions = app.transactions.list()
        if not transactions:
            print("No transactions yet.")
            return
        config = app.config_store.load()
        print(f"Found {_plural(len(transactions), 'transaction')}:")
        for transaction in transactions:
            print(_format_transaction(transaction, member_name(config, transaction.member_id)))
    elif args.command == "delete":
        transaction = app.transactions.delete(args.id)
        print(f"Transaction {transaction.id} deleted.")
    elif args.command == "categories":
        print("\n".join(DEFAULT_CATEGORIES))


def handle_summary(args: argparse.Namespace, app: BudgetApp) -> None:
    summary = app.ledger.summary()
    totals = summary.totals
    print(f"Budget:    {totals.budget:.2f}")
    print(f"Spent:     {totals.total_spent:.2f} ({_plural(totals.transaction_count, 'transaction')})")
    print(f"Remaining: {totals.total_remaining:.2f} ({totals.remaining_percentage:.0f}% available)")
    print(f"Progress:  {totals.percentage:.1f}% - {STATUS_LABELS[summary.status]}")
    if not summary.members:
        print("No members yet.")
        return
    print("Spending by member:")
    for entry in summary.members:
        print(f"  {entry.name}: {entry.amount:.2f} ({_plural(entry.count, 'transaction')})")


def handle_stats(args: argparse.Namespace, app: BudgetApp) -> None:
    stats = app.ledger.storage_stats()
    config = app.config_store.load()
    if stats.date_count == 0:
        print("No transaction files yet.")
    else:
        print(
            f"{_plural(stats.date_count, 'date file')}, "
            f"{_plural(stats.transaction_count, 'total transaction')}"
        )
        print(f"Range: {stats.oldest_date.isoformat()} to {stats.newest_date.isoformat()}")
    print(f"Last cleanup: {config.to_dict()['lastCleanup']}")


def handle_cleanup(args: argparse.Namespace, app: BudgetApp) -> None:
    report = app.sweeper.sweep()
    if report is None or not report.changed:
        print("Nothing to clean up.")
    # A changed report has already been printed by the cleanup callback.


def handle_export(args: argparse.Namespace, app: BudgetApp) -> None:
    text = dump_export(app.ledger.snapshot())
    if args.output is None:
        print(text)
        return
    try:
        args.output.write_text(text + "\n", encoding="utf-8")
    except OSError as exc:
        raise PersistenceError(f"Unable to write to {args.output}") from exc
    print(f"Data exported to {args.output}")


def handle_import(args: argparse.Namespace, app: BudgetApp) -> None:
    try:
        document = json.loads(args.file.read_text(encoding="utf-8"))
    except OSError as exc:
        raise PersistenceError(f"Unable to read from {args.file}") from exc
    except json.JSONDecodeError as exc:
        raise ValidationError(f"{args.file} is not valid JSON") from exc
    count = import_data(document, app.config_store, app.buckets)
    print(f"Imported {_plural(count, 'transaction')}.")


def handle_clear(args: argparse.Namespace, app: BudgetApp) -> None:
    if not args.yes:
        raise ValidationError("Refusing to clear all data without --yes")
    clear_all(app.config_store, app.buckets)
    print("All data cleared!")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Household Budget CLI")
    parser.add_argument(
        "--data-dir",
        type=Path,
        help="Directory to store JSON data (default: $BUDGET_TRACKER_DATA_DIR or ./data)",
    )
    parser.add_argument(
        "--mirror-url",
        help="Mirror endpoint URL, e.g. http://localhost:5000/api/transactions",
    )

    subparsers = parser.add_subparsers(dest="entity", required=True)

    budget_parser = subparsers.add_parser("budget", help="Manage the total budget")
    budget_sub = budget_parser.add_subparsers(dest="command", required=True)
    budget_set = budget_sub.add_parser("set", help="Set the total budget")
    budget_set.add_argument("amount", type=_parse_amount)
    budget_sub.add_parser("show", help="Show the total budget")

    member_parser = subparsers.add_parser("member", help="Manage household members")
    member_sub = member_parser.add_subparsers(dest="command", required=True)
    member_add = member_sub.add_parser("add", help="Add a member")
    member_add.add_argument("name")
    member_remove = member_sub.add_parser(
        "remove", help="Remove a member and all of their transactions"
    )
    member_remove.add_argument("id")
    member_sub.add_parser("list", help="List members")

    tx_parser = subparsers.add_parser("transaction", help="Manage transactions")
    tx_sub = tx_parser.add_subparsers(dest="command", required=True)
    tx_add = tx_sub.add_parser("add", help="Add a transaction")
    tx_add.add_argument("member_id")
    tx_add.add_argument("amount", type=_parse_amount)
    tx_add.add_argument("category")
    tx_add.add_argument("description")
    tx_add.add_argument("--date", type=_parse_date, help="Defaults to today")
    tx_sub.add_parser("list", help="List transactions, newest first")
    tx_delete = tx_sub.add_parser("delete", help="Delete a transaction")
    tx_delete.add_argument("id")
    tx_sub.add_parser("categories", help="Show suggested categories")

    subparsers.add_parser("summary", help="Show budget totals and member spend")
    subparsers.add_parser("stats", help="Show storage statistics")
    subparsers.add_parser("cleanup", help="Delete transactions older than 35 days")

    export_parser = subparsers.add_parser("export", help="Export all data as JSON")
    export_parser.add_argument("--output", type=Path)

    import_parser = subparsers.add_parser("import", help="Replace all data from an export")
    import_parser.add_argument("file", type=Path)

    clear_parser = subparsers.add_parser("clear", help="Delete all members, transactions and budget")
    clear_parser.add_argument("--yes", action="store_true", help="Confirm the deletion")

    return parser


HANDLERS = {
    "budget": handle_budget,
    "member": handle_member,
    "transaction": handle_transaction,
    "summary": handle_summary,
    "stats": handle_stats,
    "cleanup": handle_cleanup,
    "export": handle_export,
    "import": handle_import,
    "clear": handle_clear,
}


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    settings = Settings.from_env()
    configure_logging(settings.log_level)

    try:
        app = open_budget(
            args.data_dir or settings.data_dir,
            mirror_url=args.mirror_url or settings.mirror_url,
            mirror_timeout=settings.mirror_timeout,
            on_cleanup=_print_cleanup,
        )
    except PersistenceError as exc:
        print(f"Storage error: {exc}", file=sys.stderr)
        return 1

    try:
        HANDLERS[args.entity](args, app)
    except ValidationError as exc:
        print(f"Validation error: {exc}", file=sys.stderr)
        return 1
    except RecordNotFoundError as exc:
        print(str(exc), file=sys.stderr)
        return 1
    except PersistenceError as exc:
        print(f"Storage error: {exc}", file=sys.stderr)
        return 1
    finally:
        app.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
