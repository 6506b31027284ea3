"""
Main module for the budget ledger command-line interface.

This module wires configuration, logging and the database into the
service managers and exposes them as argparse subcommands:
budgets, incomes, allocations, categories, cards, transactions, card
payments, savings plans and reports.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from tabulate import tabulate

from budgeting import BudgetManager, days_left
from card_management import CardManager
from category_management import CategoryManager
from config_manager import get_budgeting_setting, load_config
from database_ops import DatabaseManager
from exceptions import FinanceAppError
from models import BudgetStatus, CardType, CategoryGroup, PeriodType, StrategyType, TransactionType
from money import format_currency
from report_generator import BudgetReportGenerator
from savings_management import SavingsManager
from transaction_management import TransactionManager
from utils import ensure_data_dir, resolve_connection_string, resolve_log_path

# Configure module-level logger
logger = logging.getLogger(__name__)

DEFAULT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(config: dict) -> None:
    """
    Configure logging based on config settings.

    An unknown level falls back to INFO, a format without ``%(asctime)s``
    gets it prepended, and a log file that cannot be opened only produces a
    warning.

    Args:
        config: Configuration dictionary with logging settings
    """
    log_config = config.get("logging", {}) or {}
    level_name = str(log_config.get("level") or "INFO").upper()
    log_level = logging.getLevelName(level_name)
    invalid_level = not isinstance(log_level, int)
    if invalid_level:
        log_level = logging.INFO

    log_format = log_config.get("format") or DEFAULT_LOG_FORMAT
    if "%(asctime)s" not in log_format:
        log_format = "%(asctime)s - " + log_format

    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    file_error: Optional[str] = None
    log_file = log_config.get("file")
    if log_file:
        try:
            handlers.append(logging.FileHandler(resolve_log_path(log_file)))
        except OSError as exc:
            file_error = f"Unable to open log file '{log_file}': {exc}"

    logging.basicConfig(
        level=log_level,
        format=log_format,
        handlers=handlers,
        force=True
    )

    if invalid_level:
        logger.warning(f"Invalid log level '{level_name}', using INFO")
    if file_error:
        logger.warning(file_error)


def create_connection_string(config: dict) -> str:
    """
    Create SQLAlchemy connection string from config.

    Args:
        config: Configuration dictionary with database settings

    Returns:
        SQLAlchemy connection string
    """
    return resolve_connection_string(config)


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with every subcommand."""
    parser = argparse.ArgumentParser(
        prog="budget-ledger",
        description="Period budgets, category spending and card payments",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument(
        "--config",
        "-c",
        type=str,
        default="config.yaml",
        help="Path to configuration file (default: config.yaml)"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    periods = [p.value for p in PeriodType]
    strategies = [s.value for s in StrategyType]
    groups = [g.value for g in CategoryGroup]

    # Budget command
    budget_parser = subparsers.add_parser("budget", aliases=["bud"], help="Manage budgets")
    budget_sub = budget_parser.add_subparsers(dest="budget_action", help="Budget actions")

    bud_create = budget_sub.add_parser("create", help="Create a budget")
    bud_create.add_argument("name", help="Budget name")
    bud_create.add_argument("--start", required=True, help="Start date (YYYY-MM-DD)")
    bud_create.add_argument("--period", type=str.upper, choices=periods, help="Budget period")
    bud_create.add_argument("--strategy", type=str.upper, choices=strategies, help="Budgeting strategy")
    bud_create.add_argument("--end", help="End date (YYYY-MM-DD), ONE_TIME budgets only")
    bud_create.add_argument("--recurring", action="store_true", help="Roll over at the end of each period")
    bud_create.add_argument(
        "--income", nargs=3, action="append", metavar=("AMOUNT", "FREQUENCY", "SOURCE"),
        help="Add an income (repeatable)"
    )
    bud_create.add_argument(
        "--allocate", nargs=3, action="append", metavar=("CATEGORY", "GROUP", "AMOUNT"),
        help="Allocate to a category (repeatable)"
    )

    bud_list = budget_sub.add_parser("list", help="List budgets")
    bud_list.add_argument("--status", type=str.upper, choices=[s.value for s in BudgetStatus])

    bud_current = budget_sub.add_parser("current", help="List active budgets whose period contains a day")
    bud_current.add_argument("--on", help="Day to check (YYYY-MM-DD, default: today)")

    bud_show = budget_sub.add_parser("show", help="Show a budget")
    bud_show.add_argument("budget_id", type=int)

    bud_update = budget_sub.add_parser("update", help="Update a budget")
    bud_update.add_argument("budget_id", type=int)
    bud_update.add_argument("--name")
    bud_update.add_argument("--start", help="Start date (YYYY-MM-DD)")
    bud_update.add_argument("--period", type=str.upper, choices=periods)
    bud_update.add_argument("--strategy", type=str.upper, choices=strategies)
    bud_update.add_argument("--end", help="End date (YYYY-MM-DD), ONE_TIME budgets only")
    bud_update.add_argument("--recurring", dest="recurring", action="store_true", default=None)
    bud_update.add_argument("--no-recurring", dest="recurring", action="store_false")

    for action, help_text in (
        ("complete", "Mark a budget completed"),
        ("archive", "Archive a budget"),
        ("reactivate", "Reactivate a budget"),
        ("delete", "Delete a budget with its incomes, allocations and transactions"),
    ):
        sub = budget_sub.add_parser(action, help=help_text)
        sub.add_argument("budget_id", type=int)

    bud_dup = budget_sub.add_parser("duplicate", help="Copy a budget into a new period")
    bud_dup.add_argument("budget_id", type=int)
    bud_dup.add_argument("--start", help="Start date of the copy (default: today)")

    bud_roll = budget_sub.add_parser("rollover", help="Roll recurring budgets into their next period")
    bud_roll.add_argument("budget_id", type=int, nargs="?", help="Budget to roll over (omit with --due)")
    bud_roll.add_argument("--due", action="store_true", help="Roll over every budget whose period has ended")
    bud_roll.add_argument("--as-of", help="Reference date for --due (YYYY-MM-DD)")

    # Income command
    income_parser = subparsers.add_parser("income", help="Manage budget incomes")
    income_sub = income_parser.add_subparsers(dest="income_action", help="Income actions")
    inc_add = income_sub.add_parser("add", help="Add an income to a budget")
    inc_add.add_argument("budget_id", type=int)
    inc_add.add_argument("amount", type=float)
    inc_add.add_argument("source")
    inc_add.add_argument("--frequency", type=str.upper, choices=periods, default=PeriodType.MONTHLY.value)
    inc_add.add_argument("--description")
    inc_add.add_argument("--received", action="store_true", help="Income already received")
    inc_remove = income_sub.add_parser("remove", help="Remove an income")
    inc_remove.add_argument("income_id", type=int)

    # Allocation command
    alloc_parser = subparsers.add_parser("allocation", aliases=["alloc"], help="Manage category allocations")
    alloc_sub = alloc_parser.add_subparsers(dest="allocation_action", help="Allocation actions")
    alloc_add = alloc_sub.add_parser("add", help="Allocate to a category")
    alloc_add.add_argument("budget_id", type=int)
    alloc_add.add_argument("amount", type=float)
    alloc_add.add_argument("--category-id", type=int, help="Existing category template")
    alloc_add.add_argument("--name", help="Ad-hoc category name")
    alloc_add.add_argument("--group", type=str.upper, choices=groups, default=CategoryGroup.NEEDS.value)
    alloc_update = alloc_sub.add_parser("update", help="Change an allocation")
    alloc_update.add_argument("allocation_id", type=int)
    alloc_update.add_argument("amount", type=float)
    alloc_remove = alloc_sub.add_parser("remove", help="Remove an allocation and its transactions")
    alloc_remove.add_argument("allocation_id", type=int)

    # Category command
    cat_parser = subparsers.add_parser("category", aliases=["cat"], help="Manage category templates")
    cat_sub = cat_parser.add_subparsers(dest="category_action", help="Category actions")
    cat_create = cat_sub.add_parser("create", help="Create a category")
    cat_create.add_argument("name")
    cat_create.add_argument("group", type=str.upper, choices=groups)
    cat_list = cat_sub.add_parser("list", help="List categories")
    cat_list.add_argument("--group", type=str.upper, choices=groups)
    cat_update = cat_sub.add_parser("update", help="Rename or regroup a category")
    cat_update.add_argument("category_id", type=int)
    cat_update.add_argument("--name")
    cat_update.add_argument("--group", type=str.upper, choices=groups)
    cat_delete = cat_sub.add_parser("delete", help="Delete a category")
    cat_delete.add_argument("category_id", type=int)

    # Card command
    card_parser = subparsers.add_parser("card", help="Manage payment cards")
    card_sub = card_parser.add_subparsers(dest="card_action", help="Card actions")
    card_create = card_sub.add_parser("create", help="Create a card")
    card_create.add_argument("name")
    card_create.add_argument("--type", type=str.upper, choices=[c.value for c in CardType], default=CardType.DEBIT.value)
    card_create.add_argument("--limit", type=float, help="Spending limit")
    card_sub.add_parser("list", help="List cards")
    card_show = card_sub.add_parser("show", help="Show card spending")
    card_show.add_argument("card_id", type=int)
    card_delete = card_sub.add_parser("delete", help="Delete a card")
    card_delete.add_argument("card_id", type=int)

    # Transaction command
    txn_types = [TransactionType.REGULAR.value, TransactionType.RETURN.value, TransactionType.INCOME.value]
    txn_parser = subparsers.add_parser("transaction", aliases=["txn"], help="Manage transactions")
    txn_sub = txn_parser.add_subparsers(dest="transaction_action", help="Transaction actions")
    txn_add = txn_sub.add_parser("add", help="Record a transaction")
    txn_add.add_argument("budget_id", type=int)
    txn_add.add_argument("amount", type=float)
    txn_add.add_argument("--type", type=str.upper, choices=txn_types, default=TransactionType.REGULAR.value)
    txn_add.add_argument("--category-id", type=int, help="Budget category (allocation) ID")
    txn_add.add_argument("--card-id", type=int)
    txn_add.add_argument("--name")
    txn_add.add_argument("--description")
    txn_update = txn_sub.add_parser("update", help="Edit a transaction")
    txn_update.add_argument("transaction_id", type=int)
    txn_update.add_argument("--amount", type=float)
    txn_update.add_argument("--type", type=str.upper, choices=txn_types)
    txn_update.add_argument("--category-id", type=int)
    txn_update.add_argument("--card-id", type=int)
    txn_update.add_argument("--name")
    txn_update.add_argument("--description")
    txn_delete = txn_sub.add_parser("delete", help="Delete a transaction (both sides for card payments)")
    txn_delete.add_argument("transaction_id", type=int)
    txn_list = txn_sub.add_parser("list", help="List transactions")
    txn_list.add_argument("--budget-id", type=int)
    txn_list.add_argument("--card-id", type=int)
    txn_list.add_argument("--limit", type=int, default=50)

    # Card payment command
    pay_parser = subparsers.add_parser("card-payment", aliases=["pay"], help="Card-to-card payments")
    pay_sub = pay_parser.add_subparsers(dest="payment_action", help="Card payment actions")
    pay_create = pay_sub.add_parser("create", help="Pay one card from another")
    pay_create.add_argument("from_card_id", type=int)
    pay_create.add_argument("to_card_id", type=int)
    pay_create.add_argument("amount", type=float)
    pay_create.add_argument("budget_id", type=int)
    pay_create.add_argument("--description")

    # Savings command
    sav_parser = subparsers.add_parser("savings", aliases=["sav"], help="Savings plans and pockets")
    sav_sub = sav_parser.add_subparsers(dest="savings_action", help="Savings actions")
    sav_create = sav_sub.add_parser("create", help="Create a savings plan")
    sav_create.add_argument("name")
    sav_create.add_argument("--budget-id", type=int, help="Budget the plan is funded from")
    sav_sub.add_parser("list", help="List savings plans")
    sav_show = sav_sub.add_parser("show", help="Show a savings plan with its pockets")
    sav_show.add_argument("savings_id", type=int)
    sav_delete = sav_sub.add_parser("delete", help="Delete a savings plan with its pockets")
    sav_delete.add_argument("savings_id", type=int)
    pocket_add = sav_sub.add_parser("pocket-add", help="Add a pocket to a savings plan")
    pocket_add.add_argument("savings_id", type=int)
    pocket_add.add_argument("name")
    pocket_add.add_argument("--goal", type=float, help="Goal amount")
    pocket_add.add_argument("--goal-date", help="Goal date (YYYY-MM-DD)")
    pocket_add.add_argument("--note", help="Goal note")
    pocket_update = sav_sub.add_parser("pocket-update", help="Rename a pocket or change its goal")
    pocket_update.add_argument("pocket_id", type=int)
    pocket_update.add_argument("--name")
    pocket_update.add_argument("--goal", type=float)
    pocket_update.add_argument("--goal-date")
    pocket_update.add_argument("--note")
    pocket_update.add_argument("--clear-goal", action="store_true", help="Remove the current goal")
    pocket_delete = sav_sub.add_parser("pocket-delete", help="Delete a pocket and its allocations")
    pocket_delete.add_argument("pocket_id", type=int)
    for action, help_text in (("deposit", "Put money into a pocket"), ("withdraw", "Take money out of a pocket")):
        sub = sav_sub.add_parser(action, help=help_text)
        sub.add_argument("pocket_id", type=int)
        sub.add_argument("amount", type=float)
        sub.add_argument("--note")
    sav_unallocate = sav_sub.add_parser("unallocate", help="Remove a pocket allocation")
    sav_unallocate.add_argument("allocation_id", type=int)

    # Report command
    report_parser = subparsers.add_parser("report", help="Budget reports")
    report_sub = report_parser.add_subparsers(dest="report_action", help="Report types")
    rep_budget = report_sub.add_parser("budget", help="Budget report")
    rep_budget.add_argument("budget_id", type=int)
    rep_budget.add_argument("--csv", help="Export the category table to this CSV file")
    rep_budget.add_argument("--groups", action="store_true", help="Include the 50/30/20 group table")

    return parser


def handle_budget_command(args: argparse.Namespace, config: dict, db_manager: DatabaseManager) -> None:
    """
    Handle budget management commands.

    Args:
        args: Parsed command-line arguments
        config: Configuration dictionary
        db_manager: DatabaseManager instance
    """
    budget_manager = BudgetManager(db_manager, config)
    reporter = _reporter(config)

    if args.budget_action == "create":
        incomes = [
            {"amount": float(amount), "frequency": frequency, "source": source}
            for amount, frequency, source in args.income or []
        ]
        allocations = [
            {"name": name, "group": group, "allocated_amount": float(amount)}
            for name, group, amount in args.allocate or []
        ]
        budget = budget_manager.create_budget(
            name=args.name,
            start_at=args.start,
            period=args.period,
            strategy=args.strategy,
            end_at=args.end,
            is_recurring=args.recurring,
            incomes=incomes,
            allocations=allocations,
        )
        print(f"Created budget {budget.id}: {budget.name} ({budget.period.value}, {budget.start_at} to {budget.end_at})")

    elif args.budget_action == "list":
        print(reporter.budgets_overview(budget_manager.list_budgets(args.status)))

    elif args.budget_action == "current":
        print(reporter.budgets_overview(budget_manager.get_current_budgets(args.on)))

    elif args.budget_action == "show":
        summary = budget_manager.get_budget_summary(args.budget_id)
        print(reporter.generate_budget_report(summary["budget"]))
        print(f"Days left: {days_left(summary['budget'])}")

    elif args.budget_action == "update":
        budget = budget_manager.update_budget(
            args.budget_id,
            name=args.name,
            strategy=args.strategy,
            period=args.period,
            start_at=args.start,
            end_at=args.end,
            is_recurring=args.recurring,
        )
        print(f"Updated budget {budget.id}: {budget.name} ({budget.start_at} to {budget.end_at})")

    elif args.budget_action in ("complete", "archive", "reactivate"):
        action = getattr(budget_manager, f"{args.budget_action}_budget")
        budget = action(args.budget_id)
        print(f"Budget {budget.id} is now {budget.status.value}")

    elif args.budget_action == "duplicate":
        budget = budget_manager.duplicate_budget(args.budget_id, start_at=args.start)
        print(f"Created budget {budget.id}: {budget.name} ({budget.start_at} to {budget.end_at})")

    elif args.budget_action == "rollover":
        if args.due:
            created = budget_manager.run_due_rollovers(args.as_of)
            print(f"Rolled over into {len(created)} new budget period(s)")
        elif args.budget_id is not None:
            budget = budget_manager.roll_over_budget(args.budget_id)
            print(f"Created budget {budget.id} for {budget.start_at} to {budget.end_at}")
        else:
            print("Provide a budget ID or --due", file=sys.stderr)
            sys.exit(1)

    elif args.budget_action == "delete":
        budget_manager.delete_budget(args.budget_id)
        print(f"Deleted budget {args.budget_id}")

    else:
        print("Please specify a budget action", file=sys.stderr)
        sys.exit(1)


def handle_income_command(args: argparse.Namespace, config: dict, db_manager: DatabaseManager) -> None:
    """Handle income commands."""
    budget_manager = BudgetManager(db_manager, config)

    if args.income_action == "add":
        income = budget_manager.add_income(
            args.budget_id,
            amount=args.amount,
            source=args.source,
            frequency=args.frequency,
            description=args.description,
            is_planned=not args.received,
        )
        print(f"Added income {income.id}: {income.source} {format_currency(income.amount)} {income.frequency.value}")
    elif args.income_action == "remove":
        budget_manager.remove_income(args.income_id)
        print(f"Removed income {args.income_id}")
    else:
        print("Please specify an income action", file=sys.stderr)
        sys.exit(1)


def handle_allocation_command(args: argparse.Namespace, config: dict, db_manager: DatabaseManager) -> None:
    """Handle allocation commands."""
    budget_manager = BudgetManager(db_manager, config)

    if args.allocation_action == "add":
        allocation = budget_manager.add_allocation(
            args.budget_id,
            args.amount,
            category_id=args.category_id,
            name=args.name,
            group=args.group,
        )
        print(f"Allocated {format_currency(allocation.allocated_amount)} to {allocation.name} (allocation {allocation.id})")
    elif args.allocation_action == "update":
        allocation = budget_manager.update_allocation(args.allocation_id, args.amount)
        print(f"Allocation {allocation.id} ({allocation.name}) is now {format_currency(allocation.allocated_amount)}")
    elif args.allocation_action == "remove":
        budget_manager.remove_allocation(args.allocation_id)
        print(f"Removed allocation {args.allocation_id}")
    else:
        print("Please specify an allocation action", file=sys.stderr)
        sys.exit(1)


def handle_category_command(args: argparse.Namespace, db_manager: DatabaseManager) -> None:
    """Handle category template commands."""
    category_manager = CategoryManager(db_manager)

    if args.category_action == "create":
        category = category_manager.create_category(args.name, args.group)
        print(f"Created category {category.id}: {category.name} ({category.group.value})")
    elif args.category_action == "list":
        categories = category_manager.list_categories(args.group)
        if not categories:
            print("No categories found.")
        else:
            print(tabulate(
                [[c.id, c.name, c.group.value] for c in categories],
                headers=["ID", "Name", "Group"],
                tablefmt="simple"
            ))
    elif args.category_action == "update":
        category = category_manager.update_category(args.category_id, name=args.name, group=args.group)
        print(f"Updated category {category.id}: {category.name} ({category.group.value})")
    elif args.category_action == "delete":
        category_manager.delete_category(args.category_id)
        print(f"Deleted category {args.category_id}")
    else:
        print("Please specify a category action", file=sys.stderr)
        sys.exit(1)


def handle_card_command(args: argparse.Namespace, config: dict, db_manager: DatabaseManager) -> None:
    """Handle card commands."""
    card_manager = CardManager(db_manager)
    symbol = config.get("currency_symbol", "$")

    if args.card_action == "create":
        card = card_manager.create_card(args.name, card_type=args.type, spending_limit=args.limit)
        print(f"Created card {card.id}: {card.name} ({card.card_type.value})")
    elif args.card_action == "list":
        cards = card_manager.list_cards()
        if not cards:
            print("No cards found.")
        else:
            rows = []
            for card in cards:
                summary = card_manager.get_card_summary(card.id)
                rows.append([
                    card.id,
                    card.name,
                    card.card_type.value,
                    format_currency(summary["amount_spent"], symbol),
                    format_currency(summary["available"], symbol) if summary["available"] is not None else "-",
                ])
            print(tabulate(rows, headers=["ID", "Name", "Type", "Spent", "Available"], tablefmt="grid"))
    elif args.card_action == "show":
        summary = card_manager.get_card_summary(args.card_id)
        print(f"Card {summary['id']}: {summary['name']} ({summary['card_type']})")
        print(f"  Spent:     {format_currency(summary['amount_spent'], symbol)}")
        if summary["spending_limit"] is not None:
            print(f"  Limit:     {format_currency(summary['spending_limit'], symbol)}")
            print(f"  Available: {format_currency(summary['available'], symbol)}")
            print(f"  Used:      {summary['utilization_percent']:.1f}%")
        print(f"  Transactions: {summary['transaction_count']}")
    elif args.card_action == "delete":
        card_manager.delete_card(args.card_id)
        print(f"Deleted card {args.card_id}")
    else:
        print("Please specify a card action", file=sys.stderr)
        sys.exit(1)


def handle_transaction_command(args: argparse.Namespace, db_manager: DatabaseManager) -> None:
    """Handle transaction commands."""
    transaction_manager = TransactionManager(db_manager)

    if args.transaction_action == "add":
        transaction = transaction_manager.create_transaction(
            args.budget_id,
            args.amount,
            transaction_type=args.type,
            category_id=args.category_id,
            card_id=args.card_id,
            name=args.name,
            description=args.description,
        )
        print(f"Recorded {transaction.transaction_type.value} transaction {transaction.id}: {format_currency(transaction.amount)}")
    elif args.transaction_action == "update":
        fields = {
            key: value for key, value in (
                ("amount", args.amount),
                ("transaction_type", args.type),
                ("category_id", args.category_id),
                ("card_id", args.card_id),
                ("name", args.name),
                ("description", args.description),
            ) if value is not None
        }
        transaction = transaction_manager.update_transaction(args.transaction_id, **fields)
        print(f"Updated transaction {transaction.id}")
    elif args.transaction_action == "delete":
        deleted = transaction_manager.delete_transaction(args.transaction_id)
        print(f"Deleted transaction(s): {', '.join(str(t.id) for t in deleted)}")
    elif args.transaction_action == "list":
        transactions = transaction_manager.list_transactions(
            budget_id=args.budget_id,
            card_id=args.card_id,
            limit=args.limit,
        )
        if not transactions:
            print("No transactions found.")
        else:
            print(tabulate(
                [
                    [t.id, t.transaction_type.value, format_currency(t.amount), t.category_id or "", t.card_id or "",
                     t.linked_transaction_id or "", (t.name or "")[:40]]
                    for t in transactions
                ],
                headers=["ID", "Type", "Amount", "Category", "Card", "Linked", "Name"],
                tablefmt="grid"
            ))
    else:
        print("Please specify a transaction action", file=sys.stderr)
        sys.exit(1)


def handle_card_payment_command(args: argparse.Namespace, db_manager: DatabaseManager) -> None:
    """Handle card payment commands."""
    transaction_manager = TransactionManager(db_manager)

    if args.payment_action == "create":
        payment = transaction_manager.create_card_payment(
            args.from_card_id,
            args.to_card_id,
            args.amount,
            args.budget_id,
            description=args.description,
        )
        print(
            f"Recorded card payment of {format_currency(payment.to_transaction.amount)}: "
            f"transactions {payment.from_transaction.id} and {payment.to_transaction.id}"
        )
    else:
        print("Please specify a card payment action", file=sys.stderr)
        sys.exit(1)


def handle_savings_command(args: argparse.Namespace, config: dict, db_manager: DatabaseManager) -> None:
    """Handle savings plan, pocket and allocation commands."""
    savings_manager = SavingsManager(db_manager)
    symbol = config.get("currency_symbol", "$")

    if args.savings_action == "create":
        savings = savings_manager.create_savings(args.name, budget_id=args.budget_id)
        print(f"Created savings plan {savings.id}: {savings.name}")
    elif args.savings_action == "list":
        plans = savings_manager.list_savings()
        if not plans:
            print("No savings plans found.")
        else:
            rows = []
            for plan in plans:
                summary = savings_manager.get_savings_summary(plan.id)
                rows.append([plan.id, plan.name, plan.budget_name or "", len(summary.pockets),
                             format_currency(summary.total, symbol)])
            print(tabulate(rows, headers=["ID", "Name", "Budget", "Pockets", "Saved"], tablefmt="grid"))
    elif args.savings_action == "show":
        print(_reporter(config).generate_savings_report(savings_manager.get_savings_summary(args.savings_id)))
    elif args.savings_action == "delete":
        savings_manager.delete_savings(args.savings_id)
        print(f"Deleted savings plan {args.savings_id}")
    elif args.savings_action == "pocket-add":
        pocket = savings_manager.create_pocket(
            args.savings_id, args.name, goal_amount=args.goal, goal_date=args.goal_date, goal_note=args.note
        )
        print(f"Created pocket {pocket.id}: {pocket.name}")
    elif args.savings_action == "pocket-update":
        pocket = savings_manager.update_pocket(
            args.pocket_id,
            name=args.name,
            goal_amount=args.goal,
            goal_date=args.goal_date,
            goal_note=args.note,
            clear_goal=args.clear_goal,
        )
        print(f"Updated pocket {pocket.id}: {pocket.name}")
    elif args.savings_action == "pocket-delete":
        savings_manager.delete_pocket(args.pocket_id)
        print(f"Deleted pocket {args.pocket_id}")
    elif args.savings_action in ("deposit", "withdraw"):
        withdrawal = args.savings_action == "withdraw"
        allocation = savings_manager.add_allocation(args.pocket_id, args.amount, note=args.note, withdrawal=withdrawal)
        summary = savings_manager.get_pocket_summary(args.pocket_id)
        verb = "Withdrew" if withdrawal else "Deposited"
        print(
            f"{verb} {format_currency(allocation.amount, symbol)} (allocation {allocation.id}); "
            f"{summary.name} now holds {format_currency(summary.total, symbol)}"
        )
    elif args.savings_action == "unallocate":
        savings_manager.remove_allocation(args.allocation_id)
        print(f"Removed pocket allocation {args.allocation_id}")
    else:
        print("Please specify a savings action", file=sys.stderr)
        sys.exit(1)


def handle_report_command(args: argparse.Namespace, config: dict, db_manager: DatabaseManager) -> None:
    """Handle report commands."""
    budget_manager = BudgetManager(db_manager, config)
    reporter = _reporter(config)

    if args.report_action == "budget":
        budget = budget_manager.get_budget(args.budget_id)
        if budget is None:
            print(f"Budget {args.budget_id} not found", file=sys.stderr)
            sys.exit(1)
        print(reporter.generate_budget_report(budget))
        if args.groups:
            print()
            print(reporter.generate_group_report(budget))
        if args.csv:
            path = reporter.export_to_csv(reporter.category_dataframe(budget), args.csv, "budget categories")
            print(f"Exported category report to {path}")
    else:
        print("Please specify a report type", file=sys.stderr)
        sys.exit(1)


def _reporter(config: dict) -> BudgetReportGenerator:
    return BudgetReportGenerator(
        warning_threshold=float(get_budgeting_setting(config, "warning_threshold", 75.0)),
        critical_threshold=float(get_budgeting_setting(config, "critical_threshold", 90.0)),
        currency_symbol=config.get("currency_symbol", "$"),
    )


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point for the application."""
    parser = build_parser()
    args = parser.parse_args(argv)

    # Handle case where no command is provided
    if not args.command:
        parser.print_help()
        sys.exit(1)

    # Load configuration
    try:
        config = load_config(Path(args.config), strict=True)
    except FinanceAppError as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        sys.exit(1)

    # Ensure data directory exists before logging/database work
    try:
        ensure_data_dir(config)
    except OSError as exc:
        print(f"Failed to prepare data directory: {exc}", file=sys.stderr)
        sys.exit(1)

    setup_logging(config)

    db_manager = None
    try:
        db_manager = DatabaseManager(create_connection_string(config))
        db_manager.create_tables()

        if args.command in ("budget", "bud"):
            handle_budget_command(args, config, db_manager)
        elif args.command == "income":
            handle_income_command(args, config, db_manager)
        elif args.command in ("allocation", "alloc"):
            handle_allocation_command(args, config, db_manager)
        elif args.command in ("category", "cat"):
            handle_category_command(args, db_manager)
        elif args.command == "card":
            handle_card_command(args, config, db_manager)
        elif args.command in ("transaction", "txn"):
            handle_transaction_command(args, db_manager)
        elif args.command in ("card-payment", "pay"):
            handle_card_payment_command(args, db_manager)
        elif args.command in ("savings", "sav"):
            handle_savings_command(args, config, db_manager)
        elif args.command == "report":
            handle_report_command(args, config, db_manager)
        else:
            parser.print_help()
            sys.exit(1)
    except FinanceAppError as e:
        logger.error(f"Command failed: {e}", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        if db_manager is not None:
            db_manager.close()


if __name__ == "__main__":
    main()
