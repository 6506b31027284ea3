"""
Report generator module for budget summaries.

This module turns budget records into pandas DataFrames (per category and
per 50/30/20 group) and formats them as text tables or CSV files. Savings
plan summaries get a pocket table of their own.
"""

import logging
from pathlib import Path
from typing import List, Optional, Union

import pandas as pd
from tabulate import tabulate

from allocation import BudgetTotals, budget_totals, category_statuses, group_allocations, strategy_warnings
from income import income_breakdown
from ledger import DEFAULT_CRITICAL_THRESHOLD, DEFAULT_WARNING_THRESHOLD, utilization_level
from models import BudgetRecord
from money import format_currency, format_signed
from savings import SavingsSummary

logger = logging.getLogger(__name__)

CATEGORY_COLUMNS = [
    "category", "group", "allocated", "spent", "remaining", "percentage_used", "status", "level", "transactions",
]
GROUP_COLUMNS = ["group", "share", "recommended", "allocated", "spent", "difference"]


class BudgetReportGenerator:
    """
    Generate formatted reports for a budget.

    Supports text tables (tabulate) and CSV export (pandas).
    """

    def __init__(
        self,
        warning_threshold: float = DEFAULT_WARNING_THRESHOLD,
        critical_threshold: float = DEFAULT_CRITICAL_THRESHOLD,
        currency_symbol: str = "$"
    ):
        """
        Initialize the report generator.

        Args:
            warning_threshold: Utilization percent flagged as a warning
            critical_threshold: Utilization percent flagged as critical
            currency_symbol: Symbol used when formatting amounts
        """
        self.warning_threshold = warning_threshold
        self.critical_threshold = critical_threshold
        self.currency_symbol = currency_symbol
        logger.info("Report generator initialized")

    def format_currency(self, amount: Optional[float]) -> str:
        """
        Format amount as currency string.

        Args:
            amount: Amount to format (None or NaN renders as zero)

        Returns:
            Formatted currency string
        """
        if amount is None or pd.isna(amount):
            amount = 0.0
        return format_currency(amount, self.currency_symbol)

    def format_percentage(self, percentage: float) -> str:
        """Format percentage string."""
        return f"{percentage:.1f}%"

    def category_dataframe(self, budget: BudgetRecord) -> pd.DataFrame:
        """
        Build the per-category DataFrame for a budget.

        Args:
            budget: Budget snapshot

        Returns:
            DataFrame with CATEGORY_COLUMNS, one row per category
        """
        rows = [
            {
                "category": status.category,
                "group": status.group.value if status.group is not None else "",
                "allocated": status.allocated,
                "spent": status.spent,
                "remaining": status.remaining,
                "percentage_used": status.percentage_used,
                "status": status.status.value,
                "level": utilization_level(status.percentage_used, self.warning_threshold, self.critical_threshold),
                "transactions": status.transaction_count,
            }
            for status in category_statuses(budget)
        ]
        return pd.DataFrame(rows, columns=CATEGORY_COLUMNS)

    def group_dataframe(self, budget: BudgetRecord, totals: Optional[BudgetTotals] = None) -> pd.DataFrame:
        """Build the per-group (NEEDS/WANTS/INVESTMENT) DataFrame."""
        rows = [
            {
                "group": allocation.group.value,
                "share": allocation.share,
                "recommended": allocation.recommended,
                "allocated": allocation.allocated,
                "spent": allocation.spent,
                "difference": allocation.difference,
            }
            for allocation in group_allocations(budget, totals)
        ]
        return pd.DataFrame(rows, columns=GROUP_COLUMNS)

    def income_dataframe(self, budget: BudgetRecord) -> pd.DataFrame:
        """Normalized income per source."""
        breakdown = income_breakdown(budget.incomes, budget.period)
        return pd.DataFrame(sorted(breakdown.by_source.items()), columns=["source", "amount"])

    def generate_budget_report(self, budget: BudgetRecord) -> str:
        """
        Generate the text report for a budget.

        Args:
            budget: Budget snapshot

        Returns:
            Formatted text report
        """
        totals = budget_totals(budget)
        width = 100

        report_lines = [
            "=" * width,
            f"BUDGET: {budget.name} ({budget.period.value}, {budget.start_at} to {budget.end_at})",
            f"Strategy: {budget.strategy.value}    Status: {budget.status.value}",
            "=" * width,
            "",
            f"Total Income:           {self.format_currency(totals.total_income):>20}"
            f"  (planned {self.format_currency(totals.planned_income)}, received {self.format_currency(totals.received_income)})",
            f"Total Allocated:        {self.format_currency(totals.total_allocated):>20}",
            f"Total Spent:            {self.format_currency(totals.total_spent):>20}"
            f"  ({self.format_percentage(totals.spent_percent)} of income)",
            "-" * width,
            f"Left to Allocate:       {self.format_currency(totals.allocation_remaining):>20}",
            f"Left to Spend:          {self.format_currency(totals.spending_remaining):>20}",
            f"Status:                 {totals.status.value:>20}",
            "",
        ]

        df = self.category_dataframe(budget)
        if df.empty:
            report_lines.append("No categories allocated.")
        else:
            display_df = df.copy()
            for column in ("allocated", "spent", "remaining"):
                display_df[column] = display_df[column].apply(self.format_currency)
            display_df["percentage_used"] = display_df["percentage_used"].apply(self.format_percentage)
            display_df.columns = [
                "Category", "Group", "Allocated", "Spent", "Remaining", "Used", "Status", "Alert", "Count",
            ]
            report_lines.append(tabulate(
                display_df.values.tolist(),
                headers=display_df.columns.tolist(),
                tablefmt="grid",
                showindex=False
            ))

        warnings = strategy_warnings(budget, totals)
        if warnings:
            report_lines.extend(["", "Warnings:"])
            report_lines.extend(f"  - {warning}" for warning in warnings)

        report_lines.append("=" * width)
        return "\n".join(report_lines)

    def generate_group_report(self, budget: BudgetRecord) -> str:
        """Text table comparing group allocations with the 50/30/20 rule."""
        df = self.group_dataframe(budget)
        display_df = df.copy()
        display_df["share"] = display_df["share"].apply(lambda s: self.format_percentage(s * 100))
        for column in ("recommended", "allocated", "spent"):
            display_df[column] = display_df[column].apply(self.format_currency)
        display_df["difference"] = display_df["difference"].apply(lambda d: format_signed(d, self.currency_symbol))
        return tabulate(
            display_df.values.tolist(),
            headers=["Group", "Share", "Recommended", "Allocated", "Spent", "Difference"],
            tablefmt="simple",
            showindex=False
        )

    def budgets_overview(self, budgets: List[BudgetRecord]) -> str:
        """One-line-per-budget table for listing budgets."""
        if not budgets:
            return "No budgets found."
        rows = []
        for budget in budgets:
            totals = budget_totals(budget)
            rows.append([
                budget.id,
                budget.name,
                budget.period.value,
                f"{budget.start_at} to {budget.end_at}",
                budget.status.value,
                self.format_currency(totals.total_income),
                self.format_currency(totals.total_spent),
                "yes" if budget.is_recurring else "no",
            ])
        return tabulate(
            rows,
            headers=["ID", "Name", "Period", "Dates", "Status", "Income", "Spent", "Recurring"],
            tablefmt="grid"
        )

    def generate_savings_report(self, summary: SavingsSummary) -> str:
        """
        Text report of a savings plan with one row per pocket.

        Args:
            summary: Savings plan summary

        Returns:
            Formatted text report
        """
        header = f"SAVINGS: {summary.name}"
        if summary.budget_name:
            header += f" (funded from {summary.budget_name})"
        lines = [header, f"Total saved: {self.format_currency(summary.total)}", ""]

        if not summary.pockets:
            lines.append("No pockets yet.")
            return "\n".join(lines)

        rows = []
        for pocket in summary.pockets:
            goal = self.format_currency(pocket.goal_amount) if pocket.goal_amount is not None else "-"
            progress = self.format_percentage(pocket.progress_percent) if pocket.progress_percent is not None else "-"
            rows.append([
                pocket.pocket_id,
                pocket.name,
                self.format_currency(pocket.total),
                goal,
                progress,
                pocket.goal_date or "",
            ])
        lines.append(tabulate(
            rows,
            headers=["ID", "Pocket", "Saved", "Goal", "Progress", "Goal Date"],
            tablefmt="grid"
        ))
        return "\n".join(lines)

    def export_to_csv(
        self,
        df: pd.DataFrame,
        output_path: Union[str, Path],
        report_name: str = "report"
    ) -> Path:
        """
        Export DataFrame to CSV file.

        Args:
            df: DataFrame to export
            output_path: Output file path
            report_name: Name of the report for logging

        Returns:
            Path written
        """
        output_path = Path(output_path)
        try:
            df.to_csv(output_path, index=False)
            logger.info(f"Exported {report_name} to {output_path}")
            return output_path
        except OSError as e:
            logger.error(f"Failed to export {report_name}: {e}")
            raise
