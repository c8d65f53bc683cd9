"""Aggregation engine for expense and budget snapshots.

Every function here is a pure transform: it takes a snapshot of records
(dataclasses or plain dicts in the export format), builds a pandas frame,
and returns freshly derived rows.  Nothing is cached and the inputs are
never mutated.

Bad records never abort a computation.  Amounts that cannot be parsed count
as zero, and dates that cannot be parsed drop the record from any date or
year filter.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, List, Optional, Sequence, TypeVar

import numpy as np
import pandas as pd

from .config import DEFAULT_SETTINGS, ReportSettings
from .date_ranges import end_of_month, start_of_month
from .models import (
    STATUS_GOOD,
    STATUS_OVER,
    STATUS_WARNING,
    BudgetOverview,
    BudgetStatusRow,
    CategoryReportRow,
    MonthlyReportRow,
    ReportSummary,
)

MONTH_NAMES = [
    'January', 'February', 'March', 'April', 'May', 'June',
    'July', 'August', 'September', 'October', 'November', 'December',
]
UNCATEGORIZED = 'Uncategorized'

RecordT = TypeVar('RecordT')


def record_field(record: Any, name: str, default: Any = None) -> Any:
    if isinstance(record, dict):
        return record.get(name, default)
    return getattr(record, name, default)


def parse_record_date(value: Any) -> Optional[pd.Timestamp]:
    """Parse a stored expense date to local midnight, or ``None`` if unusable."""
    if value is None or isinstance(value, bool) or value == '':
        return None
    try:
        stamp = pd.Timestamp(value)
        if pd.isna(stamp):
            return None
        if stamp.tzinfo is not None:
            # Keep the calendar day the record was written with.
            stamp = stamp.tz_localize(None)
        # Frames hold nanosecond timestamps; anything outside that range is unusable.
        return stamp.normalize().as_unit('ns')
    except (ValueError, TypeError, OverflowError):
        return None


def parse_amount(value: Any) -> float:
    """Coerce a stored amount to a float, treating anything unusable as zero."""
    if isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if np.isfinite(number) else 0.0


def category_label(value: Any) -> str:
    if value is None or (isinstance(value, float) and np.isnan(value)):
        return UNCATEGORIZED
    text = str(value)
    return text if text.strip() else UNCATEGORIZED


def expenses_to_frame(expenses: Iterable[Any]) -> pd.DataFrame:
    """Build a normalised frame with ``Amount``, ``Category`` and ``Date`` columns.

    The frame keeps the input order; ``Position`` holds each record's index in
    the original sequence so filters can hand back the untouched records.
    """
    rows = [
        {
            'Position': position,
            'RawAmount': record_field(expense, 'amount'),
            'RawCategory': record_field(expense, 'category'),
            'RawDate': record_field(expense, 'date'),
        }
        for position, expense in enumerate(expenses)
    ]
    df = pd.DataFrame(rows, columns=['Position', 'RawAmount', 'RawCategory', 'RawDate'])

    df['Amount'] = df['RawAmount'].astype(object).map(parse_amount).astype(float)
    df['Category'] = df['RawCategory'].astype(object).map(category_label).astype(str)
    df['Date'] = pd.to_datetime(df['RawDate'].astype(object).map(parse_record_date))
    return df


def _average(total: float, count: int) -> float:
    return float(total / count) if count > 0 else 0.0


def filter_by_date_range(
    expenses: Sequence[RecordT],
    start: datetime,
    end: datetime,
) -> List[RecordT]:
    """Keep expenses dated within the inclusive ``[start, end]`` range."""
    records = list(expenses)
    df = expenses_to_frame(records)
    if df.empty:
        return []
    lower = pd.Timestamp(start)
    upper = pd.Timestamp(end)
    mask = df['Date'].notna() & (df['Date'] >= lower) & (df['Date'] <= upper)
    return [records[position] for position in df.loc[mask, 'Position']]


def monthly_totals(expenses: Iterable[Any], year: int) -> List[MonthlyReportRow]:
    """Return twelve rows, January through December, for the given year.

    Months without expenses are still present with zero totals.
    """
    df = expenses_to_frame(expenses)
    in_year = df[df['Date'].dt.year == year]
    grouped = in_year.groupby(in_year['Date'].dt.month)['Amount'].agg(['sum', 'count'])

    rows: List[MonthlyReportRow] = []
    for number, name in enumerate(MONTH_NAMES, start=1):
        if number in grouped.index:
            total = float(grouped.at[number, 'sum'])
            count = int(grouped.at[number, 'count'])
        else:
            total, count = 0.0, 0
        rows.append(MonthlyReportRow(month=name, total=total, count=count, average=_average(total, count)))
    return rows


def category_totals(expenses: Iterable[Any]) -> List[CategoryReportRow]:
    """One row per category label, sorted by total descending.

    Ties keep the order in which the categories first appear in the input.
    """
    df = expenses_to_frame(expenses)
    if df.empty:
        return []

    # sort=False keeps first-seen order, which the stable sort below preserves for ties.
    grouped = df.groupby('Category', sort=False)['Amount'].agg(['sum', 'count'])
    grouped['average'] = np.where(grouped['count'] > 0, grouped['sum'] / grouped['count'].clip(lower=1), 0.0)

    rows = [
        CategoryReportRow(
            category=str(category),
            total=float(row['sum']),
            count=int(row['count']),
            average=float(row['average']),
        )
        for category, row in grouped.iterrows()
    ]
    return sorted(rows, key=lambda row: row.total, reverse=True)


def status_for_percent(percent_used: float, settings: Optional[ReportSettings] = None) -> str:
    settings = settings or DEFAULT_SETTINGS
    if percent_used >= settings.over_threshold:
        return STATUS_OVER
    if percent_used >= settings.warning_threshold:
        return STATUS_WARNING
    return STATUS_GOOD


def _budget_amount(budget: Any) -> float:
    return parse_amount(record_field(budget, 'amount'))


def budget_status(
    budgets: Iterable[Any],
    expenses: Iterable[Any],
    settings: Optional[ReportSettings] = None,
) -> List[BudgetStatusRow]:
    """Compare each budget entry with spending in its category.

    Budgets are not deduplicated: two budgets for the same category each get
    their own row, both measured against the same spending.  Callers pass an
    already filtered expense snapshot when they want a windowed view.
    """
    df = expenses_to_frame(expenses)
    spent_by_category = df.groupby('Category')['Amount'].sum().to_dict() if not df.empty else {}

    rows: List[BudgetStatusRow] = []
    for budget in budgets:
        label = category_label(record_field(budget, 'category'))
        amount = _budget_amount(budget)
        spent = float(spent_by_category.get(label, 0.0))
        percent_used = (spent / amount * 100) if amount > 0 else 0.0
        rows.append(
            BudgetStatusRow(
                category=label,
                budget_amount=amount,
                spent=spent,
                remaining=amount - spent,
                percent_used=percent_used,
                status=status_for_percent(percent_used, settings),
            )
        )
    return rows


def report_summary(expenses: Iterable[Any], budgets: Iterable[Any]) -> ReportSummary:
    """Totals for the report's summary tiles over the given snapshot."""
    df = expenses_to_frame(expenses)
    total_expenses = float(df['Amount'].sum()) if not df.empty else 0.0
    count = int(len(df))
    total_budgets = float(sum(_budget_amount(budget) for budget in budgets))
    return ReportSummary(
        total_expenses=total_expenses,
        total_budgets=total_budgets,
        transaction_count=count,
        average_expense=_average(total_expenses, count),
    )


def budget_overview(
    expenses: Sequence[Any],
    budgets: Iterable[Any],
    now: Optional[datetime] = None,
) -> BudgetOverview:
    """Current calendar month spending measured against monthly budgets."""
    now = now or datetime.now()
    current = filter_by_date_range(expenses, start_of_month(now), end_of_month(now))
    df = expenses_to_frame(current)
    total_expenses = float(df['Amount'].sum()) if not df.empty else 0.0

    budget_list = list(budgets)
    monthly = [budget for budget in budget_list if record_field(budget, 'period') == 'monthly']
    total_budget = float(sum(_budget_amount(budget) for budget in monthly))

    return BudgetOverview(
        total_expenses=total_expenses,
        total_budget=total_budget,
        remaining=total_budget - total_expenses,
        percent_used=(total_expenses / total_budget * 100) if total_budget > 0 else 0.0,
        expense_count=len(current),
        budget_count=len(budget_list),
    )
