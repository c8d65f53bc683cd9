"""Streamlit page for browsing reports and downloading the PDF summary.

To run the dashboard from the command line::

    streamlit run expense_reports/dashboard.py

or use ``run_dashboard.py`` in the project root.
"""

from __future__ import annotations

import asyncio
import os
import sys
from datetime import date, datetime
from typing import Any, Dict, Optional

import pandas as pd
import streamlit as st

if __package__:
    from . import visualization as viz
    from .aggregation import budget_overview, category_totals, monthly_totals
    from .backup import BackupFormatError, backup_filename, dumps_bundle, export_bundle, import_bundle
    from .config import STORE_PATH, ReportSettings, load_settings
    from .date_ranges import RANGE_LABELS, RANGE_OPTIONS, resolve_date_range
    from .formatting import format_currency
    from .generation import ReportGenerator, ReportOutcome
    from .storage import JsonFileRecordStore, RecordStore
else:
    # Executed directly by ``streamlit run``; make the package importable.
    CURRENT_DIR = os.path.dirname(os.path.abspath(__file__))
    PARENT_DIR = os.path.dirname(CURRENT_DIR)
    if PARENT_DIR not in sys.path:
        sys.path.insert(0, PARENT_DIR)
    from expense_reports import visualization as viz  # type: ignore
    from expense_reports.aggregation import budget_overview, category_totals, monthly_totals  # type: ignore
    from expense_reports.backup import (  # type: ignore
        BackupFormatError,
        backup_filename,
        dumps_bundle,
        export_bundle,
        import_bundle,
    )
    from expense_reports.config import STORE_PATH, ReportSettings, load_settings  # type: ignore
    from expense_reports.date_ranges import (  # type: ignore
        RANGE_LABELS,
        RANGE_OPTIONS,
        resolve_date_range,
    )
    from expense_reports.formatting import format_currency  # type: ignore
    from expense_reports.generation import ReportGenerator, ReportOutcome  # type: ignore
    from expense_reports.storage import JsonFileRecordStore, RecordStore  # type: ignore


GENERATOR_KEY = 'report_generator'
OUTCOME_KEY = 'report_outcome'
CLEARED_MESSAGE = "All data cleared successfully"


def rows_frame(rows, columns: Dict[str, str]) -> pd.DataFrame:
    """Turn derived report rows into a display frame with friendly column names."""
    records = [{label: getattr(row, attr) for attr, label in columns.items()} for row in rows]
    return pd.DataFrame(records, columns=list(columns.values()))


def range_description(option: str, now: Optional[datetime] = None) -> str:
    """Caption shown under each option of the download dialog."""
    if option == 'custom':
        return "Select specific dates"
    return resolve_date_range(option, now=now).caption()


def get_generator(store: RecordStore, state: Any, settings: Optional[ReportSettings] = None) -> ReportGenerator:
    """Return the generator kept in session state, creating it on first use.

    The generator keeps its busy flag across reruns, but its settings are
    refreshed on every call so the PDF matches what the page shows.
    """
    settings = settings or load_settings()
    generator = state.get(GENERATOR_KEY)
    if generator is None:
        generator = ReportGenerator(store, settings=settings)
        state[GENERATOR_KEY] = generator
    else:
        generator.settings = settings
    return generator


def request_report(
    generator: ReportGenerator,
    option: str,
    custom_start: Optional[date] = None,
    custom_end: Optional[date] = None,
) -> ReportOutcome:
    return asyncio.run(generator.generate_for_option(option, custom_start, custom_end))


def handle_import(store: RecordStore, payload: bytes) -> str:
    """Apply an uploaded backup and return the message to show.

    Raises:
        BackupFormatError: When the upload is not a valid backup bundle
    """
    counts = import_bundle(store, payload)
    summary = ", ".join(f"{count} {name}" for name, count in counts.items()) or "nothing"
    return f"Data imported successfully ({summary})."


def handle_clear(store: RecordStore, confirmed: bool) -> Optional[str]:
    """Delete all stored data once the user has confirmed, returning the message to show."""
    if not confirmed:
        return None
    store.clear()
    return CLEARED_MESSAGE


def _render_overview(store: RecordStore, settings: ReportSettings) -> None:
    expenses = store.get_expenses()
    budgets = store.get_budgets()
    overview = budget_overview(expenses, budgets)

    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Total Expenses", format_currency(overview.total_expenses, settings),
                f"{overview.expense_count} transactions", delta_color="off")
    col2.metric("Total Budget", format_currency(overview.total_budget, settings),
                f"{overview.budget_count} budgets", delta_color="off")
    col3.metric("Remaining", format_currency(overview.remaining, settings))
    col4.metric("Budget Used", f"{overview.percent_used:.1f}%")

    year = datetime.now().year
    monthly = monthly_totals(expenses, year)
    categories = category_totals(expenses)

    st.subheader(f"Monthly Expenses Report - {year}")
    st.dataframe(
        rows_frame(monthly, {'month': 'Month', 'total': 'Total', 'count': 'Transactions', 'average': 'Average'}),
        use_container_width=True,
    )
    st.plotly_chart(viz.create_monthly_bar_chart(monthly), use_container_width=True)

    st.subheader("Expenses by Category")
    if categories:
        st.dataframe(
            rows_frame(categories, {'category': 'Category', 'total': 'Total', 'count': 'Transactions',
                                    'average': 'Average'}),
            use_container_width=True,
        )
        st.plotly_chart(viz.create_category_pie_chart(categories), use_container_width=True)
    else:
        st.info("No expense data available for reports")


def _render_download(store: RecordStore, settings: ReportSettings) -> None:
    st.subheader("Download PDF Report")
    generator = get_generator(store, st.session_state, settings)

    option = st.radio(
        "Select a date range for your financial report",
        RANGE_OPTIONS,
        index=RANGE_OPTIONS.index('month'),
        format_func=lambda value: f"{RANGE_LABELS[value]} ({range_description(value)})",
    )
    custom_start = custom_end = None
    if option == 'custom':
        col1, col2 = st.columns(2)
        custom_start = col1.date_input("Start Date", value=None)
        custom_end = col2.date_input("End Date", value=None, min_value=custom_start)

    ready = option != 'custom' or (custom_start is not None and custom_end is not None)
    label = "Generating..." if generator.is_generating else "Generate Report"
    if st.button(label, disabled=not ready or generator.is_generating):
        st.session_state[OUTCOME_KEY] = request_report(generator, option, custom_start, custom_end)

    outcome: Optional[ReportOutcome] = st.session_state.get(OUTCOME_KEY)
    if outcome is None:
        return
    if outcome.success:
        st.success(outcome.message)
        st.download_button(
            label="📥 Download PDF",
            data=outcome.content,
            file_name=outcome.filename,
            mime="application/pdf",
        )
    else:
        st.error(outcome.message)


def _render_data_management(store: RecordStore) -> None:
    st.subheader("Data Management")
    st.download_button(
        label="📥 Export Data",
        data=dumps_bundle(export_bundle(store)),
        file_name=backup_filename(),
        mime="application/json",
    )
    uploaded = st.file_uploader("Import Data", type=["json"], accept_multiple_files=False)
    if uploaded is not None and st.button("Apply Import"):
        try:
            st.success(handle_import(store, uploaded.getvalue()))
        except BackupFormatError as exc:
            st.error(str(exc))

    st.markdown("**Clear All Data**")
    confirmed = st.checkbox(
        "I understand this will permanently delete all my expenses, budgets, and categories."
    )
    if st.button("Clear Data", type="primary", disabled=not confirmed):
        st.session_state.pop(OUTCOME_KEY, None)
        st.success(handle_clear(store, confirmed))


def main() -> None:
    """Entry point for the Streamlit app."""
    st.set_page_config(page_title="Reports", page_icon="📈", layout="wide")
    st.header("📊 Reports")

    store = JsonFileRecordStore(STORE_PATH)
    settings = load_settings()
    _render_overview(store, settings)
    _render_download(store, settings)
    _render_data_management(store)


if __name__ == "__main__":
    main()
