"""Unit tests for the plain helpers behind the Streamlit reports page."""

from __future__ import annotations

import json
from datetime import date, datetime

import pytest

from expense_reports import dashboard
from expense_reports.backup import BackupFormatError
from expense_reports.config import ReportSettings
from expense_reports.generation import ReportGenerator
from expense_reports.models import CategoryReportRow
from expense_reports.storage import InMemoryRecordStore


def test_rows_frame_renames_columns() -> None:
    rows = [CategoryReportRow(category='Food', total=80, count=2, average=40)]
    frame = dashboard.rows_frame(rows, {'category': 'Category', 'total': 'Total'})
    assert list(frame.columns) == ['Category', 'Total']
    assert frame.iloc[0].tolist() == ['Food', 80]


def test_rows_frame_empty_keeps_columns() -> None:
    frame = dashboard.rows_frame([], {'category': 'Category', 'total': 'Total'})
    assert frame.empty
    assert list(frame.columns) == ['Category', 'Total']


def test_range_description() -> None:
    now = datetime(2024, 3, 13, 15, 0)
    assert dashboard.range_description('week', now=now) == 'Mar 10, 2024 - Mar 16, 2024'
    assert dashboard.range_description('custom') == 'Select specific dates'


def test_get_generator_is_reused_from_state() -> None:
    state = {}
    store = InMemoryRecordStore()
    first = dashboard.get_generator(store, state)
    assert isinstance(first, ReportGenerator)
    assert dashboard.get_generator(store, state) is first


def test_request_report_runs_generation() -> None:
    generator = ReportGenerator(InMemoryRecordStore(), chart_renderer=lambda _fig: b'')
    outcome = dashboard.request_report(generator, 'custom', date(2024, 3, 1), date(2024, 3, 31))
    assert outcome.success
    assert outcome.filename == 'Financial_Report_2024-03-01_to_2024-03-31.pdf'


def test_handle_import_reports_counts() -> None:
    store = InMemoryRecordStore()
    payload = json.dumps({
        'expenses': [{'id': 'e1', 'amount': 5, 'category': 'Food', 'date': '2024-03-01'}],
        'categories': [],
    }).encode('utf-8')
    message = dashboard.handle_import(store, payload)
    assert message == 'Data imported successfully (1 expenses, 0 categories).'
    assert [e.id for e in store.get_expenses()] == ['e1']


def test_handle_import_rejects_bad_payload() -> None:
    with pytest.raises(BackupFormatError):
        dashboard.handle_import(InMemoryRecordStore(), b'nope')


def test_get_generator_picks_up_new_settings() -> None:
    state = {}
    store = InMemoryRecordStore()
    first = dashboard.get_generator(store, state, ReportSettings(currency_symbol='$'))
    again = dashboard.get_generator(store, state, ReportSettings(currency_symbol='€'))
    assert again is first
    assert again.settings.currency_symbol == '€'


def test_handle_clear_requires_confirmation() -> None:
    store = InMemoryRecordStore()
    store.add_expense(amount=5, category='Food', date='2024-03-01')

    assert dashboard.handle_clear(store, confirmed=False) is None
    assert len(store.get_expenses()) == 1

    assert dashboard.handle_clear(store, confirmed=True) == dashboard.CLEARED_MESSAGE
    assert store.get_expenses() == []
