"""Unit tests for expense_reports.formatting and report settings loading."""

from __future__ import annotations

import json
from datetime import date

import pytest

from expense_reports.config import DEFAULT_SETTINGS, ReportSettings, load_settings, save_settings
from expense_reports.formatting import (
    format_currency,
    format_long_date,
    format_percent,
    format_short_date,
    truncate_text,
)


@pytest.mark.parametrize('amount, expected', [
    (0, '$0.00'),
    (1234.5, '$1,234.50'),
    (-5, '-$5.00'),
])
def test_format_currency_defaults(amount, expected) -> None:
    assert format_currency(amount) == expected


def test_format_currency_uses_settings() -> None:
    settings = ReportSettings(currency_symbol='€', decimal_places=0)
    assert format_currency(1234.4, settings) == '€1,234'
    assert format_currency(10, include_sign=False) == '10.00'


def test_format_percent() -> None:
    assert format_percent(80) == '80.0%'
    assert format_percent(133.333) == '133.3%'


def test_truncate_text() -> None:
    assert truncate_text('short', 35) == 'short'
    assert truncate_text('x' * 40, 35) == 'x' * 35 + '...'
    assert truncate_text(None, 10) == ''


def test_date_formats() -> None:
    assert format_short_date(date(2024, 3, 1)) == 'Mar 1, 2024'
    assert format_long_date(date(2024, 3, 1)) == 'March 1, 2024'


def test_load_settings_missing_file_returns_defaults(tmp_path) -> None:
    assert load_settings(tmp_path / 'missing.json') == DEFAULT_SETTINGS


def test_load_settings_merges_known_keys(tmp_path) -> None:
    path = tmp_path / 'settings.json'
    path.write_text(json.dumps({'currency_symbol': '£', 'unknown': True}), encoding='utf-8')
    settings = load_settings(path)
    assert settings.currency_symbol == '£'
    assert settings.decimal_places == DEFAULT_SETTINGS.decimal_places


def test_load_settings_unreadable_file_returns_defaults(tmp_path) -> None:
    path = tmp_path / 'settings.json'
    path.write_text('{broken', encoding='utf-8')
    assert load_settings(path) == DEFAULT_SETTINGS


def test_save_then_load_settings(tmp_path) -> None:
    path = tmp_path / 'nested' / 'settings.json'
    settings = ReportSettings(currency_symbol='¥', decimal_places=0, warning_threshold=75.0)
    save_settings(settings, path)
    assert load_settings(path) == settings
