"""Formatting utilities for currency, dates and text display."""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Union

from .config import DEFAULT_SETTINGS, ReportSettings


def format_currency(
    amount: Union[float, int],
    settings: Optional[ReportSettings] = None,
    include_sign: bool = True,
) -> str:
    """Format a currency amount using the configured symbol and precision.

    Args:
        amount: The amount to format
        settings: Report settings carrying the currency symbol and decimal places
        include_sign: Whether to include the currency symbol

    Returns:
        Formatted currency string (e.g., "$1,234.56" or "1,234.56")

    Example:
        >>> format_currency(1234.56)
        '$1,234.56'
        >>> format_currency(-5)
        '-$5.00'
    """
    settings = settings or DEFAULT_SETTINGS
    formatted = f"{abs(amount):,.{settings.decimal_places}f}"
    sign = "-" if amount < 0 else ""
    symbol = settings.currency_symbol if include_sign else ""
    return f"{sign}{symbol}{formatted}"


def format_percent(value: float) -> str:
    return f"{value:.1f}%"


def truncate_text(text: object, max_length: int, ellipsis: str = "...") -> str:
    """Truncate text longer than ``max_length`` characters and append an ellipsis.

    Example:
        >>> truncate_text("Weekly groceries", 7)
        'Weekly ...'
    """
    value = "" if text is None else str(text)
    if len(value) <= max_length:
        return value
    return value[:max_length] + ellipsis


def format_short_date(value: Union[date, datetime]) -> str:
    """Render a date as ``Mar 1, 2024``."""
    return f"{value:%b} {value.day}, {value.year}"


def format_long_date(value: Union[date, datetime]) -> str:
    """Render a date as ``March 1, 2024``."""
    return f"{value:%B} {value.day}, {value.year}"
