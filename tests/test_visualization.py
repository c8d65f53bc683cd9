"""Unit tests for expense_reports.visualization."""

from __future__ import annotations

import asyncio
import time

import plotly.graph_objects as go

from expense_reports import visualization as viz
from expense_reports.models import CategoryReportRow, MonthlyReportRow


def category_rows(count=3):
    return [CategoryReportRow(category=f'Cat {i}', total=100 - i, count=1, average=100 - i) for i in range(count)]


def monthly_rows():
    rows = [MonthlyReportRow(month=name, total=0, count=0, average=0) for name in
            ['January', 'February', 'March', 'April', 'May', 'June', 'July',
             'August', 'September', 'October', 'November', 'December']]
    rows[0] = MonthlyReportRow(month='January', total=120, count=2, average=60)
    rows[2] = MonthlyReportRow(month='March', total=80, count=1, average=80)
    return rows


def test_empty_inputs_produce_placeholder_figures() -> None:
    assert viz.create_category_pie_chart([]).layout.title.text == "No data to display"
    empty_months = [MonthlyReportRow(month='January', total=0, count=0, average=0)]
    assert viz.create_monthly_bar_chart(empty_months).layout.title.text == "No data to display"


def test_pie_chart_keeps_largest_categories() -> None:
    fig = viz.create_category_pie_chart(category_rows(12))
    assert list(fig.data[0].labels) == [f'Cat {i}' for i in range(viz.MAX_PIE_SLICES)]


def test_bar_chart_skips_empty_months() -> None:
    fig = viz.create_monthly_bar_chart(monthly_rows())
    assert list(fig.data[0].x) == ['Jan', 'Mar']
    assert list(fig.data[0].y) == [120, 80]


def test_report_figure_combines_pie_and_bar() -> None:
    fig = viz.create_report_figure(category_rows(), monthly_rows())
    assert [type(trace) for trace in fig.data] == [go.Pie, go.Bar]
    assert fig.layout.width == 1000
    assert fig.layout.height == 500


def test_capture_chart_image_returns_rendered_bytes() -> None:
    fig = viz.create_report_figure(category_rows(), monthly_rows())
    result = asyncio.run(viz.capture_chart_image(fig, timeout=5, renderer=lambda _fig: b'png-bytes'))
    assert result == b'png-bytes'


def test_capture_chart_image_degrades_on_failure() -> None:
    def broken(_fig):
        raise RuntimeError("kaleido missing")

    fig = viz.create_report_figure(category_rows(), monthly_rows())
    assert asyncio.run(viz.capture_chart_image(fig, timeout=5, renderer=broken)) is None


def test_capture_chart_image_degrades_on_timeout() -> None:
    def slow(_fig):
        time.sleep(0.3)
        return b'late'

    fig = viz.create_report_figure(category_rows(), monthly_rows())
    assert asyncio.run(viz.capture_chart_image(fig, timeout=0.05, renderer=slow)) is None
