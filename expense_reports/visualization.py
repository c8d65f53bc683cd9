"""Plotly visualisation helpers for on-screen charts and the PDF report.

The on-screen charts and the report image are built from the same derived
rows, so the picture in the PDF matches what the dashboard shows.  Exporting
a figure to PNG needs Kaleido and a headless browser; that step runs off the
event loop with a timeout and degrades to ``None`` when it is unavailable.
"""

from __future__ import annotations

import asyncio
from typing import Callable, Optional, Sequence

import pandas as pd
import plotly.express as px
import plotly.graph_objects as go
from loguru import logger
from plotly.subplots import make_subplots

from .models import CategoryReportRow, MonthlyReportRow

CHART_COLORS = ['#3b82f6', '#22c55e', '#f59e0b', '#ef4444', '#8b5cf6', '#ec4899', '#06b6d4', '#84cc16']
MAX_PIE_SLICES = len(CHART_COLORS)

ChartRenderer = Callable[[go.Figure], bytes]


def _empty_figure() -> go.Figure:
    fig = go.Figure()
    fig.update_layout(title="No data to display")
    return fig


def create_category_pie_chart(rows: Sequence[CategoryReportRow], title: str | None = None) -> go.Figure:
    """Pie chart of spending per category, largest categories first."""
    if not rows:
        return _empty_figure()
    df = pd.DataFrame(
        [{'Category': row.category, 'Total': row.total} for row in rows[:MAX_PIE_SLICES]]
    )
    fig = px.pie(df, names='Category', values='Total', color_discrete_sequence=CHART_COLORS)
    fig.update_traces(textinfo='label+percent')
    fig.update_layout(title=title or "Expenses by Category")
    return fig


def create_monthly_bar_chart(rows: Sequence[MonthlyReportRow], title: str | None = None) -> go.Figure:
    """Bar chart of monthly totals, skipping months with nothing spent."""
    active = [row for row in rows if row.total > 0]
    if not active:
        return _empty_figure()
    df = pd.DataFrame([{'Month': row.month[:3], 'Total': row.total} for row in active])
    fig = px.bar(df, x='Month', y='Total')
    fig.update_traces(marker_color=CHART_COLORS[0])
    fig.update_layout(title=title or "Monthly Expenses", xaxis_title="Month", yaxis_title="Total")
    return fig


def create_report_figure(
    category_rows: Sequence[CategoryReportRow],
    monthly_rows: Sequence[MonthlyReportRow],
) -> go.Figure:
    """Side-by-side pie and bar chart used as the report's analytics image."""
    fig = make_subplots(
        rows=1,
        cols=2,
        specs=[[{'type': 'domain'}, {'type': 'xy'}]],
        subplot_titles=("Expenses by Category", "Monthly Expenses"),
    )
    pie_rows = list(category_rows[:MAX_PIE_SLICES])
    if pie_rows:
        fig.add_trace(
            go.Pie(
                labels=[row.category for row in pie_rows],
                values=[row.total for row in pie_rows],
                marker={'colors': CHART_COLORS[:len(pie_rows)]},
                textinfo='label+percent',
                showlegend=True,
            ),
            row=1,
            col=1,
        )
    active = [row for row in monthly_rows if row.total > 0]
    if active:
        fig.add_trace(
            go.Bar(
                x=[row.month[:3] for row in active],
                y=[row.total for row in active],
                marker_color=CHART_COLORS[0],
                showlegend=False,
            ),
            row=1,
            col=2,
        )
    fig.update_layout(
        title="Financial Overview Charts",
        width=1000,
        height=500,
        paper_bgcolor='white',
        plot_bgcolor='white',
    )
    return fig


def render_png(figure: go.Figure) -> bytes:
    return figure.to_image(format='png', width=1000, height=500, scale=2)


async def capture_chart_image(
    figure: go.Figure,
    timeout: float,
    renderer: Optional[ChartRenderer] = None,
) -> Optional[bytes]:
    """Export ``figure`` to PNG bytes, or return ``None`` if that is not possible.

    The export runs in a worker thread and is abandoned after ``timeout``
    seconds.  Any renderer failure is logged and reported as ``None`` so the
    report can show a placeholder instead of failing.
    """
    render = renderer or render_png
    try:
        return await asyncio.wait_for(asyncio.to_thread(render, figure), timeout)
    except asyncio.TimeoutError:
        logger.warning("Chart image capture timed out", timeout=timeout)
    except Exception as exc:
        logger.warning("Chart image capture failed", error=str(exc))
    return None
