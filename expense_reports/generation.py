"""Report generation service.

Ties the pieces together for one download request: read a snapshot from the
store, filter it to the requested range, aggregate, capture the chart image,
and render the PDF.  Only one request runs at a time; the ``is_generating``
flag is what the UI uses to disable its download button.
"""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Callable, Optional

from loguru import logger

from .aggregation import (
    budget_status,
    category_totals,
    filter_by_date_range,
    monthly_totals,
    report_summary,
)
from .config import REPORTS_DIR, DEFAULT_SETTINGS, ReportSettings, ensure_data_directories
from .date_ranges import DateRangeError, resolve_date_range
from .report import ReportBuilder, ReportData
from .storage import RecordStore
from .visualization import ChartRenderer, capture_chart_image, create_report_figure

GENERATION_FAILED = "Failed to generate PDF report. Please try again."
GENERATION_BUSY = "A report is already being generated."
GENERATION_SUCCEEDED = "Your financial report has been saved as a PDF file."


@dataclass
class ReportOutcome:
    """Result handed back to the UI; the UI decides how to present it."""

    success: bool
    message: str
    filename: Optional[str] = None
    content: Optional[bytes] = None
    page_count: int = 0


class ReportGenerator:
    """Serialised, failure-safe PDF report generation over a record store."""

    def __init__(
        self,
        store: RecordStore,
        settings: Optional[ReportSettings] = None,
        chart_renderer: Optional[ChartRenderer] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.settings = settings or DEFAULT_SETTINGS
        self.chart_renderer = chart_renderer
        self.clock = clock or datetime.now
        self._generating = False

    @property
    def is_generating(self) -> bool:
        return self._generating

    async def generate_for_option(
        self,
        option: str,
        custom_start: Optional[date] = None,
        custom_end: Optional[date] = None,
    ) -> ReportOutcome:
        """Resolve a range option and generate the report for it."""
        try:
            date_range = resolve_date_range(option, custom_start, custom_end, now=self.clock())
        except DateRangeError as exc:
            return ReportOutcome(success=False, message=str(exc))
        return await self.generate(date_range.start, date_range.end)

    async def generate(self, start: datetime, end: datetime) -> ReportOutcome:
        if self._generating:
            return ReportOutcome(success=False, message=GENERATION_BUSY)

        self._generating = True
        try:
            data = await self._collect(start, end)
            rendered = ReportBuilder(self.settings).render(data)
        except Exception:
            logger.exception("Error generating PDF report", start=start.isoformat(), end=end.isoformat())
            return ReportOutcome(success=False, message=GENERATION_FAILED)
        finally:
            self._generating = False

        logger.info(
            "Report generated",
            filename=rendered.filename,
            pages=rendered.page_count,
            expenses=len(data.expenses),
        )
        return ReportOutcome(
            success=True,
            message=GENERATION_SUCCEEDED,
            filename=rendered.filename,
            content=rendered.content,
            page_count=rendered.page_count,
        )

    async def _collect(self, start: datetime, end: datetime) -> ReportData:
        # One read of each collection; everything below works on this snapshot.
        expenses = self.store.get_expenses()
        budgets = self.store.get_budgets()

        filtered = filter_by_date_range(expenses, start, end)
        category_rows = category_totals(filtered)
        budget_rows = budget_status(budgets, filtered, self.settings)
        summary = report_summary(filtered, budgets)

        chart_image = None
        if category_rows:
            figure = create_report_figure(category_rows, monthly_totals(filtered, end.year))
            chart_image = await capture_chart_image(
                figure,
                timeout=self.settings.chart_timeout_seconds,
                renderer=self.chart_renderer,
            )

        return ReportData(
            start=start,
            end=end,
            generated_at=self.clock(),
            expenses=filtered,
            summary=summary,
            category_rows=category_rows,
            budget_rows=budget_rows,
            chart_image=chart_image,
        )


def save_report(outcome: ReportOutcome, directory: Optional[Path] = None) -> Path:
    """Write a successful report to disk, replacing any file of the same name.

    The bytes go to a temporary file first so a reader never sees a partial
    document.

    Raises:
        ValueError: If the outcome is a failure or carries no content
    """
    if not outcome.success or outcome.content is None or not outcome.filename:
        raise ValueError("Only a successfully generated report can be saved")

    if directory is None:
        ensure_data_directories()
        directory = REPORTS_DIR
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)

    target = directory / outcome.filename
    handle, temp_path = tempfile.mkstemp(dir=directory, suffix='.tmp')
    try:
        with os.fdopen(handle, 'wb') as stream:
            stream.write(outcome.content)
        os.replace(temp_path, target)
    except OSError:
        Path(temp_path).unlink(missing_ok=True)
        raise
    return target
