"""PDF report assembly.

The report always has the same page order:

1. Summary: title banner, range caption, generation time, four summary
   tiles, category totals and budget status tables.
2. Visual analytics: the chart image.  Only present when there is at least
   one category row; an unreadable or missing image becomes a notice.
3. Expense details: every expense in the range, newest first.

Every page carries a footer with ``Page i of N``, the confidential notice
and the generation date.  Before each table section a ``CondPageBreak``
starts a new page when less than the configured space is left; tables that
still overflow are split by ReportLab with their header row repeated.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from functools import partial
from io import BytesIO
from typing import Any, List, Optional, Sequence

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas
from reportlab.platypus import (
    CondPageBreak,
    Flowable,
    Image,
    PageBreak,
    Paragraph,
    SimpleDocTemplate,
    Spacer,
    Table,
    TableStyle,
)

from .aggregation import category_label, parse_amount, parse_record_date, record_field
from .config import DEFAULT_SETTINGS, ReportSettings
from .formatting import format_currency, format_long_date, format_percent, format_short_date, truncate_text
from .models import (
    STATUS_GOOD,
    STATUS_OVER,
    STATUS_WARNING,
    BudgetStatusRow,
    CategoryReportRow,
    ReportSummary,
)

REPORT_TITLE = "Financial Report"
SUMMARY_HEADING = "Summary"
CATEGORY_HEADING = "Expenses by Category"
BUDGET_HEADING = "Budget Overview"
ANALYTICS_HEADING = "Visual Analytics"
DETAILS_HEADING = "Expense Details"

NO_CATEGORY_DATA = "No expense data available for this period."
NO_BUDGET_DATA = "No budgets have been set."
NO_EXPENSE_DATA = "No expenses recorded for this period."
CHART_UNAVAILABLE = "Chart image could not be generated for this report."

PRIMARY = colors.Color(41 / 255, 98 / 255, 255 / 255)
CATEGORY_HEADER = colors.Color(34 / 255, 197 / 255, 94 / 255)
BUDGET_HEADER = colors.Color(245 / 255, 158 / 255, 11 / 255)
DETAIL_HEADER = colors.Color(99 / 255, 102 / 255, 241 / 255)
ALTERNATE_ROW = colors.Color(245 / 255, 247 / 255, 250 / 255)
MUTED = colors.Color(100 / 255, 100 / 255, 100 / 255)
FOOTER_GREY = colors.Color(150 / 255, 150 / 255, 150 / 255)

STATUS_COLORS = {
    STATUS_GOOD: colors.Color(22 / 255, 163 / 255, 74 / 255),
    STATUS_WARNING: colors.Color(217 / 255, 119 / 255, 6 / 255),
    STATUS_OVER: colors.Color(220 / 255, 38 / 255, 38 / 255),
}

PAGE_MARGIN = 14 * mm


def report_filename(start: datetime, end: datetime, extension: str = "pdf") -> str:
    return f"Financial_Report_{start:%Y-%m-%d}_to_{end:%Y-%m-%d}.{extension}"


@dataclass(frozen=True)
class ReportData:
    """Everything the builder needs, already filtered and aggregated."""

    start: datetime
    end: datetime
    generated_at: datetime
    expenses: Sequence[Any]
    summary: ReportSummary
    category_rows: Sequence[CategoryReportRow]
    budget_rows: Sequence[BudgetStatusRow]
    chart_image: Optional[bytes] = None


@dataclass
class RenderedReport:
    content: bytes
    page_count: int
    filename: str = ""


@dataclass
class _PageCounter:
    total: int = 0


class _FooterCanvas(canvas.Canvas):
    """Canvas that defers page output until the total page count is known."""

    def __init__(self, *args, footer_notice: str = "", footer_date: str = "",
                 page_counter: Optional[_PageCounter] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self._saved_page_states: List[dict] = []
        self._footer_notice = footer_notice
        self._footer_date = footer_date
        self._page_counter = page_counter

    def showPage(self):
        self._saved_page_states.append(dict(self.__dict__))
        self._startPage()

    def save(self):
        total = len(self._saved_page_states)
        for state in self._saved_page_states:
            self.__dict__.update(state)
            self._draw_footer(total)
            super().showPage()
        if self._page_counter is not None:
            self._page_counter.total = total
        super().save()

    def _draw_footer(self, total: int) -> None:
        width, _ = self._pagesize
        self.saveState()
        self.setFont("Helvetica", 8)
        self.setFillColor(FOOTER_GREY)
        self.drawCentredString(width / 2, 10 * mm, f"Page {self._pageNumber} of {total}")
        self.drawString(PAGE_MARGIN, 10 * mm, self._footer_notice)
        self.drawRightString(width - PAGE_MARGIN, 10 * mm, self._footer_date)
        self.restoreState()


class ReportBuilder:
    """Turns aggregated report data into a PDF document."""

    def __init__(self, settings: Optional[ReportSettings] = None):
        self.settings = settings or DEFAULT_SETTINGS
        self.styles = self._build_styles()

    def _build_styles(self) -> dict:
        base = getSampleStyleSheet()
        return {
            'title': ParagraphStyle(
                'ReportTitle', parent=base['Title'], fontSize=24, leading=28,
                textColor=PRIMARY, alignment=TA_CENTER,
            ),
            'caption': ParagraphStyle(
                'ReportCaption', parent=base['Normal'], fontSize=11, leading=14,
                textColor=colors.black, alignment=TA_CENTER,
            ),
            'meta': ParagraphStyle(
                'ReportMeta', parent=base['Normal'], fontSize=9, leading=12,
                textColor=MUTED, alignment=TA_CENTER,
            ),
            'heading': ParagraphStyle(
                'SectionHeading', parent=base['Heading2'], fontSize=14, leading=18,
                textColor=colors.Color(40 / 255, 40 / 255, 40 / 255), spaceBefore=6, spaceAfter=6,
            ),
            'placeholder': ParagraphStyle(
                'Placeholder', parent=base['Italic'], fontSize=10, leading=13, textColor=MUTED,
            ),
            'tile_label': ParagraphStyle(
                'TileLabel', parent=base['Normal'], fontSize=8, leading=10,
                textColor=MUTED, alignment=TA_CENTER,
            ),
            'tile_value': ParagraphStyle(
                'TileValue', parent=base['Normal'], fontName='Helvetica-Bold', fontSize=13,
                leading=16, alignment=TA_CENTER,
            ),
        }

    # Story ---------------------------------------------------------------

    def build_story(self, data: ReportData) -> List[Flowable]:
        """Return the ordered flowables for the whole report."""
        story: List[Flowable] = []
        story.extend(self._summary_section(data))
        if data.category_rows:
            story.append(PageBreak())
            story.extend(self._analytics_section(data))
        story.append(PageBreak())
        story.extend(self._details_section(data))
        return story

    def _money(self, amount: float) -> str:
        return format_currency(amount, self.settings)

    def _section_break(self) -> CondPageBreak:
        return CondPageBreak(self.settings.page_break_threshold_mm * mm)

    def _heading(self, text: str) -> Paragraph:
        return Paragraph(text, self.styles['heading'])

    def _placeholder(self, text: str) -> Paragraph:
        return Paragraph(text, self.styles['placeholder'])

    def _summary_section(self, data: ReportData) -> List[Flowable]:
        caption = f"{format_short_date(data.start)} - {format_short_date(data.end)}"
        generated = f"Generated on {format_long_date(data.generated_at)} at {data.generated_at:%H:%M}"
        flowables: List[Flowable] = [
            Paragraph(REPORT_TITLE, self.styles['title']),
            Paragraph(f"Report period: {caption}", self.styles['caption']),
            Paragraph(generated, self.styles['meta']),
            Spacer(1, 8 * mm),
            self._heading(SUMMARY_HEADING),
            self._summary_tiles(data.summary),
            Spacer(1, 6 * mm),
            self._section_break(),
            self._heading(CATEGORY_HEADING),
        ]
        if data.category_rows:
            flowables.append(self._category_table(data.category_rows))
        else:
            flowables.append(self._placeholder(NO_CATEGORY_DATA))
        flowables.extend([Spacer(1, 6 * mm), self._section_break(), self._heading(BUDGET_HEADING)])
        if data.budget_rows:
            flowables.append(self._budget_table(data.budget_rows))
        else:
            flowables.append(self._placeholder(NO_BUDGET_DATA))
        return flowables

    def _summary_tiles(self, summary: ReportSummary) -> Table:
        tiles = [
            ("Total Expenses", self._money(summary.total_expenses)),
            ("Total Budgets", self._money(summary.total_budgets)),
            ("Transactions", str(summary.transaction_count)),
            ("Average Expense", self._money(summary.average_expense)),
        ]
        cells = [
            [Paragraph(label, self.styles['tile_label']), Paragraph(value, self.styles['tile_value'])]
            for label, value in tiles
        ]
        table = Table([cells], colWidths=[45 * mm] * 4)
        table.setStyle(TableStyle([
            ('BOX', (0, 0), (-1, -1), 0.5, colors.lightgrey),
            ('INNERGRID', (0, 0), (-1, -1), 0.5, colors.lightgrey),
            ('BACKGROUND', (0, 0), (-1, -1), ALTERNATE_ROW),
            ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
            ('TOPPADDING', (0, 0), (-1, -1), 6),
            ('BOTTOMPADDING', (0, 0), (-1, -1), 6),
        ]))
        return table

    def _data_table(self, head: List[str], body: List[List[str]], header_color, col_widths,
                    right_aligned_from: int) -> Table:
        table = Table([head] + body, colWidths=col_widths, repeatRows=1)
        commands = [
            ('BACKGROUND', (0, 0), (-1, 0), header_color),
            ('TEXTCOLOR', (0, 0), (-1, 0), colors.white),
            ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
            ('FONTSIZE', (0, 0), (-1, -1), 9),
            ('TOPPADDING', (0, 0), (-1, -1), 4),
            ('BOTTOMPADDING', (0, 0), (-1, -1), 4),
            ('ALIGN', (right_aligned_from, 0), (-1, -1), 'RIGHT'),
        ]
        for index in range(2, len(body) + 1, 2):
            commands.append(('BACKGROUND', (0, index), (-1, index), ALTERNATE_ROW))
        table.setStyle(TableStyle(commands))
        return table

    def _category_table(self, rows: Sequence[CategoryReportRow]) -> Table:
        body = [
            [row.category, self._money(row.total), str(row.count), self._money(row.average)]
            for row in rows
        ]
        return self._data_table(
            ['Category', 'Total', 'Transactions', 'Average'],
            body,
            CATEGORY_HEADER,
            [60 * mm, 40 * mm, 40 * mm, 40 * mm],
            right_aligned_from=1,
        )

    def _budget_table(self, rows: Sequence[BudgetStatusRow]) -> Table:
        body = [
            [
                row.category,
                self._money(row.budget_amount),
                self._money(row.spent),
                self._money(row.remaining),
                format_percent(row.percent_used),
                row.status,
            ]
            for row in rows
        ]
        table = self._data_table(
            ['Category', 'Budget', 'Spent', 'Remaining', 'Used', 'Status'],
            body,
            BUDGET_HEADER,
            [45 * mm, 28 * mm, 28 * mm, 28 * mm, 22 * mm, 25 * mm],
            right_aligned_from=1,
        )
        status_commands = []
        for index, row in enumerate(rows, start=1):
            status_commands.append(('TEXTCOLOR', (5, index), (5, index), STATUS_COLORS.get(row.status, colors.black)))
            status_commands.append(('FONTNAME', (5, index), (5, index), 'Helvetica-Bold'))
        table.setStyle(TableStyle(status_commands))
        return table

    def _analytics_section(self, data: ReportData) -> List[Flowable]:
        flowables: List[Flowable] = [self._heading(ANALYTICS_HEADING)]
        image = self._chart_flowable(data.chart_image)
        flowables.append(image if image is not None else self._placeholder(CHART_UNAVAILABLE))
        return flowables

    def _chart_flowable(self, chart_image: Optional[bytes]) -> Optional[Image]:
        if not chart_image:
            return None
        try:
            width, height = ImageReader(BytesIO(chart_image)).getSize()
        except Exception:
            # Anything ImageReader cannot decode is treated as a failed capture.
            return None
        if not width or not height:
            return None
        max_width = A4[0] - 2 * PAGE_MARGIN
        scale = max_width / float(width)
        return Image(BytesIO(chart_image), width=max_width, height=height * scale)

    def _details_section(self, data: ReportData) -> List[Flowable]:
        flowables: List[Flowable] = [self._section_break(), self._heading(DETAILS_HEADING)]
        if not data.expenses:
            flowables.append(self._placeholder(NO_EXPENSE_DATA))
            return flowables
        body = [self._expense_cells(expense) for expense in sort_expenses_newest_first(data.expenses)]
        flowables.append(self._data_table(
            ['Date', 'Description', 'Category', 'Amount'],
            body,
            DETAIL_HEADER,
            [35 * mm, 75 * mm, 40 * mm, 30 * mm],
            right_aligned_from=3,
        ))
        return flowables

    def _expense_cells(self, expense: Any) -> List[str]:
        raw_date = record_field(expense, 'date')
        parsed = parse_record_date(raw_date)
        shown_date = format_short_date(parsed) if parsed is not None else str(raw_date or '-')
        return [
            shown_date,
            truncate_text(record_field(expense, 'description', ''), self.settings.description_max_length),
            category_label(record_field(expense, 'category')),
            self._money(parse_amount(record_field(expense, 'amount'))),
        ]

    # Rendering -----------------------------------------------------------

    def render(self, data: ReportData) -> RenderedReport:
        """Render the report to PDF bytes.

        Errors from layout or rendering propagate to the caller; nothing is
        returned unless the whole document was built.
        """
        buffer = BytesIO()
        counter = _PageCounter()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=A4,
            leftMargin=PAGE_MARGIN,
            rightMargin=PAGE_MARGIN,
            topMargin=PAGE_MARGIN,
            bottomMargin=20 * mm,
            title=REPORT_TITLE,
        )
        canvas_maker = partial(
            _FooterCanvas,
            footer_notice=self.settings.confidential_notice,
            footer_date=format_long_date(data.generated_at),
            page_counter=counter,
        )
        doc.build(self.build_story(data), canvasmaker=canvas_maker)
        return RenderedReport(
            content=buffer.getvalue(),
            page_count=counter.total,
            filename=report_filename(data.start, data.end),
        )


def sort_expenses_newest_first(expenses: Sequence[Any]) -> List[Any]:
    """Sort by date descending; undated records go last in their original order."""
    dated = []
    undated = []
    for expense in expenses:
        parsed = parse_record_date(record_field(expense, 'date'))
        if parsed is None:
            undated.append(expense)
        else:
            dated.append((parsed, expense))
    dated.sort(key=lambda pair: pair[0], reverse=True)
    return [expense for _, expense in dated] + undated
