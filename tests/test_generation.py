"""Unit tests for expense_reports.generation.

The chart renderer is replaced with an in-process PNG writer so the tests do
not need Kaleido or a browser.
"""

from __future__ import annotations

import asyncio
import time
from datetime import date, datetime
from io import BytesIO

import pytest
from PIL import Image as PILImage

from expense_reports import generation
from expense_reports.generation import ReportGenerator, ReportOutcome, save_report
from expense_reports.storage import InMemoryRecordStore

NOW = datetime(2024, 3, 20, 10, 0)


def fake_png(_figure):
    buffer = BytesIO()
    PILImage.new('RGB', (100, 50), 'white').save(buffer, format='PNG')
    return buffer.getvalue()


def failing_renderer(_figure):
    raise RuntimeError("no browser available")


def sample_store():
    store = InMemoryRecordStore()
    store.add_expense(amount=50, category='Food', description='Groceries', date='2024-03-01')
    store.add_expense(amount=30, category='Food', description='Dinner', date='2024-03-15')
    store.add_expense(amount=400, category='Rent', description='February rent', date='2024-02-01')
    store.add_budget(category='Food', amount=100, period='monthly')
    return store


def make_generator(store=None, renderer=fake_png):
    return ReportGenerator(store or sample_store(), chart_renderer=renderer, clock=lambda: NOW)


def test_generate_for_month_produces_named_pdf() -> None:
    outcome = asyncio.run(make_generator().generate_for_option('month'))
    assert outcome.success
    assert outcome.filename == 'Financial_Report_2024-03-01_to_2024-03-31.pdf'
    assert outcome.content.startswith(b'%PDF')
    assert outcome.page_count == 3


def test_empty_range_omits_analytics_page() -> None:
    generator = make_generator()
    outcome = asyncio.run(generator.generate_for_option('custom', date(2023, 1, 1), date(2023, 1, 31)))
    assert outcome.success
    assert outcome.page_count == 2


def test_chart_failure_still_produces_report() -> None:
    outcome = asyncio.run(make_generator(renderer=failing_renderer).generate_for_option('month'))
    assert outcome.success
    assert outcome.page_count == 3


def test_invalid_custom_range_is_rejected_without_generation() -> None:
    store = sample_store()
    calls = []
    original = store.get_expenses
    store.get_expenses = lambda: calls.append(1) or original()

    generator = make_generator(store)
    outcome = asyncio.run(generator.generate_for_option('custom', date(2024, 3, 10), date(2024, 3, 1)))

    assert not outcome.success
    assert outcome.content is None
    assert calls == []
    assert not generator.is_generating


def test_assembly_error_is_reported_and_flag_cleared(monkeypatch) -> None:
    def explode(self, data):
        raise RuntimeError("layout exploded")

    monkeypatch.setattr(generation.ReportBuilder, 'render', explode)
    generator = make_generator()
    outcome = asyncio.run(generator.generate_for_option('month'))

    assert not outcome.success
    assert outcome.message == generation.GENERATION_FAILED
    assert outcome.content is None
    assert not generator.is_generating


def test_concurrent_request_is_refused_while_generating() -> None:
    def slow_png(figure):
        time.sleep(0.2)
        return fake_png(figure)

    generator = make_generator(renderer=slow_png)

    async def run_both():
        first = asyncio.create_task(generator.generate_for_option('month'))
        await asyncio.sleep(0.05)
        assert generator.is_generating
        second = await generator.generate_for_option('month')
        return await first, second

    first, second = asyncio.run(run_both())
    assert first.success
    assert not second.success
    assert second.message == generation.GENERATION_BUSY
    assert not generator.is_generating


def test_save_report_writes_only_successful_outcomes(tmp_path) -> None:
    outcome = asyncio.run(make_generator().generate_for_option('month'))
    path = save_report(outcome, tmp_path)
    assert path.name == outcome.filename
    assert path.read_bytes() == outcome.content
    assert [p.name for p in tmp_path.iterdir()] == [outcome.filename]

    with pytest.raises(ValueError):
        save_report(ReportOutcome(success=False, message='nope'), tmp_path)
