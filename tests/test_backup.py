"""Unit tests for expense_reports.backup export and import."""

from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest

from expense_reports.backup import (
    BackupFormatError,
    backup_filename,
    dumps_bundle,
    export_bundle,
    import_bundle,
)
from expense_reports.storage import InMemoryRecordStore


def populated_store():
    store = InMemoryRecordStore()
    store.add_category(name='Food', icon='utensils', color='#22c55e')
    store.add_category(name='Rent', icon='home', color='#3b82f6')
    store.add_expense(amount=50, category='Food', description='Groceries', date='2024-03-01')
    store.add_expense(amount=900, category='Rent', description='March rent', date='2024-03-02')
    store.add_budget(category='Food', amount=100, period='monthly')
    return store


def test_export_bundle_shape() -> None:
    bundle = export_bundle(populated_store(), now=datetime(2024, 3, 5, tzinfo=timezone.utc))
    assert set(bundle) == {'expenses', 'budgets', 'categories', 'exportDate'}
    assert len(bundle['expenses']) == 2
    assert bundle['exportDate'].startswith('2024-03-05')
    assert bundle['expenses'][0]['createdAt']


def test_export_then_import_reproduces_collections() -> None:
    source = populated_store()
    payload = dumps_bundle(export_bundle(source))

    target = InMemoryRecordStore()
    counts = import_bundle(target, payload)

    assert counts == {'expenses': 2, 'budgets': 1, 'categories': 2}
    assert target.get_expenses() == source.get_expenses()
    assert target.get_budgets() == source.get_budgets()
    assert target.get_categories() == source.get_categories()


def test_import_only_overwrites_present_collections() -> None:
    store = populated_store()
    payload = json.dumps({'budgets': [{'id': 'b9', 'category': 'Rent', 'amount': 1000, 'period': 'monthly'}]})
    import_bundle(store, payload)
    assert [b.id for b in store.get_budgets()] == ['b9']
    assert len(store.get_expenses()) == 2
    assert len(store.get_categories()) == 2


@pytest.mark.parametrize('payload', [
    'not json at all',
    '[1, 2, 3]',
    json.dumps({'expenses': 'nope'}),
    json.dumps({'expenses': [42]}),
    # The valid budgets must not be applied when expenses are broken.
    json.dumps({
        'budgets': [{'id': 'b1', 'category': 'Food', 'amount': 1}],
        'expenses': [{'id': 'e1', 'category': 'Food'}],
    }),
])
def test_malformed_import_leaves_data_untouched(payload) -> None:
    store = populated_store()
    before = export_bundle(store, now=datetime(2024, 1, 1))
    with pytest.raises(BackupFormatError):
        import_bundle(store, payload)
    assert export_bundle(store, now=datetime(2024, 1, 1)) == before


def test_backup_filename() -> None:
    assert backup_filename(datetime(2024, 3, 5)) == 'expense-manager-backup-2024-03-05.json'
