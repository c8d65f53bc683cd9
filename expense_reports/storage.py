"""Record store for expenses, budgets and categories.

The store keeps three ordered collections of plain JSON records.  Every read
goes back to the backend, so callers always see the latest data; saving a
collection overwrites it wholesale.  The aggregation engine and the report
builder never talk to a store directly: they receive snapshots.
"""

from __future__ import annotations

import json
import os
import tempfile
import uuid
from abc import ABC, abstractmethod
from copy import deepcopy
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Type, TypeVar

from loguru import logger

from .aggregation import parse_amount, parse_record_date
from .config import STORE_PATH
from .models import BUDGET_PERIODS, Budget, Category, Expense, ValidationError

EXPENSES = 'expenses'
BUDGETS = 'budgets'
CATEGORIES = 'categories'
COLLECTIONS = (EXPENSES, BUDGETS, CATEGORIES)

RecordT = TypeVar('RecordT', Expense, Budget, Category)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z')


_TEXT_FIELDS = ('category', 'description', 'name', 'icon', 'color', 'period')


def _normalise(values: Mapping[str, Any]) -> Dict[str, Any]:
    """Coerce user values to the JSON types the store persists."""
    payload = dict(values)
    if 'amount' in payload:
        payload['amount'] = parse_amount(payload['amount'])
    if 'date' in payload and not isinstance(payload['date'], str):
        if isinstance(payload['date'], (datetime, date)):
            payload['date'] = payload['date'].strftime('%Y-%m-%d')
        else:
            parsed = parse_record_date(payload['date'])
            if parsed is not None:
                payload['date'] = parsed.strftime('%Y-%m-%d')
    for name in _TEXT_FIELDS:
        if name in payload and payload[name] is not None and not isinstance(payload[name], str):
            payload[name] = str(payload[name])
    return payload


def validate_expense(data: Mapping[str, Any]) -> None:
    if parse_amount(data.get('amount')) <= 0:
        raise ValidationError('Amount must be a positive number.')
    if not str(data.get('category') or '').strip():
        raise ValidationError('Category is required.')
    if parse_record_date(data.get('date')) is None:
        raise ValidationError('A valid date is required.')


def validate_budget(data: Mapping[str, Any]) -> None:
    if parse_amount(data.get('amount')) <= 0:
        raise ValidationError('Budget amount must be a positive number.')
    if not str(data.get('category') or '').strip():
        raise ValidationError('Category is required.')
    if data.get('period', 'monthly') not in BUDGET_PERIODS:
        raise ValidationError(f"Period must be one of: {', '.join(BUDGET_PERIODS)}.")


def validate_category(data: Mapping[str, Any]) -> None:
    if not str(data.get('name') or '').strip():
        raise ValidationError('Category name is required.')


class RecordStore(ABC):
    """Base class providing CRUD per collection on top of two raw operations.

    Subclasses implement :meth:`_read` and :meth:`_write`, which move whole
    collections of JSON-compatible dicts in and out of the backend.
    """

    @abstractmethod
    def _read(self, collection: str) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    def _write(self, collection: str, records: List[Dict[str, Any]]) -> None:
        ...

    # Generic helpers -----------------------------------------------------

    def _load(self, collection: str, record_type: Type[RecordT]) -> List[RecordT]:
        loaded: List[RecordT] = []
        for item in self._read(collection):
            try:
                loaded.append(record_type.from_dict(item))
            except ValidationError as exc:
                # Skip records missing required fields
                logger.warning("Skipping malformed record", collection=collection, error=str(exc))
        return loaded

    def _save(self, collection: str, records: List[Any]) -> None:
        self._write(collection, [record.to_dict() for record in records])

    def _add(
        self,
        collection: str,
        record_type: Type[RecordT],
        values: Mapping[str, Any],
        validator: Callable[[Mapping[str, Any]], None],
    ) -> RecordT:
        validator(values)
        payload = _normalise(values)
        payload['id'] = str(uuid.uuid4())
        payload['createdAt'] = _now_iso()
        record = record_type.from_dict(payload)
        records = self._read(collection)
        records.append(record.to_dict())
        self._write(collection, records)
        return record

    def _update(
        self,
        collection: str,
        record_type: Type[RecordT],
        record_id: str,
        updates: Mapping[str, Any],
        validator: Callable[[Mapping[str, Any]], None],
    ) -> Optional[RecordT]:
        records = self._read(collection)
        for index, item in enumerate(records):
            if item.get('id') != record_id:
                continue
            merged = {**item, **{k: v for k, v in updates.items() if k != 'id'}}
            validator(merged)
            merged = _normalise(merged)
            records[index] = record_type.from_dict(merged).to_dict()
            self._write(collection, records)
            return record_type.from_dict(records[index])
        return None

    def _delete(self, collection: str, record_id: str) -> None:
        records = [item for item in self._read(collection) if item.get('id') != record_id]
        self._write(collection, records)

    def _write_all(self, documents: Mapping[str, List[Dict[str, Any]]]) -> None:
        for collection, records in documents.items():
            self._write(collection, records)

    def clear(self) -> Dict[str, int]:
        """Delete every expense, budget and category.

        Returns:
            Number of records removed per collection
        """
        removed = {name: len(self._read(name)) for name in COLLECTIONS}
        self._write_all({name: [] for name in COLLECTIONS})
        logger.info("Cleared all records", **removed)
        return removed

    # Expenses ------------------------------------------------------------

    def get_expenses(self) -> List[Expense]:
        return self._load(EXPENSES, Expense)

    def save_expenses(self, expenses: List[Expense]) -> None:
        self._save(EXPENSES, expenses)

    def add_expense(self, **values: Any) -> Expense:
        return self._add(EXPENSES, Expense, values, validate_expense)

    def update_expense(self, expense_id: str, **updates: Any) -> Optional[Expense]:
        return self._update(EXPENSES, Expense, expense_id, updates, validate_expense)

    def delete_expense(self, expense_id: str) -> None:
        self._delete(EXPENSES, expense_id)

    # Budgets -------------------------------------------------------------

    def get_budgets(self) -> List[Budget]:
        return self._load(BUDGETS, Budget)

    def save_budgets(self, budgets: List[Budget]) -> None:
        self._save(BUDGETS, budgets)

    def add_budget(self, **values: Any) -> Budget:
        return self._add(BUDGETS, Budget, values, validate_budget)

    def update_budget(self, budget_id: str, **updates: Any) -> Optional[Budget]:
        return self._update(BUDGETS, Budget, budget_id, updates, validate_budget)

    def delete_budget(self, budget_id: str) -> None:
        self._delete(BUDGETS, budget_id)

    # Categories ----------------------------------------------------------

    def get_categories(self) -> List[Category]:
        return self._load(CATEGORIES, Category)

    def save_categories(self, categories: List[Category]) -> None:
        self._save(CATEGORIES, categories)

    def add_category(self, **values: Any) -> Category:
        return self._add(CATEGORIES, Category, values, validate_category)

    def update_category(self, category_id: str, **updates: Any) -> Optional[Category]:
        return self._update(CATEGORIES, Category, category_id, updates, validate_category)

    def delete_category(self, category_id: str) -> None:
        self._delete(CATEGORIES, category_id)

    def rename_category(self, category_id: str, new_name: str, relink: bool = False) -> Optional[Category]:
        """Rename a category, optionally rewriting the labels that point at it.

        Expenses and budgets reference categories by name.  Without
        ``relink`` they keep the old label, exactly as a plain update would.
        """
        current = next((c for c in self.get_categories() if c.id == category_id), None)
        if current is None:
            return None
        renamed = self.update_category(category_id, name=new_name)
        if relink and current.name != new_name:
            for collection in (EXPENSES, BUDGETS):
                records = self._read(collection)
                for item in records:
                    if item.get('category') == current.name:
                        item['category'] = new_name
                self._write(collection, records)
        return renamed


class InMemoryRecordStore(RecordStore):
    """Store backed by a dict; used by tests and as a scratch store."""

    def __init__(self, initial: Optional[Mapping[str, List[Dict[str, Any]]]] = None):
        self._data: Dict[str, List[Dict[str, Any]]] = {name: [] for name in COLLECTIONS}
        for name, records in (initial or {}).items():
            if name in self._data:
                self._data[name] = deepcopy(list(records))

    def _read(self, collection: str) -> List[Dict[str, Any]]:
        return deepcopy(self._data[collection])

    def _write(self, collection: str, records: List[Dict[str, Any]]) -> None:
        self._data[collection] = deepcopy(records)


class JsonFileRecordStore(RecordStore):
    """Store persisted as a single JSON document that is overwritten on every write."""

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path or STORE_PATH)

    def _load_document(self) -> Dict[str, List[Dict[str, Any]]]:
        empty: Dict[str, List[Dict[str, Any]]] = {name: [] for name in COLLECTIONS}
        if not self.path.exists():
            return empty
        try:
            with self.path.open('r', encoding='utf-8') as handle:
                data = json.load(handle)
        except (json.JSONDecodeError, OSError) as exc:
            logger.warning("Could not read record store, treating it as empty", path=str(self.path), error=str(exc))
            return empty
        if not isinstance(data, dict):
            return empty
        for name in COLLECTIONS:
            records = data.get(name)
            if isinstance(records, list):
                empty[name] = [item for item in records if isinstance(item, dict)]
        return empty

    def _read(self, collection: str) -> List[Dict[str, Any]]:
        return self._load_document()[collection]

    def _write(self, collection: str, records: List[Dict[str, Any]]) -> None:
        document = self._load_document()
        document[collection] = records
        self._replace_document(document)

    def _write_all(self, documents: Mapping[str, List[Dict[str, Any]]]) -> None:
        document = self._load_document()
        document.update(documents)
        self._replace_document(document)

    def _replace_document(self, document: Dict[str, List[Dict[str, Any]]]) -> None:
        # Serialise before touching the file so a bad value never truncates it.
        text = json.dumps(document, indent=2)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        handle, temp_path = tempfile.mkstemp(dir=self.path.parent, suffix='.tmp')
        try:
            with os.fdopen(handle, 'w', encoding='utf-8') as stream:
                stream.write(text)
            os.replace(temp_path, self.path)
        except OSError:
            Path(temp_path).unlink(missing_ok=True)
            raise
