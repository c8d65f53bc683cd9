"""JSON export and import of the whole record store.

The bundle format is::

    {"expenses": [...], "budgets": [...], "categories": [...], "exportDate": "<ISO-8601>"}

Imports are all-or-nothing: the document is parsed and every record checked
before any collection is overwritten.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from loguru import logger

from .models import Budget, Category, Expense, ValidationError
from .storage import BUDGETS, CATEGORIES, EXPENSES, RecordStore

_RECORD_TYPES = {
    EXPENSES: Expense,
    BUDGETS: Budget,
    CATEGORIES: Category,
}


class BackupFormatError(ValueError):
    """Raised when an import file is not a valid backup bundle."""


def export_bundle(store: RecordStore, now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or datetime.now(timezone.utc)
    return {
        EXPENSES: [expense.to_dict() for expense in store.get_expenses()],
        BUDGETS: [budget.to_dict() for budget in store.get_budgets()],
        CATEGORIES: [category.to_dict() for category in store.get_categories()],
        'exportDate': now.isoformat(),
    }


def dumps_bundle(bundle: Dict[str, Any]) -> str:
    return json.dumps(bundle, indent=2)


def backup_filename(now: Optional[datetime] = None) -> str:
    now = now or datetime.now()
    return f"expense-manager-backup-{now:%Y-%m-%d}.json"


def parse_bundle(payload: Union[str, bytes]) -> Dict[str, List[Any]]:
    """Parse and validate a backup document without touching any store.

    Returns:
        Mapping of collection name to parsed records, containing only the
        collections present in the document

    Raises:
        BackupFormatError: If the document is not JSON, is not an object, or
            holds a collection that is not a list of valid records
    """
    try:
        data = json.loads(payload)
    except (json.JSONDecodeError, UnicodeDecodeError, TypeError) as exc:
        raise BackupFormatError(f"Invalid file format: {exc}") from exc
    if not isinstance(data, dict):
        raise BackupFormatError("Invalid file format: expected a JSON object")

    parsed: Dict[str, List[Any]] = {}
    for name, record_type in _RECORD_TYPES.items():
        if name not in data or data[name] is None:
            continue
        items = data[name]
        if not isinstance(items, list):
            raise BackupFormatError(f"Invalid file format: '{name}' must be a list")
        records = []
        for position, item in enumerate(items):
            if not isinstance(item, dict):
                raise BackupFormatError(f"Invalid file format: {name}[{position}] is not an object")
            try:
                records.append(record_type.from_dict(item))
            except ValidationError as exc:
                raise BackupFormatError(f"Invalid file format: {name}[{position}]: {exc}") from exc
        parsed[name] = records
    return parsed


def import_bundle(store: RecordStore, payload: Union[str, bytes]) -> Dict[str, int]:
    """Replace each collection present in ``payload``.

    Returns:
        Number of records written per collection
    """
    parsed = parse_bundle(payload)
    if EXPENSES in parsed:
        store.save_expenses(parsed[EXPENSES])
    if BUDGETS in parsed:
        store.save_budgets(parsed[BUDGETS])
    if CATEGORIES in parsed:
        store.save_categories(parsed[CATEGORIES])
    counts = {name: len(records) for name, records in parsed.items()}
    logger.info("Imported backup bundle", **counts)
    return counts
