"""Record types for expenses, budgets and categories plus derived report rows.

Persisted records keep the camelCase keys of the JSON export format when
serialised (``createdAt``); in Python they are frozen dataclasses with
snake_case attributes.  Derived rows are produced by :mod:`aggregation` and
are never stored.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping

BUDGET_PERIODS = ("daily", "weekly", "monthly")

STATUS_GOOD = "Good"
STATUS_WARNING = "Warning"
STATUS_OVER = "Over"


class ValidationError(ValueError):
    """Raised when user-supplied record data is missing or invalid."""


def _require(data: Mapping[str, Any], *keys: str) -> None:
    missing = [key for key in keys if key not in data]
    if missing:
        raise ValidationError(f"Missing required field(s): {', '.join(missing)}")


def _created_at(data: Mapping[str, Any]) -> str:
    return data.get("createdAt", data.get("created_at", ""))


@dataclass(frozen=True)
class Expense:
    id: str
    amount: float
    category: str
    description: str
    date: str  # calendar date, e.g. "2024-03-01"
    created_at: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Expense":
        _require(data, "id", "amount", "category", "date")
        return cls(
            id=data["id"],
            amount=data["amount"],
            category=data["category"],
            description=data.get("description", ""),
            date=data["date"],
            created_at=_created_at(data),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "amount": self.amount,
            "category": self.category,
            "description": self.description,
            "date": self.date,
            "createdAt": self.created_at,
        }


@dataclass(frozen=True)
class Budget:
    id: str
    category: str
    amount: float
    period: str = "monthly"
    created_at: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Budget":
        _require(data, "id", "category", "amount")
        return cls(
            id=data["id"],
            category=data["category"],
            amount=data["amount"],
            period=data.get("period", "monthly"),
            created_at=_created_at(data),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "category": self.category,
            "amount": self.amount,
            "period": self.period,
            "createdAt": self.created_at,
        }


@dataclass(frozen=True)
class Category:
    id: str
    name: str
    icon: str = ""
    color: str = ""
    created_at: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Category":
        _require(data, "id", "name")
        return cls(
            id=data["id"],
            name=data["name"],
            icon=data.get("icon", ""),
            color=data.get("color", ""),
            created_at=_created_at(data),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "icon": self.icon,
            "color": self.color,
            "createdAt": self.created_at,
        }


@dataclass(frozen=True)
class MonthlyReportRow:
    month: str
    total: float
    count: int
    average: float


@dataclass(frozen=True)
class CategoryReportRow:
    category: str
    total: float
    count: int
    average: float


@dataclass(frozen=True)
class BudgetStatusRow:
    category: str
    budget_amount: float
    spent: float
    remaining: float
    percent_used: float
    status: str


@dataclass(frozen=True)
class ReportSummary:
    """Values shown on the four summary tiles of the report."""

    total_expenses: float
    total_budgets: float
    transaction_count: int
    average_expense: float


@dataclass(frozen=True)
class BudgetOverview:
    """Current-month spending against monthly budgets."""

    total_expenses: float
    total_budget: float
    remaining: float
    percent_used: float
    expense_count: int
    budget_count: int
