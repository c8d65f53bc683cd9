"""Configuration management for the expense reports package.

This module centralizes all configuration values including paths,
report presentation defaults, and environment variable overrides.
"""

from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

from loguru import logger

# Base project root - assumes this file is in expense_reports/
_PROJECT_ROOT = Path(__file__).parent.parent.resolve()

# Data directories
DATA_DIR = Path(os.getenv("EXPENSE_REPORTS_DATA_DIR", _PROJECT_ROOT / "data"))
REPORTS_DIR = DATA_DIR / "reports"

# Record store
STORE_PATH = Path(
    os.getenv("EXPENSE_REPORTS_STORE_PATH", DATA_DIR / "records.json")
).resolve()

SETTINGS_PATH = DATA_DIR / "settings.json"


def ensure_data_directories() -> None:
    """Create all required data directories if they don't exist."""
    for directory in [DATA_DIR, REPORTS_DIR]:
        directory.mkdir(parents=True, exist_ok=True)


@dataclass(frozen=True)
class ReportSettings:
    """Presentation settings shared by the aggregation engine and the PDF report."""

    currency_symbol: str = "$"
    decimal_places: int = 2
    warning_threshold: float = 80.0
    over_threshold: float = 100.0
    # Minimum free space (mm) below the cursor before a table section starts.
    page_break_threshold_mm: float = 57.0
    description_max_length: int = 35
    chart_timeout_seconds: float = 10.0
    confidential_notice: str = "Confidential - For personal use only"


DEFAULT_SETTINGS = ReportSettings()


def load_settings(path: Optional[Path] = None) -> ReportSettings:
    """Load report settings from JSON, falling back to defaults.

    Unknown keys are ignored and a missing or unreadable file yields the
    defaults, mirroring how the other small JSON caches are read.
    """
    target = path or SETTINGS_PATH
    if not target.exists():
        return DEFAULT_SETTINGS
    try:
        with target.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
    except (json.JSONDecodeError, OSError) as exc:
        logger.warning("Could not read report settings, using defaults", path=str(target), error=str(exc))
        return DEFAULT_SETTINGS
    if not isinstance(data, dict):
        return DEFAULT_SETTINGS
    known = {f.name for f in fields(ReportSettings)}
    merged: Dict[str, Any] = asdict(DEFAULT_SETTINGS)
    merged.update({k: v for k, v in data.items() if k in known})
    return ReportSettings(**merged)


def save_settings(settings: ReportSettings, path: Optional[Path] = None) -> None:
    target = path or SETTINGS_PATH
    target.parent.mkdir(parents=True, exist_ok=True)
    with target.open("w", encoding="utf-8") as handle:
        json.dump(asdict(settings), handle, indent=2, sort_keys=True)
