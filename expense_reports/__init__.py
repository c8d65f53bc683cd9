"""Top‑level package for Expense Reports.

The primary modules are:

* ``date_ranges`` – resolve today/week/month/custom into inclusive ranges
* ``aggregation`` – monthly, category and budget summaries of a snapshot
* ``report`` – multi-page PDF report assembly
* ``generation`` – serialised, failure-safe report generation over a store
* ``storage`` and ``backup`` – record persistence and JSON export/import
* ``dashboard`` – a Streamlit page that ties everything together

To run the dashboard from the command line you can execute:

```bash
streamlit run expense_reports/dashboard.py
```
"""

from . import aggregation  # noqa: F401  # re-exported for convenience
from . import date_ranges  # noqa: F401  # re-exported for convenience
from . import report  # noqa: F401  # re-exported for convenience
from .generation import ReportGenerator, ReportOutcome  # noqa: F401
from .storage import InMemoryRecordStore, JsonFileRecordStore  # noqa: F401


__all__ = [
    "aggregation",
    "date_ranges",
    "report",
    "ReportGenerator",
    "ReportOutcome",
    "InMemoryRecordStore",
    "JsonFileRecordStore",
]
