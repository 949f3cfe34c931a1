"""Hearing-clinic funnel analytics over spreadsheet exports."""

__version__ = "0.1.0"

from funnel_report.report import analyse_grid  # noqa: E402
from funnel_report.shared import AnalysisResult, DateRange, MissingDateColumnError  # noqa: E402

__all__ = [
    "AnalysisResult",
    "DateRange",
    "MissingDateColumnError",
    "__version__",
    "analyse_grid",
]
