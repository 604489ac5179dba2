"""Results writing domain exports."""

from .report_models import AttemptSummary
from .run_report_writer import render_run_report, summarize_attempts

__all__ = [
    "AttemptSummary",
    "render_run_report",
    "summarize_attempts",
]
