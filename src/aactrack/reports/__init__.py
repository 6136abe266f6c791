"""Patient progress reports."""

from aactrack.reports.builder import Report, ReportBuilder, ReportSummary, ReportVisualizations

__all__ = ["Report", "ReportBuilder", "ReportSummary", "ReportVisualizations"]
