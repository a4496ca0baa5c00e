"""Helpers for exporting records: column tables, file names, time estimates."""

from orderharvest.export.columns import (
    COLUMNS,
    Column,
    ExportType,
    column_headers,
    project,
)
from orderharvest.export.estimate import TimeEstimate, estimate_extraction_time
from orderharvest.export.filenames import generate_export_filename

__all__ = [
    "COLUMNS",
    "Column",
    "ExportType",
    "TimeEstimate",
    "column_headers",
    "estimate_extraction_time",
    "generate_export_filename",
    "project",
]
