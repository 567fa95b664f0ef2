"""Output module for scheduling results."""

from .schema import (
    DaySchedule,
    DiagnosticOutput,
    EntitySchedule,
    SessionOutput,
    SolveStatistics,
    Timetable,
    TimetableOutput,
    TimetableViews,
    create_views,
)
from .extractor import (
    ResultExtractor,
    failure_output,
    verify_timetable,
)
from .formatters import (
    CSVFormatter,
    ConsoleFormatter,
    EntityViewFormatter,
    JSONFormatter,
    format_csv,
    format_json,
    print_console,
    save_csv,
    save_json,
)

__all__ = [
    # Schema
    "DaySchedule",
    "DiagnosticOutput",
    "EntitySchedule",
    "SessionOutput",
    "SolveStatistics",
    "Timetable",
    "TimetableOutput",
    "TimetableViews",
    "create_views",
    # Extraction
    "ResultExtractor",
    "failure_output",
    "verify_timetable",
    # Formatters
    "CSVFormatter",
    "ConsoleFormatter",
    "EntityViewFormatter",
    "JSONFormatter",
    "format_csv",
    "format_json",
    "print_console",
    "save_csv",
    "save_json",
]
