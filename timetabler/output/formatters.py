"""
Output formatters for scheduling results.

This module provides formatters for different output formats:
- JSON: Complete result with diagnostics and views
- CSV: One row per session assignment, for spreadsheets
- Console: rich panels and a weekly grid for the CLI
- Entity views: one faculty member's, group's or room's week
"""

from __future__ import annotations

import csv
import json
from io import StringIO
from pathlib import Path
from typing import TYPE_CHECKING, Optional, TextIO

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from timetabler.data.models import day_name

if TYPE_CHECKING:
    from .schema import EntitySchedule, SessionOutput, TimetableOutput


# =============================================================================
# Constants
# =============================================================================

DAY_ABBREV = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]

STATUS_STYLES = {
    "FEASIBLE": "green",
    "TIMEOUT_PARTIAL": "yellow",
}


def _day_abbrev(day: int) -> str:
    return DAY_ABBREV[day] if 0 <= day < len(DAY_ABBREV) else f"D{day}"


# =============================================================================
# JSON Formatter
# =============================================================================

class JSONFormatter:
    """Formats scheduling output as JSON."""

    def __init__(self, indent: int = 2, ensure_ascii: bool = False):
        """
        Initialize JSON formatter.

        Args:
            indent: JSON indentation level
            ensure_ascii: If True, escape non-ASCII characters
        """
        self.indent = indent
        self.ensure_ascii = ensure_ascii

    def format(self, output: TimetableOutput) -> str:
        return json.dumps(output.to_dict(), indent=self.indent, ensure_ascii=self.ensure_ascii)

    def format_compact(self, output: TimetableOutput) -> str:
        """Format as compact single-line JSON."""
        return json.dumps(output.to_dict(), ensure_ascii=self.ensure_ascii, separators=(',', ':'))

    def format_sessions_only(self, output: TimetableOutput) -> str:
        """Format only the ordered assignment list as JSON."""
        sessions = output.timetable.sessions if output.timetable else []
        data = [s.model_dump(by_alias=True, exclude_none=True) for s in sessions]
        return json.dumps(data, indent=self.indent, ensure_ascii=self.ensure_ascii)


def format_json(output: TimetableOutput, indent: int = 2) -> str:
    """Convenience function for JSON formatting."""
    return JSONFormatter(indent=indent).format(output)


# =============================================================================
# CSV Formatter
# =============================================================================

class CSVFormatter:
    """Formats the session assignments as CSV."""

    DEFAULT_COLUMNS = [
        'sessionId', 'courseId', 'timeslotId', 'day', 'period', 'facultyId', 'roomId',
    ]

    DETAILED_COLUMNS = DEFAULT_COLUMNS + [
        'dayName', 'durationSlots', 'studentGroupIds', 'courseName', 'facultyName', 'roomName',
    ]

    def __init__(
        self,
        columns: list[str] | None = None,
        include_header: bool = True,
        delimiter: str = ',',
    ):
        """
        Initialize CSV formatter.

        Args:
            columns: Columns to include (None = DEFAULT_COLUMNS)
            include_header: Whether to include header row
            delimiter: Field delimiter
        """
        self.columns = columns or self.DEFAULT_COLUMNS
        self.include_header = include_header
        self.delimiter = delimiter

    def format(self, output: TimetableOutput) -> str:
        buffer = StringIO()
        self.write(output, buffer)
        return buffer.getvalue()

    def write(self, output: TimetableOutput, file: TextIO) -> None:
        """Write CSV rows for every assigned session to a file-like object."""
        writer = csv.writer(file, delimiter=self.delimiter, lineterminator='\n')
        if self.include_header:
            writer.writerow(self.columns)

        sessions = output.timetable.sessions if output.timetable else []
        for session in sessions:
            writer.writerow(self._session_to_row(session))

    def _session_to_row(self, session: SessionOutput) -> list[str]:
        field_map = {
            'sessionId': session.session_id,
            'courseId': session.course_id,
            'timeslotId': session.timeslot_id,
            'day': str(session.day),
            'period': str(session.period),
            'facultyId': session.faculty_id,
            'roomId': session.room_id or '',
            'dayName': day_name(session.day),
            'durationSlots': str(session.duration_slots),
            'studentGroupIds': ';'.join(session.student_group_ids),
            'courseName': session.course_name or '',
            'facultyName': session.faculty_name or '',
            'roomName': session.room_name or '',
        }
        return [field_map.get(col, '') for col in self.columns]


def format_csv(output: TimetableOutput, detailed: bool = False) -> str:
    """Convenience function for CSV formatting."""
    columns = CSVFormatter.DETAILED_COLUMNS if detailed else None
    return CSVFormatter(columns=columns).format(output)


# =============================================================================
# Console Formatter
# =============================================================================

class ConsoleFormatter:
    """Prints a result summary and weekly grid with rich."""

    def __init__(self, console: Optional[Console] = None, width: int | None = None):
        self.console = console or Console(width=width)

    def print(self, output: TimetableOutput) -> None:
        status = output.status.value
        style = STATUS_STYLES.get(status, "red")
        stats = output.statistics

        self.console.print(Panel(
            Text(status, style=f"bold {style}"),
            title="Timetable Result",
            subtitle=f"{stats.solve_time_seconds:.2f}s, {stats.nodes_explored} nodes",
        ))

        if output.diagnostics:
            self.console.print("\n[bold]Diagnostics:[/bold]")
            for diagnostic in output.diagnostics:
                kind = f"[cyan]{diagnostic.kind}[/cyan] " if diagnostic.kind else ""
                self.console.print(f"  - {kind}{escape(diagnostic.message)}")

        if output.timetable is not None:
            self.console.print(f"\n[bold]Sessions:[/bold] {len(output.timetable.sessions)}")
            if stats.objective != "none":
                self.console.print(f"[bold]Objective ({stats.objective}):[/bold] {stats.objective_value}")
            self.console.print(self.week_grid(output.timetable.sessions))

    def week_grid(self, sessions: list[SessionOutput], title: str = "Weekly Schedule") -> Table:
        """Periods as rows, days as columns."""
        table = Table(title=title, show_header=True, header_style="bold cyan")
        table.add_column("Period", style="dim")

        days = sorted({s.day for s in sessions})
        periods = sorted({s.period + k for s in sessions for k in range(s.duration_slots)})
        for day in days:
            table.add_column(_day_abbrev(day), justify="center")

        cells: dict[tuple[int, int], list[str]] = {}
        for session in sessions:
            for k in range(session.duration_slots):
                cells.setdefault((session.day, session.period + k), []).append(
                    f"{session.course_id} ({session.faculty_id})"
                )

        for period in periods:
            row = [f"P{period}"]
            for day in days:
                row.append("\n".join(cells.get((day, period), ["-"])))
            table.add_row(*row)
        return table


def print_console(output: TimetableOutput, console: Optional[Console] = None) -> None:
    """Print a result to the console."""
    ConsoleFormatter(console=console).print(output)


# =============================================================================
# Entity View Formatter
# =============================================================================

class EntityViewFormatter:
    """Plain-text week for one faculty member, student group or room."""

    def format(self, schedule: EntitySchedule, entity_label: str) -> str:
        lines = [
            "=" * 50,
            f"{entity_label.upper()}: {schedule.name} ({schedule.id})",
            "=" * 50,
            "",
        ]
        for day in sorted(schedule.by_day):
            lines.append(f"--- {day_name(day)} ---")
            for session in schedule.by_day[day]:
                room = f" | Room: {session.room_id}" if session.room_id else ""
                lines.append(
                    f"  P{session.period}: {session.course_name or session.course_id} "
                    f"[{session.session_id}] | {session.faculty_name or session.faculty_id}{room}"
                )
            lines.append("")
        lines.append(f"Total sessions: {len(schedule.sessions)}")
        return "\n".join(lines)


# =============================================================================
# File Output
# =============================================================================

def save_json(output: TimetableOutput, filepath: str | Path, indent: int = 2) -> None:
    """
    Save output as JSON file.

    Args:
        output: TimetableOutput to save
        filepath: Path to save to
        indent: JSON indentation
    """
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)
    filepath.write_text(JSONFormatter(indent=indent).format(output), encoding='utf-8')


def save_csv(output: TimetableOutput, filepath: str | Path, detailed: bool = False) -> None:
    """
    Save the session assignments as a CSV file.

    Args:
        output: TimetableOutput to save
        filepath: Path to save to
        detailed: Include names and group columns
    """
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)
    columns = CSVFormatter.DETAILED_COLUMNS if detailed else None
    with open(filepath, 'w', newline='', encoding='utf-8') as f:
        CSVFormatter(columns=columns).write(output, f)
