"""
Command-line interface for the timetable scheduler.

Usage:
    python -m timetabler solve input.json -o output.json --time-budget 30
    python -m timetabler validate input.json
    python -m timetabler view output.json --faculty F001
    python -m timetabler generate problem.json --size small
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from .data.generator import (
    generate_large_problem,
    generate_medium_problem,
    generate_small_problem,
    get_generation_stats,
    save_generated_problem,
)
from .data.loader import load_problem_with_config
from .data.models import (
    DAY_NAMES,
    InvalidInputError,
    OptimizationObjective,
    ProblemInput,
    SolveConfig,
)
from .diagnostics import find_saturation
from .main import Scheduler
from .model_builder import ModelBuilder, ModelError, estimate_time_budget
from .output.formatters import ConsoleFormatter, EntityViewFormatter, save_csv, save_json
from .output.schema import EntitySchedule, TimetableOutput

# Create Typer app
app = typer.Typer(
    name="timetabler",
    help="Class timetable scheduler using parallel backtracking search.",
    add_completion=False,
)

# Rich console for pretty output
console = Console()

DAY_MAP = {name.lower(): i for i, name in enumerate(DAY_NAMES)}


# =============================================================================
# Helper Functions
# =============================================================================

def configure_logging(verbose: bool) -> None:
    """Route library logging through rich."""
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def load_input(input_path: Path) -> tuple[ProblemInput, Optional[SolveConfig]]:
    """Load and validate input data."""
    if not input_path.exists():
        console.print(f"[red]Error:[/red] Input file not found: {input_path}")
        raise typer.Exit(code=1)

    try:
        return load_problem_with_config(input_path)
    except InvalidInputError as e:
        console.print("[red]Error loading input:[/red]")
        for error in e.errors:
            console.print(f"  - {error}", markup=False)
        raise typer.Exit(code=1)


def load_output(output_path: Path) -> TimetableOutput:
    """Load output JSON file."""
    try:
        with open(output_path) as f:
            data = json.load(f)
        return TimetableOutput.model_validate(data)
    except (json.JSONDecodeError, ValidationError) as e:
        console.print(f"[red]Error loading output:[/red] {e}", markup=False)
        raise typer.Exit(code=1)


def build_config(
    file_config: Optional[SolveConfig],
    time_budget: Optional[float],
    workers: Optional[int],
    objective: Optional[OptimizationObjective],
    allow_partial: bool,
    seed: Optional[int],
) -> SolveConfig:
    """
    Command-line options override the input file's config block.

    Raises:
        ValidationError: If an override is out of range
    """
    data = file_config.model_dump() if file_config else {}
    overrides = {
        "time_budget_seconds": time_budget,
        "worker_count": workers,
        "optimization_objective": objective,
        "seed": seed,
    }
    data.update({name: value for name, value in overrides.items() if value is not None})
    if allow_partial:
        data["allow_partial"] = True
    return SolveConfig.model_validate(data)


# =============================================================================
# Commands
# =============================================================================

@app.command()
def solve(
    input_file: Path = typer.Argument(
        ...,
        help="Path to problem JSON file",
        exists=True,
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output", "-o",
        help="Path to write result JSON file",
    ),
    csv_output: Optional[Path] = typer.Option(
        None,
        "--csv",
        help="Path to write session assignments as CSV",
    ),
    time_budget: Optional[float] = typer.Option(
        None,
        "--time-budget", "-t",
        help="Wall-clock budget in seconds (default: derived from problem size)",
        min=0.1,
        max=3600,
    ),
    workers: Optional[int] = typer.Option(
        None,
        "--workers", "-w",
        help="Number of parallel search workers",
        min=1,
        max=64,
    ),
    objective: Optional[OptimizationObjective] = typer.Option(
        None,
        "--objective",
        help="Soft objective to improve after a feasible timetable is found",
    ),
    allow_partial: bool = typer.Option(
        False,
        "--allow-partial",
        help="On timeout, report the deepest partial assignment",
    ),
    seed: Optional[int] = typer.Option(
        None,
        "--seed",
        help="Base seed for worker strategies",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose", "-v",
        help="Enable verbose output",
    ),
) -> None:
    """
    Solve a timetabling problem.

    Loads the input, builds the model, races the search workers and
    prints the result. Exits with code 1 unless the result is FEASIBLE.

    Example:
        python -m timetabler solve input.json -o output.json --time-budget 30
    """
    configure_logging(verbose)
    console.print(f"\n[bold]Loading input from:[/bold] {input_file}")

    problem, file_config = load_input(input_file)
    config = build_config(file_config, time_budget, workers, objective, allow_partial, seed)

    console.print(f"[green]Loaded:[/green] {len(problem.courses)} courses, "
                  f"{len(problem.faculty)} faculty, {len(problem.student_groups)} groups, "
                  f"{len(problem.rooms)} rooms, {len(problem.timeslots)} timeslots")

    scheduler = Scheduler(problem, config)
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True,
    ) as progress:
        progress.add_task(f"Searching with {config.worker_count} worker(s)...", total=None)
        try:
            result = scheduler.solve()
        except InvalidInputError as e:
            console.print("[red]Invalid input:[/red]")
            for error in e.errors:
                console.print(f"  - {error}", markup=False)
            raise typer.Exit(code=1)

    if verbose and scheduler.model is not None:
        stats = scheduler.model.statistics()
        console.print(f"  Sessions: {stats['num_sessions']}, "
                      f"placements: {stats['total_placements']}, "
                      f"constraints: {stats['num_constraints']}")

    console.print()
    ConsoleFormatter(console=console).print(result)

    if output:
        save_json(result, output)
        console.print(f"\n[green]Result saved to:[/green] {output}")
    if csv_output and result.is_feasible:
        save_csv(result, csv_output)
        console.print(f"[green]CSV saved to:[/green] {csv_output}")

    if not result.is_feasible:
        console.print(f"\n[red]No timetable produced ({result.status.value}).[/red]")
        raise typer.Exit(code=1)

    console.print()


@app.command()
def validate(
    input_file: Path = typer.Argument(
        ...,
        help="Path to problem JSON file to validate",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose", "-v",
        help="Show model statistics",
    ),
) -> None:
    """
    Validate a problem file without searching.

    Checks for:
    - Valid JSON structure and schema compliance
    - Reference integrity (faculty, group, course and timeslot IDs)
    - Model construction (every session has a placement)
    - Saturated resources that make the problem infeasible

    Example:
        python -m timetabler validate input.json
    """
    configure_logging(verbose)
    console.print(f"\n[bold]Validating:[/bold] {input_file}\n")

    console.print("[cyan]1. Checking schema...[/cyan]")
    problem, config = load_input(input_file)
    console.print("   [green]Schema validation passed[/green]")

    console.print("[cyan]2. Checking references and building model...[/cyan]")
    try:
        model = ModelBuilder(problem).build()
    except InvalidInputError as e:
        console.print("   [red]Reference check failed:[/red]")
        for error in e.errors:
            console.print(f"   - {error}", markup=False)
        raise typer.Exit(code=1)
    except ModelError as e:
        console.print(f"   [red]Model error:[/red] {e}", markup=False)
        raise typer.Exit(code=1)
    console.print("   [green]Model built[/green]")

    console.print("[cyan]3. Checking resource saturation...[/cyan]")
    saturated = find_saturation(model)
    if saturated:
        console.print("   [red]Problem is infeasible:[/red]")
        for diagnostic in saturated:
            console.print(f"   - {diagnostic}", markup=False)
        raise typer.Exit(code=1)
    console.print("   [green]No saturated resources[/green]")

    console.print("\n[bold]Summary:[/bold]")
    table = Table(show_header=False, box=None)
    table.add_column("Entity", style="cyan")
    table.add_column("Count", style="white")

    for name, count in problem.summary().items():
        table.add_row(name.replace("_", " ").capitalize(), str(count))
    budget = config.time_budget_seconds if config and config.time_budget_seconds else estimate_time_budget(model)
    table.add_row("Time budget (s)", f"{budget:.1f}")
    console.print(table)

    if verbose:
        stats = model.statistics()
        console.print("\n[bold]Model:[/bold]")
        console.print(f"  Placements: {stats['total_placements']} "
                      f"(domain size {stats['min_domain_size']}..{stats['max_domain_size']})")
        for name, count in stats["constraints"].items():
            console.print(f"  {name}: {count}")

    console.print("\n[green]Validation complete.[/green]\n")


@app.command()
def view(
    output_file: Path = typer.Argument(
        ...,
        help="Path to result JSON file",
        exists=True,
    ),
    faculty: Optional[str] = typer.Option(
        None,
        "--faculty", "-F",
        help="Show schedule for a faculty member",
    ),
    group: Optional[str] = typer.Option(
        None,
        "--group", "-G",
        help="Show schedule for a student group",
    ),
    room: Optional[str] = typer.Option(
        None,
        "--room", "-R",
        help="Show schedule for a room",
    ),
    day: Optional[str] = typer.Option(
        None,
        "--day", "-D",
        help="Show schedule for a day (monday, tuesday, etc.)",
    ),
) -> None:
    """
    Display views of a saved result.

    Examples:
        python -m timetabler view output.json --faculty F001
        python -m timetabler view output.json --group G01
        python -m timetabler view output.json --day monday
    """
    output = load_output(output_file)

    if output.views is None:
        ConsoleFormatter(console=console).print(output)
        return

    if faculty:
        _show_entity(output.views.by_faculty, faculty, "Faculty")
    elif group:
        _show_entity(output.views.by_group, group, "Student group")
    elif room:
        _show_entity(output.views.by_room, room, "Room")
    elif day:
        _show_day(output, day)
    else:
        ConsoleFormatter(console=console).print(output)


def _show_entity(schedules: dict[str, EntitySchedule], entity_id: str, label: str) -> None:
    """Show schedule for a faculty member, group or room."""
    schedule = schedules.get(entity_id)
    if not schedule:
        console.print(f"[red]Error:[/red] {label} '{entity_id}' not found")
        console.print(f"Available: {', '.join(schedules.keys())}")
        raise typer.Exit(code=1)

    console.print(Panel(
        f"[bold]{schedule.name}[/bold] ({schedule.id})",
        title=f"{label} Schedule",
    ))
    console.print(EntityViewFormatter().format(schedule, label), markup=False)


def _show_day(output: TimetableOutput, day_name: str) -> None:
    """Show schedule for a specific day."""
    day_lower = day_name.lower()
    if day_lower not in DAY_MAP:
        console.print(f"[red]Error:[/red] Invalid day '{day_name}'")
        console.print(f"Valid days: {', '.join(DAY_MAP.keys())}")
        raise typer.Exit(code=1)

    day_schedule = output.views.by_day.get(DAY_MAP[day_lower])
    if not day_schedule:
        console.print(f"[yellow]No sessions scheduled for {DAY_NAMES[DAY_MAP[day_lower]]}[/yellow]")
        return

    table = Table(title=day_schedule.day_name, show_header=True, header_style="bold cyan")
    table.add_column("Period")
    table.add_column("Session")
    table.add_column("Course")
    table.add_column("Faculty")
    table.add_column("Groups")
    table.add_column("Room")

    for session in day_schedule.sessions:
        table.add_row(
            f"P{session.period}",
            session.session_id,
            session.course_name or session.course_id,
            session.faculty_name or session.faculty_id,
            ", ".join(session.student_group_ids),
            session.room_id or "-",
        )

    console.print(table)


@app.command()
def generate(
    output_file: Path = typer.Argument(
        ...,
        help="Path to write the generated problem JSON",
    ),
    size: str = typer.Option(
        "medium",
        "--size", "-s",
        help="Problem size: small, medium, or large",
    ),
    seed: Optional[int] = typer.Option(
        None,
        "--seed",
        help="Random seed for reproducible problems",
    ),
) -> None:
    """
    Generate a synthetic problem for testing.

    Example:
        python -m timetabler generate problem.json --size small --seed 42
    """
    generators = {
        "small": generate_small_problem,
        "medium": generate_medium_problem,
        "large": generate_large_problem,
    }
    if size not in generators:
        console.print(f"[red]Error:[/red] Unknown size '{size}' (use small, medium or large)")
        raise typer.Exit(code=1)

    problem = generators[size](seed)
    save_generated_problem(problem, output_file)

    stats = get_generation_stats(problem)
    table = Table(title=f"Generated {size} problem", show_header=False, box=None)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="white")
    for name, value in stats.items():
        table.add_row(name.replace("_", " ").capitalize(), str(value))
    console.print(table)
    console.print(f"\n[green]Problem saved to:[/green] {output_file}")


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
