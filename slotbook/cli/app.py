"""
Main CLI application using Typer.
"""

from pathlib import Path
from typing import Annotated, List, Optional, Tuple

import pendulum
import typer
from pendulum import DateTime
from rich.console import Console
from rich.table import Table

from ..adapters.json_storage import JsonStorage
from ..config import AppConfig, get_default_config_path
from ..domain.exceptions import AssignmentConflictError, SchedulingError
from ..domain.models import Instant, TimeSlot, WorkAssignment, parse_datetime
from ..logging_setup import configure_logging
from ..services.scheduling import SchedulingService

app = typer.Typer(
    name="slotbook",
    help="Manage employees and work assignments, and find bookable time slots",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml")
]


def _load_config(config_file: Optional[Path]) -> Tuple[AppConfig, Path]:
    """
    Load the configuration, falling back to defaults when no default file exists.

    Returns the config and the directory relative data paths resolve against.
    """
    if config_file is not None:
        return AppConfig.load_from_yaml(config_file), config_file.parent

    config_path = get_default_config_path()
    if config_path.exists():
        return AppConfig.load_from_yaml(config_path), config_path.parent

    return AppConfig(), Path.cwd()


def _build_service(config_file: Optional[Path]) -> Tuple[SchedulingService, AppConfig]:
    config, base_dir = _load_config(config_file)
    configure_logging(config.log_level)

    storage = JsonStorage(
        data_file=config.resolve_data_file(base_dir),
        default_settings=config.calendar.to_settings(),
        timezone=config.timezone,
    )
    service = SchedulingService(
        storage=storage,
        timezone=config.timezone,
        exclude_weekdays=config.exclude_days,
    )
    return service, config


def _determine_date_range(
    *,
    tz: str,
    this_week: bool,
    next_week: bool,
    start_option: Optional[str],
    end_option: Optional[str]
) -> Tuple[Instant, Instant]:
    """
    Resolve the desired date window based on shortcut flags or explicit dates.

    Explicit dates are passed through as strings so the service validates them.
    """
    if this_week and next_week:
        console.print("[red]Error: --this-week and --next-week cannot be combined.[/red]")
        raise typer.Exit(1)

    now = pendulum.now(tz)

    if this_week:
        return now.start_of("day"), now.end_of("week")

    if next_week:
        next_monday = now.next(pendulum.MONDAY).start_of("day")
        return next_monday, next_monday.add(days=6)

    start = start_option or now.start_of("day")
    if end_option:
        end = end_option
    elif start_option:
        # validated by the service; only derive a default from parseable input
        try:
            end = parse_datetime(start_option, tz).add(days=7)
        except ValueError:
            end = start_option
    else:
        end = now.start_of("day").add(days=7)

    return start, end


def _format_local(value: DateTime, tz: str, fmt: str = "DD.MM.YYYY HH:mm") -> str:
    return value.in_timezone(tz).format(fmt)


def _print_assignments(assignments: List[WorkAssignment], tz: str, title: str) -> None:
    if not assignments:
        console.print("[yellow]No assignments found.[/yellow]")
        return

    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("ID", style="dim")
    table.add_column("Employee")
    table.add_column("Client", style="bold")
    table.add_column("Type")
    table.add_column("Start")
    table.add_column("End")
    table.add_column("Status")

    for assignment in assignments:
        status_style = {
            "scheduled": "green",
            "completed": "blue",
            "cancelled": "red",
        }[assignment.status.value]
        table.add_row(
            assignment.id,
            assignment.employee_id,
            assignment.client_name,
            assignment.work_type.value,
            _format_local(assignment.start_time, tz),
            _format_local(assignment.end_time, tz, "HH:mm"),
            f"[{status_style}]{assignment.status.value}[/{status_style}]",
        )

    console.print()
    console.print(table)
    console.print()


def _fail(error: Exception) -> None:
    console.print(f"[bold red]Error:[/bold red] {error}")
    raise typer.Exit(1)


@app.command()
def slots(
    config_file: ConfigOption = None,
    start: Annotated[Optional[str], typer.Option("--start", help="Start date (YYYY-MM-DD)")] = None,
    end: Annotated[Optional[str], typer.Option("--end", help="End date (YYYY-MM-DD)")] = None,
    employee: Annotated[Optional[str], typer.Option("--employee", "-e", help="Only show slots of this employee id")] = None,
    available_only: Annotated[bool, typer.Option("--available-only", help="Hide occupied slots.")] = False,
    this_week: Annotated[bool, typer.Option("--this-week", help="From today until the end of this week.")] = False,
    next_week: Annotated[bool, typer.Option("--next-week", help="The coming week (Monday to Sunday).")] = False,
):
    """
    Show bookable and occupied time slots.

    Examples:

        slotbook slots --this-week

        slotbook slots --start 2024-01-15 --end 2024-01-19 --employee emp-1
    """
    try:
        service, config = _build_service(config_file)
        range_start, range_end = _determine_date_range(
            tz=config.timezone,
            this_week=this_week,
            next_week=next_week,
            start_option=start,
            end_option=end,
        )
        found: List[TimeSlot] = service.get_time_slots(range_start, range_end, employee_id=employee)
        names = {e.id: e.name for e in service.list_employees()}
    except (SchedulingError, FileNotFoundError, ValueError) as e:
        _fail(e)

    if available_only:
        found = [slot for slot in found if slot.available]

    if not found:
        console.print(
            "[yellow]No time slots found.[/yellow]\n"
            "Try a longer date range or check the employees' work hours."
        )
        return

    table = Table(title="Time slots", show_header=True, header_style="bold cyan")
    table.add_column("Slot")
    table.add_column("Employee", style="bold yellow")
    table.add_column("Status")
    table.add_column("Assignment", style="dim")

    for slot in found:
        table.add_row(
            slot.format_display(),
            names.get(slot.employee_id, slot.employee_id),
            "[green]free[/green]" if slot.available else "[red]occupied[/red]",
            slot.assignment_id or "",
        )

    console.print()
    console.print(table)
    console.print(f"[bold green]{sum(s.available for s in found)} of {len(found)} slot(s) available[/bold green]\n")


@app.command()
def book(
    employee: Annotated[str, typer.Option("--employee", "-e", help="Employee id")],
    start: Annotated[str, typer.Option("--start", help="Start time (ISO-8601, e.g. 2024-01-15T09:00)")],
    end: Annotated[str, typer.Option("--end", help="End time (ISO-8601)")],
    client_name: Annotated[str, typer.Option("--client-name", help="Client name")],
    client_phone: Annotated[str, typer.Option("--client-phone", help="Client phone number")],
    client_address: Annotated[str, typer.Option("--client-address", help="Client address")],
    work_type: Annotated[str, typer.Option("--work-type", help="measurement, maintenance, demolition or consultation")] = "consultation",
    comment: Annotated[Optional[str], typer.Option("--comment", help="Optional note")] = None,
    config_file: ConfigOption = None,
):
    """
    Book a work assignment for an employee.
    """
    try:
        service, config = _build_service(config_file)
        created = service.create_assignment(
            {
                "employeeId": employee,
                "clientName": client_name,
                "clientPhone": client_phone,
                "clientAddress": client_address,
                "workType": work_type,
                "startTime": start,
                "endTime": end,
                "comment": comment,
            }
        )
    except AssignmentConflictError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        for conflict in e.conflicts:
            console.print(f"  overlaps {conflict.id} ({conflict.client_name})")
        raise typer.Exit(1)
    except (SchedulingError, FileNotFoundError, ValueError) as e:
        _fail(e)

    console.print(
        f"[green]✓ Booked {created.id}[/green] "
        f"{_format_local(created.start_time, config.timezone)} - "
        f"{_format_local(created.end_time, config.timezone, 'HH:mm')}"
    )


@app.command()
def cancel(
    assignment_id: Annotated[str, typer.Argument(help="Assignment id")],
    config_file: ConfigOption = None,
):
    """
    Cancel a work assignment; its slot becomes bookable again.
    """
    try:
        service, _ = _build_service(config_file)
        service.cancel_assignment(assignment_id)
    except (SchedulingError, FileNotFoundError, ValueError) as e:
        _fail(e)

    console.print(f"[green]✓ Assignment {assignment_id} cancelled.[/green]")


@app.command()
def schedule(
    employee: Annotated[str, typer.Argument(help="Employee id")],
    start: Annotated[Optional[str], typer.Option("--start", help="Start date (YYYY-MM-DD), default now")] = None,
    end: Annotated[Optional[str], typer.Option("--end", help="End date (YYYY-MM-DD), default one week ahead")] = None,
    config_file: ConfigOption = None,
):
    """
    Show an employee's assignments.
    """
    try:
        service, config = _build_service(config_file)
        result = service.get_employee_schedule(employee, start_date=start, end_date=end)
    except (SchedulingError, FileNotFoundError, ValueError) as e:
        _fail(e)

    hours = result.employee.work_hours
    console.print(
        f"\n[bold]{result.employee.name}[/bold] ({result.employee.email}) "
        f"works {hours.start} - {hours.end}"
    )
    _print_assignments(result.assignments, config.timezone, "Schedule")


@app.command()
def assignments(
    start: Annotated[str, typer.Option("--start", help="Start date (YYYY-MM-DD)")],
    end: Annotated[str, typer.Option("--end", help="End date (YYYY-MM-DD)")],
    employee: Annotated[Optional[str], typer.Option("--employee", "-e", help="Employee id")] = None,
    config_file: ConfigOption = None,
):
    """
    List assignments touching a date range.
    """
    try:
        service, config = _build_service(config_file)
        found = service.get_assignments_for_range(start, end, employee_id=employee)
    except (SchedulingError, FileNotFoundError, ValueError) as e:
        _fail(e)

    _print_assignments(found, config.timezone, "Work assignments")


@app.command()
def employees(
    config_file: ConfigOption = None,
):
    """
    List all employees.
    """
    try:
        service, _ = _build_service(config_file)
        all_employees = service.list_employees()
    except (SchedulingError, FileNotFoundError, ValueError) as e:
        _fail(e)

    if not all_employees:
        console.print("[yellow]No employees defined.[/yellow]")
        return

    table = Table(
        title="Employees",
        show_header=True,
        header_style="bold cyan"
    )
    table.add_column("ID", style="dim")
    table.add_column("Name", style="bold yellow")
    table.add_column("E-Mail")
    table.add_column("Work hours")

    for employee in all_employees:
        table.add_row(
            employee.id,
            employee.name,
            employee.email,
            f"{employee.work_hours.start} - {employee.work_hours.end}",
        )

    console.print()
    console.print(table)
    console.print()


@app.command("add-employee")
def add_employee(
    name: Annotated[str, typer.Option("--name", help="Display name")],
    email: Annotated[str, typer.Option("--email", help="E-mail address")],
    work_start: Annotated[str, typer.Option("--work-start", help="Start of work hours (HH:MM)")] = "08:00",
    work_end: Annotated[str, typer.Option("--work-end", help="End of work hours (HH:MM)")] = "16:30",
    config_file: ConfigOption = None,
):
    """
    Add an employee.
    """
    try:
        service, _ = _build_service(config_file)
        employee = service.add_employee(name, email, work_start, work_end)
    except (SchedulingError, FileNotFoundError, ValueError) as e:
        _fail(e)

    console.print(f"[green]✓ Added {employee.name} as {employee.id}[/green]")


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]slotbook[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
