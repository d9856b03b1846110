"""
Main CLI application using Typer.

Read-only tooling over stored appointments: list free slots, show
occupancy and print the status lifecycle.
"""

import logging
from pathlib import Path
from typing import Annotated, Optional, Tuple

import pendulum
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from ..adapters.event_publisher import LoggingEventPublisher
from ..adapters.memory import InMemoryAppointmentRepository, InMemoryPatientDirectory
from ..config import ClinicConfig, get_default_config_path
from ..domain.availability import AvailabilityService
from ..domain.exceptions import ClinicSchedError
from ..domain.status import ALLOWED_TRANSITIONS, TERMINAL_STATUSES
from ..services.scheduling import SchedulingService

app = typer.Typer(
    name="clinicsched",
    help="Inspect clinic appointment availability",
    add_completion=False
)

console = Console()

logger = logging.getLogger(__name__)

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml"),
]
DataOption = Annotated[
    Optional[Path],
    typer.Option("--data", help="Appointments JSON file. Overrides appointments_file from the config"),
]


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def _load_config(config_file: Optional[Path]) -> ClinicConfig:
    """Load the config file; fall back to defaults when none exists."""
    config_path = config_file or get_default_config_path()
    if config_file is None and not config_path.exists():
        return ClinicConfig()
    return ClinicConfig.load_from_yaml(config_path)


def _build_service(config: ClinicConfig, data_file: Optional[Path]) -> SchedulingService:
    source = data_file or config.appointments_file
    if source:
        repository = InMemoryAppointmentRepository.from_json(source, timezone=config.timezone)
    else:
        logger.warning("No appointment data configured; assuming an empty agenda")
        repository = InMemoryAppointmentRepository(timezone=config.timezone)

    return SchedulingService(
        repository=repository,
        publisher=LoggingEventPublisher(),
        patients=InMemoryPatientDirectory(),
        availability=AvailabilityService(timezone=config.timezone),
    )


def _parse_date(value: str, tz: str) -> pendulum.Date:
    try:
        return pendulum.from_format(value, "YYYY-MM-DD", tz=tz).date()
    except ValueError as e:
        console.print(f"[red]Could not parse date '{value}': {e}[/red]")
        raise typer.Exit(1)


def _setup(config_file: Optional[Path], data_file: Optional[Path]) -> Tuple[ClinicConfig, SchedulingService]:
    config = _load_config(config_file)
    _configure_logging(config.log_level)
    return config, _build_service(config, data_file)


@app.command()
def slots(
    professional: Annotated[str, typer.Argument(help="Professional name (alias) or id")],
    date: Annotated[Optional[str], typer.Option("--date", "-d", help="Date (YYYY-MM-DD). Defaults to tomorrow")] = None,
    config_file: ConfigOption = None,
    data_file: DataOption = None,
):
    """
    List the bookable 30-minute slots of a professional on one day.

    Examples:

        clinicsched slots dr-house --date 2026-03-03
        clinicsched slots 0b6f6c9e-3f7e-4c52-9a51-3b1f6e0f4a11 --data appointments.json
    """
    try:
        config, service = _setup(config_file, data_file)
        tz = config.timezone
        professional_id = config.resolve_professional(professional)

        day = _parse_date(date, tz) if date else pendulum.tomorrow(tz).date()
        available = service.available_slots(professional_id, day)

        console.print()
        console.print(f"[bold cyan]{config.clinic_name}[/bold cyan] - {day.format('dddd, DD.MM.YYYY')}")
        if not available:
            console.print("[yellow]⚠ No available slots on this day.[/yellow]\n")
            return

        console.print(f"[bold green]✓ {len(available)} available slot(s):[/bold green]\n")
        for slot in available:
            console.print(f"  {slot.formatted_time()} – {slot.end.format('HH:mm')}")
        console.print()

    except (ClinicSchedError, FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def stats(
    professional: Annotated[str, typer.Argument(help="Professional name (alias) or id")],
    start: Annotated[Optional[str], typer.Option("--start", help="Start date (YYYY-MM-DD). Defaults to today")] = None,
    end: Annotated[Optional[str], typer.Option("--end", help="End date (YYYY-MM-DD). Defaults to start + 6 days")] = None,
    config_file: ConfigOption = None,
    data_file: DataOption = None,
):
    """
    Show booked versus total slots for a professional over a date range.
    """
    try:
        config, service = _setup(config_file, data_file)
        tz = config.timezone
        professional_id = config.resolve_professional(professional)

        start_date = _parse_date(start, tz) if start else pendulum.today(tz).date()
        end_date = _parse_date(end, tz) if end else start_date.add(days=6)

        result = service.availability_stats(professional_id, start_date, end_date)

        table = Table(
            title=f"Occupancy {start_date.format('DD.MM.YYYY')} - {end_date.format('DD.MM.YYYY')}",
            show_header=True,
            header_style="bold cyan"
        )
        table.add_column("Total slots", justify="right")
        table.add_column("Booked", justify="right", style="bold yellow")
        table.add_column("Available", justify="right", style="green")
        table.add_column("Occupancy", justify="right")
        table.add_row(
            str(result.total_slots),
            str(result.booked_slots),
            str(result.available_slots),
            f"{result.occupancy_rate:.1f}%",
        )

        console.print()
        console.print(table)
        console.print()

    except (ClinicSchedError, FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def transitions():
    """
    Print the appointment status lifecycle.
    """
    table = Table(
        title="Appointment status transitions",
        show_header=True,
        header_style="bold cyan"
    )
    table.add_column("From", style="bold yellow")
    table.add_column("Allowed next statuses")

    for status, targets in ALLOWED_TRANSITIONS.items():
        if status in TERMINAL_STATUSES:
            allowed = "[dim](terminal)[/dim]"
        else:
            allowed = ", ".join(sorted(target.value for target in targets))
        table.add_row(status.value, allowed)

    console.print()
    console.print(table)
    console.print()


@app.command()
def list_professionals(config_file: ConfigOption = None):
    """
    List all configured professionals.
    """
    try:
        config = _load_config(config_file)

        if not config.professionals:
            console.print("[yellow]No professionals defined in the config file.[/yellow]")
            return

        table = Table(
            title="Configured professionals",
            show_header=True,
            header_style="bold cyan"
        )
        table.add_column("Name (Alias)", style="bold yellow")
        table.add_column("Specialty")
        table.add_column("Id", style="dim")

        for professional in config.professionals:
            table.add_row(
                professional.name,
                professional.specialty,
                professional.professional_id
            )

        console.print()
        console.print(table)
        console.print()

    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]clinicsched[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
