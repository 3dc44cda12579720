"""
Main CLI application using Typer.
"""

import asyncio
import logging
from pathlib import Path
from typing import Annotated, Optional

import pendulum
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from ..adapters.memory_store import InMemoryBookingStore
from ..adapters.notifier import LoggingNotifier, WebhookNotifier
from ..adapters.supabase_store import SupabaseStore
from ..config import AppConfig, get_default_config_path
from ..domain.availability import AvailabilityCalculator
from ..domain.exceptions import BookingError, ConflictError
from ..domain.models import AvailabilityRequest, RecurrenceType, SessionTemplate
from ..domain.recurrence import expand_recurrence
from ..services.appointment_booking import AppointmentBookingRequest, AppointmentBookingService
from ..services.availability_service import AvailabilityService

app = typer.Typer(
    name="bookingcore",
    help="Appointment availability and recurring session planning",
    add_completion=False
)

console = Console()


def _load_config(config_file: Optional[Path], allow_default: bool) -> AppConfig:
    """
    Load the YAML config, or fall back to defaults when none is required.
    """
    config_path = config_file or get_default_config_path()
    if config_file is None and allow_default and not config_path.exists():
        return AppConfig()
    return AppConfig.load_from_yaml(config_path)


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _parse_date(value: str, label: str, tz: str):
    try:
        return pendulum.from_format(value, "YYYY-MM-DD", tz=tz).date()
    except ValueError as e:
        console.print(f"[red]Could not parse {label} '{value}': {e}[/red]")
        raise typer.Exit(1)


def _parse_datetime(value: str, label: str, tz: str):
    try:
        return pendulum.from_format(value, "YYYY-MM-DD HH:mm", tz=tz)
    except ValueError as e:
        console.print(f"[red]Could not parse {label} '{value}' (expected YYYY-MM-DD HH:mm): {e}[/red]")
        raise typer.Exit(1)


def _build_store(config: AppConfig, fixtures: Optional[Path]):
    if fixtures is not None:
        return InMemoryBookingStore.from_json(fixtures, timezone=config.timezone)
    if config.store is None:
        console.print("[bold red]Error:[/bold red] no 'store' section in the config file.")
        raise typer.Exit(1)
    return SupabaseStore(
        url=config.store.url,
        api_key=config.store.api_key,
        timezone=config.timezone,
        timeout_seconds=config.store.timeout_seconds,
    )


def _build_notifier(config: AppConfig):
    if config.notifier.webhook_url:
        return WebhookNotifier(
            config.notifier.webhook_url,
            timeout_seconds=config.notifier.timeout_seconds,
        )
    return LoggingNotifier()


@app.command()
def slots(
    date: Annotated[str, typer.Argument(help="Date to check (YYYY-MM-DD)")],
    appointment_type: Annotated[str, typer.Option("--type", "-t", help="Appointment type id")],
    doctor: Annotated[Optional[str], typer.Option("--doctor", help="Only this doctor's schedules")] = None,
    location: Annotated[Optional[str], typer.Option("--location", help="Only schedules at this location")] = None,
    config_file: Annotated[Optional[Path], typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml")] = None,
    fixtures: Annotated[Optional[Path], typer.Option("--fixtures", help="Read schedules and bookings from a JSON file instead of Supabase")] = None,
    only_free: Annotated[bool, typer.Option("--free", help="Show available slots only")] = False,
):
    """
    Show the bookable time slots for a date.

    Examples:

        bookingcore slots 2025-03-03 --type consult

        bookingcore slots 2025-03-03 -t consult --doctor dr-jansen --free

        bookingcore slots 2025-03-03 -t consult --fixtures practice.json
    """
    try:
        config = _load_config(config_file, allow_default=fixtures is not None)
        _configure_logging(config.log_level)
        tz = config.timezone

        day = _parse_date(date, "date", tz)

        store = _build_store(config, fixtures)

        service = AvailabilityService(
            store,
            AvailabilityCalculator(
                timezone=tz,
                clip_to_schedule_end=config.scheduling.clip_to_schedule_end,
            ),
            timeout_seconds=config.store_timeout(),
            reject_past_dates=config.scheduling.reject_past_dates,
        )

        report = asyncio.run(
            service.summarize(
                AvailabilityRequest(
                    date=day,
                    appointment_type_id=appointment_type,
                    doctor_id=doctor,
                    location_id=location,
                )
            )
        )

        console.print()
        if not report.slots:
            console.print(f"[yellow]No working schedules on {day.isoformat()}.[/yellow]\n")
            return

        table = Table(
            title=f"Slots on {day.format('dddd DD.MM.YYYY')}",
            show_header=True,
            header_style="bold cyan"
        )
        table.add_column("Time", style="bold")
        table.add_column("Doctor")
        table.add_column("Location", style="dim")
        table.add_column("Status")

        for slot in report.slots:
            if only_free and not slot.available:
                continue
            table.add_row(
                slot.time,
                slot.staff_name or slot.staff_id,
                slot.location_id or "-",
                "[green]free[/green]" if slot.available else "[red]booked[/red]",
            )

        console.print(table)
        console.print(
            f"\n[bold]{report.available_slots}[/bold] of {report.total_slots} slot(s) available.\n"
        )

    except (FileNotFoundError, ValueError, BookingError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def series(
    start: Annotated[str, typer.Argument(help="First session start (YYYY-MM-DD HH:mm)")],
    end: Annotated[str, typer.Argument(help="First session end (YYYY-MM-DD HH:mm)")],
    repeat: Annotated[str, typer.Option("--repeat", "-r", help="none, daily, weekly, biweekly or monthly")] = "weekly",
    until: Annotated[Optional[str], typer.Option("--until", "-u", help="Last date of the series (YYYY-MM-DD)")] = None,
    title: Annotated[str, typer.Option("--title", help="Session title")] = "Session",
    config_file: Annotated[Optional[Path], typer.Option("--config", "-c", help="Path to config file")] = None,
):
    """
    Preview the sessions a recurring series would create.

    Nothing is written; the first session itself is listed as #0.
    """
    try:
        config = _load_config(config_file, allow_default=True)
        tz = config.timezone

        first_start = _parse_datetime(start, "start", tz)
        first_end = _parse_datetime(end, "end", tz)
        until_date = _parse_date(until, "end date", tz) if until else None

        template = SessionTemplate(
            id="preview",
            title=title,
            start_time=first_start,
            end_time=first_end,
            recurrence_type=repeat,
            recurrence_end_date=until_date,
        )
        instances = expand_recurrence(template, template.recurrence_type, until_date)

        table = Table(
            title=f"{title} ({template.recurrence_type.value})",
            show_header=True,
            header_style="bold cyan"
        )
        table.add_column("#", style="dim")
        table.add_column("Date", style="bold yellow")
        table.add_column("Time")

        rows = [(template.start_time, template.end_time)]
        rows.extend((i.start_time, i.end_time) for i in instances)
        for idx, (session_start, session_end) in enumerate(rows):
            table.add_row(
                str(idx),
                session_start.format("ddd DD.MM.YYYY"),
                f"{session_start.format('HH:mm')} - {session_end.format('HH:mm')}",
            )

        console.print()
        console.print(table)
        if template.recurrence_type is RecurrenceType.NONE:
            console.print("[dim]Not recurring: only the first session is created.[/dim]")
        else:
            console.print(f"\n[bold]{len(instances)}[/bold] recurring session(s) after the first.\n")

    except (FileNotFoundError, ValueError, BookingError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def book(
    start: Annotated[str, typer.Argument(help="Appointment start (YYYY-MM-DD HH:mm)")],
    patient: Annotated[str, typer.Option("--patient", "-p", help="Patient id")],
    appointment_type: Annotated[str, typer.Option("--type", "-t", help="Appointment type id")],
    doctor: Annotated[Optional[str], typer.Option("--doctor", help="Doctor id")] = None,
    location: Annotated[Optional[str], typer.Option("--location", help="Location id")] = None,
    notes: Annotated[Optional[str], typer.Option("--notes", help="Free-text notes")] = None,
    config_file: Annotated[Optional[Path], typer.Option("--config", "-c", help="Path to config file")] = None,
    fixtures: Annotated[Optional[Path], typer.Option("--fixtures", help="Check against a JSON fixture file (nothing is saved)")] = None,
):
    """
    Book an appointment if the doctor is still free at that time.
    """
    try:
        config = _load_config(config_file, allow_default=fixtures is not None)
        _configure_logging(config.log_level)

        scheduled_at = _parse_datetime(start, "start", config.timezone)
        service = AppointmentBookingService(
            _build_store(config, fixtures),
            _build_notifier(config),
            timeout_seconds=config.store_timeout(),
        )

        appointment = asyncio.run(
            service.book(
                AppointmentBookingRequest(
                    patient_id=patient,
                    appointment_type_id=appointment_type,
                    scheduled_at=scheduled_at,
                    doctor_id=doctor,
                    location_id=location,
                    notes=notes,
                )
            )
        )

        console.print(
            f"\n[green]✓[/green] Booked [bold]{appointment.id}[/bold] "
            f"{appointment.scheduled_at.format('ddd DD.MM.YYYY HH:mm')} - "
            f"{appointment.end_time.format('HH:mm')}\n"
        )

    except ConflictError as e:
        console.print(f"[bold red]Not booked:[/bold red] {e}")
        raise typer.Exit(1)
    except (FileNotFoundError, ValueError, BookingError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]bookingcore[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
