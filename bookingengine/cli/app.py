"""
Main CLI application using Typer.
"""

import logging
from pathlib import Path
from typing import Annotated, Optional

import pendulum
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from ..adapters.memory_store import InMemoryBookingStore
from ..config import AppConfig, get_default_config_path
from ..domain.admission import Rejected, admit
from ..domain.blackout_expander import expand_all
from ..domain.exceptions import BookingEngineError
from ..domain.models import BookingRequest, format_minutes, parse_minutes, time_options, to_date
from ..services.booking_service import BookingService

app = typer.Typer(
    name="bookingengine",
    help="Check appointment availability and booking conflicts",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml"),
]


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show debug logging.")] = False,
):
    """Appointment availability and conflict engine."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def _load_config(config_file: Optional[Path]) -> AppConfig:
    config_path = config_file or get_default_config_path()
    try:
        return AppConfig.load_from_yaml(config_path)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


def _build_service(config: AppConfig) -> BookingService:
    return BookingService(
        store=InMemoryBookingStore.from_config(config),
        tenant_id=config.tenant_id,
        timezone=config.timezone,
        step_minutes=config.slot_step_minutes,
    )


def _table_title(config: AppConfig, title: str) -> str:
    if config.business_name:
        return f"{config.business_name}: {title}"
    return title


def _parse_day(value: str):
    try:
        return to_date(value)
    except ValueError as e:
        console.print(f"[red]Could not parse date: {e}[/red]")
        raise typer.Exit(1)


@app.command()
def slots(
    day: Annotated[str, typer.Argument(help="Date (YYYY-MM-DD)")],
    service: Annotated[str, typer.Option("--service", "-s", help="Service id")] = "1",
    config_file: ConfigOption = None,
):
    """
    List free slots for a service on a date.

    Examples:

        bookingengine slots 2025-06-02 --service 3
    """
    config = _load_config(config_file)
    booking_service = _build_service(config)
    target = _parse_day(day)

    try:
        found = booking_service.available_slots(target, service)
    except BookingEngineError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    console.print()
    if not found:
        console.print(f"[yellow]⚠ No free slots on {target.format('DD.MM.YYYY')}.[/yellow]\n")
        return

    console.print(f"[bold green]✓ {len(found)} free slot(s):[/bold green]\n")
    for slot in found:
        console.print(f"  {slot.format_display()}")
    console.print()


@app.command()
def blackouts(
    start: Annotated[str, typer.Argument(help="First date (YYYY-MM-DD)")],
    end: Annotated[Optional[str], typer.Argument(help="Last date (YYYY-MM-DD), defaults to start + 30 days")] = None,
    config_file: ConfigOption = None,
):
    """
    Show the blocked periods falling inside a date window.
    """
    config = _load_config(config_file)
    window_start = _parse_day(start)
    window_end = _parse_day(end) if end else window_start.add(days=30)

    instances = expand_all(config.get_blackout_rules(), window_start, window_end)

    if not instances:
        console.print("[yellow]No blocked periods in this window.[/yellow]")
        return

    table = Table(title=_table_title(config, "Blocked periods"), show_header=True, header_style="bold cyan")
    table.add_column("Date", style="bold yellow")
    table.add_column("Time")
    table.add_column("Title", style="dim")

    for instance in instances:
        table.add_row(
            instance.date.format("DD.MM.YYYY"),
            str(instance.time_range),
            instance.title,
        )

    console.print()
    console.print(table)
    console.print()


@app.command()
def check(
    day: Annotated[str, typer.Argument(help="Date (YYYY-MM-DD)")],
    time: Annotated[str, typer.Argument(help="Start time (HH:MM)")],
    service: Annotated[str, typer.Option("--service", "-s", help="Service id")] = "1",
    name: Annotated[str, typer.Option("--name", help="Client name")] = "Walk-in",
    phone: Annotated[str, typer.Option("--phone", help="Client phone")] = "",
    config_file: ConfigOption = None,
):
    """
    Check whether a booking request would be accepted right now.
    """
    config = _load_config(config_file)
    target = _parse_day(day)

    try:
        start_time = parse_minutes(time)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        console.print(f"Valid times: {', '.join(time_options(step_minutes=config.slot_step_minutes))}")
        raise typer.Exit(1)

    chosen = config.find_service(service)
    if chosen is None:
        console.print(f"[bold red]Error:[/bold red] Unknown service '{service}'")
        raise typer.Exit(1)

    request = BookingRequest(
        date=target,
        start_time=start_time,
        duration_minutes=chosen.duration,
        client_name=name,
        client_phone=phone,
        service_id=chosen.id,
    )
    verdict = admit(
        request,
        config.get_policy(),
        config.get_blackout_rules(),
        config.get_appointments(),
        pendulum.now(config.timezone),
    )

    slot_label = f"{target.format('DD.MM.YYYY')} {format_minutes(start_time)}"
    if isinstance(verdict, Rejected):
        console.print(f"[bold red]✗ {slot_label} unavailable[/bold red] ({verdict.reason.value}): {verdict.detail}")
        raise typer.Exit(2)

    console.print(f"[bold green]✓ {slot_label} is available for {chosen.name}[/bold green]")


@app.command("services")
def list_services(config_file: ConfigOption = None):
    """
    List the configured service catalog.
    """
    config = _load_config(config_file)

    table = Table(title=_table_title(config, "Services"), show_header=True, header_style="bold cyan")
    table.add_column("Id", style="bold yellow")
    table.add_column("Name")
    table.add_column("Duration")
    table.add_column("Price", style="dim")

    for service in config.get_services():
        table.add_row(service.id, service.name, f"{service.duration_minutes} min", service.price)

    console.print()
    console.print(table)
    console.print()


@app.command()
def agenda(
    from_date: Annotated[Optional[str], typer.Option("--from", help="First date (YYYY-MM-DD), defaults to today")] = None,
    config_file: ConfigOption = None,
):
    """
    List upcoming appointments by date and time.
    """
    config = _load_config(config_file)
    booking_service = _build_service(config)

    start = _parse_day(from_date) if from_date else None
    appointments = booking_service.upcoming(start)

    if not appointments:
        console.print("[yellow]No upcoming appointments.[/yellow]")
        return

    names = {service.id: service.name for service in config.get_services()}

    table = Table(title=_table_title(config, "Appointments"), show_header=True, header_style="bold cyan")
    table.add_column("Date", style="bold yellow")
    table.add_column("Time")
    table.add_column("Client")
    table.add_column("Phone", style="dim")
    table.add_column("Service")

    for appointment in appointments:
        table.add_row(
            appointment.date.format("DD.MM.YYYY"),
            str(appointment.time_range),
            appointment.client_name,
            appointment.client_phone,
            names.get(appointment.service_id, appointment.service_id),
        )

    console.print()
    console.print(table)
    console.print()


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]bookingengine[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
