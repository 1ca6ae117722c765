"""
Main CLI application using Typer.
"""

import asyncio
import logging
from pathlib import Path
from typing import List, Optional, Annotated

import pendulum
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from ..config import AppConfig, StationConfig, get_default_config_path
from ..domain.exceptions import ChargeslotError
from ..domain.models import DurationOption, PortAvailability
from ..domain.time_utils import as_date, resolve_timezone
from ..adapters.http_reservation_source import HttpReservationSource
from ..adapters.mock_reservation_source import MockReservationSource
from ..services.availability_service import AvailabilityService

app = typer.Typer(
    name="chargeslot",
    help="Show real-time charging slot availability",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[Optional[Path], typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml")]
DateOption = Annotated[Optional[str], typer.Option("--date", help="Civil date (YYYY-MM-DD). Defaults to today.")]
PortOption = Annotated[Optional[str], typer.Option("--port", "-p", help="Port id. Defaults to all operational ports.")]
MockOption = Annotated[bool, typer.Option("--mock", help="Use mock reservations instead of the booking API.")]


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging.")] = False,
):
    """Configure logging for all commands."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _load_config(config_file: Optional[Path]) -> AppConfig:
    config_path = config_file or get_default_config_path()
    return AppConfig.load_from_yaml(config_path)


def _build_service(config: AppConfig, mock: bool) -> AvailabilityService:
    if mock:
        source = MockReservationSource(data_file=config.mock_data_file)
    else:
        source = HttpReservationSource(
            base_url=config.api.base_url,
            token=config.api.token,
            timeout_seconds=config.api.timeout_seconds,
        )
    return AvailabilityService.from_config(config, source)


def _resolve_date(config: AppConfig, date_option: Optional[str]):
    if date_option:
        return as_date(date_option)
    return pendulum.now(resolve_timezone(config.timezone)).date()


def _format_minutes(minutes: int) -> str:
    return DurationOption(minutes=minutes).format_display()


def _print_port(availability: PortAvailability, station: StationConfig, show_all: bool) -> None:
    window = availability.window
    console.print(
        f"[bold cyan]{station.display_name()} · {availability.port_label}[/bold cyan] "
        f"({availability.date.format('YYYY-MM-DD')}, "
        f"{'closed' if window is None else window})"
    )
    console.print(
        f"   {availability.available_slots}/{availability.total_slots} slots available, "
        f"{len(availability.reservations)} reservation(s)"
    )
    if availability.dropped_records:
        console.print(f"   [yellow]⚠ {availability.dropped_records} malformed reservation(s) ignored[/yellow]")

    slots = availability.slots if show_all else [s for s in availability.slots if s.is_available]
    if not slots:
        console.print("   [yellow]No bookable start times.[/yellow]\n")
        return

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Start", style="bold")
    table.add_column("Status")
    table.add_column("Max duration", justify="right")
    table.add_column("Conflicts", style="dim")

    for slot in slots:
        label = slot.label + (" (+1)" if slot.is_next_day else "")
        status = "[green]available[/green]" if slot.is_available else "[red]booked[/red]"
        table.add_row(
            label,
            status,
            _format_minutes(slot.max_continuous_duration_minutes) if slot.is_available else "-",
            ", ".join(str(c) for c in slot.conflicts),
        )

    console.print(table)
    console.print()


@app.command()
def slots(
    station_id: Annotated[str, typer.Argument(help="Station id")],
    port: PortOption = None,
    date: DateOption = None,
    config_file: ConfigOption = None,
    mock: MockOption = False,
    show_all: Annotated[bool, typer.Option("--all", help="Include booked slots.")] = False,
):
    """
    Show bookable start times for a station or a single port.

    Examples:

        chargeslot slots ktm-01 --date 2024-11-25
        chargeslot slots ktm-01 --port p1 --all --mock
    """
    try:
        config = _load_config(config_file)
        station = config.find_station(station_id)
        service = _build_service(config, mock)
        day = _resolve_date(config, date)

        if mock:
            console.print("[yellow]⚠  MOCK MODE: using mock reservations[/yellow]\n")

        if port:
            results: List[PortAvailability] = [
                asyncio.run(service.get_port_availability(station_id=station.id, port_id=port, day=day))
            ]
        else:
            results = asyncio.run(service.get_station_availability(station_id=station.id, day=day))

        if not results:
            console.print("[yellow]No operational ports configured for this station.[/yellow]")
            return

        for availability in results:
            _print_port(availability, station, show_all)

    except (FileNotFoundError, ValueError, ChargeslotError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def durations(
    station_id: Annotated[str, typer.Argument(help="Station id")],
    start: Annotated[str, typer.Argument(help="Start time (HH:MM); append +1 for a slot after midnight")],
    port: PortOption = None,
    date: DateOption = None,
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    Show the bookable durations for a start time.
    """
    try:
        config = _load_config(config_file)
        station = config.find_station(station_id)
        service = _build_service(config, mock)
        day = _resolve_date(config, date)

        if port is None:
            ports = station.operational_ports()
            if not ports:
                console.print("[yellow]No operational ports configured for this station.[/yellow]")
                raise typer.Exit(1)
            port = ports[0].id

        options = asyncio.run(
            service.get_duration_options(station_id=station.id, port_id=port, day=day, start=start)
        )

        if not options:
            console.print(f"[yellow]⚠ {start} is not bookable on {day.format('YYYY-MM-DD')}.[/yellow]")
            return

        console.print(f"[bold green]✓ Durations from {start}:[/bold green] "
                      + ", ".join(option.format_display() for option in options))

    except (FileNotFoundError, ValueError, ChargeslotError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def stations(
    config_file: ConfigOption = None,
):
    """
    List all configured stations with their operating hours.
    """
    try:
        config = _load_config(config_file)

        if not config.stations:
            console.print("[yellow]No stations defined in the config file.[/yellow]")
            return

        table = Table(
            title="Configured stations",
            show_header=True,
            header_style="bold cyan"
        )
        table.add_column("Id", style="bold yellow")
        table.add_column("Name")
        table.add_column("Ports", justify="right")
        table.add_column("Operating hours", style="dim")

        for station in config.stations:
            hours = ", ".join(
                f"{day[:3]} {hours.to_day_hours()}" for day, hours in station.operating_hours.items()
            ) or "24 hours"
            table.add_row(
                station.id,
                station.display_name(),
                f"{len(station.operational_ports())}/{len(station.ports)}",
                hours,
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
    console.print(f"\n[bold cyan]chargeslot[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
