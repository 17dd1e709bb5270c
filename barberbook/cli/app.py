"""
Main CLI application using Typer.
"""

import logging
from pathlib import Path
from typing import Optional, Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ..config import AppConfig, get_default_config_path
from ..domain.exceptions import BarberBookError, UpstreamError
from ..domain.models import BookingRequest, BookingStatus
from ..adapters.google_authenticator import GoogleAuthenticator
from ..adapters.google_calendar_client import GoogleCalendarClient
from ..adapters.memory_calendar import InMemoryCalendarSource
from ..services.booking_service import BookingService

app = typer.Typer(
    name="barberbook",
    help="Check free appointment slots and book them in the barbers' Google calendars",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml")
]
MockOption = Annotated[
    bool,
    typer.Option("--mock", help="Use bundled mock calendar data and skip Google authentication.")
]


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging.")] = False,
):
    """
    Barbershop booking backend.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
        force=True,
    )


def _load_config(config_file: Optional[Path]) -> AppConfig:
    config_path = config_file or get_default_config_path()
    return AppConfig.load_from_yaml(config_path)


def _build_calendar_client(config: AppConfig) -> GoogleCalendarClient:
    authenticator = GoogleAuthenticator(
        client_id=config.google.client_id,
        client_secret=config.google.client_secret,
        refresh_token=config.google.refresh_token,
        timeout=config.google.request_timeout_seconds
    )
    return GoogleCalendarClient(
        authenticator=authenticator,
        timezone=config.timezone,
        timeout=config.google.request_timeout_seconds
    )


def _build_service(config: AppConfig, mock: bool) -> BookingService:
    if mock:
        console.print("[yellow]⚠  MOCK MODE: using bundled calendar data[/yellow]\n")
        calendar_source = InMemoryCalendarSource.from_json(timezone=config.timezone)
    else:
        calendar_source = _build_calendar_client(config)

    return BookingService(config=config, calendar_source=calendar_source)


@app.command()
def slots(
    date: Annotated[str, typer.Argument(help="Date (YYYY-MM-DD)")],
    barber: Annotated[str, typer.Option("--barber", "-b", help="Barber identifier")],
    service: Annotated[str, typer.Option("--service", "-s", help="Service identifier")],
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    List the free start times of a barber for a service on a date.

    Examples:

        barberbook slots 2024-11-25 --barber luis --service corte_caballero

        barberbook slots 2024-11-25 -b ana -s barba --mock
    """
    try:
        config = _load_config(config_file)
        booking_service = _build_service(config, mock)

        free = booking_service.availability(date=date, barber_id=barber, service_id=service)

        console.print()
        if not free:
            console.print(
                f"[yellow]⚠ No free slots for {barber} on {date}.[/yellow]\n"
                "The shop may be closed that day or the agenda is full."
            )
        else:
            table = Table(
                title=f"Free slots – {barber}, {service}, {date}",
                show_header=True,
                header_style="bold cyan"
            )
            table.add_column("#", style="dim", justify="right")
            table.add_column("Start", style="bold green")

            for idx, start in enumerate(free, 1):
                table.add_row(str(idx), start)

            console.print(table)
        console.print()

    except UpstreamError as e:
        console.print(f"[bold red]Error:[/bold red] could not fetch slots ({e})")
        raise typer.Exit(1)

    except (FileNotFoundError, ValueError, BarberBookError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def book(
    date: Annotated[str, typer.Argument(help="Date (YYYY-MM-DD)")],
    time: Annotated[str, typer.Argument(help="Start time (HH:MM)")],
    barber: Annotated[str, typer.Option("--barber", "-b", help="Barber identifier")],
    service: Annotated[str, typer.Option("--service", "-s", help="Service identifier")],
    name: Annotated[str, typer.Option("--name", "-n", help="Customer name")],
    email: Annotated[Optional[str], typer.Option("--email", help="Customer email")] = None,
    phone: Annotated[Optional[str], typer.Option("--phone", help="Customer phone")] = None,
    notes: Annotated[Optional[str], typer.Option("--notes", help="Free-form notes")] = None,
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    Book an appointment after re-checking the barber's calendar.

    Examples:

        barberbook book 2024-11-25 10:30 -b luis -s corte_caballero -n "Jordi"

        barberbook book 2024-11-25 17:00 -b marco -s barba -n "Pau" --phone 600000000 --mock
    """
    try:
        config = _load_config(config_file)
        booking_service = _build_service(config, mock)

        outcome = booking_service.book(
            BookingRequest(
                date=date,
                time=time,
                barber_id=barber,
                service_id=service,
                customer_name=name,
                email=email,
                phone=phone,
                notes=notes,
            )
        )

    except UpstreamError as e:
        console.print(f"[bold red]Error:[/bold red] could not create the booking ({e})")
        raise typer.Exit(1)

    except (FileNotFoundError, ValueError, BarberBookError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    if outcome.status is BookingStatus.ACCEPTED:
        console.print(Panel.fit(
            f"[bold green]✓ {outcome.message}[/bold green]\n\n"
            f"[bold]When:[/bold] {outcome.format_display()}\n"
            f"[bold]Event:[/bold] {outcome.event_id}",
            title="✓ Booking"
        ))
        return

    if outcome.status is BookingStatus.CONFLICT:
        console.print(f"[bold yellow]✗ Conflict:[/bold yellow] {outcome.message}")
    else:
        console.print(f"[bold red]✗ Rejected:[/bold red] {outcome.message}")
    raise typer.Exit(1)


@app.command()
def list_barbers(config_file: ConfigOption = None):
    """
    List all configured barbers.
    """
    try:
        config = _load_config(config_file)

        if not config.barbers:
            console.print("[yellow]No barbers defined in the config file.[/yellow]")
            return

        table = Table(
            title="Configured barbers",
            show_header=True,
            header_style="bold cyan"
        )
        table.add_column("ID", style="bold yellow")
        table.add_column("Name")
        table.add_column("Calendar", style="dim")

        for barber in config.barbers:
            table.add_row(barber.id, barber.display_name(), barber.calendar_id)

        console.print()
        console.print(table)
        console.print()

    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def list_services(config_file: ConfigOption = None):
    """
    List all configured services with their durations.
    """
    try:
        config = _load_config(config_file)

        if not config.services:
            console.print("[yellow]No services defined in the config file.[/yellow]")
            return

        table = Table(
            title="Configured services",
            show_header=True,
            header_style="bold cyan"
        )
        table.add_column("ID", style="bold yellow")
        table.add_column("Name")
        table.add_column("Minutes", justify="right")

        for service in config.services:
            table.add_row(service.id, service.display_name(), str(service.duration_minutes))

        console.print()
        console.print(table)
        console.print()

    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def test_auth(
    config_file: ConfigOption = None,
    barber: Annotated[
        Optional[str],
        typer.Option("--barber", "-b", help="Barber whose calendar is fetched. Defaults to the first one.")
    ] = None,
):
    """
    Test Google authentication and calendar access.
    """
    try:
        config = _load_config(config_file)

        target = config.find_barber(barber) if barber else (config.barbers[0] if config.barbers else None)
        if target is None:
            console.print("[bold red]Error:[/bold red] no matching barber configured.")
            raise typer.Exit(1)

        console.print("\n[bold]Testing Google Calendar authentication...[/bold]\n")

        client = _build_calendar_client(config)
        calendar = client.test_connection(target.calendar_id)

        console.print(Panel.fit(
            f"[bold green]✓ Authentication successful![/bold green]\n\n"
            f"[bold]Barber:[/bold] {target.display_name()}\n"
            f"[bold]Calendar:[/bold] {calendar.get('summary', 'N/A')}\n"
            f"[bold]Time zone:[/bold] {calendar.get('timeZone', 'N/A')}",
            title="✓ Connection test"
        ))
        console.print()

    except (FileNotFoundError, ValueError, BarberBookError) as e:
        console.print(f"\n[bold red]✗ Error:[/bold red] {e}\n")
        raise typer.Exit(1)


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]barberbook[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
