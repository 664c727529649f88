"""
Main CLI application using Typer.
"""

import logging
from datetime import date
from pathlib import Path
from typing import Annotated, Optional, Tuple

import pendulum
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ..bootstrap import Services, build_services
from ..config import AppConfig, get_default_config_path
from ..domain.exceptions import (
    BookingConflictError,
    CalendarUnavailableError,
    InvalidBookingError,
    InvalidRangeError,
)
from ..domain.models import AppointmentRequest, ContactDetails

app = typer.Typer(
    name="slotbooker",
    help="Terminslots in einem Microsoft-365-Kalender finden und buchen",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Pfad zur Konfigurationsdatei. Standard: ./config.yaml"),
]
MockOption = Annotated[
    bool,
    typer.Option("--mock", help="Mock-Daten nutzen und Authentifizierung überspringen."),
]
MockDataOption = Annotated[
    Optional[Path],
    typer.Option("--mock-data", help="JSON-Datei mit Mock-Kalenderereignissen."),
]
VerboseOption = Annotated[bool, typer.Option("--verbose", "-v", help="Debug-Logging aktivieren.")]


def setup_logging(verbose: bool = False) -> None:
    """Route standard logging through rich."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=verbose)],
        force=True,
    )


def _load_services(config_file: Optional[Path], mock: bool, mock_data: Optional[Path] = None) -> Services:
    config_path = config_file or get_default_config_path()
    if config_file is not None and not config_file.exists():
        raise FileNotFoundError(f"Config file not found: {config_file}")

    config = AppConfig.load(config_path)
    return build_services(config, mock=mock, mock_data_file=mock_data)


def _determine_time_range(
    *,
    tz: str,
    this_week: bool,
    next_week: bool,
    start_option: Optional[str],
    end_option: Optional[str]
) -> Tuple[date, date]:
    """
    Resolve the desired days based on shortcut flags or explicit dates.
    Returns (start_day, end_day), both inclusive.
    """
    if this_week and next_week:
        console.print("[red]Fehler: --this-week und --next-week können nicht gleichzeitig verwendet werden.[/red]")
        raise typer.Exit(1)

    today = pendulum.today(tz).date()

    if this_week:
        return today, today.end_of("week")

    if next_week:
        next_monday = today.next(pendulum.MONDAY)
        return next_monday, next_monday.add(days=6)

    start_day = _parse_cli_date(start_option, tz, "Startdatum") if start_option else today
    end_day = _parse_cli_date(end_option, tz, "Enddatum") if end_option else start_day.add(days=7)
    return start_day, end_day


def _parse_cli_date(value: str, tz: str, label: str) -> date:
    try:
        return pendulum.from_format(value, "YYYY-MM-DD", tz=tz).date()
    except ValueError as e:
        console.print(f"[red]Fehler beim Parsen des {label}s: {e}[/red]")
        raise typer.Exit(1)


@app.command()
def find(
    config_file: ConfigOption = None,
    start: Annotated[Optional[str], typer.Option("--start", help="Startdatum (YYYY-MM-DD)")] = None,
    end: Annotated[Optional[str], typer.Option("--end", help="Enddatum (YYYY-MM-DD)")] = None,
    this_week: Annotated[bool, typer.Option("--this-week", help="Suche von heute bis Ende der aktuellen Woche.")] = False,
    next_week: Annotated[bool, typer.Option("--next-week", help="Suche in der kommenden Woche (Montag–Sonntag).")] = False,
    mock: MockOption = False,
    mock_data: MockDataOption = None,
    verbose: VerboseOption = False,
):
    """
    Buchbare Terminslots anzeigen.

    Beispiele:

        slotbooker find --next-week

        slotbooker find --start 2024-11-25 --end 2024-11-29

        slotbooker find --mock --start 2024-11-25 --end 2024-11-29
    """
    setup_logging(verbose)

    try:
        services = _load_services(config_file, mock, mock_data)
        policy = services.resolver.business_hours

        start_day, end_day = _determine_time_range(
            tz=policy.timezone,
            this_week=this_week,
            next_week=next_week,
            start_option=start,
            end_option=end
        )

        if mock:
            console.print("[yellow]⚠  MOCK-MODUS: Verwende Test-Daten[/yellow]\n")

        console.print("[bold cyan]📊 Zusammenfassung:[/bold cyan]")
        console.print(f"   Kalender: {services.calendar_email}")
        console.print(f"   Zeitraum: {start_day.format('DD.MM.YYYY')} - {end_day.format('DD.MM.YYYY')}")
        console.print(
            f"   Geschäftszeiten: {policy.start_time:%H:%M} - {policy.end_time:%H:%M} "
            f"({policy.timezone}), Slots à {policy.slot_duration_minutes} Minuten"
        )
        console.print()

        result = services.resolver.resolve(start_day, end_day)

        if result.degraded:
            console.print(
                "[bold yellow]⚠ Kalender nicht erreichbar – alle Slots der Geschäftszeiten "
                "werden ungeprüft angezeigt.[/bold yellow]\n"
            )

        if not result.slots:
            console.print(
                "[yellow]⚠ Keine verfügbaren Zeitslots gefunden.[/yellow]\n"
                "Versuchen Sie einen längeren Zeitraum."
            )
            return

        table = Table(
            title=f"{len(result.slots)} verfügbare Zeitslot(s)",
            show_header=True,
            header_style="bold cyan"
        )
        table.add_column("Datum", style="bold yellow")
        table.add_column("Uhrzeit")
        table.add_column("Termin", style="dim")

        for slot in result.slots:
            table.add_row(slot.date, slot.time, slot.format_display())

        console.print(table)
        console.print()

    except (FileNotFoundError, ValueError, InvalidRangeError) as e:
        console.print(f"[bold red]Fehler:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def book(
    day: Annotated[str, typer.Argument(help="Datum (YYYY-MM-DD)")],
    time: Annotated[str, typer.Argument(help="Uhrzeit (HH:MM)")],
    first_name: Annotated[str, typer.Option("--first-name", prompt="Vorname")],
    last_name: Annotated[str, typer.Option("--last-name", prompt="Nachname")],
    email: Annotated[str, typer.Option("--email", prompt="E-Mail")],
    phone: Annotated[str, typer.Option("--phone", prompt="Telefon")],
    message: Annotated[str, typer.Option("--message", help="Nachricht an das Team")] = "",
    company: Annotated[Optional[str], typer.Option("--company", help="Firma")] = None,
    config_file: ConfigOption = None,
    mock: MockOption = False,
    mock_data: MockDataOption = None,
    verbose: VerboseOption = False,
):
    """
    Einen Terminslot buchen.
    """
    setup_logging(verbose)

    try:
        services = _load_services(config_file, mock, mock_data)
        request = AppointmentRequest(
            contact=ContactDetails(
                first_name=first_name,
                last_name=last_name,
                email=email,
                phone=phone,
                message=message,
                company=company,
            ),
            day=_parse_cli_date(day, services.resolver.business_hours.timezone, "Datum"),
            time=time,
        )

        result = services.booking.book(request)

    except BookingConflictError as e:
        console.print(f"[bold yellow]Slot bereits vergeben:[/bold yellow] {e}")
        raise typer.Exit(2)

    except (FileNotFoundError, ValueError, InvalidBookingError) as e:
        console.print(f"[bold red]Fehler:[/bold red] {e}")
        raise typer.Exit(1)

    if not result.success:
        console.print(f"[bold red]✗ {result.message}[/bold red]")
        raise typer.Exit(1)

    console.print(Panel.fit(
        f"[bold green]✓ {result.message}[/bold green]\n\n"
        f"[bold]Termin:[/bold] {result.slot}\n"
        f"[bold]Typ:[/bold] {result.type}\n"
        f"[bold]Event-ID:[/bold] {result.event_id or 'N/A'}",
        title="Buchung"
    ))


@app.command()
def serve(
    host: Annotated[str, typer.Option("--host", help="Adresse, an die der Server gebunden wird")] = "127.0.0.1",
    port: Annotated[int, typer.Option("--port", help="Port")] = 8000,
    config_file: ConfigOption = None,
    mock: MockOption = False,
    mock_data: MockDataOption = None,
    verbose: VerboseOption = False,
):
    """
    HTTP-API starten.
    """
    import uvicorn

    from ..api.app import create_app

    setup_logging(verbose)

    try:
        services = _load_services(config_file, mock, mock_data)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Fehler:[/bold red] {e}")
        raise typer.Exit(1)

    uvicorn.run(create_app(services), host=host, port=port, log_config=None)


@app.command()
def test_auth(
    config_file: ConfigOption = None,
    force: bool = typer.Option(
        False,
        "--force",
        help="Neues Token erzwingen"
    ),
    mock: MockOption = False,
):
    """
    Microsoft-Graph-Authentifizierung und Kalenderzugriff testen.
    """
    setup_logging()

    try:
        services = _load_services(config_file, mock)

        console.print("\n[bold]Teste Microsoft-Graph-Authentifizierung...[/bold]\n")

        access_token = services.authenticator.get_access_token(force_refresh=force)
        calendar = services.calendar_client.test_connection(services.calendar_email, access_token)

        owner = calendar.get("owner") or {}
        console.print(Panel.fit(
            f"[bold green]✓ Authentifizierung erfolgreich![/bold green]\n\n"
            f"[bold]Kalender:[/bold] {calendar.get('name', 'N/A')}\n"
            f"[bold]Postfach:[/bold] {owner.get('address') or services.calendar_email}",
            title="✓ Verbindungstest"
        ))
        console.print()

    except (FileNotFoundError, ValueError, CalendarUnavailableError) as e:
        console.print(f"\n[bold red]✗ Fehler:[/bold red] {e}\n")
        raise typer.Exit(1)


@app.command()
def version():
    """
    Versionsinformationen anzeigen.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]slotbooker[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
