"""
Main CLI application using Typer.
"""

import asyncio
import logging
from pathlib import Path
from typing import Annotated, Optional

import pendulum
import typer
from pendulum import DateTime
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ..adapters.credentials import CredentialStore
from ..adapters.memory_gateway import InMemoryGateway
from ..adapters.rest_gateway import RestPersistenceGateway
from ..config import AppConfig, get_default_config_path
from ..domain.business_hours import BusinessHoursEvaluator
from ..domain.conflicts import BookingDecision, ConflictResolver
from ..domain.exceptions import SchedulingError
from ..domain.models import Appointment
from ..domain.slot_finder import SlotFinder
from ..services.booking import BookingService

app = typer.Typer(
    name="slotguard",
    help="Check appointment bookings for double-booking and blocked times",
    add_completion=False
)

console = Console()

MOCK_DATA_FILE = Path(__file__).parent.parent / "adapters" / "mock_schedule.json"

INSTANT_FORMAT = "YYYY-MM-DD HH:mm"

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml"),
]
MockOption = Annotated[
    bool,
    typer.Option("--mock", help="Use the bundled mock schedule instead of the REST API."),
]


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show debug logging.")] = False,
):
    """
    slotguard command line interface.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _load_config(config_file: Optional[Path], mock: bool = False) -> AppConfig:
    config_path = config_file or get_default_config_path()
    if mock and not config_path.exists():
        # Mock mode works without any config file
        return AppConfig()
    return AppConfig.load_from_yaml(config_path)


def _parse_instant(value: str, tz: str) -> DateTime:
    try:
        return pendulum.from_format(value, INSTANT_FORMAT, tz=tz)
    except ValueError as e:
        console.print(f"[red]Could not parse '{value}' (expected {INSTANT_FORMAT}): {e}[/red]")
        raise typer.Exit(1)


def _build_service(config: AppConfig, mock: bool) -> BookingService:
    """Wire the gateway, resolver and slot finder from configuration."""
    if mock:
        gateway = InMemoryGateway.from_fixture(MOCK_DATA_FILE, config.timezone)
    else:
        if not config.api_url:
            raise SchedulingError("api_url is not configured. Set it in config.yaml or use --mock.")
        api_key = CredentialStore(config.api_url, config.api_key_env).get_api_key()
        gateway = RestPersistenceGateway(
            base_url=config.api_url,
            api_key=api_key,
            timezone=config.timezone,
            retry=config.retry,
        )

    resolver = ConflictResolver()
    search = config.search
    slot_finder = SlotFinder(
        resolver,
        step_minutes=search.step_minutes,
        rollover_hour=search.rollover_hour,
        reopen_hour=search.reopen_hour,
        max_days=search.max_days,
        max_attempts=search.max_attempts,
    )
    return BookingService(
        gateway,
        resolver,
        slot_finder,
        enforce_business_hours=config.enforce_business_hours,
        fallback_business_hours=config.fallback_business_hours(),
    )


def _print_decision(decision: BookingDecision) -> None:
    if decision.accepted:
        console.print("[bold green]✓ Time is available[/bold green]")
        return

    console.print("[bold red]✗ Time is not available[/bold red]")
    for reason, message in zip(decision.reasons, decision.messages()):
        console.print(f"  [yellow]{reason.value}[/yellow]: {message}")
    if decision.conflicting_ids:
        console.print(f"  [dim]Conflicts with: {', '.join(decision.conflicting_ids)}[/dim]")


def _candidate(
    config: AppConfig,
    provider: str,
    client: str,
    service: str,
    start: str,
    duration: Optional[int],
) -> Appointment:
    start_at = _parse_instant(start, config.timezone)
    minutes = duration if duration is not None else config.search.duration_minutes
    return Appointment(
        provider_id=config.resolve_provider(provider),
        client_id=client,
        service_id=service,
        start=start_at,
        end=start_at.add(minutes=minutes),
    )


@app.command()
def check(
    provider: Annotated[str, typer.Argument(help="Provider name or id")],
    client: Annotated[str, typer.Argument(help="Client id")],
    start: Annotated[str, typer.Option("--start", "-s", help=f"Start ({INSTANT_FORMAT})")],
    duration: Annotated[Optional[int], typer.Option("--duration", "-d", help="Duration in minutes")] = None,
    service: Annotated[str, typer.Option("--service", help="Service id")] = "",
    exclude: Annotated[Optional[str], typer.Option("--exclude", help="Appointment id being edited")] = None,
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    Check whether a booking would conflict, without writing anything.
    """
    try:
        config = _load_config(config_file, mock)
        booking = _build_service(config, mock)
        candidate = _candidate(config, provider, client, service, start, duration)

        decision = asyncio.run(booking.check_availability(candidate, exclude_id=exclude))
        _print_decision(decision)

        if not decision.accepted:
            raise typer.Exit(2)

    except (FileNotFoundError, ValueError, SchedulingError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def book(
    provider: Annotated[str, typer.Argument(help="Provider name or id")],
    client: Annotated[str, typer.Argument(help="Client id")],
    start: Annotated[str, typer.Option("--start", "-s", help=f"Start ({INSTANT_FORMAT})")],
    duration: Annotated[Optional[int], typer.Option("--duration", "-d", help="Duration in minutes")] = None,
    service: Annotated[str, typer.Option("--service", help="Service id")] = "",
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    Book an appointment if the time is free.
    """
    try:
        config = _load_config(config_file, mock)
        booking = _build_service(config, mock)
        candidate = _candidate(config, provider, client, service, start, duration)

        result = asyncio.run(booking.create_appointment(candidate))
        _print_decision(result.decision)

        if not result.accepted:
            raise typer.Exit(2)

        console.print(f"Booked appointment [bold]{result.appointment.id}[/bold]")

    except (FileNotFoundError, ValueError, SchedulingError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command("next-slot")
def next_slot(
    provider: Annotated[str, typer.Argument(help="Provider name or id")],
    start: Annotated[str, typer.Option("--start", "-s", help=f"Preferred start ({INSTANT_FORMAT})")],
    duration: Annotated[Optional[int], typer.Option("--duration", "-d", help="Duration in minutes")] = None,
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    Find the next free start time for a provider.
    """
    try:
        config = _load_config(config_file, mock)
        booking = _build_service(config, mock)
        preferred = _parse_instant(start, config.timezone)
        minutes = duration if duration is not None else config.search.duration_minutes

        result = asyncio.run(
            booking.suggest_next_slot(config.resolve_provider(provider), preferred, minutes)
        )

        if not result.found:
            console.print(
                f"[yellow]⚠ No free slot within {config.search.max_days} days "
                f"({result.attempts} candidates checked).[/yellow]"
            )
            raise typer.Exit(2)

        end = result.start.add(minutes=minutes)
        console.print(
            f"[bold green]✓ Next free slot:[/bold green] "
            f"{result.start.format('dddd, DD.MM.YYYY HH:mm')} – {end.format('HH:mm')}"
        )

    except (FileNotFoundError, ValueError, SchedulingError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def hours(
    day: Annotated[Optional[str], typer.Option("--date", help="Show the slot grid for a date (YYYY-MM-DD)")] = None,
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    Show the business hours configuration.
    """
    try:
        config = _load_config(config_file, mock)
        booking = _build_service(config, mock)
        business_hours = asyncio.run(booking.load_business_hours())

        holidays = ", ".join(
            f"{h.date.isoformat()} ({h.name})" for h in business_hours.holidays
        ) or "none"
        console.print(Panel.fit(
            f"[bold]Open days:[/bold] {', '.join(sorted(business_hours.weekdays))}\n"
            f"[bold]Hours:[/bold] {business_hours.opening_time.strftime('%H:%M')} - "
            f"{business_hours.closing_time.strftime('%H:%M')}\n"
            f"[bold]Slot duration:[/bold] {business_hours.slot_duration_minutes} minutes\n"
            f"[bold]Holidays:[/bold] {holidays}",
            title="Business hours"
        ))

        if day:
            try:
                target = pendulum.from_format(day, "YYYY-MM-DD", tz=config.timezone)
            except ValueError as e:
                console.print(f"[red]Could not parse date '{day}': {e}[/red]")
                raise typer.Exit(1)

            slots = BusinessHoursEvaluator(business_hours).slots_for_day(target)
            if not slots:
                console.print(f"[yellow]Closed on {target.format('DD.MM.YYYY')}.[/yellow]")
            else:
                console.print(" ".join(slot.format("HH:mm") for slot in slots))

    except (FileNotFoundError, ValueError, SchedulingError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def providers(
    config_file: ConfigOption = None,
):
    """
    List all configured providers.
    """
    try:
        config = _load_config(config_file)

        if not config.providers:
            console.print("[yellow]No providers defined in the config file.[/yellow]")
            return

        table = Table(
            title="Configured providers",
            show_header=True,
            header_style="bold cyan"
        )
        table.add_column("Name (alias)", style="bold yellow")
        table.add_column("Id", style="dim")

        for provider in config.providers:
            table.add_row(provider.name, provider.id)

        console.print()
        console.print(table)
        console.print()

    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command("set-key")
def set_key(
    config_file: ConfigOption = None,
):
    """
    Store the REST API key in the system keyring.
    """
    try:
        config = _load_config(config_file)
        if not config.api_url:
            raise SchedulingError("api_url is not configured in config.yaml.")
        api_key = typer.prompt("API key", hide_input=True)
        CredentialStore(config.api_url, config.api_key_env).set_api_key(api_key)
        console.print("[green]✓ API key stored.[/green]")

    except (FileNotFoundError, ValueError, SchedulingError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command("clear-key")
def clear_key(
    config_file: ConfigOption = None,
):
    """
    Remove the stored REST API key.
    """
    try:
        config = _load_config(config_file)
        if CredentialStore(config.api_url, config.api_key_env).clear():
            console.print("[green]✓ API key removed.[/green]")
        else:
            console.print("[yellow]No stored API key found.[/yellow]")

    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]slotguard[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
