"""
Command line interface for the flight escrow service.

Uses Typer for the commands and Rich for terminal output. ``sweep`` is the
entry point a scheduler (cron, systemd timer) calls to run the refund sweep.

Usage:
    flight-escrow init-db
    flight-escrow add-aircraft Airbus A220-100 --seats 120
    flight-escrow sweep
    flight-escrow serve --port 5000
"""

from typing import Optional

import typer
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .api import build_services, create_app
from .database.config import initialize_database
from .exceptions import EscrowError
from .models.enums import RefundOutcome
from .models.flight import AircraftCreateModel
from .utils.config import get_config, setup_logging

app = typer.Typer(
    help="Flight booking escrow service",
    add_completion=False
)
console = Console()

OUTCOME_STYLES = {
    RefundOutcome.REFUNDED: "[green]refunded[/green]",
    RefundOutcome.FAILED: "[red]failed[/red]",
    RefundOutcome.SKIPPED: "[yellow]skipped[/yellow]",
}


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        "-l",
        help="Override LOG_LEVEL"
    )
):
    """Flight booking escrow service."""
    setup_logging(log_level or get_config().log_level)


@app.command("init-db")
def init_db():
    """Create the ledger tables if they do not exist."""
    config = get_config()
    db_config = initialize_database(config.database_url, echo=config.database_echo)
    info = db_config.get_connection_info()
    console.print(f"[green]✓[/green] Tables ready on [cyan]{info['database_url']}[/cyan]")


@app.command("add-aircraft")
def add_aircraft(
    manufacturer: str = typer.Argument(..., help="Manufacturer, e.g. Airbus"),
    model: str = typer.Argument(..., help="Model, e.g. A220-100"),
    seats: int = typer.Option(..., "--seats", "-s", min=1, help="Total seats")
):
    """Register an aircraft type flights can be created from."""
    services = build_services(get_config())
    aircraft = services.catalog.create_aircraft(
        AircraftCreateModel(manufacturer=manufacturer, model=model, total_seats=seats)
    )
    console.print(f"[green]✓[/green] Aircraft {aircraft.id}: {aircraft.manufacturer} "
                  f"{aircraft.model} ({aircraft.total_seats} seats)")


@app.command()
def sweep():
    """Refund bookings on flights departing soon without enough passengers."""
    services = build_services(get_config())

    try:
        report = services.sweep.run()
    except EscrowError as e:
        console.print(f"[red]✗[/red] {e.message}")
        raise typer.Exit(code=2)

    console.print(Panel.fit(
        f"[bold cyan]{report.message}[/bold cyan]\n"
        f"Flights checked: [yellow]{report.flights_checked}[/yellow]",
        border_style="cyan",
        box=box.DOUBLE
    ))

    if report.results:
        table = Table(title="Refund Results", box=box.ROUNDED)
        table.add_column("Booking", style="cyan")
        table.add_column("Flight", style="magenta")
        table.add_column("Status")
        table.add_column("Amount", justify="right")
        table.add_column("Error", style="red")

        for result in report.results:
            table.add_row(
                result.booking_id,
                result.flight_number,
                OUTCOME_STYLES[result.status],
                f"{result.refund_amount:.2f}" if result.refund_amount is not None else "",
                result.error or "",
            )
        console.print(table)

    if report.failed:
        console.print(f"[yellow]⚠ {len(report.failed)} booking(s) need manual follow-up[/yellow]")
        raise typer.Exit(code=1)


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Bind port"),
    debug: bool = typer.Option(False, "--debug", help="Enable Flask debug mode")
):
    """Run the HTTP API with the Flask development server."""
    config = get_config()
    flask_app = create_app(config)
    flask_app.run(host=host or config.host, port=port or config.port,
                  debug=debug or config.debug)


if __name__ == "__main__":
    app()
