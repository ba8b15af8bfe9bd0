"""
CLI interface for warehouse billing.

Provides command-line access to rate sheet maintenance and invoice rating.
"""

import logging
import sqlite3
import sys
from decimal import Decimal
from typing import List, Optional

import typer
import yaml
from rich.console import Console
from rich.table import Table

from warehouse_billing.config.loader import (
    BillingSettings,
    load_invoice_request,
    load_rate_sheets,
    load_settings,
)
from warehouse_billing.core.context import RequestContext
from warehouse_billing.core.errors import BillingError
from warehouse_billing.core.invoice import Invoice
from warehouse_billing.core.rate_sheet import RateSheet
from warehouse_billing.logging_config import configure_logging
from warehouse_billing.sdk.billing_client import BillingClient
from warehouse_billing.storage.db import DEFAULT_DB_PATH
from warehouse_billing.storage.repository import get_repository, initialize_schema

app = typer.Typer()
console = Console()

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1

DB_OPTION = typer.Option(
    None, "--db", help=f"Path to the billing database (default: {DEFAULT_DB_PATH})"
)


def get_client(db_path: str) -> BillingClient:
    """Billing client for a database path, sharing one repository per path."""
    return BillingClient(repository=get_repository(db_path), db_path=db_path)


def _database_error(e: sqlite3.OperationalError, db_path: str) -> None:
    if "no such table" in str(e).lower():
        console.print(f"[red]Error:[/] Database is not initialized: {db_path}")
        console.print("Run `warehouse-billing init` to create the billing tables")
    else:
        console.print(f"[red]Database error:[/] {str(e)}")
    sys.exit(EXIT_CODE_FAIL)


def _db_path(ctx: typer.Context, db: Optional[str]) -> str:
    """--db wins over the settings file."""
    if db:
        return db
    settings = ctx.obj if isinstance(ctx.obj, BillingSettings) else BillingSettings()
    return settings.db_path


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    config: Optional[str] = typer.Option(None, "--config", help="YAML settings file"),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Enable JSON logs at this level")
):
    """Warehouse Billing CLI."""
    try:
        settings = load_settings(config) if config else BillingSettings()
        if log_level:
            settings = BillingSettings(db_path=settings.db_path, log_level=log_level.upper())
    except (ValueError, FileNotFoundError, yaml.YAMLError) as e:
        console.print(f"[red]Error loading settings:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    # Logs go to stderr only when a level was asked for
    if config or log_level:
        configure_logging(level=getattr(logging, settings.log_level))
    ctx.obj = settings

    if ctx.invoked_subcommand is None:
        console.print("Warehouse Billing - Use --help to see available commands")


@app.command()
def init(ctx: typer.Context, db: Optional[str] = DB_OPTION):
    """Initialize the billing database."""
    try:
        initialize_schema(_db_path(ctx, db))
        console.print("[green]✓[/] Database initialized successfully")
        sys.exit(EXIT_CODE_PASS)
    except Exception as e:
        console.print(f"[red]Error initializing database:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.command("import-rate-sheets")
def import_rate_sheets(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="YAML file with rate sheets"),
    db: Optional[str] = DB_OPTION
):
    """Create rate sheets from a YAML file."""
    db_path = _db_path(ctx, db)
    try:
        client = get_client(db_path)
        for rate_sheet in load_rate_sheets(path):
            saved = client.create_rate_sheet(
                rate_sheet.customer_id,
                rate_sheet.name,
                rate_sheet.warehouses,
                context=RequestContext.new()
            )
            console.print(
                f"[green]✓[/] Rate sheet {saved.id} created for customer "
                f"{saved.customer_id} ({saved.name})"
            )
    except (BillingError, ValueError, FileNotFoundError, yaml.YAMLError) as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)
    except sqlite3.OperationalError as e:
        _database_error(e, db_path)
    sys.exit(EXIT_CODE_PASS)


@app.command()
def find(
    ctx: typer.Context,
    customer_id: str = typer.Option(..., "--customer-id", "-c", help="Customer identifier"),
    customer_name: Optional[str] = typer.Option(
        None, "--customer-name", "-n", help="Rate sheet name to disambiguate"
    ),
    warehouse_ids: List[str] = typer.Option(
        ..., "--warehouse-id", "-w", help="Warehouse id (repeat or comma-separate)"
    ),
    db: Optional[str] = DB_OPTION
):
    """Find the rate sheet covering a customer across warehouses."""
    ids = [part for value in warehouse_ids for part in value.split(",")]
    db_path = _db_path(ctx, db)
    try:
        rate_sheet = get_client(db_path).find_rate_sheet(
            customer_id, customer_name, ids, context=RequestContext.new()
        )
    except BillingError as e:
        console.print(f"[red]Error ({e.code}):[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)
    except sqlite3.OperationalError as e:
        _database_error(e, db_path)

    _display_rate_sheet(rate_sheet)
    sys.exit(EXIT_CODE_PASS)


@app.command()
def preview(
    ctx: typer.Context,
    rate_sheet_id: int = typer.Argument(..., help="Rate sheet id"),
    request_file: str = typer.Argument(..., help="YAML invoice request"),
    db: Optional[str] = DB_OPTION
):
    """Rate an invoice request without saving it."""
    _rate(rate_sheet_id, request_file, _db_path(ctx, db), finalize=False)


@app.command()
def finalize(
    ctx: typer.Context,
    rate_sheet_id: int = typer.Argument(..., help="Rate sheet id"),
    request_file: str = typer.Argument(..., help="YAML invoice request"),
    db: Optional[str] = DB_OPTION
):
    """Rate an invoice request and save the final invoice."""
    _rate(rate_sheet_id, request_file, _db_path(ctx, db), finalize=True)


def _rate(rate_sheet_id: int, request_file: str, db: str, finalize: bool) -> None:
    try:
        request = load_invoice_request(request_file)
        client = get_client(db)
        context = RequestContext.new()
        if finalize:
            invoice = client.finalize_invoice(rate_sheet_id, request, context=context)
        else:
            invoice = client.preview_invoice(rate_sheet_id, request, context=context)
    except (BillingError, ValueError, FileNotFoundError, yaml.YAMLError) as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)
    except sqlite3.OperationalError as e:
        _database_error(e, db)

    _display_invoice(invoice)
    sys.exit(EXIT_CODE_PASS)


def _format_currency(amount: Decimal) -> str:
    """Format currency with proper symbols and formatting."""
    return f"${amount:,.2f}"


def _display_invoice(invoice: Invoice):
    """Display an invoice in a clean, financial format."""
    title = f"Invoice {invoice.id}" if invoice.id is not None else "Invoice"
    console.print(f"\n[bold]{title} ({invoice.status.value})[/bold]")
    console.print("-" * 40)
    console.print(f"Customer: {invoice.customer_id}")
    console.print(f"Warehouse: {invoice.warehouse_id}")
    console.print(f"Period: {invoice.period_start} to {invoice.period_end}")

    table = Table()
    table.add_column("Description")
    table.add_column("Quantity", justify="right")
    table.add_column("Rate", justify="right")
    table.add_column("Amount", justify="right")
    for line in invoice.lines:
        table.add_row(line.description, str(line.quantity), str(line.rate),
                      _format_currency(line.amount))
    console.print(table)
    console.print(f"[bold]Total:[/bold] {_format_currency(invoice.total_amount)}")

    for diagnostic in invoice.diagnostics:
        console.print(f"[yellow]Warning ({diagnostic.kind.value}):[/] {diagnostic.message}")


def _display_rate_sheet(rate_sheet: RateSheet):
    console.print(
        f"\n[bold]Rate sheet {rate_sheet.id}[/bold] "
        f"customer={rate_sheet.customer_id} name={rate_sheet.name}"
    )
    for warehouse in rate_sheet.warehouses:
        table = Table(title=warehouse.warehouse_id)
        table.add_column("Category")
        table.add_column("Type")
        table.add_column("Accessorial")
        table.add_column("Rate", justify="right")
        table.add_column("Unit")
        for charge in warehouse.charges:
            table.add_row(
                charge.category.value,
                charge.type or "",
                charge.accessorial_type.value if charge.accessorial_type else "",
                str(charge.rate),
                charge.unit
            )
        console.print(table)


if __name__ == "__main__":
    app()
