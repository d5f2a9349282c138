"""CLI for groupledger using Typer."""

import logging
import sys
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from .aggregator import group_by_currency
from .config import load_settings
from .exceptions import (
    ConfigurationError,
    InvalidSplitCountError,
    InvalidWeightsError,
)
from .models import Balance, Transaction
from .money import Money, parse_money, sum_money, to_decimal
from .service import LedgerService, compute_plan_id
from .source import JsonFileRecordSource

app = typer.Typer(
    name="groupledger",
    help="Track shared expenses and work out who pays whom",
)

console = Console()

LEDGER_OPTION = typer.Option(
    None, "--ledger", "-l", help="Ledger JSON file (defaults to LEDGER_PATH)"
)
GROUP_OPTION = typer.Option(None, "--group", "-g", help="Group id")
TRIP_OPTION = typer.Option(
    None, "--trip", "-t", help="Trip id (omit for expenses outside any trip)"
)
VERBOSE_OPTION = typer.Option(False, "--verbose", "-v", help="Verbose output")


def setup_logging(verbose: bool = False):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


def open_service(ledger: Path | None) -> LedgerService:
    """Build a service over the given ledger file or the configured one."""
    settings = load_settings()
    path = ledger or settings.ledger_path
    if path is None:
        raise ConfigurationError(
            "No ledger file given. Pass --ledger or set LEDGER_PATH."
        )
    return LedgerService(settings, JsonFileRecordSource(path))


def fail(error: Exception, verbose: bool):
    """Report an error and exit; re-raise when verbose for the traceback."""
    console.print(f"\n[bold red]Error:[/bold red] {error}")
    if verbose:
        raise error
    sys.exit(1)


def format_money(amount: Money, currency: str = "", use_color: bool = True) -> str:
    """
    Format money in accounting style with alignment.

    Negative amounts use parentheses: (85.02 USD)
    Positive amounts have spaces:      85.02 USD
    """
    suffix = f" {currency}" if currency else ""
    abs_amount = amount.abs().to_decimal()
    if amount.is_negative():
        if use_color:
            return f"([red]{abs_amount:,.2f}[/red]{suffix})"
        return f"({abs_amount:,.2f}{suffix})"
    if use_color:
        return f" [green]{abs_amount:,.2f}[/green]{suffix} "
    return f" {abs_amount:,.2f}{suffix} "


def display_balances(
    balances: list[Balance], title: str = "Balances", show_status: bool = True
):
    """Display balances grouped by currency."""
    if not balances:
        console.print("[green]✓ All settled up![/green]")
        return

    for currency, rows in group_by_currency(balances).items():
        table = Table(
            title=f"{title} ({currency})", show_header=True, header_style="bold magenta"
        )
        table.add_column("User", style="cyan")
        table.add_column("Balance", justify="right")
        if show_status:
            table.add_column("Status", style="dim")

        for balance in rows:
            row = [balance.user_id, format_money(balance.amount)]
            if show_status:
                row.append("is owed" if balance.amount.is_positive() else "owes")
            table.add_row(*row)

        console.print(table)


def display_plan(plan: dict[str, list[Transaction]]):
    """Display a settlement plan."""
    if not any(plan.values()):
        console.print("[green]✓ All settled up! No payments needed.[/green]")
        return

    for currency, transactions in plan.items():
        table = Table(
            title=f"Settlement Plan ({currency})",
            show_header=True,
            header_style="bold magenta",
        )
        table.add_column("From", style="cyan")
        table.add_column("To", style="cyan")
        table.add_column("Amount", justify="right")

        for txn in transactions:
            table.add_row(txn.from_user_id, txn.to_user_id, format_money(txn.amount))

        console.print(table)

        total = sum_money(txn.amount for txn in transactions)
        count = len(transactions)
        console.print(
            f"  Total: {format_money(total, currency)} across "
            f"{count} payment{'s' if count != 1 else ''}\n"
        )


@app.command()
def balances(
    ledger: Path | None = LEDGER_OPTION,
    group: str | None = GROUP_OPTION,
    trip: str | None = TRIP_OPTION,
    verbose: bool = VERBOSE_OPTION,
):
    """Show net balances per user and currency."""
    setup_logging(verbose)

    try:
        service = open_service(ledger)
        display_balances(service.balances(group, trip))
    except Exception as e:
        fail(e, verbose)


@app.command()
def plan(
    ledger: Path | None = LEDGER_OPTION,
    group: str | None = GROUP_OPTION,
    trip: str | None = TRIP_OPTION,
    verbose: bool = VERBOSE_OPTION,
):
    """Show the simplified list of payments that settles everyone up."""
    setup_logging(verbose)

    try:
        service = open_service(ledger)
        settlement_plan = service.settlement_plan(group, trip)
        display_plan(settlement_plan)
        if any(settlement_plan.values()):
            plan_id = compute_plan_id(group, trip, settlement_plan)
            console.print(f"[dim]Plan id: {plan_id[:12]}[/dim]")
    except Exception as e:
        fail(e, verbose)


@app.command()
def net(
    user_a: str = typer.Argument(..., help="First user id"),
    user_b: str = typer.Argument(..., help="Second user id"),
    ledger: Path | None = LEDGER_OPTION,
    group: str | None = GROUP_OPTION,
    currency: str | None = typer.Option(
        None, "--currency", "-c", help="Currency (defaults to DEFAULT_CURRENCY)"
    ),
    verbose: bool = VERBOSE_OPTION,
):
    """Show the net balance between two users."""
    setup_logging(verbose)

    try:
        service = open_service(ledger)
        code = (currency or service.settings.default_currency).upper()
        amount = service.net_between(group, user_a, user_b, code)

        if amount.is_zero():
            console.print(f"✅ All settled up between {user_a} and {user_b}!")
        elif amount.is_positive():
            console.print(f"{user_b} owes {user_a} {format_money(amount, code)}")
        else:
            console.print(
                f"{user_a} owes {user_b} {format_money(amount.abs(), code)}"
            )
    except Exception as e:
        fail(e, verbose)


@app.command()
def personal(
    user_id: str = typer.Argument(..., help="User id"),
    ledger: Path | None = LEDGER_OPTION,
    verbose: bool = VERBOSE_OPTION,
):
    """Show totals of a user's personal expenses."""
    setup_logging(verbose)

    try:
        service = open_service(ledger)
        display_balances(
            service.personal_totals(user_id),
            title="Personal spending",
            show_status=False,
        )
    except Exception as e:
        fail(e, verbose)


@app.command()
def split(
    amount: str = typer.Argument(..., help="Amount to split, e.g. 10.00"),
    ways: int | None = typer.Option(None, "--ways", "-n", help="Split evenly"),
    weights: str | None = typer.Option(
        None, "--weights", "-w", help="Comma-separated weights, e.g. 1,2,2"
    ),
    verbose: bool = VERBOSE_OPTION,
):
    """Preview how an amount is divided between participants."""
    setup_logging(verbose)

    try:
        total = parse_money(amount)
        if total is None:
            raise ValueError(f"Invalid amount: {amount}")
        if (ways is None) == (weights is None):
            raise ValueError("Pass exactly one of --ways or --weights")

        raw_weights = [w for w in (weights or "").split(",") if w.strip()]
        if ways is None and not raw_weights:
            raise InvalidWeightsError("No weights given")

        max_splits = load_settings().max_splits
        count = ways if ways is not None else len(raw_weights)
        if count > max_splits:
            raise InvalidSplitCountError(count, f"Too many splits (max {max_splits})")

        if ways is not None:
            parts = total.split_evenly(ways)
        else:
            parts = total.split_weighted([to_decimal(w) for w in raw_weights])

        table = Table(title=f"Split of {total}", show_header=True)
        table.add_column("#", style="dim", justify="right")
        table.add_column("Share", justify="right")
        for idx, part in enumerate(parts, start=1):
            table.add_row(str(idx), format_money(part, use_color=False))
        console.print(table)
    except Exception as e:
        fail(e, verbose)


if __name__ == "__main__":
    app()
