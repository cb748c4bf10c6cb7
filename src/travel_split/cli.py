"""CLI for TravelSplit using Typer."""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager

import typer
from rich.console import Console
from rich.table import Table

from .config import load_settings
from .db import Database
from .exceptions import TravelSplitError
from .models import Expense, Participant, SettlementResult
from .service import LedgerService
from .settlement import format_amount, total_settlement_amount
from .ui import select_participant_interactive

app = typer.Typer(
    name="travel-split",
    help="Split shared travel expenses and settle up with as few payments as possible",
)
people_app = typer.Typer(help="Manage the people sharing the trip")
expense_app = typer.Typer(help="Record who paid for what")
app.add_typer(people_app, name="people")
app.add_typer(expense_app, name="expense")

console = Console()


def setup_logging(verbose: bool = False):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    # Network requests are too noisy unless verbose
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)


@contextmanager
def open_service(verbose: bool) -> Iterator[LedgerService]:
    """Load settings and the database, report errors and always close the DB."""
    setup_logging(verbose)
    db = None
    try:
        settings = load_settings()
        db = Database(settings.database_path)
        yield LedgerService(settings, db)
    except TravelSplitError as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        if verbose:
            raise
        sys.exit(1)
    finally:
        if db is not None:
            db.close()


def _names(participants: list[Participant]) -> dict[str, str]:
    return {p.id: p.name for p in participants}


# ============================================================================
# People
# ============================================================================


@people_app.command("add")
def people_add(
    name: str = typer.Argument(..., help="Name of the person"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Add a person to the trip."""
    with open_service(verbose) as service:
        person = service.add_participant(name)
        console.print(
            f"[green]✓ Added {person.name}[/green] [dim]({person.id})[/dim]"
        )


@people_app.command("list")
def people_list(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """List everyone on the trip."""
    with open_service(verbose) as service:
        participants = service.list_participants()
        if not participants:
            console.print("[yellow]No participants registered.[/yellow]")
            return

        table = Table(
            title="Participants", show_header=True, header_style="bold magenta"
        )
        table.add_column("ID", style="dim")
        table.add_column("Name", style="cyan")
        for person in participants:
            table.add_row(person.id, person.name)
        console.print(table)


@people_app.command("rename")
def people_rename(
    participant_id: str = typer.Argument(..., help="Participant ID"),
    name: str = typer.Argument(..., help="New name"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Rename a person."""
    with open_service(verbose) as service:
        person = service.rename_participant(participant_id, name)
        console.print(f"[green]✓ Renamed to {person.name}[/green]")


@people_app.command("remove")
def people_remove(
    participant_id: str = typer.Argument(..., help="Participant ID"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Remove a person who is not part of any expense."""
    with open_service(verbose) as service:
        service.remove_participant(participant_id)
        console.print(f"[green]✓ Removed {participant_id}[/green]")


# ============================================================================
# Expenses
# ============================================================================


def _resolve_payer(service: LedgerService, payer: str | None) -> str:
    """Use the given payer id, or ask for one interactively."""
    if payer:
        return payer

    selected = select_participant_interactive(service.list_participants())
    if selected is None:
        console.print("[yellow]No payer selected.[/yellow]")
        raise typer.Exit(0)
    return selected


@expense_app.command("add")
def expense_add(
    amount: float = typer.Option(..., "--amount", "-a", help="Amount paid"),
    description: str = typer.Option(
        ..., "--description", "-d", help="What the money was spent on"
    ),
    currency: str = typer.Option(
        None, "--currency", "-c", help="Currency code (default: settings)"
    ),
    payer: str = typer.Option(
        None, "--payer", "-p", help="ID of who paid (prompted if omitted)"
    ),
    beneficiaries: list[str] = typer.Option(
        None, "--for", "-f", help="ID of a beneficiary (repeatable, default: everyone)"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Record an expense paid by one person for some (or all) of the group."""
    with open_service(verbose) as service:
        payer_id = _resolve_payer(service, payer)
        if not beneficiaries:
            beneficiaries = [p.id for p in service.list_participants()]

        expense = service.add_expense(
            payer=payer_id,
            beneficiaries=beneficiaries,
            description=description,
            currency=currency or service.settings.default_currency,
            amount=amount,
        )
        console.print(
            f"[green]✓ Recorded {expense.description}: "
            f"{format_amount(expense.amount, expense.currency)}[/green] "
            f"[dim]({expense.id})[/dim]"
        )


@expense_app.command("edit")
def expense_edit(
    expense_id: str = typer.Argument(..., help="Expense ID"),
    amount: float = typer.Option(None, "--amount", "-a", help="Amount paid"),
    description: str = typer.Option(None, "--description", "-d", help="Description"),
    currency: str = typer.Option(None, "--currency", "-c", help="Currency code"),
    payer: str = typer.Option(None, "--payer", "-p", help="ID of who paid"),
    beneficiaries: list[str] = typer.Option(
        None, "--for", "-f", help="ID of a beneficiary (repeatable)"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Change an expense. Options left out keep their current value."""
    with open_service(verbose) as service:
        current = next((e for e in service.list_expenses() if e.id == expense_id), None)
        if current is None:
            console.print(f"[yellow]No expense with id {expense_id}.[/yellow]")
            raise typer.Exit(1)

        expense = service.update_expense(
            expense_id,
            payer=payer or current.payer,
            beneficiaries=beneficiaries or current.beneficiaries,
            description=description if description is not None else current.description,
            currency=currency or current.currency,
            amount=amount if amount is not None else current.amount,
        )
        console.print(f"[green]✓ Updated {expense.description}[/green]")


@expense_app.command("list")
def expense_list(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """List recorded expenses."""
    with open_service(verbose) as service:
        expenses = service.list_expenses()
        if not expenses:
            console.print("[yellow]No expenses recorded.[/yellow]")
            return

        display_expenses(expenses, _names(service.list_participants()))


@expense_app.command("remove")
def expense_remove(
    expense_id: str = typer.Argument(..., help="Expense ID"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Delete an expense."""
    with open_service(verbose) as service:
        service.remove_expense(expense_id)
        console.print(f"[green]✓ Removed expense {expense_id}[/green]")


def display_expenses(expenses: list[Expense], names: dict[str, str]):
    """Display the expense ledger in a table."""
    table = Table(title="Expenses", show_header=True, header_style="bold magenta")
    table.add_column("ID", style="dim")
    table.add_column("Description", style="cyan", width=30)
    table.add_column("Paid by", style="yellow")
    table.add_column("For", no_wrap=False)
    table.add_column("Amount", justify="right")

    for exp in expenses:
        desc = exp.description
        table.add_row(
            exp.id,
            desc[:30] + "..." if len(desc) > 30 else desc,
            names.get(exp.payer, exp.payer),
            ", ".join(names.get(b, b) for b in exp.beneficiaries),
            format_amount(exp.amount, exp.currency),
        )

    console.print(table)


# ============================================================================
# Currencies and settlement
# ============================================================================


@app.command()
def currencies(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """List currencies available for expenses and settlement."""
    with open_service(verbose) as service:
        table = Table(title="Currencies", show_header=True, header_style="bold magenta")
        table.add_column("Code", style="cyan")
        table.add_column("Name")
        for cur in service.list_currencies():
            table.add_row(cur.code, cur.name)
        console.print(table)


@app.command()
def settle(
    currency: str = typer.Option(
        None, "--currency", "-c", help="Currency to settle in (default: settings)"
    ),
    no_rates: bool = typer.Option(
        False, "--no-rates", help="Skip fetching exchange rates (every rate is 1)"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """
    Compute who pays whom to settle all expenses.

    Amounts in other currencies are converted into the settlement currency
    with live exchange rates when an API key is configured.
    """
    with open_service(verbose) as service:
        target = (currency or service.settings.default_currency).upper()

        console.print(f"\n[bold blue]Settling in {target}...[/bold blue]")
        settlements = service.settle(target, use_rates=not no_rates)

        display_settlements(settlements, target)


def display_settlements(settlements: list[SettlementResult], currency: str):
    """Display settlement transfers in a table."""
    if not settlements:
        console.print("\n[green]No payments needed.[/green]")
        console.print("[dim]Everyone's share is already covered.[/dim]\n")
        return

    table = Table(title="Settlement", show_header=True, header_style="bold magenta")
    table.add_column("From", style="yellow")
    table.add_column("")
    table.add_column("To", style="cyan")
    table.add_column("Amount", justify="right", style="green")

    for s in settlements:
        table.add_row(s.from_name, "→", s.to_name, format_amount(s.amount, currency))

    console.print(table)
    console.print(
        f"\n[bold]Total:[/bold] {len(settlements)} payments, "
        f"{format_amount(total_settlement_amount(settlements), currency)}\n"
    )


if __name__ == "__main__":
    app()
