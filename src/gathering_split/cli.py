"""CLI for GatheringSplit using Typer."""

import logging
import sys
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum

import typer
from rich.console import Console
from rich.table import Table

from .config import load_settings
from .db import Database
from .models import SettlementReport
from .service import GatheringService
from .summary import category_label, render_summary

app = typer.Typer(
    name="gathering-split",
    help="Split shared gathering expenses and settle who pays whom",
)

console = Console()


class Category(str, Enum):
    food = "food"
    herb = "herb"
    other = "other"


def setup_logging(verbose: bool = False):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


def format_money(amount: Decimal, symbol: str = "$", use_color: bool = True) -> str:
    """
    Format money in accounting style with alignment.

    Negative amounts use parentheses: ($85.02)
    Positive amounts have spaces:      $85.02
    The spaces ensure decimal points align in tables.
    """
    abs_amount = abs(amount)
    if amount < 0:
        if use_color:
            formatted = f"({symbol}[red]{abs_amount:,.2f}[/red])"
        else:
            formatted = f"({symbol}{abs_amount:,.2f})"
    else:
        if use_color:
            formatted = f" [green]{symbol}{abs_amount:,.2f}[/green] "
        else:
            formatted = f" {symbol}{abs_amount:,.2f} "
    return formatted


def _parse_amount(value: str) -> Decimal:
    try:
        return Decimal(value)
    except InvalidOperation as e:
        raise typer.BadParameter(f"Invalid amount: {value}") from e


def _to_date(value: datetime | None) -> date | None:
    return value.date() if value else None


def _fail(e: Exception, verbose: bool):
    console.print(f"\n[bold red]Error:[/bold red] {e}")
    if verbose:
        raise e
    sys.exit(1)


@app.command("add-participant")
def add_participant(
    name: str = typer.Argument(..., help="Participant name"),
    alias: str = typer.Option("", "--alias", "-a", help="Payment handle"),
    vegan: bool = typer.Option(False, "--vegan", help="Exclude from meat dishes"),
    herb: bool = typer.Option(False, "--herb", help="Share herb expenses"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Register a new participant."""
    setup_logging(verbose)

    try:
        settings = load_settings()
        db = Database(settings.database_path)
        service = GatheringService(settings, db)

        participant = service.add_participant(
            name=name, alias=alias, is_vegan=vegan, participates_in_herb=herb
        )
        console.print(
            f"[bold green]✓ Added {participant.name}[/bold green] "
            f"[dim]({participant.id})[/dim]"
        )

    except Exception as e:
        _fail(e, verbose)
    finally:
        if "db" in locals():
            db.close()


@app.command("participants")
def list_participants(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """List all participants and their preferences."""
    setup_logging(verbose)

    try:
        settings = load_settings()
        db = Database(settings.database_path)

        participants = db.list_participants()
        if not participants:
            console.print("[yellow]No participants yet.[/yellow]")
            return

        table = Table(
            title="Participants", show_header=True, header_style="bold magenta"
        )
        table.add_column("ID", style="dim")
        table.add_column("Name", style="cyan")
        table.add_column("Alias")
        table.add_column("Vegan", justify="center")
        table.add_column("Herb", justify="center")

        for participant in participants:
            table.add_row(
                participant.id,
                participant.name,
                participant.alias,
                "✓" if participant.is_vegan else "",
                "✓" if participant.participates_in_herb else "",
            )

        console.print(table)

    except Exception as e:
        _fail(e, verbose)
    finally:
        if "db" in locals():
            db.close()


@app.command("remove-participant")
def remove_participant(
    participant: str = typer.Argument(..., help="Participant ID or name"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Remove a participant who is not part of any gathering."""
    setup_logging(verbose)

    try:
        settings = load_settings()
        db = Database(settings.database_path)
        service = GatheringService(settings, db)

        found = service.find_participant(participant)
        service.remove_participant(found.id)
        console.print(f"[bold green]✓ Removed {found.name}[/bold green]")

    except Exception as e:
        _fail(e, verbose)
    finally:
        if "db" in locals():
            db.close()


@app.command("edit-participant")
def edit_participant(
    participant: str = typer.Argument(..., help="Participant ID or name"),
    name: str | None = typer.Option(None, "--name", help="New name"),
    alias: str | None = typer.Option(None, "--alias", "-a", help="Payment handle"),
    vegan: bool | None = typer.Option(
        None, "--vegan/--no-vegan", help="Exclude from meat dishes"
    ),
    herb: bool | None = typer.Option(
        None, "--herb/--no-herb", help="Share herb expenses"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Change a participant's name, alias or preferences."""
    setup_logging(verbose)

    changes = {
        key: value
        for key, value in {
            "name": name,
            "alias": alias,
            "is_vegan": vegan,
            "participates_in_herb": herb,
        }.items()
        if value is not None
    }

    try:
        settings = load_settings()
        db = Database(settings.database_path)
        service = GatheringService(settings, db)

        found = service.find_participant(participant)
        if not changes:
            console.print("[yellow]Nothing to change.[/yellow]")
            return

        updated = service.update_participant(found.id, **changes)
        console.print(f"[bold green]✓ Updated {updated.name}[/bold green]")

    except Exception as e:
        _fail(e, verbose)
    finally:
        if "db" in locals():
            db.close()


@app.command("new-gathering")
def new_gathering(
    title: str = typer.Argument(..., help="Gathering title"),
    participants: list[str] = typer.Option(
        ..., "--participant", "-p", help="Participant ID or name (repeatable)"
    ),
    on: datetime | None = typer.Option(
        None, "--date", "-d", formats=["%Y-%m-%d"], help="Date (default: today)"
    ),
    host: str | None = typer.Option(None, "--host", help="Host ID or name"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Create a gathering with its participants."""
    setup_logging(verbose)

    try:
        settings = load_settings()
        db = Database(settings.database_path)
        service = GatheringService(settings, db)

        participant_ids = [service.find_participant(ref).id for ref in participants]
        host_id = service.find_participant(host).id if host else None

        gathering = service.create_gathering(
            title=title,
            gathering_date=_to_date(on) or date.today(),
            participant_ids=participant_ids,
            host_id=host_id,
        )
        console.print(
            f"[bold green]✓ Created gathering '{gathering.title}'[/bold green] "
            f"[dim]({gathering.id})[/dim]"
        )

    except Exception as e:
        _fail(e, verbose)
    finally:
        if "db" in locals():
            db.close()


@app.command("gatherings")
def list_gatherings(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """List all gatherings, newest first."""
    setup_logging(verbose)

    try:
        settings = load_settings()
        db = Database(settings.database_path)

        gatherings = db.list_gatherings()
        if not gatherings:
            console.print("[yellow]No gatherings yet.[/yellow]")
            return

        table = Table(title="Gatherings", show_header=True, header_style="bold magenta")
        table.add_column("ID", style="dim")
        table.add_column("Date")
        table.add_column("Title", style="cyan")
        table.add_column("People", justify="right")

        for gathering in gatherings:
            table.add_row(
                gathering.id,
                gathering.date.isoformat(),
                gathering.title,
                str(len(gathering.participants)),
            )

        console.print(table)

    except Exception as e:
        _fail(e, verbose)
    finally:
        if "db" in locals():
            db.close()


@app.command("edit-gathering")
def edit_gathering(
    gathering_id: str = typer.Argument(..., help="Gathering ID"),
    title: str | None = typer.Option(None, "--title", help="New title"),
    on: datetime | None = typer.Option(
        None, "--date", "-d", formats=["%Y-%m-%d"], help="New date"
    ),
    host: str | None = typer.Option(None, "--host", help="Host ID or name"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Change a gathering's title, date or host."""
    setup_logging(verbose)

    try:
        settings = load_settings()
        db = Database(settings.database_path)
        service = GatheringService(settings, db)

        changes = {}
        if title is not None:
            changes["title"] = title
        if on is not None:
            changes["date"] = _to_date(on)
        if host is not None:
            changes["host_id"] = service.find_participant(host).id

        if not changes:
            console.print("[yellow]Nothing to change.[/yellow]")
            return

        gathering = service.update_gathering(gathering_id, **changes)
        console.print(
            f"[bold green]✓ Updated gathering '{gathering.title}'[/bold green]"
        )

    except Exception as e:
        _fail(e, verbose)
    finally:
        if "db" in locals():
            db.close()


@app.command("add-to-gathering")
def add_to_gathering(
    gathering_id: str = typer.Argument(..., help="Gathering ID"),
    participants: list[str] = typer.Option(
        ..., "--participant", "-p", help="Participant ID or name (repeatable)"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Add participants to an existing gathering."""
    setup_logging(verbose)

    try:
        settings = load_settings()
        db = Database(settings.database_path)
        service = GatheringService(settings, db)

        added = [service.find_participant(ref) for ref in participants]
        gathering = service.add_gathering_participants(
            gathering_id, [p.id for p in added]
        )
        console.print(
            f"[bold green]✓ Added {', '.join(p.name for p in added)} "
            f"to '{gathering.title}'[/bold green]"
        )

    except Exception as e:
        _fail(e, verbose)
    finally:
        if "db" in locals():
            db.close()


@app.command("remove-gathering")
def remove_gathering(
    gathering_id: str = typer.Argument(..., help="Gathering ID"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation prompt"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Remove a gathering and all of its expenses."""
    setup_logging(verbose)

    try:
        settings = load_settings()
        db = Database(settings.database_path)
        service = GatheringService(settings, db)

        gathering = service.get_gathering(gathering_id)
        if not yes and not typer.confirm(
            f"Remove '{gathering.title}' and all of its expenses?"
        ):
            console.print("[yellow]Cancelled.[/yellow]")
            return

        service.remove_gathering(gathering_id)
        console.print(f"[bold green]✓ Removed '{gathering.title}'[/bold green]")

    except Exception as e:
        _fail(e, verbose)
    finally:
        if "db" in locals():
            db.close()


@app.command("add-expense")
def add_expense(
    gathering_id: str = typer.Argument(..., help="Gathering ID"),
    description: str = typer.Argument(..., help="What was bought"),
    amount: str = typer.Argument(..., help="Amount paid, e.g. 42.50"),
    paid_by: str = typer.Option(..., "--paid-by", help="Payer ID or name"),
    category: Category = typer.Option(Category.other, "--category", "-c"),
    meat: bool = typer.Option(False, "--meat", help="Food contains meat"),
    participants: list[str] | None = typer.Option(
        None,
        "--participant",
        "-p",
        help="Participant ID or name (repeatable, default: everyone)",
    ),
    on: datetime | None = typer.Option(
        None, "--date", "-d", formats=["%Y-%m-%d"], help="Date (default: gathering)"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Record an expense paid by one participant."""
    setup_logging(verbose)

    try:
        settings = load_settings()
        db = Database(settings.database_path)
        service = GatheringService(settings, db)

        participant_ids = (
            [service.find_participant(ref).id for ref in participants]
            if participants
            else None
        )

        expense = service.add_expense(
            gathering_id=gathering_id,
            description=description,
            amount=_parse_amount(amount),
            paid_by_id=service.find_participant(paid_by).id,
            participant_ids=participant_ids,
            category=category.value,
            is_meat=meat if category is Category.food else None,
            expense_date=_to_date(on),
        )
        console.print(
            f"[bold green]✓ Added '{expense.description}'[/bold green] "
            f"{format_money(expense.amount, settings.currency_symbol)}"
            f"[dim]({expense.id})[/dim]"
        )

    except Exception as e:
        _fail(e, verbose)
    finally:
        if "db" in locals():
            db.close()


@app.command("edit-expense")
def edit_expense(
    expense_id: str = typer.Argument(..., help="Expense ID"),
    description: str | None = typer.Option(None, "--description", help="New text"),
    amount: str | None = typer.Option(None, "--amount", help="New amount"),
    paid_by: str | None = typer.Option(None, "--paid-by", help="Payer ID or name"),
    category: Category | None = typer.Option(None, "--category", "-c"),
    meat: bool | None = typer.Option(
        None, "--meat/--no-meat", help="Food contains meat"
    ),
    participants: list[str] | None = typer.Option(
        None,
        "--participant",
        "-p",
        help="Participant ID or name (repeatable, replaces the current list)",
    ),
    on: datetime | None = typer.Option(
        None, "--date", "-d", formats=["%Y-%m-%d"], help="New date"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Change an existing expense; it is validated again before saving."""
    setup_logging(verbose)

    try:
        settings = load_settings()
        db = Database(settings.database_path)
        service = GatheringService(settings, db)

        changes = {}
        if description is not None:
            changes["description"] = description
        if amount is not None:
            changes["amount"] = _parse_amount(amount)
        if paid_by is not None:
            changes["paid_by_id"] = service.find_participant(paid_by).id
        if category is not None:
            changes["category"] = category.value
            if category is not Category.food:
                changes["is_meat"] = None
        if meat is not None:
            changes["is_meat"] = meat
        if participants:
            changes["participants"] = [
                service.find_participant(ref).id for ref in participants
            ]
        if on is not None:
            changes["date"] = _to_date(on)

        if not changes:
            console.print("[yellow]Nothing to change.[/yellow]")
            return

        expense = service.update_expense(expense_id, **changes)
        console.print(
            f"[bold green]✓ Updated '{expense.description}'[/bold green] "
            f"{format_money(expense.amount, settings.currency_symbol)}"
        )

    except Exception as e:
        _fail(e, verbose)
    finally:
        if "db" in locals():
            db.close()


@app.command("remove-expense")
def remove_expense(
    expense_id: str = typer.Argument(..., help="Expense ID"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Remove an expense."""
    setup_logging(verbose)

    try:
        settings = load_settings()
        db = Database(settings.database_path)
        service = GatheringService(settings, db)

        service.remove_expense(expense_id)
        console.print("[bold green]✓ Expense removed[/bold green]")

    except Exception as e:
        _fail(e, verbose)
    finally:
        if "db" in locals():
            db.close()


@app.command("expenses")
def list_expenses(
    gathering_id: str = typer.Argument(..., help="Gathering ID"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """List the expenses of a gathering."""
    setup_logging(verbose)

    try:
        settings = load_settings()
        db = Database(settings.database_path)
        service = GatheringService(settings, db)

        snapshot = service.load_snapshot(gathering_id)
        names = {pid: p.name for pid, p in snapshot.participants_by_id.items()}

        table = Table(
            title=f"Expenses: {snapshot.gathering.title}",
            show_header=True,
            header_style="bold magenta",
        )
        table.add_column("ID", style="dim")
        table.add_column("Description", style="cyan", width=30)
        table.add_column("Category", style="yellow")
        table.add_column("Paid by")
        table.add_column("Amount", justify="right", width=12)

        for expense in snapshot.expenses:
            table.add_row(
                expense.id,
                expense.description,
                category_label(expense),
                names.get(expense.paid_by_id, "Unknown"),
                format_money(expense.amount, settings.currency_symbol),
            )

        console.print(table)
        console.print(
            f"  Total: "
            f"{format_money(snapshot.total_amount, settings.currency_symbol)}"
        )

    except Exception as e:
        _fail(e, verbose)
    finally:
        if "db" in locals():
            db.close()


@app.command()
def settle(
    gathering_id: str = typer.Argument(..., help="Gathering ID"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """
    Show balances and who pays whom for a gathering.

    Balances are positive when a participant is owed money and negative when
    they owe money.
    """
    setup_logging(verbose)

    try:
        settings = load_settings()
        db = Database(settings.database_path)
        service = GatheringService(settings, db)

        console.print("\n[bold blue]Computing balances...[/bold blue]")
        report = service.settle(gathering_id)
        display_report(report, settings.currency_symbol)

    except Exception as e:
        _fail(e, verbose)
    finally:
        if "db" in locals():
            db.close()


@app.command()
def summary(
    gathering_id: str = typer.Argument(..., help="Gathering ID"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Print a plain-text summary ready to share with the group."""
    setup_logging(verbose)

    try:
        settings = load_settings()
        db = Database(settings.database_path)
        service = GatheringService(settings, db)

        report = service.settle(gathering_id)
        typer.echo(render_summary(report, settings.currency_symbol))

    except Exception as e:
        _fail(e, verbose)
    finally:
        if "db" in locals():
            db.close()


def display_report(report: SettlementReport, symbol: str = "$"):
    """Display balances and payments in table format."""
    snapshot = report.snapshot
    names = {pid: p.name for pid, p in snapshot.participants_by_id.items()}

    console.print(f"\n[bold]{snapshot.gathering.title}[/bold]")
    console.print(f"  Date: {snapshot.gathering.date}")
    console.print(f"  Total: {format_money(snapshot.total_amount, symbol)}")
    console.print()

    balance_table = Table(
        title="Balances", show_header=True, header_style="bold magenta"
    )
    balance_table.add_column("Participant", style="cyan")
    balance_table.add_column("Paid", justify="right", width=12)
    balance_table.add_column("Share", justify="right", width=12)
    balance_table.add_column("Balance", justify="right", width=12)

    for item in report.summaries:
        balance_table.add_row(
            item.participant.name,
            format_money(item.amount_paid, symbol),
            format_money(item.total_share, symbol),
            format_money(report.balances[item.participant.id], symbol),
        )

    console.print(balance_table)

    if not report.transactions:
        console.print("\n[green]✓ Everyone is settled, no payments needed[/green]")
        return

    payment_table = Table(
        title="Who Pays Whom", show_header=True, header_style="bold magenta"
    )
    payment_table.add_column("From", style="cyan")
    payment_table.add_column("To", style="cyan")
    payment_table.add_column("Alias", style="dim")
    payment_table.add_column("Amount", justify="right", width=12)

    for transaction in report.transactions:
        recipient = snapshot.participants_by_id.get(transaction.to_user_id)
        payment_table.add_row(
            names.get(transaction.from_user_id, "Unknown"),
            names.get(transaction.to_user_id, "Unknown"),
            recipient.alias if recipient else "",
            format_money(transaction.amount, symbol),
        )

    console.print()
    console.print(payment_table)
    console.print(f"\n  Total payments: {len(report.transactions)}")


if __name__ == "__main__":
    app()
