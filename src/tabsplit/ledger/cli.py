"""CLI commands for managing groups and settling up."""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from ..config import load_settings
from ..db import Database
from ..models import Group
from .balance import TOLERANCE
from .export import export_group
from .service import GroupService
from .ui import select_member_interactive

app = typer.Typer(
    name="group",
    help="Manage expense groups and work out who owes whom",
)

console = Console()

SPLIT_TYPES = ("equal", "unequal", "select")


def setup_logging(verbose: bool = False):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


@contextmanager
def open_service(verbose: bool) -> Iterator[GroupService]:
    """Yield a GroupService, reporting errors and closing the database."""
    setup_logging(verbose)
    db = None
    try:
        settings = load_settings()
        db = Database(settings.database_path)
        yield GroupService(settings, db)
    except typer.Exit:
        raise
    except Exception as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        if verbose:
            raise
        sys.exit(1)
    finally:
        if db is not None:
            db.close()


def parse_amount(value: str) -> Decimal:
    """Parse a money amount given on the command line."""
    try:
        amount = Decimal(value)
    except InvalidOperation:
        raise typer.BadParameter(f"'{value}' is not a valid amount") from None
    if not amount.is_finite():
        raise typer.BadParameter(f"'{value}' is not a valid amount")
    return amount


def parse_shares(shares: list[str]) -> dict[str, Decimal]:
    """Parse repeated NAME=AMOUNT options."""
    parsed = {}
    for share in shares:
        member, sep, value = share.rpartition("=")
        if not sep or not member:
            raise typer.BadParameter(f"Expected MEMBER=AMOUNT, got '{share}'")
        parsed[member] = parse_amount(value)
    return parsed


def check_split_type(value: str | None) -> str | None:
    if value is not None and value not in SPLIT_TYPES:
        raise typer.BadParameter(f"Split must be one of: {', '.join(SPLIT_TYPES)}")
    return value


def format_money(amount: Decimal, symbol: str, use_color: bool = True) -> str:
    """
    Format money in accounting style with alignment.

    Negative amounts use parentheses: (₹85.02)
    Positive amounts have spaces:      ₹85.02
    """
    abs_amount = abs(amount)
    if amount < 0:
        if use_color:
            return f"({symbol}[red]{abs_amount:,.2f}[/red])"
        return f"({symbol}{abs_amount:,.2f})"
    if use_color:
        return f" [green]{symbol}{abs_amount:,.2f}[/green] "
    return f" {symbol}{abs_amount:,.2f} "


def format_balance(amount: Decimal, symbol: str) -> str:
    """Signed balance, or "Settled" when within tolerance of zero."""
    if amount > TOLERANCE:
        return f"[green]+{symbol}{amount:,.2f}[/green]"
    if amount < -TOLERANCE:
        return f"[red]-{symbol}{abs(amount):,.2f}[/red]"
    return "[dim]Settled[/dim]"


# ============================================================================
# Group commands
# ============================================================================


@app.command()
def create(
    name: str = typer.Argument(..., help="Group name"),
    members: list[str] = typer.Argument(..., help="Member names"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Create a new group."""
    with open_service(verbose) as service:
        group = service.create_group(name, members)
        console.print(
            f"\n[bold green]✓ Created group {group.name}[/bold green] (id: [cyan]{group.id}[/cyan])"
        )
        display_members(group)


@app.command("list")
def list_groups(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """List all groups."""
    with open_service(verbose) as service:
        groups = service.list_groups()
        if not groups:
            console.print("[yellow]No groups yet. Create one with 'tabsplit group create'.[/yellow]")
            return

        symbol = service.settings.currency_symbol
        table = Table(title="Groups", show_header=True, header_style="bold magenta")
        table.add_column("ID", style="dim")
        table.add_column("Name", style="cyan")
        table.add_column("Members", justify="right")
        table.add_column("Expenses", justify="right")
        table.add_column("Total", justify="right")

        for group in groups:
            total = sum((e.amount for e in group.expenses), Decimal("0"))
            table.add_row(
                group.id,
                group.name,
                str(len(group.members)),
                str(len(group.expenses)),
                format_money(total, symbol),
            )

        console.print(table)


@app.command()
def show(
    group_id: str = typer.Argument(..., help="Group id"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Show a group's members and expenses."""
    with open_service(verbose) as service:
        group = service.get_group(group_id)
        console.print(f"\n[bold]{group.name}[/bold] (id: {group.id})")
        display_members(group)
        display_expenses(group, service.settings.currency_symbol)


@app.command()
def delete(
    group_id: str = typer.Argument(..., help="Group id"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Delete a group and all of its expenses."""
    with open_service(verbose) as service:
        group = service.get_group(group_id)
        if not yes and not typer.confirm(
            f"Delete group '{group.name}' and its {len(group.expenses)} expenses?"
        ):
            console.print("[yellow]Cancelled.[/yellow]")
            raise typer.Exit(0)

        service.delete_group(group_id)
        console.print(f"[bold green]✓ Deleted group {group.name}[/bold green]")


@app.command("add-member")
def add_member(
    group_id: str = typer.Argument(..., help="Group id"),
    name: str = typer.Argument(..., help="Member name"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Add a member to a group."""
    with open_service(verbose) as service:
        member = service.add_member(group_id, name)
        console.print(
            f"[bold green]✓ Added {member.name}[/bold green] (id: [cyan]{member.id}[/cyan])"
        )


# ============================================================================
# Expense commands
# ============================================================================


@app.command("add-expense")
def add_expense(
    group_id: str = typer.Argument(..., help="Group id"),
    description: str = typer.Argument(..., help="What the money was spent on"),
    amount: str = typer.Argument(..., help="Total amount paid"),
    paid_by: str | None = typer.Option(
        None, "--paid-by", "-p", help="Payer name or id (prompts if omitted)"
    ),
    split: str = typer.Option(
        "equal", "--split", "-s", help="Split type: equal, unequal or select"
    ),
    with_members: list[str] = typer.Option(
        [], "--with", "-w", help="Member sharing a 'select' expense (repeatable)"
    ),
    shares: list[str] = typer.Option(
        [], "--share", help="MEMBER=AMOUNT share of an 'unequal' expense (repeatable)"
    ),
    on: datetime | None = typer.Option(
        None, "--date", "-d", formats=["%Y-%m-%d"], help="Expense date (default: today)"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Add an expense to a group."""
    check_split_type(split)
    if with_members and split != "select":
        raise typer.BadParameter("--with only applies to --split select")
    if shares and split != "unequal":
        raise typer.BadParameter("--share only applies to --split unequal")
    parsed_amount = parse_amount(amount)
    parsed_shares = parse_shares(shares)

    with open_service(verbose) as service:
        if paid_by is None:
            group = service.get_group(group_id)
            paid_by = select_member_interactive(group.members, "Who paid?")
            if paid_by is None:
                console.print("[yellow]No payer selected.[/yellow]")
                raise typer.Exit(1)

        expense = service.add_expense(
            group_id,
            description,
            parsed_amount,
            paid_by,
            split_type=split,  # type: ignore[arg-type]
            selected=with_members or None,
            custom_amounts=parsed_shares or None,
            expense_date=on.date() if on else None,
        )
        console.print(
            f"[bold green]✓ Added expense {expense.description}[/bold green] "
            f"(id: [cyan]{expense.id}[/cyan])"
        )


@app.command("edit-expense")
def edit_expense(
    group_id: str = typer.Argument(..., help="Group id"),
    expense_id: str = typer.Argument(..., help="Expense id"),
    description: str | None = typer.Option(None, "--description", help="New description"),
    amount: str | None = typer.Option(None, "--amount", "-a", help="New total amount"),
    paid_by: str | None = typer.Option(None, "--paid-by", "-p", help="New payer name or id"),
    split: str | None = typer.Option(None, "--split", "-s", help="New split type"),
    with_members: list[str] = typer.Option(
        [], "--with", "-w", help="Member sharing a 'select' expense (repeatable)"
    ),
    shares: list[str] = typer.Option(
        [], "--share", help="MEMBER=AMOUNT share of an 'unequal' expense (repeatable)"
    ),
    on: datetime | None = typer.Option(
        None, "--date", "-d", formats=["%Y-%m-%d"], help="New expense date"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Edit an existing expense."""
    check_split_type(split)
    parsed_amount = parse_amount(amount) if amount is not None else None
    parsed_shares = parse_shares(shares)

    with open_service(verbose) as service:
        expense = service.edit_expense(
            group_id,
            expense_id,
            description=description,
            amount=parsed_amount,
            paid_by=paid_by,
            split_type=split,  # type: ignore[arg-type]
            selected=with_members or None,
            custom_amounts=parsed_shares or None,
            expense_date=on.date() if on else None,
        )
        console.print(f"[bold green]✓ Updated expense {expense.description}[/bold green]")


@app.command("delete-expense")
def delete_expense(
    group_id: str = typer.Argument(..., help="Group id"),
    expense_id: str = typer.Argument(..., help="Expense id"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Delete an expense from a group."""
    with open_service(verbose) as service:
        service.delete_expense(group_id, expense_id)
        console.print(f"[bold green]✓ Deleted expense {expense_id}[/bold green]")


# ============================================================================
# Settling up
# ============================================================================


@app.command()
def balances(
    group_id: str = typer.Argument(..., help="Group id"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Show each member's net balance and who owes whom directly."""
    with open_service(verbose) as service:
        group = service.get_group(group_id)
        symbol = service.settings.currency_symbol

        if not group.expenses:
            console.print("[yellow]No balances to show. Add some expenses first.[/yellow]")
            return

        table = Table(title="Net Balances", show_header=True, header_style="bold magenta")
        table.add_column("Member", style="cyan")
        table.add_column("Balance", justify="right")
        for balance in service.balances(group_id):
            table.add_row(group.member_name(balance.member_id), format_balance(balance.amount, symbol))
        console.print(table)

        tabs = service.pairwise_tabs(group_id)
        if not tabs:
            return

        console.print("\n[bold]Who Pays Whom:[/bold]")
        for member in group.members:
            member_tabs = [t for t in tabs if t.member_id == member.id]
            if not member_tabs:
                continue
            console.print(f"  [bold]{member.name}[/bold]")
            for tab in member_tabs:
                other = group.member_name(tab.other_member_id)
                if tab.amount > TOLERANCE:
                    console.print(f"    owes {other}: [red]{symbol}{tab.amount:,.2f}[/red]")
                elif tab.amount < -TOLERANCE:
                    console.print(
                        f"    gets back from {other}: [green]{symbol}{abs(tab.amount):,.2f}[/green]"
                    )
                else:
                    console.print(f"    [dim]settled with {other}[/dim]")


@app.command()
def settle(
    group_id: str = typer.Argument(..., help="Group id"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Show the payments that settle every debt in the group."""
    with open_service(verbose) as service:
        group = service.get_group(group_id)
        symbol = service.settings.currency_symbol
        settlements = service.settlements(group_id)

        if not settlements:
            console.print("[bold green]✓ Everyone is settled up.[/bold green]")
            return

        table = Table(title="Settle Up", show_header=True, header_style="bold magenta")
        table.add_column("From", style="red")
        table.add_column("To", style="green")
        table.add_column("Amount", justify="right")
        for settlement in settlements:
            table.add_row(
                group.member_name(settlement.from_member),
                group.member_name(settlement.to_member),
                format_money(settlement.amount, symbol, use_color=False),
            )
        console.print(table)
        console.print(f"\n  {len(settlements)} payment(s) settle the group.")


@app.command()
def stats(
    group_id: str = typer.Argument(..., help="Group id"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Show spending statistics for a group."""
    with open_service(verbose) as service:
        group = service.get_group(group_id)
        symbol = service.settings.currency_symbol
        group_stats, member_stats, timeline = service.stats(group_id)

        console.print(f"\n[bold]{group.name}[/bold]")
        console.print(f"  Total spent: {format_money(group_stats.total_expenses, symbol)}")
        console.print(f"  Expenses: {group_stats.expense_count}")
        console.print(f"  Average expense: {format_money(group_stats.average_expense, symbol)}")
        if group_stats.largest_expense:
            console.print(
                f"  Largest expense: {group_stats.largest_expense.description} "
                f"({format_money(group_stats.largest_expense.amount, symbol)})"
            )

        table = Table(title="Per Member", show_header=True, header_style="bold magenta")
        table.add_column("Member", style="cyan")
        table.add_column("Paid", justify="right")
        table.add_column("Share", justify="right")
        for row in member_stats:
            table.add_row(
                group.member_name(row.member_id),
                format_money(row.total_paid, symbol),
                format_money(row.total_share, symbol),
            )
        console.print(table)

        if timeline:
            day_table = Table(title="By Date", show_header=True, header_style="bold magenta")
            day_table.add_column("Date", style="dim")
            day_table.add_column("Total", justify="right")
            for day in timeline:
                day_table.add_row(day.date.isoformat(), format_money(day.total, symbol))
            console.print(day_table)


@app.command()
def export(
    group_id: str = typer.Argument(..., help="Group id"),
    output: Path = typer.Argument(..., help="Workbook to write (.xlsx)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Export balances, settlements, tabs, expenses and stats to Excel."""
    if output.suffix.lower() != ".xlsx":
        raise typer.BadParameter("Output file must end in .xlsx")

    with open_service(verbose) as service:
        group = service.get_group(group_id)
        path = export_group(group, output)
        console.print(f"[bold green]✓ Exported {group.name}[/bold green] to [cyan]{path}[/cyan]")


# ============================================================================
# Display helpers
# ============================================================================


def display_members(group: Group):
    """Print a group's members."""
    table = Table(title="Members", show_header=True, header_style="bold magenta")
    table.add_column("ID", style="dim")
    table.add_column("Name", style="cyan")
    for member in group.members:
        table.add_row(member.id, member.name)
    console.print(table)


def display_expenses(group: Group, symbol: str):
    """Print a group's expenses, newest first."""
    if not group.expenses:
        console.print("[dim]No expenses yet.[/dim]")
        return

    table = Table(title="Expenses", show_header=True, header_style="bold magenta")
    table.add_column("ID", style="dim", width=10)
    table.add_column("Date", style="dim")
    table.add_column("Description", style="cyan", width=30)
    table.add_column("Paid by")
    table.add_column("Split", style="yellow")
    table.add_column("Amount", justify="right")

    for expense in sorted(group.expenses, key=lambda e: e.date, reverse=True):
        desc = expense.description
        table.add_row(
            expense.id,
            expense.date.isoformat(),
            desc[:30] + "..." if len(desc) > 30 else desc,
            group.member_name(expense.paid_by),
            f"{expense.split_type} ({len(expense.splits)})",
            format_money(expense.amount, symbol),
        )

    console.print(table)
