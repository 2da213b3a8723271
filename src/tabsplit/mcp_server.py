"""MCP server for TabSplit: exposes groups and settle-up as tools."""

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from mcp.server.fastmcp import FastMCP

from .config import load_settings
from .db import Database
from .exceptions import TabSplitError
from .ledger.balance import TOLERANCE
from .ledger.service import GroupService

logger = logging.getLogger(__name__)

mcp_app = FastMCP("tabsplit")

WORKFLOW_INSTRUCTIONS = """\
You are helping a group settle shared expenses. Follow this workflow:

1. DISCOVER: Call list_groups and pick the group the user means.
   If several groups match, ask the user.

2. RECORD: For any new expense the user mentions, call add_expense.
   Use split_type "select" with the participants when only some members
   shared it.

3. REVIEW: Call show_balances to show who is up and who is down.

4. SETTLE: Call suggest_settlements and present the payments as a short list
   ("Ben pays Asha 30.00"). Mention that settling in this order zeroes every
   balance.\
"""


@dataclass
class SessionState:
    """Holds the service between MCP tool calls within a single conversation."""

    service: GroupService | None = None


_state = SessionState()


def _ensure_service() -> GroupService:
    """Lazily initialize the GroupService (loads .env config)."""
    if _state.service is None:
        settings = load_settings()
        _state.service = GroupService(settings, Database(settings.database_path))
    return _state.service


def _format_amount(amount: Decimal, symbol: str) -> str:
    """Format an amount in accounting style."""
    if amount < 0:
        return f"({symbol}{abs(amount):,.2f})"
    return f"{symbol}{amount:,.2f}"


# ---------------------------------------------------------------------------
# MCP Tools
# ---------------------------------------------------------------------------


@mcp_app.tool()
def list_groups() -> str:
    """List all expense groups with their members."""
    try:
        service = _ensure_service()
        groups = service.list_groups()

        if not groups:
            return "No groups found."

        lines = ["Groups:"]
        for group in groups:
            names = ", ".join(m.name for m in group.members) or "no members"
            lines.append(
                f"  - {group.name} (id: {group.id}) | {names} | "
                f"{len(group.expenses)} expenses"
            )
        return "\n".join(lines)
    except TabSplitError as e:
        return f"Error: {e}"
    except Exception as e:
        return f"Failed to list groups: {e}"


@mcp_app.tool()
def show_balances(group_id: str) -> str:
    """Show each member's net balance in a group.

    Args:
        group_id: Group id from list_groups.
    """
    try:
        service = _ensure_service()
        group = service.get_group(group_id)
        symbol = service.settings.currency_symbol

        lines = [f"Balances for {group.name}:"]
        for balance in service.balances(group_id):
            name = group.member_name(balance.member_id)
            if balance.amount > TOLERANCE:
                status = f"is owed {_format_amount(balance.amount, symbol)}"
            elif balance.amount < -TOLERANCE:
                status = f"owes {_format_amount(-balance.amount, symbol)}"
            else:
                status = "settled"
            lines.append(f"  - {name}: {status}")
        return "\n".join(lines)
    except TabSplitError as e:
        return f"Error: {e}"
    except Exception as e:
        return f"Failed to show balances: {e}"


@mcp_app.tool()
def suggest_settlements(group_id: str) -> str:
    """Suggest the payments that settle every debt in a group.

    Args:
        group_id: Group id from list_groups.
    """
    try:
        service = _ensure_service()
        group = service.get_group(group_id)
        symbol = service.settings.currency_symbol
        settlements = service.settlements(group_id)

        if not settlements:
            return f"Everyone in {group.name} is settled up."

        lines = [f"Payments to settle {group.name}:"]
        for settlement in settlements:
            lines.append(
                f"  - {group.member_name(settlement.from_member)} pays "
                f"{group.member_name(settlement.to_member)} "
                f"{_format_amount(settlement.amount, symbol)}"
            )
        return "\n".join(lines)
    except TabSplitError as e:
        return f"Error: {e}"
    except Exception as e:
        return f"Failed to suggest settlements: {e}"


@mcp_app.tool()
def group_stats(group_id: str) -> str:
    """Show spending totals for a group and for each member.

    Args:
        group_id: Group id from list_groups.
    """
    try:
        service = _ensure_service()
        group = service.get_group(group_id)
        symbol = service.settings.currency_symbol
        totals, members, _timeline = service.stats(group_id)

        lines = [
            f"Stats for {group.name}:",
            f"  Total spent: {_format_amount(totals.total_expenses, symbol)}",
            f"  Expenses: {totals.expense_count}",
            f"  Average: {_format_amount(totals.average_expense, symbol)}",
        ]
        if totals.largest_expense:
            lines.append(
                f"  Largest: {totals.largest_expense.description} "
                f"({_format_amount(totals.largest_expense.amount, symbol)})"
            )
        lines.append("")
        for row in members:
            lines.append(
                f"  - {group.member_name(row.member_id)}: paid "
                f"{_format_amount(row.total_paid, symbol)}, share "
                f"{_format_amount(row.total_share, symbol)}"
            )
        return "\n".join(lines)
    except TabSplitError as e:
        return f"Error: {e}"
    except Exception as e:
        return f"Failed to compute stats: {e}"


@mcp_app.tool()
def add_expense(
    group_id: str,
    description: str,
    amount: str,
    paid_by: str,
    split_type: str = "equal",
    participants: list[str] | None = None,
) -> str:
    """Record an expense in a group.

    Args:
        group_id: Group id from list_groups.
        description: What the money was spent on.
        amount: Total amount, e.g. "90.00".
        paid_by: Name or id of the member who paid.
        split_type: "equal" to share among everyone, "select" to share among participants.
        participants: Member names or ids sharing a "select" expense.
    """
    try:
        service = _ensure_service()

        if split_type not in ("equal", "select"):
            return 'Error: split_type must be "equal" or "select".'

        try:
            parsed = Decimal(amount)
        except InvalidOperation:
            return f"Error: '{amount}' is not a valid amount."

        expense = service.add_expense(
            group_id,
            description,
            parsed,
            paid_by,
            split_type=split_type,  # type: ignore[arg-type]
            selected=participants if split_type == "select" else None,
        )
        return (
            f"Added expense {expense.description} (id: {expense.id}), "
            f"split {expense.split_type} among {len(expense.splits)} members."
        )
    except TabSplitError as e:
        return f"Error: {e}"
    except Exception as e:
        return f"Failed to add expense: {e}"


# ---------------------------------------------------------------------------
# MCP Prompt
# ---------------------------------------------------------------------------


@mcp_app.prompt()
def settle_workflow() -> str:
    """Orchestration instructions for settling a group."""
    return WORKFLOW_INSTRUCTIONS


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def run_server():
    """Start the MCP server (stdio transport)."""
    mcp_app.run(transport="stdio")
