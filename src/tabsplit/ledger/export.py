"""Excel report for a group: balances, settlements, direct tabs, expenses and stats."""

import logging
from decimal import Decimal
from pathlib import Path

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from ..models import Group
from .balance import calculate_balances, compute_pairwise_tabs, simplify_debts
from .stats import compute_expense_timeline, compute_group_stats, compute_member_stats

logger = logging.getLogger(__name__)

MONEY_FORMAT = "#,##0.00"


def _style_header(ws, row=1):
    """Apply header styling to a worksheet row."""
    header_font = Font(bold=True, color="FFFFFF")
    fill = PatternFill("solid", fgColor="4F81BD")
    align = Alignment(horizontal="center", vertical="center")
    thin = Side(style="thin", color="A0A0A0")
    border = Border(left=thin, right=thin, top=thin, bottom=thin)
    for cell in ws[row]:
        cell.font = header_font
        cell.fill = fill
        cell.alignment = align
        cell.border = border


def _autosize_columns(ws, min_width=10, max_width=45):
    for col in range(1, ws.max_column + 1):
        letter = get_column_letter(col)
        max_len = 0
        for cell in ws[letter]:
            if cell.value is None:
                continue
            max_len = max(max_len, len(str(cell.value)))
        ws.column_dimensions[letter].width = max(min_width, min(max_width, max_len + 2))


def _money(amount: Decimal) -> float:
    return float(amount)


def _add_sheet(wb: Workbook, title: str, headers: list[str], rows: list[list], money_cols: list[int]):
    ws = wb.create_sheet(title)
    ws.append(headers)
    _style_header(ws, 1)
    ws.freeze_panes = "A2"
    for row in rows:
        ws.append(row)
    for r in range(2, ws.max_row + 1):
        for c in money_cols:
            ws.cell(r, c).number_format = MONEY_FORMAT
    _autosize_columns(ws)
    return ws


def export_group(group: Group, filepath: str | Path) -> Path:
    """
    Write a group report to an .xlsx workbook.

    Sheets:
    - Summary: totals, average and largest expense
    - Balances: net balance and paid/share per member
    - Settlements: payments that settle the group
    - Who Pays Whom: direct tabs between members
    - Expenses: every expense, oldest first
    - By Date: spending per day

    Returns:
        The path the workbook was saved to
    """
    members = group.members
    expenses = group.expenses
    name = group.member_name

    wb = Workbook()
    # remove default sheet
    wb.remove(wb.active)

    group_stats = compute_group_stats(expenses)
    summary_rows = [
        ["Group", group.name],
        ["Members", len(members)],
        ["Expenses", group_stats.expense_count],
        ["Total spent", _money(group_stats.total_expenses)],
        ["Average expense", _money(group_stats.average_expense)],
    ]
    if group_stats.largest_expense is not None:
        summary_rows.append(
            [
                "Largest expense",
                _money(group_stats.largest_expense.amount),
                group_stats.largest_expense.description,
            ]
        )
    ws = _add_sheet(wb, "Summary", ["Item", "Value", "Note"], summary_rows, money_cols=[])
    for r in range(5, ws.max_row + 1):
        ws.cell(r, 2).number_format = MONEY_FORMAT

    member_stats = {row.member_id: row for row in compute_member_stats(members, expenses)}
    _add_sheet(
        wb,
        "Balances",
        ["Member", "Paid", "Share", "Net Balance"],
        [
            [
                name(balance.member_id),
                _money(member_stats[balance.member_id].total_paid),
                _money(member_stats[balance.member_id].total_share),
                _money(balance.amount),
            ]
            for balance in calculate_balances(members, expenses)
        ],
        money_cols=[2, 3, 4],
    )

    _add_sheet(
        wb,
        "Settlements",
        ["From", "To", "Amount"],
        [
            [name(s.from_member), name(s.to_member), _money(s.amount)]
            for s in simplify_debts(members, expenses)
        ],
        money_cols=[3],
    )

    # Positive amounts are owed by the first member to the second
    _add_sheet(
        wb,
        "Who Pays Whom",
        ["Member", "Other Member", "Owes"],
        [
            [name(tab.member_id), name(tab.other_member_id), _money(tab.amount)]
            for tab in compute_pairwise_tabs(members, expenses)
        ],
        money_cols=[3],
    )

    _add_sheet(
        wb,
        "Expenses",
        ["Date", "Description", "Paid By", "Split", "Amount", "Shared With"],
        [
            [
                expense.date.isoformat(),
                expense.description,
                name(expense.paid_by),
                expense.split_type,
                _money(expense.amount),
                ", ".join(
                    f"{name(split.member_id)} {split.amount:.2f}" for split in expense.splits
                ),
            ]
            for expense in sorted(expenses, key=lambda e: e.date)
        ],
        money_cols=[5],
    )

    _add_sheet(
        wb,
        "By Date",
        ["Date", "Total"],
        [[day.date.isoformat(), _money(day.total)] for day in compute_expense_timeline(expenses)],
        money_cols=[2],
    )

    path = Path(filepath)
    wb.save(path)
    logger.info(f"Exported group {group.id} to {path}")
    return path
