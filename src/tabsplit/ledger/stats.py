"""Summary statistics over a group's expenses."""

from collections import defaultdict
from datetime import date
from decimal import Decimal

from ..models import (
    Expense,
    ExpenseByDate,
    GroupStats,
    LargestExpense,
    Member,
    MemberStats,
)
from .balance import to_cents


def compute_group_stats(expenses: list[Expense]) -> GroupStats:
    """Total, count, average and largest expense. Empty input gives zeros."""
    if not expenses:
        return GroupStats()

    total = sum((expense.amount for expense in expenses), Decimal("0"))

    # First expense wins a tie for largest. NaN amounts never compare larger.
    largest: Expense | None = None
    for expense in expenses:
        if expense.amount.is_nan():
            continue
        if largest is None or expense.amount > largest.amount:
            largest = expense

    return GroupStats(
        total_expenses=total,
        expense_count=len(expenses),
        average_expense=to_cents(total / len(expenses)),
        largest_expense=(
            LargestExpense(amount=largest.amount, description=largest.description)
            if largest is not None
            else None
        ),
    )


def compute_member_stats(
    members: list[Member], expenses: list[Expense]
) -> list[MemberStats]:
    """How much each member paid and how much of the spending was their share."""
    paid: defaultdict[str, Decimal] = defaultdict(Decimal)
    share: defaultdict[str, Decimal] = defaultdict(Decimal)

    for expense in expenses:
        paid[expense.paid_by] += expense.amount
        for split in expense.splits:
            share[split.member_id] += split.amount

    return [
        MemberStats(
            member_id=member.id,
            total_paid=to_cents(paid[member.id]),
            total_share=to_cents(share[member.id]),
        )
        for member in members
    ]


def compute_expense_timeline(expenses: list[Expense]) -> list[ExpenseByDate]:
    """Spending per day, oldest first."""
    by_date: defaultdict[date, Decimal] = defaultdict(Decimal)
    for expense in expenses:
        by_date[expense.date] += expense.amount

    return [
        ExpenseByDate(date=day, total=to_cents(total))
        for day, total in sorted(by_date.items())
    ]
