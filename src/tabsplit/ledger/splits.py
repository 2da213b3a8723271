"""Turn an expense amount and a split type into per-member shares.

This is the validation layer that sits in front of the balance engine: the
engine trusts whatever splits it is given, so everything entering a group
goes through here first.
"""

import logging
from collections.abc import Iterable
from decimal import Decimal

from ..exceptions import SplitValidationError
from ..models import Expense, Member, Split, SplitType
from .balance import CENT, TOLERANCE, to_cents

logger = logging.getLogger(__name__)


def _check_amount(amount: Decimal) -> Decimal:
    if amount.is_nan() or amount <= 0:
        raise SplitValidationError(f"Expense amount must be positive, got {amount}")
    return to_cents(amount)


def _share_evenly(amount: Decimal, members: list[Member]) -> list[Split]:
    """
    Divide an amount evenly in whole cents.

    The leftover cents go one each to the first members, so the shares always
    add up to the amount exactly.
    """
    total_cents = int(amount / CENT)
    base, leftover = divmod(total_cents, len(members))

    splits = []
    for idx, member in enumerate(members):
        cents = base + 1 if idx < leftover else base
        splits.append(Split(member_id=member.id, amount=Decimal(cents) * CENT))

    if leftover:
        logger.debug(
            f"Distributed {leftover} leftover cents across the first "
            f"{leftover} of {len(members)} members"
        )

    return splits


def compute_splits(
    split_type: SplitType,
    amount: Decimal,
    members: list[Member],
    selected: Iterable[str] | None = None,
    custom_amounts: dict[str, Decimal] | None = None,
) -> list[Split]:
    """
    Compute the splits for an expense.

    Args:
        split_type: "equal" (everyone), "select" (only ``selected``) or
                    "unequal" (explicit ``custom_amounts``)
        amount: Total expense amount
        members: Group members, in display order
        selected: Member ids sharing a "select" expense
        custom_amounts: Member id -> share for an "unequal" expense

    Returns:
        Splits in ``members`` order

    Raises:
        SplitValidationError: If the amount or the shares are invalid
    """
    amount = _check_amount(amount)
    member_ids = {member.id for member in members}

    if split_type == "equal":
        if not members:
            raise SplitValidationError("Cannot split an expense in a group with no members")
        return _share_evenly(amount, members)

    if split_type == "select":
        chosen = set(selected or [])
        unknown = chosen - member_ids
        if unknown:
            raise SplitValidationError(
                f"Selected ids are not group members: {', '.join(sorted(unknown))}"
            )
        participants = [member for member in members if member.id in chosen]
        if not participants:
            raise SplitValidationError("Select at least one member to share the expense")
        return _share_evenly(amount, participants)

    if split_type == "unequal":
        custom_amounts = custom_amounts or {}
        unknown = set(custom_amounts) - member_ids
        if unknown:
            raise SplitValidationError(
                f"Custom amounts given for non-members: {', '.join(sorted(unknown))}"
            )

        splits = []
        total = Decimal("0")
        for member in members:
            value = custom_amounts.get(member.id, Decimal("0"))
            if value.is_nan() or value < 0:
                raise SplitValidationError(
                    f"Share for {member.name} must be zero or more, got {value}"
                )
            if value > 0:
                splits.append(Split(member_id=member.id, amount=value))
                total += value

        difference = amount - total
        if abs(difference) > TOLERANCE:
            raise SplitValidationError(
                f"Shares add up to {total} but the expense is {amount} "
                f"(off by {difference})"
            )
        return splits

    raise SplitValidationError(f"Unknown split type: {split_type}")


def validate_expense(expense: Expense, members: list[Member]) -> None:
    """
    Check that an expense only references members and that its splits add up.

    Raises:
        SplitValidationError: If the expense is inconsistent
    """
    member_ids = {member.id for member in members}

    if expense.paid_by not in member_ids:
        raise SplitValidationError(
            f"Expense {expense.id} is paid by {expense.paid_by}, who is not a member"
        )
    if not expense.splits:
        raise SplitValidationError(f"Expense {expense.id} has no splits")

    for split in expense.splits:
        if split.member_id not in member_ids:
            raise SplitValidationError(
                f"Expense {expense.id} has a split for {split.member_id}, "
                f"who is not a member"
            )

    total = sum((split.amount for split in expense.splits), Decimal("0"))
    if abs(total - expense.amount) > TOLERANCE:
        raise SplitValidationError(
            f"Splits of expense {expense.id} add up to {total}, "
            f"expected {expense.amount}"
        )
