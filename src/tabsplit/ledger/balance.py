"""Core balance and settlement logic for a group's expenses.

Everything here is a pure function of (members, expenses): nothing is
cached between calls and the inputs are never mutated.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, localcontext

from ..models import Balance, Expense, Member, PairwiseTab, Settlement

logger = logging.getLogger(__name__)

# Currency precision that balances and payments are rounded to
CENT = Decimal("0.01")

# Anything within this distance of zero counts as settled
TOLERANCE = Decimal("0.01")


def to_cents(amount: Decimal) -> Decimal:
    """
    Round an amount to cents, half away from zero.

    NaN and infinities pass through unchanged. Precision is widened for
    amounts too large to hold two decimal places in the default context.
    """
    if not amount.is_finite():
        return amount
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, amount.adjusted() + 3)
        return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def calculate_balances(members: list[Member], expenses: list[Expense]) -> list[Balance]:
    """
    Fold expenses into one signed net balance per member.

    The payer is credited the full expense amount and every split member is
    debited their share, so a payer who is also in the splits nets out
    without special handling. Ids that are not in ``members`` still get a
    running total, but only ``members`` appear in the result.

    Args:
        members: Group members, defines the order and shape of the output
        expenses: Expenses to fold in (order does not matter)

    Returns:
        One Balance per member, in ``members`` order, rounded to cents
    """
    totals: dict[str, Decimal] = {member.id: Decimal("0") for member in members}

    for expense in expenses:
        totals[expense.paid_by] = totals.get(expense.paid_by, Decimal("0")) + expense.amount
        for split in expense.splits:
            totals[split.member_id] = totals.get(split.member_id, Decimal("0")) - split.amount

    return [
        Balance(member_id=member.id, amount=to_cents(totals[member.id]))
        for member in members
    ]


@dataclass
class _Party:
    """A debtor or creditor with the magnitude still left to settle."""

    member_id: str
    remaining: Decimal


def simplify_debts(members: list[Member], expenses: list[Expense]) -> list[Settlement]:
    """
    Compute a short list of payments that zeroes every member's balance.

    Greedy: the largest remaining debtor pays the largest remaining creditor
    as much as either side allows, until one of the two lists runs out. Each
    step settles at least one party completely, so the loop runs at most
    ``len(debtors) + len(creditors) - 1`` times. This is not guaranteed to
    find the minimum number of payments.

    Args:
        members: Group members
        expenses: Group expenses

    Returns:
        Settlements in the order they were generated (largest first)
    """
    balances = calculate_balances(members, expenses)

    debtors: list[_Party] = []
    creditors: list[_Party] = []
    for balance in balances:
        if balance.amount.is_nan():
            continue
        if balance.amount < -TOLERANCE:
            debtors.append(_Party(balance.member_id, -balance.amount))
        elif balance.amount > TOLERANCE:
            creditors.append(_Party(balance.member_id, balance.amount))

    # Stable sorts: ties keep the order of the members list
    debtors.sort(key=lambda party: party.remaining, reverse=True)
    creditors.sort(key=lambda party: party.remaining, reverse=True)

    settlements: list[Settlement] = []
    i = 0
    j = 0

    while i < len(debtors) and j < len(creditors):
        debtor = debtors[i]
        creditor = creditors[j]

        payment = min(debtor.remaining, creditor.remaining)
        if payment > TOLERANCE:
            settlements.append(
                Settlement(
                    from_member=debtor.member_id,
                    to_member=creditor.member_id,
                    amount=to_cents(payment),
                )
            )

        debtor.remaining -= payment
        creditor.remaining -= payment

        if debtor.remaining < TOLERANCE:
            i += 1
        if creditor.remaining < TOLERANCE:
            j += 1

    logger.debug(
        f"Simplified {len(debtors)} debtors and {len(creditors)} creditors "
        f"into {len(settlements)} settlements"
    )

    return settlements


def compute_pairwise_tabs(
    members: list[Member], expenses: list[Expense]
) -> list[PairwiseTab]:
    """
    Break balances down into direct member-to-member debts.

    Each split owned by someone other than the payer is a debt from that
    member to the payer. Debts in both directions between the same pair are
    netted. Every member gets one tab per other member they share an expense
    with, including pairs that net to zero.
    """
    owed: defaultdict[tuple[str, str], Decimal] = defaultdict(Decimal)
    for expense in expenses:
        for split in expense.splits:
            if split.member_id != expense.paid_by:
                owed[(split.member_id, expense.paid_by)] += split.amount

    tabs: list[PairwiseTab] = []
    for member in members:
        for other in members:
            if other.id == member.id:
                continue
            pair = (member.id, other.id)
            reverse = (other.id, member.id)
            if pair not in owed and reverse not in owed:
                continue
            net = owed.get(pair, Decimal("0")) - owed.get(reverse, Decimal("0"))
            tabs.append(
                PairwiseTab(
                    member_id=member.id,
                    other_member_id=other.id,
                    amount=to_cents(net),
                )
            )

    return tabs
