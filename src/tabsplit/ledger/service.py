"""Service layer that composes group storage and the balance engine.

Groups are immutable snapshots: every mutation builds a new Group and saves
it whole, and every read recomputes balances from scratch.
"""

import logging
import secrets
from datetime import date
from decimal import Decimal

from ..config import Settings
from ..db import Database
from ..exceptions import (
    ExpenseNotFoundError,
    GroupNotFoundError,
    MemberNotFoundError,
    SplitValidationError,
)
from ..models import (
    Balance,
    Expense,
    ExpenseByDate,
    Group,
    GroupStats,
    Member,
    MemberStats,
    PairwiseTab,
    Settlement,
    SplitType,
)
from .balance import (
    calculate_balances,
    compute_pairwise_tabs,
    simplify_debts,
    to_cents,
)
from .splits import compute_splits, validate_expense
from .stats import compute_expense_timeline, compute_group_stats, compute_member_stats

logger = logging.getLogger(__name__)


def generate_id() -> str:
    """Short random identifier for groups, members and expenses."""
    return secrets.token_hex(5)


def resolve_member(group: Group, reference: str) -> Member:
    """
    Find a member by id, or failing that by (case-insensitive) name.

    Raises:
        MemberNotFoundError: If nothing matches or the name is ambiguous
    """
    for member in group.members:
        if member.id == reference:
            return member

    matches = [m for m in group.members if m.name.lower() == reference.strip().lower()]
    if len(matches) == 1:
        return matches[0]
    if len(matches) > 1:
        raise MemberNotFoundError(
            reference,
            f"'{reference}' matches {len(matches)} members; use the member id instead",
        )
    raise MemberNotFoundError(reference)


class GroupService:
    """Service for managing groups and computing who owes whom."""

    def __init__(self, settings: Settings, database: Database):
        """Initialize the group service."""
        self.settings = settings
        self.db = database

    # ========================================================================
    # Groups and members
    # ========================================================================

    def create_group(self, name: str, member_names: list[str]) -> Group:
        """Create a group with the given member names (names may repeat)."""
        if not name.strip():
            raise ValueError("Group name cannot be empty")

        members = []
        for member_name in member_names:
            if not member_name.strip():
                raise ValueError("Member name cannot be empty")
            members.append(Member(id=generate_id(), name=member_name.strip()))

        group = Group(id=generate_id(), name=name.strip(), members=members)
        self.db.save_group(group)

        logger.info(f"Created group {group.id} ({group.name}) with {len(members)} members")
        return group

    def get_group(self, group_id: str) -> Group:
        """Get a group, raising if it does not exist."""
        group = self.db.get_group(group_id)
        if group is None:
            raise GroupNotFoundError(group_id)
        return group

    def list_groups(self) -> list[Group]:
        """List all groups, oldest first."""
        return self.db.list_groups()

    def delete_group(self, group_id: str):
        """Delete a group and all its expenses."""
        if not self.db.delete_group(group_id):
            raise GroupNotFoundError(group_id)
        logger.info(f"Deleted group {group_id}")

    def add_member(self, group_id: str, name: str) -> Member:
        """Add a member to an existing group."""
        if not name.strip():
            raise ValueError("Member name cannot be empty")

        group = self.get_group(group_id)
        member = Member(id=generate_id(), name=name.strip())
        self.db.save_group(group.model_copy(update={"members": [*group.members, member]}))

        logger.info(f"Added member {member.id} ({member.name}) to group {group_id}")
        return member

    # ========================================================================
    # Expenses
    # ========================================================================

    def _resolve_shares(
        self,
        group: Group,
        selected: list[str] | None,
        custom_amounts: dict[str, Decimal] | None,
    ) -> tuple[list[str] | None, dict[str, Decimal] | None]:
        """Turn member names or ids into ids for split computation."""
        selected_ids = (
            [resolve_member(group, ref).id for ref in selected]
            if selected is not None
            else None
        )
        custom_ids = (
            {resolve_member(group, ref).id: value for ref, value in custom_amounts.items()}
            if custom_amounts is not None
            else None
        )
        return selected_ids, custom_ids

    @staticmethod
    def _check_share_options(
        split_type: SplitType,
        selected: list[str] | None,
        custom_amounts: dict[str, Decimal] | None,
    ):
        """Reject participants or shares that the split type would ignore."""
        if selected is not None and split_type != "select":
            raise SplitValidationError(
                f"Participants only apply to a \"select\" split, not \"{split_type}\""
            )
        if custom_amounts is not None and split_type != "unequal":
            raise SplitValidationError(
                f"Custom shares only apply to an \"unequal\" split, not \"{split_type}\""
            )

    def add_expense(
        self,
        group_id: str,
        description: str,
        amount: Decimal,
        paid_by: str,
        split_type: SplitType = "equal",
        selected: list[str] | None = None,
        custom_amounts: dict[str, Decimal] | None = None,
        expense_date: date | None = None,
    ) -> Expense:
        """
        Add an expense to a group.

        Args:
            group_id: Group to add to
            description: What the money was spent on
            amount: Total amount fronted by the payer
            paid_by: Payer, as member id or name
            split_type: How the amount is shared
            selected: Members sharing a "select" expense (ids or names)
            custom_amounts: Shares of an "unequal" expense (keyed by id or name)
            expense_date: Date of the expense, defaults to today

        Returns:
            The stored expense

        Raises:
            SplitValidationError: If the shares are invalid
            MemberNotFoundError: If a member reference does not resolve
        """
        if not description.strip():
            raise ValueError("Expense description cannot be empty")

        self._check_share_options(split_type, selected, custom_amounts)

        group = self.get_group(group_id)
        payer = resolve_member(group, paid_by)
        selected_ids, custom_ids = self._resolve_shares(group, selected, custom_amounts)

        splits = compute_splits(
            split_type, amount, group.members, selected=selected_ids, custom_amounts=custom_ids
        )
        expense = Expense(
            id=generate_id(),
            description=description.strip(),
            amount=to_cents(amount),
            date=expense_date or date.today(),
            paid_by=payer.id,
            split_type=split_type,
            splits=splits,
        )
        validate_expense(expense, group.members)

        self.db.save_group(group.model_copy(update={"expenses": [*group.expenses, expense]}))

        logger.info(
            f"Added expense {expense.id} ({expense.description}, {expense.amount}) "
            f"to group {group_id}"
        )
        return expense

    def edit_expense(
        self,
        group_id: str,
        expense_id: str,
        description: str | None = None,
        amount: Decimal | None = None,
        paid_by: str | None = None,
        split_type: SplitType | None = None,
        selected: list[str] | None = None,
        custom_amounts: dict[str, Decimal] | None = None,
        expense_date: date | None = None,
    ) -> Expense:
        """
        Replace fields of an existing expense, keeping its id.

        Splits are recomputed when the amount or the way it is shared changes.
        A "select" or "unequal" expense keeps its current participants or
        shares unless new ones are given.
        Giving only participants or only shares switches the expense to a
        "select" or "unequal" split.
        """
        if description is not None and not description.strip():
            raise ValueError("Expense description cannot be empty")

        group = self.get_group(group_id)
        existing = next((e for e in group.expenses if e.id == expense_id), None)
        if existing is None:
            raise ExpenseNotFoundError(expense_id)

        new_amount = to_cents(amount) if amount is not None else existing.amount
        if split_type is None and selected is not None and custom_amounts is None:
            split_type = "select"
        elif split_type is None and custom_amounts is not None and selected is None:
            split_type = "unequal"
        new_split_type = split_type or existing.split_type
        self._check_share_options(new_split_type, selected, custom_amounts)

        splits = existing.splits
        if (
            amount is not None
            or split_type is not None
            or selected is not None
            or custom_amounts is not None
        ):
            selected_ids, custom_ids = self._resolve_shares(group, selected, custom_amounts)
            if new_split_type == "select" and selected_ids is None:
                selected_ids = [split.member_id for split in existing.splits]
            if new_split_type == "unequal" and custom_ids is None:
                custom_ids = {split.member_id: split.amount for split in existing.splits}
            splits = compute_splits(
                new_split_type,
                new_amount,
                group.members,
                selected=selected_ids,
                custom_amounts=custom_ids,
            )

        updated = Expense(
            id=existing.id,
            description=description.strip() if description else existing.description,
            amount=new_amount,
            date=expense_date or existing.date,
            paid_by=resolve_member(group, paid_by).id if paid_by else existing.paid_by,
            split_type=new_split_type,
            splits=splits,
        )
        validate_expense(updated, group.members)

        expenses = [updated if e.id == expense_id else e for e in group.expenses]
        self.db.save_group(group.model_copy(update={"expenses": expenses}))

        logger.info(f"Edited expense {expense_id} in group {group_id}")
        return updated

    def delete_expense(self, group_id: str, expense_id: str):
        """Remove an expense from a group."""
        group = self.get_group(group_id)
        expenses = [e for e in group.expenses if e.id != expense_id]
        if len(expenses) == len(group.expenses):
            raise ExpenseNotFoundError(expense_id)

        self.db.save_group(group.model_copy(update={"expenses": expenses}))
        logger.info(f"Deleted expense {expense_id} from group {group_id}")

    # ========================================================================
    # Computed views
    # ========================================================================

    def balances(self, group_id: str) -> list[Balance]:
        """Net balance per member."""
        group = self.get_group(group_id)
        return calculate_balances(group.members, group.expenses)

    def settlements(self, group_id: str) -> list[Settlement]:
        """Payments that settle the group."""
        group = self.get_group(group_id)
        return simplify_debts(group.members, group.expenses)

    def pairwise_tabs(self, group_id: str) -> list[PairwiseTab]:
        """Direct member-to-member debts."""
        group = self.get_group(group_id)
        return compute_pairwise_tabs(group.members, group.expenses)

    def stats(
        self, group_id: str
    ) -> tuple[GroupStats, list[MemberStats], list[ExpenseByDate]]:
        """Group totals, per-member totals and the spending timeline."""
        group = self.get_group(group_id)
        return (
            compute_group_stats(group.expenses),
            compute_member_stats(group.members, group.expenses),
            compute_expense_timeline(group.expenses),
        )
