"""Pydantic domain models for TabSplit."""

from datetime import date, datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

SplitType = Literal["equal", "unequal", "select"]

# ============================================================================
# Group Models
# ============================================================================


class Member(BaseModel):
    """A group member. Identity is the id; the name may repeat."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str


class Split(BaseModel):
    """One member's share of an expense."""

    model_config = ConfigDict(frozen=True)

    member_id: str
    amount: Decimal = Field(ge=0)


class Expense(BaseModel):
    """An expense fronted by one member and shared by the split members."""

    model_config = ConfigDict(frozen=True)

    id: str
    description: str
    amount: Decimal = Field(ge=0)
    date: date
    paid_by: str  # member id
    split_type: SplitType = "equal"
    splits: list[Split]


class Group(BaseModel):
    """A group of members and the expenses they share."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    members: list[Member] = Field(default_factory=list)
    expenses: list[Expense] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.now)

    def member_name(self, member_id: str) -> str:
        """Display name for a member id, or "Unknown"."""
        for member in self.members:
            if member.id == member_id:
                return member.name
        return "Unknown"


# ============================================================================
# Computed Models
# ============================================================================


class Balance(BaseModel):
    """Net position of a member: positive = is owed, negative = owes."""

    model_config = ConfigDict(frozen=True)

    member_id: str
    amount: Decimal = Field(allow_inf_nan=True)


class Settlement(BaseModel):
    """A single directed payment instruction."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    from_member: str = Field(alias="from")
    to_member: str = Field(alias="to")
    amount: Decimal = Field(allow_inf_nan=True)


class PairwiseTab(BaseModel):
    """Direct debt between two members.

    amount > 0: member_id owes other_member_id.
    amount < 0: member_id gets that much back from other_member_id.
    """

    model_config = ConfigDict(frozen=True)

    member_id: str
    other_member_id: str
    amount: Decimal = Field(allow_inf_nan=True)


# ============================================================================
# Stats Models
# ============================================================================


class LargestExpense(BaseModel):
    """Summary of the single largest expense in a group."""

    amount: Decimal = Field(allow_inf_nan=True)
    description: str


class GroupStats(BaseModel):
    """Aggregate figures for a group's expenses."""

    total_expenses: Decimal = Field(default=Decimal("0"), allow_inf_nan=True)
    expense_count: int = 0
    average_expense: Decimal = Field(default=Decimal("0"), allow_inf_nan=True)
    largest_expense: LargestExpense | None = None


class MemberStats(BaseModel):
    """How much a member paid versus how much of the spending was theirs."""

    member_id: str
    total_paid: Decimal = Field(allow_inf_nan=True)
    total_share: Decimal = Field(allow_inf_nan=True)


class ExpenseByDate(BaseModel):
    """Total spending on one day."""

    date: date
    total: Decimal = Field(allow_inf_nan=True)
