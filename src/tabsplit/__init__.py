"""TabSplit - Track shared group expenses and settle who owes whom."""

__version__ = "0.1.0"

from .config import Settings, load_settings
from .db import Database
from .ledger.balance import (
    CENT,
    TOLERANCE,
    calculate_balances,
    compute_pairwise_tabs,
    simplify_debts,
)
from .ledger.service import GroupService
from .models import (
    Balance,
    Expense,
    Group,
    Member,
    PairwiseTab,
    Settlement,
    Split,
)

__all__ = [
    "Settings",
    "load_settings",
    "Database",
    "CENT",
    "TOLERANCE",
    "calculate_balances",
    "compute_pairwise_tabs",
    "simplify_debts",
    "GroupService",
    "Balance",
    "Expense",
    "Group",
    "Member",
    "PairwiseTab",
    "Settlement",
    "Split",
]
