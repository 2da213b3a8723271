"""Custom exceptions for TabSplit."""


class TabSplitError(Exception):
    """Base exception for all TabSplit errors."""

    pass


class ConfigurationError(TabSplitError):
    """Raised when configuration is invalid or missing."""

    pass


class GroupNotFoundError(TabSplitError):
    """Raised when a group id does not exist."""

    def __init__(self, group_id: str, message: str | None = None):
        self.group_id = group_id
        super().__init__(message or f"Group {group_id} not found")


class MemberNotFoundError(TabSplitError):
    """Raised when a member reference matches no member of the group."""

    def __init__(self, reference: str, message: str | None = None):
        self.reference = reference
        super().__init__(message or f"No member matches '{reference}'")


class ExpenseNotFoundError(TabSplitError):
    """Raised when an expense id does not exist in the group."""

    def __init__(self, expense_id: str, message: str | None = None):
        self.expense_id = expense_id
        super().__init__(message or f"Expense {expense_id} not found")


class SplitValidationError(TabSplitError):
    """Raised when an expense or its splits fail validation."""

    pass
