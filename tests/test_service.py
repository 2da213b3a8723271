"""Tests for GroupService layer."""

from datetime import date
from decimal import Decimal

import pytest

from tabsplit.config import Settings
from tabsplit.db import Database
from tabsplit.exceptions import (
    ExpenseNotFoundError,
    GroupNotFoundError,
    MemberNotFoundError,
    SplitValidationError,
)
from tabsplit.ledger.service import GroupService, resolve_member


@pytest.fixture
def mock_settings(tmp_path):
    """Create settings pointing at a temporary database."""
    return Settings(database_path=tmp_path / "test.db")


@pytest.fixture
def mock_db(mock_settings):
    """Create a temporary database."""
    db = Database(mock_settings.database_path)
    yield db
    db.close()


@pytest.fixture
def service(mock_settings, mock_db):
    """Create a GroupService instance."""
    return GroupService(mock_settings, mock_db)


@pytest.fixture
def trip(service):
    """A group of three with no expenses."""
    return service.create_group("Goa trip", ["Asha", "Ben", "Chetan"])


def ids(group) -> dict[str, str]:
    return {m.name: m.id for m in group.members}


class TestGroups:
    """Creating, reading and deleting groups."""

    def test_create_group(self, service, trip):
        stored = service.get_group(trip.id)

        assert stored.name == "Goa trip"
        assert [m.name for m in stored.members] == ["Asha", "Ben", "Chetan"]
        assert len({m.id for m in stored.members}) == 3
        assert stored.expenses == []

    def test_duplicate_member_names_allowed(self, service):
        group = service.create_group("Twins", ["Sam", "Sam"])

        assert len(group.members) == 2
        assert group.members[0].id != group.members[1].id

    def test_blank_group_name(self, service):
        with pytest.raises(ValueError, match="Group name"):
            service.create_group("  ", ["Asha"])

    def test_blank_member_name(self, service):
        with pytest.raises(ValueError, match="Member name"):
            service.create_group("Trip", ["Asha", ""])

    def test_list_groups(self, service, trip):
        other = service.create_group("Flat", ["Dana"])

        assert [g.id for g in service.list_groups()] == [trip.id, other.id]

    def test_missing_group(self, service):
        with pytest.raises(GroupNotFoundError):
            service.get_group("nope")

    def test_delete_group(self, service, trip):
        service.delete_group(trip.id)

        assert service.list_groups() == []
        with pytest.raises(GroupNotFoundError):
            service.delete_group(trip.id)

    def test_add_member(self, service, trip):
        member = service.add_member(trip.id, "Dana")

        group = service.get_group(trip.id)
        assert group.members[-1] == member
        assert len(group.members) == 4


class TestResolveMember:
    def test_by_id_and_name(self, trip):
        asha = trip.members[0]

        assert resolve_member(trip, asha.id) == asha
        assert resolve_member(trip, "asha") == asha

    def test_unknown(self, trip):
        with pytest.raises(MemberNotFoundError):
            resolve_member(trip, "Zed")

    def test_ambiguous_name(self, service):
        group = service.create_group("Twins", ["Sam", "Sam"])

        with pytest.raises(MemberNotFoundError, match="matches 2 members"):
            resolve_member(group, "Sam")


class TestExpenses:
    """Adding, editing and deleting expenses."""

    def test_add_equal_expense(self, service, trip):
        expense = service.add_expense(
            trip.id, "Dinner", Decimal("90"), "Asha", expense_date=date(2025, 1, 10)
        )

        member_ids = ids(trip)
        assert expense.paid_by == member_ids["Asha"]
        assert expense.date == date(2025, 1, 10)
        assert [s.amount for s in expense.splits] == [Decimal("30")] * 3
        assert service.get_group(trip.id).expenses == [expense]

    def test_add_select_expense_by_name(self, service, trip):
        expense = service.add_expense(
            trip.id, "Taxi", Decimal("20"), "Ben", split_type="select", selected=["Ben", "Chetan"]
        )

        member_ids = ids(trip)
        assert [s.member_id for s in expense.splits] == [member_ids["Ben"], member_ids["Chetan"]]

    def test_add_unequal_expense(self, service, trip):
        expense = service.add_expense(
            trip.id,
            "Hotel",
            Decimal("100"),
            "Chetan",
            split_type="unequal",
            custom_amounts={"Asha": Decimal("60"), "Ben": Decimal("40")},
        )

        assert [s.amount for s in expense.splits] == [Decimal("60"), Decimal("40")]

    def test_invalid_split_is_not_stored(self, service, trip):
        with pytest.raises(SplitValidationError):
            service.add_expense(
                trip.id,
                "Hotel",
                Decimal("100"),
                "Chetan",
                split_type="unequal",
                custom_amounts={"Asha": Decimal("10")},
            )

        assert service.get_group(trip.id).expenses == []

    def test_unknown_payer(self, service, trip):
        with pytest.raises(MemberNotFoundError):
            service.add_expense(trip.id, "Dinner", Decimal("90"), "Zed")

    def test_edit_amount_recomputes_splits(self, service, trip):
        expense = service.add_expense(trip.id, "Dinner", Decimal("90"), "Asha")

        updated = service.edit_expense(trip.id, expense.id, amount=Decimal("60"))

        assert updated.id == expense.id
        assert [s.amount for s in updated.splits] == [Decimal("20")] * 3
        assert service.get_group(trip.id).expenses == [updated]

    def test_edit_select_keeps_participants(self, service, trip):
        expense = service.add_expense(
            trip.id, "Taxi", Decimal("20"), "Ben", split_type="select", selected=["Ben", "Chetan"]
        )

        updated = service.edit_expense(trip.id, expense.id, amount=Decimal("30"))

        assert [s.member_id for s in updated.splits] == [s.member_id for s in expense.splits]
        assert [s.amount for s in updated.splits] == [Decimal("15")] * 2

    def test_edit_description_keeps_splits(self, service, trip):
        expense = service.add_expense(trip.id, "Dinner", Decimal("90"), "Asha")

        updated = service.edit_expense(trip.id, expense.id, description="Late dinner", paid_by="Ben")

        assert updated.description == "Late dinner"
        assert updated.paid_by == ids(trip)["Ben"]
        assert updated.splits == expense.splits

    def test_edit_missing_expense(self, service, trip):
        with pytest.raises(ExpenseNotFoundError):
            service.edit_expense(trip.id, "nope", description="x")

    def test_amount_is_stored_in_cents(self, service, trip):
        expense = service.add_expense(trip.id, "Chai", Decimal("10.005"), "Asha")

        assert expense.amount == Decimal("10.01")
        assert sum(s.amount for s in expense.splits) == expense.amount

        updated = service.edit_expense(trip.id, expense.id, amount=Decimal("20.004"))

        assert updated.amount == Decimal("20.00")
        assert sum(s.amount for s in updated.splits) == updated.amount

    def test_add_rejects_options_the_split_ignores(self, service, trip):
        with pytest.raises(SplitValidationError):
            service.add_expense(trip.id, "Taxi", Decimal("20"), "Ben", selected=["Ben"])
        with pytest.raises(SplitValidationError):
            service.add_expense(
                trip.id,
                "Taxi",
                Decimal("20"),
                "Ben",
                split_type="select",
                custom_amounts={"Ben": Decimal("20")},
            )

        assert service.get_group(trip.id).expenses == []

    def test_edit_blank_description(self, service, trip):
        expense = service.add_expense(trip.id, "Dinner", Decimal("90"), "Asha")

        with pytest.raises(ValueError):
            service.edit_expense(trip.id, expense.id, description="   ")

        assert service.get_group(trip.id).expenses[0].description == "Dinner"

    def test_edit_shares_switch_to_unequal(self, service, trip):
        expense = service.add_expense(trip.id, "Hotel", Decimal("100"), "Chetan")

        updated = service.edit_expense(
            trip.id,
            expense.id,
            custom_amounts={"Asha": Decimal("70"), "Ben": Decimal("30")},
        )

        assert updated.split_type == "unequal"
        assert [s.amount for s in updated.splits] == [Decimal("70"), Decimal("30")]

    def test_edit_participants_switch_to_select(self, service, trip):
        expense = service.add_expense(trip.id, "Taxi", Decimal("20"), "Ben")

        updated = service.edit_expense(trip.id, expense.id, selected=["Ben", "Chetan"])

        assert updated.split_type == "select"
        assert [s.amount for s in updated.splits] == [Decimal("10")] * 2

    def test_edit_rejects_options_the_split_ignores(self, service, trip):
        expense = service.add_expense(trip.id, "Taxi", Decimal("20"), "Ben")

        with pytest.raises(SplitValidationError):
            service.edit_expense(trip.id, expense.id, split_type="equal", selected=["Ben"])
        with pytest.raises(SplitValidationError):
            service.edit_expense(
                trip.id,
                expense.id,
                selected=["Ben"],
                custom_amounts={"Ben": Decimal("20")},
            )

        assert service.get_group(trip.id).expenses == [expense]

    def test_delete_expense(self, service, trip):
        expense = service.add_expense(trip.id, "Dinner", Decimal("90"), "Asha")

        service.delete_expense(trip.id, expense.id)

        assert service.get_group(trip.id).expenses == []
        with pytest.raises(ExpenseNotFoundError):
            service.delete_expense(trip.id, expense.id)


class TestComputedViews:
    """Balances and settlements recomputed from the stored group."""

    def test_balances_and_settlements(self, service, trip):
        service.add_expense(trip.id, "Dinner", Decimal("90"), "Asha")
        member_ids = ids(trip)

        balances = {b.member_id: b.amount for b in service.balances(trip.id)}
        settlements = service.settlements(trip.id)

        assert balances == {
            member_ids["Asha"]: Decimal("60"),
            member_ids["Ben"]: Decimal("-30"),
            member_ids["Chetan"]: Decimal("-30"),
        }
        assert [(s.from_member, s.to_member, s.amount) for s in settlements] == [
            (member_ids["Ben"], member_ids["Asha"], Decimal("30")),
            (member_ids["Chetan"], member_ids["Asha"], Decimal("30")),
        ]

    def test_deleting_expense_settles_group(self, service, trip):
        expense = service.add_expense(trip.id, "Dinner", Decimal("90"), "Asha")
        service.delete_expense(trip.id, expense.id)

        assert service.settlements(trip.id) == []
        assert all(b.amount == 0 for b in service.balances(trip.id))

    def test_pairwise_tabs(self, service, trip):
        service.add_expense(trip.id, "Taxi", Decimal("20"), "Ben", split_type="select", selected=["Asha", "Ben"])
        member_ids = ids(trip)

        tabs = service.pairwise_tabs(trip.id)

        assert [(t.member_id, t.other_member_id, t.amount) for t in tabs] == [
            (member_ids["Asha"], member_ids["Ben"], Decimal("10")),
            (member_ids["Ben"], member_ids["Asha"], Decimal("-10")),
        ]

    def test_stats(self, service, trip):
        service.add_expense(trip.id, "Dinner", Decimal("90"), "Asha", expense_date=date(2025, 1, 10))
        service.add_expense(trip.id, "Taxi", Decimal("30"), "Ben", expense_date=date(2025, 1, 9))

        group_stats, member_stats, timeline = service.stats(trip.id)

        assert group_stats.total_expenses == Decimal("120")
        assert group_stats.expense_count == 2
        assert [m.total_paid for m in member_stats] == [Decimal("90"), Decimal("30"), Decimal("0")]
        assert [d.date for d in timeline] == [date(2025, 1, 9), date(2025, 1, 10)]
