"""Tests for net balance computation and eligibility rules."""

from datetime import date
from decimal import Decimal

import pydantic
import pytest

from gathering_split.balances import (
    balance_residual,
    compute_balances,
    compute_gathering_balances,
    eligible_participants,
    is_eligible,
    round_balances,
    to_cents,
    validate_expense,
)
from gathering_split.exceptions import (
    EmptyGatheringError,
    GatheringMismatchError,
    NoEligibleParticipantsError,
    UnknownParticipantError,
    ValidationError,
)
from gathering_split.models import Gathering
from tests.factories import make_expense, make_participant


@pytest.fixture
def trio():
    """Three omnivores who skip herb expenses."""
    return [make_participant("a"), make_participant("b"), make_participant("c")]


class TestScenarios:
    """End-to-end balance scenarios."""

    def test_even_split_between_three(self, trio):
        """90 paid by A and shared by A, B and C."""
        expenses = [make_expense("90", paid_by="a", participants=["a", "b", "c"])]

        balances = compute_balances(trio, expenses)

        assert balances == {
            "a": Decimal("60"),
            "b": Decimal("-30"),
            "c": Decimal("-30"),
        }

    def test_vegan_excluded_from_meat(self):
        """A pays for meat shared with a vegan: A consumes it all."""
        participants = [make_participant("a"), make_participant("b", vegan=True)]
        expenses = [
            make_expense(
                "100",
                paid_by="a",
                participants=["a", "b"],
                category="food",
                is_meat=True,
            )
        ]

        balances = compute_balances(participants, expenses)

        assert balances == {"a": Decimal("0"), "b": Decimal("0")}

    def test_herb_shared_only_by_opted_in(self):
        """Only C opted in to herb, so C owes the whole herb expense."""
        participants = [
            make_participant("a"),
            make_participant("b"),
            make_participant("c", herb=True),
        ]
        expenses = [
            make_expense(
                "60", paid_by="a", participants=["a", "b", ""], category="herb"
            )
        ]

        balances = compute_balances(participants, expenses)

        assert balances == {"a": Decimal("60"), "b": Decimal("0"), "c": Decimal("-60")}

    def test_vegan_payer_of_meat_is_reimbursed_in_full(self):
        """A vegan who pays for meat is credited the full amount."""
        participants = [make_participant("a", vegan=True), make_participant("b")]
        expenses = [
            make_expense(
                "50",
                paid_by="a",
                participants=["a", "b"],
                category="food",
                is_meat=True,
            )
        ]

        balances = compute_balances(participants, expenses)

        assert balances == {"a": Decimal("50"), "b": Decimal("-50")}

    def test_participant_without_expenses_starts_at_zero(self, trio):
        """Participants not on any expense keep a zero balance."""
        expenses = [make_expense("20", paid_by="a", participants=["a", "b"])]

        balances = compute_balances(trio, expenses)

        assert balances["c"] == Decimal("0")
        assert balances["a"] == Decimal("10")
        assert balances["b"] == Decimal("-10")

    def test_no_expenses(self, trio):
        """A gathering without expenses has all-zero balances."""
        assert compute_balances(trio, []) == {
            "a": Decimal("0"),
            "b": Decimal("0"),
            "c": Decimal("0"),
        }


class TestEligibility:
    """Tests for the eligibility rule."""

    def test_meat_excludes_vegans(self):
        expense = make_expense(
            "10", paid_by="a", participants=["a"], category="food", is_meat=True
        )
        assert not is_eligible(expense, make_participant("v", vegan=True))
        assert is_eligible(expense, make_participant("o"))

    def test_vegetarian_food_includes_vegans(self):
        expense = make_expense(
            "10", paid_by="a", participants=["a"], category="food", is_meat=False
        )
        assert is_eligible(expense, make_participant("v", vegan=True))

    def test_meat_flag_ignored_outside_food(self):
        """The meat flag only matters for food expenses."""
        expense = make_expense(
            "10", paid_by="a", participants=["a"], category="other", is_meat=True
        )
        assert is_eligible(expense, make_participant("v", vegan=True))

    def test_herb_requires_opt_in(self):
        expense = make_expense("10", paid_by="a", participants=["a"], category="herb")
        assert not is_eligible(expense, make_participant("n"))
        assert is_eligible(expense, make_participant("y", herb=True))

    def test_vegan_may_share_herb(self):
        expense = make_expense("10", paid_by="a", participants=["a"], category="herb")
        assert is_eligible(expense, make_participant("v", vegan=True, herb=True))

    def test_eligible_participants_keeps_declaration_order(self):
        participants = {
            pid: make_participant(pid, vegan=pid == "b") for pid in ["a", "b", "c"]
        }
        expense = make_expense(
            "30",
            paid_by="a",
            participants=["c", "b", "a"],
            category="food",
            is_meat=True,
        )

        assert eligible_participants(expense, participants) == ["c", "a"]

    def test_unknown_ids_are_not_eligible(self):
        participants = {"a": make_participant("a")}
        expense = make_expense("30", paid_by="a", participants=["a", "ghost"])

        assert eligible_participants(expense, participants) == ["a"]

    def test_vegan_receives_zero_debit_for_meat(self):
        """A vegan listed on a meat expense is not debited."""
        participants = [
            make_participant("a"),
            make_participant("b"),
            make_participant("v", vegan=True),
        ]
        expenses = [
            make_expense(
                "40",
                paid_by="a",
                participants=["a", "b", "v"],
                category="food",
                is_meat=True,
            )
        ]

        balances = compute_balances(participants, expenses)

        assert balances["v"] == Decimal("0")
        assert balances["b"] == Decimal("-20")

    def test_non_herb_participant_receives_zero_debit(self):
        """A participant who skips herb is not debited even if listed."""
        participants = [
            make_participant("a", herb=True),
            make_participant("b", herb=True),
            make_participant("n"),
        ]
        expenses = [
            make_expense(
                "40", paid_by="a", participants=["a", "b", ""], category="herb"
            )
        ]

        balances = compute_balances(participants, expenses)

        assert balances["n"] == Decimal("0")
        assert balances["a"] == Decimal("20")
        assert balances["b"] == Decimal("-20")


class TestBalanceInvariants:
    """Properties that hold for every valid input."""

    def test_uneven_split_sums_to_zero(self, trio):
        """100 split three ways still balances within a cent."""
        expenses = [make_expense("100", paid_by="a", participants=["a", "b", "c"])]

        balances = compute_balances(trio, expenses)

        assert abs(balance_residual(balances)) <= Decimal("0.01")
        assert round_balances(balances) == {
            "a": Decimal("66.67"),
            "b": Decimal("-33.33"),
            "c": Decimal("-33.33"),
        }

    def test_many_expenses_sum_to_zero(self):
        participants = [
            make_participant("a", herb=True),
            make_participant("b", vegan=True),
            make_participant("c", vegan=True, herb=True),
            make_participant("d"),
        ]
        everyone = ["a", "b", "c", "d"]
        expenses = [
            make_expense("33.33", "a", everyone, "food", True, id="e1"),
            make_expense("17.01", "b", everyone, "food", False, id="e2"),
            make_expense("25.00", "c", everyone, "herb", id="e3"),
            make_expense("9.99", "d", ["b", "c", "d"], "other", id="e4"),
            make_expense("71.42", "b", everyone, "food", True, id="e5"),
        ]

        balances = compute_balances(participants, expenses)

        assert abs(balance_residual(balances)) <= Decimal("0.01")

    def test_idempotent(self, trio):
        """Same input, same output."""
        expenses = [
            make_expense("100", paid_by="a", participants=["a", "b", "c"], id="e1"),
            make_expense("45.50", paid_by="b", participants=["a", "b"], id="e2"),
        ]

        assert compute_balances(trio, expenses) == compute_balances(trio, expenses)

    def test_expense_order_does_not_matter(self, trio):
        expenses = [
            make_expense("90", paid_by="a", participants=["a", "b", "c"], id="e1"),
            make_expense("40", paid_by="b", participants=["a", "b"], id="e2"),
            make_expense("12", paid_by="c", participants=["b", "c"], id="e3"),
        ]

        forward = compute_balances(trio, expenses)
        backward = compute_balances(trio, list(reversed(expenses)))

        assert forward == backward

    def test_inputs_are_not_mutated(self, trio):
        expense = make_expense("90", paid_by="a", participants=["a", "b", "c"])
        snapshot = expense.model_dump()

        compute_balances(trio, [expense])

        assert expense.model_dump() == snapshot


class TestValidation:
    """Invalid input is rejected instead of producing garbage balances."""

    def test_no_eligible_participants_rejected(self):
        """An all-vegan group cannot share a meat dish."""
        participants = [
            make_participant("a", vegan=True),
            make_participant("b", vegan=True),
        ]
        expenses = [
            make_expense(
                "30",
                paid_by="a",
                participants=["a", "b"],
                category="food",
                is_meat=True,
                id="steak",
            )
        ]

        with pytest.raises(NoEligibleParticipantsError) as exc_info:
            compute_balances(participants, expenses)

        assert exc_info.value.expense_id == "steak"

    def test_unknown_payer_rejected(self, trio):
        expenses = [make_expense("30", paid_by="ghost", participants=["a", "b"])]

        with pytest.raises(UnknownParticipantError, match="Payer ghost"):
            compute_balances(trio, expenses)

    def test_unknown_participant_rejected(self, trio):
        expenses = [make_expense("30", paid_by="a", participants=["a", "ghost"])]

        with pytest.raises(UnknownParticipantError) as exc_info:
            compute_balances(trio, expenses)

        assert exc_info.value.participant_id == "ghost"

    def test_empty_participants_rejected(self):
        with pytest.raises(EmptyGatheringError):
            compute_balances([], [])

    def test_validation_errors_share_a_base_class(self, trio):
        expenses = [make_expense("30", paid_by="ghost", participants=["a"])]

        with pytest.raises(ValidationError):
            compute_balances(trio, expenses)

    def test_validate_expense_returns_eligible(self, trio):
        participants = {p.id: p for p in trio}
        expense = make_expense("30", paid_by="a", participants=["a", "b"])

        assert validate_expense(expense, participants) == ["a", "b"]

    @pytest.mark.parametrize("amount", ["0", "-5", "0.001"])
    def test_non_positive_amount_rejected(self, amount):
        with pytest.raises(pydantic.ValidationError):
            make_expense(amount, paid_by="a", participants=["a"])

    def test_empty_expense_participants_rejected(self):
        with pytest.raises(pydantic.ValidationError):
            make_expense("10", paid_by="a", participants=[])

    def test_duplicate_expense_participants_rejected(self):
        with pytest.raises(pydantic.ValidationError, match="unique"):
            make_expense("10", paid_by="a", participants=["a", "a"])

    def test_amount_quantized_to_cents(self):
        expense = make_expense("10.005", paid_by="a", participants=["a"])
        assert expense.amount == Decimal("10.01")


class TestGatheringBalances:
    """Tests for gathering-scoped balance computation."""

    @pytest.fixture
    def gathering(self):
        return Gathering(
            id="g1", title="Dinner", date=date(2026, 10, 17), participants=["a", "b"]
        )

    @pytest.fixture
    def known(self):
        return {pid: make_participant(pid) for pid in ["a", "b", "outsider"]}

    def test_only_gathering_participants_in_result(self, gathering, known):
        expenses = [make_expense("50", paid_by="a", participants=["a", "b"])]

        balances = compute_gathering_balances(gathering, expenses, known)

        assert balances == {"a": Decimal("25"), "b": Decimal("-25")}

    def test_expense_from_other_gathering_rejected(self, gathering, known):
        expenses = [
            make_expense("50", paid_by="a", participants=["a"], gathering_id="g2")
        ]

        with pytest.raises(GatheringMismatchError, match="g2"):
            compute_gathering_balances(gathering, expenses, known)

    def test_outsider_payer_rejected(self, gathering, known):
        """A known participant outside the gathering cannot pay for it."""
        expenses = [make_expense("50", paid_by="outsider", participants=["a", "b"])]

        with pytest.raises(UnknownParticipantError):
            compute_gathering_balances(gathering, expenses, known)

    def test_unknown_gathering_participant_rejected(self, gathering):
        with pytest.raises(UnknownParticipantError, match="b"):
            compute_gathering_balances(gathering, [], {"a": make_participant("a")})


class TestToCents:
    """Tests for the rounding helper."""

    def test_rounds_half_up(self):
        assert to_cents(Decimal("2.345")) == Decimal("2.35")

    def test_rounds_negative_half_away_from_zero(self):
        assert to_cents(Decimal("-2.345")) == Decimal("-2.35")

    def test_repeating_decimal(self):
        assert to_cents(Decimal("100") / 3) == Decimal("33.33")
