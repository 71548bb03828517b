"""Tests for participant summaries and the shareable text report."""

from datetime import date
from decimal import Decimal

import pytest

from gathering_split.balances import compute_balances, round_balances
from gathering_split.models import Gathering, GatheringSnapshot, SettlementReport
from gathering_split.settlement import compute_settlement
from gathering_split.summary import (
    category_label,
    format_amount,
    render_summary,
    summarize_participants,
)
from tests.factories import make_expense, make_participant


@pytest.fixture
def snapshot():
    """Asado with a meat dish, salads and herb."""
    participants = [
        make_participant("ana", alias="@ana", herb=True),
        make_participant("ben", vegan=True),
        make_participant("caro", herb=True),
    ]
    everyone = [p.id for p in participants]
    expenses = [
        make_expense("90", "ana", everyone, "food", True, id="beef"),
        make_expense("30", "ben", everyone, "food", False, id="salad"),
        make_expense("20", "caro", everyone, "herb", id="herb"),
    ]
    return GatheringSnapshot(
        gathering=Gathering(
            id="g1",
            title="Asado",
            date=date(2026, 10, 17),
            participants=everyone,
        ),
        participants_by_id={p.id: p for p in participants},
        expenses=expenses,
    )


@pytest.fixture
def report(snapshot):
    balances = compute_balances(snapshot.participants, snapshot.expenses)
    transactions = compute_settlement(balances)
    return SettlementReport(
        snapshot=snapshot,
        balances=round_balances(balances),
        transactions=transactions,
        summaries=summarize_participants(snapshot, transactions),
    )


class TestSummarizeParticipants:
    """Tests for per-participant summaries."""

    def test_paid_share_and_balance(self, report):
        """Summaries agree with the balance computation."""
        by_id = {s.participant.id: s for s in report.summaries}

        # ana: paid 90, eats beef 45 + salad 10 + herb 10
        assert by_id["ana"].amount_paid == Decimal("90")
        assert by_id["ana"].total_share == Decimal("65.00")
        assert by_id["ana"].balance == Decimal("25.00")

        # ben: paid 30, vegan and no herb: salad 10
        assert by_id["ben"].total_share == Decimal("10.00")
        assert by_id["ben"].balance == Decimal("20.00")

        # caro: paid 20, beef 45 + salad 10 + herb 10
        assert by_id["caro"].total_share == Decimal("65.00")
        assert by_id["caro"].balance == Decimal("-45.00")

        for summary in report.summaries:
            assert summary.balance == report.balances[summary.participant.id]

    def test_vegan_has_no_meat_contribution(self, report):
        ben = next(s for s in report.summaries if s.participant.id == "ben")

        contributed = {c.expense_id for c in ben.contributions if c.share > 0}

        assert contributed == {"salad"}

    def test_payer_listed_even_without_share(self):
        """A vegan who paid for meat still sees the expense they fronted."""
        participants = [make_participant("v", vegan=True), make_participant("o")]
        expense = make_expense("40", "v", ["v", "o"], "food", True, id="ribs")
        snapshot = GatheringSnapshot(
            gathering=Gathering(
                id="g1", title="BBQ", date=date(2026, 10, 17), participants=["v", "o"]
            ),
            participants_by_id={p.id: p for p in participants},
            expenses=[expense],
        )

        summaries = summarize_participants(snapshot, [])

        vegan = summaries[0]
        assert vegan.amount_paid == Decimal("40")
        assert [(c.expense_id, c.share, c.is_payer) for c in vegan.contributions] == [
            ("ribs", Decimal("0.00"), True)
        ]

    def test_settlement_amounts(self, report):
        by_id = {s.participant.id: s for s in report.summaries}

        assert by_id["caro"].is_debtor
        assert by_id["caro"].amount_to_pay == Decimal("45.00")
        assert by_id["ana"].is_creditor
        assert by_id["ana"].amount_to_receive == Decimal("25.00")
        assert by_id["ben"].amount_to_receive == Decimal("20.00")
        assert not by_id["ben"].is_debtor

    def test_order_follows_gathering(self, report):
        assert [s.participant.id for s in report.summaries] == ["ana", "ben", "caro"]


class TestRenderSummary:
    """Tests for the plain-text report."""

    def test_header(self, report):
        text = render_summary(report)

        assert text.startswith("EXPENSE SUMMARY: ASADO\n")
        assert "Date: October 17, 2026" in text
        assert "Total: $140.00" in text

    def test_expense_breakdown(self, report):
        text = render_summary(report)

        assert "- Expense beef: $90.00 (Food (meat), paid by Ana)" in text
        assert "  Participants: Ana, Caro" in text
        assert "  Per person: $45.00" in text
        assert "- Expense salad: $30.00 (Food (vegan-friendly), paid by Ben)" in text
        assert "- Expense herb: $20.00 (Herb, paid by Caro)" in text

    def test_who_pays_whom(self, report):
        text = render_summary(report)

        assert "- Caro pays $25.00 to Ana (@ana)" in text
        assert "- Caro pays $20.00 to Ben" in text

    def test_participant_section(self, report):
        text = render_summary(report)

        assert "- Caro:\n  Paid: $20.00\n  Final Balance: -$45.00\n" in text
        assert '    - $45.00 for "Expense beef"' in text
        assert "  Pays: $45.00" in text
        assert "  Receives: $25.00" in text

    def test_no_payments_needed(self, snapshot):
        empty = snapshot.model_copy(update={"expenses": []})
        report = SettlementReport(
            snapshot=empty,
            balances={},
            transactions=[],
            summaries=summarize_participants(empty, []),
        )

        text = render_summary(report)

        assert "No expenses recorded." in text
        assert "No payments needed." in text

    def test_currency_symbol(self, report):
        assert "Total: €140.00" in render_summary(report, currency_symbol="€")


class TestFormatting:
    """Tests for labels and amount formatting."""

    @pytest.mark.parametrize(
        "category,is_meat,label",
        [
            ("food", True, "Food (meat)"),
            ("food", False, "Food (vegan-friendly)"),
            ("food", None, "Food (vegan-friendly)"),
            ("herb", None, "Herb"),
            ("other", True, "Other"),
        ],
    )
    def test_category_label(self, category, is_meat, label):
        expense = make_expense("10", "a", ["a"], category, is_meat)
        assert category_label(expense) == label

    def test_format_amount(self):
        assert format_amount(Decimal("1234.5")) == "$1,234.50"
        assert format_amount(Decimal("-3.333")) == "-$3.33"
        assert format_amount(Decimal("-0.001")) == "$0.00"
