"""Per-participant financial summaries and shareable text reports."""

from collections.abc import Mapping
from decimal import Decimal

from .balances import ZERO, eligible_participants, to_cents
from .models import (
    Expense,
    ExpenseContribution,
    GatheringSnapshot,
    ParticipantSummary,
    SettlementReport,
    Transaction,
)

CATEGORY_LABELS = {
    "food": "Food (vegan-friendly)",
    "herb": "Herb",
    "other": "Other",
}


def category_label(expense: Expense) -> str:
    """Human-readable category, distinguishing meat dishes."""
    if expense.is_meat_dish:
        return "Food (meat)"
    return CATEGORY_LABELS[expense.category]


def format_amount(amount: Decimal, currency_symbol: str = "$") -> str:
    """Format an amount as plain text, e.g. ``-$12.50``."""
    rounded = to_cents(amount)
    sign = "-" if rounded < 0 else ""
    return f"{sign}{currency_symbol}{abs(rounded):,.2f}"


def summarize_participants(
    snapshot: GatheringSnapshot, transactions: list[Transaction]
) -> list[ParticipantSummary]:
    """
    Build a financial summary for every participant of a gathering.

    Shares follow the same eligibility rule as the balance computation, so a
    vegan is never shown as contributing to a meat dish.

    Args:
        snapshot: The gathering with its participants and expenses
        transactions: Settlement payments computed for the gathering

    Returns:
        One summary per participant, in gathering order
    """
    eligible_by_expense = {
        expense.id: eligible_participants(expense, snapshot.participants_by_id)
        for expense in snapshot.expenses
    }

    summaries = []
    for participant in snapshot.participants:
        pid = participant.id
        contributions = []
        amount_paid = ZERO
        total_share = ZERO

        for expense in snapshot.expenses:
            is_payer = expense.paid_by_id == pid
            if is_payer:
                amount_paid += expense.amount

            eligible = eligible_by_expense[expense.id]
            share = expense.amount / len(eligible) if pid in eligible else ZERO
            total_share += share

            if share > 0 or is_payer:
                contributions.append(
                    ExpenseContribution(
                        expense_id=expense.id,
                        description=expense.description,
                        share=to_cents(share),
                        is_payer=is_payer,
                    )
                )

        summaries.append(
            ParticipantSummary(
                participant=participant,
                amount_paid=amount_paid,
                total_share=to_cents(total_share),
                balance=to_cents(amount_paid - total_share),
                amount_to_pay=sum(
                    (t.amount for t in transactions if t.from_user_id == pid),
                    ZERO,
                ),
                amount_to_receive=sum(
                    (t.amount for t in transactions if t.to_user_id == pid),
                    ZERO,
                ),
                contributions=contributions,
            )
        )

    return summaries


def _name(names: Mapping[str, str], participant_id: str) -> str:
    return names.get(participant_id, "Unknown")


def render_summary(report: SettlementReport, currency_symbol: str = "$") -> str:
    """
    Render a settlement report as shareable plain text.

    Sections: header (title, date, total), expense breakdown, who pays whom,
    and the per-participant summary.
    """
    snapshot = report.snapshot
    gathering = snapshot.gathering
    names = {pid: p.name for pid, p in snapshot.participants_by_id.items()}

    def money(amount: Decimal) -> str:
        return format_amount(amount, currency_symbol)

    lines = [
        f"EXPENSE SUMMARY: {gathering.title.upper()}",
        f"Date: {gathering.date:%B} {gathering.date.day}, {gathering.date.year}",
        f"Total: {money(snapshot.total_amount)}",
        "",
        "EXPENSES:",
    ]

    if not snapshot.expenses:
        lines.append("No expenses recorded.")

    for expense in snapshot.expenses:
        eligible = eligible_participants(expense, snapshot.participants_by_id)
        lines.append(
            f"- {expense.description}: {money(expense.amount)} "
            f"({category_label(expense)}, paid by {_name(names, expense.paid_by_id)})"
        )
        lines.append(
            f"  Participants: {', '.join(_name(names, pid) for pid in eligible)}"
        )
        lines.append(f"  Per person: {money(expense.amount / len(eligible))}")

    lines += ["", "WHO PAYS WHOM:"]
    if not report.transactions:
        lines.append("No payments needed.")
    for transaction in report.transactions:
        recipient = snapshot.participants_by_id.get(transaction.to_user_id)
        handle = f" ({recipient.alias})" if recipient and recipient.alias else ""
        lines.append(
            f"- {_name(names, transaction.from_user_id)} pays "
            f"{money(transaction.amount)} to "
            f"{_name(names, transaction.to_user_id)}{handle}"
        )

    lines += ["", "PARTICIPANT SUMMARY:"]
    for summary in report.summaries:
        lines.append(f"- {summary.participant.name}:")
        if summary.amount_paid > 0:
            lines.append(f"  Paid: {money(summary.amount_paid)}")
        lines.append(f"  Final Balance: {money(summary.balance)}")
        shares = [c for c in summary.contributions if c.share > 0]
        if shares:
            lines.append("  Contributed to:")
            for item in shares:
                lines.append(f'    - {money(item.share)} for "{item.description}"')
        if summary.amount_to_receive > 0:
            lines.append(f"  Receives: {money(summary.amount_to_receive)}")
        elif summary.amount_to_pay > 0:
            lines.append(f"  Pays: {money(summary.amount_to_pay)}")

    return "\n".join(lines) + "\n"
