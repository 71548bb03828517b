"""Greedy settlement of net balances into payment instructions."""

import logging
from collections.abc import Iterable, Mapping
from decimal import Decimal

from .balances import ZERO, balance_residual, to_cents
from .models import Transaction

logger = logging.getLogger(__name__)

SETTLEMENT_EPSILON = Decimal("0.01")  # one cent

Amount = Decimal | int | float


def _as_decimal(value: Amount) -> Decimal:
    # str() keeps floats at their shortest repr, e.g. 0.1 -> Decimal("0.1")
    return value if isinstance(value, Decimal) else Decimal(str(value))


def _as_decimals(balances: Mapping[str, Amount]) -> dict[str, Decimal]:
    return {pid: _as_decimal(amount) for pid, amount in balances.items()}


def _sorted_parties(parties: list[tuple[str, Decimal]]) -> list[list]:
    # Largest amount first; equal amounts fall back to participant ID
    ordered = sorted(parties, key=lambda party: (-party[1], party[0]))
    return [[participant_id, amount] for participant_id, amount in ordered]


def compute_settlement(
    balances: Mapping[str, Amount],
    epsilon: Amount = SETTLEMENT_EPSILON,
) -> list[Transaction]:
    """
    Compute payments that settle a set of net balances.

    Steps:
    1. Split balances into creditors (owed money) and debtors (owe money),
       dropping balances within ``epsilon`` of zero
    2. Sort both lists by amount, largest first
    3. Repeatedly pay the largest creditor from the largest debtor, moving
       the smaller of the two amounts rounded to cents
    4. Drop any party whose remaining amount is within ``epsilon``

    This is a greedy largest-first heuristic. It yields at most one payment
    fewer than the number of non-zero balances but is not guaranteed to find
    the minimum number of payments.

    Args:
        balances: Mapping of participant ID to signed balance; ints and
            floats are converted to Decimal
        epsilon: Amounts at or below this are treated as settled

    Returns:
        Ordered payment instructions, amounts rounded to cents
    """
    balances = _as_decimals(balances)
    epsilon = _as_decimal(epsilon)

    # Each balance may carry up to epsilon of rounding drift
    residual = balance_residual(balances)
    if abs(residual) > epsilon * max(len(balances), 1):
        logger.warning(
            f"Balances do not sum to zero (residual: {residual:.4f}); "
            f"settlement will leave unmatched amounts"
        )

    creditors = _sorted_parties(
        [(pid, amount) for pid, amount in balances.items() if amount > epsilon]
    )
    debtors = _sorted_parties(
        [(pid, -amount) for pid, amount in balances.items() if amount < -epsilon]
    )

    transactions: list[Transaction] = []

    while creditors and debtors:
        creditor = creditors[0]
        debtor = debtors[0]

        # Remainders track the rounded amount actually paid
        transfer = to_cents(min(creditor[1], debtor[1]))
        if transfer <= ZERO:
            # Under half a cent left on the smaller side; nothing payable
            if creditor[1] <= debtor[1]:
                creditors.pop(0)
            else:
                debtors.pop(0)
            continue

        transactions.append(
            Transaction(
                from_user_id=debtor[0],
                to_user_id=creditor[0],
                amount=transfer,
            )
        )

        creditor[1] -= transfer
        debtor[1] -= transfer

        if creditor[1] <= epsilon:
            creditors.pop(0)
        if debtor[1] <= epsilon:
            debtors.pop(0)

    for participant_id, amount in creditors:
        logger.warning(f"Unmatched credit for {participant_id}: {to_cents(amount)}")
    for participant_id, amount in debtors:
        logger.warning(f"Unmatched debt for {participant_id}: {to_cents(amount)}")

    logger.info(
        f"Settled {len(balances)} balances with {len(transactions)} transactions"
    )

    return transactions


def apply_transactions(
    balances: Mapping[str, Amount], transactions: Iterable[Transaction]
) -> dict[str, Decimal]:
    """
    Apply payments to a set of balances.

    The payer's balance rises by the amount paid and the recipient's balance
    falls by it. The input mapping is not modified.

    Args:
        balances: Mapping of participant ID to signed balance
        transactions: Payments to apply

    Returns:
        New mapping with every payment applied
    """
    result = _as_decimals(balances)
    for transaction in transactions:
        result[transaction.from_user_id] = (
            result.get(transaction.from_user_id, ZERO) + transaction.amount
        )
        result[transaction.to_user_id] = (
            result.get(transaction.to_user_id, ZERO) - transaction.amount
        )
    return result


def is_settled(
    balances: Mapping[str, Amount], epsilon: Amount = SETTLEMENT_EPSILON
) -> bool:
    """Check that every balance is within ``epsilon`` of zero."""
    epsilon = _as_decimal(epsilon)
    return all(abs(amount) <= epsilon for amount in _as_decimals(balances).values())
