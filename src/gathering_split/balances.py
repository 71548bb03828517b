"""Net balance computation for a gathering's expenses.

A positive balance means the participant is owed money, a negative balance
means they owe money. Every expense credits its payer the full amount and
debits each eligible participant an equal share, so the balances of a
gathering always sum to zero.
"""

import logging
from collections.abc import Iterable, Mapping
from decimal import ROUND_HALF_UP, Decimal

from .exceptions import (
    EmptyGatheringError,
    GatheringMismatchError,
    NoEligibleParticipantsError,
    UnknownParticipantError,
)
from .models import CENT, Expense, Gathering, Participant

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


def to_cents(amount: Decimal) -> Decimal:
    """
    Round a monetary amount to two decimal places.
    Uses ROUND_HALF_UP for consistency.

    Args:
        amount: Amount as Decimal

    Returns:
        Amount quantized to cents
    """
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def is_eligible(expense: Expense, participant: Participant) -> bool:
    """
    Check whether a participant owes a share of an expense.

    Vegans never share meat dishes, and herb costs are only shared by
    participants who opted in to them. Everything else is shared by everyone
    declared on the expense.
    """
    if expense.is_meat_dish and participant.is_vegan:
        return False
    if expense.category == "herb" and not participant.participates_in_herb:
        return False
    return True


def eligible_participants(
    expense: Expense, participants_by_id: Mapping[str, Participant]
) -> list[str]:
    """
    Filter an expense's declared participants by the eligibility rule.

    Declaration order is preserved. IDs missing from ``participants_by_id``
    are never eligible.

    Args:
        expense: The expense being shared
        participants_by_id: Known participants keyed by ID

    Returns:
        IDs of the participants who owe a share
    """
    return [
        participant_id
        for participant_id in expense.participants
        if participant_id in participants_by_id
        and is_eligible(expense, participants_by_id[participant_id])
    ]


def validate_expense(
    expense: Expense,
    participants_by_id: Mapping[str, Participant],
    gathering: Gathering | None = None,
) -> list[str]:
    """
    Validate an expense against the participants it can be shared by.

    Args:
        expense: The expense to validate
        participants_by_id: Known participants keyed by ID
        gathering: Optional gathering the expense must belong to

    Returns:
        The eligible participant IDs for the expense

    Raises:
        GatheringMismatchError: If the expense belongs to another gathering
        UnknownParticipantError: If the payer or a declared participant is
            unknown or not part of the gathering
        NoEligibleParticipantsError: If nobody is left to share the cost
    """
    allowed = set(participants_by_id)
    if gathering is not None:
        if expense.gathering_id != gathering.id:
            raise GatheringMismatchError(
                f"Expense {expense.id} belongs to gathering {expense.gathering_id}, "
                f"not {gathering.id}"
            )
        allowed &= set(gathering.participants)

    if expense.paid_by_id not in allowed:
        raise UnknownParticipantError(
            expense.paid_by_id,
            f"Payer {expense.paid_by_id} of expense {expense.id} "
            f"is not a participant",
        )

    for participant_id in expense.participants:
        if participant_id not in allowed:
            raise UnknownParticipantError(
                participant_id,
                f"Participant {participant_id} of expense {expense.id} "
                f"is not a participant",
            )

    eligible = eligible_participants(expense, participants_by_id)
    if not eligible:
        raise NoEligibleParticipantsError(expense.id)

    return eligible


def compute_balances(
    participants: Iterable[Participant], expenses: Iterable[Expense]
) -> dict[str, Decimal]:
    """
    Compute each participant's net balance across a set of expenses.

    Steps:
    1. Validate every expense (invalid input is rejected, never guessed)
    2. Start every participant at zero
    3. Credit each payer the full amount
    4. Debit each eligible participant an equal share

    The payer is credited in full even when they are not eligible to share
    the expense themselves (e.g. a vegan paying for a meat dish).

    Args:
        participants: All participants of the gathering
        expenses: The gathering's expenses, in any order

    Returns:
        Mapping of participant ID to signed balance (unrounded)

    Raises:
        EmptyGatheringError: If there are no participants
        ValidationError: If any expense fails validation
    """
    participants_by_id = {participant.id: participant for participant in participants}
    if not participants_by_id:
        raise EmptyGatheringError("Cannot compute balances without participants")

    expenses = list(expenses)
    eligible_by_expense = [
        validate_expense(expense, participants_by_id) for expense in expenses
    ]

    balances = {participant_id: ZERO for participant_id in participants_by_id}

    for expense, eligible in zip(expenses, eligible_by_expense):
        share = expense.amount / len(eligible)

        balances[expense.paid_by_id] += expense.amount
        for participant_id in eligible:
            balances[participant_id] -= share

        logger.debug(
            f"Expense {expense.id} ({expense.category}): {expense.amount} paid by "
            f"{expense.paid_by_id}, shared by {len(eligible)} "
            f"at {to_cents(share)} each"
        )

    logger.info(
        f"Computed balances for {len(balances)} participants "
        f"from {len(expenses)} expenses"
    )

    return balances


def compute_gathering_balances(
    gathering: Gathering,
    expenses: Iterable[Expense],
    participants_by_id: Mapping[str, Participant],
) -> dict[str, Decimal]:
    """
    Compute balances for one gathering.

    Every expense must belong to the gathering and only the gathering's
    participants take part in the computation.

    Raises:
        UnknownParticipantError: If a gathering participant is not known
        GatheringMismatchError: If an expense belongs to another gathering
    """
    missing = [pid for pid in gathering.participants if pid not in participants_by_id]
    if missing:
        raise UnknownParticipantError(
            missing[0],
            f"Gathering {gathering.id} references unknown participants: "
            f"{', '.join(missing)}",
        )

    members = {pid: participants_by_id[pid] for pid in gathering.participants}
    expenses = list(expenses)
    for expense in expenses:
        validate_expense(expense, members, gathering)

    return compute_balances(members.values(), expenses)


def round_balances(balances: Mapping[str, Decimal]) -> dict[str, Decimal]:
    """Round every balance to cents for display."""
    return {pid: to_cents(amount) for pid, amount in balances.items()}


def balance_residual(balances: Mapping[str, Decimal]) -> Decimal:
    """Sum of all balances; zero for a consistent ledger."""
    return sum(balances.values(), ZERO)
