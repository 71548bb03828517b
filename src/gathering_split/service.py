"""Service layer that composes the store with balance and settlement logic.

The store supplies immutable snapshots of a gathering; the balance and
settlement functions never touch the database themselves.
"""

import logging
from datetime import date
from decimal import Decimal

from .balances import compute_gathering_balances, round_balances, validate_expense
from .config import Settings
from .db import Database
from .exceptions import (
    DuplicateParticipantError,
    ExpenseNotFoundError,
    GatheringNotFoundError,
    ImmutableFieldError,
    ParticipantInUseError,
    ParticipantNotFoundError,
)
from .models import (
    Expense,
    ExpenseCategory,
    Gathering,
    GatheringSnapshot,
    Participant,
    SettlementReport,
)
from .settlement import compute_settlement
from .summary import summarize_participants

logger = logging.getLogger(__name__)


class GatheringService:
    """Service for managing gatherings and settling their expenses."""

    def __init__(self, settings: Settings, database: Database):
        """Initialize the gathering service."""
        self.settings = settings
        self.db = database

    # ========================================================================
    # Participants
    # ========================================================================

    def add_participant(
        self,
        name: str,
        alias: str = "",
        is_vegan: bool = False,
        participates_in_herb: bool = False,
    ) -> Participant:
        """Create and store a new participant."""
        participant = Participant(
            name=name,
            alias=alias,
            is_vegan=is_vegan,
            participates_in_herb=participates_in_herb,
        )
        self.db.save_participant(participant)
        logger.info(f"Added participant {participant.name} ({participant.id})")
        return participant

    def get_participant(self, participant_id: str) -> Participant:
        participant = self.db.get_participant(participant_id)
        if participant is None:
            raise ParticipantNotFoundError(f"Participant {participant_id} not found")
        return participant

    def find_participant(self, reference: str) -> Participant:
        """
        Look up a participant by ID, falling back to a case-insensitive name.

        Raises:
            ParticipantNotFoundError: If nothing matches or a name is ambiguous
        """
        participant = self.db.get_participant(reference)
        if participant is not None:
            return participant

        matches = [
            p
            for p in self.db.list_participants()
            if p.name.casefold() == reference.casefold()
        ]
        if len(matches) == 1:
            return matches[0]
        if matches:
            raise ParticipantNotFoundError(
                f"Name '{reference}' matches {len(matches)} participants; use an ID"
            )
        raise ParticipantNotFoundError(f"Participant '{reference}' not found")

    def update_participant(self, participant_id: str, **changes) -> Participant:
        """
        Update a participant's name, alias or preferences.

        Preference changes apply to every gathering the participant is part of
        the next time balances are computed. Changes that would leave an
        existing expense with nobody eligible to share it are rejected.
        """
        _reject_id_change(participant_id, changes)
        current = self.get_participant(participant_id)
        updated = Participant.model_validate({**current.model_dump(), **changes})

        for gathering in self.db.list_gatherings():
            if participant_id not in gathering.participants:
                continue
            participants_by_id = self.db.get_participants(gathering.participants)
            participants_by_id[participant_id] = updated
            for expense in self.db.list_expenses(gathering.id):
                validate_expense(expense, participants_by_id, gathering)

        self.db.save_participant(updated)
        logger.info(f"Updated participant {participant_id}")
        return updated

    def remove_participant(self, participant_id: str) -> None:
        """
        Remove a participant.

        Raises:
            ParticipantNotFoundError: If the participant does not exist
            ParticipantInUseError: If a gathering or expense references them
        """
        self.get_participant(participant_id)
        if self.db.is_participant_referenced(participant_id):
            raise ParticipantInUseError(
                f"Participant {participant_id} is still part of a gathering"
            )
        self.db.delete_participant(participant_id)
        logger.info(f"Removed participant {participant_id}")

    # ========================================================================
    # Gatherings
    # ========================================================================

    def create_gathering(
        self,
        title: str,
        gathering_date: date,
        participant_ids: list[str],
        host_id: str | None = None,
    ) -> Gathering:
        """
        Create and store a new gathering.

        Raises:
            ParticipantNotFoundError: If any participant does not exist
        """
        gathering = Gathering(
            title=title,
            date=gathering_date,
            participants=participant_ids,
            host_id=host_id,
        )
        self._require_participants(gathering.participants)
        self.db.save_gathering(gathering)
        logger.info(
            f"Created gathering '{gathering.title}' with "
            f"{len(gathering.participants)} participants"
        )
        return gathering

    def get_gathering(self, gathering_id: str) -> Gathering:
        gathering = self.db.get_gathering(gathering_id)
        if gathering is None:
            raise GatheringNotFoundError(f"Gathering {gathering_id} not found")
        return gathering

    def update_gathering(self, gathering_id: str, **changes) -> Gathering:
        """
        Update a gathering's title, date, host or participant list.

        Every stored expense is validated against the updated gathering, so a
        participant who paid for or shares an expense cannot be dropped.

        Raises:
            GatheringNotFoundError: If the gathering does not exist
            ParticipantNotFoundError: If a new participant does not exist
            ValidationError: If an existing expense would become invalid
        """
        _reject_id_change(gathering_id, changes)
        current = self.get_gathering(gathering_id)
        updated = Gathering.model_validate({**current.model_dump(), **changes})

        participants_by_id = self._require_participants(updated.participants)
        for expense in self.db.list_expenses(gathering_id):
            validate_expense(expense, participants_by_id, updated)

        self.db.save_gathering(updated)
        logger.info(f"Updated gathering '{updated.title}' ({gathering_id})")
        return updated

    def add_gathering_participants(
        self, gathering_id: str, participant_ids: list[str]
    ) -> Gathering:
        """
        Add participants to an existing gathering.

        New participants are appended after the current ones. They are not
        added to expenses that were already recorded.

        Raises:
            DuplicateParticipantError: If someone is already in the gathering
                or listed twice
            ParticipantNotFoundError: If a participant does not exist
        """
        current = self.get_gathering(gathering_id)

        seen = set(current.participants)
        duplicates = []
        for participant_id in participant_ids:
            if participant_id in seen:
                duplicates.append(participant_id)
            seen.add(participant_id)
        if duplicates:
            raise DuplicateParticipantError(
                f"Participants already in gathering {gathering_id}: "
                f"{', '.join(duplicates)}"
            )

        return self.update_gathering(
            gathering_id, participants=[*current.participants, *participant_ids]
        )

    def remove_gathering(self, gathering_id: str) -> None:
        """Remove a gathering together with all of its expenses."""
        if not self.db.delete_gathering(gathering_id):
            raise GatheringNotFoundError(f"Gathering {gathering_id} not found")
        logger.info(f"Removed gathering {gathering_id}")

    def load_snapshot(self, gathering_id: str) -> GatheringSnapshot:
        """
        Load a consistent snapshot of a gathering from the store.

        Args:
            gathering_id: The gathering to load

        Returns:
            The gathering, its participants keyed by ID and its expenses
        """
        gathering = self.get_gathering(gathering_id)
        participants_by_id = self._require_participants(gathering.participants)
        expenses = self.db.list_expenses(gathering_id)
        return GatheringSnapshot(
            gathering=gathering,
            participants_by_id=participants_by_id,
            expenses=expenses,
        )

    # ========================================================================
    # Expenses
    # ========================================================================

    def add_expense(
        self,
        gathering_id: str,
        description: str,
        amount: Decimal,
        paid_by_id: str,
        participant_ids: list[str] | None = None,
        category: ExpenseCategory = "other",
        is_meat: bool | None = None,
        expense_date: date | None = None,
    ) -> Expense:
        """
        Validate and store a new expense.

        When ``participant_ids`` is omitted the expense is shared by every
        participant of the gathering (subject to eligibility).

        Raises:
            GatheringNotFoundError: If the gathering does not exist
            ValidationError: If the expense cannot be shared as declared
        """
        snapshot = self.load_snapshot(gathering_id)
        expense = Expense(
            gathering_id=gathering_id,
            description=description,
            amount=amount,
            category=category,
            is_meat=is_meat,
            paid_by_id=paid_by_id,
            participants=participant_ids or list(snapshot.gathering.participants),
            date=expense_date or snapshot.gathering.date,
        )
        eligible = validate_expense(
            expense, snapshot.participants_by_id, snapshot.gathering
        )
        self.db.save_expense(expense)
        logger.info(
            f"Added expense '{expense.description}' ({expense.amount}) to "
            f"gathering {gathering_id}, shared by {len(eligible)}"
        )
        return expense

    def update_expense(self, expense_id: str, **changes) -> Expense:
        """Validate and store changes to an existing expense."""
        current = self.db.get_expense(expense_id)
        if current is None:
            raise ExpenseNotFoundError(f"Expense {expense_id} not found")

        _reject_id_change(expense_id, changes)
        updated = Expense.model_validate({**current.model_dump(), **changes})
        snapshot = self.load_snapshot(updated.gathering_id)
        validate_expense(updated, snapshot.participants_by_id, snapshot.gathering)
        self.db.save_expense(updated)
        logger.info(f"Updated expense {expense_id}")
        return updated

    def remove_expense(self, expense_id: str) -> None:
        if not self.db.delete_expense(expense_id):
            raise ExpenseNotFoundError(f"Expense {expense_id} not found")
        logger.info(f"Removed expense {expense_id}")

    # ========================================================================
    # Settlement
    # ========================================================================

    def settle(self, gathering_id: str) -> SettlementReport:
        """
        Compute balances and settlement payments for a gathering.

        This reads a snapshot from the store and then runs the pure balance
        and settlement computations on it.

        Args:
            gathering_id: The gathering to settle

        Returns:
            Report with rounded balances, payments and participant summaries
        """
        snapshot = self.load_snapshot(gathering_id)

        balances = compute_gathering_balances(
            snapshot.gathering, snapshot.expenses, snapshot.participants_by_id
        )
        transactions = compute_settlement(
            balances, epsilon=self.settings.settlement_epsilon
        )

        logger.info(
            f"Settled gathering '{snapshot.gathering.title}': "
            f"{len(transactions)} payments, total {snapshot.total_amount}"
        )

        return SettlementReport(
            snapshot=snapshot,
            balances=round_balances(balances),
            transactions=transactions,
            summaries=summarize_participants(snapshot, transactions),
        )

    def _require_participants(
        self, participant_ids: list[str]
    ) -> dict[str, Participant]:
        participants_by_id = self.db.get_participants(participant_ids)
        missing = [pid for pid in participant_ids if pid not in participants_by_id]
        if missing:
            raise ParticipantNotFoundError(
                f"Participants not found: {', '.join(missing)}"
            )
        return participants_by_id


def _reject_id_change(record_id: str, changes: dict) -> None:
    if "id" in changes and changes["id"] != record_id:
        raise ImmutableFieldError(f"Cannot change the ID of {record_id}")
