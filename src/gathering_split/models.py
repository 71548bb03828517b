"""Pydantic domain models for GatheringSplit."""

import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

ExpenseCategory = Literal["food", "herb", "other"]

CENT = Decimal("0.01")


def _new_id() -> str:
    return str(uuid4())


def _no_duplicates(ids: list[str]) -> list[str]:
    if len(set(ids)) != len(ids):
        raise ValueError("participant IDs must be unique")
    return ids


# ============================================================================
# Stored Models
# ============================================================================


class Participant(BaseModel):
    """A person who can take part in gatherings."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_id)
    name: str
    alias: str = ""  # payment handle shown in summaries
    is_vegan: bool = False
    participates_in_herb: bool = False


class Gathering(BaseModel):
    """A named event that scopes participants and expenses."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_id)
    title: str
    date: datetime.date
    participants: list[str] = Field(min_length=1)
    host_id: str | None = None

    @field_validator("participants")
    @classmethod
    def _unique_participants(cls, value: list[str]) -> list[str]:
        return _no_duplicates(value)

    @model_validator(mode="after")
    def _host_is_participant(self) -> "Gathering":
        if self.host_id is not None and self.host_id not in self.participants:
            raise ValueError(f"host {self.host_id} is not a participant")
        return self


class Expense(BaseModel):
    """A single cost fronted by one participant and shared by others.

    ``is_meat`` only matters when ``category`` is ``food``; vegans are not
    charged for meat dishes. Herb costs are only shared by participants who
    opted in to herb expenses.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_id)
    gathering_id: str
    description: str
    amount: Decimal = Field(gt=0)
    category: ExpenseCategory = "other"
    is_meat: bool | None = None
    paid_by_id: str
    participants: list[str] = Field(min_length=1)
    date: datetime.date = Field(default_factory=datetime.date.today)

    @field_validator("amount")
    @classmethod
    def _quantize_amount(cls, value: Decimal) -> Decimal:
        quantized = value.quantize(CENT, rounding=ROUND_HALF_UP)
        if quantized <= 0:
            raise ValueError(f"amount {value} rounds to zero")
        return quantized

    @field_validator("participants")
    @classmethod
    def _unique_participants(cls, value: list[str]) -> list[str]:
        return _no_duplicates(value)

    @property
    def is_meat_dish(self) -> bool:
        """True for food expenses flagged as containing meat."""
        return self.category == "food" and bool(self.is_meat)


# ============================================================================
# Derived Models
# ============================================================================


class Transaction(BaseModel):
    """A payment instruction from a debtor to a creditor."""

    model_config = ConfigDict(frozen=True)

    from_user_id: str
    to_user_id: str
    amount: Decimal


class ExpenseContribution(BaseModel):
    """One participant's share of a single expense."""

    expense_id: str
    description: str
    share: Decimal
    is_payer: bool = False


class ParticipantSummary(BaseModel):
    """Financial summary for one participant in a gathering."""

    participant: Participant
    amount_paid: Decimal  # sum of expenses this participant fronted
    total_share: Decimal  # what they consumed, after eligibility filtering
    balance: Decimal  # amount_paid - total_share, rounded to cents
    amount_to_pay: Decimal = Decimal("0")
    amount_to_receive: Decimal = Decimal("0")
    contributions: list[ExpenseContribution] = Field(default_factory=list)

    @property
    def is_creditor(self) -> bool:
        return self.amount_to_receive > 0

    @property
    def is_debtor(self) -> bool:
        return self.amount_to_pay > 0


class GatheringSnapshot(BaseModel):
    """A consistent view of one gathering, loaded from the store."""

    model_config = ConfigDict(frozen=True)

    gathering: Gathering
    participants_by_id: dict[str, Participant]
    expenses: list[Expense]

    @property
    def participants(self) -> list[Participant]:
        """Gathering participants in their declared order."""
        return [self.participants_by_id[pid] for pid in self.gathering.participants]

    @property
    def total_amount(self) -> Decimal:
        return sum((expense.amount for expense in self.expenses), Decimal("0"))


class SettlementReport(BaseModel):
    """Balances, payments and summaries computed for one gathering."""

    snapshot: GatheringSnapshot
    balances: dict[str, Decimal]  # rounded to cents for display
    transactions: list[Transaction]
    summaries: list[ParticipantSummary]
