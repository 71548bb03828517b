"""GatheringSplit - Split shared gathering expenses and settle who pays whom."""

__version__ = "0.1.0"

from .balances import (
    compute_balances,
    compute_gathering_balances,
    eligible_participants,
    is_eligible,
    to_cents,
    validate_expense,
)
from .config import Settings, load_settings
from .db import Database
from .models import (
    Expense,
    Gathering,
    GatheringSnapshot,
    Participant,
    SettlementReport,
    Transaction,
)
from .service import GatheringService
from .settlement import apply_transactions, compute_settlement, is_settled

__all__ = [
    "Settings",
    "load_settings",
    "Database",
    "Expense",
    "Gathering",
    "GatheringSnapshot",
    "Participant",
    "SettlementReport",
    "Transaction",
    "compute_balances",
    "compute_gathering_balances",
    "eligible_participants",
    "is_eligible",
    "to_cents",
    "validate_expense",
    "compute_settlement",
    "apply_transactions",
    "is_settled",
    "GatheringService",
]
