"""TravelSplit - Split shared travel expenses and settle up in few payments."""

__version__ = "0.1.0"

from .config import Settings, load_settings
from .db import Database
from .models import (
    Currency,
    Expense,
    Participant,
    PersonBalance,
    SettlementResult,
)
from .service import LedgerService
from .settlement import (
    accumulate_balances,
    calculate_settlement,
    convert_currency,
    format_amount,
    reduce_transfers,
)

__all__ = [
    "Settings",
    "load_settings",
    "Database",
    "Currency",
    "Expense",
    "Participant",
    "PersonBalance",
    "SettlementResult",
    "LedgerService",
    "accumulate_balances",
    "calculate_settlement",
    "convert_currency",
    "format_amount",
    "reduce_transfers",
]
