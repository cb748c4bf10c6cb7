"""Service layer that composes the ledger store, rate client and settlement engine.

The settlement engine itself stays pure: this module loads the ledger,
fetches rates and hands plain lists to it.
"""

import logging
import time

from .clients.exchange_rate import FALLBACK_CURRENCIES, ExchangeRateClient
from .config import Settings
from .db import Database
from .exceptions import (
    DuplicateParticipantError,
    ExchangeRateAPIError,
    ExpenseNotFoundError,
    ParticipantInUseError,
    ParticipantNotFoundError,
    ValidationError,
)
from .models import Currency, Expense, Participant, SettlementResult
from .settlement import calculate_settlement

logger = logging.getLogger(__name__)


def generate_id(existing: set[str]) -> str:
    """Millisecond timestamp id, bumped until it is unused."""
    candidate = time.time_ns() // 1_000_000
    while str(candidate) in existing:
        candidate += 1
    return str(candidate)


def _removal_reason(role: str) -> str:
    return (
        f"This participant is the {role} of at least one expense. "
        f"Remove those expenses first."
    )


class LedgerService:
    """Service for managing a trip's participants and expenses and settling them."""

    def __init__(self, settings: Settings, database: Database):
        """Initialize the ledger service."""
        self.settings = settings
        self.db = database

    # ========================================================================
    # Participants
    # ========================================================================

    def list_participants(self) -> list[Participant]:
        """Participants in the order they were added."""
        return self.db.load_participants()

    def _clean_name(
        self, name: str, participants: list[Participant], ignore_id: str | None = None
    ) -> str:
        """Trim a name and make sure no other participant already uses it."""
        trimmed = name.strip()
        if not trimmed:
            raise ValidationError("Name must not be empty", field="name")

        for person in participants:
            if person.id != ignore_id and person.name.lower() == trimmed.lower():
                raise DuplicateParticipantError(trimmed)

        return trimmed

    def add_participant(self, name: str) -> Participant:
        """
        Add a participant to the group.

        Args:
            name: Display name, must be unique ignoring case

        Returns:
            The new participant
        """
        participants = self.db.load_participants()
        trimmed = self._clean_name(name, participants)

        person = Participant(
            id=generate_id({p.id for p in participants}), name=trimmed
        )
        participants.append(person)
        self.db.save_participants(participants)

        logger.info(f"Added participant {person.name} ({person.id})")
        return person

    def rename_participant(self, participant_id: str, name: str) -> Participant:
        """Rename a participant, keeping their id."""
        participants = self.db.load_participants()
        person = next((p for p in participants if p.id == participant_id), None)
        if person is None:
            raise ParticipantNotFoundError(f"No participant with id {participant_id}")

        person.name = self._clean_name(name, participants, ignore_id=participant_id)
        self.db.save_participants(participants)

        logger.info(f"Renamed participant {participant_id} to {person.name}")
        return person

    def _expense_role(self, participant_id: str) -> str | None:
        """Role the participant plays in the ledger: payer, beneficiary or None."""
        expenses = self.db.load_expenses()

        if any(exp.payer == participant_id for exp in expenses):
            return "payer"
        if any(participant_id in exp.beneficiaries for exp in expenses):
            return "beneficiary"
        return None

    def can_remove_participant(self, participant_id: str) -> tuple[bool, str | None]:
        """
        Check whether a participant can be removed.

        A participant referenced by any expense, as payer or beneficiary,
        must stay until those expenses are removed.

        Returns:
            Tuple of (can_remove, reason)
        """
        role = self._expense_role(participant_id)
        if role is None:
            return True, None
        return False, _removal_reason(role)

    def remove_participant(self, participant_id: str):
        """Remove a participant that no expense refers to."""
        participants = self.db.load_participants()
        if not any(p.id == participant_id for p in participants):
            raise ParticipantNotFoundError(f"No participant with id {participant_id}")

        role = self._expense_role(participant_id)
        if role is not None:
            raise ParticipantInUseError(participant_id, role, _removal_reason(role))

        self.db.save_participants([p for p in participants if p.id != participant_id])
        logger.info(f"Removed participant {participant_id}")

    # ========================================================================
    # Expenses
    # ========================================================================

    def list_expenses(self) -> list[Expense]:
        """Expenses in the order they were recorded."""
        return self.db.load_expenses()

    def _build_expense(
        self,
        expense_id: str,
        payer: str,
        beneficiaries: list[str],
        description: str,
        currency: str,
        amount: float,
    ) -> Expense:
        """Validate expense input and build the Expense."""
        known_ids = {p.id for p in self.db.load_participants()}

        if not payer:
            raise ValidationError("Select who paid", field="payer")
        if payer not in known_ids:
            raise ValidationError(f"Unknown payer {payer}", field="payer")

        if not beneficiaries:
            raise ValidationError(
                "Select at least one beneficiary", field="beneficiaries"
            )
        unknown = [b for b in beneficiaries if b not in known_ids]
        if unknown:
            raise ValidationError(
                f"Unknown beneficiaries: {', '.join(unknown)}", field="beneficiaries"
            )

        if not description.strip():
            raise ValidationError("Description must not be empty", field="description")

        if not currency.strip():
            raise ValidationError("Currency must not be empty", field="currency")

        if not amount > 0:
            raise ValidationError("Amount must be a positive number", field="amount")

        return Expense(
            id=expense_id,
            payer=payer,
            beneficiaries=list(dict.fromkeys(beneficiaries)),
            description=description.strip(),
            currency=currency.strip().upper(),
            amount=amount,
        )

    def add_expense(
        self,
        payer: str,
        beneficiaries: list[str],
        description: str,
        currency: str,
        amount: float,
    ) -> Expense:
        """
        Record a new expense.

        Args:
            payer: Id of the participant who paid
            beneficiaries: Ids of the participants the expense is split across
            description: What the money was spent on
            currency: Currency code the amount was paid in
            amount: Positive amount paid

        Returns:
            The stored expense
        """
        expenses = self.db.load_expenses()
        expense = self._build_expense(
            generate_id({e.id for e in expenses}),
            payer,
            beneficiaries,
            description,
            currency,
            amount,
        )
        expenses.append(expense)
        self.db.save_expenses(expenses)

        logger.info(
            f"Added expense {expense.id}: {expense.description} "
            f"{expense.amount} {expense.currency}"
        )
        return expense

    def update_expense(
        self,
        expense_id: str,
        payer: str,
        beneficiaries: list[str],
        description: str,
        currency: str,
        amount: float,
    ) -> Expense:
        """Replace an existing expense in place, keeping its id and position."""
        expenses = self.db.load_expenses()
        index = next((i for i, e in enumerate(expenses) if e.id == expense_id), None)
        if index is None:
            raise ExpenseNotFoundError(f"No expense with id {expense_id}")

        expense = self._build_expense(
            expense_id, payer, beneficiaries, description, currency, amount
        )
        expenses[index] = expense
        self.db.save_expenses(expenses)

        logger.info(f"Updated expense {expense_id}")
        return expense

    def remove_expense(self, expense_id: str):
        """Remove an expense from the ledger."""
        expenses = self.db.load_expenses()
        remaining = [e for e in expenses if e.id != expense_id]
        if len(remaining) == len(expenses):
            raise ExpenseNotFoundError(f"No expense with id {expense_id}")

        self.db.save_expenses(remaining)
        logger.info(f"Removed expense {expense_id}")

    # ========================================================================
    # Currencies and settlement
    # ========================================================================

    def list_currencies(self) -> list[Currency]:
        """Currencies offered for expenses, from the API when a key is configured."""
        if not self.settings.exchange_rate_api_key:
            return list(FALLBACK_CURRENCIES)

        with self._rate_client() as client:
            return client.list_currencies()

    def fetch_rates(
        self, target_currency: str, expenses: list[Expense] | None = None
    ) -> dict[str, float]:
        """
        Fetch the rate table needed to settle the ledger in target_currency.

        Any failure leaves the table empty, so every amount is taken at rate 1.

        Args:
            target_currency: Settlement currency
            expenses: Ledger to cover (defaults to the stored one)

        Returns:
            Currency code -> units of that currency per 1 unit of target_currency
        """
        if expenses is None:
            expenses = self.db.load_expenses()

        currencies = [
            code
            for code in dict.fromkeys(exp.currency for exp in expenses)
            if code != target_currency
        ]
        if not currencies:
            return {}

        if not self.settings.exchange_rate_api_key:
            logger.warning(
                "No exchange rate API key configured, converting "
                f"{', '.join(currencies)} at rate 1"
            )
            return {}

        try:
            with self._rate_client() as client:
                return client.get_rates(target_currency, currencies)
        except ExchangeRateAPIError as e:
            logger.warning(f"Failed to fetch exchange rates, using rate 1: {e}")
            return {}

    def settle(
        self, target_currency: str | None = None, use_rates: bool = True
    ) -> list[SettlementResult]:
        """
        Compute the transfers that settle the stored ledger.

        Args:
            target_currency: Settlement currency (defaults to settings)
            use_rates: Fetch exchange rates; when False every rate is 1

        Returns:
            Transfers, largest balances first
        """
        target = (target_currency or self.settings.default_currency).upper()

        participants = self.db.load_participants()
        if not participants:
            raise ValidationError("No participants registered", field="participants")

        expenses = self.db.load_expenses()
        if not expenses:
            raise ValidationError("No expenses recorded", field="expenses")

        rates = self.fetch_rates(target, expenses) if use_rates else {}
        return calculate_settlement(participants, expenses, target, rates)

    def _rate_client(self) -> ExchangeRateClient:
        return ExchangeRateClient(
            api_key=self.settings.exchange_rate_api_key or "",
            base_url=self.settings.exchange_rate_base_url,
            timeout=self.settings.http_timeout,
        )
