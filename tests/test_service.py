"""Tests for LedgerService layer."""

from unittest.mock import MagicMock, patch

import pytest

from travel_split.clients.exchange_rate import FALLBACK_CURRENCIES
from travel_split.config import Settings
from travel_split.db import Database
from travel_split.exceptions import (
    DuplicateParticipantError,
    ExchangeRateAPIError,
    ExpenseNotFoundError,
    ParticipantInUseError,
    ParticipantNotFoundError,
    ValidationError,
)
from travel_split.service import LedgerService, generate_id


@pytest.fixture
def mock_settings(tmp_path):
    """Create settings without an exchange rate API key."""
    return Settings(
        exchange_rate_api_key=None,
        default_currency="JPY",
        database_path=tmp_path / "settings.db",
    )


@pytest.fixture
def mock_db(tmp_path):
    """Create a temporary database."""
    db = Database(tmp_path / "test.db")
    yield db
    db.close()


@pytest.fixture
def service(mock_settings, mock_db):
    """Create a LedgerService instance."""
    return LedgerService(mock_settings, mock_db)


@pytest.fixture
def rate_service(mock_settings, mock_db):
    """Create a LedgerService with an API key configured."""
    settings = mock_settings.model_copy(update={"exchange_rate_api_key": "test_key"})
    return LedgerService(settings, mock_db)


@pytest.fixture
def trio(service):
    """Register Alice, Bob and Carol."""
    return [service.add_participant(name) for name in ("Alice", "Bob", "Carol")]


def mock_rate_client(mock_client_class) -> MagicMock:
    mock_client = MagicMock()
    mock_client.__enter__.return_value = mock_client
    mock_client_class.return_value = mock_client
    return mock_client


class TestGenerateId:
    def test_bumps_on_collision(self):
        with patch("travel_split.service.time.time_ns", return_value=5_000_000):
            assert generate_id(set()) == "5"
            assert generate_id({"5", "6"}) == "7"


class TestParticipants:
    """Tests for participant management."""

    def test_add_trims_and_persists(self, service, mock_db):
        person = service.add_participant("  Alice  ")

        assert person.name == "Alice"
        assert mock_db.load_participants() == [person]

    def test_ids_are_unique_within_the_same_millisecond(self, service):
        with patch("travel_split.service.time.time_ns", return_value=10**15):
            alice = service.add_participant("Alice")
            bob = service.add_participant("Bob")

        assert alice.id != bob.id

    def test_blank_name_rejected(self, service):
        with pytest.raises(ValidationError) as exc_info:
            service.add_participant("   ")

        assert exc_info.value.field == "name"

    def test_duplicate_name_rejected_ignoring_case(self, service):
        service.add_participant("Alice")

        with pytest.raises(DuplicateParticipantError):
            service.add_participant("aLiCe ")

    def test_rename(self, service, trio):
        alice = trio[0]

        renamed = service.rename_participant(alice.id, "Alicia")

        assert renamed.id == alice.id
        assert [p.name for p in service.list_participants()] == [
            "Alicia",
            "Bob",
            "Carol",
        ]

    def test_rename_to_own_name_with_different_case(self, service, trio):
        """Only other participants count as duplicates."""
        renamed = service.rename_participant(trio[0].id, "ALICE")

        assert renamed.name == "ALICE"

    def test_rename_to_taken_name_rejected(self, service, trio):
        with pytest.raises(DuplicateParticipantError):
            service.rename_participant(trio[0].id, "bob")

    def test_rename_unknown_participant(self, service):
        with pytest.raises(ParticipantNotFoundError):
            service.rename_participant("nope", "Alice")

    def test_remove_unreferenced_participant(self, service, trio):
        service.remove_participant(trio[2].id)

        assert [p.name for p in service.list_participants()] == ["Alice", "Bob"]

    def test_remove_unknown_participant(self, service):
        with pytest.raises(ParticipantNotFoundError):
            service.remove_participant("nope")

    def test_payer_cannot_be_removed(self, service, trio):
        alice, bob, _ = trio
        service.add_expense(alice.id, [bob.id], "Taxi", "JPY", 1000)

        can_remove, reason = service.can_remove_participant(alice.id)
        assert can_remove is False
        assert "payer" in reason

        with pytest.raises(ParticipantInUseError) as exc_info:
            service.remove_participant(alice.id)
        assert exc_info.value.role == "payer"

    def test_beneficiary_cannot_be_removed(self, service, trio):
        alice, bob, _ = trio
        service.add_expense(alice.id, [bob.id], "Taxi", "JPY", 1000)

        with pytest.raises(ParticipantInUseError) as exc_info:
            service.remove_participant(bob.id)

        assert exc_info.value.role == "beneficiary"
        assert len(service.list_participants()) == 3

    def test_remove_reads_expenses_once(self, service, mock_db, trio):
        alice, bob, _ = trio
        service.add_expense(alice.id, [bob.id], "Taxi", "JPY", 1000)

        with patch.object(
            mock_db, "load_expenses", wraps=mock_db.load_expenses
        ) as load_expenses:
            with pytest.raises(ParticipantInUseError) as exc_info:
                service.remove_participant(bob.id)

        assert load_expenses.call_count == 1
        assert exc_info.value.role == "beneficiary"
        assert "beneficiary of at least one expense" in str(exc_info.value)

    def test_can_remove_when_not_referenced(self, service, trio):
        assert service.can_remove_participant(trio[2].id) == (True, None)


class TestExpenses:
    """Tests for expense validation and storage."""

    def test_add_expense_normalizes_input(self, service, trio):
        alice, bob, _ = trio

        expense = service.add_expense(
            alice.id, [bob.id, alice.id, bob.id], "  Sushi ", " usd", 45.5
        )

        assert expense.description == "Sushi"
        assert expense.currency == "USD"
        assert expense.beneficiaries == [bob.id, alice.id]
        assert service.list_expenses() == [expense]

    @pytest.mark.parametrize(
        "field,overrides",
        [
            ("payer", {"payer": ""}),
            ("payer", {"payer": "ghost"}),
            ("beneficiaries", {"beneficiaries": []}),
            ("beneficiaries", {"beneficiaries": ["ghost"]}),
            ("description", {"description": "  "}),
            ("currency", {"currency": ""}),
            ("amount", {"amount": 0}),
            ("amount", {"amount": -5}),
        ],
    )
    def test_invalid_expense_rejected(self, service, trio, field, overrides):
        alice, bob, _ = trio
        kwargs = {
            "payer": alice.id,
            "beneficiaries": [bob.id],
            "description": "Taxi",
            "currency": "JPY",
            "amount": 1000,
            **overrides,
        }

        with pytest.raises(ValidationError) as exc_info:
            service.add_expense(**kwargs)

        assert exc_info.value.field == field
        assert service.list_expenses() == []

    def test_update_keeps_id_and_position(self, service, trio):
        alice, bob, carol = trio
        first = service.add_expense(alice.id, [bob.id], "Taxi", "JPY", 1000)
        second = service.add_expense(bob.id, [carol.id], "Lunch", "JPY", 800)

        updated = service.update_expense(
            first.id, carol.id, [alice.id], "Taxi to airport", "JPY", 1200
        )

        assert updated.id == first.id
        assert [e.id for e in service.list_expenses()] == [first.id, second.id]
        assert service.list_expenses()[0].amount == 1200

    def test_update_unknown_expense(self, service, trio):
        with pytest.raises(ExpenseNotFoundError):
            service.update_expense("nope", trio[0].id, [trio[1].id], "x", "JPY", 1)

    def test_remove_expense(self, service, trio):
        alice, bob, _ = trio
        expense = service.add_expense(alice.id, [bob.id], "Taxi", "JPY", 1000)

        service.remove_expense(expense.id)

        assert service.list_expenses() == []
        # Alice is no longer referenced
        assert service.can_remove_participant(alice.id) == (True, None)

    def test_remove_unknown_expense(self, service):
        with pytest.raises(ExpenseNotFoundError):
            service.remove_expense("nope")


class TestFetchRates:
    """Tests for fetch_rates."""

    def test_without_api_key_returns_empty_table(self, service, trio):
        alice, bob, _ = trio
        service.add_expense(alice.id, [bob.id], "Dinner", "USD", 40)

        assert service.fetch_rates("JPY") == {}

    @patch("travel_split.service.ExchangeRateClient")
    def test_requests_unique_foreign_currencies(
        self, mock_client_class, rate_service
    ):
        alice = rate_service.add_participant("Alice")
        bob = rate_service.add_participant("Bob")
        for currency in ("USD", "JPY", "EUR", "USD"):
            rate_service.add_expense(alice.id, [bob.id], "Thing", currency, 10)

        mock_client = mock_rate_client(mock_client_class)
        mock_client.get_rates.return_value = {"USD": 0.0067, "EUR": 0.0062}

        rates = rate_service.fetch_rates("JPY")

        assert rates == {"USD": 0.0067, "EUR": 0.0062}
        mock_client.get_rates.assert_called_once_with("JPY", ["USD", "EUR"])

    @patch("travel_split.service.ExchangeRateClient")
    def test_only_target_currency_skips_request(
        self, mock_client_class, rate_service
    ):
        alice = rate_service.add_participant("Alice")
        rate_service.add_expense(alice.id, [alice.id], "Snack", "JPY", 300)

        assert rate_service.fetch_rates("JPY") == {}
        mock_client_class.assert_not_called()

    @patch("travel_split.service.ExchangeRateClient")
    def test_api_failure_returns_empty_table(self, mock_client_class, rate_service):
        alice = rate_service.add_participant("Alice")
        rate_service.add_expense(alice.id, [alice.id], "Snack", "USD", 3)

        mock_client = mock_rate_client(mock_client_class)
        mock_client.get_rates.side_effect = ExchangeRateAPIError("down")

        assert rate_service.fetch_rates("JPY") == {}


class TestListCurrencies:
    def test_without_api_key_uses_fallback(self, service):
        assert service.list_currencies() == FALLBACK_CURRENCIES

    @patch("travel_split.service.ExchangeRateClient")
    def test_with_api_key_asks_client(self, mock_client_class, rate_service):
        mock_client = mock_rate_client(mock_client_class)
        mock_client.list_currencies.return_value = FALLBACK_CURRENCIES[:2]

        assert rate_service.list_currencies() == FALLBACK_CURRENCIES[:2]


class TestSettle:
    """Tests for settle."""

    def test_requires_participants(self, service):
        with pytest.raises(ValidationError, match="No participants"):
            service.settle()

    def test_requires_expenses(self, service, trio):
        with pytest.raises(ValidationError, match="No expenses"):
            service.settle()

    def test_settles_in_default_currency(self, service, trio):
        alice, bob, carol = trio
        service.add_expense(alice.id, [alice.id, bob.id, carol.id], "Hotel", "JPY", 300)

        result = service.settle()

        assert [(s.from_name, s.to_name, s.amount) for s in result] == [
            ("Bob", "Alice", 100),
            ("Carol", "Alice", 100),
        ]

    @patch("travel_split.service.ExchangeRateClient")
    def test_converts_with_fetched_rates(self, mock_client_class, rate_service):
        alice = rate_service.add_participant("Alice")
        bob = rate_service.add_participant("Bob")
        rate_service.add_expense(alice.id, [alice.id, bob.id], "Dinner", "USD", 40)

        mock_client = mock_rate_client(mock_client_class)
        mock_client.get_rates.return_value = {"USD": 0.01}

        result = rate_service.settle("jpy")

        mock_client.get_rates.assert_called_once_with("JPY", ["USD"])
        assert [(s.from_name, s.to_name, s.amount) for s in result] == [
            ("Bob", "Alice", 2000)
        ]

    @patch("travel_split.service.ExchangeRateClient")
    def test_use_rates_false_skips_fetch(self, mock_client_class, rate_service):
        alice = rate_service.add_participant("Alice")
        bob = rate_service.add_participant("Bob")
        rate_service.add_expense(alice.id, [bob.id], "Dinner", "USD", 40)

        result = rate_service.settle("JPY", use_rates=False)

        mock_client_class.assert_not_called()
        assert [s.amount for s in result] == [40]
