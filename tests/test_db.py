"""Tests for the SQLite ledger store."""

import pytest

from travel_split.db import EXPENSES_KEY, PEOPLE_KEY, Database
from travel_split.models import Expense, Participant


@pytest.fixture
def db(tmp_path):
    """Create a temporary database."""
    database = Database(tmp_path / "test.db")
    yield database
    database.close()


class TestParticipants:
    def test_empty_database_has_no_participants(self, db):
        assert db.load_participants() == []

    def test_save_and_load_keeps_order(self, db):
        people = [
            Participant(id="2", name="Bob"),
            Participant(id="1", name="Alice"),
        ]

        db.save_participants(people)

        assert db.load_participants() == people

    def test_save_replaces_previous_list(self, db):
        db.save_participants([Participant(id="1", name="Alice")])
        db.save_participants([Participant(id="2", name="Bob")])

        assert [p.name for p in db.load_participants()] == ["Bob"]

    def test_persists_across_connections(self, tmp_path):
        path = tmp_path / "persist.db"
        first = Database(path)
        first.save_participants([Participant(id="1", name="Alice")])
        first.close()

        second = Database(path)
        try:
            assert second.load_participants() == [Participant(id="1", name="Alice")]
        finally:
            second.close()


class TestExpenses:
    def test_save_and_load(self, db):
        expenses = [
            Expense(
                id="10",
                payer="1",
                beneficiaries=["1", "2"],
                description="Ramen",
                currency="JPY",
                amount=2400,
            )
        ]

        db.save_expenses(expenses)

        assert db.load_expenses() == expenses

    def test_documents_use_fixed_storage_keys(self, db):
        """The stored payload is plain JSON under the app's storage keys."""
        db.save_participants([Participant(id="1", name="Alice")])
        db.save_expenses([])

        assert db.get_document(PEOPLE_KEY) == '[{"id": "1", "name": "Alice"}]'
        assert db.get_document(EXPENSES_KEY) == "[]"


class TestCorruptData:
    """Unreadable documents degrade to an empty list instead of failing."""

    def test_invalid_json(self, db):
        db.set_document(PEOPLE_KEY, "{not json")

        assert db.load_participants() == []

    def test_wrong_shape(self, db):
        db.set_document(EXPENSES_KEY, '[{"id": "1"}]')

        assert db.load_expenses() == []
