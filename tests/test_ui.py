"""Tests for the participant completer."""

from prompt_toolkit.document import Document

from travel_split.models import Participant
from travel_split.ui import ParticipantCompleter, select_participant_interactive

PEOPLE = [
    Participant(id="1", name="Alice"),
    Participant(id="2", name="Bob"),
    Participant(id="3", name="Malika"),
]


def completions(text: str) -> list[str]:
    completer = ParticipantCompleter(PEOPLE)
    return [c.text for c in completer.get_completions(Document(text), None)]


class TestParticipantCompleter:
    def test_empty_query_lists_everyone(self):
        assert completions("") == ["Alice", "Bob", "Malika"]

    def test_matches_substring_ignoring_case(self):
        assert completions("LI") == ["Alice", "Malika"]

    def test_no_match(self):
        assert completions("zed") == []

    def test_resolve_exact_name(self):
        completer = ParticipantCompleter(PEOPLE)

        assert completer.resolve(" bob ") == "2"
        assert completer.resolve("Bo") is None


def test_select_without_participants_returns_none():
    assert select_participant_interactive([]) is None
