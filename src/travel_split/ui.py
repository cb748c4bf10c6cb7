"""Interactive UI components for picking participants."""

import logging
from typing import Any

from prompt_toolkit import PromptSession
from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.document import Document

from .models import Participant

logger = logging.getLogger(__name__)


class ParticipantCompleter(Completer):
    """Substring search completer for participant names."""

    def __init__(self, participants: list[Participant]):
        """Initialize the completer with the group's participants."""
        self.participants = participants

    def get_completions(self, document: Document, complete_event: Any):
        """Get completions whose name contains the typed text."""
        query = document.text.lower()

        for person in self.participants:
            if query in person.name.lower():
                yield Completion(
                    text=person.name,
                    start_position=-len(document.text),
                    display=person.name,
                )

    def resolve(self, text: str) -> str | None:
        """Map typed text to a participant id (exact name, ignoring case)."""
        for person in self.participants:
            if person.name.lower() == text.strip().lower():
                return person.id
        return None


def select_participant_interactive(
    participants: list[Participant], prompt: str = "Paid by: "
) -> str | None:
    """
    Interactive participant selection with completion.

    Args:
        participants: Participants to choose from
        prompt: Prompt text

    Returns:
        Selected participant id, or None to cancel
    """
    if not participants:
        print("\nNo participants registered")
        return None

    print("   Type to search, press Enter to confirm, Ctrl+C to cancel\n")

    completer = ParticipantCompleter(participants)
    session: PromptSession[str] = PromptSession(completer=completer)

    try:
        while True:
            result = session.prompt(prompt, complete_while_typing=True)

            if not result:
                return None

            participant_id = completer.resolve(result)
            if participant_id:
                logger.info(f"User selected participant: {result.strip()}")
                return participant_id

            print("Unknown participant. Please select from the list.")

    except KeyboardInterrupt:
        print("\nCancelled")
        return None
    except EOFError:
        return None
