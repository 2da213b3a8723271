"""Interactive UI components for picking group members."""

import logging
from typing import Any

from prompt_toolkit import PromptSession
from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.document import Document

from ..models import Member

logger = logging.getLogger(__name__)


def member_label(member: Member) -> str:
    """Label shown in the completion menu; the id keeps repeated names apart."""
    return f"{member.name} ({member.id})"


class MemberCompleter(Completer):
    """Fuzzy search completer for group members."""

    def __init__(self, members: list[Member]):
        """Initialize the completer with the group's members."""
        self.members = members
        self.label_to_id = {member_label(m): m.id for m in members}

    def get_completions(self, document: Document, complete_event: Any):
        """Get fuzzy-matched completions."""
        query = document.text.lower()

        for label in self.label_to_id:
            if not query or fuzzy_match(query, label.lower()):
                yield Completion(
                    text=label,
                    start_position=-len(document.text),
                    display=label,
                )


def fuzzy_match(query: str, text: str) -> bool:
    """
    Fuzzy match: all characters in query must appear in order in text.

    Example:
        query="ash" matches "Asha (3f2a9c01de)"
        query="bn" matches "Ben (77aa01bc9e)"
    """
    query_idx = 0
    for char in text:
        if query_idx < len(query) and char == query[query_idx]:
            query_idx += 1
    return query_idx == len(query)


def select_member_interactive(members: list[Member], prompt: str) -> str | None:
    """
    Interactive member selection with fuzzy search.

    Args:
        members: Members to choose from
        prompt: Question shown above the input line

    Returns:
        Selected member id, or None to cancel
    """
    if not members:
        print("\n⚠️  This group has no members")
        return None

    print(f"\n👥 {prompt}")
    print("   Type to search, press Enter to confirm, Ctrl+C to cancel\n")

    completer = MemberCompleter(members)
    session: PromptSession[str] = PromptSession(completer=completer)

    try:
        while True:
            result = session.prompt("Member: ", complete_while_typing=True)

            if not result:
                return None

            member_id = completer.label_to_id.get(result)
            if member_id is None:
                # Accept a bare name when it is unambiguous
                named = [m for m in members if m.name.lower() == result.strip().lower()]
                if len(named) == 1:
                    member_id = named[0].id

            if member_id:
                logger.info(f"User selected member: {member_id}")
                return member_id

            print("❌ Unknown member. Please select from the list or press Tab to complete.")

    except KeyboardInterrupt:
        print("\n⏭️  Cancelled")
        return None
    except EOFError:
        return None
