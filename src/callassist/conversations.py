"""In-memory conversation history, keyed by username."""

import logging
import threading
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass
class Conversation:
    """A single transcribed question and the answer given to it."""

    question: str
    answer: str = ""


class ConversationStore:
    """Thread-safe per-user list of conversations.

    Entries live for the lifetime of the process.
    """

    def __init__(self):
        self._conversations: dict[str, list[Conversation]] = {}
        self._lock = threading.Lock()

    def add_question(self, username: str, question: str) -> Conversation:
        """Append a new unanswered question to the user's history."""
        conversation = Conversation(question=question)
        with self._lock:
            history = self._conversations.setdefault(username, [])
            history.append(conversation)
            count = len(history)
        if count == 1:
            logger.info("Created conversation history for %s", username)
        else:
            logger.info(
                "Added question for %s (total conversations: %d)", username, count
            )
        return conversation

    def get(self, username: str) -> list[Conversation]:
        """Return a copy of the user's history, or an empty list."""
        with self._lock:
            return list(self._conversations.get(username, []))

    def clear(self) -> None:
        with self._lock:
            self._conversations.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._conversations)
