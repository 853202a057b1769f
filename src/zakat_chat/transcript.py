"""Append-only chat transcript shared with the rendering layer."""

import itertools
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

logger = logging.getLogger(__name__)


class Author(str, Enum):
    USER = "user"
    SYSTEM = "system"


@dataclass
class Message:
    """One transcript entry.

    ``is_structured`` tells the renderer to try reading ``text`` as JSON
    table data. Renderers fall back to plain text when ``rows()`` is None.
    """
    id: str
    author: Author
    text: str
    is_structured: bool = False
    timestamp: datetime = field(default_factory=datetime.now)

    def rows(self) -> Optional[list[dict[str, Any]]]:
        """Parse structured text into table rows, None if it is not a table."""
        if not self.is_structured:
            return None
        try:
            data = json.loads(self.text)
        except json.JSONDecodeError:
            return None
        if isinstance(data, dict):
            return [data]
        if isinstance(data, list) and all(isinstance(row, dict) for row in data):
            return data
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "author": self.author.value,
            "text": self.text,
            "is_structured": self.is_structured,
        }


class Transcript:
    """Ordered message log for a single chat session."""

    def __init__(self):
        self._messages: list[Message] = []
        self._ids = itertools.count(1)

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self):
        return iter(list(self._messages))

    @property
    def messages(self) -> tuple[Message, ...]:
        return tuple(self._messages)

    def _append(self, author: Author, text: str, is_structured: bool) -> Message:
        message = Message(
            id=str(next(self._ids)),
            author=author,
            text=text,
            is_structured=is_structured,
        )
        self._messages.append(message)
        logger.debug(f"Transcript message {message.id} from {author.value} ({len(text)} chars)")
        return message

    def add_user(self, text: str) -> Message:
        return self._append(Author.USER, text, False)

    def add_system(self, text: str, is_structured: bool = False) -> Message:
        return self._append(Author.SYSTEM, text, is_structured)

    def since(self, index: int) -> list[Message]:
        """Messages appended after the first ``index`` entries."""
        return self._messages[index:]

    def last(self) -> Optional[Message]:
        return self._messages[-1] if self._messages else None
