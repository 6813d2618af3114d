"""Ordered in-memory log of chat messages.

Messages are appended, resolved once (pending -> final) and only ever removed
all at once via `clear()`.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple

logger = logging.getLogger(__name__)


class Sender(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


@dataclass
class Message:
    text: str
    sender: Sender
    pending: bool = False
    id: str = ""
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "sender": self.sender.value,
            "created_at": self.created_at.isoformat(),
            "pending": self.pending,
        }


def generate_message_id() -> str:
    return uuid.uuid4().hex


_FROZEN_FIELDS = ("id", "sender", "created_at")


class MessageStore:
    def __init__(self) -> None:
        self._messages: List[Message] = []

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(list(self._messages))

    @property
    def messages(self) -> Tuple[Message, ...]:
        return tuple(self._messages)

    def get(self, message_id: str) -> Optional[Message]:
        for m in self._messages:
            if m.id == message_id:
                return m
        return None

    def last_pending(self) -> Optional[Message]:
        for m in reversed(self._messages):
            if m.sender == Sender.ASSISTANT and m.pending:
                return m
        return None

    def _check_pending(self, message: Message, skip: Optional[int] = None) -> None:
        if not message.pending:
            return
        if message.sender != Sender.ASSISTANT:
            raise ValueError("Only assistant messages may be pending")
        for idx, m in enumerate(self._messages):
            if idx != skip and m.pending:
                raise ValueError("An assistant reply is already pending")

    def _write(self, idx: int, updates: Dict[str, Any]) -> None:
        merged = replace(self._messages[idx], **updates)
        self._check_pending(merged, skip=idx)
        self._messages[idx] = merged

    def append(self, message: Message) -> str:
        """Store `message` under a fresh id and return that id."""
        self._check_pending(message)
        ids = {m.id for m in self._messages}
        new_id = generate_message_id()
        while new_id in ids:
            new_id = generate_message_id()
        message.id = new_id
        self._messages.append(message)
        logger.debug(
            "Added message id=%s sender=%s pending=%s", new_id, message.sender.value, message.pending
        )
        return new_id

    def update_by_id_or_last_pending(self, message_id: str, updates: Dict[str, Any]) -> bool:
        """Merge `updates` into the message with `message_id`.

        If no such message exists and the update resolves a reply
        (``pending=False``), the newest pending assistant message is updated
        instead. Returns False when nothing matched. Updates that would leave
        a pending user message or a second pending reply raise ValueError.
        """
        bad = [k for k in updates if k in _FROZEN_FIELDS]
        if bad:
            raise ValueError(f"Cannot update message field(s): {', '.join(bad)}")

        for idx, m in enumerate(self._messages):
            if m.id == message_id:
                self._write(idx, updates)
                logger.debug("Updated message at index %d with id=%s", idx, message_id)
                return True

        if updates.get("pending") is False:
            for idx in range(len(self._messages) - 1, -1, -1):
                m = self._messages[idx]
                if m.sender == Sender.ASSISTANT and m.pending:
                    self._write(idx, updates)
                    logger.debug("Updated last pending assistant message at index %d", idx)
                    return True

        logger.debug("Could not find message with id=%s to update", message_id)
        return False

    def clear(self) -> None:
        self._messages.clear()
