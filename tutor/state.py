"""Session state container shared by the controller and the persona manager."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from .message_store import MessageStore
from .personas import Persona

logger = logging.getLogger(__name__)

Observer = Callable[[Dict[str, Any]], None]


@dataclass
class SessionState:
    store: MessageStore = field(default_factory=MessageStore)
    active_persona: Optional[Persona] = None
    subject_selected: bool = False
    busy: bool = False
    last_error: Optional[str] = None
    pending_persona: Optional[Persona] = None
    _observers: List[Observer] = field(default_factory=list, repr=False)

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Register `observer`; the returned callable removes it again."""
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def notify(self) -> None:
        snap = self.snapshot()
        for obs in list(self._observers):
            try:
                obs(snap)
            except Exception:
                logger.exception("State observer %r failed", obs)

    def snapshot(self) -> Dict[str, Any]:
        return {
            "messages": [m.to_dict() for m in self.store.messages],
            "active_persona": self.active_persona.value if self.active_persona else None,
            "subject_selected": self.subject_selected,
            "busy": self.busy,
            "last_error": self.last_error,
            "pending_persona": self.pending_persona.value if self.pending_persona else None,
        }
