"""Chat session controller: the send cycle and the session bundle the backend uses.

A send cycle appends the user message, marks the session busy, adds a pending
assistant placeholder, awaits the resolver and fills the placeholder in. The
busy flag is always cleared, so the UI can never get stuck disabled.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from .config import Settings, has_usable_key
from .gemini_api import ResponseResolver
from .message_store import Message, Sender
from .persona_manager import PersonaManager
from .state import SessionState

logger = logging.getLogger(__name__)

SEND_FAILED_MESSAGE = "Failed to get response. Please try again."


class SessionController:
    def __init__(
        self,
        state: SessionState,
        resolver: ResponseResolver,
        *,
        timeout_ms: Optional[int] = None,
    ):
        self.state = state
        self.resolver = resolver
        self.timeout_ms = timeout_ms

    @property
    def use_remote(self) -> bool:
        return has_usable_key(self.resolver.settings.api_key)

    def can_send(self, text: str) -> bool:
        st = self.state
        return bool(
            (text or "").strip()
            and st.active_persona is not None
            and st.subject_selected
            and not st.busy
        )

    async def send_message(self, text: str) -> bool:
        """Run one send cycle. Returns False if the input was rejected."""
        if not self.can_send(text):
            logger.debug("send_message rejected (busy=%s)", self.state.busy)
            return False

        st = self.state
        persona = st.active_persona
        try:
            st.store.append(Message(text=text, sender=Sender.USER))
            st.busy = True
            placeholder_id = st.store.append(
                Message(text="", sender=Sender.ASSISTANT, pending=True)
            )
            st.notify()

            reply = await self.resolver.resolve(
                text, persona, self.use_remote, timeout_ms=self.timeout_ms
            )

            updated = st.store.update_by_id_or_last_pending(
                placeholder_id, {"text": reply.text, "pending": False}
            )
            if not updated:
                logger.info("Reply arrived for a cleared conversation; discarded")
            st.last_error = None
        except Exception as e:
            logger.exception("Error in chat flow: %s", e)
            st.last_error = SEND_FAILED_MESSAGE
        finally:
            st.busy = False
            st.notify()
        return True

    def clear_chat(self) -> None:
        self.state.store.clear()
        logger.info("Chat cleared (busy=%s)", self.state.busy)
        self.state.notify()

    def set_api_key(self, api_key: Optional[str]) -> bool:
        """Swap the Gemini key at runtime; returns whether remote replies are now enabled."""
        key = (api_key or "").strip() or None
        self.resolver.settings.api_key = key
        logger.info("API key updated; use_remote=%s", self.use_remote)
        return self.use_remote


@dataclass
class TutorSession:
    state: SessionState
    resolver: ResponseResolver
    controller: SessionController
    personas: PersonaManager

    @classmethod
    def from_settings(cls, settings: Settings, **resolver_kwargs) -> "TutorSession":
        state = SessionState()
        resolver = ResponseResolver(settings, **resolver_kwargs)
        return cls(
            state=state,
            resolver=resolver,
            controller=SessionController(
                state, resolver, timeout_ms=settings.request_timeout_ms
            ),
            personas=PersonaManager(state),
        )
