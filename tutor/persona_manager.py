"""Active persona tracking and the switch-with-confirmation protocol."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Optional

from .personas import Persona
from .state import SessionState

logger = logging.getLogger(__name__)


class SwitchResult(str, Enum):
    APPLIED = "applied"
    CONFIRMATION_REQUIRED = "confirmation_required"


class PersonaManager:
    """Switching persona mid-conversation clears the chat, so it must be confirmed.

    The first selection and switches with an empty log (or to the current
    persona) apply straight away.
    """

    def __init__(self, state: SessionState):
        self.state = state

    @property
    def pending(self) -> Optional[Persona]:
        return self.state.pending_persona

    def select_persona(self, persona: Persona | str) -> SwitchResult:
        target = persona if isinstance(persona, Persona) else Persona.parse(persona)
        st = self.state
        needs_confirm = (
            st.subject_selected
            and st.active_persona is not None
            and target != st.active_persona
            and len(st.store) > 0
        )
        if needs_confirm:
            st.pending_persona = target
            logger.info(
                "Persona switch %s -> %s awaiting confirmation", st.active_persona, target
            )
            st.notify()
            return SwitchResult.CONFIRMATION_REQUIRED

        self._apply(target)
        st.notify()
        return SwitchResult.APPLIED

    def confirm_persona_switch(self) -> bool:
        target = self.state.pending_persona
        if target is None:
            return False
        self._apply(target)
        self.state.store.clear()
        logger.info("Persona switched to %s; chat cleared", target)
        self.state.notify()
        return True

    def cancel_persona_switch(self) -> bool:
        if self.state.pending_persona is None:
            return False
        logger.info("Persona switch to %s cancelled", self.state.pending_persona)
        self.state.pending_persona = None
        self.state.notify()
        return True

    def _apply(self, target: Persona) -> None:
        self.state.active_persona = target
        self.state.subject_selected = True
        self.state.pending_persona = None
