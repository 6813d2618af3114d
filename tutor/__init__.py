"""tutor: chat session core for the educational tutor chat.

Message store, persona handling, Gemini reply resolution and the session
controller. The FastAPI backend and the Streamlit page are thin layers on top.
"""

from .config import Settings, load_settings
from .gemini_api import Reply, ResponseResolver
from .message_store import Message, MessageStore, Sender
from .persona_manager import PersonaManager, SwitchResult
from .personas import Persona, fallback_answer
from .session import SessionController, TutorSession
from .state import SessionState

__all__ = [
    "Message",
    "MessageStore",
    "Persona",
    "PersonaManager",
    "Reply",
    "ResponseResolver",
    "Sender",
    "SessionController",
    "SessionState",
    "Settings",
    "SwitchResult",
    "TutorSession",
    "fallback_answer",
    "load_settings",
]
