"""Tutor personas: the closed set of behavioural profiles the chat can use.

Each persona carries the system context sent to Gemini and a little display
metadata (icon, description, accent colour) for the UI.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List


class Persona(str, Enum):
    GENERAL_TUTOR = "General Tutor"
    MATH_EXPERT = "Math Expert"
    HISTORY_MENTOR = "History Mentor"
    CODING_COACH = "Coding Coach"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, name: str) -> "Persona":
        """Return the persona whose display name matches `name` (case-insensitive)."""
        wanted = (name or "").strip().lower()
        for p in cls:
            if p.value.lower() == wanted:
                return p
        raise ValueError(f"Unknown persona: {name!r}")


PERSONA_CONTEXTS: Dict[Persona, str] = {
    Persona.MATH_EXPERT: (
        "You are an expert mathematics tutor. Provide clear, step-by-step explanations "
        "for mathematical concepts and problem-solving techniques. Focus on being "
        "educational and helpful."
    ),
    Persona.HISTORY_MENTOR: (
        "You are a history education specialist. Provide accurate historical information "
        "with context and relevant details. Focus on educational content appropriate for "
        "students."
    ),
    Persona.CODING_COACH: (
        "You are a programming instructor specializing in teaching coding concepts and "
        "practices. Provide code examples when appropriate and explain technical concepts "
        "clearly."
    ),
    Persona.GENERAL_TUTOR: (
        "You are a general educational assistant. Provide helpful, accurate information "
        "across a variety of academic subjects. Focus on being educational and supportive."
    ),
}

# Canned informational replies used when Gemini is not available.
FALLBACK_ANSWERS: Dict[Persona, str] = {
    Persona.MATH_EXPERT: (
        "I can help you with various math concepts. Feel free to ask about algebra, "
        "calculus, or statistics!"
    ),
    Persona.HISTORY_MENTOR: (
        "I'd be happy to discuss historical events, figures, or time periods with you. "
        "What would you like to explore?"
    ),
    Persona.CODING_COACH: (
        "I can assist with programming concepts, algorithms, or specific languages. "
        "What are you working on?"
    ),
    Persona.GENERAL_TUTOR: (
        "That's an interesting question. Can you tell me more about what you're trying "
        "to learn?"
    ),
}


@dataclass(frozen=True)
class PersonaOption:
    persona: Persona
    icon: str
    description: str
    color: str

    def to_dict(self) -> dict:
        return {
            "id": self.persona.value,
            "name": self.persona.value,
            "icon": self.icon,
            "description": self.description,
            "color": self.color,
        }


PERSONA_OPTIONS: List[PersonaOption] = [
    PersonaOption(
        Persona.GENERAL_TUTOR,
        "🤖",
        "Get help with any subject or general knowledge questions",
        "blue",
    ),
    PersonaOption(
        Persona.MATH_EXPERT,
        "📊",
        "Focus on mathematics, formulas, and problem-solving",
        "green",
    ),
    PersonaOption(
        Persona.HISTORY_MENTOR,
        "📜",
        "Explore historical events, people, and cultural contexts",
        "amber",
    ),
    PersonaOption(
        Persona.CODING_COACH,
        "💻",
        "Learn programming concepts and get help with code",
        "purple",
    ),
]


def system_context(persona: Persona | str) -> str:
    try:
        return PERSONA_CONTEXTS[Persona(persona)]
    except ValueError:
        return PERSONA_CONTEXTS[Persona.GENERAL_TUTOR]


def fallback_answer(text: str, persona: Persona | str) -> str:
    """Deterministic local reply used when the remote model is unavailable.

    Greetings ("hello"/"hi" anywhere in the text, case-insensitive) get a
    persona-prefixed welcome; everything else gets the persona's canned line.
    Unknown personas fall back to the General Tutor answer.
    """
    low = (text or "").lower()
    name = persona.value if isinstance(persona, Persona) else str(persona)
    if "hello" in low or "hi" in low:
        return f"Hello! I'm your {name} assistant. How can I help you today?"
    try:
        return FALLBACK_ANSWERS[Persona(persona)]
    except ValueError:
        return FALLBACK_ANSWERS[Persona.GENERAL_TUTOR]
