"""Shared UI helpers for the Streamlit page.

Plain functions so they can be used (and tested) without a running Streamlit.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal

ThemeMode = Literal["light", "dark"]

CHAT_BACKGROUND = {
    "light": "#f0f5ff",
    "dark": "#1a1d2d",
}


def format_timestamp(iso_ts: str) -> str:
    """Render an ISO-8601 timestamp as local HH:MM; unparseable input is returned as-is."""
    try:
        dt = datetime.fromisoformat(iso_ts)
    except (TypeError, ValueError):
        return iso_ts or ""
    if dt.tzinfo is not None:
        dt = dt.astimezone()
    return dt.strftime("%H:%M")


def toggle_theme(mode: ThemeMode) -> ThemeMode:
    return "dark" if mode == "light" else "light"


def theme_css(mode: ThemeMode) -> str:
    bg = CHAT_BACKGROUND.get(mode, CHAT_BACKGROUND["light"])
    fg = "#f5f5f5" if mode == "dark" else "#111827"
    return f"<style>.stApp {{ background-color: {bg}; color: {fg}; }}</style>"


def role_for(sender: str) -> str:
    return "user" if sender == "user" else "assistant"
