"""Streamlit page for the tutor chat.

Renders backend state and forwards user intents; all chat logic lives in the
FastAPI backend.
"""

import os

import requests
import streamlit as st

from tutor_ui.components import format_timestamp, role_for, theme_css, toggle_theme

BACKEND_URL = os.getenv("BACKEND_URL", "http://127.0.0.1:8000")

st.set_page_config(page_title="Tutor Chat", page_icon="📚", layout="centered")

if "theme" not in st.session_state:
    st.session_state.theme = "light"
st.markdown(theme_css(st.session_state.theme), unsafe_allow_html=True)


def _post(path: str, payload: dict | None = None, timeout: float = 10) -> dict:
    try:
        r = requests.post(f"{BACKEND_URL}{path}", json=payload or {}, timeout=timeout)
        return r.json() if r.ok else {"status": "error", "detail": r.status_code}
    except Exception as e:
        return {"status": "error", "detail": str(e)}


def _get(path: str, timeout: float = 5):
    try:
        r = requests.get(f"{BACKEND_URL}{path}", timeout=timeout)
        return r.json() if r.ok else None
    except Exception as e:
        st.error(f"Backend unreachable: {e}")
        return None


state = _get("/state") or {}
options = _get("/personas") or []
by_name = {o["name"]: o for o in options}

st.title("Tutor Chat")

if not state.get("subject_selected"):
    st.subheader("Choose your tutor")
    st.write(
        "Select a subject to begin your learning journey. Each tutor specializes "
        "in different areas to help you learn effectively."
    )
    cols = st.columns(2)
    for i, opt in enumerate(options):
        with cols[i % 2]:
            st.markdown(f"### {opt['icon']} {opt['name']}")
            st.caption(opt["description"])
            if st.button(f"Start with {opt['name']}", key=f"start_{opt['id']}"):
                _post("/persona", {"persona": opt["id"]})
                st.rerun()
    st.stop()

active = state.get("active_persona")
pending = state.get("pending_persona")

with st.sidebar:
    st.header("Subject")
    names = list(by_name)
    choice = st.selectbox(
        "Tutor", names, index=names.index(active) if active in names else 0
    )
    if state.get("messages"):
        st.caption("Changing subjects will clear your current chat session")
    if choice != active and st.button("Switch"):
        _post("/persona", {"persona": choice})
        st.rerun()
    if st.button("Clear Chat"):
        _post("/chat/clear")
        st.rerun()
    label = "🌙 Dark mode" if st.session_state.theme == "light" else "☀️ Light mode"
    if st.button(label):
        st.session_state.theme = toggle_theme(st.session_state.theme)
        st.rerun()
    st.divider()
    st.header("Gemini")
    status = _get("/admin/genai-status") or {}
    st.write("Remote replies:", "on" if status.get("use_remote") else "off (local answers)")
    with st.form("api_key"):
        key = st.text_input("API key", type="password")
        if st.form_submit_button("Save"):
            _post("/admin/api-key", {"api_key": key})
            st.rerun()

if pending:
    st.warning(
        f"Switching to **{pending}** will clear your current conversation history. "
        "Are you sure you want to continue?"
    )
    c1, c2 = st.columns(2)
    if c1.button("Cancel"):
        _post("/persona/cancel")
        st.rerun()
    if c2.button("Switch & Clear Chat", type="primary"):
        _post("/persona/confirm")
        st.rerun()

icon = by_name.get(active, {}).get("icon", "📚")
st.caption(f"{icon} {active}")

for m in state.get("messages", []):
    with st.chat_message(role_for(m["sender"])):
        if m.get("pending"):
            st.markdown("_typing…_")
        else:
            st.markdown(m["text"])
        st.caption(format_timestamp(m["created_at"]))

if state.get("last_error"):
    st.error(state["last_error"])

prompt = st.chat_input("Ask your tutor…", disabled=bool(state.get("busy")))
if prompt:
    with st.spinner("Thinking…"):
        _post("/chat", {"message": prompt}, timeout=45)
    st.rerun()
