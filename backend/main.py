import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from tutor.config import load_settings
from tutor.personas import PERSONA_OPTIONS, Persona
from tutor.persona_manager import SwitchResult
from tutor.session import TutorSession

settings = load_settings()

# Configure logging immediately so module-level startup logs are visible.
logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger("tutor_backend")

app = FastAPI(title="Tutor Chat")

# Allow CORS for all origins (development convenience)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

session = TutorSession.from_settings(settings)

# Log whether a usable key is present at startup (never the value)
logger.info(
    "Startup GenAI status: api_key_present=%s, use_remote=%s",
    bool(settings.api_key),
    settings.use_remote,
)


class ChatRequest(BaseModel):
    message: str


class PersonaRequest(BaseModel):
    persona: Persona


class ApiKeyRequest(BaseModel):
    api_key: str | None = None


@app.get("/healthz")
async def healthz():
    return {"status": "ok"}


@app.get("/admin/genai-status")
async def genai_status():
    """Whether a Gemini key is configured and remote replies are enabled.

    This intentionally does NOT return or log any secret values.
    """
    return {
        "api_key_present": bool(session.resolver.settings.api_key),
        "use_remote": session.controller.use_remote,
    }


@app.post("/admin/api-key")
async def set_api_key(req: ApiKeyRequest):
    return {"use_remote": session.controller.set_api_key(req.api_key)}


@app.get("/personas")
async def personas():
    return [opt.to_dict() for opt in PERSONA_OPTIONS]


@app.get("/state")
async def state():
    return session.state.snapshot()


@app.post("/chat")
async def chat(req: ChatRequest):
    logger.info("/chat received message (len=%d)", len(req.message or ""))
    try:
        accepted = await session.controller.send_message(req.message)
        snap = session.state.snapshot()
        if not accepted:
            return {"status": "rejected", "reply": None, "state": snap}
        if snap["last_error"]:
            return {"status": "error", "reply": None, "state": snap}
        assistant = [m for m in snap["messages"] if m["sender"] == "assistant"]
        reply = assistant[-1]["text"] if assistant else None
        return {"status": "ok", "reply": reply, "state": snap}
    except Exception as e:
        logger.error(f"Error in /chat: {e}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"status": "error", "reply": "Sorry, something went wrong."},
        )


@app.post("/chat/clear")
async def chat_clear():
    session.controller.clear_chat()
    return {"status": "cleared", "state": session.state.snapshot()}


@app.post("/persona")
async def select_persona(req: PersonaRequest):
    result = session.personas.select_persona(req.persona)
    return {"status": result.value, "state": session.state.snapshot()}


@app.post("/persona/confirm")
async def confirm_persona():
    ok = session.personas.confirm_persona_switch()
    status = SwitchResult.APPLIED.value if ok else "nothing_pending"
    return {"status": status, "state": session.state.snapshot()}


@app.post("/persona/cancel")
async def cancel_persona():
    ok = session.personas.cancel_persona_switch()
    return {
        "status": "cancelled" if ok else "nothing_pending",
        "state": session.state.snapshot(),
    }
