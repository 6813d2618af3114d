"""Reply resolution for the tutor chat: Gemini when possible, canned answers otherwise.

Behavior:
- `ResponseResolver.resolve` never raises for upstream problems. Network
  errors, non-2xx statuses, malformed payloads, safety blocks, empty
  candidates and timeouts are all logged and turned into the local fallback
  answer for the same (text, persona).
- Without a usable key (or when the caller disables remote use) the resolver
  simulates thinking time and answers locally.
- A small circuit breaker skips the remote call after repeated failures.
"""
from __future__ import annotations

import asyncio
import logging
import random
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from .config import Settings, has_usable_key, mask_key
from .personas import Persona, fallback_answer, system_context

logger = logging.getLogger(__name__)

SAFETY_CATEGORIES = (
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
)

SOURCE_REMOTE = "remote"
SOURCE_FALLBACK = "fallback"


class RemoteReplyError(Exception):
    """Gemini answered, but not with something we can show."""


@dataclass(frozen=True)
class Reply:
    text: str
    source: str = SOURCE_FALLBACK

    def __str__(self) -> str:
        return self.text


class CircuitBreaker:
    """Skips Gemini after `fail_threshold` consecutive failures.

    Open for `recovery_s` seconds, then half-open: one trial call decides
    whether it closes again or re-opens. A threshold of 0 never opens.
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF = "half_open"

    def __init__(self, fail_threshold: int = 3, recovery_s: float = 30.0):
        self.fail_threshold = fail_threshold
        self.recovery_s = recovery_s
        self._state = CircuitBreaker.CLOSED
        self._consecutive_failures = 0
        self._opened_at = 0.0

    @property
    def state(self) -> str:
        return self._state

    def _move(self, new_state: str) -> None:
        if new_state != self._state:
            logger.info(
                "Gemini circuit %s -> %s (failures=%d)",
                self._state,
                new_state,
                self._consecutive_failures,
            )
            self._state = new_state

    def record_success(self) -> None:
        self._consecutive_failures = 0
        self._move(CircuitBreaker.CLOSED)

    def record_failure(self) -> None:
        if self.fail_threshold <= 0:
            return
        self._consecutive_failures += 1
        trial_failed = self._state == CircuitBreaker.HALF
        if trial_failed or self._consecutive_failures >= self.fail_threshold:
            self._opened_at = time.monotonic()
            self._move(CircuitBreaker.OPEN)

    def allow_request(self) -> bool:
        if self._state != CircuitBreaker.OPEN:
            return True
        if time.monotonic() - self._opened_at > self.recovery_s:
            self._move(CircuitBreaker.HALF)
            return True
        return False


def build_request_body(message: str, persona: Persona | str, max_tokens: int) -> Dict[str, Any]:
    return {
        "contents": [
            {
                "parts": [
                    {"text": system_context(persona)},
                    {"text": f"User: {message}"},
                ]
            }
        ],
        "generationConfig": {
            "temperature": 0.7,
            "topK": 40,
            "topP": 0.95,
            "maxOutputTokens": max_tokens,
        },
        "safetySettings": [
            {"category": c, "threshold": "BLOCK_MEDIUM_AND_ABOVE"} for c in SAFETY_CATEGORIES
        ],
    }


def extract_answer(data: Any) -> str:
    """Pull the first candidate's first text part out of a generateContent payload."""
    if not isinstance(data, dict):
        raise RemoteReplyError("Response payload is not a JSON object")
    err = data.get("error")
    if err:
        code = err.get("code") if isinstance(err, dict) else None
        message = err.get("message") if isinstance(err, dict) else err
        raise RemoteReplyError(f"Gemini error {code}: {message}")
    feedback = data.get("promptFeedback") or {}
    if isinstance(feedback, dict) and feedback.get("blockReason"):
        raise RemoteReplyError(f"Response blocked: {feedback['blockReason']}")
    try:
        text = data["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        raise RemoteReplyError("No valid content in response") from None
    if not isinstance(text, str) or not text:
        raise RemoteReplyError("No valid content in response")
    return text


class ResponseResolver:
    def __init__(
        self,
        settings: Settings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        rng: Optional[random.Random] = None,
    ):
        self.settings = settings
        self._transport = transport
        self._sleep = sleep
        self._rng = rng or random.Random()
        self.circuit = CircuitBreaker(
            fail_threshold=settings.circuit_threshold,
            recovery_s=settings.circuit_recovery_s,
        )

    def fallback_delay_ms(self) -> int:
        lo = self.settings.fallback_delay_min_ms
        hi = self.settings.fallback_delay_max_ms
        if hi <= lo:
            return max(0, lo)
        return self._rng.randrange(lo, hi)

    async def resolve(
        self,
        text: str,
        persona: Persona | str,
        use_remote: bool,
        *,
        timeout_ms: Optional[int] = None,
    ) -> Reply:
        if not use_remote:
            await self._sleep(self.fallback_delay_ms() / 1000)
            return Reply(fallback_answer(text, persona), SOURCE_FALLBACK)

        # Keep the typing indicator visible before hitting the network.
        await self._sleep(self.settings.remote_delay_ms / 1000)

        if not has_usable_key(self.settings.api_key):
            logger.error("Valid Gemini API key not configured; using fallback answer")
            return Reply(fallback_answer(text, persona), SOURCE_FALLBACK)

        if not self.circuit.allow_request():
            logger.warning("Circuit breaker open; using fallback answer")
            return Reply(fallback_answer(text, persona), SOURCE_FALLBACK)

        timeout_ms = self.settings.request_timeout_ms if timeout_ms is None else timeout_ms
        timeout_s = max(timeout_ms, 0) / 1000
        try:
            answer = await asyncio.wait_for(
                self._call_gemini(text, persona, timeout_s), timeout=timeout_s
            )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            logger.error("Gemini request timed out after %d ms", timeout_ms)
            self.circuit.record_failure()
        except RemoteReplyError as e:
            logger.warning("Gemini reply unusable: %s", e)
            self.circuit.record_failure()
        except Exception as e:
            logger.exception("Gemini request failed: %s", e)
            self.circuit.record_failure()
        else:
            self.circuit.record_success()
            logger.info("Gemini reply received (len=%d)", len(answer))
            return Reply(answer, SOURCE_REMOTE)

        return Reply(fallback_answer(text, persona), SOURCE_FALLBACK)

    async def _call_gemini(self, message: str, persona: Persona | str, timeout_s: float) -> str:
        key = self.settings.api_key or ""
        logger.debug("Using API key %s against %s", mask_key(key), self.settings.endpoint)
        body = build_request_body(message, persona, self.settings.max_tokens)
        async with httpx.AsyncClient(transport=self._transport, timeout=timeout_s) as client:
            r = await client.post(self.settings.endpoint, params={"key": key}, json=body)
        logger.debug("Gemini response status: %d", r.status_code)
        if not r.is_success:
            raise RemoteReplyError(f"HTTP {r.status_code}")
        try:
            data = r.json()
        except ValueError:
            raise RemoteReplyError("Response body is not valid JSON") from None
        return extract_answer(data)
