import asyncio
import json

import httpx

from tutor.config import Settings
from tutor.gemini_api import (SOURCE_FALLBACK, SOURCE_REMOTE, CircuitBreaker,
                              ResponseResolver, build_request_body)
from tutor.personas import Persona, fallback_answer

KEY = "AIza-test-key-1234567890"
QUESTION = "What is a prime number?"


def _ok_payload(text="A prime has exactly two divisors."):
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


def _resolver(handler, sleeper, **overrides):
    settings = Settings(api_key=KEY, **overrides)
    return ResponseResolver(settings, transport=httpx.MockTransport(handler), sleep=sleeper)


def test_fallback_path_waits_between_one_and_three_seconds(sleeper):
    resolver = ResponseResolver(Settings(api_key=None), sleep=sleeper)
    for _ in range(20):
        reply = asyncio.run(resolver.resolve("Hello there", Persona.MATH_EXPERT, False))
        assert reply.text.startswith("Hello! I'm your Math Expert assistant.")
        assert reply.source == SOURCE_FALLBACK
    assert len(sleeper.calls) == 20
    assert all(1.0 <= s < 3.0 for s in sleeper.calls)


def test_remote_success_sends_expected_request(sleeper):
    seen = {}

    def handler(request: httpx.Request):
        seen["key"] = request.url.params.get("key")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=_ok_payload())

    resolver = _resolver(handler, sleeper)
    reply = asyncio.run(resolver.resolve(QUESTION, Persona.MATH_EXPERT, True))

    assert reply.source == SOURCE_REMOTE
    assert reply.text == "A prime has exactly two divisors."
    assert sleeper.calls == [0.5]
    assert seen["key"] == KEY
    assert seen["body"] == build_request_body(QUESTION, Persona.MATH_EXPERT, 1024)
    parts = seen["body"]["contents"][0]["parts"]
    assert parts[1]["text"] == f"User: {QUESTION}"
    cfg = seen["body"]["generationConfig"]
    assert (cfg["temperature"], cfg["topP"], cfg["topK"]) == (0.7, 0.95, 40)
    assert len(seen["body"]["safetySettings"]) == 4


def _assert_falls_back(handler, sleeper, persona=Persona.HISTORY_MENTOR):
    resolver = _resolver(handler, sleeper)
    reply = asyncio.run(resolver.resolve(QUESTION, persona, True))
    assert reply.source == SOURCE_FALLBACK
    assert reply.text == fallback_answer(QUESTION, persona)
    assert reply.text


def test_non_2xx_falls_back(sleeper):
    _assert_falls_back(lambda r: httpx.Response(503, json={}), sleeper)


def test_error_object_falls_back(sleeper):
    payload = {"error": {"code": 400, "message": "API key not valid", "status": "INVALID_ARGUMENT"}}
    _assert_falls_back(lambda r: httpx.Response(200, json=payload), sleeper)


def test_safety_block_falls_back(sleeper):
    payload = {"promptFeedback": {"blockReason": "SAFETY"}}
    _assert_falls_back(lambda r: httpx.Response(200, json=payload), sleeper)


def test_missing_candidate_text_falls_back(sleeper):
    _assert_falls_back(lambda r: httpx.Response(200, json={"candidates": []}), sleeper)
    _assert_falls_back(lambda r: httpx.Response(200, json=_ok_payload(text="")), sleeper)


def test_malformed_json_falls_back(sleeper):
    _assert_falls_back(lambda r: httpx.Response(200, content=b"not json"), sleeper)


def test_transport_error_falls_back(sleeper):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    _assert_falls_back(handler, sleeper)


def test_timeout_is_indistinguishable_from_unavailability(sleeper):
    async def slow_handler(request):
        await asyncio.sleep(1)
        return httpx.Response(200, json=_ok_payload())

    resolver = _resolver(slow_handler, sleeper)
    reply = asyncio.run(resolver.resolve(QUESTION, Persona.CODING_COACH, True, timeout_ms=20))
    assert reply.source == SOURCE_FALLBACK
    assert reply.text == fallback_answer(QUESTION, Persona.CODING_COACH)


def test_remote_without_usable_key_falls_back(sleeper):
    resolver = ResponseResolver(Settings(api_key="short"), sleep=sleeper)
    reply = asyncio.run(resolver.resolve(QUESTION, Persona.GENERAL_TUTOR, True))
    assert reply.text == fallback_answer(QUESTION, Persona.GENERAL_TUTOR)


def test_circuit_opens_after_repeated_failures(sleeper):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(500, json={})

    resolver = _resolver(handler, sleeper, circuit_threshold=2, circuit_recovery_s=60)
    for _ in range(4):
        reply = asyncio.run(resolver.resolve(QUESTION, Persona.MATH_EXPERT, True))
        assert reply.text == fallback_answer(QUESTION, Persona.MATH_EXPERT)
    assert len(calls) == 2
    assert resolver.circuit.state == CircuitBreaker.OPEN


def test_circuit_half_open_recovers(monkeypatch):
    breaker = CircuitBreaker(fail_threshold=1, recovery_s=10)
    now = [100.0]
    monkeypatch.setattr("tutor.gemini_api.time.monotonic", lambda: now[0])
    breaker.record_failure()
    assert not breaker.allow_request()
    now[0] += 11
    assert breaker.allow_request()
    assert breaker.state == CircuitBreaker.HALF
    breaker.record_success()
    assert breaker.state == CircuitBreaker.CLOSED


def test_zero_threshold_disables_circuit():
    breaker = CircuitBreaker(fail_threshold=0)
    for _ in range(10):
        breaker.record_failure()
    assert breaker.allow_request()


def test_circuit_state_changes_are_logged(caplog, monkeypatch):
    now = [0.0]
    monkeypatch.setattr("tutor.gemini_api.time.monotonic", lambda: now[0])
    breaker = CircuitBreaker(fail_threshold=2, recovery_s=5)
    with caplog.at_level("INFO", logger="tutor.gemini_api"):
        breaker.record_failure()
        assert "circuit" not in caplog.text
        breaker.record_failure()
        now[0] += 6
        breaker.allow_request()
        breaker.record_failure()
    lines = [r.getMessage() for r in caplog.records if "circuit" in r.getMessage()]
    assert lines == [
        "Gemini circuit closed -> open (failures=2)",
        "Gemini circuit open -> half_open (failures=2)",
        "Gemini circuit half_open -> open (failures=3)",
    ]
