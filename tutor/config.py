"""Runtime configuration for the tutor chat.

Everything comes from the environment. The Gemini key is read from
`GEMINI_API_KEY` (or the older `GENAI_API_KEY` / `GOOGLE_API_KEY` names) and,
when none is set and `TUTOR_SECRET_PROJECT` is configured, from Google Cloud
Secret Manager. The key itself is never logged.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional

from google.cloud import secretmanager

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = (
    "https://generativelanguage.googleapis.com/v1/models/gemini-1.5-flash:generateContent"
)
MIN_KEY_LENGTH = 10


def has_usable_key(key: Optional[str]) -> bool:
    return bool(key) and len(key) > MIN_KEY_LENGTH


def mask_key(key: Optional[str]) -> str:
    if not key:
        return "<none>"
    if len(key) <= 6:
        return "***"
    return f"{key[:3]}...{key[-3:]}"


def _get_api_key_from_secret_manager(project: str, secret_name: str) -> Optional[str]:
    try:
        client = secretmanager.SecretManagerServiceClient()
        name = f"projects/{project}/secrets/{secret_name}/versions/latest"
        response = client.access_secret_version(request={"name": name})
        return response.payload.data.decode("utf-8").strip()
    except Exception as e:
        logger.debug("Could not fetch secret from Secret Manager: %s", e)
        return None


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r; using %d", name, raw, default)
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r; using %s", name, raw, default)
        return default


@dataclass
class Settings:
    api_key: Optional[str] = None
    endpoint: str = DEFAULT_ENDPOINT
    request_timeout_ms: int = 30000
    max_tokens: int = 1024
    remote_delay_ms: int = 500
    fallback_delay_min_ms: int = 1000
    fallback_delay_max_ms: int = 3000
    circuit_threshold: int = 3
    circuit_recovery_s: float = 30.0
    log_level: str = "INFO"

    @property
    def use_remote(self) -> bool:
        return has_usable_key(self.api_key)


def resolve_api_key() -> Optional[str]:
    # Env vars take precedence, then Secret Manager when a project is configured.
    key = (
        os.getenv("GEMINI_API_KEY")
        or os.getenv("GENAI_API_KEY")
        or os.getenv("GOOGLE_API_KEY")
    )
    if key:
        return key.strip()
    project = os.getenv("TUTOR_SECRET_PROJECT")
    if project:
        return _get_api_key_from_secret_manager(
            project, os.getenv("TUTOR_SECRET_NAME", "gemini-api-key")
        )
    return None


def load_settings() -> Settings:
    settings = Settings(
        api_key=resolve_api_key(),
        endpoint=os.getenv("GEMINI_ENDPOINT", DEFAULT_ENDPOINT),
        request_timeout_ms=_env_int("TUTOR_REQUEST_TIMEOUT_MS", 30000),
        max_tokens=_env_int("TUTOR_MAX_TOKENS", 1024),
        remote_delay_ms=_env_int("TUTOR_REMOTE_DELAY_MS", 500),
        fallback_delay_min_ms=_env_int("TUTOR_FALLBACK_DELAY_MIN_MS", 1000),
        fallback_delay_max_ms=_env_int("TUTOR_FALLBACK_DELAY_MAX_MS", 3000),
        circuit_threshold=_env_int("TUTOR_CIRCUIT_THRESHOLD", 3),
        circuit_recovery_s=_env_float("TUTOR_CIRCUIT_RECOVERY_S", 30.0),
        log_level=os.getenv("TUTOR_LOG_LEVEL", "INFO").upper(),
    )
    logger.debug(
        "Loaded settings: api_key=%s use_remote=%s endpoint=%s",
        mask_key(settings.api_key),
        settings.use_remote,
        settings.endpoint,
    )
    return settings
