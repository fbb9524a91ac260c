from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_API_BASE = "https://api.openai.com/v1"
DEFAULT_POLL_INTERVAL_SECONDS = 0.8
DEFAULT_RUN_DEADLINE_SECONDS = 45.0
DEFAULT_REQUEST_TIMEOUT_SECONDS = 30


@dataclass(frozen=True)
class AssistantConfig:
    api_key: str | None = None
    assistant_id: str | None = None
    vector_store_id: str | None = None
    api_base: str = DEFAULT_API_BASE
    poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS
    run_deadline_seconds: float = DEFAULT_RUN_DEADLINE_SECONDS
    request_timeout_seconds: int = DEFAULT_REQUEST_TIMEOUT_SECONDS

    def missing_settings(self) -> list[str]:
        missing: list[str] = []
        if not self.api_key:
            missing.append("OPENAI_API_KEY")
        if not self.assistant_id:
            missing.append("ASSISTANT_ID")
        return missing

    @property
    def can_run(self) -> bool:
        return not self.missing_settings()


def _optional_env(name: str) -> str | None:
    raw = os.getenv(name)
    if isinstance(raw, str) and raw.strip():
        return raw.strip()
    return None


def _positive_float_env(name: str, default: float) -> float:
    raw = _optional_env(name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number.") from exc
    if value <= 0:
        raise ValueError(f"{name} must be positive.")
    return value


def resolve_assistant_config() -> AssistantConfig:
    timeout = _positive_float_env(
        "ASSISTANT_REQUEST_TIMEOUT",
        float(DEFAULT_REQUEST_TIMEOUT_SECONDS),
    )
    return AssistantConfig(
        api_key=_optional_env("OPENAI_API_KEY"),
        assistant_id=_optional_env("ASSISTANT_ID"),
        vector_store_id=_optional_env("VECTOR_STORE_ID"),
        api_base=(_optional_env("ASSISTANT_API_BASE") or DEFAULT_API_BASE).rstrip("/"),
        poll_interval_seconds=_positive_float_env(
            "ASSISTANT_POLL_INTERVAL",
            DEFAULT_POLL_INTERVAL_SECONDS,
        ),
        run_deadline_seconds=_positive_float_env(
            "ASSISTANT_RUN_DEADLINE",
            DEFAULT_RUN_DEADLINE_SECONDS,
        ),
        request_timeout_seconds=int(timeout),
    )
