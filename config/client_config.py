from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_GATEWAY_URL = "http://127.0.0.1:3000"
DEFAULT_STATE_PATH = Path.home() / ".chatshelf" / "state.json"
DEFAULT_REQUEST_TIMEOUT_SECONDS = 60.0


@dataclass(frozen=True)
class ClientConfig:
    gateway_url: str = DEFAULT_GATEWAY_URL
    state_path: Path = DEFAULT_STATE_PATH
    request_timeout_seconds: float = DEFAULT_REQUEST_TIMEOUT_SECONDS


def resolve_client_config(
    *,
    gateway_url: str | None = None,
    state_path: str | None = None,
) -> ClientConfig:
    url = gateway_url or os.getenv("CHATSHELF_GATEWAY_URL") or DEFAULT_GATEWAY_URL
    url = url.strip().rstrip("/")
    if not url.startswith(("http://", "https://")):
        raise ValueError("gateway url must start with http:// or https://")
    path_raw = state_path or os.getenv("CHATSHELF_STATE_PATH")
    path = Path(path_raw).expanduser() if path_raw and path_raw.strip() else DEFAULT_STATE_PATH
    timeout = DEFAULT_REQUEST_TIMEOUT_SECONDS
    timeout_raw = os.getenv("CHATSHELF_REQUEST_TIMEOUT")
    if isinstance(timeout_raw, str) and timeout_raw.strip():
        try:
            timeout = float(timeout_raw.strip())
        except ValueError as exc:
            raise ValueError("CHATSHELF_REQUEST_TIMEOUT must be a number.") from exc
    return ClientConfig(gateway_url=url, state_path=path, request_timeout_seconds=timeout)
