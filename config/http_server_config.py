from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 3000
DEFAULT_MAX_REQUEST_BYTES = 1_000_000
DEFAULT_STATIC_DIR = "public"
DEFAULT_PATH = Path("config/http_server.json")

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class HttpServerConfig:
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    max_request_bytes: int = DEFAULT_MAX_REQUEST_BYTES
    static_dir: str = DEFAULT_STATIC_DIR
    cookie_secure: bool = True

    def to_dict(self) -> dict[str, object]:
        return {
            "host": self.host,
            "port": self.port,
            "max_request_bytes": self.max_request_bytes,
            "static_dir": self.static_dir,
            "cookie_secure": self.cookie_secure,
        }


def load_http_server_config(path: Path = DEFAULT_PATH) -> HttpServerConfig:
    if not path.exists():
        return HttpServerConfig()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except Exception as exc:  # noqa: BLE001
        raise RuntimeError(f"Failed to read {path.name}: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError(f"{path.name} must contain a JSON object.")
    host = data.get("host", DEFAULT_HOST)
    port = data.get("port", DEFAULT_PORT)
    max_request_bytes = data.get("max_request_bytes", DEFAULT_MAX_REQUEST_BYTES)
    static_dir = data.get("static_dir", DEFAULT_STATIC_DIR)
    cookie_secure = data.get("cookie_secure", True)
    if not isinstance(host, str) or not host.strip():
        raise ValueError("http_server.host must be a non-empty string.")
    if not isinstance(port, int) or isinstance(port, bool):
        raise ValueError("http_server.port must be int.")
    if not isinstance(max_request_bytes, int) or isinstance(max_request_bytes, bool):
        raise ValueError("http_server.max_request_bytes must be int.")
    if not isinstance(static_dir, str):
        raise ValueError("http_server.static_dir must be a string.")
    if not isinstance(cookie_secure, bool):
        raise ValueError("http_server.cookie_secure must be bool.")
    return HttpServerConfig(
        host=host.strip(),
        port=port,
        max_request_bytes=max_request_bytes,
        static_dir=static_dir.strip(),
        cookie_secure=cookie_secure,
    )


def _env_int(name: str, current: int) -> int:
    raw = os.getenv(name)
    if not isinstance(raw, str) or not raw.strip():
        return current
    try:
        return int(raw.strip())
    except ValueError as exc:
        raise ValueError(f"{name} must be int.") from exc


def _env_bool(name: str, current: bool) -> bool:
    raw = os.getenv(name)
    if not isinstance(raw, str) or not raw.strip():
        return current
    normalized = raw.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean flag.")


def resolve_http_server_config(path: Path = DEFAULT_PATH) -> HttpServerConfig:
    config = load_http_server_config(path)

    host = config.host
    host_raw = os.getenv("CHATSHELF_HTTP_HOST")
    if isinstance(host_raw, str) and host_raw.strip():
        host = host_raw.strip()

    # PORT is what hosting platforms inject; the explicit variable wins.
    port = _env_int("PORT", config.port)
    port = _env_int("CHATSHELF_HTTP_PORT", port)
    max_bytes = _env_int("CHATSHELF_HTTP_MAX_REQUEST_BYTES", config.max_request_bytes)

    static_dir = config.static_dir
    static_raw = os.getenv("CHATSHELF_STATIC_DIR")
    if isinstance(static_raw, str) and static_raw.strip():
        static_dir = static_raw.strip()

    cookie_secure = _env_bool("CHATSHELF_COOKIE_SECURE", config.cookie_secure)

    return HttpServerConfig(
        host=host,
        port=port,
        max_request_bytes=max_bytes,
        static_dir=static_dir,
        cookie_secure=cookie_secure,
    )
