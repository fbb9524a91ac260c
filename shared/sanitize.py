from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping
from typing import Any

from shared.models import JSONValue

SECRET_KEYS = {
    "api_key",
    "authorization",
    "openai_api_key",
    "token",
    "secret",
    "cookie",
    "set-cookie",
}
PAYLOAD_KEYS = {"content", "messages", "reply"}
MAX_FIELD_PREVIEW = 256
MAX_RECORD_BYTES = 4096


def _sha256_bytes(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def _to_bytes(value: Any) -> bytes:
    if isinstance(value, bytes):
        return value
    if isinstance(value, str):
        return value.encode("utf-8", errors="replace")
    try:
        return json.dumps(value, ensure_ascii=False).encode("utf-8", errors="replace")
    except (TypeError, ValueError):
        return str(value).encode("utf-8", errors="replace")


def preview_payload(value: Any, *, limit: int = MAX_FIELD_PREVIEW) -> dict[str, JSONValue]:
    raw_bytes = _to_bytes(value)
    preview = raw_bytes[:limit].decode("utf-8", errors="replace")
    if len(raw_bytes) > limit:
        preview += "…[truncated]"
    return {
        "preview": preview,
        "bytes_count": len(raw_bytes),
        "sha256": _sha256_bytes(raw_bytes),
    }


def mask_secret(value: str | None) -> str | None:
    if not value:
        return None
    if len(value) <= 8:
        return "[secret]"
    return f"{value[:3]}…{value[-4:]}"


def _sanitize_value(key: str | None, value: Any) -> JSONValue:
    key_lower = key.lower() if isinstance(key, str) else ""
    if key_lower in SECRET_KEYS:
        return "[secret]"
    if isinstance(value, (bool, int, float)) or value is None:
        return value
    if key_lower in PAYLOAD_KEYS:
        return preview_payload(value)
    if isinstance(value, dict):
        return {str(k): _sanitize_value(str(k), v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_sanitize_value(key, v) for v in value]
    if isinstance(value, (str, bytes)):
        raw_bytes = _to_bytes(value)
        if len(raw_bytes) > MAX_FIELD_PREVIEW:
            return preview_payload(value)
        return value.decode("utf-8", errors="replace") if isinstance(value, bytes) else value
    return str(value)


def sanitize_record(
    record: Mapping[str, Any],
    *,
    max_bytes: int = MAX_RECORD_BYTES,
) -> dict[str, JSONValue]:
    sanitized = {str(k): _sanitize_value(str(k), v) for k, v in record.items()}
    encoded = json.dumps(sanitized, ensure_ascii=False).encode("utf-8", errors="replace")
    if len(encoded) <= max_bytes:
        return sanitized
    return preview_payload(sanitized)


def safe_json_loads(raw: str) -> object | None:
    try:
        parsed: object = json.loads(raw)
        return parsed
    except json.JSONDecodeError:
        return None
