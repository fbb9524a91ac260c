from __future__ import annotations

from shared.sanitize import mask_secret, preview_payload, safe_json_loads, sanitize_record


def test_sanitizer_masks_secrets() -> None:
    data = {
        "api_key": "supersecret",
        "Authorization": "Bearer token",
        "nested": {"cookie": "thread_id=abc"},
        "ok": True,
    }
    sanitized = sanitize_record(data)
    assert sanitized["api_key"] == "[secret]"
    assert sanitized["Authorization"] == "[secret]"
    assert sanitized["nested"]["cookie"] == "[secret]"
    assert sanitized["ok"] is True


def test_sanitizer_previews_message_content() -> None:
    payload = "x" * 600
    sanitized = sanitize_record({"messages": [{"role": "user", "content": payload}]})
    messages = sanitized["messages"]
    assert isinstance(messages, dict)
    assert messages["bytes_count"] > 600
    assert "…[truncated]" in messages["preview"]
    assert len(messages["sha256"]) == 64


def test_preview_payload_short_value() -> None:
    preview = preview_payload("hello")
    assert preview["preview"] == "hello"
    assert preview["bytes_count"] == 5


def test_mask_secret() -> None:
    assert mask_secret(None) is None
    assert mask_secret("short") == "[secret]"
    assert mask_secret("sk-abcdefghijkl") == "sk-…ijkl"


def test_safe_json_loads() -> None:
    assert safe_json_loads('{"a": 1}') == {"a": 1}
    assert safe_json_loads("{bad") is None
