from __future__ import annotations

from pathlib import Path

import pytest

from config.assistant_config import (
    DEFAULT_API_BASE,
    DEFAULT_POLL_INTERVAL_SECONDS,
    DEFAULT_RUN_DEADLINE_SECONDS,
    AssistantConfig,
    resolve_assistant_config,
)
from config.client_config import DEFAULT_GATEWAY_URL, DEFAULT_STATE_PATH, resolve_client_config


def test_assistant_config_defaults_report_missing_settings() -> None:
    config = resolve_assistant_config()
    assert config.api_base == DEFAULT_API_BASE
    assert config.poll_interval_seconds == DEFAULT_POLL_INTERVAL_SECONDS
    assert config.run_deadline_seconds == DEFAULT_RUN_DEADLINE_SECONDS
    assert config.missing_settings() == ["OPENAI_API_KEY", "ASSISTANT_ID"]
    assert not config.can_run


def test_assistant_config_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", " sk-test ")
    monkeypatch.setenv("ASSISTANT_ID", "asst_1")
    monkeypatch.setenv("VECTOR_STORE_ID", "vs_1")
    monkeypatch.setenv("ASSISTANT_API_BASE", "http://localhost:9999/v1/")
    monkeypatch.setenv("ASSISTANT_POLL_INTERVAL", "0.1")
    monkeypatch.setenv("ASSISTANT_RUN_DEADLINE", "5")
    monkeypatch.setenv("ASSISTANT_REQUEST_TIMEOUT", "12")
    config = resolve_assistant_config()
    assert config == AssistantConfig(
        api_key="sk-test",
        assistant_id="asst_1",
        vector_store_id="vs_1",
        api_base="http://localhost:9999/v1",
        poll_interval_seconds=0.1,
        run_deadline_seconds=5.0,
        request_timeout_seconds=12,
    )
    assert config.can_run


def test_assistant_config_rejects_bad_numbers(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ASSISTANT_RUN_DEADLINE", "soon")
    with pytest.raises(ValueError):
        resolve_assistant_config()
    monkeypatch.setenv("ASSISTANT_RUN_DEADLINE", "-1")
    with pytest.raises(ValueError):
        resolve_assistant_config()


def test_client_config_defaults_and_overrides(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config = resolve_client_config()
    assert config.gateway_url == DEFAULT_GATEWAY_URL
    assert config.state_path == DEFAULT_STATE_PATH

    monkeypatch.setenv("CHATSHELF_GATEWAY_URL", "https://chat.example.com/")
    monkeypatch.setenv("CHATSHELF_STATE_PATH", str(tmp_path / "state.json"))
    monkeypatch.setenv("CHATSHELF_REQUEST_TIMEOUT", "15")
    config = resolve_client_config()
    assert config.gateway_url == "https://chat.example.com"
    assert config.state_path == tmp_path / "state.json"
    assert config.request_timeout_seconds == 15.0

    explicit = resolve_client_config(gateway_url="http://127.0.0.1:4000", state_path=str(tmp_path / "x.json"))
    assert explicit.gateway_url == "http://127.0.0.1:4000"
    assert explicit.state_path == tmp_path / "x.json"


def test_client_config_rejects_bad_values(monkeypatch: pytest.MonkeyPatch) -> None:
    with pytest.raises(ValueError):
        resolve_client_config(gateway_url="ftp://example.com")
    monkeypatch.setenv("CHATSHELF_REQUEST_TIMEOUT", "soon")
    with pytest.raises(ValueError):
        resolve_client_config()
