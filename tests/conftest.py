from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "OPENAI_API_KEY",
        "ASSISTANT_ID",
        "VECTOR_STORE_ID",
        "ASSISTANT_API_BASE",
        "ASSISTANT_POLL_INTERVAL",
        "ASSISTANT_RUN_DEADLINE",
        "ASSISTANT_REQUEST_TIMEOUT",
        "PORT",
        "CHATSHELF_HTTP_HOST",
        "CHATSHELF_HTTP_PORT",
        "CHATSHELF_HTTP_MAX_REQUEST_BYTES",
        "CHATSHELF_STATIC_DIR",
        "CHATSHELF_COOKIE_SECURE",
        "CHATSHELF_GATEWAY_URL",
        "CHATSHELF_STATE_PATH",
        "CHATSHELF_REQUEST_TIMEOUT",
    ):
        monkeypatch.delenv(name, raising=False)
