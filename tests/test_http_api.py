from __future__ import annotations

import asyncio
from pathlib import Path

from aiohttp.test_utils import TestClient, TestServer

from config.assistant_config import AssistantConfig
from config.http_server_config import HttpServerConfig
from server.http.app import create_app
from tests.fakes import FakeAssistantsBackend

CONFIG = AssistantConfig(
    api_key="sk-test",
    assistant_id="asst_1",
    poll_interval_seconds=0.01,
    run_deadline_seconds=0.2,
)


async def _client(
    tmp_path: Path,
    backend: FakeAssistantsBackend | None = None,
    config: AssistantConfig = CONFIG,
) -> TestClient:
    app = create_app(
        assistants=backend or FakeAssistantsBackend(),
        assistant_config=config,
        server_config=HttpServerConfig(static_dir=str(tmp_path), cookie_secure=False),
    )
    server = TestServer(app)
    client = TestClient(server)
    await client.start_server()
    return client


def test_healthz(tmp_path) -> None:
    async def run() -> None:
        client = await _client(tmp_path)
        try:
            resp = await client.get("/healthz")
            assert resp.status == 200
            assert await resp.json() == {"ok": True}
        finally:
            await client.close()

    asyncio.run(run())


def test_history_creates_thread_and_sets_cookie(tmp_path) -> None:
    async def run() -> None:
        backend = FakeAssistantsBackend()
        client = await _client(tmp_path, backend)
        try:
            resp = await client.get("/history")
            assert resp.status == 200
            payload = await resp.json()
            thread_id = payload["threadId"]
            assert payload["messages"] == []
            assert thread_id in backend.threads
            cookie = resp.cookies["thread_id"]
            assert cookie.value == thread_id
            assert cookie["httponly"]
            assert cookie["samesite"] == "Lax"
            assert cookie["path"] == "/"

            again = await client.get("/history")
            assert (await again.json())["threadId"] == thread_id
            assert len(backend.threads) == 1
        finally:
            await client.close()

    asyncio.run(run())


def test_history_for_unknown_thread_is_404(tmp_path) -> None:
    async def run() -> None:
        client = await _client(tmp_path)
        try:
            resp = await client.get("/history", params={"thread_id": "t_missing"})
            assert resp.status == 404
            payload = await resp.json()
            assert payload["ok"] is False
            assert payload["code"] == "thread_not_found"
        finally:
            await client.close()

    asyncio.run(run())


def test_new_and_switch_thread(tmp_path) -> None:
    async def run() -> None:
        client = await _client(tmp_path)
        try:
            first = (await (await client.post("/new")).json())["threadId"]
            second = (await (await client.post("/new")).json())["threadId"]
            assert first != second

            resp = await client.post("/switch", json={"threadId": first})
            assert resp.status == 200
            assert (await resp.json()) == {"ok": True, "threadId": first}
            history = await client.get("/history")
            assert (await history.json())["threadId"] == first

            missing = await client.post("/switch", json={"threadId": "t_missing"})
            assert missing.status == 404
            empty = await client.post("/switch", json={})
            assert empty.status == 400
            broken = await client.post("/switch", data="{oops", headers={"Content-Type": "application/json"})
            assert broken.status == 400
            assert (await broken.json())["code"] == "invalid_json"
        finally:
            await client.close()

    asyncio.run(run())


def test_chat_returns_reply_for_explicit_thread(tmp_path) -> None:
    async def run() -> None:
        backend = FakeAssistantsBackend(reply="Hi there")
        client = await _client(tmp_path, backend)
        try:
            thread_id = (await (await client.post("/new")).json())["threadId"]
            resp = await client.post(
                "/chat",
                json={"threadId": thread_id, "messages": [{"role": "user", "content": "Hello"}]},
            )
            assert resp.status == 200
            payload = await resp.json()
            assert payload == {"ok": True, "threadId": thread_id, "reply": "Hi there"}
            assert [item.content for item in backend.threads[thread_id]] == ["Hello", "Hi there"]
        finally:
            await client.close()

    asyncio.run(run())


def test_chat_without_thread_uses_new_thread(tmp_path) -> None:
    async def run() -> None:
        backend = FakeAssistantsBackend()
        client = await _client(tmp_path, backend)
        try:
            resp = await client.post("/chat", json={"messages": [{"content": "Hello"}]})
            assert resp.status == 200
            payload = await resp.json()
            assert payload["threadId"] in backend.threads
            assert resp.cookies["thread_id"].value == payload["threadId"]
        finally:
            await client.close()

    asyncio.run(run())


def test_chat_rejects_bad_messages(tmp_path) -> None:
    async def run() -> None:
        client = await _client(tmp_path)
        try:
            resp = await client.post("/chat", json={"messages": [{"role": "system", "content": "x"}]})
            assert resp.status == 400
            assert (await resp.json())["code"] == "invalid_request_error"
            resp = await client.post("/chat", json={"messages": "hello"})
            assert resp.status == 400
        finally:
            await client.close()

    asyncio.run(run())


def test_chat_not_configured(tmp_path) -> None:
    async def run() -> None:
        client = await _client(tmp_path, config=AssistantConfig(api_key="sk-test"))
        try:
            resp = await client.post("/chat", json={"messages": [{"role": "user", "content": "Hi"}]})
            assert resp.status == 500
            payload = await resp.json()
            assert payload["code"] == "not_configured"
            assert payload["error"] == "ASSISTANT_ID not set"
        finally:
            await client.close()

    asyncio.run(run())


def test_chat_run_failure_and_timeout(tmp_path) -> None:
    async def run() -> None:
        client = await _client(tmp_path, FakeAssistantsBackend(run_statuses=["cancelled"]))
        try:
            thread_id = (await (await client.post("/new")).json())["threadId"]
            resp = await client.post(
                "/chat",
                json={"threadId": thread_id, "messages": [{"role": "user", "content": "Hi"}]},
            )
            assert resp.status == 502
            payload = await resp.json()
            assert payload["code"] == "run_failed"
            assert payload["details"] == {"status": "cancelled"}
        finally:
            await client.close()

        client = await _client(tmp_path, FakeAssistantsBackend(run_statuses=["in_progress"]))
        try:
            thread_id = (await (await client.post("/new")).json())["threadId"]
            resp = await client.post(
                "/chat",
                json={"threadId": thread_id, "messages": [{"role": "user", "content": "Hi"}]},
            )
            assert resp.status == 504
            assert (await resp.json())["code"] == "run_timeout"
        finally:
            await client.close()

    asyncio.run(run())


def test_delete_thread_clears_cookie(tmp_path) -> None:
    async def run() -> None:
        backend = FakeAssistantsBackend()
        client = await _client(tmp_path, backend)
        try:
            thread_id = (await (await client.post("/new")).json())["threadId"]
            resp = await client.delete(f"/threads/{thread_id}")
            assert resp.status == 200
            assert await resp.json() == {"ok": True, "deleted": True, "threadId": thread_id}
            assert backend.deleted == [thread_id]
            assert resp.cookies["thread_id"].value == ""

            missing = await client.delete("/threads/t_missing")
            assert missing.status == 404
        finally:
            await client.close()

    asyncio.run(run())


def test_diag(tmp_path) -> None:
    async def run() -> None:
        client = await _client(tmp_path)
        try:
            resp = await client.get("/diag")
            assert resp.status == 200
            payload = await resp.json()
            assert payload["env"]["has_api_key"] is True
            assert payload["assistant"]["tool_resources"] == {"file_search": {"vector_store_ids": ["vs_1"]}}
        finally:
            await client.close()

        client = await _client(tmp_path, config=AssistantConfig())
        try:
            resp = await client.get("/diag")
            assert resp.status == 500
            payload = await resp.json()
            assert payload["code"] == "not_configured"
            assert payload["details"]["env"]["has_api_key"] is False
        finally:
            await client.close()

    asyncio.run(run())


def test_index_served_from_static_dir(tmp_path) -> None:
    async def run() -> None:
        client = await _client(tmp_path)
        try:
            missing = await client.get("/")
            assert missing.status == 404
            assert (await missing.json())["code"] == "ui_missing"
        finally:
            await client.close()

        (tmp_path / "index.html").write_text("<html>ChatShelf</html>", encoding="utf-8")
        client = await _client(tmp_path)
        try:
            resp = await client.get("/")
            assert resp.status == 200
            assert "ChatShelf" in await resp.text()
        finally:
            await client.close()

    asyncio.run(run())
