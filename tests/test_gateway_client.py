from __future__ import annotations

import asyncio
from pathlib import Path

from aiohttp import web
from aiohttp.test_utils import TestServer

from config.assistant_config import AssistantConfig
from config.http_server_config import HttpServerConfig
from organizer.bridge import SessionBridge
from organizer.errors import ErrorKind
from organizer.gateway_client import GatewayClient
from organizer.model import OrganizerModel
from organizer.store import InMemoryLocalStore
from server.http.app import create_app
from tests.fakes import FakeAssistantsBackend

CONFIG = AssistantConfig(
    api_key="sk-test",
    assistant_id="asst_1",
    poll_interval_seconds=0.01,
    run_deadline_seconds=1.0,
)


async def _server(tmp_path: Path, backend: FakeAssistantsBackend) -> TestServer:
    app = create_app(
        assistants=backend,
        assistant_config=CONFIG,
        server_config=HttpServerConfig(static_dir=str(tmp_path), cookie_secure=False),
    )
    server = TestServer(app)
    await server.start_server()
    return server


def test_client_round_trip_against_gateway(tmp_path) -> None:
    async def run() -> None:
        backend = FakeAssistantsBackend(reply="Hi there")
        server = await _server(tmp_path, backend)
        try:
            async with GatewayClient(str(server.make_url(""))) as client:
                created = await client.new_thread()
                assert created.ok
                thread_id = created.thread_id()
                assert thread_id in backend.threads

                sent = await client.send(thread_id, "Hello")
                assert sent.ok
                assert sent.data["reply"] == "Hi there"

                history = await client.history(thread_id)
                assert history.ok
                assert history.data["messages"] == [
                    {"role": "user", "content": "Hello"},
                    {"role": "assistant", "content": "Hi there"},
                ]

                switched = await client.switch_thread(thread_id)
                assert switched.ok and switched.thread_id() == thread_id

                deleted = await client.delete_thread(thread_id)
                assert deleted.ok
                assert backend.deleted == [thread_id]
        finally:
            await server.close()

    asyncio.run(run())


def test_client_maps_errors(tmp_path) -> None:
    async def run() -> None:
        server = await _server(tmp_path, FakeAssistantsBackend())
        try:
            async with GatewayClient(str(server.make_url(""))) as client:
                missing = await client.history("t_missing")
                assert not missing.ok
                assert missing.not_found
                assert missing.code == "thread_not_found"

                switched = await client.switch_thread("t_missing")
                assert switched.not_found

                gone = await client.delete_thread("t_missing")
                assert gone.status == 404
        finally:
            await server.close()

    asyncio.run(run())


def test_client_reports_invalid_json() -> None:
    async def plain(_request: web.Request) -> web.Response:
        return web.Response(text="<html>oops</html>", status=502)

    async def run() -> None:
        app = web.Application()
        app.router.add_get("/history", plain)
        server = TestServer(app)
        await server.start_server()
        try:
            async with GatewayClient(str(server.make_url(""))) as client:
                result = await client.history()
                assert not result.ok
                assert result.error == "HTTP 502: invalid JSON from gateway"
                assert result.status == 502
        finally:
            await server.close()

    asyncio.run(run())


def test_client_reports_unreachable_gateway() -> None:
    async def run() -> None:
        async with GatewayClient("http://127.0.0.1:1", timeout=2.0) as client:
            result = await client.new_thread()
            assert not result.ok
            assert result.error
            assert result.status is None

    asyncio.run(run())


def test_bridge_over_http_gateway(tmp_path) -> None:
    async def run() -> None:
        backend = FakeAssistantsBackend(reply="Noted")
        server = await _server(tmp_path, backend)
        try:
            async with GatewayClient(str(server.make_url(""))) as client:
                model = OrganizerModel(InMemoryLocalStore())
                bridge = SessionBridge(model, client)

                opened = await bridge.restore()
                assert opened.ok
                thread_id = opened.thread_id
                assert model.active_thread_id == thread_id

                result = await bridge.send(thread_id, "Summarize the Q3 numbers")
                assert result.ok
                assert result.reply == "Noted"
                assert [item.content for item in bridge.pane.messages] == [
                    "Summarize the Q3 numbers",
                    "Noted",
                ]
                assert model.get_thread(thread_id).title == "Summarize the Q3 numbers"

                del backend.threads[thread_id]
                restored = await bridge.restore()
                assert restored.ok
                assert restored.thread_id != thread_id
                assert restored.thread_id in backend.threads

                ghost = await bridge.switch_thread("t_ghost")
                assert not ghost.ok
                assert ghost.error is not None
                assert ghost.error.kind is ErrorKind.NOT_FOUND
        finally:
            await server.close()

    asyncio.run(run())
