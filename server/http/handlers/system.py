from __future__ import annotations

from pathlib import Path

from aiohttp import web

from llm.types import AssistantAPIError
from server.http.common.responses import error_response, json_response
from server.http_api import _assistant_error_response, _gateway, _internal_error_response


async def handle_healthz(request: web.Request) -> web.Response:
    return json_response({"ok": True})


async def handle_index(request: web.Request) -> web.StreamResponse:
    static_path: Path = request.app["static_path"]
    index_path = static_path / "index.html"
    if not index_path.is_file():
        return error_response(status=404, message="UI is not installed.", code="ui_missing")
    return web.FileResponse(path=index_path)


async def handle_diag(request: web.Request) -> web.Response:
    gateway = _gateway(request)
    config = gateway.config
    if not config.api_key:
        return error_response(
            status=500,
            message="Missing OPENAI_API_KEY",
            code="not_configured",
            details={
                "env": {
                    "has_api_key": False,
                    "assistant_id": config.assistant_id,
                    "vector_store_id_env": config.vector_store_id,
                },
            },
        )
    try:
        payload = await gateway.diagnostics()
    except AssistantAPIError as exc:
        return _assistant_error_response(exc, action="diag")
    except Exception as exc:  # noqa: BLE001
        return _internal_error_response(exc, action="diag")
    return json_response(payload)
