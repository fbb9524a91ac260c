from __future__ import annotations

from aiohttp import web

from shared.models import JSONValue


def json_response(payload: dict[str, JSONValue], *, status: int = 200) -> web.Response:
    return web.json_response(payload, status=status)


def error_response(
    *,
    status: int,
    message: str,
    code: str,
    details: dict[str, JSONValue] | None = None,
) -> web.Response:
    payload: dict[str, JSONValue] = {
        "ok": False,
        "error": message,
        "code": code,
    }
    if details:
        payload["details"] = details
    return json_response(payload, status=status)
