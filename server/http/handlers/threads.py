from __future__ import annotations

from aiohttp import web

from llm.types import AssistantAPIError
from server.assistant_gateway import ensure_thread_exists
from server.http.common.responses import error_response, json_response
from server.http_api import (
    THREAD_COOKIE,
    THREAD_QUERY_KEY,
    _assistant_error_response,
    _ensure_thread,
    _gateway,
    _internal_error_response,
    _payload_thread_id,
    _read_json_object,
    _set_thread_cookie,
)


async def handle_history(request: web.Request) -> web.Response:
    gateway = _gateway(request)
    requested = request.query.get(THREAD_QUERY_KEY, "").strip()
    try:
        if requested:
            thread_id = requested
        else:
            thread_id, _created = await _ensure_thread(request)
        messages = await gateway.history(thread_id)
    except AssistantAPIError as exc:
        return _assistant_error_response(exc, action="history")
    except Exception as exc:  # noqa: BLE001
        return _internal_error_response(exc, action="history")
    response = json_response({"ok": True, "threadId": thread_id, "messages": messages})
    _set_thread_cookie(request, response, thread_id)
    return response


async def handle_new_thread(request: web.Request) -> web.Response:
    try:
        thread_id = await _gateway(request).create_thread()
    except AssistantAPIError as exc:
        return _assistant_error_response(exc, action="new thread")
    except Exception as exc:  # noqa: BLE001
        return _internal_error_response(exc, action="new thread")
    response = json_response({"ok": True, "threadId": thread_id})
    _set_thread_cookie(request, response, thread_id)
    return response


async def handle_switch_thread(request: web.Request) -> web.Response:
    payload, error = await _read_json_object(request)
    if payload is None:
        return error or error_response(status=400, message="Invalid JSON.", code="invalid_json")
    thread_id = _payload_thread_id(payload)
    if thread_id is None:
        return error_response(
            status=400,
            message="threadId is required.",
            code="invalid_request_error",
        )
    try:
        await ensure_thread_exists(_gateway(request), thread_id)
    except AssistantAPIError as exc:
        return _assistant_error_response(exc, action="switch thread")
    except Exception as exc:  # noqa: BLE001
        return _internal_error_response(exc, action="switch thread")
    response = json_response({"ok": True, "threadId": thread_id})
    _set_thread_cookie(request, response, thread_id)
    return response


async def handle_delete_thread(request: web.Request) -> web.Response:
    thread_id = request.match_info.get("thread_id", "").strip()
    if not thread_id:
        return error_response(
            status=400,
            message="thread_id is required.",
            code="invalid_request_error",
        )
    try:
        deleted = await _gateway(request).delete_thread(thread_id)
    except AssistantAPIError as exc:
        return _assistant_error_response(exc, action="delete thread")
    except Exception as exc:  # noqa: BLE001
        return _internal_error_response(exc, action="delete thread")
    response = json_response({"ok": True, "deleted": deleted, "threadId": thread_id})
    if request.cookies.get(THREAD_COOKIE) == thread_id:
        response.del_cookie(THREAD_COOKIE, path="/")
    return response
