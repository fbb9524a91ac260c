from __future__ import annotations

import logging

from aiohttp import web

from llm.types import AssistantAPIError
from server.http.common.responses import error_response, json_response
from server.http_api import (
    _assistant_error_response,
    _ensure_thread,
    _gateway,
    _internal_error_response,
    _parse_messages,
    _payload_thread_id,
    _read_json_object,
    _set_thread_cookie,
)
from shared.sanitize import sanitize_record

logger = logging.getLogger("ChatShelf.HttpAPI")


async def handle_chat(request: web.Request) -> web.Response:
    gateway = _gateway(request)
    missing = gateway.config.missing_settings()
    if missing:
        return error_response(
            status=500,
            message=f"{missing[0]} not set",
            code="not_configured",
        )
    payload, error = await _read_json_object(request)
    if payload is None:
        return error or error_response(status=400, message="Invalid JSON.", code="invalid_json")
    messages, error_text = _parse_messages(payload)
    if messages is None:
        return error_response(status=400, message=error_text, code="invalid_request_error")

    thread_id = _payload_thread_id(payload)
    try:
        if thread_id is None:
            thread_id, _created = await _ensure_thread(request)
        reply = await gateway.send(thread_id, messages)
    except AssistantAPIError as exc:
        logger.warning(
            "Chat turn failed",
            extra=sanitize_record(
                {"thread_id": thread_id, "error": str(exc), "messages": payload.get("messages")},
            ),
        )
        return _assistant_error_response(exc, action="chat")
    except Exception as exc:  # noqa: BLE001
        return _internal_error_response(exc, action="chat")
    response = json_response({"ok": True, "threadId": thread_id, "reply": reply})
    _set_thread_cookie(request, response, thread_id)
    return response
