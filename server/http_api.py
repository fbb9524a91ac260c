from __future__ import annotations

import logging
from typing import Final

from aiohttp import web

from llm.types import (
    AssistantAPIError,
    AssistantNotConfiguredError,
    RunFailedError,
    RunTimeoutError,
    ThreadNotFoundError,
)
from server.assistant_gateway import AssistantGateway
from server.http.common.responses import error_response
from shared.models import ChatMessage

logger = logging.getLogger("ChatShelf.HttpAPI")

THREAD_COOKIE: Final[str] = "thread_id"
THREAD_COOKIE_MAX_AGE: Final[int] = 30 * 24 * 3600
THREAD_QUERY_KEY: Final[str] = "thread_id"
MAX_MESSAGES_PER_REQUEST: Final[int] = 20


def _gateway(request: web.Request) -> AssistantGateway:
    gateway: AssistantGateway = request.app["assistant_gateway"]
    return gateway


def _cookie_thread_id(request: web.Request) -> str | None:
    value = request.cookies.get(THREAD_COOKIE, "").strip()
    return value or None


def _set_thread_cookie(request: web.Request, response: web.StreamResponse, thread_id: str) -> None:
    response.set_cookie(
        THREAD_COOKIE,
        thread_id,
        max_age=THREAD_COOKIE_MAX_AGE,
        path="/",
        httponly=True,
        secure=bool(request.app["cookie_secure"]),
        samesite="Lax",
    )


async def _ensure_thread(request: web.Request) -> tuple[str, bool]:
    existing = _cookie_thread_id(request)
    if existing is not None:
        return existing, False
    thread_id = await _gateway(request).create_thread()
    return thread_id, True


async def _read_json_object(request: web.Request) -> tuple[dict[str, object] | None, web.Response | None]:
    if not request.can_read_body:
        return {}, None
    try:
        payload = await request.json()
    except Exception as exc:  # noqa: BLE001
        return None, error_response(
            status=400,
            message=f"Invalid JSON: {exc}",
            code="invalid_json",
        )
    if not isinstance(payload, dict):
        return None, error_response(
            status=400,
            message="JSON body must be an object.",
            code="invalid_json",
        )
    return payload, None


def _payload_thread_id(payload: dict[str, object]) -> str | None:
    for key in ("threadId", "thread_id"):
        raw = payload.get(key)
        if isinstance(raw, str) and raw.strip():
            return raw.strip()
    return None


def _parse_messages(payload: dict[str, object]) -> tuple[list[ChatMessage] | None, str]:
    raw = payload.get("messages", [])
    if not isinstance(raw, list):
        return None, "messages must be a list."
    if len(raw) > MAX_MESSAGES_PER_REQUEST:
        return None, f"At most {MAX_MESSAGES_PER_REQUEST} messages per request."
    messages: list[ChatMessage] = []
    for index, item in enumerate(raw):
        if isinstance(item, dict) and "role" not in item:
            item = {**item, "role": "user"}
        parsed = ChatMessage.from_payload(item)
        if parsed is None:
            return None, f"messages[{index}] must have role user|assistant and string content."
        messages.append(parsed)
    return messages, ""


def _assistant_error_response(exc: AssistantAPIError, *, action: str) -> web.Response:
    if isinstance(exc, ThreadNotFoundError):
        return error_response(status=404, message=str(exc), code="thread_not_found")
    if isinstance(exc, AssistantNotConfiguredError):
        return error_response(status=500, message=str(exc), code="not_configured")
    if isinstance(exc, RunTimeoutError):
        return error_response(status=504, message=str(exc), code="run_timeout")
    if isinstance(exc, RunFailedError):
        return error_response(
            status=502,
            message=str(exc),
            code="run_failed",
            details={"status": exc.status},
        )
    logger.error(
        "%s failed: %s",
        action,
        exc,
        extra={"status_code": exc.status_code},
    )
    return error_response(status=502, message=str(exc), code="upstream_error")


def _internal_error_response(exc: Exception, *, action: str) -> web.Response:
    logger.error("%s failed", action, exc_info=exc)
    return error_response(status=500, message=str(exc) or "internal error", code="internal_error")

