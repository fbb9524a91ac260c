from __future__ import annotations

import logging
from typing import Final
from urllib.parse import quote

from config.assistant_config import AssistantConfig
from llm.types import (
    AssistantAPIError,
    AssistantMessage,
    AssistantNotConfiguredError,
    AssistantSummary,
    RunInfo,
    ThreadNotFoundError,
)
from shared.models import JSONValue
from tools.http_client import HttpClient, HttpConfig, HttpResult

logger = logging.getLogger("ChatShelf.Assistants")

ASSISTANTS_BETA_HEADER: Final[str] = "assistants=v2"
MESSAGES_PAGE_LIMIT: Final[int] = 100
MAX_MESSAGE_PAGES: Final[int] = 50


class AssistantsClient:
    """Клиент Assistants API (threads, messages, runs) поверх HttpClient."""

    def __init__(self, config: AssistantConfig, http: HttpClient | None = None) -> None:
        self.config = config
        self.http = http or HttpClient(
            HttpConfig(timeout=config.request_timeout_seconds),
            base_url=config.api_base,
        )

    def _headers(self) -> dict[str, str]:
        if not self.config.api_key:
            raise AssistantNotConfiguredError("OPENAI_API_KEY not set")
        return {
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json",
            "OpenAI-Beta": ASSISTANTS_BETA_HEADER,
        }

    def _check(self, result: HttpResult, *, thread_id: str | None = None) -> dict[str, JSONValue]:
        if not result.ok:
            message = result.error or "assistant API request failed"
            if result.status_code == 404 and thread_id is not None:
                raise ThreadNotFoundError(
                    f"Thread not found: {thread_id}",
                    status_code=404,
                )
            raise AssistantAPIError(message, status_code=result.status_code)
        if not isinstance(result.data, dict):
            raise AssistantAPIError("Unexpected assistant API response.", status_code=result.status_code)
        return dict(result.data)

    def create_thread(self) -> str:
        data = self._check(self.http.post_json("/threads", headers=self._headers(), json={}))
        thread_id = data.get("id")
        if not isinstance(thread_id, str) or not thread_id:
            raise AssistantAPIError("Thread id missing in response.")
        logger.info("Created assistant thread %s", thread_id)
        return thread_id

    def thread_exists(self, thread_id: str) -> bool:
        result = self.http.get_json(f"/threads/{quote(thread_id, safe='')}", headers=self._headers())
        if not result.ok and result.status_code in {400, 404}:
            return False
        self._check(result, thread_id=thread_id)
        return True

    def delete_thread(self, thread_id: str) -> bool:
        data = self._check(
            self.http.delete_json(f"/threads/{quote(thread_id, safe='')}", headers=self._headers()),
            thread_id=thread_id,
        )
        return bool(data.get("deleted", False))

    def list_messages(self, thread_id: str) -> list[AssistantMessage]:
        messages: list[AssistantMessage] = []
        after: str | None = None
        for _ in range(MAX_MESSAGE_PAGES):
            params: dict[str, str | int] = {"order": "asc", "limit": MESSAGES_PAGE_LIMIT}
            if after:
                params["after"] = after
            data = self._check(
                self.http.get_json(
                    f"/threads/{quote(thread_id, safe='')}/messages",
                    headers=self._headers(),
                    params=params,
                ),
                thread_id=thread_id,
            )
            items = data.get("data")
            if not isinstance(items, list):
                break
            for item in items:
                parsed = _parse_message(item)
                if parsed is not None:
                    messages.append(parsed)
            last_id = data.get("last_id")
            if not data.get("has_more") or not isinstance(last_id, str) or not last_id:
                break
            after = last_id
        else:
            logger.warning(
                "Message pagination stopped early",
                extra={"thread_id": thread_id, "pages": MAX_MESSAGE_PAGES},
            )
        return messages

    def add_message(self, thread_id: str, role: str, content: str) -> None:
        self._check(
            self.http.post_json(
                f"/threads/{quote(thread_id, safe='')}/messages",
                headers=self._headers(),
                json={"role": role or "user", "content": content},
            ),
            thread_id=thread_id,
        )

    def create_run(self, thread_id: str) -> RunInfo:
        if not self.config.assistant_id:
            raise AssistantNotConfiguredError("ASSISTANT_ID not set")
        payload: dict[str, JSONValue] = {"assistant_id": self.config.assistant_id}
        if self.config.vector_store_id:
            payload["tool_resources"] = {
                "file_search": {"vector_store_ids": [self.config.vector_store_id]},
            }
        data = self._check(
            self.http.post_json(
                f"/threads/{quote(thread_id, safe='')}/runs",
                headers=self._headers(),
                json=payload,
            ),
            thread_id=thread_id,
        )
        return _parse_run(data)

    def retrieve_run(self, thread_id: str, run_id: str) -> RunInfo:
        data = self._check(
            self.http.get_json(
                f"/threads/{quote(thread_id, safe='')}/runs/{quote(run_id, safe='')}",
                headers=self._headers(),
            ),
        )
        return _parse_run(data)

    def list_run_steps(self, thread_id: str, run_id: str) -> list[dict[str, JSONValue]]:
        data = self._check(
            self.http.get_json(
                f"/threads/{quote(thread_id, safe='')}/runs/{quote(run_id, safe='')}/steps",
                headers=self._headers(),
            ),
        )
        items = data.get("data")
        if not isinstance(items, list):
            return []
        steps: list[dict[str, JSONValue]] = []
        for item in items:
            if not isinstance(item, dict):
                continue
            details = item.get("step_details")
            steps.append(
                {
                    "id": item.get("id"),
                    "type": item.get("type"),
                    "status": item.get("status"),
                    "details_type": details.get("type") if isinstance(details, dict) else None,
                },
            )
        return steps

    def retrieve_assistant(self) -> AssistantSummary | None:
        if not self.config.assistant_id:
            return None
        data = self._check(
            self.http.get_json(
                f"/assistants/{quote(self.config.assistant_id, safe='')}",
                headers=self._headers(),
            ),
        )
        tools_raw = data.get("tools")
        tools = [dict(item) for item in tools_raw if isinstance(item, dict)] if isinstance(tools_raw, list) else []
        store_ids: list[str] = []
        resources = data.get("tool_resources")
        if isinstance(resources, dict):
            file_search = resources.get("file_search")
            if isinstance(file_search, dict):
                ids_raw = file_search.get("vector_store_ids")
                if isinstance(ids_raw, list):
                    store_ids = [item for item in ids_raw if isinstance(item, str)]
        name = data.get("name")
        model = data.get("model")
        return AssistantSummary(
            assistant_id=str(data.get("id") or self.config.assistant_id),
            name=name if isinstance(name, str) else None,
            model=model if isinstance(model, str) else None,
            tools=tools,
            vector_store_ids=store_ids,
        )


def _message_text(content: object) -> str:
    if isinstance(content, str):
        return content
    if not isinstance(content, list):
        return ""
    parts: list[str] = []
    for part in content:
        if not isinstance(part, dict):
            continue
        text = part.get("text")
        if isinstance(text, dict):
            value = text.get("value")
            parts.append(value if isinstance(value, str) else "")
        elif isinstance(text, str):
            parts.append(text)
        else:
            parts.append("")
    return "\n".join(parts)


def _parse_message(item: object) -> AssistantMessage | None:
    if not isinstance(item, dict):
        return None
    role = item.get("role")
    if not isinstance(role, str):
        return None
    message_id = item.get("id")
    return AssistantMessage(
        message_id=message_id if isinstance(message_id, str) else "",
        role=role,
        content=_message_text(item.get("content")),
    )


def _parse_run(data: dict[str, JSONValue]) -> RunInfo:
    run_id = data.get("id")
    status = data.get("status")
    if not isinstance(run_id, str) or not isinstance(status, str):
        raise AssistantAPIError("Run id/status missing in response.")
    last_error: str | None = None
    error_raw = data.get("last_error")
    if isinstance(error_raw, dict):
        message = error_raw.get("message")
        if isinstance(message, str) and message.strip():
            last_error = message.strip()
    return RunInfo(run_id=run_id, status=status, last_error=last_error)
