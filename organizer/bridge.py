from __future__ import annotations

import asyncio
import itertools
import logging
from dataclasses import dataclass
from enum import Enum

from organizer.errors import ErrorKind, OrganizerError
from organizer.gateway_client import Gateway, GatewayResult
from organizer.model import OrganizerModel
from shared.models import ChatMessage, MessageRole

logger = logging.getLogger("ChatShelf.SessionBridge")

NO_REPLY_TEXT = "(No reply)"
ERROR_NOTICE_PREFIX = "Error: "

_message_ids = itertools.count(1)


def _next_message_id() -> str:
    return f"msg_{next(_message_ids)}"


class ThreadState(str, Enum):
    UNOPENED = "unopened"
    OPEN = "open"
    SENDING = "sending"


@dataclass(frozen=True)
class PaneMessage:
    message_id: str
    role: MessageRole
    content: str
    error: bool = False
    parent_message_id: str | None = None


class ConversationPane:
    """Optimistic message list of the thread currently on screen."""

    def __init__(self) -> None:
        self._thread_id: str | None = None
        self._messages: list[PaneMessage] = []

    @property
    def thread_id(self) -> str | None:
        return self._thread_id

    @property
    def messages(self) -> list[PaneMessage]:
        return list(self._messages)

    @property
    def is_empty(self) -> bool:
        return not self._messages

    def reset(
        self,
        thread_id: str | None,
        messages: list[ChatMessage] | None = None,
        pending: list[PaneMessage] | None = None,
    ) -> None:
        """Replace the pane contents with fetched history.

        ``pending`` are user bubbles of this thread still waiting for a reply.
        They are kept (same ids) after the history; an unanswered user message
        at the end of the history with the same text is taken to be that bubble.
        """
        rows = [
            PaneMessage(message_id=_next_message_id(), role=item.role, content=item.content)
            for item in messages or []
        ]
        answered = len(rows)
        while answered and rows[answered - 1].role == "user":
            answered -= 1
        unanswered = rows[answered:]
        for bubble in pending or []:
            for index, row in enumerate(unanswered):
                if row.content == bubble.content:
                    del unanswered[index]
                    break
        self._thread_id = thread_id
        self._messages = rows[:answered] + unanswered + list(pending or [])

    def contains(self, message_id: str) -> bool:
        return any(item.message_id == message_id for item in self._messages)

    def append_user(self, text: str) -> PaneMessage:
        message = PaneMessage(message_id=_next_message_id(), role="user", content=text)
        self._messages.append(message)
        return message

    def insert_reply(self, parent_message_id: str, content: str, *, error: bool = False) -> PaneMessage:
        reply = PaneMessage(
            message_id=_next_message_id(),
            role="assistant",
            content=content,
            error=error,
            parent_message_id=parent_message_id,
        )
        for index, item in enumerate(self._messages):
            if item.message_id == parent_message_id:
                self._messages.insert(index + 1, reply)
                return reply
        self._messages.append(reply)
        return reply


@dataclass(frozen=True)
class BridgeError:
    kind: ErrorKind
    message: str


@dataclass(frozen=True)
class BridgeResult:
    ok: bool
    thread_id: str | None = None
    messages: tuple[ChatMessage, ...] = ()
    reply: str | None = None
    error: BridgeError | None = None
    applied: bool = True

    @classmethod
    def failure(
        cls,
        kind: ErrorKind,
        message: str,
        *,
        thread_id: str | None = None,
        applied: bool = True,
    ) -> BridgeResult:
        return cls(
            ok=False,
            thread_id=thread_id,
            error=BridgeError(kind=kind, message=message),
            applied=applied,
        )

    @classmethod
    def from_gateway_failure(cls, result: GatewayResult, *, thread_id: str | None = None) -> BridgeResult:
        kind = ErrorKind.NOT_FOUND if result.not_found else ErrorKind.TRANSPORT
        return cls.failure(kind, result.error or "gateway request failed", thread_id=thread_id)


def _parse_history(raw: object) -> list[ChatMessage]:
    if not isinstance(raw, list):
        return []
    messages: list[ChatMessage] = []
    for item in raw:
        parsed = ChatMessage.from_payload(item)
        if parsed is not None:
            messages.append(parsed)
    return messages


def _title_hint(messages: list[ChatMessage]) -> str | None:
    for message in messages:
        if message.role == "user" and message.content.strip():
            return message.content
    for message in messages:
        if message.content.strip():
            return message.content
    return None


class SessionBridge:
    """Keeps the organizer tree and the gateway's "current thread" in step.

    Gateway failures come back as BridgeResult values. Each navigation takes a
    token; history that arrives after a newer navigation is not applied. Sends on
    one thread are serialized, and a reply is only written to the pane when the
    user message it answers is still on screen.
    """

    def __init__(self, model: OrganizerModel, gateway: Gateway) -> None:
        self._model = model
        self._gateway = gateway
        self._pane = ConversationPane()
        self._locks: dict[str, asyncio.Lock] = {}
        self._pending: dict[str, int] = {}
        self._pending_bubbles: dict[str, list[PaneMessage]] = {}
        self._opened: set[str] = set()
        self._nav_token = 0

    @property
    def model(self) -> OrganizerModel:
        return self._model

    @property
    def pane(self) -> ConversationPane:
        return self._pane

    @property
    def active_thread_id(self) -> str | None:
        return self._pane.thread_id

    @property
    def composer_enabled(self) -> bool:
        thread_id = self._pane.thread_id
        return thread_id is not None and self.thread_state(thread_id) is not ThreadState.SENDING

    def thread_state(self, thread_id: str) -> ThreadState:
        if self._pending.get(thread_id, 0) > 0:
            return ThreadState.SENDING
        if thread_id in self._opened:
            return ThreadState.OPEN
        return ThreadState.UNOPENED

    def _lock_for(self, thread_id: str) -> asyncio.Lock:
        lock = self._locks.get(thread_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[thread_id] = lock
        return lock

    def _begin_navigation(self) -> int:
        self._nav_token += 1
        return self._nav_token

    def _is_stale(self, token: int) -> bool:
        return token != self._nav_token

    async def open_thread(self, thread_id: str | None = None) -> BridgeResult:
        return await self._load_thread(thread_id, self._begin_navigation())

    async def _load_thread(self, thread_id: str | None, token: int) -> BridgeResult:
        result = await self._gateway.history(thread_id)
        if not result.ok:
            logger.warning(
                "History request failed",
                extra={"thread_id": thread_id, "error": result.error, "status": result.status},
            )
            return BridgeResult.from_gateway_failure(result, thread_id=thread_id)
        resolved = result.thread_id() or thread_id
        if resolved is None:
            return BridgeResult.failure(ErrorKind.TRANSPORT, "gateway returned no thread id")
        messages = _parse_history(result.data.get("messages"))
        if self._is_stale(token):
            logger.debug("Discarding stale history", extra={"thread_id": resolved})
            return BridgeResult(
                ok=True,
                thread_id=resolved,
                messages=tuple(messages),
                applied=False,
            )
        self._model.register_or_update_chat(
            resolved,
            _title_hint(messages),
            self._model.active_container_id(),
        )
        self._model.set_active_thread(resolved)
        self._pane.reset(resolved, messages, self._pending_bubbles.get(resolved))
        self._opened.add(resolved)
        return BridgeResult(ok=True, thread_id=resolved, messages=tuple(messages))

    async def new_thread(self, container_id: str | None = None) -> BridgeResult:
        target = container_id if container_id is not None else self._model.active_container_id()
        token = self._begin_navigation()
        result = await self._gateway.new_thread()
        if not result.ok:
            logger.warning("New thread request failed", extra={"error": result.error})
            return BridgeResult.from_gateway_failure(result)
        thread_id = result.thread_id()
        if thread_id is None:
            return BridgeResult.failure(ErrorKind.TRANSPORT, "gateway returned no thread id")
        self._model.register_or_update_chat(thread_id, None, target)
        if self._is_stale(token):
            logger.debug("New thread created after a newer navigation", extra={"thread_id": thread_id})
            return BridgeResult(ok=True, thread_id=thread_id, applied=False)
        self._model.set_active_thread(thread_id)
        self._pane.reset(thread_id, [])
        self._opened.add(thread_id)
        return BridgeResult(ok=True, thread_id=thread_id)

    async def switch_thread(self, thread_id: str) -> BridgeResult:
        normalized = (thread_id or "").strip()
        if not normalized:
            return BridgeResult.failure(ErrorKind.VALIDATION, "thread id is required")
        token = self._begin_navigation()
        result = await self._gateway.switch_thread(normalized)
        if not result.ok:
            logger.warning(
                "Switch rejected",
                extra={"thread_id": normalized, "error": result.error, "status": result.status},
            )
            return BridgeResult.from_gateway_failure(result, thread_id=normalized)
        if self._is_stale(token):
            logger.debug("Discarding stale switch", extra={"thread_id": normalized})
            return BridgeResult(ok=True, thread_id=normalized, applied=False)
        return await self._load_thread(normalized, token)

    async def send(self, thread_id: str, text: str) -> BridgeResult:
        normalized = (thread_id or "").strip()
        if not normalized:
            return BridgeResult.failure(ErrorKind.VALIDATION, "thread id is required")
        if not (text or "").strip():
            return BridgeResult.failure(ErrorKind.VALIDATION, "message is empty", thread_id=normalized)

        if self._model.get_thread(normalized) is None:
            self._model.register_or_update_chat(normalized, text, self._model.active_container_id())
        else:
            self._model.apply_first_message_title(normalized, text)

        bubble = self._pane.append_user(text) if self._pane.thread_id == normalized else None
        if bubble is not None:
            self._pending_bubbles.setdefault(normalized, []).append(bubble)
        self._pending[normalized] = self._pending.get(normalized, 0) + 1
        try:
            async with self._lock_for(normalized):
                result = await self._gateway.send(normalized, text)
        finally:
            self._finish_send(normalized, bubble)

        applied = (
            bubble is not None
            and self._pane.thread_id == normalized
            and self._pane.contains(bubble.message_id)
        )
        if not result.ok:
            error_text = result.error or "gateway request failed"
            logger.warning(
                "Send failed",
                extra={"thread_id": normalized, "error": error_text, "status": result.status},
            )
            if applied and bubble is not None:
                self._pane.insert_reply(bubble.message_id, ERROR_NOTICE_PREFIX + error_text, error=True)
            failure = BridgeResult.from_gateway_failure(result, thread_id=normalized)
            return BridgeResult(
                ok=False,
                thread_id=normalized,
                error=failure.error,
                applied=applied,
            )

        reply_raw = result.data.get("reply")
        reply = reply_raw if isinstance(reply_raw, str) and reply_raw.strip() else NO_REPLY_TEXT
        if applied and bubble is not None:
            self._pane.insert_reply(bubble.message_id, reply)
        elif bubble is not None:
            logger.debug("Discarding reply for inactive thread", extra={"thread_id": normalized})
        return BridgeResult(ok=True, thread_id=normalized, reply=reply, applied=applied)

    def _finish_send(self, thread_id: str, bubble: PaneMessage | None) -> None:
        if bubble is not None:
            bubbles = self._pending_bubbles.get(thread_id, [])
            if bubble in bubbles:
                bubbles.remove(bubble)
            if not bubbles:
                self._pending_bubbles.pop(thread_id, None)
        self._pending[thread_id] -= 1
        if not self._pending[thread_id]:
            # no sender holds or waits for the lock any more
            del self._pending[thread_id]
            self._locks.pop(thread_id, None)

    async def restore(self) -> BridgeResult:
        last_thread = self._model.active_thread_id
        result = await self.open_thread(last_thread)
        if result.ok or result.error is None or result.error.kind is not ErrorKind.NOT_FOUND:
            return result
        logger.info("Last thread is gone on the gateway; starting a new one", extra={"thread_id": last_thread})
        return await self.new_thread()

    async def refresh(self) -> BridgeResult:
        return await self.open_thread(self._pane.thread_id or self._model.active_thread_id)

    async def delete_chat(self, thread_id: str, *, remote: bool = False) -> BridgeResult:
        was_active = thread_id in (self._model.active_thread_id, self._pane.thread_id)
        if remote:
            result = await self._gateway.delete_thread(thread_id)
            if not result.ok and not result.not_found:
                return BridgeResult.from_gateway_failure(result, thread_id=thread_id)
        try:
            removed = self._model.delete_chat_ref(thread_id)
        except OrganizerError as exc:
            return BridgeResult.failure(exc.kind, str(exc), thread_id=thread_id)
        if not removed and not remote:
            return BridgeResult.failure(ErrorKind.NOT_FOUND, f"chat not found: {thread_id}", thread_id=thread_id)
        self._opened.discard(thread_id)
        if was_active:
            self._pane.reset(None)
            return await self.new_thread()
        return BridgeResult(ok=True, thread_id=thread_id)
