from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from typing import Final

from config.assistant_config import AssistantConfig
from llm.types import (
    AssistantMessage,
    AssistantNotConfiguredError,
    AssistantsBackend,
    RunFailedError,
    RunInfo,
    RunTimeoutError,
    ThreadNotFoundError,
)
from shared.models import ChatMessage, JSONValue

logger = logging.getLogger("ChatShelf.HttpAPI")

NO_REPLY_TEXT: Final[str] = "(No reply)"
CONFIG_HINT: Final[str] = (
    "Tools should include {type:'file_search'} and either the assistant's tool_resources "
    "list your vector store or VECTOR_STORE_ID is set (attached per run)."
)


class AssistantGateway:
    def __init__(
        self,
        backend: AssistantsBackend,
        config: AssistantConfig,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._backend = backend
        self._config = config
        self._sleep = sleep
        self._clock = clock
        self._thread_locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    @property
    def config(self) -> AssistantConfig:
        return self._config

    def _acquire_lock_ref(self, thread_id: str) -> asyncio.Lock:
        lock = self._thread_locks.get(thread_id)
        if lock is None:
            lock = asyncio.Lock()
            self._thread_locks[thread_id] = lock
        self._lock_users[thread_id] = self._lock_users.get(thread_id, 0) + 1
        return lock

    def _release_lock_ref(self, thread_id: str) -> None:
        remaining = self._lock_users.get(thread_id, 0) - 1
        if remaining > 0:
            self._lock_users[thread_id] = remaining
            return
        self._lock_users.pop(thread_id, None)
        self._thread_locks.pop(thread_id, None)

    async def create_thread(self) -> str:
        return await asyncio.to_thread(self._backend.create_thread)

    async def thread_exists(self, thread_id: str) -> bool:
        return await asyncio.to_thread(self._backend.thread_exists, thread_id)

    async def history(self, thread_id: str) -> list[dict[str, JSONValue]]:
        messages = await asyncio.to_thread(self._backend.list_messages, thread_id)
        return [
            {"role": item.role, "content": item.content}
            for item in messages
            if item.role in {"user", "assistant"}
        ]

    async def delete_thread(self, thread_id: str) -> bool:
        return await asyncio.to_thread(self._backend.delete_thread, thread_id)

    async def send(self, thread_id: str, messages: Sequence[ChatMessage]) -> str:
        missing = self._config.missing_settings()
        if missing:
            raise AssistantNotConfiguredError(f"{missing[0]} not set")
        lock = self._acquire_lock_ref(thread_id)
        try:
            async with lock:
                history = await self._run_turn(thread_id, messages)
        finally:
            self._release_lock_ref(thread_id)
        for item in reversed(history):
            if item.role != "assistant":
                continue
            reply = item.content.strip()
            return reply or NO_REPLY_TEXT
        return NO_REPLY_TEXT

    async def _run_turn(self, thread_id: str, messages: Sequence[ChatMessage]) -> list[AssistantMessage]:
        for message in messages:
            await asyncio.to_thread(
                self._backend.add_message,
                thread_id,
                message.role,
                message.content,
            )
        run = await asyncio.to_thread(self._backend.create_run, thread_id)
        run = await self._wait_for_run(thread_id, run)
        if run.status != "completed":
            raise RunFailedError(run.status, run.last_error)
        await self._log_run_steps(thread_id, run.run_id)
        return await asyncio.to_thread(self._backend.list_messages, thread_id)

    async def _wait_for_run(self, thread_id: str, run: RunInfo) -> RunInfo:
        deadline = self._clock() + self._config.run_deadline_seconds
        while not run.finished:
            if self._clock() > deadline:
                raise RunTimeoutError("Timeout waiting for assistant.", status_code=504)
            await self._sleep(self._config.poll_interval_seconds)
            run = await asyncio.to_thread(self._backend.retrieve_run, thread_id, run.run_id)
        return run

    async def _log_run_steps(self, thread_id: str, run_id: str) -> None:
        try:
            steps = await asyncio.to_thread(self._backend.list_run_steps, thread_id, run_id)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Could not fetch run steps: %s", exc)
            return
        logger.debug(
            "Run steps",
            extra={"thread_id": thread_id, "run_id": run_id, "steps": steps},
        )

    async def diagnostics(self) -> dict[str, JSONValue]:
        env: dict[str, JSONValue] = {
            "has_api_key": bool(self._config.api_key),
            "assistant_id": self._config.assistant_id,
            "vector_store_id_env": self._config.vector_store_id,
        }
        assistant = None
        if self._config.api_key and self._config.assistant_id:
            summary = await asyncio.to_thread(self._backend.retrieve_assistant)
            assistant = summary.to_dict() if summary is not None else None
        return {"ok": True, "env": env, "assistant": assistant, "hint": CONFIG_HINT}


async def ensure_thread_exists(gateway: AssistantGateway, thread_id: str) -> None:
    if not await gateway.thread_exists(thread_id):
        raise ThreadNotFoundError(f"Thread not found: {thread_id}", status_code=404)
