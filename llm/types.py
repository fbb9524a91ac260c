from __future__ import annotations

from dataclasses import dataclass, field
from typing import Final, Protocol

from shared.models import JSONValue

RUN_TERMINAL_STATUSES: Final[frozenset[str]] = frozenset(
    {"completed", "failed", "cancelled", "expired", "incomplete"},
)


class AssistantAPIError(RuntimeError):
    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ThreadNotFoundError(AssistantAPIError):
    pass


class AssistantNotConfiguredError(AssistantAPIError):
    pass


class RunFailedError(AssistantAPIError):
    def __init__(self, status: str, message: str | None = None) -> None:
        super().__init__(message or f"Run {status}")
        self.status = status


class RunTimeoutError(AssistantAPIError):
    pass


@dataclass(frozen=True)
class AssistantMessage:
    message_id: str
    role: str
    content: str


@dataclass(frozen=True)
class RunInfo:
    run_id: str
    status: str
    last_error: str | None = None

    @property
    def finished(self) -> bool:
        return self.status in RUN_TERMINAL_STATUSES


@dataclass(frozen=True)
class AssistantSummary:
    assistant_id: str
    name: str | None
    model: str | None
    tools: list[dict[str, JSONValue]] = field(default_factory=list)
    vector_store_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "id": self.assistant_id,
            "name": self.name,
            "model": self.model,
            "tools": list(self.tools),
            "tool_resources": {"file_search": {"vector_store_ids": list(self.vector_store_ids)}},
        }


class AssistantsBackend(Protocol):
    """Blocking client for the remote assistant API."""

    def create_thread(self) -> str: ...

    def thread_exists(self, thread_id: str) -> bool: ...

    def delete_thread(self, thread_id: str) -> bool: ...

    def list_messages(self, thread_id: str) -> list[AssistantMessage]: ...

    def add_message(self, thread_id: str, role: str, content: str) -> None: ...

    def create_run(self, thread_id: str) -> RunInfo: ...

    def retrieve_run(self, thread_id: str, run_id: str) -> RunInfo: ...

    def list_run_steps(self, thread_id: str, run_id: str) -> list[dict[str, JSONValue]]: ...

    def retrieve_assistant(self) -> AssistantSummary | None: ...
