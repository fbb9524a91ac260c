from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Literal

JSONPrimitive = str | bytes | int | float | bool | None
JSONValue = JSONPrimitive | Sequence["JSONValue"] | Mapping[str, "JSONValue"]

MessageRole = Literal["user", "assistant"]
MESSAGE_ROLES: frozenset[str] = frozenset({"user", "assistant"})


@dataclass(frozen=True)
class ChatMessage:
    role: MessageRole
    content: str

    def to_dict(self) -> dict[str, JSONValue]:
        return {"role": self.role, "content": self.content}

    @classmethod
    def from_payload(cls, payload: object) -> ChatMessage | None:
        if not isinstance(payload, dict):
            return None
        role = payload.get("role")
        content = payload.get("content")
        if not isinstance(role, str) or role.strip() not in MESSAGE_ROLES:
            return None
        if content is None:
            content = ""
        if not isinstance(content, str):
            return None
        normalized_role: MessageRole = "user" if role.strip() == "user" else "assistant"
        return cls(role=normalized_role, content=content)
