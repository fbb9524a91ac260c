from __future__ import annotations

import copy
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Final

PLACEHOLDER_TITLE: Final[str] = "New chat"
UNTITLED_TITLE: Final[str] = "Untitled chat"
PLACEHOLDER_TITLES: Final[frozenset[str]] = frozenset({"", PLACEHOLDER_TITLE, UNTITLED_TITLE})
TITLE_MAX_CHARS: Final[int] = 48
TITLE_KEEP_CHARS: Final[int] = 45
TITLE_ELLIPSIS: Final[str] = "…"

DEFAULT_PROJECT_NAME: Final[str] = "My project"
DEFAULT_FOLDER_NAME: Final[str] = "General"


def utc_iso_now() -> str:
    return datetime.now(timezone.utc).isoformat()  # noqa: UP017


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


def is_placeholder_title(title: str | None) -> bool:
    return (title or "").strip() in PLACEHOLDER_TITLES


def derive_title(text: str | None) -> str:
    stripped = (text or "").strip()
    line = next((item.strip() for item in stripped.splitlines() if item.strip()), "")
    if not line:
        return UNTITLED_TITLE
    if len(line) > TITLE_MAX_CHARS:
        return line[:TITLE_KEEP_CHARS] + TITLE_ELLIPSIS
    return line


@dataclass
class ThreadMeta:
    id: str
    title: str = PLACEHOLDER_TITLE
    created_at: str = field(default_factory=utc_iso_now)


@dataclass
class Folder:
    id: str
    name: str
    open: bool = True
    chats: list[str] = field(default_factory=list)


@dataclass
class Project:
    id: str
    name: str
    folders: list[Folder] = field(default_factory=list)


@dataclass
class ActiveSelection:
    project_id: str | None = None
    folder_id: str | None = None
    thread_id: str | None = None


@dataclass(frozen=True)
class ChatLocation:
    project_id: str | None
    folder_id: str | None

    @property
    def uncategorized(self) -> bool:
        return self.folder_id is None


@dataclass
class OrganizerState:
    projects: list[Project] = field(default_factory=list)
    uncategorized: list[str] = field(default_factory=list)
    threads: dict[str, ThreadMeta] = field(default_factory=dict)
    active: ActiveSelection = field(default_factory=ActiveSelection)

    @property
    def last_active_thread_id(self) -> str | None:
        return self.active.thread_id

    def clone(self) -> OrganizerState:
        return copy.deepcopy(self)

    def iter_folders(self) -> list[tuple[Project, Folder]]:
        return [(project, folder) for project in self.projects for folder in project.folders]


def seeded_state() -> OrganizerState:
    folder = Folder(id=new_id("folder"), name=DEFAULT_FOLDER_NAME)
    project = Project(id=new_id("project"), name=DEFAULT_PROJECT_NAME, folders=[folder])
    return OrganizerState(projects=[project])
